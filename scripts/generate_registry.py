from __future__ import annotations

from erp.core.modules.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
