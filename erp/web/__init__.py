from __future__ import annotations

from erp.web.api import create_app

__all__ = ["create_app"]
