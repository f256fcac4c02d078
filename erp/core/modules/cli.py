from __future__ import annotations

"""
Registry generation command (`erp-registry`).

WHY THIS FILE EXISTS:
Regenerating the module registry is a build step. This keeps it a plain,
testable function: resolve the addons tree, write the artifact, print a
summary. Addon code is never imported here.
"""

import argparse
import sys
from typing import List, Optional

from erp.core.config.manager import ConfigManager
from erp.core.config.paths import ConfigFsPaths
from erp.core.errors import AddonError
from erp.core.modules.registry_gen import emit_registry
from erp.core.modules.resolver import Resolution, resolve

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_STRICT_WARNINGS = 2


def summary_lines(res: Resolution) -> List[str]:
    """
    Render the resolution summary.
    Sections: load order, excluded folders with reasons, cycles.
    """
    lines = [f"Modules ({len(res.order)}) in load order:"]
    for i, name in enumerate(res.order, start=1):
        deps = ", ".join(res.graph.dependencies_of(name)) or "-"
        lines.append(f"  {i}. {name} {res.manifests[name].version} (depends on: {deps})")
    if res.excluded:
        lines.append(f"Excluded ({len(res.excluded)}):")
        for folder in sorted(res.excluded):
            lines.append(f"  {folder}: {res.excluded[folder]}")
    if res.cycles:
        lines.append(f"Cycles ({len(res.cycles)}):")
        for members in res.cycles:
            lines.append("  " + " -> ".join(members + members[:1]))
    return lines


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="erp-registry", description="Resolve addon load order and write the module registry.")
    ap.add_argument("--root", default=None, help="Addons directory (default: from config/addons.json)")
    ap.add_argument("--out", default=None, help="Registry artifact path (default: from config/addons.json)")
    ap.add_argument("--config-root", default=".", help="Directory holding config/addons.json")
    ap.add_argument("--strict", action="store_true", help="Exit 2 when any warning was reported")
    ap.add_argument("--quiet", action="store_true", help="Do not print the summary")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cm = ConfigManager(fs=ConfigFsPaths(args.config_root), read_only=True)
        cfg = cm.load()
        root = args.root or cm.addons_root()
        out = args.out or cm.registry_path()
        res = resolve(root, manifest_filename=cfg.manifest_filename, entrypoint_filename=cfg.entrypoint_filename)
        emitted = emit_registry(res, out)
    except AddonError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FATAL
    except OSError as e:
        print(f"error: cannot write registry: {e}", file=sys.stderr)
        return EXIT_FATAL

    if not args.quiet:
        for line in summary_lines(res):
            print(line)
        print(f"Registry {'written' if emitted.written else 'unchanged'}: {emitted.path}")
    for d in res.diagnostics:
        print(d.line(), file=sys.stderr)

    if (args.strict or cfg.strict) and res.has_warnings:
        return EXIT_STRICT_WARNINGS
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
