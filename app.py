from __future__ import annotations

import argparse
import os
import sys

import uvicorn

from erp.core.config import get_config
from erp.core.config.paths import ConfigFsPaths
from erp.core.errors import AddonError
from erp.core.logger import setup_logging
from erp.core.modules import ModuleLoader, ModuleRegistry, emit_registry, resolve
from erp.core.modules.service import ModuleService
from erp.core.modules.store import ModuleStore
from erp.web.api import create_app


def main() -> None:
    ap = argparse.ArgumentParser(description="ERP addon host")
    ap.add_argument("--config-root", default=".", help="Directory holding config/ and logs/.")
    ap.add_argument("--regenerate", action="store_true", help="Regenerate the module registry before starting.")
    ap.add_argument("--serve", action="store_true", help="Serve the module management API.")
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=8000)
    args = ap.parse_args()

    root = os.path.abspath(args.config_root)
    logs_dir = ConfigFsPaths(root).logs_dir
    logger = setup_logging(logs_dir)
    try:
        cm = get_config(root=root, logger=logger)
    except AddonError as e:
        logger.error(str(e))
        sys.exit(1)
    cfg = cm.get()
    setup_logging(logs_dir, level=cfg.log_level)

    registry_path = cm.registry_path()
    if args.regenerate or not os.path.exists(registry_path):
        try:
            res = resolve(
                cm.addons_root(),
                manifest_filename=cfg.manifest_filename,
                entrypoint_filename=cfg.entrypoint_filename,
                logger=logger,
            )
            emit_registry(res, registry_path, logger=logger)
        except (AddonError, OSError) as e:
            logger.error(f"Registry generation failed: {e}")
            sys.exit(1)

    try:
        registry = ModuleRegistry.from_artifact(registry_path)
    except AddonError as e:
        logger.error(str(e))
        sys.exit(1)

    loader = ModuleLoader(
        registry,
        logger=logger,
        max_workers=cfg.load_workers,
        init_timeout_seconds=cfg.init_timeout_seconds,
    )
    try:
        surface = loader.start()
        for path in surface.route_paths():
            logger.info(f"route {path} -> {surface.routes[path].module}")
        for d in loader.diagnostics:
            logger.warning(d.line())

        if args.serve:
            store = ModuleStore(cm.modules_store_path(), backups_dir=cm.fs.backups_dir, logger=logger, max_backups=cfg.max_backups_per_file)
            service = ModuleService(
                store,
                cm.addons_root(),
                manifest_filename=cfg.manifest_filename,
                entrypoint_filename=cfg.entrypoint_filename,
                logger=logger,
            )
            uvicorn.run(create_app(service, logger=logger), host=args.host, port=args.port, log_level=cfg.log_level.lower())
    except KeyboardInterrupt:
        loader.cancel()
    finally:
        loader.shutdown()


if __name__ == "__main__":
    main()
