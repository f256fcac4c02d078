from __future__ import annotations

import os
from typing import Any, Dict, Optional

from pydantic import ValidationError

from erp.core.config.io import atomic_write_json, ensure_dirs, move_corrupt_aside, read_json_file
from erp.core.config.models import AddonsConfigFile, default_addons_config_dict
from erp.core.config.paths import ConfigFsPaths
from erp.core.errors import ConfigError


class ConfigManager:
    def __init__(self, *, fs: Optional[ConfigFsPaths] = None, logger=None, read_only: bool = False):
        self.fs = fs or ConfigFsPaths(".")
        self.logger = logger
        self.read_only = read_only
        self._cfg: Optional[AddonsConfigFile] = None

    # ---------- public API ----------
    def load(self) -> AddonsConfigFile:
        if not self.read_only:
            ensure_dirs(self.fs.config_dir, self.fs.backups_dir)

        raw = self._read_raw()
        try:
            cfg = AddonsConfigFile.model_validate(raw)
        except ValidationError as e:
            raise ConfigError("config/addons.json is invalid.", path=self.fs.addons, errors=str(e)[:500]) from e
        self._cfg = cfg
        return cfg

    def get(self) -> AddonsConfigFile:
        if self._cfg is None:
            raise ConfigError("Config not loaded.")
        return self._cfg

    def save(self, data: Dict[str, Any]) -> AddonsConfigFile:
        """
        Validate, then atomic write + backup. Invalid data never reaches disk.
        """
        if self.read_only:
            raise ConfigError("Config manager is read-only.")
        try:
            cfg = AddonsConfigFile.model_validate(data)
        except ValidationError as e:
            raise ConfigError("Refusing to save invalid addons config.", errors=str(e)[:500]) from e
        atomic_write_json(self.fs.addons, cfg.model_dump(), self.fs.backups_dir, max_backups=cfg.max_backups_per_file)
        self._cfg = cfg
        return cfg

    # ---- resolved paths ----
    def addons_root(self) -> str:
        return self.fs.resolve(self.get().addons_root)

    def registry_path(self) -> str:
        return self.fs.resolve(self.get().registry_path)

    def modules_store_path(self) -> str:
        return self.fs.modules

    # ---------- internals ----------
    def _read_raw(self) -> Dict[str, Any]:
        path = self.fs.addons
        rr = read_json_file(path)
        if rr.ok:
            return rr.data
        if rr.error == "missing":
            data = default_addons_config_dict()
            if not self.read_only:
                atomic_write_json(path, data)
                if self.logger:
                    self.logger.info(f"Created default config: {path}")
            return data
        # corrupt or not an object: keep a copy for inspection, continue on defaults
        if self.logger:
            self.logger.warning(f"Config file unreadable ({rr.error}); using defaults: {path}")
        if not self.read_only:
            move_corrupt_aside(path, self.fs.backups_dir)
        return default_addons_config_dict()


def get_config(*, root: str = ".", logger=None, read_only: bool = False) -> ConfigManager:
    cm = ConfigManager(fs=ConfigFsPaths(os.path.abspath(root)), logger=logger, read_only=read_only)
    cm.load()
    return cm
