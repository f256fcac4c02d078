from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class ConfigFsPaths:
    root: str = "."

    @property
    def config_dir(self) -> str:
        return os.path.join(self.root, "config")

    @property
    def backups_dir(self) -> str:
        return os.path.join(self.config_dir, "backups")

    @property
    def logs_dir(self) -> str:
        return os.path.join(self.root, "logs")

    # Files
    @property
    def addons(self) -> str:
        return os.path.join(self.config_dir, "addons.json")

    @property
    def modules(self) -> str:
        return os.path.join(self.config_dir, "modules.json")

    def resolve(self, path: str) -> str:
        """Absolute paths pass through; relative ones hang off the config root."""
        if os.path.isabs(path):
            return path
        return os.path.normpath(os.path.join(self.root, path))
