from __future__ import annotations

import os
import threading
from typing import List, Optional

from pydantic import ValidationError

from erp.core.config.io import atomic_write_json, move_corrupt_aside, read_json_file
from erp.core.logger import get_logger
from erp.core.modules.models import ModuleRecord, ModulesStoreFile


class ModuleStore:
    """
    JSON-backed store of module install/activation records.

    Writes go through an atomic replace with a pre-write backup. A corrupt or
    schema-invalid file is moved aside and the store starts empty.
    """

    def __init__(self, path: str, *, backups_dir: Optional[str] = None, logger=None, max_backups: int = 10):
        self.path = str(path)
        self.backups_dir = backups_dir or os.path.join(os.path.dirname(os.path.abspath(self.path)), "backups")
        self.logger = logger or get_logger("modules")
        self.max_backups = int(max_backups)
        self._lock = threading.RLock()

    def load(self) -> ModulesStoreFile:
        with self._lock:
            rr = read_json_file(self.path)
            if not rr.ok:
                if rr.error != "missing":
                    self._recover(rr.error or "unreadable")
                return ModulesStoreFile()
            try:
                return ModulesStoreFile.model_validate(rr.data)
            except ValidationError as e:
                self._recover(f"invalid: {str(e)[:200]}")
                return ModulesStoreFile()

    def save(self, data: ModulesStoreFile) -> None:
        with self._lock:
            payload = data.model_dump(by_alias=True)
            atomic_write_json(self.path, payload, self.backups_dir, max_backups=self.max_backups)

    def all(self) -> List[ModuleRecord]:
        data = self.load()
        return [data.modules[k] for k in sorted(data.modules)]

    def get(self, name: str) -> Optional[ModuleRecord]:
        return self.load().modules.get(name)

    def upsert(self, record: ModuleRecord) -> ModuleRecord:
        with self._lock:
            data = self.load()
            data.modules[record.name] = record
            self.save(data)
            return record

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def _recover(self, reason: str) -> None:
        moved = move_corrupt_aside(self.path, self.backups_dir)
        self.logger.warning(f"Module store unreadable ({reason}); starting empty. Moved to: {moved}")
