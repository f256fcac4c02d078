from __future__ import annotations

"""
Module install/activation operations over the persisted store.

The resolver never touches the store; scan/install/uninstall/set_active are
the only writers.
"""

import os
import time
from typing import Callable, Dict, List, Optional, Set

from pydantic import BaseModel, Field

from erp.core.errors import DependencyError, ModuleNotFoundInStoreError, ModuleStateError
from erp.core.logger import get_logger
from erp.core.modules.discovery import DEFAULT_ENTRYPOINT_FILENAME, DEFAULT_MANIFEST_FILENAME
from erp.core.modules.models import Diagnostic, ModuleManifest, ModuleRecord
from erp.core.modules.resolver import Resolution, resolve
from erp.core.modules.store import ModuleStore

STATUS_REMOVED = "non-installable (removed)"
STATUS_INVALID = "non-installable (invalid)"
STATUS_INSTALLABLE = "installable"


def _iso_now() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


class ModuleStatus(BaseModel):
    name: str
    status: str


class ScanReport(BaseModel):
    total_modules: int = 0
    installed_modules: int = 0
    active_modules: int = 0
    installable_modules: int = 0
    non_installable_modules: int = 0
    scanned_directories: int = 0
    valid_modules: int = 0
    processed: List[str] = Field(default_factory=list)
    statuses: List[ModuleStatus] = Field(default_factory=list)
    modules_not_in_store: List[str] = Field(default_factory=list)
    store_not_on_disk: List[str] = Field(default_factory=list)
    load_order: List[str] = Field(default_factory=list)
    diagnostics: List[Diagnostic] = Field(default_factory=list)


def _apply_manifest(rec: ModuleRecord, m: ModuleManifest, folder: str, now: str) -> ModuleRecord:
    return rec.model_copy(
        update={
            "folder": folder,
            "display_name": m.label,
            "version": m.version,
            "summary": m.summary,
            "description": m.description,
            "dependencies": list(m.dependencies),
            "models": m.model_names(),
            "installable": m.installable,
            "application": m.application,
            "auto_install": m.auto_install,
            "updated_at": now,
        }
    )


class ModuleService:
    def __init__(
        self,
        store: ModuleStore,
        addons_root: str,
        *,
        manifest_filename: str = DEFAULT_MANIFEST_FILENAME,
        entrypoint_filename: str = DEFAULT_ENTRYPOINT_FILENAME,
        logger=None,
        clock: Optional[Callable[[], str]] = None,
    ):
        self.store = store
        self.addons_root = str(addons_root)
        self.manifest_filename = manifest_filename
        self.entrypoint_filename = entrypoint_filename
        self.logger = logger or get_logger("modules")
        self._now = clock or _iso_now

    def resolve(self) -> Resolution:
        return resolve(
            self.addons_root,
            manifest_filename=self.manifest_filename,
            entrypoint_filename=self.entrypoint_filename,
            logger=self.logger,
        )

    # ---- reads ----
    def list_records(self) -> List[ModuleRecord]:
        return self.store.all()

    def get_record(self, name: str) -> ModuleRecord:
        rec = self.store.get(name)
        if rec is None:
            raise ModuleNotFoundInStoreError(f"Module {name} does not exist.", module=name)
        return rec

    # ---- scan ----
    def scan(self) -> ScanReport:
        res = self.resolve()
        now = self._now()
        with self.store.lock:
            data = self.store.load()
            before: Dict[str, bool] = {n: r.installable for n, r in data.modules.items()}
            folders: Set[str] = {a.folder for a in res.addons.values()} | set(res.excluded)
            # records are keyed by module name; a folder can declare another name
            invalid: Set[str] = {n for n, r in data.modules.items() if n not in res.addons and (r.folder or n) in res.excluded}

            statuses: List[ModuleStatus] = []
            for name in res.order:
                manifest = res.manifests[name]
                rec = data.modules.get(name)
                if rec is None:
                    rec = ModuleRecord(name=name, created_at=now)
                data.modules[name] = _apply_manifest(rec, manifest, res.addons[name].folder, now)
                if name in before and not before[name] and manifest.installable:
                    statuses.append(ModuleStatus(name=name, status=STATUS_INSTALLABLE))

            for name, rec in data.modules.items():
                if name in res.addons:
                    continue
                status = STATUS_INVALID if name in invalid else STATUS_REMOVED
                if rec.installable:
                    data.modules[name] = rec.model_copy(update={"installable": False, "updated_at": now})
                statuses.append(ModuleStatus(name=name, status=status))

            self.store.save(data)

        records = list(data.modules.values())
        report = ScanReport(
            total_modules=len(records),
            installed_modules=sum(1 for r in records if r.installed),
            active_modules=sum(1 for r in records if r.active),
            installable_modules=sum(1 for r in records if r.installable),
            non_installable_modules=sum(1 for r in records if not r.installable),
            scanned_directories=len(folders),
            valid_modules=len(res.order),
            processed=list(res.order),
            statuses=statuses,
            modules_not_in_store=[n for n in res.order if n not in before],
            store_not_on_disk=sorted(n for n in before if n not in res.addons and n not in invalid),
            load_order=list(res.order),
            diagnostics=list(res.diagnostics),
        )
        self.logger.info(f"Module scan: {report.valid_modules} valid, {report.non_installable_modules} non-installable")
        return report

    # ---- install / uninstall ----
    def install(self, name: str) -> ModuleRecord:
        with self.store.lock:
            data = self.store.load()
            rec = data.modules.get(name)
            if rec is None:
                raise ModuleNotFoundInStoreError(f"Module {name} does not exist.", module=name)
            if rec.installed:
                raise ModuleStateError(f"Module {name} is already installed.", module=name)

            addon = self.resolve().addons.get(name)
            if addon is None or not os.path.isfile(addon.entrypoint_path):
                raise ModuleStateError(f"Module {name} directory or entry point is missing.", module=name)

            missing = [d for d in rec.dependencies if not (d in data.modules and data.modules[d].installed)]
            if missing:
                raise DependencyError(f"Missing dependencies: {', '.join(missing)}", module=name, missing=missing)

            now = self._now()
            rec = rec.model_copy(update={"installed": True, "installed_at": now, "updated_at": now})
            data.modules[name] = rec
            self.store.save(data)
        self.logger.info(f"Installed module {name}")
        return rec

    def uninstall(self, name: str) -> ModuleRecord:
        with self.store.lock:
            data = self.store.load()
            rec = data.modules.get(name)
            if rec is None:
                raise ModuleNotFoundInStoreError(f"Module {name} does not exist.", module=name)
            if not rec.installed:
                raise ModuleStateError(f"Module {name} is not installed.", module=name)

            dependents = sorted(n for n, r in data.modules.items() if n != name and r.installed and name in r.dependencies)
            if dependents:
                raise DependencyError(f"Installed modules depend on {name}: {', '.join(dependents)}", module=name, dependents=dependents)

            rec = rec.model_copy(update={"installed": False, "active": False, "installed_at": None, "updated_at": self._now()})
            data.modules[name] = rec
            self.store.save(data)
        self.logger.info(f"Uninstalled module {name}")
        return rec

    def set_active(self, name: str, active: bool) -> ModuleRecord:
        with self.store.lock:
            data = self.store.load()
            rec = data.modules.get(name)
            if rec is None:
                raise ModuleNotFoundInStoreError(f"Module {name} does not exist.", module=name)
            if active and not rec.installed:
                raise ModuleStateError(f"Module {name} must be installed before it can be activated.", module=name)
            if not active:
                dependents = sorted(n for n, r in data.modules.items() if n != name and r.active and name in r.dependencies)
                if dependents:
                    raise DependencyError(f"Active modules depend on {name}: {', '.join(dependents)}", module=name, dependents=dependents)

            rec = rec.model_copy(update={"active": bool(active), "updated_at": self._now()})
            data.modules[name] = rec
            self.store.save(data)
        self.logger.info(f"Module {name} {'activated' if active else 'deactivated'}")
        return rec
