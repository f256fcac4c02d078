from __future__ import annotations

"""
Addon discovery (no-import scanning).

A folder under the addons root is a module when it holds both the entry
point file and the manifest file. Discovery reads only the manifest text;
addon code is never imported or executed here.
"""

import json
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from erp.core.errors import AddonsRootMissingError
from erp.core.logger import get_logger
from erp.core.modules.models import (
    Diagnostic,
    DiagnosticKind,
    DiagnosticSeverity,
    ModuleManifest,
    parse_manifest,
)

DEFAULT_MANIFEST_FILENAME = "manifest.json"
DEFAULT_ENTRYPOINT_FILENAME = "__init__.py"


@dataclass(frozen=True)
class DiscoveredAddon:
    name: str
    folder: str
    module_dir: str
    manifest_path: str
    entrypoint_path: str
    manifest: ModuleManifest


@dataclass
class ScanResult:
    root: str
    addons: Dict[str, DiscoveredAddon] = field(default_factory=dict)
    excluded: Dict[str, str] = field(default_factory=dict)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def manifests(self) -> Dict[str, ModuleManifest]:
        return {name: a.manifest for name, a in self.addons.items()}


class AddonDiscovery:
    def __init__(
        self,
        *,
        addons_root: str,
        manifest_filename: str = DEFAULT_MANIFEST_FILENAME,
        entrypoint_filename: str = DEFAULT_ENTRYPOINT_FILENAME,
        logger=None,
    ):
        self.addons_root = str(addons_root)
        self.manifest_filename = manifest_filename
        self.entrypoint_filename = entrypoint_filename
        self.logger = logger or get_logger("modules")

    def is_module_dir(self, path: str) -> bool:
        return os.path.isfile(os.path.join(path, self.entrypoint_filename)) and os.path.isfile(os.path.join(path, self.manifest_filename))

    def scan(self) -> ScanResult:
        root = self.addons_root
        if not os.path.isdir(root):
            raise AddonsRootMissingError(f"Addons root does not exist: {root}", path=root)
        try:
            names = sorted(os.listdir(root))
        except OSError as e:
            raise AddonsRootMissingError(f"Addons root is unreadable: {root} ({e})", path=root) from e

        out = ScanResult(root=root)
        for folder in names:
            if folder.startswith(".") or folder.startswith("_"):
                continue
            mod_dir = os.path.join(root, folder)
            if not os.path.isdir(mod_dir):
                continue

            if not self.is_module_dir(mod_dir):
                missing = [fn for fn in (self.entrypoint_filename, self.manifest_filename) if not os.path.isfile(os.path.join(mod_dir, fn))]
                reason = "missing " + ", ".join(missing)
                out.excluded[folder] = reason
                out.diagnostics.append(
                    Diagnostic(kind=DiagnosticKind.NOT_A_MODULE, severity=DiagnosticSeverity.info, module=folder, message=f"{folder} is not a module ({reason})")
                )
                continue

            addon = self._read_one(folder, mod_dir, out)
            if addon is None:
                continue
            if addon.name in out.addons:
                first = out.addons[addon.name]
                reason = f"duplicate module name {addon.name!r} (already declared by folder {first.folder})"
                out.excluded[folder] = reason
                out.diagnostics.append(
                    Diagnostic(kind=DiagnosticKind.DUPLICATE_NAME, severity=DiagnosticSeverity.error, module=addon.name, message=f"{folder}: {reason}", related=[first.folder, folder])
                )
                self.logger.warning(f"Skipping module folder {folder}: {reason}")
                continue
            out.addons[addon.name] = addon

        return out

    def _read_one(self, folder: str, mod_dir: str, out: ScanResult) -> Optional[DiscoveredAddon]:
        manifest_path = os.path.join(mod_dir, self.manifest_filename)
        try:
            with open(manifest_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            reason = f"manifest unreadable: {str(e)[:200]}"
            out.excluded[folder] = reason
            out.diagnostics.append(Diagnostic(kind=DiagnosticKind.MANIFEST_UNREADABLE, severity=DiagnosticSeverity.error, module=folder, message=f"{folder}: {reason}"))
            self.logger.warning(f"Skipping module folder {folder}: {reason}")
            return None

        try:
            manifest, notes = parse_manifest(raw, folder_name=folder)
        except ValueError as e:
            reason = f"manifest invalid: {str(e)[:200]}"
            out.excluded[folder] = reason
            out.diagnostics.append(Diagnostic(kind=DiagnosticKind.MANIFEST_INVALID, severity=DiagnosticSeverity.error, module=folder, message=f"{folder}: {reason}"))
            self.logger.warning(f"Skipping module folder {folder}: {reason}")
            return None

        for note in notes:
            out.diagnostics.append(Diagnostic(kind=DiagnosticKind.MANIFEST_FIELD_IGNORED, module=manifest.name, message=f"{manifest.name}: {note}"))
        if manifest.name != folder:
            out.diagnostics.append(
                Diagnostic(
                    kind=DiagnosticKind.NAME_MISMATCH,
                    module=manifest.name,
                    message=f"module {manifest.name} is declared in folder {folder}",
                    related=[folder],
                )
            )

        return DiscoveredAddon(
            name=manifest.name,
            folder=folder,
            module_dir=mod_dir,
            manifest_path=manifest_path,
            entrypoint_path=os.path.join(mod_dir, self.entrypoint_filename),
            manifest=manifest,
        )
