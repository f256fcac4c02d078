from __future__ import annotations

"""
Registry artifact generation.

The artifact is a JSON document listing resolved modules in load order.
Output is deterministic (sorted keys, no timestamps, relative paths) so
regenerating an unchanged addons tree yields identical bytes.
"""

import hashlib
import json
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from erp.core.config.io import atomic_write_bytes, dump_json_bytes
from erp.core.errors import RegistryArtifactError
from erp.core.logger import get_logger
from erp.core.modules.discovery import DEFAULT_ENTRYPOINT_FILENAME
from erp.core.modules.resolver import Resolution

SCHEMA_VERSION = 1
GENERATOR = "erp.core.modules.registry_gen"


def _portable_relpath(path: str, start: str) -> str:
    try:
        rel = os.path.relpath(os.path.abspath(path), os.path.abspath(start))
    except ValueError:
        # different drive on Windows
        rel = os.path.abspath(path)
    return rel.replace(os.sep, "/")


def registry_document(resolution: Resolution, artifact_path: str) -> Dict[str, Any]:
    artifact_dir = os.path.dirname(os.path.abspath(artifact_path))
    root = resolution.root or "."
    modules: List[Dict[str, Any]] = []
    for name in resolution.order:
        addon = resolution.addons.get(name)
        manifest = resolution.manifests[name]
        modules.append(
            {
                "name": name,
                "version": manifest.version,
                "path": _portable_relpath(addon.module_dir, root) if addon else name,
                "entrypoint": os.path.basename(addon.entrypoint_path) if addon else DEFAULT_ENTRYPOINT_FILENAME,
                "dependencies": list(resolution.graph.dependencies_of(name)),
            }
        )
    return {
        "schema_version": SCHEMA_VERSION,
        "generator": GENERATOR,
        "addons_root": _portable_relpath(root, artifact_dir),
        "modules": modules,
    }


def render_registry(resolution: Resolution, artifact_path: str) -> bytes:
    return dump_json_bytes(registry_document(resolution, artifact_path))


@dataclass(frozen=True)
class EmitResult:
    path: str
    written: bool
    sha256: str
    module_names: Tuple[str, ...]


def emit_registry(resolution: Resolution, artifact_path: str, *, logger=None) -> EmitResult:
    """
    Write the artifact atomically. Parent directories are created; an
    unchanged artifact is left as is.
    """
    logger = logger or get_logger("modules")
    data = render_registry(resolution, artifact_path)
    digest = hashlib.sha256(data).hexdigest()

    current = None
    if os.path.isfile(artifact_path):
        with open(artifact_path, "rb") as f:
            current = f.read()
    if current == data:
        logger.info(f"Module registry unchanged: {artifact_path}")
        return EmitResult(path=artifact_path, written=False, sha256=digest, module_names=resolution.order)

    atomic_write_bytes(artifact_path, data)
    logger.info(f"Module registry written: {artifact_path} ({len(resolution.order)} module(s))")
    return EmitResult(path=artifact_path, written=True, sha256=digest, module_names=resolution.order)


def read_registry_document(artifact_path: str) -> Dict[str, Any]:
    try:
        with open(artifact_path, "r", encoding="utf-8") as f:
            doc = json.load(f)
    except FileNotFoundError as e:
        raise RegistryArtifactError(f"Module registry not found: {artifact_path}. Regenerate it first.", path=artifact_path) from e
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise RegistryArtifactError(f"Module registry unreadable: {artifact_path} ({str(e)[:200]})", path=artifact_path) from e

    if not isinstance(doc, dict) or doc.get("schema_version") != SCHEMA_VERSION:
        raise RegistryArtifactError("Module registry has an unsupported schema_version.", path=artifact_path)
    modules = doc.get("modules")
    if not isinstance(modules, list) or not all(isinstance(m, dict) and isinstance(m.get("name"), str) for m in modules):
        raise RegistryArtifactError("Module registry 'modules' list is malformed.", path=artifact_path)
    return doc
