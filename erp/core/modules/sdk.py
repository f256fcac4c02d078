from __future__ import annotations

"""
Helpers for addon packages.

An addon's `__init__.py` can build its contract attributes from the
manifest file sitting next to it:

    MANIFEST = manifest_for(__file__)
    ROUTES = routes_from(MANIFEST)
"""

import json
import os
from typing import Any, Dict, List

from erp.core.modules.discovery import DEFAULT_MANIFEST_FILENAME
from erp.core.modules.models import ModuleManifest, parse_manifest


def manifest_for(package_file: str, filename: str = DEFAULT_MANIFEST_FILENAME) -> ModuleManifest:
    module_dir = os.path.dirname(os.path.abspath(package_file))
    with open(os.path.join(module_dir, filename), "r", encoding="utf-8") as f:
        raw = json.load(f)
    manifest, _notes = parse_manifest(raw, folder_name=os.path.basename(module_dir))
    return manifest


def routes_from(manifest: ModuleManifest) -> List[Dict[str, Any]]:
    return [r.model_dump(exclude_none=True) for r in manifest.routes]
