from __future__ import annotations

import importlib.util
import os
import re
import sys
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Callable, Dict, Iterable, Tuple

from erp.core.errors import AddonError, ModuleLoadError, ModuleNotRegisteredError
from erp.core.modules.registry_gen import read_registry_document
from erp.core.modules.resolver import Resolution

ModuleFactory = Callable[[], Any]

_UNSAFE_CHARS = re.compile(r"[^0-9a-zA-Z_]")


def addon_import_name(name: str) -> str:
    return "erp_addon_" + _UNSAFE_CHARS.sub("_", name)


def import_addon(name: str, entrypoint_path: str) -> ModuleType:
    """
    Import an addon entry point by file location under a private module name.
    An `__init__.py` entry point is imported as a package so the addon's
    relative imports resolve inside its own directory.
    """
    module_name = addon_import_name(name)
    entrypoint_path = os.path.abspath(entrypoint_path)
    existing = sys.modules.get(module_name)
    if existing is not None and os.path.abspath(getattr(existing, "__file__", "") or "") == entrypoint_path:
        return existing

    if not os.path.isfile(entrypoint_path):
        raise ModuleLoadError(f"Entry point for module {name} not found: {entrypoint_path}", module=name, path=entrypoint_path)
    search = [os.path.dirname(entrypoint_path)] if os.path.basename(entrypoint_path) == "__init__.py" else None
    spec = importlib.util.spec_from_file_location(module_name, entrypoint_path, submodule_search_locations=search)
    if spec is None or spec.loader is None:
        raise ModuleLoadError(f"Cannot build an import spec for module {name}.", module=name, path=entrypoint_path)

    mod = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = mod
    try:
        spec.loader.exec_module(mod)
    except BaseException:
        sys.modules.pop(module_name, None)
        raise
    return mod


@dataclass(frozen=True)
class RegistryEntry:
    name: str
    factory: ModuleFactory
    dependencies: Tuple[str, ...] = ()
    source: str = ""


class ModuleRegistry:
    """
    Ordered name -> factory mapping consumed by the runtime loader.

    Names are kept in load order. `load_module` is the only place addon code
    runs; failures surface as typed errors for that one name.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, RegistryEntry] = {}

    def register_factory(self, name: str, factory: ModuleFactory, *, dependencies: Iterable[str] = (), source: str = "") -> RegistryEntry:
        if not callable(factory):
            raise TypeError(f"factory for {name} is not callable")
        entry = RegistryEntry(name=str(name), factory=factory, dependencies=tuple(dependencies), source=str(source))
        self._entries[entry.name] = entry
        return entry

    def list_module_names(self) -> Tuple[str, ...]:
        return tuple(self._entries)

    def dependencies_of(self, name: str) -> Tuple[str, ...]:
        entry = self._entries.get(name)
        return entry.dependencies if entry else ()

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def load_module(self, name: str) -> Any:
        entry = self._entries.get(name)
        if entry is None:
            raise ModuleNotRegisteredError(f"Module {name} is not in the registry.", module=name)
        try:
            return entry.factory()
        except AddonError:
            raise
        except SystemExit as e:
            raise ModuleLoadError(f"Module {name} called exit while loading (code {e.code}).", module=name, source=entry.source) from e
        except Exception as e:  # noqa: BLE001
            raise ModuleLoadError(f"Failed to load module {name}: {e}", module=name, source=entry.source) from e

    # ---- construction ----
    @classmethod
    def from_artifact(cls, artifact_path: str) -> "ModuleRegistry":
        doc = read_registry_document(artifact_path)
        base = os.path.dirname(os.path.abspath(artifact_path))
        addons_root = os.path.normpath(os.path.join(base, str(doc.get("addons_root") or ".")))
        reg = cls()
        for item in doc["modules"]:
            name = item["name"]
            module_dir = os.path.join(addons_root, str(item.get("path") or name))
            entrypoint = os.path.join(module_dir, str(item.get("entrypoint") or "__init__.py"))
            reg.register_factory(
                name,
                _file_factory(name, entrypoint),
                dependencies=[str(d) for d in (item.get("dependencies") or [])],
                source=entrypoint,
            )
        return reg

    @classmethod
    def from_resolution(cls, resolution: Resolution) -> "ModuleRegistry":
        reg = cls()
        for name in resolution.order:
            addon = resolution.addons.get(name)
            if addon is None:
                continue
            reg.register_factory(
                name,
                _file_factory(name, addon.entrypoint_path),
                dependencies=resolution.graph.dependencies_of(name),
                source=addon.entrypoint_path,
            )
        return reg


def _file_factory(name: str, entrypoint_path: str) -> ModuleFactory:
    def factory() -> ModuleType:
        return import_addon(name, entrypoint_path)

    return factory
