from __future__ import annotations

"""
Runtime module loader.

WHY THIS FILE EXISTS:
The registry says which modules exist and in what order. This file turns
that into a running application surface: it loads each module through the
registry, checks the module contract, runs initialize hooks in load order,
aggregates routes/menus/components, and runs cleanup hooks in reverse on
shutdown. One broken module is reported and skipped; it never stops the rest.
"""

import threading
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple

from pydantic import ValidationError

from erp.core.errors import AddonError, ModuleContractError
from erp.core.logger import get_logger
from erp.core.modules.models import (
    Diagnostic,
    DiagnosticKind,
    DiagnosticSeverity,
    LoadState,
    MenuDescriptor,
    ModelDescriptor,
    ModuleManifest,
    RouteDescriptor,
)
from erp.core.modules.registry import ModuleRegistry


@dataclass
class LoadedAddon:
    name: str
    manifest: ModuleManifest
    routes: List[Dict[str, Any]] = field(default_factory=list)
    components: Dict[str, Any] = field(default_factory=dict)
    initialize: Optional[Callable[[], Any]] = None
    cleanup: Optional[Callable[[], Any]] = None
    module: Any = None


@dataclass(frozen=True)
class RouteEntry:
    path: str
    module: str
    route: Dict[str, Any]


@dataclass
class ApplicationSurface:
    modules: Tuple[str, ...] = ()
    routes: Dict[str, RouteEntry] = field(default_factory=dict)
    menus: List[MenuDescriptor] = field(default_factory=list)
    components: Dict[str, Any] = field(default_factory=dict)
    models: Dict[str, List[ModelDescriptor]] = field(default_factory=dict)
    manifests: Dict[str, ModuleManifest] = field(default_factory=dict)

    def route_paths(self) -> List[str]:
        return sorted(self.routes)

    def is_empty(self) -> bool:
        return not self.modules


def _route_dict(name: str, item: Any) -> Dict[str, Any]:
    if isinstance(item, RouteDescriptor):
        return item.model_dump(exclude_none=True)
    if isinstance(item, Mapping):
        out = dict(item)
    elif hasattr(item, "path"):
        out = {"path": getattr(item, "path")}
    else:
        raise ModuleContractError(f"Module {name} has a route that is not a mapping.", module=name, kind=DiagnosticKind.CONTRACT_MISSING.value)
    path = out.get("path")
    if not isinstance(path, str) or not path.strip():
        raise ModuleContractError(f"Module {name} has a route without a path.", module=name, kind=DiagnosticKind.CONTRACT_MISSING.value)
    return out


def inspect_module(name: str, obj: Any) -> LoadedAddon:
    """
    Check a loaded module object against the addon contract.

    Required: MANIFEST (mapping or ModuleManifest) and ROUTES (sequence of
    route mappings). Optional: COMPONENTS mapping, initialize(), cleanup().
    """
    raw_manifest = getattr(obj, "MANIFEST", None)
    raw_routes = getattr(obj, "ROUTES", None)
    missing = [attr for attr, v in (("MANIFEST", raw_manifest), ("ROUTES", raw_routes)) if v is None]
    if missing:
        raise ModuleContractError(f"Module {name} is missing {', '.join(missing)}.", module=name, kind=DiagnosticKind.CONTRACT_MISSING.value)

    if isinstance(raw_manifest, ModuleManifest):
        manifest = raw_manifest
    elif isinstance(raw_manifest, Mapping):
        try:
            manifest = ModuleManifest.model_validate(dict(raw_manifest))
        except ValidationError as e:
            raise ModuleContractError(f"Module {name} exposes an invalid MANIFEST.", module=name, kind=DiagnosticKind.CONTRACT_MISSING.value) from e
    else:
        raise ModuleContractError(f"Module {name} MANIFEST is not a mapping.", module=name, kind=DiagnosticKind.CONTRACT_MISSING.value)

    if manifest.name != name:
        raise ModuleContractError(
            f"Module {name} declares MANIFEST name {manifest.name}.",
            module=name,
            declared=manifest.name,
            kind=DiagnosticKind.NAME_MISMATCH.value,
        )

    if isinstance(raw_routes, (str, bytes)) or not isinstance(raw_routes, (list, tuple)):
        raise ModuleContractError(f"Module {name} ROUTES is not a list.", module=name, kind=DiagnosticKind.CONTRACT_MISSING.value)
    routes = [_route_dict(name, r) for r in raw_routes]

    components = getattr(obj, "COMPONENTS", None) or {}
    if not isinstance(components, Mapping):
        raise ModuleContractError(f"Module {name} COMPONENTS is not a mapping.", module=name, kind=DiagnosticKind.CONTRACT_MISSING.value)

    hooks: Dict[str, Optional[Callable[[], Any]]] = {}
    for hook in ("initialize", "cleanup"):
        fn = getattr(obj, hook, None)
        if fn is not None and not callable(fn):
            raise ModuleContractError(f"Module {name} {hook} is not callable.", module=name, kind=DiagnosticKind.CONTRACT_MISSING.value)
        hooks[hook] = fn

    return LoadedAddon(
        name=name,
        manifest=manifest,
        routes=routes,
        components={str(k): v for k, v in components.items()},
        initialize=hooks["initialize"],
        cleanup=hooks["cleanup"],
        module=obj,
    )


class ModuleLoader:
    def __init__(
        self,
        registry: ModuleRegistry,
        *,
        logger=None,
        max_workers: int = 1,
        init_timeout_seconds: Optional[float] = None,
    ):
        self.registry = registry
        self.logger = logger or get_logger("modules")
        self.max_workers = max(1, int(max_workers))
        self.init_timeout_seconds = init_timeout_seconds
        self.diagnostics: List[Diagnostic] = []
        self.surface: Optional[ApplicationSurface] = None

        self._lock = threading.Lock()
        self._cancel = threading.Event()
        self._states: Dict[str, LoadState] = {n: LoadState.PENDING for n in registry.list_module_names()}
        self._loaded: Dict[str, LoadedAddon] = {}
        self._initialized: List[str] = []

    # ---- state ----
    def state_of(self, name: str) -> LoadState:
        with self._lock:
            return self._states[name]

    def states(self) -> Dict[str, LoadState]:
        with self._lock:
            return dict(self._states)

    def loaded(self) -> List[LoadedAddon]:
        names = self.registry.list_module_names()
        with self._lock:
            return [self._loaded[n] for n in names if n in self._loaded]

    def initialized(self) -> Tuple[str, ...]:
        return tuple(self._initialized)

    def cancel(self) -> None:
        self._cancel.set()
        self.logger.info("Module loading cancelled.")

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def _report(self, kind: DiagnosticKind, module: str, message: str, *, severity: DiagnosticSeverity = DiagnosticSeverity.error) -> None:
        d = Diagnostic(kind=kind, severity=severity, module=module, message=message)
        with self._lock:
            self.diagnostics.append(d)
        if severity == DiagnosticSeverity.info:
            self.logger.info(message)
        else:
            self.logger.warning(message)

    # ---- loading ----
    def load_all(self) -> List[LoadedAddon]:
        names = self.registry.list_module_names()
        if self.max_workers <= 1:
            for name in names:
                if self._cancel.is_set():
                    break
                self._load_one(name)
        else:
            self._load_parallel(names)

        if self._cancel.is_set():
            for name in names:
                if self.state_of(name) == LoadState.PENDING:
                    self._report(DiagnosticKind.CANCELLED, name, f"loading cancelled before {name} started", severity=DiagnosticSeverity.info)
        return self.loaded()

    def _load_one(self, name: str) -> None:
        with self._lock:
            self._states[name] = LoadState.LOADING
        try:
            obj = self.registry.load_module(name)
            addon = inspect_module(name, obj)
        except ModuleContractError as e:
            kind = DiagnosticKind(e.context.get("kind") or DiagnosticKind.CONTRACT_MISSING.value)
            self._fail(name, kind, str(e))
            return
        except AddonError as e:
            self._fail(name, DiagnosticKind.LOAD_FAILED, str(e))
            return
        except Exception as e:  # noqa: BLE001
            self._fail(name, DiagnosticKind.LOAD_FAILED, f"Failed to load module {name}: {e}")
            return
        with self._lock:
            self._loaded[name] = addon
            self._states[name] = LoadState.LOADED
        self.logger.info(f"Loaded module {name}")

    def _fail(self, name: str, kind: DiagnosticKind, message: str) -> None:
        with self._lock:
            self._states[name] = LoadState.LOAD_FAILED
        self._report(kind, name, message)

    def _load_parallel(self, names: Tuple[str, ...]) -> None:
        position = {n: i for i, n in enumerate(names)}
        # Only dependencies that come earlier in the order gate a module; a
        # cycle's back edge would otherwise never be released.
        waiting: Dict[str, Set[str]] = {
            n: {d for d in self.registry.dependencies_of(n) if d in position and position[d] < position[n]} for n in names
        }
        dependents: Dict[str, List[str]] = {n: [] for n in names}
        for n, deps in waiting.items():
            for d in deps:
                dependents[d].append(n)

        ready = [n for n in names if not waiting[n]]
        in_flight: Dict[Any, str] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="addon-load") as ex:
            while in_flight or (ready and not self._cancel.is_set()):
                while ready and not self._cancel.is_set():
                    n = ready.pop(0)
                    in_flight[ex.submit(self._load_one, n)] = n
                if not in_flight:
                    break
                done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                for fut in done:
                    n = in_flight.pop(fut)
                    fut.result()
                    for m in dependents[n]:
                        waiting[m].discard(n)
                        if not waiting[m]:
                            ready.append(m)
                ready.sort(key=position.__getitem__)

    # ---- lifecycle hooks ----
    def _run_hook(self, name: str, fn: Callable[[], Any], timeout: Optional[float]) -> bool:
        """
        Run a lifecycle hook on a daemon thread. Returns False when it is still
        running after `timeout` seconds; errors raised by the hook propagate.
        """
        if timeout is None:
            fn()
            return True
        outcome: Dict[str, BaseException] = {}

        def target() -> None:
            try:
                fn()
            except BaseException as e:  # noqa: BLE001
                outcome["error"] = e

        t = threading.Thread(target=target, name=f"addon-init-{name}", daemon=True)
        t.start()
        t.join(timeout=timeout)
        if t.is_alive():
            return False
        if "error" in outcome:
            raise outcome["error"]
        return True

    def initialize_all(self) -> Tuple[str, ...]:
        for addon in self.loaded():
            if self._cancel.is_set():
                self.logger.info("Initialization skipped: loading was cancelled.")
                break
            if addon.name in self._initialized:
                continue
            if addon.initialize is not None:
                try:
                    finished = self._run_hook(addon.name, addon.initialize, self.init_timeout_seconds)
                except SystemExit as e:
                    self._report(DiagnosticKind.INITIALIZE_FAILED, addon.name, f"initialize of {addon.name} called exit (code {e.code})")
                    continue
                except Exception as e:  # noqa: BLE001
                    self._report(DiagnosticKind.INITIALIZE_FAILED, addon.name, f"initialize of {addon.name} failed: {e}")
                    continue
                if not finished:
                    self._report(
                        DiagnosticKind.INITIALIZE_TIMEOUT,
                        addon.name,
                        f"initialize of {addon.name} did not finish within {self.init_timeout_seconds}s",
                    )
                    continue
            self._initialized.append(addon.name)
        return tuple(self._initialized)

    def build_surface(self) -> ApplicationSurface:
        surface = ApplicationSurface(modules=tuple(self._initialized))
        menus: List[MenuDescriptor] = []
        with self._lock:
            addons = [self._loaded[n] for n in self._initialized]
        for addon in addons:
            for route in addon.routes:
                path = route["path"]
                prev = surface.routes.get(path)
                if prev is not None:
                    self._report(
                        DiagnosticKind.DUPLICATE_ROUTE,
                        addon.name,
                        f"route {path} from {addon.name} replaces the one from {prev.module}",
                        severity=DiagnosticSeverity.warning,
                    )
                surface.routes[path] = RouteEntry(path=path, module=addon.name, route=route)
            menus.extend(addon.manifest.menus)
            for key, comp in addon.components.items():
                surface.components[f"{addon.name}.{key}"] = comp
            surface.models[addon.name] = list(addon.manifest.models)
            surface.manifests[addon.name] = addon.manifest
        surface.menus = sorted(menus, key=lambda m: (m.sequence, m.id))
        self.surface = surface
        return surface

    def start(self) -> ApplicationSurface:
        self.load_all()
        self.initialize_all()
        surface = self.build_surface()
        self.logger.info(f"Application surface: {len(surface.modules)} module(s), {len(surface.routes)} route(s), {len(surface.menus)} menu(s)")
        return surface

    def shutdown(self) -> None:
        names = list(reversed(self._initialized))
        self._initialized = []
        for name in names:
            addon = self._loaded.get(name)
            if addon is None or addon.cleanup is None:
                continue
            try:
                addon.cleanup()
            except Exception as e:  # noqa: BLE001
                self._report(DiagnosticKind.CLEANUP_FAILED, name, f"cleanup of {name} failed: {e}")
        if names:
            self.logger.info(f"Shut down {len(names)} module(s).")
