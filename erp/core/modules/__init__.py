"""
Addon module system.

WHY THIS PACKAGE EXISTS:
Addons are discovered on disk without importing their code, ordered by their
declared dependencies, written to a registry artifact, and only then loaded
at runtime in that order.
"""

from erp.core.modules.loader import ApplicationSurface, ModuleLoader
from erp.core.modules.registry import ModuleRegistry
from erp.core.modules.registry_gen import emit_registry, render_registry
from erp.core.modules.resolver import Resolution, resolve, resolve_manifests

__all__ = [
    "ApplicationSurface",
    "ModuleLoader",
    "ModuleRegistry",
    "Resolution",
    "emit_registry",
    "render_registry",
    "resolve",
    "resolve_manifests",
]
