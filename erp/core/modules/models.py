from __future__ import annotations

"""
Addon contract models (manifest, diagnostics, persisted module records).

Manifests are validated as data only; nothing here imports addon code.
Input keys follow the manifest file format (camelCase); snake_case
spellings are accepted as well.
"""

import json
import re
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

MODULE_NAME_RE = re.compile(r"[a-zA-Z0-9][a-zA-Z0-9._-]{0,127}")

# `name` and `dependencies` must parse for a manifest to be usable; these are best-effort.
OPTIONAL_FIELDS = (
    "version",
    "displayName",
    "summary",
    "description",
    "models",
    "menus",
    "routes",
    "installable",
    "autoInstall",
    "application",
)
_KEY_ALIASES = {
    "display_name": "displayName",
    "auto_install": "autoInstall",
    "depends": "dependencies",
}


def _text(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, (dict, list)):
        raise ValueError("expected a string")
    return str(v)


class FieldDescriptor(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(min_length=1)
    type: str = "string"
    required: bool = False
    label: str = ""
    default: Any = None
    relation: Optional[str] = None


class ModelDescriptor(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(min_length=1)
    display_name: str = Field(default="", alias="displayName")
    fields: List[FieldDescriptor] = Field(default_factory=list)


class MenuDescriptor(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(min_length=1)
    name: str = ""
    sequence: int = 0
    route: Optional[str] = None
    icon: Optional[str] = None
    parent: Optional[str] = None
    children: List["MenuDescriptor"] = Field(default_factory=list)


class RouteDescriptor(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    path: str = Field(min_length=1)
    title: str = ""
    protected: bool = False
    icon: Optional[str] = None
    component: Optional[str] = None


class ModuleManifest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(min_length=1)
    version: str = Field(default="1.0.0", min_length=1)
    display_name: str = Field(default="", alias="displayName")
    summary: str = ""
    description: str = ""
    dependencies: List[str] = Field(default_factory=list)
    models: List[ModelDescriptor] = Field(default_factory=list)
    menus: List[MenuDescriptor] = Field(default_factory=list)
    routes: List[RouteDescriptor] = Field(default_factory=list)
    installable: bool = True
    auto_install: bool = Field(default=False, alias="autoInstall")
    application: bool = True

    @field_validator("name")
    @classmethod
    def _name_safe(cls, v: str) -> str:
        v = str(v or "").strip()
        if not v:
            raise ValueError("name required")
        if not MODULE_NAME_RE.fullmatch(v):
            raise ValueError("name contains invalid characters")
        return v

    @field_validator("version", "display_name", "summary", "description", mode="before")
    @classmethod
    def _strings(cls, v: Any) -> str:
        return _text(v)

    @field_validator("dependencies", mode="before")
    @classmethod
    def _norm_dependencies(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, (list, tuple)):
            raise ValueError("dependencies must be a list of module names")
        out: List[str] = []
        for item in v:
            if not isinstance(item, str):
                raise ValueError("dependencies must contain only strings")
            s = item.strip()
            if s and s not in out:
                out.append(s)
        return out

    @field_validator("models", mode="before")
    @classmethod
    def _norm_models(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, list):
            return [{"name": x} if isinstance(x, str) else x for x in v]
        return v

    @field_validator("menus", "routes", mode="before")
    @classmethod
    def _none_is_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def label(self) -> str:
        return self.display_name or self.name

    def model_names(self) -> List[str]:
        return [m.name for m in self.models]


def _error_summary(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc") or ())
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)[:300]


def parse_manifest(raw: Dict[str, Any], *, folder_name: str) -> Tuple[ModuleManifest, List[str]]:
    """
    Tolerant manifest parse.

    `name` (falls back to the folder name) and `dependencies` must validate or
    ValueError is raised. Every other field is validated on its own; a bad
    value is dropped (default used) and reported in the returned notes.
    """
    if not isinstance(raw, dict):
        raise ValueError("manifest is not an object")
    data = dict(raw)
    for alias, key in _KEY_ALIASES.items():
        if alias in data and key not in data:
            data[key] = data.pop(alias)

    core: Dict[str, Any] = {
        "name": data.get("name") if data.get("name") is not None else folder_name,
        "dependencies": data.get("dependencies"),
    }
    try:
        ModuleManifest.model_validate(core)
    except ValidationError as e:
        raise ValueError(_error_summary(e)) from e

    notes: List[str] = []
    accepted: Dict[str, Any] = {}
    for key in OPTIONAL_FIELDS:
        if key not in data:
            continue
        try:
            ModuleManifest.model_validate({**core, key: data[key]})
        except ValidationError as e:
            notes.append(f"ignored field {key!r}: {_error_summary(e)}")
            continue
        accepted[key] = data[key]
    return ModuleManifest.model_validate({**core, **accepted}), notes


class DiagnosticKind(str, Enum):
    NOT_A_MODULE = "not_a_module"
    MANIFEST_UNREADABLE = "manifest_unreadable"
    MANIFEST_INVALID = "manifest_invalid"
    MANIFEST_FIELD_IGNORED = "manifest_field_ignored"
    NAME_MISMATCH = "name_mismatch"
    DUPLICATE_NAME = "duplicate_name"
    UNKNOWN_DEPENDENCY = "unknown_dependency"
    CYCLE = "cycle"
    LOAD_FAILED = "load_failed"
    CONTRACT_MISSING = "contract_missing"
    DUPLICATE_ROUTE = "duplicate_route"
    INITIALIZE_FAILED = "initialize_failed"
    INITIALIZE_TIMEOUT = "initialize_timeout"
    CLEANUP_FAILED = "cleanup_failed"
    CANCELLED = "cancelled"


class DiagnosticSeverity(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class Diagnostic(BaseModel):
    """
    One recoverable or structural issue. Returned to callers, never raised.
    """

    model_config = ConfigDict(extra="forbid")

    kind: DiagnosticKind
    severity: DiagnosticSeverity = DiagnosticSeverity.warning
    module: str = ""
    message: str = Field(min_length=1)
    related: List[str] = Field(default_factory=list)

    def line(self) -> str:
        return f"[{self.severity.value}] {self.kind.value}: {self.message}"


def has_warnings(diagnostics: List[Diagnostic]) -> bool:
    return any(d.severity != DiagnosticSeverity.info for d in diagnostics)


class LoadState(str, Enum):
    PENDING = "PENDING"
    LOADING = "LOADING"
    LOADED = "LOADED"
    LOAD_FAILED = "LOAD_FAILED"


class ModuleRecord(BaseModel):
    """
    Persisted install/activation state for one module (config/modules.json).
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(min_length=1)
    folder: str = ""
    display_name: str = Field(default="", alias="displayName")
    version: str = "1.0.0"
    summary: str = ""
    description: str = ""
    active: bool = False
    installed: bool = False
    installable: bool = True
    application: bool = True
    auto_install: bool = Field(default=False, alias="autoInstall")
    dependencies: List[str] = Field(default_factory=list)
    models: List[str] = Field(default_factory=list)
    installed_at: Optional[str] = Field(default=None, alias="installedAt")
    created_at: str = Field(default="", alias="createdAt")
    updated_at: str = Field(default="", alias="updatedAt")

    @field_validator("dependencies", "models", mode="before")
    @classmethod
    def _norm_json_list(cls, v: Any) -> List[str]:
        # Legacy rows stored these as JSON text; a bare string is one item.
        if v is None or v == "":
            return []
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
            except ValueError:
                return [v]
            v = parsed if isinstance(parsed, list) else [parsed]
        if isinstance(v, list):
            return [str(x) for x in v if isinstance(x, (str, int)) and str(x).strip()]
        return []


class ModulesStoreFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: int = Field(default=1, ge=1, le=10)
    modules: Dict[str, ModuleRecord] = Field(default_factory=dict)
