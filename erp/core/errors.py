from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class AddonError(Exception):
    code: str
    user_message: str
    severity: Severity = Severity.ERROR
    recoverable: bool = True
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.code)

    def __str__(self) -> str:
        return self.user_message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "recoverable": bool(self.recoverable),
            "context": dict(self.context or {}),
        }


# ---- Resolution / build time ----
class ConfigError(AddonError):
    def __init__(self, user_message: str = "Configuration error.", **ctx: Any):
        super().__init__("config_error", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


class AddonsRootMissingError(AddonError):
    def __init__(self, user_message: str = "Addons root directory is missing or unreadable.", **ctx: Any):
        super().__init__("addons_root_missing", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


class RegistryArtifactError(AddonError):
    def __init__(self, user_message: str = "Module registry artifact is unusable.", **ctx: Any):
        super().__init__("registry_artifact_error", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


# ---- Runtime loading ----
class ModuleNotRegisteredError(AddonError):
    def __init__(self, user_message: str = "Module is not registered.", **ctx: Any):
        super().__init__("module_not_registered", user_message, severity=Severity.ERROR, recoverable=True, context=ctx)


class ModuleLoadError(AddonError):
    def __init__(self, user_message: str = "Module failed to load.", **ctx: Any):
        super().__init__("module_load_failed", user_message, severity=Severity.ERROR, recoverable=True, context=ctx)


class ModuleContractError(AddonError):
    def __init__(self, user_message: str = "Module does not expose the required surface.", **ctx: Any):
        super().__init__("module_contract_error", user_message, severity=Severity.ERROR, recoverable=True, context=ctx)


# ---- Operational tooling ----
class ModuleNotFoundInStoreError(AddonError):
    def __init__(self, user_message: str = "Module does not exist.", **ctx: Any):
        super().__init__("module_not_found", user_message, severity=Severity.WARN, recoverable=False, context=ctx)


class DependencyError(AddonError):
    def __init__(self, user_message: str = "Module dependencies are not satisfied.", **ctx: Any):
        super().__init__("dependency_error", user_message, severity=Severity.WARN, recoverable=False, context=ctx)


class ModuleStateError(AddonError):
    def __init__(self, user_message: str = "Module is not in a valid state for this action.", **ctx: Any):
        super().__init__("module_state_error", user_message, severity=Severity.WARN, recoverable=False, context=ctx)
