from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class AddonsConfigFile(BaseModel):
    """
    config/addons.json schema.
    """

    model_config = ConfigDict(extra="forbid")

    config_version: int = Field(default=1, ge=1)
    addons_root: str = Field(default="addons", min_length=1)
    registry_path: str = Field(default="runtime/module_registry.json", min_length=1)
    manifest_filename: str = Field(default="manifest.json", min_length=1)
    entrypoint_filename: str = Field(default="__init__.py", min_length=1)
    strict: bool = False
    load_workers: int = Field(default=1, ge=1, le=32)
    init_timeout_seconds: Optional[float] = Field(default=10.0, gt=0)
    max_backups_per_file: int = Field(default=10, ge=0, le=100)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        v = str(v or "").strip().upper()
        if v not in LOG_LEVELS:
            raise ValueError(f"must be one of {', '.join(LOG_LEVELS)}")
        return v

    @field_validator("manifest_filename", "entrypoint_filename")
    @classmethod
    def _plain_filename(cls, v: str) -> str:
        v = str(v or "").strip()
        if not v or "/" in v or "\\" in v or v in {".", ".."}:
            raise ValueError("must be a plain file name")
        return v


def default_addons_config_dict() -> dict:
    return AddonsConfigFile().model_dump()
