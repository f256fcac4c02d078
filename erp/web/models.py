from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel


class ToggleRequest(BaseModel):
    active: bool


class ModuleListResponse(BaseModel):
    modules: List[Dict[str, Any]]


class LoadOrderResponse(BaseModel):
    order: List[str]
    cycles: List[List[str]]
