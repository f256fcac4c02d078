from __future__ import annotations

from typing import Dict, List


class EmployeeDirectory:
    def __init__(self) -> None:
        self._by_department: Dict[str, List[str]] = {}

    def add(self, name: str, department: str) -> None:
        self._by_department.setdefault(department, []).append(name)

    def members(self, department: str) -> List[str]:
        return list(self._by_department.get(department, []))

    def clear(self) -> None:
        self._by_department.clear()
