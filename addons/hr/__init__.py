from __future__ import annotations

from erp.core.modules.sdk import manifest_for, routes_from

from .directory import EmployeeDirectory

MANIFEST = manifest_for(__file__)
ROUTES = routes_from(MANIFEST)

directory = EmployeeDirectory()

COMPONENTS = {
    "EmployeeList": {"kind": "list", "model": "hr.employee"},
    "DepartmentList": {"kind": "list", "model": "hr.department"},
}


def initialize() -> None:
    directory.add("Administrator", "Management")


def cleanup() -> None:
    directory.clear()
