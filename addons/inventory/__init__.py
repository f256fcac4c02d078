from __future__ import annotations

from erp.core.modules.sdk import manifest_for, routes_from

MANIFEST = manifest_for(__file__)
ROUTES = routes_from(MANIFEST)

COMPONENTS = {
    "ProductList": {"kind": "list", "model": "inventory.product"},
    "MoveList": {"kind": "list", "model": "inventory.move"},
}

_units = {}


def initialize() -> None:
    _units.update({"unit": 1, "dozen": 12})


def cleanup() -> None:
    _units.clear()
