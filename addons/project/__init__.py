from __future__ import annotations

from erp.core.modules.sdk import manifest_for, routes_from

MANIFEST = manifest_for(__file__)
ROUTES = routes_from(MANIFEST)

COMPONENTS = {
    "TaskBoard": {"kind": "kanban", "model": "project.task", "group_by": "stage"},
}
