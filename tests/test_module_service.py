from __future__ import annotations

import json
import os
import shutil

import pytest

from erp.core.errors import DependencyError, ModuleNotFoundInStoreError, ModuleStateError
from erp.core.modules.models import ModuleRecord
from erp.core.modules.resolver import resolve
from erp.core.modules.service import STATUS_INSTALLABLE, STATUS_INVALID, STATUS_REMOVED
from erp.core.modules.store import ModuleStore

from tests.helpers.addon_builders import write_addon, write_addons
from tests.helpers.fakes import DummyLogger


def _statuses(report):
    return {s.name: s.status for s in report.statuses}


def test_scan_creates_records(module_service, addons_root):
    write_addons(addons_root, {"hr": [""], "crm": ["hr"]})
    write_addon(addons_root, "inventory", {"name": "inventory", "displayName": "Inventory", "models": ["inventory.product"], "autoInstall": True})

    report = module_service.scan()

    assert report.valid_modules == 3
    assert report.total_modules == 3
    assert report.installed_modules == 0 and report.active_modules == 0
    assert report.modules_not_in_store == ["hr", "crm", "inventory"]
    assert report.load_order == ["hr", "crm", "inventory"]
    assert report.statuses == []
    inv = module_service.get_record("inventory")
    assert inv.display_name == "Inventory"
    assert inv.models == ["inventory.product"]
    assert inv.auto_install is True
    assert inv.installed is False and inv.active is False
    assert inv.created_at and inv.updated_at
    assert module_service.get_record("crm").dependencies == ["hr"]
    assert [r.name for r in module_service.list_records()] == ["crm", "hr", "inventory"]


def test_scan_marks_removed_invalid_and_returning_modules(module_service, addons_root):
    write_addons(addons_root, {"hr": [], "crm": ["hr"], "sales": []})
    module_service.scan()

    shutil.rmtree(os.path.join(addons_root, "sales"))
    with open(os.path.join(addons_root, "crm", "manifest.json"), "w", encoding="utf-8") as f:
        f.write("{broken")
    report = module_service.scan()

    assert _statuses(report) == {"crm": STATUS_INVALID, "sales": STATUS_REMOVED}
    assert report.store_not_on_disk == ["sales"]
    assert report.non_installable_modules == 2
    assert module_service.get_record("sales").installable is False

    write_addons(addons_root, {"crm": ["hr"]})
    report = module_service.scan()
    assert _statuses(report) == {"crm": STATUS_INSTALLABLE, "sales": STATUS_REMOVED}
    assert module_service.get_record("crm").installable is True


def test_scan_tracks_module_declared_in_differently_named_folder(module_service, addons_root):
    write_addon(addons_root, "human", {"name": "hr"})
    module_service.scan()
    assert module_service.get_record("hr").folder == "human"

    report = module_service.scan()
    assert report.store_not_on_disk == []
    assert report.modules_not_in_store == []
    assert _statuses(report) == {}

    with open(os.path.join(addons_root, "human", "manifest.json"), "w", encoding="utf-8") as f:
        f.write("{broken")
    report = module_service.scan()
    assert _statuses(report) == {"hr": STATUS_INVALID}
    assert report.store_not_on_disk == []

    shutil.rmtree(os.path.join(addons_root, "human"))
    report = module_service.scan()
    assert _statuses(report) == {"hr": STATUS_REMOVED}
    assert report.store_not_on_disk == ["hr"]


def test_install_requires_installed_dependencies(module_service, addons_root):
    write_addons(addons_root, {"hr": [], "crm": ["hr"], "project": ["hr", "crm"]})
    module_service.scan()

    with pytest.raises(DependencyError) as ei:
        module_service.install("project")
    assert ei.value.context["missing"] == ["hr", "crm"]

    module_service.install("hr")
    module_service.install("crm")
    rec = module_service.install("project")
    assert rec.installed is True
    assert rec.installed_at

    with pytest.raises(ModuleStateError):
        module_service.install("project")


def test_install_unknown_or_missing_folder(module_service, addons_root):
    write_addons(addons_root, {"hr": []})
    module_service.scan()
    with pytest.raises(ModuleNotFoundInStoreError):
        module_service.install("ghost")

    os.remove(os.path.join(addons_root, "hr", "__init__.py"))
    with pytest.raises(ModuleStateError):
        module_service.install("hr")


def test_uninstall_blocked_by_installed_dependents(module_service, addons_root):
    write_addons(addons_root, {"hr": [], "crm": ["hr"]})
    module_service.scan()
    module_service.install("hr")
    module_service.install("crm")

    with pytest.raises(DependencyError) as ei:
        module_service.uninstall("hr")
    assert ei.value.context["dependents"] == ["crm"]

    module_service.set_active("crm", True)
    rec = module_service.uninstall("crm")
    assert rec.installed is False and rec.active is False and rec.installed_at is None
    assert module_service.uninstall("hr").installed is False

    with pytest.raises(ModuleStateError):
        module_service.uninstall("hr")


def test_set_active_rules(module_service, addons_root):
    write_addons(addons_root, {"hr": [], "crm": ["hr"]})
    module_service.scan()

    with pytest.raises(ModuleStateError):
        module_service.set_active("hr", True)

    module_service.install("hr")
    module_service.install("crm")
    module_service.set_active("hr", True)
    module_service.set_active("crm", True)

    with pytest.raises(DependencyError) as ei:
        module_service.set_active("hr", False)
    assert ei.value.context["dependents"] == ["crm"]

    assert module_service.set_active("crm", False).active is False
    assert module_service.set_active("hr", False).active is False

    with pytest.raises(ModuleNotFoundInStoreError):
        module_service.set_active("ghost", True)


def test_resolution_never_writes_the_store(tmp_config_root, addons_root):
    write_addons(addons_root, {"hr": []})
    resolve(addons_root, logger=DummyLogger())
    assert not os.path.exists(tmp_config_root.modules)


def test_store_persists_camel_case_and_backs_up(module_store, tmp_config_root):
    module_store.upsert(ModuleRecord(name="hr", installed=True, installed_at="2024-01-01T00:00:00Z"))
    module_store.upsert(ModuleRecord(name="crm", dependencies=["hr"]))

    with open(tmp_config_root.modules, "r", encoding="utf-8") as f:
        raw = json.load(f)
    assert raw["modules"]["hr"]["installedAt"] == "2024-01-01T00:00:00Z"
    assert raw["modules"]["crm"]["dependencies"] == ["hr"]
    assert any(b.startswith("modules.json.") for b in os.listdir(tmp_config_root.backups_dir))
    assert module_store.get("hr").installed is True


def test_corrupt_store_is_moved_aside(tmp_config_root):
    with open(tmp_config_root.modules, "w", encoding="utf-8") as f:
        f.write("{not json")
    store = ModuleStore(tmp_config_root.modules, backups_dir=tmp_config_root.backups_dir, logger=DummyLogger())

    assert store.all() == []
    assert not os.path.exists(tmp_config_root.modules)
    assert any("corrupt" in b for b in os.listdir(tmp_config_root.backups_dir))
