from __future__ import annotations

import os

import pytest

from erp.core.errors import AddonsRootMissingError
from erp.core.modules.discovery import AddonDiscovery
from erp.core.modules.models import DiagnosticKind, DiagnosticSeverity

from tests.helpers.addon_builders import write_addon
from tests.helpers.fakes import DummyLogger, RecordingLogger


def _kinds(scan):
    return [d.kind for d in scan.diagnostics]


def test_module_predicate_requires_entrypoint_and_manifest(addons_root):
    write_addon(addons_root, "complete", {"name": "complete"})
    write_addon(addons_root, "no_manifest")
    write_addon(addons_root, "no_entry", {"name": "no_entry"}, source=None)

    scan = AddonDiscovery(addons_root=addons_root, logger=DummyLogger()).scan()

    assert list(scan.addons) == ["complete"]
    assert "manifest.json" in scan.excluded["no_manifest"]
    assert "__init__.py" in scan.excluded["no_entry"]
    not_modules = [d for d in scan.diagnostics if d.kind == DiagnosticKind.NOT_A_MODULE]
    assert {d.module for d in not_modules} == {"no_manifest", "no_entry"}
    assert all(d.severity == DiagnosticSeverity.info for d in not_modules)


def test_files_and_hidden_folders_are_skipped(addons_root):
    write_addon(addons_root, "crm", {"name": "crm"})
    write_addon(addons_root, ".git", {"name": "git"})
    write_addon(addons_root, "__pycache__", {"name": "cache"})
    with open(os.path.join(addons_root, "README.md"), "w", encoding="utf-8") as f:
        f.write("addons\n")

    scan = AddonDiscovery(addons_root=addons_root, logger=DummyLogger()).scan()
    assert list(scan.addons) == ["crm"]
    assert scan.excluded == {}
    assert scan.diagnostics == []


def test_one_bad_manifest_does_not_abort_the_scan(addons_root):
    write_addon(addons_root, "broken", manifest_text="{not json")
    write_addon(addons_root, "invalid", {"name": "invalid", "dependencies": [1, 2]})
    write_addon(addons_root, "hr", {"name": "hr", "dependencies": [""]})
    log = RecordingLogger()

    scan = AddonDiscovery(addons_root=addons_root, logger=log).scan()

    assert list(scan.addons) == ["hr"]
    assert scan.excluded["broken"].startswith("manifest unreadable")
    assert scan.excluded["invalid"].startswith("manifest invalid")
    assert DiagnosticKind.MANIFEST_UNREADABLE in _kinds(scan)
    assert DiagnosticKind.MANIFEST_INVALID in _kinds(scan)
    assert len(log.messages("warning")) == 2


def test_name_mismatch_is_accepted_with_warning(addons_root):
    write_addon(addons_root, "sales_folder", {"name": "sales"})
    scan = AddonDiscovery(addons_root=addons_root, logger=DummyLogger()).scan()
    assert list(scan.addons) == ["sales"]
    assert scan.addons["sales"].folder == "sales_folder"
    d = [d for d in scan.diagnostics if d.kind == DiagnosticKind.NAME_MISMATCH]
    assert d and d[0].severity == DiagnosticSeverity.warning
    assert d[0].related == ["sales_folder"]


def test_duplicate_name_first_folder_wins(addons_root):
    write_addon(addons_root, "a_crm", {"name": "crm", "version": "1.0.0"})
    write_addon(addons_root, "b_crm", {"name": "crm", "version": "2.0.0"})
    scan = AddonDiscovery(addons_root=addons_root, logger=DummyLogger()).scan()
    assert scan.addons["crm"].folder == "a_crm"
    assert scan.addons["crm"].manifest.version == "1.0.0"
    assert "duplicate module name" in scan.excluded["b_crm"]
    assert DiagnosticKind.DUPLICATE_NAME in _kinds(scan)


def test_ignored_fields_are_reported(addons_root):
    write_addon(addons_root, "inv", {"name": "inv", "autoInstall": "sometimes"})
    scan = AddonDiscovery(addons_root=addons_root, logger=DummyLogger()).scan()
    assert "inv" in scan.addons
    assert _kinds(scan) == [DiagnosticKind.MANIFEST_FIELD_IGNORED]


def test_custom_file_names(addons_root):
    mod = os.path.join(addons_root, "crm")
    os.makedirs(mod)
    with open(os.path.join(mod, "addon.json"), "w", encoding="utf-8") as f:
        f.write('{"name": "crm"}')
    with open(os.path.join(mod, "main.py"), "w", encoding="utf-8") as f:
        f.write("")
    disc = AddonDiscovery(addons_root=addons_root, manifest_filename="addon.json", entrypoint_filename="main.py", logger=DummyLogger())
    scan = disc.scan()
    assert list(scan.addons) == ["crm"]
    assert scan.addons["crm"].entrypoint_path.endswith("main.py")


def test_missing_root_is_fatal(tmp_path):
    with pytest.raises(AddonsRootMissingError) as ei:
        AddonDiscovery(addons_root=str(tmp_path / "nope"), logger=DummyLogger()).scan()
    assert ei.value.code == "addons_root_missing"
    assert ei.value.recoverable is False


def test_root_that_is_a_file_is_fatal(tmp_path):
    p = tmp_path / "addons"
    p.write_text("not a dir", encoding="utf-8")
    with pytest.raises(AddonsRootMissingError):
        AddonDiscovery(addons_root=str(p), logger=DummyLogger()).scan()


def test_empty_root_yields_nothing(addons_root):
    scan = AddonDiscovery(addons_root=addons_root, logger=DummyLogger()).scan()
    assert scan.addons == {}
    assert scan.manifests() == {}
