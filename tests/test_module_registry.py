from __future__ import annotations

import os
import sys

import pytest

from erp.core.errors import ModuleLoadError, ModuleNotRegisteredError
from erp.core.modules.registry import ModuleRegistry, addon_import_name
from erp.core.modules.registry_gen import emit_registry
from erp.core.modules.resolver import resolve

from tests.helpers.addon_builders import CONTRACT_SOURCE, write_addon, write_addons
from tests.helpers.fakes import DummyLogger


def _emit(addons_root, tmp_path):
    out = str(tmp_path / "runtime" / "module_registry.json")
    emit_registry(resolve(addons_root, logger=DummyLogger()), out, logger=DummyLogger())
    return out


def test_in_process_factories():
    reg = ModuleRegistry()
    reg.register_factory("a", lambda: "A")
    reg.register_factory("b", lambda: "B", dependencies=["a"])
    assert reg.list_module_names() == ("a", "b")
    assert reg.dependencies_of("b") == ("a",)
    assert reg.dependencies_of("zzz") == ()
    assert reg.load_module("b") == "B"
    assert "a" in reg and len(reg) == 2


def test_unknown_name_is_typed_error():
    reg = ModuleRegistry()
    with pytest.raises(ModuleNotRegisteredError) as ei:
        reg.load_module("ghost")
    assert ei.value.context["module"] == "ghost"


def test_factory_failure_is_wrapped():
    def broken():
        raise ImportError("no such thing")

    reg = ModuleRegistry()
    reg.register_factory("bad", broken)
    with pytest.raises(ModuleLoadError) as ei:
        reg.load_module("bad")
    assert isinstance(ei.value.__cause__, ImportError)
    assert "bad" in str(ei.value)


def test_non_callable_factory_rejected():
    with pytest.raises(TypeError):
        ModuleRegistry().register_factory("x", "not callable")  # type: ignore[arg-type]


def test_from_artifact_preserves_order_and_imports_lazily(tmp_path, addons_root):
    write_addons(addons_root, {"hr": [], "crm": ["hr"]})
    write_addon(addons_root, "boom", {"name": "boom"}, source="raise RuntimeError('boom at import')\n")
    reg = ModuleRegistry.from_artifact(_emit(addons_root, tmp_path))

    assert reg.list_module_names() == ("boom", "hr", "crm")
    assert reg.dependencies_of("crm") == ("hr",)
    assert addon_import_name("boom") not in sys.modules

    crm = reg.load_module("crm")
    assert crm.__name__ == "erp_addon_crm"
    assert crm.MANIFEST.name == "crm"
    with pytest.raises(ModuleLoadError):
        reg.load_module("boom")
    assert addon_import_name("boom") not in sys.modules


def test_addon_relative_imports_work(tmp_path, addons_root):
    source = CONTRACT_SOURCE + "from .helpers import VALUE\n"
    write_addon(addons_root, "pkg_addon", {"name": "pkg_addon"}, source=source, files={"helpers.py": "VALUE = 42\n"})
    reg = ModuleRegistry.from_artifact(_emit(addons_root, tmp_path))
    mod = reg.load_module("pkg_addon")
    assert mod.VALUE == 42
    assert reg.load_module("pkg_addon") is mod


def test_missing_entrypoint_after_generation(tmp_path, addons_root):
    write_addons(addons_root, {"hr": []})
    out = _emit(addons_root, tmp_path)
    os.remove(os.path.join(addons_root, "hr", "__init__.py"))
    reg = ModuleRegistry.from_artifact(out)
    with pytest.raises(ModuleLoadError):
        reg.load_module("hr")


def test_from_resolution_skips_artifact(addons_root):
    write_addons(addons_root, {"hr": [], "crm": ["hr"]})
    reg = ModuleRegistry.from_resolution(resolve(addons_root, logger=DummyLogger()))
    assert reg.list_module_names() == ("hr", "crm")
    assert reg.load_module("hr").MANIFEST.name == "hr"
