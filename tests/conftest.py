from __future__ import annotations

import os

import pytest

from erp.core.config.paths import ConfigFsPaths
from erp.core.modules.service import ModuleService
from erp.core.modules.store import ModuleStore

from tests.helpers.fakes import DummyLogger, FakeClock


@pytest.fixture
def tmp_config_root(tmp_path):
    """
    Provides an isolated repo root with config/ under tmp_path.
    """
    fs = ConfigFsPaths(root=str(tmp_path))
    os.makedirs(fs.config_dir, exist_ok=True)
    return fs


@pytest.fixture
def addons_root(tmp_path):
    path = tmp_path / "addons"
    path.mkdir()
    return str(path)


@pytest.fixture
def module_store(tmp_config_root):
    return ModuleStore(tmp_config_root.modules, backups_dir=tmp_config_root.backups_dir, logger=DummyLogger())


@pytest.fixture
def module_service(module_store, addons_root):
    return ModuleService(module_store, addons_root, logger=DummyLogger(), clock=FakeClock())
