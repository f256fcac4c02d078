from erp.core.config.manager import ConfigManager, get_config
from erp.core.config.models import AddonsConfigFile
from erp.core.config.paths import ConfigFsPaths

__all__ = ["AddonsConfigFile", "ConfigFsPaths", "ConfigManager", "get_config"]
