from civiccare.core.config.manager import ConfigManager
from civiccare.core.config.models import ClientConfig

__all__ = ["ClientConfig", "ConfigManager"]
