from __future__ import annotations

from dropbox_cache.config.loader import YamlConfigLoader
from dropbox_cache.config.models import AppConfig, ConfigLoadRequest

__all__ = ["AppConfig", "ConfigLoadRequest", "YamlConfigLoader"]
