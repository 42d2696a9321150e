"""
Storage Layer.

This package handles all data persistence: the configuration file, the cached
manifest, and the location of the cache directory.
"""

from .config_manager import ConfigManager
from .manifest_store import ManifestStore
from .paths import get_config_dir, resolve_cache_dir

__all__ = ["ConfigManager", "ManifestStore", "get_config_dir", "resolve_cache_dir"]
