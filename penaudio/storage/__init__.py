"""
Storage Layer.

This package handles all data persistence: the artifact cache and its keys,
transactional file writes, and the configuration file.
"""

from .cache import ArtifactCache, CacheKeyDeriver
from .config_manager import ConfigManager
from .transaction import FileTransaction, cleanup_orphan_temp_files

__all__ = [
    "ArtifactCache",
    "CacheKeyDeriver",
    "ConfigManager",
    "FileTransaction",
    "cleanup_orphan_temp_files",
]
