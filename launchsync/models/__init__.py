"""
Data Models Layer.

This package contains the Pydantic models and dataclasses that define the core
data structures of the launcher: the release manifest, configuration, the sync
plan and sync results.
"""

from .config import LauncherConfig
from .manifest import FileEntry, Manifest, OSTag
from .plan import SyncPlan
from .stats import SyncResult

__all__ = [
    "FileEntry",
    "LauncherConfig",
    "Manifest",
    "OSTag",
    "SyncPlan",
    "SyncResult",
]
