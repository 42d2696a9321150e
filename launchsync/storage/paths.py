"""
Utilities for locating the launcher's configuration and cache directories.
"""

import os
import sys
from pathlib import Path

APP_DIR_NAME = "launchsync"


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / APP_DIR_NAME


def get_user_data_dir() -> Path:
    """The per-user directory for application data."""
    if os.name == "nt":
        return Path(os.getenv("LOCALAPPDATA", "~\\AppData\\Local")).expanduser()
    if sys.platform == "darwin":
        return Path("~/Library/Application Support").expanduser()
    return Path(os.getenv("XDG_DATA_HOME", "~/.local/share")).expanduser()


def get_all_users_dir() -> Path:
    """The machine-wide directory for application data."""
    if os.name == "nt":
        return Path(os.getenv("ALLUSERSPROFILE", "C:\\ProgramData"))
    if sys.platform == "darwin":
        return Path("/Library/Application Support")
    return Path("/var/lib")


def resolve_cache_dir(cache_directory: str | None) -> Path:
    """
    Resolves the configured cache directory.

    `USERLIB/<sub>` expands under the per-user data directory and
    `ALLUSERS/<sub>` under the machine-wide one. Anything else is used as a
    plain path. When nothing is configured, `<user data>/launchsync/cache` is used.
    """
    if not cache_directory:
        return get_user_data_dir() / APP_DIR_NAME / "cache"

    normalized = cache_directory.replace("\\", "/")
    if normalized.startswith("USERLIB/"):
        return get_user_data_dir() / normalized[len("USERLIB/") :]
    if normalized.startswith("ALLUSERS/"):
        return get_all_users_dir() / normalized[len("ALLUSERS/") :]
    return Path(cache_directory).expanduser().resolve()
