"""Platform-aware path resolution for Codex data and exporter state."""

import os
import sys
from pathlib import Path

APP_DIR_NAME = "ace-exporter"
HISTORY_FILE_NAME = "history.jsonl"
ARCHIVED_MARKER = "archived_sessions"


def get_codex_home() -> Path:
    """Return the Codex home directory (~/.codex)."""
    env = os.environ.get("ACE_CODEX_HOME")
    if env:
        return Path(env).expanduser()

    return Path.home() / ".codex"


def get_default_data_roots() -> list[str]:
    """Return the data roots scanned when the user has configured none."""
    codex_home = get_codex_home()
    return [
        str(codex_home / "sessions"),
        str(codex_home / ARCHIVED_MARKER),
        str(codex_home / HISTORY_FILE_NAME),
    ]


def get_global_state_path() -> Path:
    """Return the path to the Codex desktop app's global state file."""
    env = os.environ.get("ACE_GLOBAL_STATE_PATH")
    if env:
        return Path(env).expanduser()

    return get_codex_home() / ".codex-global-state.json"


def get_config_dir() -> Path:
    """Return the directory holding persisted settings."""
    env = os.environ.get("ACE_CONFIG_DIR")
    if env:
        return Path(env).expanduser()

    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_DIR_NAME
    elif sys.platform == "win32":
        return Path(os.environ.get("APPDATA", "")) / APP_DIR_NAME
    else:  # Linux
        base = os.environ.get("XDG_CONFIG_HOME")
        return (Path(base) if base else Path.home() / ".config") / APP_DIR_NAME


def get_cache_dir() -> Path:
    """Return the directory holding the session scan cache."""
    env = os.environ.get("ACE_CACHE_DIR")
    if env:
        return Path(env).expanduser()

    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches" / APP_DIR_NAME
    elif sys.platform == "win32":
        return Path(os.environ.get("LOCALAPPDATA", "")) / APP_DIR_NAME / "Cache"
    else:  # Linux
        base = os.environ.get("XDG_CACHE_HOME")
        return (Path(base) if base else Path.home() / ".cache") / APP_DIR_NAME


def get_settings_path() -> Path:
    return get_config_dir() / "settings.json"


def get_scan_cache_path() -> Path:
    return get_cache_dir() / "session-scan-cache.json"


def get_default_export_directory() -> str:
    """Return the directory exports land in when no destination is given."""
    env = os.environ.get("ACE_EXPORT_DIR")
    if env:
        return str(Path(env).expanduser())

    return str(Path.home() / "Downloads")
