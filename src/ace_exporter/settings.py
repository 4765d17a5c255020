"""Persisted user settings."""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional, Union

from .config import get_default_data_roots, get_default_export_directory, get_settings_path
from .core import MODES

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    data_roots: list[str] = field(default_factory=list)
    include_archived: bool = True
    default_export_mode: str = "clean"  # "clean" | "develop"
    default_export_directory: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


def default_settings() -> Settings:
    return Settings(
        data_roots=get_default_data_roots(),
        default_export_directory=get_default_export_directory(),
    )


def normalize_data_root(root: str) -> str:
    trimmed = root.strip()
    if not trimmed:
        return ""
    return os.path.abspath(os.path.expanduser(trimmed))


def sanitize_settings(data: dict) -> Settings:
    """Merge ``data`` over the defaults, dropping anything malformed.

    The default data roots always come first; configured roots are appended
    and de-duplicated.
    """
    defaults = default_settings()

    roots = list(defaults.data_roots)
    raw_roots = data.get("data_roots")
    if isinstance(raw_roots, list):
        for root in raw_roots:
            if not isinstance(root, str):
                continue
            normalized = normalize_data_root(root)
            if normalized and normalized not in roots:
                roots.append(normalized)

    export_mode = data.get("default_export_mode", defaults.default_export_mode)
    if export_mode == "forensic":
        # Renamed to "develop".
        export_mode = "develop"
    if export_mode not in MODES:
        export_mode = "clean"

    include_archived = data.get("include_archived", defaults.include_archived)
    export_dir = data.get("default_export_directory")

    return Settings(
        data_roots=roots,
        include_archived=include_archived if isinstance(include_archived, bool) else True,
        default_export_mode=export_mode,
        default_export_directory=(
            str(Path(export_dir).expanduser()) if isinstance(export_dir, str) and export_dir.strip()
            else defaults.default_export_directory
        ),
    )


class SettingsStore:
    """Settings kept in a JSON file."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path is not None else get_settings_path()

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to read settings %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self) -> Settings:
        return sanitize_settings(self._read())

    def update(self, patch: dict) -> Settings:
        merged = sanitize_settings({**self.get().to_dict(), **patch})
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(merged.to_dict(), indent=2), encoding="utf-8")
        return merged
