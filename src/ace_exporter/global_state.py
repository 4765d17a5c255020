"""Overlay data from the Codex desktop app's global state file.

The desktop app keeps user-assigned thread titles and the list of saved
workspace roots in ``~/.codex/.codex-global-state.json``. Both are optional;
a missing or unreadable file simply yields no overlay.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Union

from .core import SessionIndexRecord

logger = logging.getLogger(__name__)


@dataclass
class GlobalState:
    thread_titles: dict[str, str] = field(default_factory=dict)
    workspace_roots: list[str] = field(default_factory=list)


def load_global_state(path: Optional[Union[str, Path]]) -> GlobalState:
    if path is None:
        return GlobalState()
    try:
        parsed = json.loads(Path(path).read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError, UnicodeDecodeError):
        return GlobalState()
    if not isinstance(parsed, dict):
        return GlobalState()

    thread_titles = {}
    section = parsed.get("thread-titles")
    titles = section.get("titles") if isinstance(section, dict) else None
    if isinstance(titles, dict):
        thread_titles = {
            str(session_id): title
            for session_id, title in titles.items()
            if isinstance(title, str) and title
        }

    saved_roots = parsed.get("electron-saved-workspace-roots")
    workspace_roots = (
        [r for r in saved_roots if isinstance(r, str) and r]
        if isinstance(saved_roots, list) else []
    )

    return GlobalState(thread_titles=thread_titles, workspace_roots=workspace_roots)


def _strip_trailing_separators(path: str) -> str:
    stripped = path.rstrip("/\\")
    return stripped or path


def match_workspace_root(cwd: Optional[str], roots: Iterable[str]) -> Optional[str]:
    """Return the basename of the first root containing ``cwd``.

    Matches the root itself or anything below it; ``/repo/app-old`` is not
    under ``/repo/app``.
    """
    if not cwd:
        return None
    for root in roots:
        normalized = _strip_trailing_separators(root)
        if (
            cwd == normalized
            or cwd.startswith(normalized + "/")
            or cwd.startswith(normalized + "\\")
        ):
            return re.split(r"[/\\]", normalized)[-1] or normalized
    return None


def apply_global_state(records: list[SessionIndexRecord], state: GlobalState) -> None:
    """Apply external titles and workspace membership to scanned records in place."""
    for record in records:
        title = state.thread_titles.get(record.session_id)
        if title:
            record.summary.title = title

        if state.workspace_roots:
            root_name = match_workspace_root(record.summary.cwd, state.workspace_roots)
            if root_name:
                record.summary.project_name = root_name
                record.summary.in_workspace = True
