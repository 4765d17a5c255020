"""Core data models for ace-exporter."""

import math
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Optional

from .preview import count_lines, is_large_preview

SOURCES = ("cli", "desktop", "other")
MODES = ("clean", "develop")
DETAILS = ("preview", "full")
STRATEGIES = ("single_file", "one_file_per_session")

EPOCH_ISO = "1970-01-01T00:00:00.000Z"


@dataclass
class SessionSummary:
    """One distinct Codex session, as shown in the session list."""

    session_id: str
    file_path: str  # primary source file
    source: str  # "cli" | "desktop" | "other"
    created_at: str  # ISO-8601 UTC, e.g. "2025-01-15T10:00:00.000Z"
    updated_at: str
    project_name: str
    message_count: int = 0
    cwd: Optional[str] = None
    title: Optional[str] = None
    partial: bool = False
    archived: bool = False
    in_workspace: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "SessionSummary":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class SessionIndexRecord:
    """Authoritative record for one session identity in the index."""

    session_id: str
    kind: str  # "session_file" | "history_fallback"
    file_path: str
    summary: SessionSummary
    file_signature: Optional[str] = None


@dataclass
class SessionMessage:
    id: str
    role: str  # "user" | "assistant" | "developer" | "system"
    text: str
    timestamp: str


@dataclass
class ToolEvent:
    id: str
    timestamp: str
    type: str  # "function_call", "reasoning", event_msg payload type, ...
    payload: Any
    name: Optional[str] = None


@dataclass
class SessionTranscript:
    """A parsed session, built on demand for one (mode, detail) pair."""

    session_id: str
    source: str
    title: str
    created_at: str
    updated_at: str
    cwd: Optional[str] = None
    partial: bool = False
    messages: list[SessionMessage] = field(default_factory=list)
    tool_events: list[ToolEvent] = field(default_factory=list)
    tool_event_total: Optional[int] = None
    tool_event_summary: Optional[dict[str, int]] = None
    warnings: list[str] = field(default_factory=list)
    has_more: bool = False
    truncated: bool = False


@dataclass
class MarkdownBundle:
    """Rendered Markdown for one session plus the numbers the preview pane needs."""

    session_id: str
    title: str
    markdown: str
    warnings: list[str]
    char_count: int
    line_count: int
    is_large_preview: bool
    has_more: bool
    truncated: bool

    @classmethod
    def build(cls, session_id: str, title: str, markdown: str, warnings: list[str],
              has_more: bool, truncated: bool) -> "MarkdownBundle":
        char_count = len(markdown)
        line_count = count_lines(markdown)
        return cls(
            session_id=session_id,
            title=title,
            markdown=markdown,
            warnings=list(warnings),
            char_count=char_count,
            line_count=line_count,
            is_large_preview=is_large_preview(char_count, line_count),
            has_more=has_more,
            truncated=truncated,
        )

    def to_preview_result(self) -> dict:
        return {
            "markdown": self.markdown,
            "warnings": list(self.warnings),
            "char_count": self.char_count,
            "line_count": self.line_count,
            "is_large_preview": self.is_large_preview,
            "truncated": self.truncated,
            "has_more": self.has_more,
        }


@dataclass
class ScanStats:
    total_files: int = 0
    parsed_files: int = 0
    cache_hits: int = 0
    duration_ms: int = 0


def format_iso(value: datetime) -> str:
    """Format a datetime as a millisecond-precision UTC ISO string.

    All timestamps share this shape so they compare correctly as strings.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def iso_from_unknown(value: Any, fallback: str) -> str:
    """Normalize an ISO string or epoch-seconds number, else return fallback."""
    if isinstance(value, bool):
        return fallback
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return format_iso(datetime.fromisoformat(text))
        except ValueError:
            return fallback
    if isinstance(value, (int, float)):
        try:
            if not math.isfinite(value):
                return fallback
            return format_iso(datetime.fromtimestamp(value, tz=timezone.utc))
        except (OverflowError, OSError, ValueError):
            return fallback
    return fallback


def parse_iso(value: str) -> Optional[datetime]:
    """Parse a normalized ISO string back into an aware datetime."""
    if not value:
        return None
    try:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value)
    except (ValueError, TypeError):
        return None
