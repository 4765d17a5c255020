"""Typed view over the JSON lines found in Codex session logs.

Each line of a rollout file is one of:
- "session_meta": identity, cwd, git info and origin of the session.
- "response_item": a model-visible item. The payload ``type`` is "message"
  (multi-part content) or one of the tool/trace types in TOOL_RESPONSE_TYPES.
- "event_msg": free-form UI events (token counts, agent messages, ...).
Anything else decodes to ``UnknownEntry`` and is ignored by callers.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

TOOL_RESPONSE_TYPES = frozenset({
    "function_call",
    "function_call_output",
    "custom_tool_call",
    "custom_tool_call_output",
    "web_search_call",
    "reasoning",
})

MESSAGE_ROLES = frozenset({"user", "assistant", "developer", "system"})


@dataclass
class SessionMetaEntry:
    timestamp: Any
    session_id: Optional[str] = None
    source: Any = None
    originator: Any = None
    cwd: Optional[str] = None
    repository_url: Optional[str] = None
    created: Any = None


@dataclass
class MessageEntry:
    timestamp: Any
    role: str
    content: list = field(default_factory=list)


@dataclass
class ToolEntry:
    timestamp: Any
    type: str
    payload: dict
    name: Optional[str] = None


@dataclass
class EventEntry:
    timestamp: Any
    type: str
    payload: dict


@dataclass
class UnknownEntry:
    timestamp: Any = None
    type: str = ""


LogEntry = Union[SessionMetaEntry, MessageEntry, ToolEntry, EventEntry, UnknownEntry]


@dataclass
class HistoryEntry:
    """One line of the legacy ``history.jsonl`` prompt log."""

    session_id: str
    ts: Any
    text: str


def decode_entry(raw: Any) -> LogEntry:
    """Decode one parsed JSON line into its entry variant."""
    if not isinstance(raw, dict):
        return UnknownEntry()

    entry_type = raw.get("type") if isinstance(raw.get("type"), str) else ""
    timestamp = raw.get("timestamp")
    payload = raw.get("payload")
    if not isinstance(payload, dict):
        payload = {}

    if entry_type == "session_meta":
        git = payload.get("git")
        repository_url = git.get("repository_url") if isinstance(git, dict) else None
        session_id = payload.get("id")
        cwd = payload.get("cwd")
        return SessionMetaEntry(
            timestamp=timestamp,
            session_id=str(session_id) if session_id is not None else None,
            source=payload.get("source"),
            originator=payload.get("originator"),
            cwd=cwd if isinstance(cwd, str) else None,
            repository_url=repository_url if isinstance(repository_url, str) else None,
            created=payload.get("timestamp"),
        )

    if entry_type == "response_item":
        payload_type = str(payload.get("type") or "")
        if payload_type == "message":
            content = payload.get("content")
            return MessageEntry(
                timestamp=timestamp,
                role=str(payload.get("role") or ""),
                content=content if isinstance(content, list) else [],
            )
        if payload_type in TOOL_RESPONSE_TYPES:
            name = payload.get("name")
            return ToolEntry(
                timestamp=timestamp,
                type=payload_type,
                payload=payload,
                name=name if isinstance(name, str) else None,
            )
        return UnknownEntry(timestamp=timestamp, type=entry_type)

    if entry_type == "event_msg":
        event_type = payload.get("type")
        return EventEntry(
            timestamp=timestamp,
            type=event_type if isinstance(event_type, str) else "event_msg",
            payload=payload,
        )

    return UnknownEntry(timestamp=timestamp, type=entry_type)


def decode_history_entry(raw: Any) -> Optional[HistoryEntry]:
    if not isinstance(raw, dict):
        return None
    session_id = raw.get("session_id")
    if not session_id:
        return None
    text = raw.get("text")
    return HistoryEntry(
        session_id=str(session_id),
        ts=raw.get("ts"),
        text=text if isinstance(text, str) else "",
    )


def extract_message_text(content: list, render_images: bool = True) -> str:
    """Join the text parts of a message with blank lines.

    Image parts become a Markdown image when they carry a URL or path and
    ``[Image omitted]`` otherwise. With ``render_images=False`` every image
    is reduced to ``[Image]``.
    """
    chunks = []
    for item in content:
        if not isinstance(item, dict):
            continue
        item_type = str(item.get("type") or "")
        if item_type in ("input_text", "output_text"):
            text = str(item.get("text") or "").strip()
            if text:
                chunks.append(text)
        elif item_type in ("input_image", "image"):
            if not render_images:
                chunks.append("[Image]")
                continue
            url = str(item.get("url") or item.get("path") or "").strip()
            chunks.append(f"![image]({url})" if url else "[Image omitted]")

    return "\n\n".join(chunks).strip()
