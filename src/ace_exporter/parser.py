"""Build full transcripts for indexed sessions.

A transcript is parsed for one ``mode`` and ``detail``:
- clean: user/assistant/developer/system messages only; tool entries ignored.
- develop + full: messages plus every tool call and event as a ToolEvent.
- develop + preview: messages plus a per-type count of tool calls and events.

Preview detail stops reading once the accepted text exceeds the preview
guards, so opening a huge session stays fast.
"""

import logging
import re
from collections import Counter
from typing import Optional

from .core import SessionIndexRecord, SessionMessage, SessionTranscript, ToolEvent, iso_from_unknown
from .entries import (
    MESSAGE_ROLES,
    EventEntry,
    MessageEntry,
    SessionMetaEntry,
    ToolEntry,
    decode_entry,
    decode_history_entry,
    extract_message_text,
)
from .index import SessionIndex
from .jsonl import LineControl, for_each_json_line
from .preview import PreviewBudget, count_lines
from .text_cleaner import strip_system_xml

logger = logging.getLogger(__name__)

TITLE_LIMIT = 80
HISTORY_FALLBACK_WARNING = "Using history fallback; transcript may be incomplete."
PREVIEW_TRUNCATED_WARNING = "Preview truncated. Load full preview for complete transcript."

_SESSION_META_RE = re.compile(r'"type"\s*:\s*"session_meta"')
_RESPONSE_ITEM_RE = re.compile(r'"type"\s*:\s*"response_item"')
_MESSAGE_RE = re.compile(r'"type"\s*:\s*"message"')
_EVENT_MSG_RE = re.compile(r'"type"\s*:\s*"event_msg"')
_WHITESPACE_RE = re.compile(r"\s+")


def readable_title(text: str, fallback: str) -> str:
    trimmed = text.strip()
    if not trimmed:
        return fallback
    return _WHITESPACE_RE.sub(" ", trimmed)[:TITLE_LIMIT]


def should_parse_line_for_mode(line: str, mode: str) -> bool:
    """Cheap pre-check that skips JSON decoding of lines the mode never uses."""
    if _SESSION_META_RE.search(line):
        return True
    if mode == "clean":
        return bool(_RESPONSE_ITEM_RE.search(line) and _MESSAGE_RE.search(line))
    return bool(_RESPONSE_ITEM_RE.search(line) or _EVENT_MSG_RE.search(line))


def _default_title(session_id: str) -> str:
    return f"Session {session_id[:8]}"


def _message_budget(budget: PreviewBudget, text: str) -> bool:
    return budget.add(len(text) + 64, count_lines(text) + 4)


def _sort_by_timestamp(items: list) -> None:
    # list.sort is stable, so entries sharing a timestamp keep file order.
    items.sort(key=lambda item: item.timestamp)


def parse_session_transcript(
    index: SessionIndex,
    session_id: str,
    mode: str = "clean",
    detail: str = "full",
) -> SessionTranscript:
    """Parse the transcript of ``session_id``.

    Raises ``SessionNotIndexedError`` if the session is not in ``index``.
    """
    record = index.require(session_id)
    if record.kind == "history_fallback":
        return _parse_history_transcript(record, detail)
    return _parse_rollout_transcript(record, mode, detail)


def _parse_history_transcript(record: SessionIndexRecord, detail: str) -> SessionTranscript:
    summary = record.summary
    session_id = record.session_id
    budget = PreviewBudget(enabled=detail == "preview")
    messages: list[SessionMessage] = []

    def handle(raw, line_num) -> Optional[LineControl]:
        entry = decode_history_entry(raw)
        if entry is None or entry.session_id != session_id:
            return None
        text = entry.text.strip()
        if not text:
            return None

        messages.append(SessionMessage(
            id=f"{session_id}:history:{line_num}",
            role="user",
            text=text,
            timestamp=iso_from_unknown(entry.ts, summary.updated_at),
        ))
        if _message_budget(budget, text):
            return LineControl.STOP
        return None

    warnings = [HISTORY_FALLBACK_WARNING]
    try:
        warnings.extend(for_each_json_line(record.file_path, handle))
    except OSError as e:
        logger.warning("Failed to read history file %s: %s", record.file_path, e)
        warnings.append(f"Unable to read {record.file_path}: {e}")

    _sort_by_timestamp(messages)
    truncated = budget.exceeded
    if truncated:
        warnings.append(PREVIEW_TRUNCATED_WARNING)

    first_text = messages[0].text if messages else ""
    return SessionTranscript(
        session_id=session_id,
        source=summary.source,
        title=summary.title or readable_title(first_text, _default_title(session_id)),
        created_at=summary.created_at,
        updated_at=summary.updated_at,
        cwd=summary.cwd,
        partial=True,
        messages=messages,
        warnings=warnings,
        has_more=truncated,
        truncated=truncated,
    )


def _parse_rollout_transcript(record: SessionIndexRecord, mode: str, detail: str) -> SessionTranscript:
    summary = record.summary
    session_id = record.session_id
    budget = PreviewBudget(enabled=detail == "preview")
    include_tool_events = mode == "develop" and detail == "full"
    include_tool_summary = mode == "develop" and detail == "preview"

    messages: list[SessionMessage] = []
    tool_events: list[ToolEvent] = []
    tool_counts: Counter = Counter()
    titles = {"parsed": summary.title or "", "meta": ""}

    def record_tool(event_id: str, timestamp: str, event_type: str, payload: dict,
                    name: Optional[str] = None) -> None:
        if include_tool_events:
            tool_events.append(ToolEvent(
                id=event_id, timestamp=timestamp, type=event_type, payload=payload, name=name,
            ))
        elif include_tool_summary:
            tool_counts[event_type] += 1

    def handle(raw, line_num) -> Optional[LineControl]:
        entry = decode_entry(raw)
        timestamp = iso_from_unknown(entry.timestamp, summary.updated_at)

        if isinstance(entry, SessionMetaEntry):
            if entry.cwd and not titles["meta"]:
                titles["meta"] = f"Session in {entry.cwd}"
            return None

        if isinstance(entry, MessageEntry):
            if entry.role not in MESSAGE_ROLES:
                return None
            raw_text = extract_message_text(entry.content)
            if not raw_text:
                return None
            text = strip_system_xml(raw_text)
            if not text:
                return None

            if not titles["parsed"] and entry.role == "user":
                titles["parsed"] = readable_title(text, "")

            messages.append(SessionMessage(
                id=f"{session_id}:message:{line_num}",
                role=entry.role,
                text=text,
                timestamp=timestamp,
            ))
            if _message_budget(budget, text):
                return LineControl.STOP
            return None

        if isinstance(entry, ToolEntry):
            record_tool(f"{session_id}:tool:{line_num}", timestamp, entry.type, entry.payload, entry.name)
        elif isinstance(entry, EventEntry):
            record_tool(f"{session_id}:event:{line_num}", timestamp, entry.type, entry.payload)
        return None

    warnings: list[str] = []
    try:
        warnings.extend(for_each_json_line(
            record.file_path,
            handle,
            should_parse_line=lambda line, _num: should_parse_line_for_mode(line, mode),
        ))
    except OSError as e:
        logger.warning("Failed to read session file %s: %s", record.file_path, e)
        warnings.append(f"Unable to read {record.file_path}: {e}")

    truncated = budget.exceeded
    if truncated:
        warnings.append(PREVIEW_TRUNCATED_WARNING)

    _sort_by_timestamp(messages)
    _sort_by_timestamp(tool_events)

    tool_event_summary = None
    if include_tool_summary and tool_counts:
        tool_event_summary = {name: tool_counts[name] for name in sorted(tool_counts)}

    return SessionTranscript(
        session_id=session_id,
        source=summary.source,
        title=titles["parsed"] or titles["meta"] or _default_title(session_id),
        created_at=summary.created_at,
        updated_at=summary.updated_at,
        cwd=summary.cwd,
        partial=summary.partial,
        messages=messages,
        tool_events=tool_events,
        tool_event_total=sum(tool_counts.values()) if include_tool_summary else None,
        tool_event_summary=tool_event_summary,
        warnings=warnings,
        has_more=truncated,
        truncated=truncated,
    )
