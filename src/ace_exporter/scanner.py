"""Discover Codex session logs and derive one summary per session.

Data roots are directories (scanned recursively for ``*.jsonl`` rollout
files) or single files. A root named ``history.jsonl`` is the legacy prompt
log and is only mined for sessions that no rollout file describes.

Rollout files whose signature (size + mtime) is unchanged since the last
scan reuse the summary stored in the ``SessionScanCache``.
"""

import logging
import os
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .config import ARCHIVED_MARKER, HISTORY_FILE_NAME
from .core import (
    EPOCH_ISO,
    ScanStats,
    SessionIndexRecord,
    SessionSummary,
    format_iso,
    iso_from_unknown,
)
from .entries import (
    MessageEntry,
    SessionMetaEntry,
    decode_entry,
    decode_history_entry,
    extract_message_text,
)
from .jsonl import for_each_json_line
from .scan_cache import SessionScanCache
from .text_cleaner import strip_system_xml

logger = logging.getLogger(__name__)

TITLE_LIMIT = 80

_SESSION_ID_IN_FILENAME_RE = re.compile(r"[0-9a-f]{8}-[0-9a-f-]{27,}", re.IGNORECASE)
_EDGE_SEPARATORS_RE = re.compile(r"^[./\\]+|[./\\]+$")


@dataclass
class ScanSessionFilesResult:
    records: list[SessionIndexRecord] = field(default_factory=list)
    stats: ScanStats = field(default_factory=ScanStats)


def file_signature(stat: os.stat_result) -> str:
    """Fingerprint a file by byte size and whole-millisecond mtime."""
    return f"{stat.st_size}:{stat.st_mtime_ns // 1_000_000}"


def classify_source(source, originator) -> str:
    source_text = str(source or "").lower()
    origin_text = str(originator or "").lower()

    if source_text == "cli" or "codex_cli" in origin_text:
        return "cli"
    if "codex desktop" in origin_text or source_text == "vscode":
        return "desktop"
    return "other"


def _normalize_segment(value: str) -> str:
    return _EDGE_SEPARATORS_RE.sub("", value.strip())


def extract_repository_name(repository_url: Optional[str]) -> Optional[str]:
    """Return the repository name of a git URL.

    ``git@github.com:acme/widget.git`` and ``https://github.com/acme/widget``
    both give ``widget``.
    """
    if not repository_url:
        return None
    normalized = _normalize_segment(repository_url)
    if not normalized:
        return None

    cut = max(normalized.rfind("/"), normalized.rfind(":"))
    tail = normalized[cut + 1:] if cut >= 0 else normalized
    cleaned = _normalize_segment(re.sub(r"\.git$", "", tail, flags=re.IGNORECASE))
    return cleaned or None


def _generic_project_bases() -> set[str]:
    return {Path.home().name, ".codex", "codex", ".", ""}


def derive_project_name(cwd: Optional[str], repository_url: Optional[str]) -> str:
    repository_name = extract_repository_name(repository_url)
    if not cwd:
        return repository_name or "Unknown"

    normalized = cwd.rstrip("/\\")
    base = re.split(r"[/\\]", normalized)[-1] if normalized else ""
    if not base or base == ".":
        return repository_name or "Unknown"
    if normalized == str(Path.home()) or base in _generic_project_bases():
        return repository_name or "Unknown"
    return base


def session_id_from_filename(file_path: str) -> str:
    stem = Path(file_path).name
    if stem.endswith(".jsonl"):
        stem = stem[: -len(".jsonl")]
    match = _SESSION_ID_IN_FILENAME_RE.search(stem)
    return match.group(0) if match else stem


def is_archived_path(*paths: str) -> bool:
    return any(ARCHIVED_MARKER in Path(p).parts for p in paths)


def choose_preferred_record(
    existing: SessionIndexRecord, incoming: SessionIndexRecord
) -> SessionIndexRecord:
    """Pick the record that represents a session seen in two places.

    A complete record beats a partial one; otherwise the most recently
    updated one wins and ties keep the record seen first.
    """
    if not existing.summary.partial and incoming.summary.partial:
        return existing
    if existing.summary.partial and not incoming.summary.partial:
        return incoming
    if incoming.summary.updated_at > existing.summary.updated_at:
        return incoming
    return existing


def _birth_time(stat: os.stat_result) -> float:
    birth = getattr(stat, "st_birthtime", None)
    if birth:
        return birth
    return min(stat.st_ctime, stat.st_mtime)


def parse_session_file_summary(
    file_path: str, archived: bool, stat: os.stat_result
) -> SessionIndexRecord:
    """Stream a rollout file and derive its ``SessionSummary``."""
    state = {
        "session_id": session_id_from_filename(file_path),
        "source": "other",
        "cwd": None,
        "repository_url": None,
        "created_at": format_iso(datetime.fromtimestamp(_birth_time(stat), tz=timezone.utc)),
        "updated_at": format_iso(datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)),
        "message_count": 0,
        "title": "",
    }

    def handle(raw, _line_num):
        entry = decode_entry(raw)
        timestamp = iso_from_unknown(entry.timestamp, state["updated_at"])
        if timestamp > state["updated_at"]:
            state["updated_at"] = timestamp

        if isinstance(entry, SessionMetaEntry):
            if entry.session_id:
                state["session_id"] = entry.session_id
            state["source"] = classify_source(entry.source, entry.originator)
            if entry.cwd is not None:
                state["cwd"] = entry.cwd
            if entry.repository_url is not None:
                state["repository_url"] = entry.repository_url
            state["created_at"] = iso_from_unknown(entry.created, state["created_at"])
            return None

        if isinstance(entry, MessageEntry) and entry.role in ("user", "assistant"):
            state["message_count"] += 1
            if not state["title"] and entry.role == "user":
                cleaned = strip_system_xml(extract_message_text(entry.content, render_images=False))
                if cleaned:
                    state["title"] = cleaned[:TITLE_LIMIT]
        return None

    warnings = for_each_json_line(file_path, handle)
    for warning in warnings:
        logger.debug(warning)

    if state["updated_at"] < state["created_at"]:
        state["updated_at"] = state["created_at"]

    summary = SessionSummary(
        session_id=state["session_id"],
        file_path=file_path,
        source=state["source"],
        created_at=state["created_at"],
        updated_at=state["updated_at"],
        cwd=state["cwd"],
        project_name=derive_project_name(state["cwd"], state["repository_url"]),
        title=state["title"],
        message_count=state["message_count"],
        partial=False,
        archived=archived,
        in_workspace=False,
    )
    return SessionIndexRecord(
        session_id=summary.session_id,
        kind="session_file",
        file_path=file_path,
        file_signature=file_signature(stat),
        summary=summary,
    )


def parse_history_fallbacks(
    history_path: str,
    existing_session_ids: set[str],
    signature: Optional[str],
) -> list[SessionIndexRecord]:
    """Build partial records for history sessions no rollout file covers."""
    groups: dict[str, dict] = {}

    def handle(raw, _line_num):
        entry = decode_history_entry(raw)
        if entry is None or entry.session_id in existing_session_ids:
            return None

        ts = iso_from_unknown(entry.ts, EPOCH_ISO)
        group = groups.get(entry.session_id)
        if group is None:
            groups[entry.session_id] = {
                "created_at": ts,
                "updated_at": ts,
                "message_count": 1,
                "title": entry.text[:TITLE_LIMIT],
            }
            return None

        group["message_count"] += 1
        if ts < group["created_at"]:
            group["created_at"] = ts
        if ts > group["updated_at"]:
            group["updated_at"] = ts
        if not group["title"] and entry.text:
            group["title"] = entry.text[:TITLE_LIMIT]
        return None

    try:
        warnings = for_each_json_line(history_path, handle)
    except OSError as e:
        logger.warning("Failed to read history file %s: %s", history_path, e)
        return []
    for warning in warnings:
        logger.debug(warning)

    records = []
    for session_id, group in groups.items():
        records.append(SessionIndexRecord(
            session_id=session_id,
            kind="history_fallback",
            file_path=history_path,
            file_signature=signature,
            summary=SessionSummary(
                session_id=session_id,
                file_path=history_path,
                source="other",
                created_at=group["created_at"],
                updated_at=group["updated_at"],
                project_name="Unknown",
                title=group["title"],
                message_count=group["message_count"],
                partial=True,
                archived=False,
                in_workspace=False,
            ),
        ))
    return records


def resolve_jsonl_files(root: str) -> list[str]:
    """Return the rollout files under ``root``; raises OSError if it can't be read."""
    root_path = Path(root)
    if root_path.is_file():
        return [root]
    if not root_path.is_dir():
        raise FileNotFoundError(root)
    return sorted(
        str(p)
        for p in root_path.rglob("*.jsonl")
        if p.is_file() and p.name != HISTORY_FILE_NAME
    )


def _merge(by_session_id: dict[str, SessionIndexRecord], record: SessionIndexRecord) -> None:
    existing = by_session_id.get(record.session_id)
    by_session_id[record.session_id] = (
        choose_preferred_record(existing, record) if existing else record
    )


def scan_session_files(data_roots: list[str], cache: SessionScanCache) -> ScanSessionFilesResult:
    """Scan every data root and return merged records, newest first."""
    started = time.monotonic()
    stats = ScanStats()
    by_session_id: dict[str, SessionIndexRecord] = {}
    seen_file_paths: set[str] = set()

    roots = []
    for root in data_roots:
        if root and os.path.abspath(os.path.expanduser(root)) not in roots:
            roots.append(os.path.abspath(os.path.expanduser(root)))

    for root in roots:
        if os.path.basename(root) == HISTORY_FILE_NAME:
            continue

        try:
            files = resolve_jsonl_files(root)
        except OSError as e:
            logger.debug("Skipping data root %s: %s", root, e)
            continue

        stats.total_files += len(files)

        for file_path in files:
            abs_path = os.path.abspath(file_path)
            seen_file_paths.add(abs_path)

            try:
                stat = os.stat(abs_path)
            except OSError as e:
                logger.debug("Skipping unreadable session file %s: %s", abs_path, e)
                continue

            signature = file_signature(stat)
            archived = is_archived_path(root, abs_path)

            cached = cache.get(abs_path, signature)
            if cached is not None:
                cached.file_path = abs_path
                cached.archived = archived
                cached.in_workspace = False
                record = SessionIndexRecord(
                    session_id=cached.session_id,
                    kind="session_file",
                    file_path=abs_path,
                    file_signature=signature,
                    summary=cached,
                )
                stats.cache_hits += 1
            else:
                try:
                    record = parse_session_file_summary(abs_path, archived, stat)
                except OSError as e:
                    logger.warning("Failed to read session file %s: %s", abs_path, e)
                    continue
                stats.parsed_files += 1
                cache.set(abs_path, signature, record.summary)

            _merge(by_session_id, record)

    existing_session_ids = set(by_session_id)
    for root in roots:
        if os.path.basename(root) != HISTORY_FILE_NAME:
            continue
        try:
            signature = file_signature(os.stat(root))
        except OSError:
            continue
        for record in parse_history_fallbacks(root, existing_session_ids, signature):
            _merge(by_session_id, record)

    cache.prune(seen_file_paths)
    cache.flush()

    records = sorted(by_session_id.values(), key=lambda r: r.summary.updated_at, reverse=True)
    stats.duration_ms = int((time.monotonic() - started) * 1000)

    logger.info(
        "Scanned sessions: total=%d parsed=%d cache_hits=%d duration_ms=%d",
        stats.total_files, stats.parsed_files, stats.cache_hits, stats.duration_ms,
    )
    return ScanSessionFilesResult(records=records, stats=stats)
