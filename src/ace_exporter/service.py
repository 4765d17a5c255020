"""Orchestrates scanning, transcript parsing, rendering and export.

``SessionService`` owns every piece of mutable state the exporter keeps
between requests: the session index, the two LRU caches, the signature
each session had at the last scan, and the persisted scan cache.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Optional, Union

from . import clipboard as system_clipboard
from .config import get_global_state_path, get_scan_cache_path
from .core import MarkdownBundle, ScanStats, SessionSummary, SessionTranscript
from .export import (
    ClipboardWriter,
    ExportRequest,
    ExportResult,
    build_latest_quick_export_request,
    export_markdown_files,
)
from .global_state import apply_global_state, load_global_state
from .index import SessionIndex
from .lru import LRUCache
from .markdown import render_markdown
from .parser import parse_session_transcript
from .scan_cache import SessionScanCache
from .scanner import scan_session_files
from .settings import SettingsStore

logger = logging.getLogger(__name__)

TRANSCRIPT_CACHE_LIMIT = 48
MARKDOWN_CACHE_LIMIT = 96


@dataclass
class ScanResult:
    sessions: list[SessionSummary] = field(default_factory=list)
    stats: ScanStats = field(default_factory=ScanStats)


@dataclass
class QuickExportResult:
    path: Optional[str] = None
    copied: bool = False
    warnings: list[str] = field(default_factory=list)


def cache_key(session_id: str, mode: str, detail: str) -> str:
    return f"{session_id}:{mode}:{detail}"


class SessionService:
    """Process-wide session state with an explicit lifecycle.

    Scans are serialized with a lock so the index is only ever replaced by
    one scan at a time.
    """

    def __init__(
        self,
        settings_store: Optional[SettingsStore] = None,
        scan_cache: Optional[SessionScanCache] = None,
        global_state_path: Optional[Union[str, Path]] = None,
        clipboard: Optional[ClipboardWriter] = system_clipboard.copy_text,
        transcript_cache_limit: int = TRANSCRIPT_CACHE_LIMIT,
        markdown_cache_limit: int = MARKDOWN_CACHE_LIMIT,
    ):
        self.settings_store = settings_store or SettingsStore()
        self.scan_cache = scan_cache if scan_cache is not None else SessionScanCache(get_scan_cache_path())
        self.global_state_path = global_state_path
        self.clipboard = clipboard
        self.index = SessionIndex()
        self.transcript_cache: LRUCache[SessionTranscript] = LRUCache(transcript_cache_limit)
        self.markdown_cache: LRUCache[MarkdownBundle] = LRUCache(markdown_cache_limit)
        self.session_signatures: dict[str, Optional[str]] = {}
        self._invalidations: dict[str, int] = {}
        self._generation = 0
        self.sessions: list[SessionSummary] = []
        self._scan_lock = asyncio.Lock()

    def clear(self) -> None:
        self._generation += 1
        self.index.clear()
        self.transcript_cache.clear()
        self.markdown_cache.clear()
        self.session_signatures.clear()
        self.sessions = []

    def _snapshot(self, session_id: str) -> tuple[int, int]:
        return self._generation, self._invalidations.get(session_id, 0)

    def invalidate_session(self, session_id: str) -> None:
        self._invalidations[session_id] = self._invalidations.get(session_id, 0) + 1
        prefix = f"{session_id}:"
        self.transcript_cache.invalidate_prefix(prefix)
        self.markdown_cache.invalidate_prefix(prefix)

    async def scan_sessions(self) -> ScanResult:
        async with self._scan_lock:
            settings = self.settings_store.get()
            state_path = self.global_state_path or get_global_state_path()

            scanned, global_state = await asyncio.gather(
                asyncio.to_thread(scan_session_files, settings.data_roots, self.scan_cache),
                asyncio.to_thread(load_global_state, state_path),
            )
            records = scanned.records
            apply_global_state(records, global_state)

            next_signatures = {record.session_id: record.file_signature for record in records}
            for session_id in set(self.session_signatures) | set(next_signatures):
                previous = self.session_signatures.get(session_id)
                current = next_signatures.get(session_id)
                if not current or current != previous:
                    self.invalidate_session(session_id)
            self.session_signatures = next_signatures

            self.index.replace(records)

            sessions = [
                record.summary for record in records
                if settings.include_archived or not record.summary.archived
            ]
            sessions.sort(key=lambda s: s.updated_at, reverse=True)
            self.sessions = sessions

            stats = scanned.stats
            logger.info(
                "sessions:scan total=%d parsed=%d cache_hits=%d duration_ms=%d",
                stats.total_files, stats.parsed_files, stats.cache_hits, stats.duration_ms,
            )
            return ScanResult(sessions=sessions, stats=stats)

    async def get_markdown_bundle(self, session_id: str, mode: str, detail: str = "full") -> MarkdownBundle:
        key = cache_key(session_id, mode, detail)
        cached = self.markdown_cache.get(key)
        if cached is not None:
            logger.debug(
                "preview:load session=%s mode=%s detail=%s truncated=%s cache=hit",
                session_id[:8], mode, detail, cached.truncated,
            )
            return cached

        generation = self._snapshot(session_id)
        transcript = self.transcript_cache.get(key)
        parse_ms = 0
        if transcript is None:
            started = time.monotonic()
            transcript = await asyncio.to_thread(
                parse_session_transcript, self.index, session_id, mode, detail
            )
            parse_ms = int((time.monotonic() - started) * 1000)
            if self._snapshot(session_id) == generation:
                self.transcript_cache.set(key, transcript)

        started = time.monotonic()
        rendered = render_markdown(transcript, mode, detail)
        render_ms = int((time.monotonic() - started) * 1000)

        bundle = MarkdownBundle.build(
            session_id=session_id,
            title=transcript.title,
            markdown=rendered.markdown,
            warnings=transcript.warnings,
            has_more=rendered.has_more,
            truncated=rendered.truncated,
        )
        # A rescan invalidated this session mid-load; serve the result but do not cache it.
        if self._snapshot(session_id) == generation:
            self.markdown_cache.set(key, bundle)

        logger.debug(
            "preview:load session=%s mode=%s detail=%s parse_ms=%d render_ms=%d truncated=%s cache=miss",
            session_id[:8], mode, detail, parse_ms, render_ms, bundle.truncated,
        )
        return bundle

    async def load_session(self, session_id: str, mode: str, detail: str = "preview") -> dict:
        bundle = await self.get_markdown_bundle(session_id, mode, detail)
        return bundle.to_preview_result()

    async def _load_full_markdown(self, session_id: str, mode: str) -> MarkdownBundle:
        return await self.get_markdown_bundle(session_id, mode, "full")

    async def export_markdown(self, request: ExportRequest) -> ExportResult:
        settings = self.settings_store.get()
        return await export_markdown_files(
            request,
            self._load_full_markdown,
            settings.default_export_directory,
            clipboard=self.clipboard,
        )

    async def quick_export_latest(self, mode: str) -> QuickExportResult:
        if not self.sessions:
            await self.scan_sessions()

        latest = self.sessions[0] if self.sessions else None
        if latest is None:
            all_records = self.index.get_all()
            latest = all_records[0].summary if all_records else None
        if latest is None:
            return QuickExportResult(warnings=["No sessions found to export."])

        settings = self.settings_store.get()
        request = build_latest_quick_export_request(latest, mode)
        request.destination_path = str(
            Path(settings.default_export_directory)
            / f"{latest.session_id[:12]}_{date.today().isoformat()}.md"
        )
        result = await self.export_markdown(request)
        return QuickExportResult(
            path=result.written[0] if result.written else None,
            copied=result.copied,
            warnings=result.warnings,
        )
