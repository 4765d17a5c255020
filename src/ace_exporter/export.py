"""Write rendered session Markdown to disk and/or the clipboard."""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Optional

from .clipboard import ClipboardError
from .core import MarkdownBundle, SessionSummary

logger = logging.getLogger(__name__)

MarkdownLoader = Callable[[str, str], Awaitable[MarkdownBundle]]
ClipboardWriter = Callable[[str], None]

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


@dataclass
class ExportRequest:
    session_ids: list[str]
    mode: str = "clean"  # "clean" | "develop"
    strategy: str = "single_file"  # "single_file" | "one_file_per_session"
    destination_path: Optional[str] = None
    copy_to_clipboard: bool = False


@dataclass
class ExportResult:
    written: list[str] = field(default_factory=list)
    copied: bool = False
    warnings: list[str] = field(default_factory=list)


def slugify(value: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to '-', cap at 70 chars."""
    return _NON_ALNUM_RE.sub("-", value.lower()).strip("-")[:70]


def session_file_name(bundle: MarkdownBundle) -> str:
    stem = slugify(bundle.title or bundle.session_id) or bundle.session_id
    return f"{stem}_{bundle.session_id[:8]}.md"


def default_file_name(prefix: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"{prefix}_{now.strftime('%Y-%m-%d_%H%M')}.md"


def combine_bundles(bundles: list[MarkdownBundle]) -> str:
    return "\n\n---\n\n".join(
        f"<!-- Session {bundle.session_id} -->\n\n{bundle.markdown.strip()}\n"
        for bundle in bundles
    )


def _write(path: Path, content: str) -> str:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return str(path)


def _copy(text: str, clipboard: Optional[ClipboardWriter], warnings: list[str]) -> bool:
    if clipboard is None:
        warnings.append("Clipboard is not available; nothing was copied.")
        return False
    try:
        clipboard(text)
    except ClipboardError as e:
        logger.warning("Clipboard copy failed: %s", e)
        warnings.append(f"Clipboard copy failed: {e}")
        return False
    return True


async def export_markdown_files(
    request: ExportRequest,
    load_markdown: MarkdownLoader,
    default_directory: str,
    clipboard: Optional[ClipboardWriter] = None,
) -> ExportResult:
    """Export the requested sessions.

    Bundles are loaded concurrently and combined in request order. Errors
    writing files propagate to the caller.
    """
    bundles = await asyncio.gather(
        *(load_markdown(session_id, request.mode) for session_id in request.session_ids)
    )

    result = ExportResult()
    for bundle in bundles:
        result.warnings.extend(bundle.warnings)

    if request.strategy == "single_file":
        combined = combine_bundles(bundles)

        if request.copy_to_clipboard:
            result.copied = _copy(combined, clipboard, result.warnings)

        if request.destination_path:
            result.written.append(_write(Path(request.destination_path), combined))

        if not request.copy_to_clipboard and not request.destination_path:
            output_path = Path(default_directory) / default_file_name("codex_export")
            result.written.append(_write(output_path, combined))

        logger.info("Exported %d session(s) to %s", len(bundles), result.written or "clipboard")
        return result

    destination_dir = Path(request.destination_path or default_directory)
    destination_dir.mkdir(parents=True, exist_ok=True)

    for bundle in bundles:
        result.written.append(_write(destination_dir / session_file_name(bundle), bundle.markdown))

    if request.copy_to_clipboard:
        joined = "\n\n---\n\n".join(bundle.markdown.strip() for bundle in bundles)
        result.copied = _copy(joined, clipboard, result.warnings)

    logger.info("Exported %d session file(s) to %s", len(bundles), destination_dir)
    return result


def build_latest_quick_export_request(session: SessionSummary, mode: str) -> ExportRequest:
    return ExportRequest(session_ids=[session.session_id], mode=mode, strategy="single_file")
