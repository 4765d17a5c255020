"""Render session transcripts as Markdown.

Two templates:
- clean: title, metadata and the user/assistant conversation.
- develop: every message role, plus either the full tool/event trace
  (detail="full") or a per-type summary table (detail="preview").
"""

import json
import re
from dataclasses import dataclass

from .core import SessionTranscript, ToolEvent, parse_iso
from .preview import PreviewBudget, count_lines

PREVIEW_NOTICE = "> [!] Preview truncated. Load full preview for complete content."

_BACKTICK_RUN_RE = re.compile(r"`+")

_ROLE_HEADINGS = {
    "user": "User",
    "assistant": "Assistant",
    "developer": "Developer",
    "system": "System",
}


@dataclass
class RenderedMarkdown:
    markdown: str
    truncated: bool
    has_more: bool


def format_timestamp(value: str, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
    """Format an ISO timestamp in local time; unparsable values pass through."""
    parsed = parse_iso(value)
    if parsed is None:
        return value
    return parsed.astimezone().strftime(fmt)


def code_fence(text: str, language: str = "") -> str:
    """Wrap ``text`` in a fence longer than any backtick run inside it."""
    longest = max((len(run) for run in _BACKTICK_RUN_RE.findall(text)), default=0)
    ticks = "`" * max(3, longest + 1)
    return f"{ticks}{language}\n{text}\n{ticks}"


def role_heading(role: str) -> str:
    return _ROLE_HEADINGS.get(role.lower(), role)


def render_metadata(transcript: SessionTranscript) -> str:
    return "\n".join([
        f"- Session ID: `{transcript.session_id}`",
        f"- Source: `{transcript.source}`",
        f"- Created: {format_timestamp(transcript.created_at)}",
        f"- Updated: {format_timestamp(transcript.updated_at)}",
        f"- CWD: {transcript.cwd or 'N/A'}",
        f"- Partial: {'yes' if transcript.partial else 'no'}",
    ])


def render_tool_event(event: ToolEvent) -> str:
    title = f"{event.type} ({event.name})" if event.name else event.type
    if isinstance(event.payload, str):
        payload = event.payload
    else:
        payload = json.dumps(event.payload, indent=2, ensure_ascii=False, default=str)
    return "\n".join([
        "<details>",
        f"<summary>{title} · {format_timestamp(event.timestamp, '%H:%M:%S')}</summary>",
        "",
        code_fence(payload, "json"),
        "</details>",
    ])


def render_warnings(warnings: list[str]) -> str:
    if not warnings:
        return ""
    return "\n".join(["## Warnings", "", *(f"> [!] {w}" for w in warnings), ""])


class _MarkdownWriter:
    """Collects output lines and trips once the preview budget is spent."""

    def __init__(self, detail: str):
        self.lines: list[str] = []
        self.detail = detail
        self.budget = PreviewBudget(enabled=detail == "preview")

    def line(self, text: str = "") -> bool:
        self.lines.append(text)
        return self.budget.add(len(text) + 1, 1)

    def block(self, text: str) -> bool:
        self.lines.append(text)
        return self.budget.add(len(text) + 1, count_lines(text))

    def finish(self, transcript: SessionTranscript) -> RenderedMarkdown:
        warning_block = render_warnings(transcript.warnings)
        if warning_block:
            self.block(warning_block)

        has_more = bool(transcript.has_more or self.budget.exceeded)
        if has_more and self.detail == "preview":
            self.line()
            self.line(PREVIEW_NOTICE)

        markdown = "\n".join(self.lines).strip() + "\n"
        return RenderedMarkdown(markdown=markdown, truncated=has_more, has_more=has_more)


def _render_clean(transcript: SessionTranscript, detail: str) -> RenderedMarkdown:
    out = _MarkdownWriter(detail)
    out.line(f"# {transcript.title}")
    out.line()
    out.block(render_metadata(transcript))
    out.line()
    out.line("---")
    out.line()

    for message in transcript.messages:
        if message.role not in ("user", "assistant"):
            continue
        if (
            out.line(f"## {role_heading(message.role)}")
            or out.line(f"> {format_timestamp(message.timestamp)}")
            or out.line()
            or out.block(message.text)
            or out.line()
        ):
            break

    return out.finish(transcript)


def _render_develop(transcript: SessionTranscript, detail: str) -> RenderedMarkdown:
    out = _MarkdownWriter(detail)
    out.line(f"# {transcript.title} (Develop)")
    out.line()
    out.block(render_metadata(transcript))
    out.line()
    out.line("---")
    out.line()

    for message in transcript.messages:
        heading = f"### {role_heading(message.role)} · {format_timestamp(message.timestamp)}"
        if out.line(heading) or out.line() or out.block(message.text) or out.line():
            break

    if detail == "full":
        if transcript.tool_events:
            out.line("## Tool And Event Trace")
            out.line()
            for event in transcript.tool_events:
                if out.block(render_tool_event(event)) or out.line():
                    break
    elif transcript.tool_event_total:
        out.line("## Tool And Event Summary")
        out.line()
        out.line(f"- Total events captured: {transcript.tool_event_total}")
        for event_type, count in (transcript.tool_event_summary or {}).items():
            if out.line(f"- {event_type}: {count}"):
                break
        out.line()

    return out.finish(transcript)


def render_markdown(transcript: SessionTranscript, mode: str, detail: str = "full") -> RenderedMarkdown:
    if mode == "develop":
        return _render_develop(transcript, detail)
    return _render_clean(transcript, detail)
