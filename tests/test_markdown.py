"""Tests for Markdown rendering."""

import re

import pytest

from ace_exporter.core import SessionMessage, SessionTranscript, ToolEvent
from ace_exporter.index import SessionIndex
from ace_exporter.markdown import (
    PREVIEW_NOTICE,
    code_fence,
    format_timestamp,
    render_markdown,
    render_tool_event,
)
from ace_exporter.parser import parse_session_transcript
from ace_exporter.preview import PREVIEW_CHAR_GUARD, PREVIEW_LINE_GUARD
from ace_exporter.scan_cache import SessionScanCache
from ace_exporter.scanner import scan_session_files
from logdata import LIVE_ID


def _transcript(messages=(), **overrides):
    fields = dict(
        session_id="S1",
        source="cli",
        title="Fix bug",
        created_at="2025-03-01T09:00:00.000Z",
        updated_at="2025-03-01T09:00:02.000Z",
        cwd="/repo/app",
        partial=False,
        messages=list(messages),
    )
    fields.update(overrides)
    return SessionTranscript(**fields)


def _msg(role, text, ts="2025-03-01T09:00:01.000Z", n=1):
    return SessionMessage(id=f"S1:message:{n}", role=role, text=text, timestamp=ts)


@pytest.fixture
def live_index(codex_home, tmp_path):
    result = scan_session_files(
        [str(codex_home / "sessions")], SessionScanCache(tmp_path / "scan-cache.json")
    )
    return SessionIndex(result.records)


class TestCleanTemplate:
    def test_two_message_conversation(self):
        transcript = _transcript([
            _msg("user", "Fix bug", n=2),
            _msg("assistant", "Done", "2025-03-01T09:00:02.000Z", n=3),
        ])

        markdown = render_markdown(transcript, "clean").markdown

        assert markdown.startswith("# Fix bug\n")
        assert re.findall(r"^## .+$", markdown, re.MULTILINE) == ["## User", "## Assistant"]
        assert "- Session ID: `S1`" in markdown
        assert "- Source: `cli`" in markdown
        assert "- CWD: /repo/app" in markdown
        assert "- Partial: no" in markdown
        assert f"> {format_timestamp('2025-03-01T09:00:01.000Z')}" in markdown
        assert markdown.index("Fix bug\n\n## Assistant") > 0
        assert markdown.endswith("Done\n")

    def test_only_user_and_assistant(self, live_index):
        transcript = parse_session_transcript(live_index, LIVE_ID, "clean")

        markdown = render_markdown(transcript, "clean").markdown

        assert "Follow the repo conventions." not in markdown
        assert "## Developer" not in markdown
        assert "router.py" not in markdown
        assert "Added `/health` to the router." in markdown

    def test_missing_cwd_and_partial(self):
        markdown = render_markdown(_transcript(cwd=None, partial=True), "clean").markdown
        assert "- CWD: N/A" in markdown
        assert "- Partial: yes" in markdown

    def test_warnings_block(self):
        transcript = _transcript([_msg("user", "hi")], warnings=["Skipped malformed JSON in /x:2"])

        markdown = render_markdown(transcript, "clean").markdown

        assert "## Warnings\n\n> [!] Skipped malformed JSON in /x:2\n" in markdown
        assert markdown.endswith("> [!] Skipped malformed JSON in /x:2\n")


class TestDevelopTemplate:
    def test_full_trace(self, live_index):
        transcript = parse_session_transcript(live_index, LIVE_ID, "develop", "full")

        markdown = render_markdown(transcript, "develop", "full").markdown

        assert markdown.startswith("# Add a health check endpoint (Develop)\n")
        assert "### Developer · " in markdown
        assert "### User · " in markdown
        assert "### Assistant · " in markdown
        assert "## Tool And Event Trace" in markdown
        assert markdown.count("<details>") == 5
        assert "<summary>function_call (shell) · " in markdown
        assert "## Tool And Event Summary" not in markdown

    def test_preview_summary(self, live_index):
        transcript = parse_session_transcript(live_index, LIVE_ID, "develop", "preview")

        markdown = render_markdown(transcript, "develop", "preview").markdown

        assert "## Tool And Event Summary" in markdown
        assert "- Total events captured: 5" in markdown
        assert "- function_call: 1" in markdown
        assert "<details>" not in markdown
        assert PREVIEW_NOTICE not in markdown

    def test_no_tool_sections_without_tools(self):
        markdown = render_markdown(_transcript([_msg("user", "hi")]), "develop", "full").markdown
        assert "## Tool And Event" not in markdown


class TestPreviewGuards:
    def test_preview_output_is_bounded(self):
        messages = [
            _msg("user" if i % 2 == 0 else "assistant", "z" * 5_000, n=i)
            for i in range(100)
        ]
        transcript = _transcript(messages)

        preview = render_markdown(transcript, "clean", "preview")
        full = render_markdown(transcript, "clean", "full")

        assert preview.truncated is True
        assert preview.has_more is True
        assert preview.markdown.rstrip().endswith(PREVIEW_NOTICE)
        # One block of overshoot at most
        assert len(preview.markdown) < PREVIEW_CHAR_GUARD + 5_000 + len(PREVIEW_NOTICE) + 200
        assert full.truncated is False
        assert full.markdown.count("## User") == 50

    def test_line_guard(self):
        text = "\n".join(["row"] * 100)
        transcript = _transcript([_msg("user", text, n=i) for i in range(50)])

        preview = render_markdown(transcript, "develop", "preview")

        assert preview.truncated is True
        assert preview.markdown.count("\n") < PREVIEW_LINE_GUARD + 200

    def test_parser_truncation_adds_notice(self):
        transcript = _transcript([_msg("user", "hi")], has_more=True, truncated=True)

        preview = render_markdown(transcript, "clean", "preview")
        full = render_markdown(transcript, "clean", "full")

        assert preview.has_more is True
        assert PREVIEW_NOTICE in preview.markdown
        assert PREVIEW_NOTICE not in full.markdown


class TestCodeFence:
    def test_plain(self):
        assert code_fence('{"a": 1}', "json") == '```json\n{"a": 1}\n```'

    def test_longer_than_inner_backticks(self):
        fenced = code_fence("before\n````\ninner\n````\nafter")
        assert fenced.startswith("`````\n")
        assert fenced.endswith("\n`````")

    def test_tool_event_payload_with_fences(self):
        event = ToolEvent(
            id="S1:tool:3",
            timestamp="2025-03-01T09:00:01.000Z",
            type="function_call_output",
            payload={"output": "```python\nprint(1)\n```"},
        )

        block = render_tool_event(event)

        assert block.startswith("<details>\n<summary>function_call_output · ")
        assert "\n````json\n" in block
        assert block.endswith("````\n</details>")


def test_format_timestamp_passes_through_garbage():
    assert format_timestamp("not a date") == "not a date"
