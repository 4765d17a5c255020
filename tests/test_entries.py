"""Tests for decoding rollout lines into entry variants."""

from ace_exporter.entries import (
    EventEntry,
    MessageEntry,
    SessionMetaEntry,
    ToolEntry,
    UnknownEntry,
    decode_entry,
    decode_history_entry,
    extract_message_text,
)
from logdata import event, function_call, history, message, meta


def test_decode_session_meta():
    entry = decode_entry(meta("S1", cwd="/repo", repository_url="https://x/acme/app.git"))

    assert isinstance(entry, SessionMetaEntry)
    assert entry.session_id == "S1"
    assert entry.cwd == "/repo"
    assert entry.repository_url == "https://x/acme/app.git"
    assert entry.created == "2025-01-15T10:00:00.000Z"


def test_decode_message_and_tool():
    msg = decode_entry(message("user", "hi", "2025-01-01T00:00:00Z"))
    tool = decode_entry(function_call("shell", "{}", "2025-01-01T00:00:01Z"))

    assert isinstance(msg, MessageEntry)
    assert msg.role == "user"
    assert isinstance(tool, ToolEntry)
    assert tool.type == "function_call"
    assert tool.name == "shell"


def test_decode_event_uses_payload_type():
    entry = decode_entry(event("token_count", "2025-01-01T00:00:00Z", info={}))
    assert isinstance(entry, EventEntry)
    assert entry.type == "token_count"

    bare = decode_entry({"type": "event_msg", "payload": {}})
    assert bare.type == "event_msg"


def test_unknown_shapes():
    assert isinstance(decode_entry([1, 2]), UnknownEntry)
    assert isinstance(decode_entry({"type": "turn_context", "payload": {}}), UnknownEntry)
    unknown_item = decode_entry({"type": "response_item", "payload": {"type": "local_shell_call"}})
    assert isinstance(unknown_item, UnknownEntry)


def test_decode_history_entry():
    entry = decode_history_entry(history("H1", 1736000000, "prompt"))
    assert entry.session_id == "H1"
    assert entry.text == "prompt"

    assert decode_history_entry({"ts": 1, "text": "no id"}) is None
    assert decode_history_entry("line") is None


class TestExtractMessageText:
    def test_joins_text_parts(self):
        content = [
            {"type": "input_text", "text": " first "},
            {"type": "input_text", "text": ""},
            {"type": "output_text", "text": "second"},
            {"type": "tool_use", "text": "ignored"},
        ]
        assert extract_message_text(content) == "first\n\nsecond"

    def test_images(self):
        content = [
            {"type": "input_text", "text": "look"},
            {"type": "input_image", "url": "https://img/x.png"},
            {"type": "image", "path": "/tmp/shot.png"},
            {"type": "image"},
        ]
        assert extract_message_text(content) == (
            "look\n\n![image](https://img/x.png)\n\n![image](/tmp/shot.png)\n\n[Image omitted]"
        )
        assert extract_message_text(content, render_images=False) == (
            "look\n\n[Image]\n\n[Image]\n\n[Image]"
        )

    def test_inline_image_data_is_omitted(self):
        content = [
            {"type": "input_text", "text": "look"},
            {"type": "input_image", "image_url": "data:image/png;base64,AAA"},
        ]
        assert extract_message_text(content) == "look\n\n[Image omitted]"
