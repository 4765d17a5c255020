"""Shared test fixtures for ace-exporter."""

import json

import pytest

from ace_exporter.scan_cache import SessionScanCache
from ace_exporter.service import SessionService
from ace_exporter.settings import SettingsStore
from logdata import (
    ARCHIVED_ID,
    HISTORY_ID,
    LIVE_ID,
    event,
    function_call,
    function_call_output,
    history,
    message,
    meta,
    reasoning,
    write_jsonl,
)


@pytest.fixture
def codex_home(tmp_path, monkeypatch):
    """Create a synthetic ~/.codex with live, archived and legacy history data."""
    home = tmp_path / ".codex"

    monkeypatch.setenv("ACE_CODEX_HOME", str(home))
    monkeypatch.setenv("ACE_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setenv("ACE_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("ACE_EXPORT_DIR", str(tmp_path / "exports"))
    monkeypatch.delenv("ACE_GLOBAL_STATE_PATH", raising=False)

    write_jsonl(
        home / "sessions" / "2025" / "01" / "15" / f"rollout-2025-01-15T10-00-00-{LIVE_ID}.jsonl",
        [
            meta(LIVE_ID, cwd="/Users/test/dev/webapp/api", ts="2025-01-15T10:00:00.000Z",
                 repository_url="git@github.com:acme/webapp.git"),
            # 1. Environment context only: counted, but empty after sanitizing
            message("user", "<environment_context>\n  <cwd>/Users/test/dev/webapp</cwd>\n</environment_context>",
                    "2025-01-15T10:00:01.000Z"),
            # 2. Developer instructions
            message("developer", "Follow the repo conventions.", "2025-01-15T10:00:02.000Z"),
            # 3. First real prompt
            message("user", "Add a health check endpoint", "2025-01-15T10:00:03.000Z"),
            reasoning("Need to find the router", "2025-01-15T10:00:04.000Z"),
            function_call("shell", '{"command":["rg","router"]}', "2025-01-15T10:00:05.000Z"),
            function_call_output("src/router.py:12", "2025-01-15T10:00:06.000Z"),
            event("token_count", "2025-01-15T10:00:07.000Z", info={"total": 1200}),
            # 4. Malformed line
            '{"bad json',
            message("assistant", "Added `/health` to the router.", "2025-01-15T10:00:08.000Z"),
            event("agent_message", "2025-01-15T10:00:09.000Z", message="Added /health"),
        ],
    )

    write_jsonl(
        home / "archived_sessions" / f"rollout-2025-01-10T08-00-00-{ARCHIVED_ID}.jsonl",
        [
            meta(ARCHIVED_ID, cwd="/Users/test/dev/docs", ts="2025-01-10T08:00:00.000Z",
                 source="vscode", originator="Codex Desktop"),
            message("user", "Summarize the changelog", "2025-01-10T08:00:05.000Z"),
            message("assistant", "Here is the summary.", "2025-01-10T08:00:30.000Z"),
        ],
    )

    write_jsonl(
        home / "history.jsonl",
        [
            history(LIVE_ID, 1736935203, "Add a health check endpoint"),
            history(HISTORY_ID, 1736000000, "Old prompt one"),
            history(HISTORY_ID, 1736000600, "Old prompt two"),
            history(HISTORY_ID, 1735999000, "Earliest prompt"),
        ],
    )

    (home / ".codex-global-state.json").write_text(json.dumps({
        "thread-titles": {"titles": {ARCHIVED_ID: "Changelog digest"}},
        "electron-saved-workspace-roots": ["/Users/test/dev/webapp"],
    }), encoding="utf-8")

    return home


class FakeClipboard:
    def __init__(self):
        self.copied: list[str] = []

    def __call__(self, text: str) -> None:
        self.copied.append(text)


@pytest.fixture
def clipboard():
    return FakeClipboard()


@pytest.fixture
def service(codex_home, tmp_path, clipboard):
    """A SessionService isolated to the synthetic Codex home."""
    return SessionService(
        settings_store=SettingsStore(tmp_path / "config" / "settings.json"),
        scan_cache=SessionScanCache(tmp_path / "cache" / "scan-cache.json"),
        global_state_path=codex_home / ".codex-global-state.json",
        clipboard=clipboard,
    )
