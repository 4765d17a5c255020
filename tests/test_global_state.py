"""Tests for the desktop global state overlay."""

import json

from ace_exporter.core import SessionIndexRecord, SessionSummary
from ace_exporter.global_state import (
    GlobalState,
    apply_global_state,
    load_global_state,
    match_workspace_root,
)


def _record(session_id, cwd, title="Original", project="api"):
    return SessionIndexRecord(
        session_id=session_id,
        kind="session_file",
        file_path=f"/logs/{session_id}.jsonl",
        summary=SessionSummary(
            session_id=session_id,
            file_path=f"/logs/{session_id}.jsonl",
            source="cli",
            created_at="2025-01-01T00:00:00.000Z",
            updated_at="2025-01-01T00:00:00.000Z",
            project_name=project,
            cwd=cwd,
            title=title,
        ),
    )


class TestLoadGlobalState:
    def test_reads_titles_and_roots(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({
            "thread-titles": {"titles": {"S1": "Renamed", "S2": "", "S3": 7}},
            "electron-saved-workspace-roots": ["/repo", "", None, "/other"],
        }), encoding="utf-8")

        state = load_global_state(path)

        assert state.thread_titles == {"S1": "Renamed"}
        assert state.workspace_roots == ["/repo", "/other"]

    def test_missing_file_is_empty(self, tmp_path):
        assert load_global_state(tmp_path / "missing.json") == GlobalState()
        assert load_global_state(None) == GlobalState()

    def test_malformed_file_is_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{nope", encoding="utf-8")
        assert load_global_state(path) == GlobalState()

        path.write_text("[1, 2]", encoding="utf-8")
        assert load_global_state(path) == GlobalState()

    def test_wrong_section_types_are_ignored(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({
            "thread-titles": ["not", "a", "dict"],
            "electron-saved-workspace-roots": "/repo",
        }), encoding="utf-8")

        assert load_global_state(path) == GlobalState()


class TestMatchWorkspaceRoot:
    def test_exact_and_nested(self):
        assert match_workspace_root("/repo/app", ["/repo/app"]) == "app"
        assert match_workspace_root("/repo/app/src", ["/repo/app/"]) == "app"
        assert match_workspace_root("C:\\work\\tool\\src", ["C:\\work\\tool"]) == "tool"

    def test_sibling_prefix_does_not_match(self):
        assert match_workspace_root("/repo/app-old", ["/repo/app"]) is None

    def test_first_matching_root_wins(self):
        assert match_workspace_root("/repo/app/src", ["/repo", "/repo/app"]) == "repo"

    def test_no_cwd(self):
        assert match_workspace_root(None, ["/repo"]) is None
        assert match_workspace_root("", ["/repo"]) is None


def test_apply_global_state():
    inside = _record("S1", "/Users/test/dev/webapp/api")
    outside = _record("S2", "/Users/test/dev/docs", project="docs")
    state = GlobalState(
        thread_titles={"S2": "Changelog digest"},
        workspace_roots=["/Users/test/dev/webapp"],
    )

    apply_global_state([inside, outside], state)

    assert inside.summary.project_name == "webapp"
    assert inside.summary.in_workspace is True
    assert inside.summary.title == "Original"

    assert outside.summary.project_name == "docs"
    assert outside.summary.in_workspace is False
    assert outside.summary.title == "Changelog digest"


def test_apply_empty_state_changes_nothing():
    record = _record("S1", "/repo/app")
    before = record.summary.to_dict()

    apply_global_state([record], GlobalState())

    assert record.summary.to_dict() == before
