"""Tests for the in-memory session index."""

import pytest

from ace_exporter.core import SessionIndexRecord, SessionSummary
from ace_exporter.index import SessionIndex, SessionNotIndexedError


def _record(session_id):
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
            project_name="app",
        ),
    )


def test_replace_swaps_whole_table():
    index = SessionIndex([_record("A"), _record("B")])
    old_a = index.get("A")

    index.replace([_record("B"), _record("C")])

    assert "A" not in index
    assert index.get("A") is None
    assert sorted(r.session_id for r in index.get_all()) == ["B", "C"]
    assert len(index) == 2
    # Records handed out earlier stay intact
    assert old_a.session_id == "A"


def test_require_raises_for_unknown_session():
    index = SessionIndex()

    with pytest.raises(SessionNotIndexedError) as exc_info:
        index.require("missing")

    assert exc_info.value.session_id == "missing"
    assert str(exc_info.value) == "Session not indexed: missing"
    assert isinstance(exc_info.value, LookupError)


def test_clear():
    index = SessionIndex([_record("A")])
    index.clear()
    assert len(index) == 0
