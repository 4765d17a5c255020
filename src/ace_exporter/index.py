"""In-memory lookup from session identity to its authoritative record."""

from typing import Iterable, Optional

from .core import SessionIndexRecord


class SessionNotIndexedError(LookupError):
    """Raised when a session is requested before any scan has found it."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not indexed: {session_id}")
        self.session_id = session_id


class SessionIndex:
    """Holds the records of the latest scan.

    ``replace`` builds a complete new table and swaps it in with a single
    assignment, so readers see either the old or the new table.
    """

    def __init__(self, records: Iterable[SessionIndexRecord] = ()):
        self._records: dict[str, SessionIndexRecord] = {}
        self.replace(records)

    def replace(self, records: Iterable[SessionIndexRecord]) -> None:
        table = {}
        for record in records:
            table[record.session_id] = record
        self._records = table

    def get(self, session_id: str) -> Optional[SessionIndexRecord]:
        return self._records.get(session_id)

    def require(self, session_id: str) -> SessionIndexRecord:
        record = self._records.get(session_id)
        if record is None:
            raise SessionNotIndexedError(session_id)
        return record

    def get_all(self) -> list[SessionIndexRecord]:
        return list(self._records.values())

    def clear(self) -> None:
        self._records = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._records
