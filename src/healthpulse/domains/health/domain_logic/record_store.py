"""Record store interface consumed by the scoring engine."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from healthpulse.core.storage.models import RecordKind


@runtime_checkable
class RecordStore(Protocol):
    """Narrow read/write interface over a patient's health records.

    The calculator and detector only read through this interface; whether
    records come from SQLite, a remote API or an in-memory fixture is not
    their concern.
    """

    def fetch_latest(self, kind: RecordKind, patient_id: str) -> Any | None:
        """Most recent record of ``kind`` for the patient, or None."""
        ...

    def fetch_history(
        self,
        kind: RecordKind,
        patient_id: str,
        *,
        ascending: bool = True,
    ) -> list[Any]:
        """All records of ``kind`` for the patient, ordered by timestamp."""
        ...

    def insert(self, kind: RecordKind, record: Any) -> str:
        """Persist a record and return its id."""
        ...
