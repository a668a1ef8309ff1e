"""Score-then-persist orchestration, serialized per patient.

Calculating a score reads the patient's stored score history (for the trend)
and the new score is then appended to that same history. Two overlapping
requests for one patient would both read the old history and write
out-of-order rows, so :class:`ScoringService` holds a per-patient lock across
the read and the write. Requests for different patients never contend.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from healthpulse.core.storage.models import HealthCorrelation, HealthScore
from healthpulse.core.storage.repository import HealthRepository
from healthpulse.domains.health.domain_logic.correlation_detector import CorrelationDetector
from healthpulse.domains.health.domain_logic.health_score import HealthScoreCalculator

logger = logging.getLogger(__name__)


@dataclass
class ScoringOutcome:
    """A persisted score, the correlations found alongside it, and chart data."""

    score: HealthScore
    correlations: list[HealthCorrelation] = field(default_factory=list)
    series_dates: list[str] = field(default_factory=list)
    series_scores: list[int] = field(default_factory=list)


@dataclass
class _PatientLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


class ScoringService:
    """Runs the calculator and detector, then persists their output.

    Usage::

        service = ScoringService(repository)
        outcome = service.score_patient("patient-123")
        outcome.score.overall_score
    """

    def __init__(self, repository: HealthRepository, *, series_limit: int = 30) -> None:
        self._repo = repository
        self._calculator = HealthScoreCalculator(repository)
        self._detector = CorrelationDetector(repository)
        self._series_limit = series_limit
        # Entries live only while some thread is scoring that patient
        self._locks: dict[str, _PatientLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _patient_lock(self, patient_id: str) -> Iterator[None]:
        with self._locks_guard:
            entry = self._locks.setdefault(patient_id, _PatientLock())
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._locks[patient_id]

    def score_patient(self, patient_id: str) -> ScoringOutcome:
        """Calculate and persist a new score and the patient's current correlations.

        Stored correlations are replaced, not appended to, so they always
        reflect the latest detection run.
        """
        with self._patient_lock(patient_id):
            score = self._calculator.calculate(patient_id)
            correlations = self._detector.detect(patient_id)

            self._repo.insert("health_score", score)
            self._repo.replace_correlations(patient_id, correlations)

            series = self._repo.get_score_series(patient_id, limit=self._series_limit)

        logger.info(
            "Scored patient %s: overall=%d risk=%s, %d correlations",
            patient_id,
            score.overall_score,
            score.risk_level,
            len(correlations),
        )
        return ScoringOutcome(
            score=score,
            correlations=correlations,
            series_dates=[s.calculated_at for s in series],
            series_scores=[s.overall_score for s in series],
        )
