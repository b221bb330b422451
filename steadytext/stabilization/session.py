"""
Scanning Session State

A Session owns everything that accumulates during one scanning attempt:
- ObservationAggregator: per-candidate confidence history
- ThresholdState: current acceptance thresholds and boost flags
- BestCandidateTracker: best-ever candidate for the emergency fallback
- The committed Decision, if any

A fresh Session is built on every start, so nothing leaks between attempts.
"""

import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np
from loguru import logger

from steadytext.config import StabilizerSettings
from steadytext.exceptions import InvalidOperationError
from steadytext.ocr.confidence_scorer import ConfidenceScorer
from steadytext.ocr.ocr_provider import OCRBlock
from steadytext.ocr.text_normalizer import TextNormalizer
from steadytext.stabilization.decision import Decision
from steadytext.stabilization.thresholds import (
    AdaptiveThresholdController,
    ThresholdStage,
)


Clock = Callable[[], float]


@dataclass
class CandidateStatistics:
    """Confidence history of one candidate."""
    confidences: List[float] = field(default_factory=list)

    @property
    def occurrence_count(self) -> int:
        return len(self.confidences)

    @property
    def average_confidence(self) -> float:
        if not self.confidences:
            return 0.0
        return float(np.mean(self.confidences))

    def add(self, confidence: float) -> None:
        self.confidences.append(confidence)


class ObservationAggregator:
    """
    Accumulates normalized candidates over a session.

    Candidates are kept in insertion order; `all_candidates` returns a
    snapshot list so callers never observe a half-applied record.
    """

    def __init__(self, started_at: float, clock: Clock = time.monotonic, min_length: int = 2):
        self.started_at = started_at
        self.clock = clock
        self.min_length = min_length
        self._candidates: Dict[str, CandidateStatistics] = {}

    def record(self, normalized_text: str, adjusted_confidence: float) -> bool:
        """
        Add one observation.

        Returns:
            False if the text was rejected as too short
        """
        if not normalized_text or len(normalized_text) < self.min_length:
            return False

        self._candidates.setdefault(normalized_text, CandidateStatistics()).add(adjusted_confidence)
        return True

    def average_confidence(self, text: str) -> float:
        stats = self._candidates.get(text)
        return stats.average_confidence if stats else 0.0

    def occurrence_count(self, text: str) -> int:
        stats = self._candidates.get(text)
        return stats.occurrence_count if stats else 0

    def all_candidates(self) -> List[Tuple[str, int, float]]:
        """Snapshot of (text, occurrence count, average confidence)."""
        return [
            (text, stats.occurrence_count, stats.average_confidence)
            for text, stats in self._candidates.items()
        ]

    def elapsed_ms(self) -> float:
        return (self.clock() - self.started_at) * 1000

    def __len__(self) -> int:
        return len(self._candidates)

    def __contains__(self, text: str) -> bool:
        return text in self._candidates


@dataclass
class BestCandidateRecord:
    """Best candidate seen so far in a session."""
    text: Optional[str] = None
    score: float = 0.0


class BestCandidateTracker:
    """
    Tracks the highest `confidence * len(text) / 10` seen in a session.

    The stored score never decreases; only a strictly greater score
    replaces the record.
    """

    LENGTH_NORMALIZER = 10.0

    def __init__(self):
        self._best = BestCandidateRecord()

    @classmethod
    def candidate_score(cls, text: str, confidence: float) -> float:
        return confidence * (len(text) / cls.LENGTH_NORMALIZER)

    def update(self, text: str, confidence: float) -> bool:
        score = self.candidate_score(text, confidence)
        if score > self._best.score:
            self._best = BestCandidateRecord(text=text, score=score)
            return True
        return False

    @property
    def best(self) -> BestCandidateRecord:
        return BestCandidateRecord(text=self._best.text, score=self._best.score)

    def emergency_candidate(self, min_score: float) -> Optional[BestCandidateRecord]:
        """The best record if it clears `min_score`, else None."""
        if self._best.text is not None and self._best.score > min_score:
            return self.best
        return None


class Session:
    """
    One scanning attempt.

    All mutation goes through this object; the engine serializes calls to
    it, and synchronous callers (tests, offline replays) may drive it
    directly with an explicit clock.
    """

    def __init__(
        self,
        settings: StabilizerSettings,
        clock: Clock = time.monotonic,
        scorer: Optional[ConfidenceScorer] = None,
        controller: Optional[AdaptiveThresholdController] = None,
        session_id: Optional[str] = None,
    ):
        self.id = session_id or uuid.uuid4().hex[:12]
        self.settings = settings
        self.clock = clock
        self.scorer = scorer or ConfidenceScorer()
        self.controller = controller or AdaptiveThresholdController(settings)
        self.normalizer = TextNormalizer(min_length=settings.min_candidate_length)

        self.started_at = clock()
        self.aggregator = ObservationAggregator(
            started_at=self.started_at,
            clock=clock,
            min_length=settings.min_candidate_length,
        )
        self.thresholds = self.controller.initial_state()
        self.best = BestCandidateTracker()
        self.decision: Optional[Decision] = None
        self.stopped = False

    @property
    def is_decided(self) -> bool:
        return self.decision is not None

    def elapsed_ms(self) -> float:
        return self.aggregator.elapsed_ms()

    def record(self, normalized_text: str, adjusted_confidence: float) -> bool:
        """
        Record one normalized observation into the aggregator and the
        best-candidate tracker.

        Raises:
            InvalidOperationError: If the session has been stopped
        """
        if self.stopped:
            raise InvalidOperationError(
                "Cannot record into a stopped session",
                detail=f"session {self.id}",
            )

        if not self.aggregator.record(normalized_text, adjusted_confidence):
            return False

        self.best.update(normalized_text, adjusted_confidence)
        return True

    def observe(self, blocks: Iterable[OCRBlock]) -> int:
        """
        Score, normalize and record every block of one OCR result.

        Returns:
            Number of blocks that became candidate observations
        """
        recorded = 0
        for block in blocks:
            breakdown = self.scorer.score(
                block,
                sensitivity_boost=self.thresholds.sensitivity_boost,
                illumination_boost=self.thresholds.illumination_boost,
            )
            if breakdown.is_rejected:
                continue
            result = self.normalizer.normalize(block.text)
            if not result.is_candidate:
                continue
            if self.record(result.normalized, breakdown.final_confidence):
                recorded += 1
        return recorded

    def advance_thresholds(self, stage: ThresholdStage) -> List[ThresholdStage]:
        """Advance the threshold controller unless the session is over."""
        if self.stopped or self.is_decided:
            return []
        return self.controller.advance(self.thresholds, stage)

    def sync_thresholds(self) -> List[ThresholdStage]:
        """Apply every checkpoint already passed on the session clock."""
        if self.stopped or self.is_decided:
            return []
        return self.controller.sync(self.thresholds, self.elapsed_ms())

    def commit(self, decision: Decision) -> bool:
        """
        Store the session's decision.

        Returns:
            False if a decision was already committed or the session stopped
        """
        if self.stopped or self.is_decided:
            return False
        self.decision = decision
        logger.info(
            f"Session {self.id} decided '{decision.text}' "
            f"(score={decision.score:.3f}, source={decision.source.value}, "
            f"elapsed={decision.elapsed_ms:.0f}ms)"
        )
        return True

    def stop(self) -> None:
        self.stopped = True
