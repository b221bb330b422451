"""
Periodic Evaluator

Ranks the candidates of a session against its current thresholds and
commits a decision when one qualifies.

Score for a qualifying candidate:
    (occurrences / occurrence_threshold) * 0.6
  + (avg_confidence / confidence_threshold) * 0.4
then x1.2 for text longer than 5 characters, x1.3 once the session is
past 2s and a further x1.5 once it is past 3s (the two time bonuses
compound).
"""

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from steadytext.config import StabilizerSettings
from steadytext.stabilization.decision import Decision, DecisionSource
from steadytext.stabilization.session import Session
from steadytext.stabilization.thresholds import ThresholdState


@dataclass
class EvaluationResult:
    """Candidate selected by one evaluation pass."""
    text: str
    score: float
    quick_win: bool = False
    qualifying_count: int = 0


class PeriodicEvaluator:
    """Candidate ranking and decision commit for one evaluator tick."""

    OCCURRENCE_WEIGHT = 0.6
    CONFIDENCE_WEIGHT = 0.4

    LONG_TEXT_LENGTH = 5
    LONG_TEXT_BONUS = 1.2

    # (elapsed ms exclusive, multiplier), applied cumulatively
    TIME_BONUSES = (
        (2000, 1.3),
        (3000, 1.5),
    )

    QUICK_WIN_SCORE = 1.0

    def __init__(self, settings: StabilizerSettings):
        self.settings = settings

    def score_candidate(
        self,
        text: str,
        occurrences: int,
        avg_confidence: float,
        thresholds: ThresholdState,
        elapsed_ms: float,
    ) -> float:
        score = (
            (occurrences / thresholds.occurrence_threshold) * self.OCCURRENCE_WEIGHT
            + (avg_confidence / thresholds.confidence_threshold) * self.CONFIDENCE_WEIGHT
        )

        if len(text) > self.LONG_TEXT_LENGTH:
            score *= self.LONG_TEXT_BONUS

        for after_ms, bonus in self.TIME_BONUSES:
            if elapsed_ms > after_ms:
                score *= bonus

        return score

    def select(self, session: Session) -> Optional[EvaluationResult]:
        """
        Pick the best candidate of a session without committing it.

        Returns:
            The selected candidate, or None if nothing qualifies
        """
        candidates = session.aggregator.all_candidates()
        if not candidates:
            return None

        thresholds = session.thresholds
        elapsed_ms = session.elapsed_ms()

        best: Optional[EvaluationResult] = None
        qualifying = 0
        for text, occurrences, avg_confidence in candidates:
            if occurrences < thresholds.occurrence_threshold:
                continue
            if avg_confidence < thresholds.confidence_threshold:
                continue

            qualifying += 1
            score = self.score_candidate(text, occurrences, avg_confidence, thresholds, elapsed_ms)
            # Strictly greater wins, so ties keep the first-seen candidate
            if best is None or score > best.score:
                best = EvaluationResult(text=text, score=score)

        if best is not None:
            best.qualifying_count = qualifying
            return best

        for text, _occurrences, avg_confidence in candidates:
            if (
                avg_confidence > self.settings.quick_win_confidence
                and len(text) >= self.settings.quick_win_min_length
            ):
                return EvaluationResult(text=text, score=self.QUICK_WIN_SCORE, quick_win=True)

        return None

    def evaluate(self, session: Session) -> Optional[Decision]:
        """
        Run one evaluator tick against a session.

        Returns:
            The newly committed Decision, or None
        """
        if session.stopped or session.is_decided:
            return None

        result = self.select(session)
        if result is None:
            logger.debug(
                f"Session {session.id}: no qualifying candidate "
                f"among {len(session.aggregator)}"
            )
            return None

        decision = Decision(
            text=result.text,
            score=result.score,
            elapsed_ms=session.elapsed_ms(),
            source=DecisionSource.NORMAL,
            session_id=session.id,
        )
        if not session.commit(decision):
            return None

        if result.quick_win:
            logger.debug(f"Session {session.id}: quick-win on '{result.text}'")
        return decision
