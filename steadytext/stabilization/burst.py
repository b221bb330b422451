"""
Burst Majority Voter

One-shot alternative to the streaming session: capture a few frames,
recognize each once, and return the most frequent confident reading.
"""

import asyncio
import inspect
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence

from loguru import logger

from steadytext.config import StabilizerSettings
from steadytext.ocr.confidence_scorer import ConfidenceScorer
from steadytext.ocr.ocr_provider import OCRBlock, OCRProvider, recognize_async
from steadytext.ocr.text_normalizer import TextNormalizer


@dataclass
class BurstResult:
    """Outcome of a burst vote."""
    text: str
    votes: int
    ballots: List[str] = field(default_factory=list)

    @property
    def total_votes(self) -> int:
        return len(self.ballots)

    @property
    def share(self) -> float:
        return self.votes / self.total_votes if self.ballots else 0.0


class BurstMajorityVoter:
    """
    Majority vote over independent observation batches.

    Never reads or writes streaming session state.
    """

    def __init__(
        self,
        settings: Optional[StabilizerSettings] = None,
        scorer: Optional[ConfidenceScorer] = None,
    ):
        self.settings = settings or StabilizerSettings()
        self.scorer = scorer or ConfidenceScorer()
        self.normalizer = TextNormalizer(min_length=self.settings.min_candidate_length)

    def collect(self, batch: Sequence[OCRBlock]) -> List[str]:
        """Normalized texts of the confident, long-enough blocks in one batch."""
        ballots = []
        for block in batch:
            if self.scorer.adjusted_confidence(block) < self.settings.burst_min_confidence:
                continue
            result = self.normalizer.normalize(block.text)
            if not result.is_candidate:
                continue
            ballots.append(result.normalized)
        return ballots

    def vote(self, batches: Sequence[Sequence[OCRBlock]]) -> Optional[BurstResult]:
        """
        Args:
            batches: One list of blocks per capture

        Returns:
            Most frequent text (first seen wins ties), or None if no block
            survived filtering
        """
        ballots = [text for batch in batches for text in self.collect(batch)]
        if not ballots:
            return None

        # most_common keeps insertion order among equal counts
        text, votes = Counter(ballots).most_common(1)[0]
        return BurstResult(text=text, votes=votes, ballots=ballots)

    async def capture(
        self,
        provider: OCRProvider,
        capture_frame: Callable[[], Any],
        shots: Optional[int] = None,
        interval_s: Optional[float] = None,
    ) -> Optional[BurstResult]:
        """
        Capture `shots` frames, recognize each, and vote.

        Args:
            provider: OCR provider
            capture_frame: Returns a frame (or an awaitable of one)
            shots: Number of captures, defaults to settings.burst_shots
            interval_s: Pause between captures

        A capture or recognition failure contributes an empty batch.
        """
        shots = self.settings.burst_shots if shots is None else shots
        interval_s = self.settings.burst_interval_s if interval_s is None else interval_s

        batches: List[List[OCRBlock]] = []
        for shot in range(shots):
            if shot and interval_s:
                await asyncio.sleep(interval_s)
            try:
                frame = capture_frame()
                if inspect.isawaitable(frame):
                    frame = await frame
                batches.append(await recognize_async(provider, frame))
            except Exception as e:
                logger.warning(f"Burst shot {shot + 1}/{shots} failed: {e}")
                batches.append([])

        result = self.vote(batches)
        if result is None:
            logger.info(f"Burst vote over {shots} shots produced no result")
        else:
            logger.info(
                f"Burst vote: '{result.text}' with {result.votes}/{result.total_votes} votes"
            )
        return result
