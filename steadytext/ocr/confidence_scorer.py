"""
OCR Confidence Scoring for SteadyText

Collapses the per-element confidences of one recognized block into a single
adjusted confidence:
- Mean of raw element confidences
- Length boosts for longer blocks
- Session boosts while the engine is in its sensitive/illuminated stages
"""

from dataclasses import dataclass, field
from typing import Dict

import numpy as np

from steadytext.ocr.ocr_provider import OCRBlock


@dataclass
class ScoreBreakdown:
    """Detailed confidence computation for one block."""

    base_confidence: float
    final_confidence: float
    element_count: int
    text_length: int

    # Multiplier name -> factor, in the order they were applied
    adjustments: Dict[str, float] = field(default_factory=dict)

    @property
    def is_rejected(self) -> bool:
        return self.element_count == 0

    @property
    def was_boosted(self) -> bool:
        return bool(self.adjustments)


class ConfidenceScorer:
    """
    Block confidence scorer.

    Stateless: the output depends only on the block and on the session
    boost flags passed in, so a single instance can be shared between the
    streaming engine and the burst voter.
    """

    # (minimum exclusive raw length, multiplier)
    LENGTH_BOOSTS = (
        (3, 1.15),
        (6, 1.10),
    )

    SENSITIVITY_BOOST = 1.10
    ILLUMINATION_BOOST = 1.05

    def score(
        self,
        block: OCRBlock,
        sensitivity_boost: bool = False,
        illumination_boost: bool = False,
    ) -> ScoreBreakdown:
        """
        Score one block.

        Args:
            block: Recognized block
            sensitivity_boost: Session sensitivity flag
            illumination_boost: Session illumination flag

        Returns:
            ScoreBreakdown with the clamped final confidence
        """
        text_length = len(block.text or "")
        confidences = [
            e.confidence if e.confidence is not None else 0.0
            for e in block.elements
        ]

        if not confidences:
            return ScoreBreakdown(
                base_confidence=0.0,
                final_confidence=0.0,
                element_count=0,
                text_length=text_length,
            )

        base = float(np.mean(confidences))
        adjustments: Dict[str, float] = {}
        value = base

        for min_length, factor in self.LENGTH_BOOSTS:
            if text_length > min_length:
                adjustments[f"length>{min_length}"] = factor
                value *= factor

        if sensitivity_boost:
            adjustments["sensitivity"] = self.SENSITIVITY_BOOST
            value *= self.SENSITIVITY_BOOST

        if illumination_boost:
            adjustments["illumination"] = self.ILLUMINATION_BOOST
            value *= self.ILLUMINATION_BOOST

        return ScoreBreakdown(
            base_confidence=base,
            final_confidence=max(0.0, min(1.0, value)),
            element_count=len(confidences),
            text_length=text_length,
            adjustments=adjustments,
        )

    def adjusted_confidence(
        self,
        block: OCRBlock,
        sensitivity_boost: bool = False,
        illumination_boost: bool = False,
    ) -> float:
        return self.score(block, sensitivity_boost, illumination_boost).final_confidence
