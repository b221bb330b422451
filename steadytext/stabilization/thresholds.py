"""
Adaptive Threshold Controller

Time-driven relaxation of the acceptance thresholds within a session:

    STRICT  --1.5s-->  SENSITIVE  --2.5s-->  ILLUMINATED  --4.0s-->  EMERGENCY_DUE

SENSITIVE lowers the thresholds and sets the sensitivity boost,
ILLUMINATED additionally sets the (one-shot) illumination boost, and
EMERGENCY_DUE only marks the point where the emergency fallback runs.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

from loguru import logger

from steadytext.config import StabilizerSettings


class ThresholdStage(str, Enum):
    """Controller stages, in transition order."""
    STRICT = "strict"
    SENSITIVE = "sensitive"
    ILLUMINATED = "illuminated"
    EMERGENCY_DUE = "emergency_due"

    @property
    def order(self) -> int:
        return _STAGE_ORDER.index(self)


_STAGE_ORDER = [
    ThresholdStage.STRICT,
    ThresholdStage.SENSITIVE,
    ThresholdStage.ILLUMINATED,
    ThresholdStage.EMERGENCY_DUE,
]


@dataclass
class ThresholdState:
    """Per-session threshold record."""
    confidence_threshold: float
    occurrence_threshold: int
    sensitivity_boost: bool = False
    illumination_boost: bool = False
    illumination_triggered: bool = False  # one-shot latch
    stage: ThresholdStage = ThresholdStage.STRICT

    @property
    def emergency_due(self) -> bool:
        return self.stage == ThresholdStage.EMERGENCY_DUE


class AdaptiveThresholdController:
    """
    Stateless transition policy over a ThresholdState.

    Transitions only ever move forward and only ever loosen thresholds.
    Advancing to a stage that has already been reached is a no-op, which
    keeps timer callbacks and `sync` calls idempotent.
    """

    def __init__(self, settings: StabilizerSettings):
        self.settings = settings

    def initial_state(self) -> ThresholdState:
        return ThresholdState(
            confidence_threshold=self.settings.initial_confidence_threshold,
            occurrence_threshold=self.settings.initial_occurrence_threshold,
        )

    def checkpoints(self) -> List[Tuple[float, ThresholdStage]]:
        """(seconds from session start, stage) for every timed transition."""
        return [
            (self.settings.sensitivity_delay_s, ThresholdStage.SENSITIVE),
            (self.settings.illumination_delay_s, ThresholdStage.ILLUMINATED),
            (self.settings.emergency_delay_s, ThresholdStage.EMERGENCY_DUE),
        ]

    def advance(self, state: ThresholdState, stage: ThresholdStage) -> List[ThresholdStage]:
        """
        Move `state` forward to `stage`.

        Intermediate stages that were skipped are applied on the way, so a
        late SENSITIVE timer can never undo an ILLUMINATED transition.

        Returns:
            Stages that actually fired, empty if already at or past `stage`.
        """
        fired = []
        for next_stage in _STAGE_ORDER[state.stage.order + 1:stage.order + 1]:
            self._apply(state, next_stage)
            fired.append(next_stage)
        return fired

    def sync(self, state: ThresholdState, elapsed_ms: float) -> List[ThresholdStage]:
        """Apply every transition whose checkpoint is strictly behind `elapsed_ms`."""
        target = ThresholdStage.STRICT
        for delay_s, stage in self.checkpoints():
            if elapsed_ms > delay_s * 1000:
                target = stage
        return self.advance(state, target)

    def _apply(self, state: ThresholdState, stage: ThresholdStage) -> None:
        if stage == ThresholdStage.SENSITIVE:
            state.confidence_threshold = min(
                state.confidence_threshold, self.settings.relaxed_confidence_threshold
            )
            state.occurrence_threshold = min(
                state.occurrence_threshold, self.settings.relaxed_occurrence_threshold
            )
            state.sensitivity_boost = True
        elif stage == ThresholdStage.ILLUMINATED:
            if not state.illumination_triggered:
                state.illumination_triggered = True
                state.illumination_boost = True

        state.stage = stage
        logger.debug(
            f"Threshold stage -> {stage.value}: "
            f"confidence>={state.confidence_threshold}, "
            f"occurrence>={state.occurrence_threshold}"
        )
