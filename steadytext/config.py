"""
Configuration for SteadyText.

Provides:
- StabilizerSettings loaded from environment (STEADYTEXT_* variables)
- Cached settings accessor
- Logging setup for scripts
"""

import os
import sys
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from loguru import logger

from steadytext.exceptions import ConfigurationError


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() == "true"


@dataclass
class StabilizerSettings:
    """Tunable constants of the stabilization engine."""

    # Threshold controller
    initial_confidence_threshold: float = 0.75
    initial_occurrence_threshold: int = 3
    relaxed_confidence_threshold: float = 0.65
    relaxed_occurrence_threshold: int = 2

    # Checkpoints, seconds from session start
    sensitivity_delay_s: float = 1.5
    illumination_delay_s: float = 2.5
    emergency_delay_s: float = 4.0

    # Evaluator
    evaluation_interval_s: float = 0.3
    stop_grace_s: float = 0.3
    quick_win_confidence: float = 0.9
    quick_win_min_length: int = 3
    min_candidate_length: int = 2

    # Emergency fallback
    emergency_min_score: float = 0.3

    # Burst vote
    burst_shots: int = 3
    burst_min_confidence: float = 0.6
    burst_interval_s: float = 0.1

    # Frame delivery
    frame_cooldown_s: float = 0.0
    include_line_text: bool = False

    # Misc
    history_size: int = 20
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "StabilizerSettings":
        """Load settings from environment variables."""
        load_dotenv()
        return cls(
            initial_confidence_threshold=float(os.getenv("STEADYTEXT_CONFIDENCE_THRESHOLD", cls.initial_confidence_threshold)),
            initial_occurrence_threshold=int(os.getenv("STEADYTEXT_OCCURRENCE_THRESHOLD", cls.initial_occurrence_threshold)),
            relaxed_confidence_threshold=float(os.getenv("STEADYTEXT_RELAXED_CONFIDENCE_THRESHOLD", cls.relaxed_confidence_threshold)),
            relaxed_occurrence_threshold=int(os.getenv("STEADYTEXT_RELAXED_OCCURRENCE_THRESHOLD", cls.relaxed_occurrence_threshold)),
            sensitivity_delay_s=float(os.getenv("STEADYTEXT_SENSITIVITY_DELAY", cls.sensitivity_delay_s)),
            illumination_delay_s=float(os.getenv("STEADYTEXT_ILLUMINATION_DELAY", cls.illumination_delay_s)),
            emergency_delay_s=float(os.getenv("STEADYTEXT_EMERGENCY_DELAY", cls.emergency_delay_s)),
            evaluation_interval_s=float(os.getenv("STEADYTEXT_EVALUATION_INTERVAL", cls.evaluation_interval_s)),
            stop_grace_s=float(os.getenv("STEADYTEXT_STOP_GRACE", cls.stop_grace_s)),
            quick_win_confidence=float(os.getenv("STEADYTEXT_QUICK_WIN_CONFIDENCE", cls.quick_win_confidence)),
            quick_win_min_length=int(os.getenv("STEADYTEXT_QUICK_WIN_MIN_LENGTH", cls.quick_win_min_length)),
            min_candidate_length=int(os.getenv("STEADYTEXT_MIN_CANDIDATE_LENGTH", cls.min_candidate_length)),
            emergency_min_score=float(os.getenv("STEADYTEXT_EMERGENCY_MIN_SCORE", cls.emergency_min_score)),
            burst_shots=int(os.getenv("STEADYTEXT_BURST_SHOTS", cls.burst_shots)),
            burst_min_confidence=float(os.getenv("STEADYTEXT_BURST_MIN_CONFIDENCE", cls.burst_min_confidence)),
            burst_interval_s=float(os.getenv("STEADYTEXT_BURST_INTERVAL", cls.burst_interval_s)),
            frame_cooldown_s=float(os.getenv("STEADYTEXT_FRAME_COOLDOWN", cls.frame_cooldown_s)),
            include_line_text=_env_bool("STEADYTEXT_INCLUDE_LINE_TEXT", cls.include_line_text),
            history_size=int(os.getenv("STEADYTEXT_HISTORY_SIZE", cls.history_size)),
            log_level=os.getenv("STEADYTEXT_LOG_LEVEL", cls.log_level),
        )

    def validate(self) -> "StabilizerSettings":
        """
        Check settings for values the engine cannot work with.

        Returns:
            self, to allow chaining.

        Raises:
            ConfigurationError: On the first invalid value found.
        """
        for name in (
            "initial_confidence_threshold",
            "relaxed_confidence_threshold",
            "quick_win_confidence",
            "burst_min_confidence",
        ):
            value = getattr(self, name)
            if not 0.0 < value <= 1.0:
                raise ConfigurationError(name, f"must be in (0, 1], got {value}")

        if self.initial_occurrence_threshold < 1 or self.relaxed_occurrence_threshold < 1:
            raise ConfigurationError("occurrence_threshold", "must be at least 1")

        # Relaxation never tightens
        if self.relaxed_confidence_threshold > self.initial_confidence_threshold:
            raise ConfigurationError(
                "relaxed_confidence_threshold",
                "must not exceed initial_confidence_threshold",
            )
        if self.relaxed_occurrence_threshold > self.initial_occurrence_threshold:
            raise ConfigurationError(
                "relaxed_occurrence_threshold",
                "must not exceed initial_occurrence_threshold",
            )

        if not 0 < self.sensitivity_delay_s < self.illumination_delay_s < self.emergency_delay_s:
            raise ConfigurationError(
                "checkpoint delays",
                "expected 0 < sensitivity < illumination < emergency",
            )

        if self.evaluation_interval_s <= 0:
            raise ConfigurationError("evaluation_interval_s", "must be positive")
        if self.stop_grace_s < 0 or self.frame_cooldown_s < 0 or self.burst_interval_s < 0:
            raise ConfigurationError("delays", "must not be negative")
        if self.min_candidate_length < 1:
            raise ConfigurationError("min_candidate_length", "must be at least 1")
        if self.burst_shots < 1:
            raise ConfigurationError("burst_shots", "must be at least 1")
        if self.history_size < 1:
            raise ConfigurationError("history_size", "must be at least 1")

        return self


@lru_cache()
def get_settings() -> StabilizerSettings:
    """Get cached settings."""
    return StabilizerSettings.from_env().validate()


def configure_logging(level: Optional[str] = None) -> None:
    """Replace loguru's default sink with a single stderr sink."""
    logger.remove()
    logger.add(sys.stderr, level=level or get_settings().log_level)
