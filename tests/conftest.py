"""
Pytest configuration and fixtures for SteadyText tests.
"""

import sys
from pathlib import Path
from typing import Callable, List, Optional

import pytest
import numpy as np

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from steadytext.config import StabilizerSettings
from steadytext.ocr.ocr_provider import OCRBlock, OCRElement


# =============================================================================
# Settings
# =============================================================================

@pytest.fixture
def settings() -> StabilizerSettings:
    """Default settings, independent of the environment."""
    return StabilizerSettings()


@pytest.fixture
def fast_settings() -> StabilizerSettings:
    """Settings with compressed timings for engine tests."""
    return StabilizerSettings(
        sensitivity_delay_s=0.05,
        illumination_delay_s=0.08,
        emergency_delay_s=0.12,
        evaluation_interval_s=0.01,
        stop_grace_s=0.02,
        burst_interval_s=0.0,
    )


# =============================================================================
# Clock
# =============================================================================

class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000.0


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# OCR data
# =============================================================================

def make_block(text: str, *confidences: Optional[float]) -> OCRBlock:
    """Block whose elements carry the given raw confidences."""
    if not confidences:
        confidences = (0.9,)
    words = text.split() or [text]
    elements = [
        OCRElement(text=words[i % len(words)], confidence=conf)
        for i, conf in enumerate(confidences)
    ]
    return OCRBlock(text=text, elements=elements)


@pytest.fixture
def block_factory() -> Callable[..., OCRBlock]:
    return make_block


class StaticProvider:
    """Synchronous provider replaying a fixed list of results."""

    def __init__(self, results: List[List[OCRBlock]]):
        self.results = list(results)
        self.calls = 0

    def recognize(self, frame) -> List[OCRBlock]:
        result = self.results[min(self.calls, len(self.results) - 1)]
        self.calls += 1
        return result


@pytest.fixture
def blank_frame() -> np.ndarray:
    return np.zeros((120, 160, 3), dtype=np.uint8)
