"""
SteadyText

Adaptive detection stabilization for live OCR: commits one trustworthy
reading from a noisy stream of per-frame recognition results.
"""

from steadytext.config import StabilizerSettings, get_settings, configure_logging
from steadytext.exceptions import (
    SteadyTextError,
    InvalidOperationError,
    ConfigurationError,
    OCRProviderError,
)
from steadytext.ocr import OCRBlock, OCRElement, normalize
from steadytext.stabilization import (
    Decision,
    DecisionSource,
    Session,
    StabilizationEngine,
    BurstMajorityVoter,
)

__version__ = "0.1.0"

__all__ = [
    "StabilizerSettings",
    "get_settings",
    "configure_logging",
    "SteadyTextError",
    "InvalidOperationError",
    "ConfigurationError",
    "OCRProviderError",
    "OCRBlock",
    "OCRElement",
    "normalize",
    "Decision",
    "DecisionSource",
    "Session",
    "StabilizationEngine",
    "BurstMajorityVoter",
]
