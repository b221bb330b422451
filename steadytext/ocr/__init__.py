"""
OCR & Text Processing Module

Handles the per-observation side of stabilization:
- OCR provider adapters (EasyOCR, Tesseract)
- Text normalization into candidate keys
- Block confidence scoring
"""

from steadytext.ocr.ocr_provider import (
    OCRBlock,
    OCRElement,
    OCRProvider,
    EasyOCRProvider,
    TesseractProvider,
    expand_lines,
    recognize_async,
)
from steadytext.ocr.text_normalizer import TextNormalizer, NormalizationResult, normalize
from steadytext.ocr.confidence_scorer import ConfidenceScorer, ScoreBreakdown

__all__ = [
    "OCRBlock",
    "OCRElement",
    "OCRProvider",
    "EasyOCRProvider",
    "TesseractProvider",
    "expand_lines",
    "recognize_async",
    "TextNormalizer",
    "NormalizationResult",
    "normalize",
    "ConfidenceScorer",
    "ScoreBreakdown",
]
