"""
Unit tests for OCR module components.
"""

import pytest
import numpy as np
from unittest.mock import MagicMock, patch

from steadytext.exceptions import OCRProviderError
from steadytext.ocr.ocr_provider import (
    EasyOCRProvider,
    OCRBlock,
    OCRElement,
    TesseractProvider,
    expand_lines,
    recognize_async,
)
from steadytext.ocr.text_normalizer import TextNormalizer, NormalizationResult, normalize
from steadytext.ocr.confidence_scorer import ConfidenceScorer, ScoreBreakdown
from tests.conftest import make_block


class TestTextNormalizer:
    """Tests for normalize() and TextNormalizer."""

    @pytest.fixture
    def normalizer(self):
        return TextNormalizer()

    def test_strips_punctuation_and_upper_cases(self):
        assert normalize("He||o, World!!") == "HELLO WORLD"

    def test_collapses_whitespace(self):
        assert normalize("  the\n\ngreat\t\tgatsby  ") == "THE GREAT GATSBY"

    def test_keeps_digits(self):
        assert normalize("Route 66!") == "ROUTE 66"

    def test_empty_and_symbol_only(self):
        assert normalize("") == ""
        assert normalize("!!! ---") == ""

    @pytest.mark.parametrize("raw", [
        "He||o, World!!",
        "  mixed   CASE\ttext ",
        "Les Misérables",
        "straße",
        "ǰ-ǰ",
        "a_b_c",
        "",
    ])
    def test_idempotent(self, raw):
        once = normalize(raw)
        assert normalize(once) == once

    def test_result_flags_candidates(self, normalizer):
        result = normalizer.normalize("ok!")
        assert isinstance(result, NormalizationResult)
        assert result.normalized == "OK"
        assert result.is_candidate
        assert result.original == "ok!"

        assert not normalizer.normalize("a.").is_candidate
        assert not normalizer.normalize("").is_candidate

    def test_pipe_read_as_l(self):
        assert normalize("a||ey") == "ALLEY"
        assert normalize("|") == "L"

    def test_min_length_follows_settings(self):
        normalizer = TextNormalizer(min_length=4)
        assert not normalizer.normalize("cat").is_candidate
        assert normalizer.normalize("c.a.t.s").is_candidate


class TestConfidenceScorer:
    """Tests for ConfidenceScorer."""

    @pytest.fixture
    def scorer(self):
        return ConfidenceScorer()

    def test_mean_of_elements_short_text(self, scorer):
        breakdown = scorer.score(make_block("AB", 0.6, 0.8))
        assert isinstance(breakdown, ScoreBreakdown)
        assert breakdown.base_confidence == pytest.approx(0.7)
        assert breakdown.final_confidence == pytest.approx(0.7)
        assert not breakdown.was_boosted

    def test_empty_block_rejected(self, scorer):
        breakdown = scorer.score(OCRBlock(text="HELLO", elements=[]))
        assert breakdown.is_rejected
        assert breakdown.final_confidence == 0.0

    def test_missing_confidence_counts_as_zero(self, scorer):
        breakdown = scorer.score(make_block("AB", None, 0.8))
        assert breakdown.base_confidence == pytest.approx(0.4)

    def test_length_boosts_compose(self, scorer):
        assert scorer.adjusted_confidence(make_block("ABC", 0.5)) == pytest.approx(0.5)
        assert scorer.adjusted_confidence(make_block("ABCD", 0.5)) == pytest.approx(0.575)
        assert scorer.adjusted_confidence(make_block("ABCDEFG", 0.5)) == pytest.approx(0.5 * 1.15 * 1.10)

    def test_length_uses_raw_text(self, scorer):
        # "A-B-C" normalizes to "ABC" but the raw length is 5
        assert scorer.adjusted_confidence(make_block("A-B-C", 0.5)) == pytest.approx(0.575)

    def test_session_boosts(self, scorer):
        block = make_block("AB", 0.5)
        assert scorer.adjusted_confidence(block, sensitivity_boost=True) == pytest.approx(0.55)
        assert scorer.adjusted_confidence(block, illumination_boost=True) == pytest.approx(0.525)
        both = scorer.score(block, sensitivity_boost=True, illumination_boost=True)
        assert both.final_confidence == pytest.approx(0.5 * 1.10 * 1.05)
        assert set(both.adjustments) == {"sensitivity", "illumination"}

    def test_clamped_to_one(self, scorer):
        breakdown = scorer.score(make_block("LONG TEXT", 0.95), sensitivity_boost=True)
        assert breakdown.final_confidence == 1.0
        assert [r.final_confidence for r in results] == pytest.approx([0.5, 0.7])


class TestEasyOCRProvider:
    """Tests for the EasyOCR adapter."""

    def test_detections_become_blocks(self, blank_frame):
        reader = MagicMock()
        reader.readtext.return_value = [
            ([[0, 0], [200, 0], [200, 50], [0, 50]], "PARCEL 42", 0.91),
            ([[0, 60], [200, 60], [200, 110], [0, 110]], "  ", 0.99),
        ]
        provider = EasyOCRProvider(reader=reader)

        blocks = provider.recognize(blank_frame)

        assert len(blocks) == 1
        assert blocks[0].text == "PARCEL 42"
        assert blocks[0].elements[0].confidence == pytest.approx(0.91)

    def test_builds_reader(self):
        with patch("steadytext.ocr.ocr_provider.easyocr", create=True) as mock_easyocr, \
             patch("steadytext.ocr.ocr_provider.EASYOCR_AVAILABLE", True):
            provider = EasyOCRProvider(languages=["en", "de"])

        mock_easyocr.Reader.assert_called_once_with(["en", "de"], gpu=False, verbose=False)
        assert provider.reader is mock_easyocr.Reader.return_value

    def test_unavailable_backend(self):
        with patch("steadytext.ocr.ocr_provider.EASYOCR_AVAILABLE", False):
            with pytest.raises(OCRProviderError):
                EasyOCRProvider()


class TestTesseractProvider:
    """Tests for the Tesseract adapter."""

    @pytest.fixture
    def tesseract_data(self):
        return {
            "text": ["", "HELLO", "WORLD", "SECOND", "BLOCK", ""],
            "conf": ["-1", "96", "88.5", "70", "-1", "-1"],
            "block_num": [0, 1, 1, 1, 2, 2],
            "par_num": [0, 1, 1, 1, 1, 1],
            "line_num": [0, 1, 1, 2, 1, 1],
        }

    def test_groups_words_into_blocks_and_lines(self, blank_frame, tesseract_data):
        with patch("steadytext.ocr.ocr_provider.pytesseract", create=True) as mock_tess, \
             patch("steadytext.ocr.ocr_provider.TESSERACT_AVAILABLE", True):
            mock_tess.image_to_data.return_value = tesseract_data
            provider = TesseractProvider()
            blocks = provider.recognize(blank_frame)

        assert len(blocks) == 2
        first, second = blocks
        assert first.text == "HELLO WORLD\nSECOND"
        assert [line.text for line in first.lines] == ["HELLO WORLD", "SECOND"]
        assert [e.confidence for e in first.elements] == pytest.approx([0.96, 0.885, 0.70])

        # Negative confidence means "not reported"
        assert second.text == "BLOCK"
        assert second.elements[0].confidence is None

    def test_grayscale_conversion(self, tesseract_data):
        gray = np.zeros((50, 50), dtype=np.uint8)
        with patch("steadytext.ocr.ocr_provider.pytesseract", create=True) as mock_tess, \
             patch("steadytext.ocr.ocr_provider.TESSERACT_AVAILABLE", True):
            mock_tess.image_to_data.return_value = tesseract_data
            TesseractProvider().recognize(gray)

            passed = mock_tess.image_to_data.call_args[0][0]
            assert passed is gray

    def test_unavailable_backend(self):
        with patch("steadytext.ocr.ocr_provider.TESSERACT_AVAILABLE", False):
            with pytest.raises(OCRProviderError):
                TesseractProvider()


class TestProviderHelpers:
    """Tests for expand_lines and recognize_async."""

    def test_expand_lines_adds_distinct_lines(self):
        line_a = OCRBlock(text="HELLO", elements=[OCRElement("HELLO", 0.9)])
        line_b = OCRBlock(text="WORLD", elements=[OCRElement("WORLD", 0.8)])
        block = OCRBlock(
            text="HELLO\nWORLD",
            elements=line_a.elements + line_b.elements,
            lines=[line_a, line_b],
        )
        single = OCRBlock(
            text="ONLY",
            elements=[OCRElement("ONLY", 0.9)],
            lines=[OCRBlock(text="ONLY", elements=[OCRElement("ONLY", 0.9)])],
        )

        expanded = expand_lines([block, single])

        assert [b.text for b in expanded] == ["HELLO\nWORLD", "HELLO", "WORLD", "ONLY"]

    @pytest.mark.asyncio
    async def test_recognize_async_sync_provider(self, blank_frame):
        class SyncProvider:
            def recognize(self, frame):
                return (make_block("CAT"),)

        blocks = await recognize_async(SyncProvider(), blank_frame)
        assert [b.text for b in blocks] == ["CAT"]

    @pytest.mark.asyncio
    async def test_recognize_async_coroutine_provider(self, blank_frame):
        class AsyncProvider:
            async def recognize(self, frame):
                return [make_block("DOG")]

        blocks = await recognize_async(AsyncProvider(), blank_frame)
        assert [b.text for b in blocks] == ["DOG"]

    @pytest.mark.asyncio
    async def test_recognize_async_none_result(self, blank_frame):
        class EmptyProvider:
            def recognize(self, frame):
                return None

        assert await recognize_async(EmptyProvider(), blank_frame) == []
