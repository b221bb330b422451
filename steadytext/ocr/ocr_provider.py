"""
OCR Providers

Adapters that turn a camera frame into recognized text blocks for the
stabilization engine, backed by EasyOCR or Tesseract.
"""

import asyncio
import inspect
from typing import Any, List, Optional, Protocol, Sequence, runtime_checkable
from dataclasses import dataclass, field
import numpy as np
import cv2
from loguru import logger

from steadytext.exceptions import OCRProviderError

try:
    import easyocr
    EASYOCR_AVAILABLE = True
except ImportError:
    EASYOCR_AVAILABLE = False
    logger.warning("EasyOCR not available. Install with: pip install easyocr")

try:
    import pytesseract
    TESSERACT_AVAILABLE = True
except ImportError:
    TESSERACT_AVAILABLE = False
    logger.warning("Tesseract not available. Install with: pip install pytesseract")


@dataclass
class OCRElement:
    """Smallest recognized unit (usually a word)."""
    text: str
    confidence: Optional[float] = None  # in [0, 1], None when not reported


@dataclass
class OCRBlock:
    """A recognized block of text with its elements."""
    text: str
    elements: List[OCRElement] = field(default_factory=list)
    lines: List["OCRBlock"] = field(default_factory=list)

    def __str__(self) -> str:
        return f"'{self.text}' ({len(self.elements)} elements)"


@runtime_checkable
class OCRProvider(Protocol):
    """Anything that can recognize text in a frame. May be sync or async."""

    def recognize(self, frame: Any) -> Sequence[OCRBlock]:
        ...


async def recognize_async(provider: OCRProvider, frame: Any) -> List[OCRBlock]:
    """
    Run a provider without blocking the event loop.

    Coroutine providers are awaited directly; synchronous ones run in a
    worker thread.
    """
    if inspect.iscoroutinefunction(provider.recognize):
        blocks = await provider.recognize(frame)
    else:
        blocks = await asyncio.to_thread(provider.recognize, frame)
    return list(blocks or [])


def expand_lines(blocks: Sequence[OCRBlock]) -> List[OCRBlock]:
    """
    Flatten blocks so every line also appears as its own block.

    A line is only added when its text differs from the block's text.
    """
    expanded = []
    for block in blocks:
        expanded.append(block)
        block_text = block.text.strip()
        for line in block.lines:
            line_text = line.text.strip()
            if line_text and line_text != block_text:
                expanded.append(line)
    return expanded


class EasyOCRProvider:
    """
    EasyOCR-backed provider.

    Each EasyOCR detection becomes one block with a single element.
    """

    DEFAULT_LANGUAGES = ['en']

    def __init__(
        self,
        languages: Optional[List[str]] = None,
        use_gpu: bool = False,
        reader: Any = None,
    ):
        """
        Args:
            languages: List of language codes
            use_gpu: Use GPU acceleration if available
            reader: Pre-built easyocr.Reader (skips construction)
        """
        self.languages = languages or self.DEFAULT_LANGUAGES

        if reader is not None:
            self.reader = reader
        else:
            if not EASYOCR_AVAILABLE:
                raise OCRProviderError("easyocr", "pip install easyocr")
            try:
                self.reader = easyocr.Reader(
                    self.languages,
                    gpu=use_gpu,
                    verbose=False
                )
            except Exception as e:
                raise OCRProviderError("easyocr", str(e)) from e

        logger.info(f"EasyOCRProvider initialized (languages: {self.languages}, GPU: {use_gpu})")

    def recognize(self, frame: np.ndarray) -> List[OCRBlock]:
        results = self.reader.readtext(frame, detail=1, paragraph=False)

        blocks = []
        for _bbox, text, confidence in results:
            text = text.strip()
            if not text:
                continue
            blocks.append(OCRBlock(
                text=text,
                elements=[OCRElement(text=text, confidence=float(confidence))],
            ))

        return blocks


class TesseractProvider:
    """
    Tesseract-backed provider.

    Words are grouped into blocks by Tesseract's block number, and into
    lines by (paragraph, line) within each block.
    """

    def __init__(self, config: str = '--oem 3 --psm 6', lang: str = 'eng'):
        if not TESSERACT_AVAILABLE:
            raise OCRProviderError("tesseract", "pip install pytesseract")
        self.config = config
        self.lang = lang
        logger.info(f"TesseractProvider initialized (config: {config})")

    def recognize(self, frame: np.ndarray) -> List[OCRBlock]:
        if len(frame.shape) == 3:
            gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        else:
            gray = frame

        data = pytesseract.image_to_data(
            gray,
            lang=self.lang,
            config=self.config,
            output_type=pytesseract.Output.DICT
        )
        return self._group_words(data)

    @staticmethod
    def _group_words(data: dict) -> List[OCRBlock]:
        """Build blocks and lines from an image_to_data dictionary."""
        blocks: dict = {}  # block_num -> {(par, line): [OCRElement]}

        for i in range(len(data['text'])):
            text = str(data['text'][i]).strip()
            if not text:
                continue

            conf = float(data['conf'][i])
            element = OCRElement(
                text=text,
                # Tesseract reports -1 for "no confidence"
                confidence=conf / 100.0 if conf >= 0 else None,
            )
            line_key = (data['par_num'][i], data['line_num'][i])
            blocks.setdefault(data['block_num'][i], {}).setdefault(line_key, []).append(element)

        result = []
        for lines in blocks.values():
            line_blocks = [
                OCRBlock(text=" ".join(e.text for e in elements), elements=elements)
                for elements in lines.values()
            ]
            result.append(OCRBlock(
                text="\n".join(line.text for line in line_blocks),
                elements=[e for line in line_blocks for e in line.elements],
                lines=line_blocks,
            ))

        return result
