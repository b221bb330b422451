"""
Text Normalizer for SteadyText

Turns raw OCR output into a comparable candidate key:
- OCR character substitutions
- Case normalization (upper case)
- Punctuation and symbol removal
- Whitespace collapsing
"""

import re
from dataclasses import dataclass


_WHITESPACE = re.compile(r'\s+')

# Common OCR character substitutions, applied before symbols are stripped.
# A vertical bar is how most engines misread a thin sans-serif "l".
CHAR_SUBSTITUTIONS = {
    '|': 'L',
}

_SUBSTITUTION_TABLE = str.maketrans(CHAR_SUBSTITUTIONS)


def normalize(raw: str) -> str:
    """
    Canonicalize raw OCR text.

    Upper-cases first so that characters whose upper-case form carries a
    combining mark are stripped in the same pass, keeping the function
    idempotent.

    Args:
        raw: Raw OCR text

    Returns:
        Normalized text, possibly empty
    """
    if not raw:
        return ""

    text = raw.upper().translate(_SUBSTITUTION_TABLE)
    text = ''.join(c for c in text if c.isalnum() or c.isspace())
    text = _WHITESPACE.sub(' ', text)
    return text.strip()


@dataclass
class NormalizationResult:
    """Result of text normalization."""
    original: str
    normalized: str
    is_candidate: bool


class TextNormalizer:
    """
    Candidate-key normalizer.

    Usage:
        normalizer = TextNormalizer(min_length=2)
        result = normalizer.normalize("He||o, World!!")
        print(result.normalized)  # "HELLO WORLD"
    """

    def __init__(self, min_length: int = 2):
        """
        Args:
            min_length: Shortest normalized text accepted as a candidate
        """
        self.min_length = min_length

    def normalize(self, text: str) -> NormalizationResult:
        normalized = normalize(text)
        return NormalizationResult(
            original=text or "",
            normalized=normalized,
            is_candidate=self.is_candidate(normalized),
        )

    def is_candidate(self, normalized: str) -> bool:
        """Whether already-normalized text is long enough to track."""
        return len(normalized) >= self.min_length
