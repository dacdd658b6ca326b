"""
Text normalization shared by the matchers.

Full-width alphanumerics and half-width katakana are folded with NFKC so
that ledger exports and forecast spreadsheets typed on different input
methods compare equal.
"""

import re
import unicodedata
from typing import Optional

_DASHES = re.compile(r"[\-‐-―−ー－]")
_NON_WORD = re.compile(r"[^\w]+", re.UNICODE)
_SPACES = re.compile(r"\s+")


def normalize_code(value: Optional[str]) -> str:
    """Normalize an account code: NFKC, no whitespace, case-folded."""
    if not value:
        return ""
    folded = unicodedata.normalize("NFKC", value)
    return _SPACES.sub("", folded).casefold()


def normalize_text(value: Optional[str]) -> str:
    """Normalize free text or a reference for comparison."""
    if not value:
        return ""
    folded = unicodedata.normalize("NFKC", value).casefold()
    folded = _DASHES.sub("", folded)
    folded = _NON_WORD.sub(" ", folded)
    return _SPACES.sub(" ", folded).strip()
