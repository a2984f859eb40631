"""Deterministic clean-up of Ethiopic (Amharic) OCR output.

Optical recognition of Ethiopic text regularly confuses a handful of
syllables with Latin lookalikes and mangles the script's own punctuation.
The correction table here fixes those confusions without calling any remote
service. It only runs when the text actually contains Ethiopic characters.
"""

from __future__ import annotations

import logging
import re

from services.ai.exceptions import AIProviderError, QuotaExceeded
from services.ai.providers.base import MultimodalProvider, TextRefiner


logger = logging.getLogger(__name__)

# Ethiopic, Ethiopic Supplement, Ethiopic Extended, Ethiopic Extended-A
ETHIOPIC_CLASS = "\u1200-\u139f\u2d80-\u2ddf\uab00-\uab2f"
ETHIOPIC_RE = re.compile(f"[{ETHIOPIC_CLASS}]")
# Syllables only; excludes the script's own punctuation and numerals
SYLLABLE_CLASS = "\u1200-\u135a\u1380-\u139f\u2d80-\u2ddf\uab00-\uab2f"
_LETTER = f"[{SYLLABLE_CLASS}]"

# Sequences replaced everywhere once the script is detected
PUNCTUATION_SUBSTITUTIONS: tuple[tuple[str, str], ...] = (
    ("፡፡", "።"),  # two wordspaces read instead of a full stop
)

# Substitutions applied only directly after an Ethiopic syllable
TRAILING_SUBSTITUTIONS: dict[str, str] = {
    "::": "።",
    ":-": "፦",  # preface colon
    ",": "፣",
    ";": "፤",
}

# Latin/digit lookalikes substituted only when wedged between Ethiopic syllables
LOOKALIKE_SUBSTITUTIONS: dict[str, str] = {
    "U": "ሀ",
    "u": "ሀ",
    "h": "ከ",
    "m": "ጠ",
    "+": "ተ",
    "7": "ገ",
    "0": "ዐ",
    "O": "ዐ",
    "o": "ዐ",
}

_TRAILING_RE = re.compile(
    f"(?<={_LETTER})("
    + "|".join(re.escape(k) for k in sorted(TRAILING_SUBSTITUTIONS, key=len, reverse=True))
    + ")"
)
_LOOKALIKE_RE = re.compile(
    f"(?<={_LETTER})(["
    + re.escape("".join(LOOKALIKE_SUBSTITUTIONS))
    + f"]+)(?={_LETTER})"
)

REFINE_PROMPT = """You are proofreading Amharic text produced by OCR. Fix \
characters that were misrecognized (for example similar-looking syllables or \
Latin letters inside Amharic words) and restore Ethiopic punctuation. Keep the \
structure, headings, and page numbers exactly as they are. Return only the \
corrected text."""


def contains_ethiopic(text: str) -> bool:
    return ETHIOPIC_RE.search(text) is not None


def apply_corrections(text: str) -> str:
    """Apply the fixed substitution table to text containing Ethiopic."""
    for wrong, right in PUNCTUATION_SUBSTITUTIONS:
        text = text.replace(wrong, right)
    text = _TRAILING_RE.sub(lambda m: TRAILING_SUBSTITUTIONS[m.group(1)], text)
    text = _LOOKALIKE_RE.sub(
        lambda m: "".join(LOOKALIKE_SUBSTITUTIONS[c] for c in m.group(1)), text
    )
    return text


class ProviderTextRefiner:
    """Remote refinement pass using the multimodal provider's text completion."""

    def __init__(self, provider: MultimodalProvider) -> None:
        self.provider = provider

    async def refine(self, text: str) -> str:
        return await self.provider.complete(REFINE_PROMPT, text, temperature=0.0)


class ScriptCorrector:
    """Final OCR stage; skipped entirely when no Ethiopic text is present."""

    def __init__(self, refiner: TextRefiner | None = None) -> None:
        self.refiner = refiner

    def applies_to(self, text: str) -> bool:
        return contains_ethiopic(text)

    async def correct(self, text: str) -> str:
        if not self.applies_to(text):
            return text

        source = text
        if self.refiner is not None:
            try:
                refined = await self.refiner.refine(text)
                if refined.strip():
                    source = refined
            except QuotaExceeded:
                logger.warning("Script refinement quota exceeded; using offline table")
            except AIProviderError as e:
                logger.warning("Script refinement failed (%s); using offline table", e)

        corrected = apply_corrections(source)
        if corrected != source:
            logger.debug("Applied offline script corrections")
        return corrected
