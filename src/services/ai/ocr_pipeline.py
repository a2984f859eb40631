"""Four-stage OCR pipeline: preprocess, extract, organize, script-correct.

Stages run strictly in order, each consuming the previous stage's output:

1. Preprocess   - OCR-mode normalization per image; a failing image keeps its
                  original encoding instead of aborting the job.
2. Extract      - one batched multimodal call over all images (temperature 0).
3. Organize     - reformat the transcription into nested headings; failures
                  pass the raw transcription through.
4. Correct      - local Ethiopic substitution table, only when the script is
                  present.

Only the final text is returned; intermediate products are discarded.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence

from schemas.chat import EncodedImage
from services.ai.exceptions import ContentBlocked, IncompleteGeneration
from services.ai.models import SAFETY_REASONS
from services.ai.providers.base import MultimodalProvider
from services.ai.script_correction import ScriptCorrector
from services.images.normalize import NormalizeMode, normalize


logger = logging.getLogger(__name__)

NO_TEXT_FOUND = "No text could be extracted from the provided image(s)."
MODEL_NO_TEXT_REPLY = "no text found."

NORMAL_STOP_REASONS = frozenset({"STOP", "FINISH_REASON_UNSPECIFIED"})

EXTRACTION_PROMPT = """You are an Optical Character Recognition (OCR) \
specialist. Extract all text from the provided image(s). The images may be \
pages of a single document; cover every image and keep the pages in order.

Return a hierarchical transcription:
- First the document header or title
- Then each section as a nested list, keeping numbering and indentation
- Keep every page reference next to the section it belongs to

Preserve the original language and script exactly (Amharic text stays in \
Ethiopic script). If you cannot find any text in the images, you MUST return \
the string 'No text found.'. Do not add any other commentary."""

ORGANIZE_PROMPT = """Reformat the following OCR transcription into a clean \
nested-heading structure:

# Document title
## Major part
### Chapter
- Topic ... page reference

Rules:
- Keep the original language and wording; do not translate
- Keep every page reference next to its topic
- Remove duplicated headings that the OCR repeated
- Output only the reformatted text

Transcription:"""

Normalizer = Callable[[bytes, NormalizeMode], EncodedImage]


def _default_normalizer(data: bytes, mode: NormalizeMode) -> EncodedImage:
    return normalize(data, mode)


class OcrPipeline:
    """Turns one or more images into organized, corrected text."""

    def __init__(
        self,
        provider: MultimodalProvider,
        corrector: ScriptCorrector | None = None,
        normalizer: Normalizer = _default_normalizer,
    ) -> None:
        self.provider = provider
        self.corrector = corrector or ScriptCorrector()
        self.normalizer = normalizer

    async def run(self, images: Sequence[EncodedImage]) -> str:
        if not images:
            raise ValueError("An OCR job needs at least one image")

        prepared = await self.preprocess(images)
        raw_text = await self.extract(prepared)
        if raw_text == NO_TEXT_FOUND:
            return raw_text
        organized = await self.organize(raw_text)
        return await self.corrector.correct(organized)

    async def preprocess(self, images: Sequence[EncodedImage]) -> list[EncodedImage]:
        """Normalize every image independently; failures keep the original."""
        results = await asyncio.gather(
            *(asyncio.to_thread(self.normalizer, img.data, "ocr") for img in images),
            return_exceptions=True,
        )

        prepared: list[EncodedImage] = []
        for index, (image, result) in enumerate(zip(images, results, strict=True)):
            if isinstance(result, Exception):
                logger.warning(
                    "Preprocessing failed for image %d; using original encoding: %s",
                    index + 1,
                    result,
                )
                prepared.append(image)
            elif isinstance(result, BaseException):
                raise result
            else:
                prepared.append(result)
        return prepared

    async def extract(self, images: Sequence[EncodedImage]) -> str:
        response = await self.provider.extract_text(images, EXTRACTION_PROMPT)
        text = response.text.strip()

        if not text:
            reason = response.finish_reason
            logger.warning("OCR returned no text (finish reason: %s)", reason)
            if reason in SAFETY_REASONS:
                raise ContentBlocked(
                    "The OCR request was blocked due to safety settings. "
                    "Please check the input images."
                )
            if reason and reason not in NORMAL_STOP_REASONS:
                raise IncompleteGeneration(
                    f"OCR failed. The model stopped for reason: {reason}.",
                    finish_reason=reason,
                )
            return NO_TEXT_FOUND

        if text.lower() == MODEL_NO_TEXT_REPLY:
            return NO_TEXT_FOUND

        logger.info(
            "Extracted %d characters from %d image(s)", len(text), len(images)
        )
        return text

    async def organize(self, raw_text: str) -> str:
        try:
            organized = await self.provider.complete(
                ORGANIZE_PROMPT, raw_text, temperature=0.0
            )
        except Exception as e:
            logger.warning("Organize stage failed; keeping raw transcription: %s", e)
            return raw_text
        return organized.strip() or raw_text
