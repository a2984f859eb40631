"""Gemini client: the designated multimodal provider.

Wraps the ``google-genai`` async client and translates between the generic
request/result schemas and Gemini's content/parts wire format. All SDK and
transport errors are mapped onto the domain taxonomy in
``services.ai.exceptions`` before leaving this module.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import ValidationError

from schemas.chat import (
    ArtifactReply,
    EncodedImage,
    GenerationRequest,
    GenerationResult,
    ImageEditResult,
)
from services.ai.exceptions import (
    AIProviderError,
    ContentBlocked,
    InvalidResponseShape,
    OperationFailed,
    ProviderUnavailable,
    QuotaExceeded,
)
from services.ai.models import SAFETY_REASONS, ExtractionResponse


logger = logging.getLogger(__name__)

PROVIDER_NAME = "gemini"

CHAT_TEMPERATURE = 0.7
FALLBACK_CHAT_RESPONSE = "I'm not sure how to respond to that, but here's the artifact."

ARTIFACT_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "chatResponse": {
            "type": "STRING",
            "description": (
                "A friendly, conversational response to the user's prompt. "
                "Acknowledge their request and provide any direct answers or "
                "commentary here."
            ),
        },
        "artifactContent": {
            "type": "STRING",
            "description": (
                "The complete, updated content for the artifact panel. If the "
                "user asks for code, a document, a list, etc., generate the full "
                "content here. If the user is just chatting or the artifact "
                "doesn't need to change, return the previous artifact content. "
                "This should always be the complete artifact, not just the changes."
            ),
        },
    },
    "required": ["chatResponse", "artifactContent"],
}


def classify_error(exc: BaseException, operation: str) -> AIProviderError:
    """Map a Gemini SDK or transport exception onto the domain taxonomy."""
    if isinstance(exc, AIProviderError):
        return exc
    if isinstance(exc, genai_errors.APIError):
        code = exc.code or 0
        if code == 429 or exc.status == "RESOURCE_EXHAUSTED":
            return QuotaExceeded(f"Gemini quota exceeded during {operation}")
        if code >= 500:
            return ProviderUnavailable(
                f"Gemini returned {code} during {operation}", status_code=code
            )
        return OperationFailed(operation, exc)
    if isinstance(exc, httpx.TransportError | TimeoutError | ConnectionError):
        return ProviderUnavailable(f"Gemini could not be reached during {operation}")
    return OperationFailed(operation, exc)


def finish_reason_of(response: Any) -> str | None:
    """Return the first candidate's stop reason (or the prompt block reason)."""
    feedback = getattr(response, "prompt_feedback", None)
    block_reason = getattr(feedback, "block_reason", None) if feedback else None
    if block_reason:
        return "SAFETY"
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    reason = getattr(candidates[0], "finish_reason", None)
    if reason is None:
        return None
    return str(getattr(reason, "name", reason))


def _image_part(image: EncodedImage) -> types.Part:
    return types.Part.from_bytes(data=image.data, mime_type=image.mime_type)


def parse_artifact_reply(text: str | None, previous_artifact: str) -> GenerationResult:
    """Validate the two-field JSON contract and apply artifact preservation."""
    if not text:
        raise InvalidResponseShape("Received an empty or invalid response from the API.")
    json_string = text.strip()
    if not json_string.startswith("{") or not json_string.endswith("}"):
        raise InvalidResponseShape("Received a non-JSON response from the API.")
    try:
        reply = ArtifactReply.model_validate(json.loads(json_string))
    except (json.JSONDecodeError, ValidationError) as e:
        raise InvalidResponseShape(f"Malformed structured response: {e}") from e

    artifact = reply.artifact_content
    if artifact is None or not artifact.strip():
        artifact = previous_artifact
    return GenerationResult(
        chat_response=reply.chat_response or FALLBACK_CHAT_RESPONSE,
        artifact_content=artifact,
        provider=PROVIDER_NAME,
    )


class GeminiClient:
    """Multimodal provider backed by the google-genai async client."""

    name = PROVIDER_NAME

    def __init__(
        self,
        api_key: str | None = None,
        *,
        chat_model: str = "gemini-2.5-flash",
        ocr_model: str = "gemini-2.5-flash",
        image_model: str = "imagen-4.0-generate-001",
        image_edit_model: str = "gemini-2.5-flash-image-preview",
        base_url: str | None = None,
        client: genai.Client | None = None,
    ) -> None:
        self.chat_model = chat_model
        self.ocr_model = ocr_model
        self.image_model = image_model
        self.image_edit_model = image_edit_model
        if client is None:
            http_options = types.HttpOptions(base_url=base_url) if base_url else None
            client = genai.Client(api_key=api_key, http_options=http_options)
        self._client = client

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        parts: list[types.Part] = [_image_part(img) for img in request.images]
        parts.append(types.Part.from_text(text=f'User Prompt: "{request.prompt}"'))
        parts.append(
            types.Part.from_text(
                text=f"Previous Artifact Content: ```\n{request.previous_artifact}\n```"
            )
        )

        try:
            response = await self._client.aio.models.generate_content(
                model=request.model or self.chat_model,
                contents=[types.Content(role="user", parts=parts)],
                config=types.GenerateContentConfig(
                    system_instruction=request.system_instruction or None,
                    response_mime_type="application/json",
                    response_schema=ARTIFACT_RESPONSE_SCHEMA,
                    temperature=CHAT_TEMPERATURE,
                ),
            )
        except Exception as e:
            raise classify_error(e, "chat response") from e

        text = response.text
        if not text and finish_reason_of(response) in SAFETY_REASONS:
            raise ContentBlocked("The chat response was blocked due to safety settings.")
        result = parse_artifact_reply(text, request.previous_artifact)
        logger.info(
            "Gemini chat response: model=%s images=%d artifact_changed=%s",
            request.model or self.chat_model,
            len(request.images),
            result.artifact_content != request.previous_artifact,
        )
        return result

    async def generate_image(self, prompt: str) -> EncodedImage:
        try:
            response = await self._client.aio.models.generate_images(
                model=self.image_model,
                prompt=prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=1,
                    output_mime_type="image/png",
                ),
            )
        except Exception as e:
            raise classify_error(e, "image generation") from e

        generated = response.generated_images or []
        image = generated[0].image if generated else None
        if image is None or not image.image_bytes:
            raise OperationFailed(
                "image generation", RuntimeError("No image was generated by the API.")
            )
        return EncodedImage(
            mime_type=image.mime_type or "image/png", data=image.image_bytes
        )

    async def edit_image(self, prompt: str, image: EncodedImage) -> ImageEditResult:
        try:
            response = await self._client.aio.models.generate_content(
                model=self.image_edit_model,
                contents=[
                    types.Content(
                        role="user",
                        parts=[_image_part(image), types.Part.from_text(text=prompt)],
                    )
                ],
                config=types.GenerateContentConfig(
                    response_modalities=["IMAGE", "TEXT"],
                ),
            )
        except Exception as e:
            raise classify_error(e, "image editing") from e

        text: str | None = None
        edited: EncodedImage | None = None
        candidates = response.candidates or []
        content = candidates[0].content if candidates else None
        for part in (content.parts if content and content.parts else []):
            if part.text:
                text = part.text
            elif part.inline_data and part.inline_data.data:
                edited = EncodedImage(
                    mime_type=part.inline_data.mime_type or "image/png",
                    data=part.inline_data.data,
                )

        if text is None and edited is None:
            if finish_reason_of(response) in SAFETY_REASONS:
                raise ContentBlocked("The image edit was blocked due to safety settings.")
            raise OperationFailed(
                "image editing", RuntimeError("No content was generated by the API.")
            )
        return ImageEditResult(text=text, image=edited)

    async def extract_text(
        self, images: Sequence[EncodedImage], prompt: str
    ) -> ExtractionResponse:
        parts: list[types.Part] = [types.Part.from_text(text=prompt)]
        parts.extend(_image_part(img) for img in images)
        try:
            response = await self._client.aio.models.generate_content(
                model=self.ocr_model,
                contents=[types.Content(role="user", parts=parts)],
                config=types.GenerateContentConfig(temperature=0.0),
            )
        except Exception as e:
            raise classify_error(e, "OCR operation") from e

        return ExtractionResponse(
            text=(response.text or "").strip(),
            finish_reason=finish_reason_of(response),
        )

    async def complete(
        self, prompt: str, text: str, *, temperature: float = 0.0
    ) -> str:
        try:
            response = await self._client.aio.models.generate_content(
                model=self.ocr_model,
                contents=f"{prompt}\n\n{text}",
                config=types.GenerateContentConfig(temperature=temperature),
            )
        except Exception as e:
            raise classify_error(e, "text completion") from e

        result = (response.text or "").strip()
        if not result:
            if finish_reason_of(response) in SAFETY_REASONS:
                raise ContentBlocked()
            raise InvalidResponseShape("The completion returned no text.")
        return result
