"""Reasoning providers speaking the OpenAI chat-completions protocol.

DeepSeek's own API and OpenRouter both expose OpenAI-compatible endpoints,
so one client class covers both; each configured endpoint becomes one entry
in the orchestrator's ordered fallback list.
"""

from __future__ import annotations

import logging
from typing import Any

from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    RateLimitError,
)

from schemas.chat import ChatTurn, GenerationRequest, GenerationResult
from services.ai.exceptions import (
    AIProviderError,
    ContentBlocked,
    IncompleteGeneration,
    OperationFailed,
    ProviderUnavailable,
    QuotaExceeded,
)


logger = logging.getLogger(__name__)

TEMPERATURE = 0.4  # Balanced for creativity and accuracy
MAX_TOKENS = 4000
TOP_P = 0.9
FREQUENCY_PENALTY = 0.1

HISTORY_WINDOW = 15
DOCUMENT_CONTEXT_MIN_CHARS = 100
DOCUMENT_CONTEXT_MAX_CHARS = 2000

REASONING_SYSTEM_PROMPT = """You are an intelligent conversational AI with deep \
expertise in the Amharic language and Ethiopian culture. You understand \
context, remember previous conversations, and provide thoughtful, relevant \
responses.

**CORE INTELLIGENCE:**
- Advanced natural language understanding in Amharic (አማርኛ) and English
- Contextual awareness of ongoing conversations
- Memory of previously discussed topics and documents
- Adaptive communication style based on user preferences

**SMART INTERACTION GUIDELINES:**
- Use the language the user prefers (auto-detect from their input)
- Provide concise but complete answers
- When referencing document content, cite specific page numbers
- Offer follow-up questions or related topics when appropriate
- If unsure about something, acknowledge limitations honestly"""

DOCUMENT_CONTEXT_TEMPLATE = """**ACTIVE DOCUMENT CONTEXT:**
The user has shared the following document content:

{content}

- When users ask about topics, find relevant sections and provide page numbers
- Help users navigate and understand the structure
- Offer related topics and cross-references when helpful"""

OCR_MARKERS = ("extracted and enhanced", "Amharic/English text")


def _document_context(previous_artifact: str) -> str | None:
    content = previous_artifact.strip()
    if len(content) <= DOCUMENT_CONTEXT_MIN_CHARS:
        return None
    if len(content) > DOCUMENT_CONTEXT_MAX_CHARS:
        content = content[:DOCUMENT_CONTEXT_MAX_CHARS] + "...[continued]"
    return DOCUMENT_CONTEXT_TEMPLATE.format(content=content)


def _history_message(turn: ChatTurn) -> dict[str, str]:
    content = turn.text
    # Tag OCR summaries so the model treats them as document material
    if any(marker in content for marker in OCR_MARKERS):
        content = f"[DOCUMENT_EXTRACTED] {content}"
    return {"role": turn.role, "content": content}


def build_messages(
    request: GenerationRequest, history_window: int = HISTORY_WINDOW
) -> list[dict[str, str]]:
    """Translate a generation request into chat-completion messages."""
    system_parts = [REASONING_SYSTEM_PROMPT]
    if request.system_instruction:
        system_parts.append(request.system_instruction)
    document_context = _document_context(request.previous_artifact)
    if document_context:
        system_parts.append(document_context)

    messages = [{"role": "system", "content": "\n\n".join(system_parts)}]
    recent = request.history[-history_window:] if history_window > 0 else []
    messages.extend(_history_message(turn) for turn in recent)
    messages.append({"role": "user", "content": request.prompt})
    return messages


def classify_error(exc: BaseException, provider: str) -> AIProviderError:
    """Map an OpenAI SDK exception onto the domain taxonomy."""
    if isinstance(exc, AIProviderError):
        return exc
    if isinstance(exc, RateLimitError):
        return QuotaExceeded(f"{provider} rate limit or quota exceeded")
    if isinstance(exc, APITimeoutError | APIConnectionError):
        return ProviderUnavailable(f"{provider} could not be reached: {exc}")
    if isinstance(exc, APIStatusError):
        body = exc.body if isinstance(exc.body, dict) else {}
        error_info = body.get("error") if isinstance(body.get("error"), dict) else {}
        if exc.status_code == 402 or error_info.get("code") == "insufficient_quota":
            return QuotaExceeded(f"{provider} account balance or quota exhausted")
        return ProviderUnavailable(
            f"{provider} API error: {exc.status_code} - "
            f"{error_info.get('message') or 'Unknown error'}",
            status_code=exc.status_code,
        )
    return OperationFailed(f"{provider} chat", exc)


class OpenAICompatibleClient:
    """Reasoning provider over an OpenAI-compatible chat-completions API."""

    def __init__(
        self,
        name: str,
        *,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        default_headers: dict[str, str] | None = None,
        max_retries: int = 0,
        history_window: int = HISTORY_WINDOW,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.name = name
        self.model = model
        self.history_window = history_window
        self._client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            default_headers=default_headers,
            max_retries=max_retries,
        )

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        messages = build_messages(request, self.history_window)
        logger.info(
            "Calling reasoning provider %s: model=%s history=%d",
            self.name,
            self.model,
            len(messages) - 2,
        )
        try:
            response: Any = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,  # type: ignore[arg-type]
                temperature=TEMPERATURE,
                max_tokens=MAX_TOKENS,
                top_p=TOP_P,
                frequency_penalty=FREQUENCY_PENALTY,
                stream=False,
            )
        except Exception as e:
            raise classify_error(e, self.name) from e

        if not response.choices:
            raise IncompleteGeneration(f"No response from {self.name}")
        choice = response.choices[0]
        text = (choice.message.content or "").strip() if choice.message else ""
        finish_reason = choice.finish_reason

        if finish_reason == "content_filter":
            raise ContentBlocked(f"{self.name} blocked the request")
        if not text:
            raise IncompleteGeneration(
                f"{self.name} returned no text (finish reason: {finish_reason})",
                finish_reason=finish_reason,
            )

        # Reasoning providers never produce artifacts; keep the previous one
        return GenerationResult(
            chat_response=text,
            artifact_content=request.previous_artifact,
            provider=self.name,
        )
