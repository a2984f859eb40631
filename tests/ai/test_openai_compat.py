"""Tests for the OpenAI-compatible reasoning providers."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import APIStatusError, APITimeoutError, RateLimitError

from schemas.chat import ChatTurn, GenerationRequest
from services.ai.exceptions import (
    ContentBlocked,
    IncompleteGeneration,
    OperationFailed,
    ProviderUnavailable,
    QuotaExceeded,
)
from services.ai.providers.openai_compat import (
    DOCUMENT_CONTEXT_MAX_CHARS,
    REASONING_SYSTEM_PROMPT,
    OpenAICompatibleClient,
    build_messages,
    classify_error,
)


REQUEST = httpx.Request("POST", "https://api.deepseek.com/chat/completions")


def status_error(cls: type[APIStatusError], status: int, body: object = None):
    response = httpx.Response(status, request=REQUEST)
    return cls("error", response=response, body=body)


def completion(content: str | None, finish_reason: str = "stop") -> SimpleNamespace:
    return SimpleNamespace(
        choices=[
            SimpleNamespace(
                message=SimpleNamespace(content=content), finish_reason=finish_reason
            )
        ]
    )


def make_client(response: object = None) -> tuple[OpenAICompatibleClient, MagicMock]:
    sdk = MagicMock()
    sdk.chat.completions.create = AsyncMock(return_value=response)
    return OpenAICompatibleClient("deepseek", model="deepseek-chat", client=sdk), sdk


class TestBuildMessages:
    def test_system_history_and_prompt_order(self):
        history = [
            ChatTurn(role="user", text="Hi"),
            ChatTurn(role="assistant", text="Hello!"),
        ]
        request = GenerationRequest(
            prompt="How are you?",
            history=history,
            system_instruction="Be brief",
        )

        messages = build_messages(request)

        assert messages[0]["role"] == "system"
        assert messages[0]["content"].startswith(REASONING_SYSTEM_PROMPT)
        assert "Be brief" in messages[0]["content"]
        assert messages[1:] == [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello!"},
            {"role": "user", "content": "How are you?"},
        ]

    def test_history_is_limited_to_trailing_window(self):
        history = [ChatTurn(role="user", text=f"turn {i}") for i in range(20)]
        messages = build_messages(GenerationRequest(prompt="now", history=history), 15)

        assert len(messages) == 1 + 15 + 1
        assert messages[1]["content"] == "turn 5"

    def test_ocr_summaries_are_tagged(self):
        history = [
            ChatTurn(
                role="assistant",
                text="Here is the extracted and enhanced Amharic/English text: ...",
            )
        ]
        messages = build_messages(GenerationRequest(prompt="q", history=history))
        assert messages[1]["content"].startswith("[DOCUMENT_EXTRACTED]")

    def test_short_artifact_is_not_document_context(self):
        messages = build_messages(GenerationRequest(prompt="q", previous_artifact="x"))
        assert "ACTIVE DOCUMENT CONTEXT" not in messages[0]["content"]

    def test_long_artifact_is_truncated_document_context(self):
        artifact = "ሀ" * (DOCUMENT_CONTEXT_MAX_CHARS + 500)
        messages = build_messages(GenerationRequest(prompt="q", previous_artifact=artifact))

        system = messages[0]["content"]
        assert "ACTIVE DOCUMENT CONTEXT" in system
        assert "...[continued]" in system
        assert "ሀ" * (DOCUMENT_CONTEXT_MAX_CHARS + 1) not in system


class TestClassifyError:
    def test_rate_limit_is_quota(self):
        assert isinstance(
            classify_error(status_error(RateLimitError, 429), "deepseek"), QuotaExceeded
        )

    def test_payment_required_is_quota(self):
        exc = status_error(APIStatusError, 402)
        assert isinstance(classify_error(exc, "deepseek"), QuotaExceeded)

    def test_insufficient_quota_body_is_quota(self):
        exc = status_error(
            APIStatusError, 403, {"error": {"code": "insufficient_quota"}}
        )
        assert isinstance(classify_error(exc, "openrouter"), QuotaExceeded)

    def test_server_error_is_unavailable(self):
        exc = status_error(APIStatusError, 502, {"error": {"message": "bad gateway"}})
        mapped = classify_error(exc, "openrouter")
        assert isinstance(mapped, ProviderUnavailable)
        assert mapped.status_code == 502
        assert "bad gateway" in mapped.message

    def test_timeout_is_unavailable(self):
        mapped = classify_error(APITimeoutError(request=REQUEST), "deepseek")
        assert isinstance(mapped, ProviderUnavailable)

    def test_unknown_error_is_operation_failed(self):
        mapped = classify_error(KeyError("x"), "deepseek")
        assert isinstance(mapped, OperationFailed)
        assert mapped.operation == "deepseek chat"


@pytest.mark.asyncio
class TestGenerate:
    async def test_returns_text_and_keeps_previous_artifact(self):
        client, sdk = make_client(completion("  ሰላም!  "))

        result = await client.generate(
            GenerationRequest(prompt="ሰላም", previous_artifact="keep me")
        )

        assert result.chat_response == "ሰላም!"
        assert result.artifact_content == "keep me"
        assert result.provider == "deepseek"
        kwargs = sdk.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "deepseek-chat"
        assert kwargs["temperature"] == 0.4
        assert kwargs["max_tokens"] == 4000

    async def test_content_filter_is_blocked(self):
        client, _ = make_client(completion("", finish_reason="content_filter"))
        with pytest.raises(ContentBlocked):
            await client.generate(GenerationRequest(prompt="x"))

    async def test_empty_text_is_incomplete(self):
        client, _ = make_client(completion(None, finish_reason="length"))
        with pytest.raises(IncompleteGeneration) as exc_info:
            await client.generate(GenerationRequest(prompt="x"))
        assert exc_info.value.finish_reason == "length"

    async def test_no_choices_is_incomplete(self):
        client, _ = make_client(SimpleNamespace(choices=[]))
        with pytest.raises(IncompleteGeneration):
            await client.generate(GenerationRequest(prompt="x"))

    async def test_sdk_errors_are_translated(self):
        client, sdk = make_client()
        sdk.chat.completions.create.side_effect = status_error(RateLimitError, 429)
        with pytest.raises(QuotaExceeded):
            await client.generate(GenerationRequest(prompt="x"))


def test_sdk_retries_disabled_by_default():
    client = OpenAICompatibleClient(
        "deepseek", model="deepseek-chat", api_key="test-key", base_url="https://x"
    )
    assert client._client.max_retries == 0
