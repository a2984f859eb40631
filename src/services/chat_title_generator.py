"""Service for generating AI-powered conversation titles using pydantic-ai."""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field
from pydantic_ai import Agent
from pydantic_ai.messages import BinaryContent, UserContent

from schemas.chat import EncodedImage
from services.ai.model_factory import get_text_model


logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 50
FALLBACK_WORD_COUNT = 5


class GeneratedTitle(BaseModel):
    """Structured output for AI-generated conversation title."""

    title: str = Field(description="Plain-text title of 5 words or less")


TITLE_SYSTEM_PROMPT = """Generate a very short, concise title (5 words or \
less) for the user's first message in a chat.

Rules:
- Plain text only, no special formatting or quotation marks
- Use the language of the message
- If an image is provided, incorporate a brief description of the image
- Output JSON only: {"title": "Your Title"}
"""

# Lazy-load the agent to avoid requiring API keys at import time
_title_agent: Agent[None, GeneratedTitle] | None = None


def _get_title_agent() -> Agent[None, GeneratedTitle]:
    """Get or create the title generation agent (lazy initialization)."""
    global _title_agent
    if _title_agent is None:
        model = get_text_model()
        _title_agent = Agent(
            model,
            output_type=GeneratedTitle,
            system_prompt=TITLE_SYSTEM_PROMPT,
            model_settings={"temperature": 0.1},
        )
    return _title_agent


def clean_title(raw_title: str) -> str:
    """Strip quotes and whitespace and cap the title length."""
    # Only the first line counts, matching a newline stop sequence
    lines = raw_title.strip().replace('"', "").splitlines()
    title = lines[0].strip() if lines else ""
    if len(title) > MAX_TITLE_LENGTH:
        title = title[: MAX_TITLE_LENGTH - 3] + "..."
    return title


def fallback_title(prompt: str) -> str:
    """First five words of the prompt followed by an ellipsis."""
    words = prompt.split(" ")
    return " ".join(words[:FALLBACK_WORD_COUNT]) + "..."


async def generate_conversation_title(
    prompt: str, image: EncodedImage | None = None
) -> str:
    """Generate a title from the first message of a conversation.

    Args:
        prompt: The user's first message
        image: Optional first attached image

    Returns:
        Cleaned title string (may be empty if the model produced nothing)

    Raises:
        Exception: If AI generation fails
    """
    try:
        user_prompt: list[UserContent] = [f'User Prompt: "{prompt}"']
        if image is not None:
            user_prompt.append(BinaryContent(data=image.data, media_type=image.mime_type))

        logger.info("Generating title (image=%s)", image is not None)

        agent = _get_title_agent()
        result = await agent.run(user_prompt)

        title = clean_title(result.output.title)
        logger.info(f"Generated title: {title}")
        return title

    except Exception as e:
        logger.error(f"Failed to generate conversation title: {e}", exc_info=True)
        raise
