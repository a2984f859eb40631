"""Schemas for chat turns, generation requests, and provider replies."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


Role = Literal["user", "assistant"]


class EncodedImage(BaseModel):
    """An encoded image blob tagged with its MIME type."""

    mime_type: str = "image/jpeg"
    data: bytes

    model_config = ConfigDict(frozen=True)


class ChatTurn(BaseModel):
    """One entry in a conversation's history. Immutable once created."""

    role: Role
    text: str
    images: tuple[EncodedImage, ...] = ()

    model_config = ConfigDict(frozen=True)


class GenerationRequest(BaseModel):
    """Everything a provider needs to answer one user turn."""

    prompt: str
    images: list[EncodedImage] = Field(default_factory=list)
    previous_artifact: str = ""
    system_instruction: str = ""
    model: str = ""
    history: list[ChatTurn] = Field(default_factory=list)

    @property
    def has_images(self) -> bool:
        return len(self.images) > 0


class GenerationResult(BaseModel):
    """Chat-facing reply plus the (possibly unchanged) artifact content."""

    chat_response: str
    artifact_content: str
    provider: str | None = None


class ArtifactReply(BaseModel):
    """Two-field structured output requested from the multimodal provider."""

    chat_response: str | None = Field(default=None, alias="chatResponse")
    artifact_content: str | None = Field(default=None, alias="artifactContent")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ImageEditResult(BaseModel):
    """Result of an image edit: optional commentary and/or an edited image."""

    text: str | None = None
    image: EncodedImage | None = None


class Persona(BaseModel):
    """A named assistant personality with its system instruction."""

    id: str
    name: str
    system_instruction: str

    model_config = ConfigDict(frozen=True)


class Conversation(BaseModel):
    """A named conversation with its history and artifact."""

    id: str
    title: str = "New Chat"
    messages: list[ChatTurn] = Field(default_factory=list)
    artifact_content: str = ""
    is_artifact_visible: bool = False
    model: str = ""
    persona_id: str = ""
