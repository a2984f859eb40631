"""In-memory conversation state for the chat core.

Each action snapshots the conversation it was invoked on, appends the user
entry right away, awaits the orchestrator, and then merges its result back
into whatever the conversation looks like by then (looked up again by id).
Two actions in flight on the same conversation therefore never drop each
other's messages. A failed action adds exactly one assistant entry that
explains the failure in plain language.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence

from core.error_handler import StructuredLogger, describe_failure, set_correlation_id
from core.exceptions import ConversationNotFoundError
from schemas.chat import ChatTurn, Conversation, EncodedImage, GenerationRequest
from services.ai.orchestrator import ResponseOrchestrator
from services.personas import DEFAULT_PERSONA_ID, get_persona


structured_logger = StructuredLogger(__name__)

NEW_CHAT_TITLE = "New Chat"
DEFAULT_MODEL = "gemini-2.5-flash"

WELCOME_MESSAGE = (
    "Hello! I'm your multimodal assistant. You can ask me questions, provide "
    "an image, and request content for the artifact panel. For example, try "
    "asking me to 'write a React component for a login form' or share a "
    "picture of a landmark and ask what it is."
)

DEFAULT_ARTIFACT = (
    "<!-- Artifacts will appear here -->\n\n/*\n  When you ask me to create "
    "something like code, a document, or a plan, I'll update this panel with "
    "the complete result.\n*/"
)

IMAGE_REPLY = "Here is the image you requested:"
EDIT_REPLY = "Here is the edited image:"
OCR_REPLY_HEADER = "Here is the extracted and enhanced Amharic/English text:"


def failure_message(exc: BaseException, action: str | None = None) -> str:
    where = f" while {action}" if action else ""
    return f"Sorry, something went wrong{where}: {describe_failure(exc)}"


class ConversationManager:
    """Holds conversations and turns user actions into history entries."""

    def __init__(
        self, orchestrator: ResponseOrchestrator, default_model: str = DEFAULT_MODEL
    ) -> None:
        self.orchestrator = orchestrator
        self.default_model = default_model
        self._conversations: dict[str, Conversation] = {}

    # Conversation bookkeeping

    def create_conversation(self, title: str = NEW_CHAT_TITLE) -> Conversation:
        conversation = Conversation(
            id=str(uuid.uuid4()),
            title=title,
            messages=[ChatTurn(role="assistant", text=WELCOME_MESSAGE)],
            artifact_content=DEFAULT_ARTIFACT,
            is_artifact_visible=False,
            model=self.default_model,
            persona_id=DEFAULT_PERSONA_ID,
        )
        self._conversations[conversation.id] = conversation
        structured_logger.info("Conversation created", conversation_id=conversation.id)
        return conversation

    def get(self, conversation_id: str) -> Conversation:
        try:
            return self._conversations[conversation_id]
        except KeyError:
            raise ConversationNotFoundError(
                f"Conversation {conversation_id} not found"
            ) from None

    def list_conversations(self) -> list[Conversation]:
        """Newest first."""
        return list(reversed(self._conversations.values()))

    def rename(self, conversation_id: str, title: str) -> Conversation:
        conversation = self.get(conversation_id)
        conversation.title = title
        return conversation

    def delete(self, conversation_id: str) -> None:
        self.get(conversation_id)
        del self._conversations[conversation_id]

    def clear(self, conversation_id: str) -> Conversation:
        """Reset history and artifact, keeping title, model and persona."""
        conversation = self.get(conversation_id)
        conversation.messages = [ChatTurn(role="assistant", text=WELCOME_MESSAGE)]
        conversation.artifact_content = DEFAULT_ARTIFACT
        conversation.is_artifact_visible = False
        return conversation

    def set_model(self, conversation_id: str, model: str) -> Conversation:
        conversation = self.get(conversation_id)
        conversation.model = model
        return conversation

    def set_persona(self, conversation_id: str, persona_id: str) -> Conversation:
        conversation = self.get(conversation_id)
        conversation.persona_id = get_persona(persona_id).id
        return conversation

    def toggle_artifact_panel(self, conversation_id: str) -> Conversation:
        conversation = self.get(conversation_id)
        conversation.is_artifact_visible = not conversation.is_artifact_visible
        return conversation

    # Actions

    def _begin(self, conversation_id: str, user_turn: ChatTurn) -> Conversation:
        set_correlation_id(str(uuid.uuid4()))
        snapshot = self.get(conversation_id).model_copy(deep=True)
        self.get(conversation_id).messages.append(user_turn)
        return snapshot

    def _merge(self, conversation_id: str, reply: ChatTurn) -> Conversation | None:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            structured_logger.warning(
                "Conversation removed before reply arrived",
                conversation_id=conversation_id,
            )
            return None
        conversation.messages.append(reply)
        return conversation

    async def send_message(
        self,
        conversation_id: str,
        text: str,
        images: Sequence[EncodedImage] = (),
    ) -> Conversation | None:
        """Send a chat turn and merge the reply and artifact back."""
        user_turn = ChatTurn(role="user", text=text, images=tuple(images))
        snapshot = self._begin(conversation_id, user_turn)

        if snapshot.title == NEW_CHAT_TITLE and len(snapshot.messages) == 1:
            title = await self.orchestrator.generate_title(
                text, images[0] if images else None
            )
            current = self._conversations.get(conversation_id)
            if current is not None and current.title == NEW_CHAT_TITLE:
                current.title = title

        persona = get_persona(snapshot.persona_id)
        request = GenerationRequest(
            prompt=text,
            images=list(images),
            previous_artifact=snapshot.artifact_content,
            system_instruction=persona.system_instruction,
            model=snapshot.model,
            history=snapshot.messages,
        )

        structured_logger.info(
            "Sending message",
            conversation_id=conversation_id,
            image_count=len(images),
            persona=persona.id,
        )
        try:
            result = await self.orchestrator.generate(request)
        except Exception as e:
            structured_logger.error(
                "Message failed", conversation_id=conversation_id, error=str(e)
            )
            return self._merge(
                conversation_id, ChatTurn(role="assistant", text=failure_message(e))
            )

        conversation = self._merge(
            conversation_id, ChatTurn(role="assistant", text=result.chat_response)
        )
        if conversation is None:
            return None

        artifact = result.artifact_content
        if artifact.strip():
            has_new_artifact = (
                artifact != conversation.artifact_content
                and artifact != DEFAULT_ARTIFACT
            )
            conversation.artifact_content = artifact
            conversation.is_artifact_visible = (
                conversation.is_artifact_visible or has_new_artifact
            )
        structured_logger.info(
            "Message answered",
            conversation_id=conversation_id,
            provider=result.provider,
            artifact_visible=conversation.is_artifact_visible,
        )
        return conversation

    async def generate_image(
        self, conversation_id: str, prompt: str
    ) -> Conversation | None:
        self._begin(
            conversation_id,
            ChatTurn(role="user", text=f'Generate an image of: "{prompt}"'),
        )
        try:
            image = await self.orchestrator.generate_image(prompt)
        except Exception as e:
            structured_logger.error(
                "Image generation failed", conversation_id=conversation_id, error=str(e)
            )
            reply = ChatTurn(
                role="assistant", text=failure_message(e, "generating the image")
            )
        else:
            reply = ChatTurn(role="assistant", text=IMAGE_REPLY, images=(image,))
        return self._merge(conversation_id, reply)

    async def edit_image(
        self, conversation_id: str, prompt: str, image: EncodedImage
    ) -> Conversation | None:
        self._begin(
            conversation_id,
            ChatTurn(role="user", text=f'Edit Request: "{prompt}"', images=(image,)),
        )
        try:
            result = await self.orchestrator.edit_image(prompt, image)
        except Exception as e:
            structured_logger.error(
                "Image edit failed", conversation_id=conversation_id, error=str(e)
            )
            reply = ChatTurn(
                role="assistant", text=failure_message(e, "editing the image")
            )
        else:
            reply = ChatTurn(
                role="assistant",
                text=result.text or EDIT_REPLY,
                images=(result.image,) if result.image else (),
            )
        return self._merge(conversation_id, reply)

    async def perform_ocr(
        self, conversation_id: str, images: Sequence[EncodedImage]
    ) -> Conversation | None:
        if not images:
            raise ValueError("OCR needs at least one image")
        self._begin(
            conversation_id,
            ChatTurn(
                role="user",
                text=(
                    f"Please extract and organize the text from these "
                    f"{len(images)} images."
                ),
                images=tuple(images),
            ),
        )
        try:
            text = await self.orchestrator.perform_ocr(images)
        except Exception as e:
            structured_logger.error(
                "OCR failed", conversation_id=conversation_id, error=str(e)
            )
            reply = ChatTurn(role="assistant", text=failure_message(e, "performing OCR"))
        else:
            reply = ChatTurn(
                role="assistant", text=f"{OCR_REPLY_HEADER}\n\n---\n\n{text}"
            )
        return self._merge(conversation_id, reply)
