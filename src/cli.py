"""Command-line entry point for driving the chat core from a terminal."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from core.config import get_settings
from core.error_handler import describe_failure, setup_logging
from core.exceptions import ConfigurationError
from schemas.chat import EncodedImage
from services.ai.orchestrator import ResponseOrchestrator, create_orchestrator
from services.conversations import ConversationManager
from services.images.normalize import guess_content_type, normalize, sniff_content_type
from services.personas import PERSONAS


logger = logging.getLogger(__name__)


def load_image(path: Path, *, raw: bool = False) -> EncodedImage:
    """Read an image file; attachments are normalized, OCR input is kept raw."""
    data = path.read_bytes()
    content_type = guess_content_type(path.name)
    if raw:
        return EncodedImage(
            mime_type=content_type or sniff_content_type(data), data=data
        )
    return normalize(data, "general", content_type=content_type)


def _write_image(image: EncodedImage, output: Path) -> None:
    output.write_bytes(image.data)
    print(f"Saved {image.mime_type} image to {output}")


async def run_chat(
    manager: ConversationManager,
    prompts: list[str],
    images: list[EncodedImage],
    persona_id: str,
    artifact_out: Path | None,
) -> int:
    conversation = manager.create_conversation()
    manager.set_persona(conversation.id, persona_id)

    for index, prompt in enumerate(prompts):
        # Attachments ride along with the first prompt only
        attached = images if index == 0 else []
        result = await manager.send_message(conversation.id, prompt, attached)
        if result is None:
            return 1
        print(f"you> {prompt}")
        print(f"assistant> {result.messages[-1].text}\n")

    conversation = manager.get(conversation.id)
    print(f"[{conversation.title}]")
    if artifact_out is not None and conversation.is_artifact_visible:
        artifact_out.write_text(conversation.artifact_content, encoding="utf-8")
        print(f"Artifact written to {artifact_out}")
    return 0


async def run_ocr(orchestrator: ResponseOrchestrator, images: list[EncodedImage]) -> int:
    text = await orchestrator.perform_ocr(images)
    print(text)
    return 0


async def run_image(
    orchestrator: ResponseOrchestrator, prompt: str, output: Path
) -> int:
    image = await orchestrator.generate_image(prompt)
    _write_image(image, output)
    return 0


async def run_edit(
    orchestrator: ResponseOrchestrator, prompt: str, image: EncodedImage, output: Path
) -> int:
    result = await orchestrator.edit_image(prompt, image)
    if result.text:
        print(result.text)
    if result.image is not None:
        _write_image(result.image, output)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="artifact-chat",
        description="Chat with a multimodal assistant that maintains an artifact",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # One-off question
  artifact-chat chat "What is the capital of Ethiopia?"

  # Ask for an artifact and save it
  artifact-chat chat "create a login form" --artifact-out form.html

  # Extract text from scanned pages
  artifact-chat ocr page1.png page2.png

  # Generate or edit images
  artifact-chat image "a lighthouse at dusk" -o lighthouse.png
  artifact-chat edit "make the sky purple" photo.jpg -o edited.png
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    chat = subparsers.add_parser("chat", help="Send one or more chat turns")
    chat.add_argument("prompts", nargs="+", help="Prompts sent in order")
    chat.add_argument(
        "--image", action="append", type=Path, default=[], help="Attach an image"
    )
    chat.add_argument(
        "--persona",
        choices=[p.id for p in PERSONAS],
        default=PERSONAS[0].id,
        help="Assistant persona",
    )
    chat.add_argument(
        "--artifact-out", type=Path, default=None, help="Write the artifact here"
    )

    ocr = subparsers.add_parser("ocr", help="Extract and organize text from images")
    ocr.add_argument("images", nargs="+", type=Path, help="Images in page order")

    image = subparsers.add_parser("image", help="Generate an image from a prompt")
    image.add_argument("prompt")
    image.add_argument("-o", "--output", type=Path, default=Path("generated.png"))

    edit = subparsers.add_parser("edit", help="Edit an image following a prompt")
    edit.add_argument("prompt")
    edit.add_argument("image", type=Path)
    edit.add_argument("-o", "--output", type=Path, default=Path("edited.png"))

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging()
    settings = get_settings()

    try:
        orchestrator = create_orchestrator(settings)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    try:
        if args.command == "chat":
            manager = ConversationManager(orchestrator, default_model=settings.CHAT_MODEL)
            images = [load_image(path) for path in args.image]
            return asyncio.run(
                run_chat(manager, args.prompts, images, args.persona, args.artifact_out)
            )
        if args.command == "ocr":
            images = [load_image(path, raw=True) for path in args.images]
            return asyncio.run(run_ocr(orchestrator, images))
        if args.command == "image":
            return asyncio.run(run_image(orchestrator, args.prompt, args.output))
        return asyncio.run(
            run_edit(orchestrator, args.prompt, load_image(args.image), args.output)
        )
    except OSError as e:
        print(f"Could not read or write file: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Sorry, something went wrong: {describe_failure(e)}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
