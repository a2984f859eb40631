"""Image normalization utilities for chat attachments and OCR input.

This module prepares user images for upload to the multimodal provider. It
decodes any Pillow-readable file (including multi-page TIFF), handles EXIF
orientation and transparency, caps the longest edge, and re-encodes to JPEG
to keep request payloads small.

Two modes are supported:

* ``general`` - attachments; longest edge <= 1024 px. Small JPEGs are passed
  through untouched.
* ``ocr`` - text extraction; longest edge <= 2048 px with upscaling of small
  scans (at most 2x) and a contrast pass that keeps glyph detail.
"""

import io
import logging
from typing import Literal

from PIL import Image, ImageOps, UnidentifiedImageError
from PIL.Image import Image as PILImage

from schemas.chat import EncodedImage


logger = logging.getLogger(__name__)

NormalizeMode = Literal["general", "ocr"]

# Configuration constants
MAX_IMAGE_DIMENSION = 1024  # General attachments, longest edge in pixels
OCR_MAX_DIMENSION = 2048  # Working limit for OCR-directed images
OCR_MAX_UPSCALE = 2.0  # Never enlarge OCR input more than this factor
JPEG_QUALITY = 80  # Attachment re-encoding quality (0-100)
OCR_JPEG_QUALITY = 90  # Higher quality keeps thin strokes intact

# Contrast pass for OCR images
OCR_GAMMA = 0.8
CONTRAST_MIDPOINT = 128
CONTRAST_BAND = 48  # Half-width of the stretched band around the midpoint
CONTRAST_TAIL_FACTOR = 0.6  # Compression applied outside the band

ALLOWED_MIME_TYPES = {
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/gif",
    "image/bmp",
    "image/tiff",
}

_TIFF_EXTENSIONS = (".tif", ".tiff")


class ImageValidationError(Exception):
    """Raised when image validation fails."""

    pass


class ImageFormatError(ImageValidationError):
    """Raised when image format is not supported."""

    pass


class DecodeError(ImageValidationError):
    """Raised when source bytes cannot be decoded into an image."""

    pass


class EncodeError(ImageValidationError):
    """Raised when re-encoding produces no data."""

    pass


def validate_content_type(content_type: str) -> None:
    """Validate that the content type is an allowed image format.

    Args:
        content_type: The MIME type of the uploaded file

    Raises:
        ImageFormatError: If content type is not allowed
    """
    if content_type not in ALLOWED_MIME_TYPES:
        raise ImageFormatError(
            f"Unsupported image type: {content_type}. "
            f"Only {', '.join(sorted(ALLOWED_MIME_TYPES))} are allowed."
        )


def guess_content_type(filename: str) -> str | None:
    """Map a filename extension to one of the allowed MIME types."""
    lower = filename.lower()
    if lower.endswith(_TIFF_EXTENSIONS):
        return "image/tiff"
    for ext, mime in (
        (".jpg", "image/jpeg"),
        (".jpeg", "image/jpeg"),
        (".png", "image/png"),
        (".webp", "image/webp"),
        (".gif", "image/gif"),
        (".bmp", "image/bmp"),
    ):
        if lower.endswith(ext):
            return mime
    return None


def sniff_content_type(image_bytes: bytes) -> str:
    """Identify an image's MIME type from its bytes.

    Raises:
        ImageFormatError: If Pillow cannot identify the data or the format
            is not one of the allowed types
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            mime_type = Image.MIME.get(image.format or "")
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageFormatError(f"Unrecognized image data: {e}") from e
    if mime_type is None:
        raise ImageFormatError("Unrecognized image data")
    validate_content_type(mime_type)
    return mime_type


def _decode(image_bytes: bytes) -> PILImage:
    if not image_bytes:
        raise DecodeError("Image data is empty")
    try:
        image: PILImage = Image.open(io.BytesIO(image_bytes))
        # TIFF and GIF may carry several frames; only the first is used
        if getattr(image, "n_frames", 1) > 1:
            image.seek(0)
        image.load()
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        logger.error("Failed to decode image: %s", e)
        raise DecodeError(
            "Failed to load image for processing. The file might be corrupt "
            "or an unsupported format."
        ) from e
    return image


def _to_rgb(image: PILImage) -> PILImage:
    """Apply EXIF orientation and flatten to RGB on a white background."""
    image = ImageOps.exif_transpose(image)
    if image.mode == "RGB":
        return image
    if image.mode == "P":
        image = image.convert("RGBA")
    if image.mode in ("RGBA", "LA"):
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(image, mask=image.split()[-1])  # Use alpha as mask
        return background
    # 16-bit and float TIFF modes need an explicit 8-bit conversion
    if image.mode in ("I", "I;16", "F"):
        image = image.convert("L")
    return image.convert("RGB")


def _scaled_size(width: int, height: int, max_dimension: int) -> tuple[int, int]:
    if width > height:
        return max_dimension, max(1, round(height * max_dimension / width))
    return max(1, round(width * max_dimension / height)), max_dimension


def _resize_for_mode(image: PILImage, mode: NormalizeMode) -> PILImage:
    width, height = image.size
    longest = max(width, height)

    if mode == "general":
        if longest <= MAX_IMAGE_DIMENSION:
            return image
        new_size = _scaled_size(width, height, MAX_IMAGE_DIMENSION)
    else:
        if longest > OCR_MAX_DIMENSION:
            new_size = _scaled_size(width, height, OCR_MAX_DIMENSION)
        else:
            factor = min(OCR_MAX_DIMENSION / longest, OCR_MAX_UPSCALE)
            if factor <= 1.0:
                return image
            new_size = (round(width * factor), round(height * factor))

    resized = image.resize(new_size, Image.Resampling.LANCZOS)
    logger.debug(
        "Resized image from %dx%d to %dx%d (%s mode)",
        width,
        height,
        new_size[0],
        new_size[1],
        mode,
    )
    return resized


def _contrast_curve(value: int) -> int:
    """Gamma correction followed by a soft band stretch around the midpoint."""
    v = 255.0 * (value / 255.0) ** OCR_GAMMA

    low = CONTRAST_MIDPOINT - CONTRAST_BAND
    high = CONTRAST_MIDPOINT + CONTRAST_BAND
    low_out = low * CONTRAST_TAIL_FACTOR
    high_out = 255.0 - (255.0 - high) * CONTRAST_TAIL_FACTOR

    if v < low:
        out = v * CONTRAST_TAIL_FACTOR
    elif v > high:
        out = 255.0 - (255.0 - v) * CONTRAST_TAIL_FACTOR
    else:
        out = low_out + (v - low) * (high_out - low_out) / (high - low)
    return max(0, min(255, round(out)))


CONTRAST_LUT: list[int] = [_contrast_curve(i) for i in range(256)]


def enhance_for_ocr(image: PILImage) -> PILImage:
    """Grayscale, gamma and soft contrast stretch without hard binarization.

    Pillow's ``L`` conversion uses the ITU-R 601-2 luma weights
    (0.299, 0.587, 0.114).
    """
    gray = image.convert("L")
    return gray.point(CONTRAST_LUT)


def _encode_jpeg(image: PILImage, quality: int) -> bytes:
    output = io.BytesIO()
    try:
        image.save(output, format="JPEG", quality=quality, optimize=True)
    except (OSError, ValueError) as e:
        raise EncodeError(f"Failed to encode image: {e}") from e
    data = output.getvalue()
    if not data:
        raise EncodeError("Image encoder produced no data")
    return data


def normalize(
    file_bytes: bytes,
    mode: NormalizeMode = "general",
    content_type: str | None = None,
) -> EncodedImage:
    """Normalize an image for upload to the multimodal provider.

    Performs the following operations:
    1. Decodes the image (first frame of multi-page TIFF/GIF)
    2. Passes small JPEGs through unchanged in general mode
    3. Applies EXIF orientation and converts to RGB
    4. Resizes according to the mode's limits
    5. Applies the OCR contrast pass in ocr mode
    6. Re-encodes to JPEG

    Args:
        file_bytes: Raw image data
        mode: ``general`` for attachments, ``ocr`` for text extraction
        content_type: Optional MIME type declared by the caller

    Returns:
        EncodedImage holding JPEG bytes (or the original bytes on pass-through)

    Raises:
        ImageFormatError: If the declared content type is not an image type
        DecodeError: If the bytes cannot be decoded
        EncodeError: If re-encoding yields no data
    """
    if content_type is not None:
        validate_content_type(content_type)

    image = _decode(file_bytes)
    source_format = image.format

    if (
        mode == "general"
        and source_format == "JPEG"
        and max(image.size) <= MAX_IMAGE_DIMENSION
    ):
        logger.debug("Passing through %d byte JPEG unchanged", len(file_bytes))
        return EncodedImage(mime_type="image/jpeg", data=file_bytes)

    image = _to_rgb(image)
    image = _resize_for_mode(image, mode)

    if mode == "ocr":
        image = enhance_for_ocr(image)
        encoded = _encode_jpeg(image, OCR_JPEG_QUALITY)
    else:
        encoded = _encode_jpeg(image, JPEG_QUALITY)

    logger.debug(
        "Normalized %s image: original=%d bytes, normalized=%d bytes",
        source_format,
        len(file_bytes),
        len(encoded),
    )
    return EncodedImage(mime_type="image/jpeg", data=encoded)
