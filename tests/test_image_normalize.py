"""Tests for image normalization utilities."""

import io

import pytest
from PIL import Image

from services.images.normalize import (
    CONTRAST_LUT,
    DecodeError,
    EncodeError,
    ImageFormatError,
    ImageValidationError,
    guess_content_type,
    normalize,
    sniff_content_type,
    validate_content_type,
)


def create_test_image(
    width: int = 800,
    height: int = 600,
    mode: str = "RGB",
    format: str = "JPEG",
    color: str | tuple[int, ...] = "white",
) -> bytes:
    """Create a test image in memory."""
    img = Image.new(mode, (width, height), color=color)
    output = io.BytesIO()
    img.save(output, format=format)
    return output.getvalue()


def open_result(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


def test_validate_content_type_jpeg():
    """Test validation of JPEG content type."""
    validate_content_type("image/jpeg")  # Should not raise


def test_validate_content_type_tiff():
    """Test validation of TIFF content type."""
    validate_content_type("image/tiff")  # Should not raise


def test_validate_content_type_invalid():
    """Test rejection of invalid content types."""
    with pytest.raises(ImageFormatError, match="Unsupported image type"):
        validate_content_type("application/pdf")


def test_guess_content_type():
    assert guess_content_type("scan.TIF") == "image/tiff"
    assert guess_content_type("photo.jpeg") == "image/jpeg"
    assert guess_content_type("diagram.png") == "image/png"
    assert guess_content_type("notes.txt") is None


@pytest.mark.parametrize(
    ("format", "mime_type"),
    [("JPEG", "image/jpeg"), ("PNG", "image/png"), ("TIFF", "image/tiff")],
)
def test_sniff_content_type(format, mime_type):
    assert sniff_content_type(create_test_image(20, 20, format=format)) == mime_type


def test_sniff_content_type_rejects_non_images():
    with pytest.raises(ImageFormatError, match="Unrecognized image data"):
        sniff_content_type(b"%PDF-1.7")


def test_errors_share_base_class():
    assert issubclass(DecodeError, ImageValidationError)
    assert issubclass(EncodeError, ImageValidationError)
    assert issubclass(ImageFormatError, ImageValidationError)


class TestGeneralMode:
    """Attachment normalization: 1024 px limit, JPEG quality 80."""

    def test_small_jpeg_passes_through_unchanged(self):
        original = create_test_image(800, 600)
        result = normalize(original)

        assert result.mime_type == "image/jpeg"
        assert result.data == original

    def test_large_jpeg_is_downscaled(self):
        result = normalize(create_test_image(3000, 1500))

        img = open_result(result.data)
        assert img.format == "JPEG"
        assert img.size == (1024, 512)

    def test_png_is_reencoded_as_jpeg(self):
        result = normalize(create_test_image(300, 200, format="PNG"))

        img = open_result(result.data)
        assert result.mime_type == "image/jpeg"
        assert img.format == "JPEG"
        assert img.mode == "RGB"
        assert img.size == (300, 200)

    def test_transparency_is_flattened_on_white(self):
        data = create_test_image(50, 50, mode="RGBA", format="PNG", color=(0, 0, 0, 0))
        result = normalize(data)

        img = open_result(result.data).convert("RGB")
        r, g, b = img.getpixel((25, 25))
        assert min(r, g, b) > 240

    def test_multipage_tiff_uses_first_frame(self):
        first = Image.new("RGB", (120, 80), color="red")
        second = Image.new("RGB", (40, 40), color="blue")
        output = io.BytesIO()
        first.save(output, format="TIFF", save_all=True, append_images=[second])

        result = normalize(output.getvalue(), content_type="image/tiff")

        img = open_result(result.data)
        assert img.size == (120, 80)

    def test_small_image_is_not_upscaled(self):
        result = normalize(create_test_image(100, 50, format="PNG"))
        assert open_result(result.data).size == (100, 50)


class TestOcrMode:
    """OCR normalization: 2048 px limit, bounded upscale, contrast pass."""

    def test_small_image_is_upscaled_at_most_twice(self):
        result = normalize(create_test_image(400, 300), mode="ocr")
        assert open_result(result.data).size == (800, 600)

    def test_upscale_stops_at_working_limit(self):
        result = normalize(create_test_image(1600, 800), mode="ocr")
        assert open_result(result.data).size == (2048, 1024)

    def test_large_image_is_downscaled(self):
        result = normalize(create_test_image(4096, 1024), mode="ocr")
        assert open_result(result.data).size == (2048, 512)

    def test_small_jpeg_is_not_passed_through(self):
        original = create_test_image(800, 600)
        result = normalize(original, mode="ocr")
        assert result.data != original

    def test_output_is_grayscale_jpeg(self):
        result = normalize(create_test_image(200, 200, color="red"), mode="ocr")
        img = open_result(result.data)
        assert img.format == "JPEG"
        assert img.mode == "L"

    def test_contrast_curve_is_monotonic_and_keeps_extremes(self):
        assert CONTRAST_LUT[0] == 0
        assert CONTRAST_LUT[255] == 255
        assert all(a <= b for a, b in zip(CONTRAST_LUT, CONTRAST_LUT[1:], strict=False))

    def test_contrast_curve_is_not_binarized(self):
        assert len(set(CONTRAST_LUT)) > 2


class TestErrors:
    def test_empty_input_raises_decode_error(self):
        with pytest.raises(DecodeError):
            normalize(b"")

    def test_garbage_raises_decode_error(self):
        with pytest.raises(DecodeError):
            normalize(b"definitely not an image")

    def test_declared_non_image_type_is_rejected(self):
        with pytest.raises(ImageFormatError):
            normalize(create_test_image(), content_type="text/plain")
