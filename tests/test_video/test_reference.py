"""Tests for input reference validation and resizing."""

from io import BytesIO

import pytest
from PIL import Image

from sora_panel.core.exceptions import UnsupportedMediaTypeError
from sora_panel.video import reference
from sora_panel.video.reference import (
    SUPPORTED_INPUT_REFERENCE_MIME_TYPES,
    build_reference,
    create_reference_from_bytes,
    create_reference_from_path,
    ensure_supported_mime_type,
    infer_mime_type,
)
from sora_panel.video.sizes import MODEL_SIZE_RULES


def _decode(data: bytes) -> Image.Image:
    image = Image.open(BytesIO(data))
    image.load()
    return image


# -----------------------------------------------------------------------------
# MIME Type Tests
# -----------------------------------------------------------------------------


class TestMimeTypes:
    """Tests for MIME inference and validation."""

    def test_supported_declared_type_wins(self):
        assert infer_mime_type("photo.jpg", " IMAGE/PNG ") == "image/png"

    def test_extension_used_when_declared_unsupported(self):
        assert infer_mime_type("photo.JPEG", "application/octet-stream") == "image/jpeg"

    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("a.jpg", "image/jpeg"),
            ("a.jpeg", "image/jpeg"),
            ("a.png", "image/png"),
            ("a.webp", "image/webp"),
            ("clip.MP4", "video/mp4"),
        ],
    )
    def test_extension_table(self, filename, expected):
        assert infer_mime_type(filename) == expected

    def test_unknown_extension_returns_declared(self):
        assert infer_mime_type("anim.gif", "image/gif") == "image/gif"

    def test_unknown_everything_returns_none(self):
        assert infer_mime_type("notes.txt") is None

    def test_unsupported_type_names_file_and_supported_set(self):
        with pytest.raises(UnsupportedMediaTypeError) as exc_info:
            ensure_supported_mime_type("image/gif", "anim.gif")

        message = str(exc_info.value)
        assert '"anim.gif"' in message
        for mime_type in SUPPORTED_INPUT_REFERENCE_MIME_TYPES:
            assert mime_type in message
        assert exc_info.value.filename == "anim.gif"

    def test_missing_type_without_filename(self):
        with pytest.raises(UnsupportedMediaTypeError) as exc_info:
            ensure_supported_mime_type(None)

        assert " for " not in str(exc_info.value)

    @pytest.mark.parametrize("filename", ["a.JPG", "b.jpeg", "c.PNG", "d.webp", "e.mp4"])
    def test_round_trip_is_idempotent_and_lowercase(self, filename):
        once = ensure_supported_mime_type(infer_mime_type(filename), filename)
        twice = ensure_supported_mime_type(once, filename)

        assert once == twice == once.lower()
        assert once in SUPPORTED_INPUT_REFERENCE_MIME_TYPES


# -----------------------------------------------------------------------------
# build_reference Tests
# -----------------------------------------------------------------------------


class TestBuildReference:
    """Tests for building uploadable references."""

    @pytest.mark.asyncio
    async def test_gif_is_rejected(self, make_image):
        data = make_image(100, 100, "GIF")

        with pytest.raises(UnsupportedMediaTypeError, match="anim.gif"):
            await build_reference(data, "anim.gif", "image/gif")

    @pytest.mark.asyncio
    async def test_video_is_never_resized(self, monkeypatch):
        def _fail(*args, **kwargs):
            raise AssertionError("video references must not be resized")

        monkeypatch.setattr(reference, "resize_to_fill", _fail)
        monkeypatch.setattr(reference, "get_image_dimensions", _fail)
        data = b"\x00\x00\x00\x18ftypmp42fake-video"

        result = await build_reference(data, "clip.mp4")

        assert result.data == data
        assert result.mime_type == "video/mp4"
        assert result.size_label is None
        assert result.file == ("clip.mp4", data, "video/mp4")

    @pytest.mark.asyncio
    async def test_matching_image_is_byte_identical(self, make_image):
        data = make_image(1280, 720, "PNG")

        result = await build_reference(data, "frame.png")

        assert result.data == data
        assert result.size_label == "1280x720"
        assert result.mime_type == "image/png"

    @pytest.mark.asyncio
    async def test_other_size_is_cropped_to_target(self, make_image):
        data = make_image(1000, 800, "JPEG")

        result = await build_reference(data, "photo.jpg")

        image = _decode(result.data)
        assert result.size_label == "1280x720"
        assert image.size == (1280, 720)
        assert image.format == "JPEG"
        assert result.data != data

    @pytest.mark.asyncio
    async def test_portrait_webp_keeps_format(self, make_image):
        data = make_image(600, 1000, "WEBP")

        result = await build_reference(data, "portrait.webp")

        image = _decode(result.data)
        assert result.size_label == "720x1280"
        assert image.size == (720, 1280)
        assert image.format == "WEBP"

    @pytest.mark.asyncio
    async def test_transparent_png_named_jpg_is_reencoded_as_jpeg(self, make_image):
        data = make_image(400, 400, "PNG", mode="RGBA")

        result = await build_reference(data, "sticker.jpg")

        image = _decode(result.data)
        assert result.mime_type == "image/jpeg"
        assert image.format == "JPEG"
        assert image.size == (1280, 720)

    @pytest.mark.asyncio
    async def test_unreadable_image_is_passed_through(self):
        data = b"definitely not a png"

        result = await build_reference(data, "broken.png")

        assert result.data == data
        assert result.size_label is None
        assert result.mime_type == "image/png"

    @pytest.mark.asyncio
    async def test_truncated_image_is_passed_through(self, monkeypatch, make_image):
        """A readable header with missing pixel data never reaches the resizer."""

        def _fail(*args, **kwargs):
            raise AssertionError("truncated images must not be resized")

        monkeypatch.setattr(reference, "resize_to_fill", _fail)
        full = make_image(1000, 800, "JPEG")
        data = full[: len(full) * 2 // 3]

        result = await build_reference(data, "cut.jpg")

        assert result.data == data
        assert result.size_label is None
        assert result.mime_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_pro_rules_select_pro_size(self, make_image):
        data = make_image(1750, 1000, "PNG")

        result = await build_reference(data, "wide.png", rules=MODEL_SIZE_RULES["sora-2-pro"])

        assert result.size_label == "1792x1024"
        assert _decode(result.data).size == (1792, 1024)


# -----------------------------------------------------------------------------
# Path / Bytes Helper Tests
# -----------------------------------------------------------------------------


class TestReferenceHelpers:
    """Tests for the path and in-memory constructors."""

    @pytest.mark.asyncio
    async def test_from_path_uses_basename(self, tmp_path, make_image):
        path = tmp_path / "nested" / "shot.png"
        path.parent.mkdir()
        path.write_bytes(make_image(720, 1280, "PNG"))

        result = await create_reference_from_path(str(path))

        assert result.filename == "shot.png"
        assert result.size_label == "720x1280"

    @pytest.mark.asyncio
    async def test_from_path_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            await create_reference_from_path(tmp_path / "missing.png")

    @pytest.mark.asyncio
    async def test_from_bytes_empty_returns_none(self):
        assert await create_reference_from_bytes(b"") is None

    @pytest.mark.asyncio
    async def test_from_bytes_default_filename_needs_declared_type(self, make_image):
        data = make_image(1280, 720, "PNG")

        result = await create_reference_from_bytes(data, None, "image/png")

        assert result.filename == "input-reference.bin"
        assert result.size_label == "1280x720"

    @pytest.mark.asyncio
    async def test_from_bytes_without_type_is_rejected(self, make_image):
        with pytest.raises(UnsupportedMediaTypeError, match="input-reference.bin"):
            await create_reference_from_bytes(make_image(10, 10, "PNG"))
