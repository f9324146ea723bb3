"""Input reference handling: MIME validation and resizing to a supported size."""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from functools import partial
from io import BytesIO
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from sora_panel.core.exceptions import InvalidArgumentError, UnsupportedMediaTypeError
from sora_panel.core.logging import get_logger
from sora_panel.video.sizes import DEFAULT_SIZE_RULES, SizeRule, choose_size

logger = get_logger(__name__)

SUPPORTED_INPUT_REFERENCE_MIME_TYPES: tuple[str, ...] = (
    "image/jpeg",
    "image/png",
    "image/webp",
    "video/mp4",
)

EXTENSION_MIME_TYPES: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".mp4": "video/mp4",
}

# Pillow encoder per image MIME type
PILLOW_FORMATS: dict[str, str] = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
}

DEFAULT_REFERENCE_FILENAME = "input-reference.bin"

# (filename, content, content type) as accepted by the OpenAI SDK for uploads
ReferenceFile = tuple[str, bytes, str]


@dataclass(frozen=True)
class ReferenceMeta:
    """An input reference ready to be sent with a create-video request."""

    file: ReferenceFile
    mime_type: str
    size_label: str | None = None

    @property
    def filename(self) -> str:
        return self.file[0]

    @property
    def data(self) -> bytes:
        return self.file[1]


@dataclass(frozen=True)
class _Alignment:
    data: bytes
    size_label: str | None = None


def is_image_mime_type(mime_type: str | None) -> bool:
    return bool(mime_type) and mime_type.startswith("image/")


def infer_mime_type(filename: str | None, declared_mime_type: str | None = None) -> str | None:
    """
    Resolve the MIME type of a reference file.

    A declared type wins when it is already supported, otherwise the filename
    extension decides. When neither helps, the declared type is returned as
    given so validation can reject it.
    """
    if declared_mime_type and declared_mime_type.strip():
        normalized = declared_mime_type.strip().lower()
        if normalized in SUPPORTED_INPUT_REFERENCE_MIME_TYPES:
            return normalized

    extension = Path(filename or "").suffix.lower()
    if extension in EXTENSION_MIME_TYPES:
        return EXTENSION_MIME_TYPES[extension]

    return declared_mime_type or None


def ensure_supported_mime_type(mime_type: str | None, filename: str | None = None) -> str:
    """
    Validate and normalize a MIME type against the supported set.

    Raises:
        UnsupportedMediaTypeError: If the type is missing or not supported
    """
    normalized = (mime_type or "").strip().lower()
    if normalized not in SUPPORTED_INPUT_REFERENCE_MIME_TYPES:
        supported = ", ".join(SUPPORTED_INPUT_REFERENCE_MIME_TYPES)
        target = f' for "{filename}"' if filename else ""
        raise UnsupportedMediaTypeError(
            f"Unsupported input_reference file type{target}. Supported types: {supported}.",
            mime_type=mime_type,
            filename=filename,
        )
    return normalized


def get_image_dimensions(data: bytes) -> tuple[int, int] | None:
    """Read (width, height) from encoded image bytes, or None if unreadable."""
    try:
        with Image.open(BytesIO(data)) as image:
            # Full decode so truncated files fail here, not in resize_to_fill
            image.load()
            width, height = image.size
    except (
        UnidentifiedImageError,
        OSError,
        SyntaxError,
        ValueError,
        Image.DecompressionBombError,
    ) as e:
        logger.bind(error=str(e)).warning("input_reference_probe_failed")
        return None

    if width and height:
        return width, height
    return None


def resize_to_fill(data: bytes, target: SizeRule, mime_type: str) -> bytes:
    """Crop-to-fill the image to the exact target size, keeping its format family."""
    image_format = PILLOW_FORMATS[mime_type]

    with Image.open(BytesIO(data)) as image:
        fitted = ImageOps.fit(
            image,
            (target.width, target.height),
            method=Image.Resampling.LANCZOS,
            centering=(0.5, 0.5),
        )

    if image_format == "JPEG" and fitted.mode not in ("RGB", "L"):
        fitted = fitted.convert("RGB")

    buffer = BytesIO()
    fitted.save(buffer, format=image_format)
    return buffer.getvalue()


def align_to_supported_size(
    data: bytes,
    mime_type: str,
    rules: Sequence[SizeRule] = DEFAULT_SIZE_RULES,
) -> _Alignment:
    """Resize image bytes onto the closest supported size when possible."""
    if not is_image_mime_type(mime_type) or not rules:
        return _Alignment(data=data)

    dimensions = get_image_dimensions(data)
    if not dimensions:
        return _Alignment(data=data)

    width, height = dimensions
    target = choose_size(width, height, rules)

    if (target.width, target.height) == (width, height):
        return _Alignment(data=data, size_label=target.label)

    resized = resize_to_fill(data, target, mime_type)
    logger.bind(
        source=f"{width}x{height}",
        target=target.label,
        mime_type=mime_type,
        bytes=len(resized),
    ).info("input_reference_resized")
    return _Alignment(data=resized, size_label=target.label)


async def build_reference(
    data: bytes,
    filename: str,
    declared_mime_type: str | None = None,
    rules: Sequence[SizeRule] = DEFAULT_SIZE_RULES,
) -> ReferenceMeta:
    """
    Build an uploadable input reference from raw bytes.

    Images are probed and cropped to the closest supported resolution; the
    returned size_label is set whenever that path was taken. Videos are
    passed through untouched.

    Args:
        data: Raw file content
        filename: Name used for the upload and in error messages
        declared_mime_type: Optional MIME type reported by the caller
        rules: Size rules of the model the reference is for

    Returns:
        ReferenceMeta with the upload tuple, final MIME type and size label

    Raises:
        UnsupportedMediaTypeError: If the file type is not supported
    """
    mime_type = ensure_supported_mime_type(infer_mime_type(filename, declared_mime_type), filename)

    loop = asyncio.get_running_loop()
    alignment = await loop.run_in_executor(
        None, partial(align_to_supported_size, data, mime_type, tuple(rules))
    )

    return ReferenceMeta(
        file=(filename, alignment.data, mime_type),
        mime_type=mime_type,
        size_label=alignment.size_label,
    )


async def create_reference_from_path(
    path: str | Path,
    rules: Sequence[SizeRule] = DEFAULT_SIZE_RULES,
) -> ReferenceMeta:
    """Read a reference file from disk and build it."""
    if not path or not str(path).strip():
        raise InvalidArgumentError("An input reference path is required.")

    absolute_path = Path(path).expanduser().resolve()
    loop = asyncio.get_running_loop()
    data = await loop.run_in_executor(None, absolute_path.read_bytes)

    logger.bind(path=str(absolute_path), bytes=len(data)).debug("input_reference_loaded")
    return await build_reference(data, absolute_path.name, rules=rules)


async def create_reference_from_bytes(
    data: bytes | None,
    filename: str | None = DEFAULT_REFERENCE_FILENAME,
    mime_type: str | None = None,
    rules: Sequence[SizeRule] = DEFAULT_SIZE_RULES,
) -> ReferenceMeta | None:
    """Build a reference from an in-memory upload. Returns None for empty data."""
    if not data:
        return None
    return await build_reference(
        bytes(data), filename or DEFAULT_REFERENCE_FILENAME, mime_type, rules
    )
