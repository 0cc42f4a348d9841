"""Image re-encoding with Pillow."""

import io
import logging
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

from .direct import to_data_url

logger = logging.getLogger(__name__)

# format key -> (Pillow format, MIME type)
FORMATS = {
    "webp": ("WEBP", "image/webp"),
    "jpeg": ("JPEG", "image/jpeg"),
    "png": ("PNG", "image/png"),
}
FORMAT_ALIASES = {"jpg": "jpeg"}

MIN_QUALITY = 1
MAX_QUALITY = 100

PNG_MODES = ("1", "L", "LA", "I", "P", "RGB", "RGBA")


class InvalidImageError(ValueError):
    """Raised when uploaded bytes cannot be decoded as an image."""


class UnsupportedFormatError(ValueError):
    """Raised for output formats other than WebP, JPEG and PNG."""


@dataclass
class CompressionOptions:
    format: str
    quality: int
    max_width: int
    max_height: int

    @property
    def pil_format(self) -> str:
        return FORMATS[self.format][0]

    @property
    def mime_type(self) -> str:
        return FORMATS[self.format][1]


@dataclass
class CompressedImage:
    """Encoded output plus the metadata reported back to clients."""

    data: bytes
    format: str
    mime_type: str
    width: int
    height: int
    original_width: int
    original_height: int

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def data_url(self) -> str:
        return to_data_url(self.data, self.mime_type)


def clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(upper, value))


def normalize_format(name: str) -> str:
    """Map a user supplied format name onto a key of FORMATS."""
    key = name.strip().lower()
    key = FORMAT_ALIASES.get(key, key)
    if key not in FORMATS:
        raise UnsupportedFormatError(f"Unsupported format '{name}'")
    return key


def resolve_options(
    format: str | None,
    quality: int | None,
    max_width: int | None,
    max_height: int | None,
    *,
    default_format: str = "webp",
    default_quality: int = 80,
    default_max_width: int = 1920,
    default_max_height: int = 1920,
    max_dimension: int = 4096,
) -> CompressionOptions:
    """
    Fill in defaults and clamp the requested parameters into range.

    Raises:
        UnsupportedFormatError: If the format is not WebP, JPEG or PNG
    """
    return CompressionOptions(
        format=normalize_format(format or default_format),
        quality=clamp(default_quality if quality is None else quality, MIN_QUALITY, MAX_QUALITY),
        max_width=clamp(default_max_width if max_width is None else max_width, 1, max_dimension),
        max_height=clamp(default_max_height if max_height is None else max_height, 1, max_dimension),
    )


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)


def _prepare_mode(img: Image.Image, format: str) -> Image.Image:
    """Convert to a colour mode the target encoder accepts."""
    if format == "jpeg":
        if _has_alpha(img):
            rgba = img.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[-1])
            return background
        if img.mode not in ("RGB", "L"):
            return img.convert("RGB")
        return img

    if format == "webp":
        if img.mode not in ("RGB", "RGBA"):
            return img.convert("RGBA" if _has_alpha(img) else "RGB")
        return img

    if img.mode not in PNG_MODES:
        return img.convert("RGBA" if _has_alpha(img) else "RGB")
    return img


def _encode(img: Image.Image, options: CompressionOptions) -> bytes:
    buffer = io.BytesIO()
    if options.format == "jpeg":
        img.save(buffer, format="JPEG", quality=options.quality, optimize=True, progressive=True)
    elif options.format == "webp":
        img.save(buffer, format="WEBP", quality=options.quality, method=6)
    else:
        img.save(buffer, format="PNG", optimize=True)
    return buffer.getvalue()


def compress_image(raw_bytes: bytes, options: CompressionOptions) -> CompressedImage:
    """
    Decode, shrink and re-encode an image.

    The image is rotated according to its EXIF orientation, then scaled down
    (never up) to fit within ``max_width`` x ``max_height`` while keeping its
    aspect ratio.

    Raises:
        InvalidImageError: If the bytes are not a decodable image
    """
    try:
        with Image.open(io.BytesIO(raw_bytes)) as source:
            source.load()
            img = ImageOps.exif_transpose(source)
    except Image.DecompressionBombError as exc:
        raise InvalidImageError("Image is too large to process") from exc
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise InvalidImageError("Invalid image file") from exc

    original_width, original_height = img.size
    img.thumbnail((options.max_width, options.max_height), Image.Resampling.LANCZOS)
    img = _prepare_mode(img, options.format)
    encoded = _encode(img, options)

    logger.info(
        "Compressed %dx%d image (%d bytes) to %dx%d %s (%d bytes)",
        original_width,
        original_height,
        len(raw_bytes),
        img.width,
        img.height,
        options.format,
        len(encoded),
    )

    return CompressedImage(
        data=encoded,
        format=options.format,
        mime_type=options.mime_type,
        width=img.width,
        height=img.height,
        original_width=original_width,
        original_height=original_height,
    )
