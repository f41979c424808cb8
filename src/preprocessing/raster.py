"""In-memory raster buffers and the image codec boundary.

A :class:`RawImage` wraps an ``H x W x 4`` RGBA ``uint8`` array. Buffers are
read-only once wrapped; every processing stage builds a new one.
"""

import io
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from src.utils.errors import UnsupportedFormatError
from src.utils.logger import get_logger

logger = get_logger(__name__)

_PDF_MAGIC = b"%PDF"


@dataclass(frozen=True)
class RawImage:
    """Immutable RGBA raster.

    Args:
        pixels: Array of shape ``(height, width, 4)`` and dtype ``uint8``.

    Raises:
        ValueError: If the array shape or dtype is not RGBA8, or the image
            has no pixels.
    """

    pixels: np.ndarray

    def __post_init__(self) -> None:
        pixels = self.pixels
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"Expected an H x W x 4 array, got shape {pixels.shape}")
        if pixels.dtype != np.uint8:
            raise ValueError(f"Expected uint8 pixels, got {pixels.dtype}")
        if pixels.shape[0] < 1 or pixels.shape[1] < 1:
            raise ValueError("Image must contain at least one pixel")
        frozen = pixels.copy()
        frozen.flags.writeable = False
        object.__setattr__(self, "pixels", frozen)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def rgb(self) -> np.ndarray:
        """View of the colour channels without alpha."""
        return self.pixels[:, :, :3]


def from_array(array: np.ndarray) -> RawImage:
    """Build a RawImage from a grayscale, RGB or RGBA ``uint8`` array.

    Grayscale values are replicated into R, G and B; missing alpha is opaque.
    """
    array = np.asarray(array)
    if array.dtype != np.uint8:
        raise ValueError(f"Expected uint8 pixels, got {array.dtype}")

    if array.ndim == 2:
        rgb = np.repeat(array[:, :, np.newaxis], 3, axis=2)
    elif array.ndim == 3 and array.shape[2] == 3:
        rgb = array
    elif array.ndim == 3 and array.shape[2] == 4:
        return RawImage(array)
    else:
        raise ValueError(f"Unsupported array shape {array.shape}")

    alpha = np.full(rgb.shape[:2] + (1,), 255, dtype=np.uint8)
    return RawImage(np.concatenate([rgb, alpha], axis=2))


def decode_image(source: Path | str | bytes) -> RawImage:
    """Decode image file bytes (or a path) into an RGBA RawImage.

    EXIF orientation is applied so that phone photographs come out upright.

    Args:
        source: Path to an image file or its raw bytes.

    Returns:
        Decoded image.

    Raises:
        UnsupportedFormatError: For PDFs and anything Pillow cannot decode.
        FileNotFoundError: If a path is given and does not exist.
    """
    if isinstance(source, bytes):
        if source[:4] == _PDF_MAGIC:
            raise UnsupportedFormatError(
                "PDF input is not supported; export the page as an image"
            )
        stream: io.BytesIO | Path = io.BytesIO(source)
        label = f"<{len(source)} bytes>"
    else:
        path = Path(source)
        if path.suffix.lower() == ".pdf":
            raise UnsupportedFormatError(
                f"PDF input is not supported: {path.name}; export the page as an image"
            )
        if not path.exists():
            raise FileNotFoundError(f"Image file not found: {path}")
        stream = path
        label = str(path)

    try:
        with Image.open(stream) as img:
            img = ImageOps.exif_transpose(img)
            rgba = img.convert("RGBA")
            pixels = np.array(rgba, dtype=np.uint8)
    except UnidentifiedImageError as exc:
        raise UnsupportedFormatError(f"Not a decodable raster image: {label}") from exc
    except (OSError, ValueError) as exc:
        raise UnsupportedFormatError(f"Failed to decode {label}: {exc}") from exc

    logger.debug("Decoded %s to %dx%d RGBA", label, pixels.shape[1], pixels.shape[0])
    return RawImage(pixels)


def to_pil(image: RawImage) -> Image.Image:
    """Convert a RawImage to a Pillow RGBA image."""
    return Image.fromarray(np.ascontiguousarray(image.pixels))


def encode_png(image: RawImage) -> bytes:
    """Encode a RawImage as PNG bytes, e.g. for a preview."""
    buf = io.BytesIO()
    to_pil(image).save(buf, format="PNG")
    return buf.getvalue()
