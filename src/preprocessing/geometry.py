"""Percentage cropping and fixed-canvas rotation for page photographs.

The rotation angle is supplied by the caller; no skew estimation happens
here.
"""

import cv2
import numpy as np

from src.utils.config import CropSpec
from src.utils.errors import DegenerateRegionError
from src.utils.logger import get_logger
from src.utils.numeric import round_half_up

from .raster import RawImage

logger = get_logger(__name__)

MIN_ROTATION_DEGREES = 0.1
_FILL_RGBA = (255, 255, 255, 255)


def crop_bounds(width: int, height: int, crop: CropSpec) -> tuple[int, int, int, int]:
    """Convert crop percentages into pixel bounds.

    Args:
        width: Source image width in pixels.
        height: Source image height in pixels.
        crop: Percentages removed from each edge.

    Returns:
        ``(x0, y0, x1, y1)`` with exclusive end coordinates.

    Raises:
        DegenerateRegionError: If the crop leaves no pixels on an axis.
    """
    if crop.top + crop.bottom >= 100 or crop.left + crop.right >= 100:
        raise DegenerateRegionError(
            f"Crop removes the whole image (top+bottom={crop.top + crop.bottom:g}%, "
            f"left+right={crop.left + crop.right:g}%)"
        )

    left_px = round_half_up(crop.left / 100 * width)
    right_px = round_half_up(crop.right / 100 * width)
    top_px = round_half_up(crop.top / 100 * height)
    bottom_px = round_half_up(crop.bottom / 100 * height)

    out_w = width - left_px - right_px
    out_h = height - top_px - bottom_px
    if out_w < 1 or out_h < 1:
        raise DegenerateRegionError(
            f"Crop of {width}x{height} image leaves {out_w}x{out_h} pixels"
        )
    return left_px, top_px, left_px + out_w, top_px + out_h


def crop(pixels: np.ndarray, spec: CropSpec) -> np.ndarray:
    """Return a copy of the region of ``pixels`` kept by ``spec``."""
    height, width = pixels.shape[:2]
    x0, y0, x1, y1 = crop_bounds(width, height, spec)
    return pixels[y0:y1, x0:x1].copy()


def rotate(pixels: np.ndarray, degrees: float) -> np.ndarray:
    """Rotate an RGBA array about its centre without growing the canvas.

    Positive angles turn the content clockwise as displayed. Content pushed
    outside the canvas is clipped and uncovered corners become opaque white.

    Args:
        pixels: RGBA array of shape ``(H, W, 4)``.
        degrees: Rotation angle; magnitudes up to ``MIN_ROTATION_DEGREES``
            return an unrotated copy.

    Returns:
        Rotated array with the same shape as ``pixels``.
    """
    if abs(degrees) <= MIN_ROTATION_DEGREES:
        return pixels.copy()

    h, w = pixels.shape[:2]
    center = ((w - 1) / 2.0, (h - 1) / 2.0)
    # OpenCV treats positive angles as counter-clockwise.
    rotation_matrix = cv2.getRotationMatrix2D(center, -degrees, 1.0)
    result = cv2.warpAffine(
        np.ascontiguousarray(pixels),
        rotation_matrix,
        (w, h),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=_FILL_RGBA,
    )
    logger.debug("Rotated %dx%d buffer by %.2f degrees", w, h, degrees)
    return result


def transform(image: RawImage, spec: CropSpec, skew_degrees: float = 0.0) -> RawImage:
    """Crop ``image`` by percentages, then rotate it by ``skew_degrees``.

    Raises:
        DegenerateRegionError: If the crop leaves no pixels on an axis.
    """
    cropped = crop(image.pixels, spec)
    result = rotate(cropped, skew_degrees)
    logger.debug(
        "Transformed %dx%d -> %dx%d (skew %.2f)",
        image.width,
        image.height,
        result.shape[1],
        result.shape[0],
        skew_degrees,
    )
    return RawImage(result)
