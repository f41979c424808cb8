"""Binarization of grayscale page images.

Provides Otsu's global threshold and Sauvola's local adaptive threshold.
Sauvola statistics come from summed-area tables so each pixel costs O(1)
regardless of the window size, which matters on large manuscript scans.
"""

from dataclasses import dataclass

import cv2
import numpy as np

from src.utils.config import BinarizeMode, SauvolaParams
from src.utils.logger import get_logger

from .raster import RawImage, from_array

logger = get_logger(__name__)

FLAT_IMAGE_THRESHOLD = 127


@dataclass
class IntegralImage:
    """Prefix sums of gray values and squared gray values.

    Both arrays have shape ``(height + 1, width + 1)`` with a zero first row
    and column, so ``sum[y, x]`` covers ``gray[:y, :x]``.
    """

    sum: np.ndarray
    sum_sq: np.ndarray

    @property
    def height(self) -> int:
        return self.sum.shape[0] - 1

    @property
    def width(self) -> int:
        return self.sum.shape[1] - 1


def invert(values: np.ndarray) -> np.ndarray:
    """Return ``255 - values`` for a ``uint8`` array."""
    return (255 - values.astype(np.int16)).astype(np.uint8)


def otsu_threshold(gray: np.ndarray) -> int:
    """Select the global threshold maximizing between-class variance.

    Args:
        gray: ``uint8`` grayscale values of any shape.

    Returns:
        The threshold ``t*``; pixels strictly above it are foreground.
        The first maximum in ascending ``t`` wins; when it is followed by
        empty histogram bins the threshold moves to the middle of that gap,
        which leaves the output unchanged. Images without any
        valid split (a single gray level) return ``FLAT_IMAGE_THRESHOLD``.
    """
    hist = np.bincount(gray.ravel(), minlength=256).astype(np.float64)
    levels = np.arange(256, dtype=np.float64)
    total = hist.sum()

    weight_bg = np.cumsum(hist)
    weight_fg = total - weight_bg
    sum_bg = np.cumsum(levels * hist)
    sum_all = sum_bg[-1]

    valid = (weight_bg > 0) & (weight_fg > 0)
    variance = np.zeros(256, dtype=np.float64)
    mean_bg = sum_bg[valid] / weight_bg[valid]
    mean_fg = (sum_all - sum_bg[valid]) / weight_fg[valid]
    variance[valid] = weight_bg[valid] * weight_fg[valid] * (mean_bg - mean_fg) ** 2

    if variance.max() <= 0:
        return FLAT_IMAGE_THRESHOLD

    first = int(np.argmax(variance))
    # Every cut inside the run of empty bins after the first maximum splits
    # the pixels identically; take the middle of the run.
    last = first
    while hist[last + 1] == 0:
        last += 1
    return (first + last) // 2


def binarize_otsu(gray: np.ndarray) -> np.ndarray:
    """Binarize with Otsu's threshold: 255 where ``gray > t*``, else 0."""
    threshold = otsu_threshold(gray)
    binary = np.where(gray > threshold, 255, 0).astype(np.uint8)
    logger.debug("Applied Otsu binarization (threshold=%d)", threshold)
    return binary


def integral_image(gray: np.ndarray) -> IntegralImage:
    """Build the sum and sum-of-squares tables for a 2-D grayscale buffer."""
    total, squares = cv2.integral2(
        np.ascontiguousarray(gray), sdepth=cv2.CV_64F, sqdepth=cv2.CV_64F
    )
    return IntegralImage(sum=total, sum_sq=squares)


def window_stats(
    integral: IntegralImage, radius: int
) -> tuple[np.ndarray, np.ndarray]:
    """Local mean and standard deviation over a square window per pixel.

    Windows span ``2 * radius + 1`` pixels per side and are clamped at the
    image border, so edge pixels use the smaller in-bounds window rather
    than zero padding.

    Returns:
        ``(mean, std)`` float arrays of shape ``(height, width)``.
    """
    h, w = integral.height, integral.width
    rows = np.arange(h)
    cols = np.arange(w)
    y0 = np.clip(rows - radius, 0, h)
    y1 = np.clip(rows + radius + 1, 0, h)
    x0 = np.clip(cols - radius, 0, w)
    x1 = np.clip(cols + radius + 1, 0, w)

    def _box(table: np.ndarray) -> np.ndarray:
        return (
            table[np.ix_(y1, x1)]
            - table[np.ix_(y0, x1)]
            - table[np.ix_(y1, x0)]
            + table[np.ix_(y0, x0)]
        )

    count = np.outer(y1 - y0, x1 - x0).astype(np.float64)
    mean = _box(integral.sum) / count
    variance = _box(integral.sum_sq) / count - mean * mean
    std = np.sqrt(np.maximum(variance, 0.0))
    return mean, std


def sauvola_threshold(
    mean: np.ndarray | float,
    std: np.ndarray | float,
    k: float = 0.2,
    dynamic_range: float = 128.0,
) -> np.ndarray | float:
    """Sauvola threshold ``m * (1 + k * (s / R - 1))``.

    Non-decreasing in ``std`` for ``k > 0`` and non-negative ``mean``.
    """
    return mean * (1.0 + k * (std / dynamic_range - 1.0))


def binarize_sauvola(
    gray: np.ndarray, params: SauvolaParams | None = None
) -> np.ndarray:
    """Binarize with Sauvola's local threshold: 255 where ``gray >= T``.

    Args:
        gray: 2-D ``uint8`` grayscale buffer.
        params: Window radius, ``k`` and dynamic range. Defaults to
            :class:`SauvolaParams` defaults.

    Returns:
        Binary ``uint8`` array with values 0 or 255.
    """
    params = params or SauvolaParams()
    integral = integral_image(gray)
    mean, std = window_stats(integral, params.window_radius)
    threshold = sauvola_threshold(mean, std, params.k, params.dynamic_range)
    binary = np.where(gray >= threshold, 255, 0).astype(np.uint8)
    logger.debug(
        "Applied Sauvola binarization (radius=%d, k=%.2f, R=%.0f)",
        params.window_radius,
        params.k,
        params.dynamic_range,
    )
    return binary


def binarize(
    gray: np.ndarray,
    mode: BinarizeMode = BinarizeMode.NONE,
    invert_output: bool = False,
    sauvola: SauvolaParams | None = None,
    size: tuple[int, int] | None = None,
) -> RawImage:
    """Convert a grayscale buffer into an RGB-equal, opaque RawImage.

    Args:
        gray: ``uint8`` grayscale buffer, either 2-D or flat.
        mode: ``none`` passes values through, ``otsu`` and ``sauvola``
            produce strictly bi-level output.
        invert_output: Apply ``255 - value`` as the final step.
        sauvola: Parameters for the Sauvola mode.
        size: ``(width, height)``; required when ``gray`` is flat.

    Returns:
        Processed image with R, G and B equal and alpha 255.

    Raises:
        ValueError: If the buffer length does not match ``width * height``
            or the mode is not a :class:`BinarizeMode` value.
    """
    if size is not None:
        width, height = size
        if gray.size != width * height:
            raise ValueError(
                f"Grayscale buffer has {gray.size} values, expected "
                f"{width}x{height}={width * height}"
            )
        gray = gray.reshape(height, width)
    elif gray.ndim != 2:
        raise ValueError("A flat grayscale buffer needs an explicit (width, height)")

    mode = BinarizeMode(mode)
    if mode is BinarizeMode.OTSU:
        result = binarize_otsu(gray)
    elif mode is BinarizeMode.SAUVOLA:
        result = binarize_sauvola(gray, sauvola)
    else:
        result = gray

    if invert_output:
        result = invert(result)
    return from_array(result.astype(np.uint8, copy=False))
