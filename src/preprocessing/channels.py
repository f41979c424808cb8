"""Reduction of colour pixels to a single grayscale channel."""

import numpy as np

from src.utils.config import ChannelMode
from src.utils.logger import get_logger

logger = get_logger(__name__)

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float64)

_CHANNEL_INDEX = {
    ChannelMode.RED: 0,
    ChannelMode.GREEN: 1,
    ChannelMode.BLUE: 2,
}


def extract_channel(
    pixels: np.ndarray, mode: ChannelMode = ChannelMode.AUTO
) -> np.ndarray:
    """Build a one-byte-per-pixel grayscale buffer from RGB(A) pixels.

    ``auto`` uses the standard luma weights; ``r``, ``g`` and ``b`` copy the
    selected channel unchanged. Faded iron-gall ink often separates best in
    a single channel.

    Args:
        pixels: Array of shape ``(H, W, 3)`` or ``(H, W, 4)``.
        mode: Channel selection policy.

    Returns:
        ``uint8`` array of shape ``(H, W)``.
    """
    mode = ChannelMode(mode)
    if mode is ChannelMode.AUTO:
        luma = pixels[:, :, :3].astype(np.float64) @ LUMA_WEIGHTS
        gray = np.clip(np.floor(luma + 0.5), 0, 255).astype(np.uint8)
    else:
        gray = pixels[:, :, _CHANNEL_INDEX[mode]].copy()

    h, w = gray.shape
    logger.debug("Extracted %s channel from %dx%d buffer", mode.value, w, h)
    return gray
