"""The text-recognizer capability consumed by the orchestrator.

A recognizer is anything with a ``recognize`` method returning an async
stream of :class:`RecognitionProgress` events followed by exactly one
:class:`RecognitionText`. Test doubles only need to implement that method.
"""

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Protocol

from src.preprocessing.raster import RawImage
from src.utils.errors import RecognitionError


@dataclass(frozen=True)
class RecognitionProgress:
    """Intermediate progress of a single recognizer call, in ``[0, 1]``."""

    ratio: float


@dataclass(frozen=True)
class RecognitionText:
    """Terminal event carrying the recognized text."""

    text: str


RecognitionEvent = RecognitionProgress | RecognitionText


class Recognizer(Protocol):
    """Single-method capability turning a processed image into text."""

    def recognize(
        self, image: RawImage, language: str, page_seg_mode: int
    ) -> AsyncIterator[RecognitionEvent]:
        """Start recognition and stream its events."""
        ...


async def run_recognizer(
    recognizer: Recognizer,
    image: RawImage,
    language: str,
    page_seg_mode: int,
    on_ratio: Callable[[float], None] | None = None,
) -> str:
    """Drain a recognizer's event stream and return its text.

    Args:
        recognizer: Recognizer to invoke.
        image: Processed image.
        language: Recognizer language code (e.g. ``"por"``).
        page_seg_mode: Page segmentation mode.
        on_ratio: Called with each progress ratio, clamped to ``[0, 1]``.

    Returns:
        The text carried by the terminal event.

    Raises:
        RecognitionError: If the stream ends without a text event.
    """
    text: str | None = None
    async for event in recognizer.recognize(image, language, page_seg_mode):
        if isinstance(event, RecognitionText):
            text = event.text
        elif on_ratio is not None and text is None:
            on_ratio(min(1.0, max(0.0, float(event.ratio))))

    if text is None:
        raise RecognitionError("Recognizer finished without producing text")
    return text
