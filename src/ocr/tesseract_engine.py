"""Tesseract backend for the recognizer capability.

pytesseract shells out to the ``tesseract`` binary and blocks until it
finishes, so each call runs in a worker thread and reports coarse progress
(start and finish) around it.
"""

import asyncio
from collections.abc import AsyncIterator

import pytesseract
from PIL import Image

from src.preprocessing.raster import RawImage
from src.utils.errors import RecognitionError
from src.utils.logger import get_logger

from .recognizer import RecognitionEvent, RecognitionProgress, RecognitionText

logger = get_logger(__name__)


class TesseractRecognizer:
    """Recognizer backed by a local Tesseract installation.

    Holds no per-call state, so one instance can serve every strip of every
    request.

    Args:
        tesseract_cmd: Path to the Tesseract executable.
            If ``None``, uses the system default.
    """

    def __init__(self, tesseract_cmd: str | None = None) -> None:
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    def _image_to_string(self, image: RawImage, language: str, psm: int) -> str:
        pil_image = Image.fromarray(image.rgb.copy())
        return pytesseract.image_to_string(
            pil_image, lang=language, config=f"--psm {psm}"
        )

    async def recognize(
        self, image: RawImage, language: str, page_seg_mode: int
    ) -> AsyncIterator[RecognitionEvent]:
        """Recognize ``image`` and stream progress followed by the text.

        Raises:
            RecognitionError: If Tesseract fails or is not installed.
        """
        yield RecognitionProgress(0.0)
        try:
            text = await asyncio.to_thread(
                self._image_to_string, image, language, page_seg_mode
            )
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as exc:
            logger.error(
                "Tesseract failed (lang=%s, psm=%d): %s", language, page_seg_mode, exc
            )
            raise RecognitionError(f"Tesseract failed: {exc}") from exc

        logger.debug(
            "Tesseract recognized %d characters from %dx%d image",
            len(text),
            image.width,
            image.height,
        )
        yield RecognitionProgress(1.0)
        yield RecognitionText(text)
