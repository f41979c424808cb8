"""Whole-page and strip-by-strip transcription of a page image.

In strip mode the page is cut into overlapping horizontal bands, each band
is preprocessed and recognized as a single text line, and the results are
joined in top-to-bottom order. Strips run one after another, so the
transcription order never depends on recognizer timing.
"""

import asyncio
import time
from dataclasses import dataclass, field
from pathlib import Path

from src.preprocessing.pipeline import PreprocessingPipeline, preprocess
from src.preprocessing.raster import RawImage, decode_image
from src.utils.config import (
    AppConfig,
    PreprocessConfig,
    RecognitionConfig,
    SauvolaParams,
)
from src.utils.errors import (
    RecognitionCancelledError,
    RecognitionError,
    RecognitionTimeoutError,
)
from src.utils.logger import get_logger

from .progress import ProgressCallback, ProgressTracker
from .recognizer import Recognizer, run_recognizer
from .strips import strip_crops
from .tesseract_engine import TesseractRecognizer

logger = get_logger(__name__)

# Tesseract "treat the image as a single text line".
STRIP_PAGE_SEG_MODE = 7


@dataclass
class StripResult:
    """Recognized text of one horizontal band."""

    index: int
    text: str


@dataclass
class Transcription:
    """Final transcription of a page."""

    text: str
    strips: list[StripResult] = field(default_factory=list)
    elapsed_s: float = 0.0


def join_strips(strips: list[StripResult]) -> str:
    """Concatenate trimmed strip texts in index order, one line each."""
    return "".join(s.text.strip() + "\n" for s in sorted(strips, key=lambda s: s.index))


async def _recognize_once(
    recognizer: Recognizer,
    image: RawImage,
    language: str,
    page_seg_mode: int,
    tracker: ProgressTracker,
    strip_index: int | None,
    timeout: float | None,
) -> str:
    def on_ratio(ratio: float) -> None:
        tracker.update(ratio, strip_index)

    # Only an expiry of this scope is a timeout; a TimeoutError raised by the
    # recognizer itself is an ordinary recognizer failure.
    scope = asyncio.timeout(timeout)
    try:
        async with scope:
            return await run_recognizer(
                recognizer, image, language, page_seg_mode, on_ratio
            )
    except TimeoutError as exc:
        if scope.expired():
            raise RecognitionTimeoutError(
                f"Recognizer exceeded {timeout:g}s", strip_index=strip_index
            ) from exc
        raise RecognitionError(
            f"Recognizer failed: {exc}", strip_index=strip_index
        ) from exc
    except RecognitionError as exc:
        if exc.strip_index is None:
            exc.strip_index = strip_index
        raise
    except Exception as exc:
        raise RecognitionError(
            f"Recognizer failed: {exc}", strip_index=strip_index
        ) from exc


def _check_cancelled(cancel: asyncio.Event | None, strip_index: int | None) -> None:
    if cancel is not None and cancel.is_set():
        where = "before recognition"
        if strip_index is not None:
            where = f"at strip {strip_index}"
        raise RecognitionCancelledError(f"Recognition cancelled {where}")


async def recognize_document(
    image: RawImage,
    preprocess_config: PreprocessConfig,
    recognition_config: RecognitionConfig,
    recognizer: Recognizer,
    on_progress: ProgressCallback | None = None,
    *,
    cancel: asyncio.Event | None = None,
    strip_timeout: float | None = None,
    sauvola: SauvolaParams | None = None,
) -> Transcription:
    """Preprocess ``image`` and transcribe it with ``recognizer``.

    Args:
        image: Decoded page image.
        preprocess_config: Crop, skew, channel, binarization and inversion.
        recognition_config: Language, page segmentation and strip settings.
        recognizer: Text recognizer capability.
        on_progress: Receives :class:`ProgressEvent` updates with a
            non-decreasing overall percentage; 100 arrives once, at the end.
        cancel: When set, no further strip is dispatched.
        strip_timeout: Seconds allowed per recognizer call.
        sauvola: Sauvola constants for the ``sauvola`` binarization mode.

    Returns:
        The transcription. In strip mode each strip contributes one trimmed
        line terminated by a newline.

    Raises:
        DegenerateRegionError: If a crop leaves no pixels.
        RecognitionError: If the recognizer fails; no partial text is kept.
        RecognitionTimeoutError: If a call exceeds ``strip_timeout``.
        RecognitionCancelledError: If ``cancel`` is set before a strip starts.
    """
    start_time = time.monotonic()
    language = recognition_config.language

    if not recognition_config.strip_mode:
        tracker = ProgressTracker(None, on_progress)
        _check_cancelled(cancel, None)
        processed = preprocess(image, preprocess_config, sauvola)
        try:
            text = await _recognize_once(
                recognizer,
                processed,
                language,
                recognition_config.page_seg_mode,
                tracker,
                None,
                strip_timeout,
            )
        except RecognitionError as exc:
            logger.error("Whole-page recognition failed: %s", exc)
            raise
        tracker.finish()
        elapsed = time.monotonic() - start_time
        logger.info("Recognized whole page (%d chars) in %.2fs", len(text), elapsed)
        return Transcription(text=text, elapsed_s=elapsed)

    crops = strip_crops(
        preprocess_config.crop,
        recognition_config.strip_count,
        recognition_config.overlap_fraction,
    )
    tracker = ProgressTracker(len(crops), on_progress)
    results: list[StripResult] = []

    for index, crop in enumerate(crops):
        _check_cancelled(cancel, index)
        strip_config = preprocess_config.model_copy(update={"crop": crop})
        processed = preprocess(image, strip_config, sauvola)
        logger.debug(
            "Strip %d/%d: top=%.2f%% bottom=%.2f%% -> %dx%d",
            index + 1,
            len(crops),
            crop.top,
            crop.bottom,
            processed.width,
            processed.height,
        )
        try:
            text = await _recognize_once(
                recognizer,
                processed,
                language,
                STRIP_PAGE_SEG_MODE,
                tracker,
                index,
                strip_timeout,
            )
        except RecognitionError as exc:
            logger.error("Strip %d/%d failed: %s", index + 1, len(crops), exc)
            raise
        results.append(StripResult(index=index, text=text))
        tracker.complete_strip(index)

    tracker.finish()
    transcription = join_strips(results)
    elapsed = time.monotonic() - start_time
    logger.info(
        "Recognized %d strips (%d chars) in %.2fs",
        len(results),
        len(transcription),
        elapsed,
    )
    return Transcription(text=transcription, strips=results, elapsed_s=elapsed)


class DocumentProcessor:
    """Decode, preprocess and transcribe page images.

    Args:
        config: Application configuration object.
        recognizer: Recognizer to use. Defaults to a
            :class:`TesseractRecognizer` built from ``config.ocr``.
    """

    def __init__(self, config: AppConfig, recognizer: Recognizer | None = None) -> None:
        self.config = config
        self.recognizer = recognizer or TesseractRecognizer(
            tesseract_cmd=config.ocr.tesseract_cmd
        )

    def load_image(self, source: Path | bytes) -> RawImage:
        """Decode a page image from a file path or raw bytes."""
        return decode_image(source)

    def preview(
        self,
        source: Path | bytes | RawImage,
        preprocess_config: PreprocessConfig | None = None,
    ) -> RawImage:
        """Return the preprocessed image without recognizing it."""
        image = source if isinstance(source, RawImage) else self.load_image(source)
        pipeline = PreprocessingPipeline(
            preprocess_config or self.config.preprocessing, self.config.sauvola
        )
        return pipeline.process(image)

    async def process(
        self,
        source: Path | bytes | RawImage,
        preprocess_config: PreprocessConfig | None = None,
        recognition_config: RecognitionConfig | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: asyncio.Event | None = None,
    ) -> Transcription:
        """Transcribe a page, falling back to the configured settings.

        Raises:
            UnsupportedFormatError: If ``source`` is not a raster image.
        """
        image = source if isinstance(source, RawImage) else self.load_image(source)
        return await recognize_document(
            image,
            preprocess_config or self.config.preprocessing,
            recognition_config or self.config.recognition,
            self.recognizer,
            on_progress,
            cancel=cancel,
            strip_timeout=self.config.ocr.strip_timeout_s,
            sauvola=self.config.sauvola,
        )

    def transcribe(
        self,
        source: Path | bytes | RawImage,
        preprocess_config: PreprocessConfig | None = None,
        recognition_config: RecognitionConfig | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> Transcription:
        """Blocking wrapper around :meth:`process` for scripts and the CLI."""
        return asyncio.run(
            self.process(source, preprocess_config, recognition_config, on_progress)
        )
