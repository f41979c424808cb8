"""Configurable image preprocessing pipeline for page transcription.

Composes crop/deskew, channel extraction, binarization and inversion into a
single deterministic step: ``RawImage x PreprocessConfig -> ProcessedImage``.
"""

from src.utils.config import PreprocessConfig, SauvolaParams
from src.utils.logger import get_logger

from .binarize import binarize
from .channels import extract_channel
from .geometry import transform
from .raster import RawImage

logger = get_logger(__name__)


def preprocess(
    image: RawImage,
    config: PreprocessConfig,
    sauvola: SauvolaParams | None = None,
) -> RawImage:
    """Run every preprocessing stage on ``image``.

    Args:
        image: Decoded source image; left untouched.
        config: Crop, skew, channel, binarization and inversion settings.
        sauvola: Sauvola constants used when ``config.binarize`` is
            ``sauvola``.

    Returns:
        Processed image whose R, G and B channels are equal and whose alpha
        is opaque.

    Raises:
        DegenerateRegionError: If the crop leaves no pixels on an axis.
    """
    transformed = transform(image, config.crop, config.skew_degrees)
    gray = extract_channel(transformed.pixels, config.channel)
    result = binarize(gray, config.binarize, config.invert, sauvola)
    logger.debug(
        "Preprocessed %dx%d -> %dx%d (channel=%s, binarize=%s, invert=%s)",
        image.width,
        image.height,
        result.width,
        result.height,
        config.channel.value,
        config.binarize.value,
        config.invert,
    )
    return result


class PreprocessingPipeline:
    """Reusable preprocessing step bound to one configuration.

    Args:
        config: Preprocessing configuration applied to every image.
        sauvola: Sauvola constants; defaults to :class:`SauvolaParams`.
    """

    def __init__(
        self, config: PreprocessConfig, sauvola: SauvolaParams | None = None
    ) -> None:
        self.config = config
        self.sauvola = sauvola or SauvolaParams()

    def process(self, image: RawImage) -> RawImage:
        """Run the full preprocessing pipeline on an image."""
        result = preprocess(image, self.config, self.sauvola)
        logger.info(
            "Preprocessing complete: %dx%d -> %dx%d",
            image.width,
            image.height,
            result.width,
            result.height,
        )
        return result
