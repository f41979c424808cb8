"""Configuration management for the transcription engine.

Loads and validates YAML configuration with defaults tuned for
handwritten historical pages, and exposes the two built-in presets
(typed print and handwriting).
"""

import logging
from enum import StrEnum
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES: dict[str, str] = {
    "por": "Portuguese",
    "eng": "English",
    "spa": "Spanish",
    "fra": "French",
    "lat": "Latin",
}


class ChannelMode(StrEnum):
    """Which colour information feeds the grayscale buffer."""

    AUTO = "auto"
    RED = "r"
    GREEN = "g"
    BLUE = "b"


class BinarizeMode(StrEnum):
    """Binarization algorithm applied after channel extraction."""

    NONE = "none"
    OTSU = "otsu"
    SAUVOLA = "sauvola"


class CropSpec(BaseModel):
    """Percentage of the image removed from each edge."""

    model_config = ConfigDict(frozen=True)

    top: float = Field(default=0.0, ge=0.0, lt=100.0)
    bottom: float = Field(default=0.0, ge=0.0, lt=100.0)
    left: float = Field(default=0.0, ge=0.0, lt=100.0)
    right: float = Field(default=0.0, ge=0.0, lt=100.0)


class PreprocessConfig(BaseModel):
    """Per-request image preparation settings."""

    model_config = ConfigDict(frozen=True)

    crop: CropSpec = Field(default_factory=CropSpec)
    channel: ChannelMode = ChannelMode.AUTO
    binarize: BinarizeMode = BinarizeMode.NONE
    invert: bool = False
    skew_degrees: float = 0.0


class SauvolaParams(BaseModel):
    """Tunable constants of the Sauvola local threshold."""

    model_config = ConfigDict(frozen=True)

    window_radius: int = Field(default=12, ge=1)
    k: float = Field(default=0.2, gt=0.0)
    dynamic_range: float = Field(default=128.0, gt=0.0)


class RecognitionConfig(BaseModel):
    """Per-request recognizer and strip segmentation settings."""

    model_config = ConfigDict(frozen=True)

    language: str = "por"
    page_seg_mode: int = Field(default=7, ge=0, le=13)
    strip_mode: bool = True
    strip_count: int = Field(default=8, ge=1)
    overlap_fraction: float = Field(default=0.08, ge=0.0, lt=1.0)


class OCRConfig(BaseModel):
    """Configuration for the Tesseract recognizer backend."""

    tesseract_cmd: str | None = None
    strip_timeout_s: float | None = Field(default=None, gt=0.0)


def handwritten_preset() -> tuple[PreprocessConfig, RecognitionConfig]:
    """Settings for handwritten pages: margin crop, Sauvola, line strips."""
    preprocess = PreprocessConfig(
        crop=CropSpec(top=35, bottom=5, left=5, right=5),
        channel=ChannelMode.AUTO,
        binarize=BinarizeMode.SAUVOLA,
        invert=False,
        skew_degrees=0.0,
    )
    return preprocess, RecognitionConfig(page_seg_mode=7, strip_mode=True)


def typed_preset() -> tuple[PreprocessConfig, RecognitionConfig]:
    """Settings for printed pages: whole page, Otsu, single uniform block."""
    preprocess = PreprocessConfig(binarize=BinarizeMode.OTSU)
    return preprocess, RecognitionConfig(page_seg_mode=6, strip_mode=False)


PRESETS = {
    "handwritten": handwritten_preset,
    "typed": typed_preset,
}


def _default_preprocessing() -> PreprocessConfig:
    return handwritten_preset()[0]


class AppConfig(BaseModel):
    """Top-level application configuration."""

    preprocessing: PreprocessConfig = Field(default_factory=_default_preprocessing)
    sauvola: SauvolaParams = Field(default_factory=SauvolaParams)
    recognition: RecognitionConfig = Field(default_factory=RecognitionConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    log_level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to configs/config.yaml.

    Returns:
        Validated application configuration.
    """
    if path is None:
        path = Path("configs/config.yaml")

    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        return AppConfig(**raw)

    logger.info("No config file found at %s, using defaults", path)
    return AppConfig()
