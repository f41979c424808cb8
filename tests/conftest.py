"""Shared test fixtures for the transcription test suite."""

from pathlib import Path

import numpy as np
import pytest

from src.preprocessing.raster import RawImage, from_array


@pytest.fixture
def sample_gray() -> np.ndarray:
    """Create a simple synthetic grayscale page: dark block on white."""
    image = np.full((200, 300), 255, dtype=np.uint8)
    image[50:150, 50:250] = 0
    return image


@pytest.fixture
def sample_image(sample_gray: np.ndarray) -> RawImage:
    """The grayscale sample page as an opaque RGBA RawImage."""
    return from_array(sample_gray)


@pytest.fixture
def sample_color_image() -> RawImage:
    """Create a synthetic colour page with distinct R, G and B values."""
    pixels = np.zeros((120, 160, 4), dtype=np.uint8)
    pixels[:, :, 0] = 200
    pixels[:, :, 1] = 100
    pixels[:, :, 2] = 50
    pixels[:, :, 3] = 255
    return RawImage(pixels)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root: Path) -> Path:
    """Return the configs directory path."""
    return project_root / "configs"
