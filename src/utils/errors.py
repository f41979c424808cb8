"""Typed failures raised by the preprocessing and recognition stages."""


class TranscriptionError(Exception):
    """Base class for all errors surfaced by the transcription engine."""


class UnsupportedFormatError(TranscriptionError):
    """Input bytes are not a decodable raster image (e.g. a PDF)."""


class DegenerateRegionError(TranscriptionError):
    """Crop percentages leave no pixels on one of the image axes."""


class RecognitionError(TranscriptionError):
    """The recognizer failed on a strip or on the whole image.

    Args:
        message: Human readable description.
        strip_index: Index of the failing strip, or ``None`` outside strip mode.
    """

    def __init__(self, message: str, strip_index: int | None = None) -> None:
        super().__init__(message)
        self.strip_index = strip_index


class RecognitionTimeoutError(RecognitionError):
    """A single recognizer call exceeded its time allowance."""


class RecognitionCancelledError(TranscriptionError):
    """The caller cancelled the request before all strips were dispatched."""
