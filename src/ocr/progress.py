"""Overall progress reporting for a recognition request.

The tracker turns per-call recognizer ratios into one overall percentage
that never decreases and reaches 100 exactly once, when the request ends.
"""

from collections.abc import Callable
from dataclasses import dataclass

from src.utils.numeric import round_half_up


@dataclass(frozen=True)
class ProgressEvent:
    """One progress update delivered to the caller.

    Attributes:
        percent: Overall completion, 0-100.
        strip_index: Strip in flight, or ``None`` in whole-image mode.
        strip_count: Number of strips in the request (1 in whole-image mode).
        fraction: Completion of the current recognizer call, 0-1.
    """

    percent: int
    strip_index: int | None
    strip_count: int
    fraction: float


ProgressCallback = Callable[[ProgressEvent], None]


class ProgressTracker:
    """Per-request progress state.

    Args:
        strip_count: Number of strips, or ``None`` for whole-image mode.
        callback: Receiver of :class:`ProgressEvent` updates; may be ``None``.
    """

    def __init__(
        self, strip_count: int | None = None, callback: ProgressCallback | None = None
    ) -> None:
        self.strip_mode = strip_count is not None
        self.strip_count = strip_count or 1
        self.callback = callback
        self.completed_strips = 0
        self.current_strip_fraction = 0.0
        self.percent = 0
        self.finished = False

    def _emit(self, percent: int, strip_index: int | None, fraction: float) -> None:
        self.percent = max(self.percent, percent)
        if self.callback is not None:
            self.callback(
                ProgressEvent(
                    percent=self.percent,
                    strip_index=strip_index,
                    strip_count=self.strip_count,
                    fraction=fraction,
                )
            )

    def update(self, fraction: float, strip_index: int | None = None) -> None:
        """Report the in-flight recognizer ratio for the current call."""
        self.current_strip_fraction = fraction
        if not self.strip_mode:
            self._emit(round_half_up(100 * fraction), None, fraction)
            return
        index = self.completed_strips if strip_index is None else strip_index
        percent = round_half_up(100 * (index + fraction) / self.strip_count)
        self._emit(min(99, percent), index, fraction)

    def complete_strip(self, strip_index: int) -> None:
        """Record that ``strip_index`` finished.

        The last strip does not report here; :meth:`finish` emits 100.
        """
        self.completed_strips = strip_index + 1
        self.current_strip_fraction = 0.0
        if self.completed_strips >= self.strip_count:
            return
        percent = round_half_up(100 * self.completed_strips / self.strip_count)
        self._emit(min(99, percent), strip_index, 1.0)

    def finish(self) -> None:
        """Emit the single 100% signal at the end of the request."""
        if self.finished:
            return
        self.finished = True
        if self.percent >= 100:
            return
        index = self.strip_count - 1 if self.strip_mode else None
        self._emit(100, index, 1.0)
