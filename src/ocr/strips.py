"""Horizontal band geometry for strip-by-strip recognition."""

from src.utils.config import CropSpec


def strip_crops(
    base_crop: CropSpec, strip_count: int, overlap_fraction: float = 0.0
) -> list[CropSpec]:
    """Split the page into ``strip_count`` overlapping horizontal bands.

    Band ``i`` starts ``100 * i / N`` percent from the top and ends
    ``100 * (1 - (i + 1) / N)`` percent from the bottom. Every band except
    the first grows upward, and every band except the last grows downward,
    by ``overlap_fraction * 100`` percentage points so that glyphs cut at a
    seam appear whole in one of the neighbours. The vertical crop of
    ``base_crop`` is replaced; its left and right crop are kept.

    Args:
        base_crop: Configured crop whose horizontal margins are reused.
        strip_count: Number of bands, at least 1.
        overlap_fraction: Overlap as a fraction of the page height, in
            ``[0, 1)``.

    Returns:
        One crop per band, in top-to-bottom order.

    Raises:
        ValueError: If ``strip_count`` or ``overlap_fraction`` is out of range.
    """
    if strip_count < 1:
        raise ValueError(f"strip_count must be at least 1, got {strip_count}")
    if not 0.0 <= overlap_fraction < 1.0:
        raise ValueError(
            f"overlap_fraction must be in [0, 1), got {overlap_fraction}"
        )

    pad = overlap_fraction * 100
    crops: list[CropSpec] = []
    for i in range(strip_count):
        top = 100 * i / strip_count
        bottom = 100 * (1 - (i + 1) / strip_count)
        if i > 0:
            top -= pad
        if i < strip_count - 1:
            bottom -= pad
        crops.append(
            CropSpec(
                top=max(0.0, top),
                bottom=max(0.0, bottom),
                left=base_crop.left,
                right=base_crop.right,
            )
        )
    return crops
