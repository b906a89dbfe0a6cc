"""
Group classified bubbles into question rows
"""
import logging
from typing import List, Sequence

from bubble_reader import config as cfg
from bubble_reader.models import ClassifiedBubble

logger = logging.getLogger(__name__)


def row_tolerance(image_height: int) -> float:
    """Vertical tolerance, scaled with resolution"""
    return max(cfg.MIN_ROW_TOLERANCE, image_height / cfg.ROW_TOLERANCE_DIVISOR)


def cluster_rows(bubbles: Sequence[ClassifiedBubble],
                 image_height: int) -> List[List[ClassifiedBubble]]:
    """Single top-to-bottom scan joining bubbles close to the current row's mean y.

    Assumes rows do not interleave vertically, i.e. residual skew is smaller
    than the tolerance.
    """
    tolerance = row_tolerance(image_height)
    rows: List[List[ClassifiedBubble]] = []
    mean_y = 0.0

    for bubble in sorted(bubbles, key=lambda b: (b.y, b.x)):
        if rows and abs(bubble.y - mean_y) <= tolerance:
            row = rows[-1]
            row.append(bubble)
            mean_y += (bubble.y - mean_y) / len(row)
        else:
            rows.append([bubble])
            mean_y = bubble.y

    logger.debug(f"Grouped {len(bubbles)} bubbles into {len(rows)} rows "
                 f"(tolerance {tolerance:.1f}px)")
    return rows
