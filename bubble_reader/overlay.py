"""
Debug overlay rendering
"""
import logging
from typing import Sequence

import cv2
import numpy as np

from bubble_reader.models import ClassifiedBubble, QuestionResult

logger = logging.getLogger(__name__)

FILLED_COLOR = (0, 255, 0)
EMPTY_COLOR = (0, 0, 255)
SELECTED_COLOR = (255, 0, 0)
LABEL_COLOR = (255, 255, 255)
MARKER_COLOR = (0, 255, 255)


def _to_bgr(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    if image.shape[2] == 1:
        return cv2.cvtColor(image[:, :, 0], cv2.COLOR_GRAY2BGR)
    return image.copy()


def draw_overlay(image: np.ndarray, bubbles: Sequence[ClassifiedBubble],
                 questions: Sequence[QuestionResult] = (),
                 rows: Sequence[Sequence[ClassifiedBubble]] = ()) -> np.ndarray:
    """Outline bubbles by filled state and label each with its fill ratio.

    When ``rows`` are given alongside ``questions``, the selected option of
    every question is outlined again in a thicker stroke. Selection is only
    highlighted for rows that were not merged.
    """
    overlay = _to_bgr(image)

    for bubble in bubbles:
        center = (int(round(bubble.x)), int(round(bubble.y)))
        radius = max(1, int(round(bubble.radius)))
        color = FILLED_COLOR if bubble.is_filled else EMPTY_COLOR
        cv2.circle(overlay, center, radius, color, 2)
        cv2.rectangle(overlay, (center[0] - 2, center[1] - 2),
                      (center[0] + 2, center[1] + 2), MARKER_COLOR, -1)
        cv2.putText(overlay, f"{bubble.fill_ratio:.2f}",
                    (center[0] + radius + 4, center[1] + 4),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.4, LABEL_COLOR, 1, cv2.LINE_AA)

    for question, row in zip(questions, rows):
        if question.selected_option is None or len(row) != len(question.scores):
            continue
        chosen = sorted(row, key=lambda b: b.x)[question.selected_option]
        cv2.circle(overlay, (int(round(chosen.x)), int(round(chosen.y))),
                   max(1, int(round(chosen.radius))) + 3, SELECTED_COLOR, 3)

    return overlay


def save_overlay(overlay: np.ndarray, path: str) -> None:
    try:
        written = cv2.imwrite(path, overlay)
    except cv2.error as e:
        raise OSError(f"Could not write debug overlay to {path}: {e}") from e
    if not written:
        raise OSError(f"Could not write debug overlay to {path}")
    logger.info(f"Debug overlay saved to: {path}")
