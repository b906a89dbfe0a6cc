import cv2
import numpy as np
import pytest

from bubble_reader.models import ClassifiedBubble

BUBBLE_RADIUS = 36
OPTION_STEP = 100
ROW_STEP = 110
MARGIN = 70


def bubble_center(row, option):
    return (MARGIN + option * OPTION_STEP, MARGIN + row * ROW_STEP)


def draw_sheet(marks, options=4, partial=None):
    """White BGR sheet with one row of outlined bubbles per entry in ``marks``.

    ``marks[i]`` is the option filled solid in row i, or None for a blank row.
    ``partial`` maps (row, option) to the radius of a smaller dark disc drawn
    inside that bubble.
    """
    rows = len(marks)
    width = MARGIN * 2 + (options - 1) * OPTION_STEP
    height = MARGIN * 2 + max(rows - 1, 0) * ROW_STEP
    img = np.full((height, width, 3), 255, dtype=np.uint8)
    for r, marked in enumerate(marks):
        for o in range(options):
            center = bubble_center(r, o)
            if marked == o:
                cv2.circle(img, center, BUBBLE_RADIUS, (0, 0, 0), -1)
            else:
                cv2.circle(img, center, BUBBLE_RADIUS, (0, 0, 0), 2)
    for (r, o), radius in (partial or {}).items():
        cv2.circle(img, bubble_center(r, o), radius, (0, 0, 0), -1)
    return img


@pytest.fixture
def sheet_factory():
    return draw_sheet


@pytest.fixture
def answered_sheet():
    marks = [1, 3, 0, 2, 1]
    return draw_sheet(marks), marks


def make_bubble(x, y, fill_ratio=0.0, radius=10.0, threshold=0.35):
    return ClassifiedBubble(x=x, y=y, radius=radius, fill_ratio=fill_ratio,
                            is_filled=fill_ratio >= threshold)


@pytest.fixture
def bubble():
    return make_bubble
