"""
Fill classification of bubble candidates.

Each candidate is thresholded on its own interior so that illumination
differences across the sheet do not bias the result. Interiors with too
little contrast for a bimodal split (a blank or a solidly filled bubble)
are judged as a whole against the paper just outside that bubble, so a
blank bubble in a shadow still reads as blank.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

import cv2
import numpy as np
from skimage.filters import threshold_otsu

from bubble_reader import config as cfg
from bubble_reader.models import BubbleCandidate, ClassifiedBubble

logger = logging.getLogger(__name__)


def _window(cx: int, cy: int, radius: int, shape) -> Optional[tuple]:
    h, w = shape[:2]
    x1, y1 = max(0, cx - radius), max(0, cy - radius)
    x2, y2 = min(w, cx + radius + 1), min(h, cy + radius + 1)
    if x2 <= x1 or y2 <= y1:
        return None
    return x1, y1, x2, y2


def interior_pixels(candidate: BubbleCandidate, smoothed_gray: np.ndarray) -> np.ndarray:
    """Grey values inside the shrunken circle of a candidate"""
    radius = max(1, int(round(candidate.radius * cfg.INNER_RADIUS_FACTOR)))
    cx, cy = int(round(candidate.x)), int(round(candidate.y))

    bounds = _window(cx, cy, radius, smoothed_gray.shape)
    if bounds is None:
        return np.empty(0, dtype=smoothed_gray.dtype)
    x1, y1, x2, y2 = bounds

    # Draw the mask in the local window only
    window = smoothed_gray[y1:y2, x1:x2]
    mask = np.zeros(window.shape, dtype=np.uint8)
    cv2.circle(mask, (cx - x1, cy - y1), radius, 255, -1)
    return window[mask > 0]


def paper_level(candidate: BubbleCandidate, smoothed_gray: np.ndarray) -> Optional[float]:
    """Median grey of the paper ring around a candidate, clear of its outline.

    Returns None when the ring lies entirely outside the image.
    """
    inner = max(1, int(round(candidate.radius * cfg.PAPER_RING_INNER_FACTOR)))
    outer = max(inner + 1, int(round(candidate.radius * cfg.PAPER_RING_OUTER_FACTOR)))
    cx, cy = int(round(candidate.x)), int(round(candidate.y))

    bounds = _window(cx, cy, outer, smoothed_gray.shape)
    if bounds is None:
        return None
    x1, y1, x2, y2 = bounds

    window = smoothed_gray[y1:y2, x1:x2]
    mask = np.zeros(window.shape, dtype=np.uint8)
    cv2.circle(mask, (cx - x1, cy - y1), outer, 255, -1)
    cv2.circle(mask, (cx - x1, cy - y1), inner, 0, -1)
    ring = window[mask > 0]
    if ring.size == 0:
        return None
    return float(np.median(ring))


def fill_ratio(pixels: np.ndarray, paper: Optional[float] = None) -> float:
    """Fraction of pixels classified dark.

    ``paper`` is the grey level of the surrounding paper. A uniform interior
    is dark when its mean is at or below ``paper * UNIFORM_DARK_FRACTION``.
    """
    if pixels.size == 0:
        return 0.0
    if int(pixels.max()) - int(pixels.min()) < cfg.MIN_LOCAL_CONTRAST:
        if paper is None:
            paper = cfg.DEFAULT_PAPER_LEVEL
        return 1.0 if float(pixels.mean()) <= paper * cfg.UNIFORM_DARK_FRACTION else 0.0
    local = threshold_otsu(pixels)
    return float(np.count_nonzero(pixels <= local)) / pixels.size


def classify_bubble(candidate: BubbleCandidate, smoothed_gray: np.ndarray,
                    fill_threshold: float) -> ClassifiedBubble:
    pixels = interior_pixels(candidate, smoothed_gray)
    ratio = fill_ratio(pixels, paper_level(candidate, smoothed_gray))
    return ClassifiedBubble.from_candidate(candidate, ratio, fill_threshold)


def classify_bubbles(candidates: Sequence[BubbleCandidate], smoothed_gray: np.ndarray,
                     fill_threshold: float, workers: int = 1) -> List[ClassifiedBubble]:
    """Classify every candidate independently, preserving input order"""
    if not candidates:
        return []

    def classify(candidate):
        return classify_bubble(candidate, smoothed_gray, fill_threshold)

    if workers > 1 and len(candidates) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            bubbles = list(pool.map(classify, candidates))
    else:
        bubbles = [classify(c) for c in candidates]

    filled = sum(1 for b in bubbles if b.is_filled)
    logger.debug(f"Classified {len(bubbles)} bubbles, {filled} filled")
    return bubbles
