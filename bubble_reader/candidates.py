"""
Bubble candidate extraction from the binarized sheet
"""
import logging
import math
from typing import List, Sequence, Tuple

import cv2
import imutils
import numpy as np

from bubble_reader import config as cfg
from bubble_reader.config import AnalysisConfig
from bubble_reader.models import BubbleCandidate, CandidateScan

logger = logging.getLogger(__name__)


def circularity(area: float, perimeter: float) -> float:
    """4*pi*area / perimeter^2, 1.0 for a perfect circle"""
    if perimeter <= 0:
        return 0.0
    return (4.0 * math.pi * area) / (perimeter * perimeter)


def _measure(contours: Sequence[np.ndarray]) -> List[Tuple[np.ndarray, float, float]]:
    measured = []
    for contour in contours:
        area = cv2.contourArea(contour)
        perimeter = cv2.arcLength(contour, True)
        measured.append((contour, area, circularity(area, perimeter)))
    return measured


def _to_candidate(contour: np.ndarray) -> BubbleCandidate:
    (x, y), radius = cv2.minEnclosingCircle(contour)
    return BubbleCandidate(x=float(x), y=float(y), radius=float(radius))


def _is_duplicate(candidate: BubbleCandidate, accepted: Sequence[BubbleCandidate]) -> bool:
    min_distance = max(cfg.DEDUP_MIN_DISTANCE, candidate.radius * cfg.DEDUP_RADIUS_FACTOR)
    return any(
        math.hypot(b.x - candidate.x, b.y - candidate.y) <= min_distance
        for b in accepted
    )


def extract_candidates(binary_mask: np.ndarray, config: AnalysisConfig) -> CandidateScan:
    """Find bubble-shaped regions, with a single relaxed retry on low yield"""
    contours = cv2.findContours(binary_mask.copy(), cv2.RETR_EXTERNAL,
                                cv2.CHAIN_APPROX_SIMPLE)
    contours = imutils.grab_contours(contours)
    measured = _measure(contours)

    accepted: List[BubbleCandidate] = []
    for contour, area, circ in measured:
        if not config.min_bubble_area <= area <= config.max_bubble_area:
            continue
        if circ < config.min_circularity:
            continue
        accepted.append(_to_candidate(contour))

    logger.debug(f"Strict pass accepted {len(accepted)} of {len(measured)} contours")

    retry_used = False
    if len(accepted) < cfg.RETRY_BELOW:
        retry_used = True
        min_area = config.min_bubble_area * cfg.RELAXED_MIN_AREA_FACTOR
        max_area = config.max_bubble_area * cfg.RELAXED_MAX_AREA_FACTOR
        added = 0
        for contour, area, circ in measured:
            if not min_area <= area <= max_area:
                continue
            if circ < cfg.RELAXED_MIN_CIRCULARITY:
                continue
            candidate = _to_candidate(contour)
            if _is_duplicate(candidate, accepted):
                continue
            accepted.append(candidate)
            added += 1
        logger.debug(f"Relaxed pass added {added} candidates")

    return CandidateScan(
        candidates=tuple(accepted),
        contour_count=len(measured),
        retry_used=retry_used,
    )
