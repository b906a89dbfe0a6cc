"""
Image normalization: grayscale, contrast enhancement, smoothing,
adaptive binarization and morphological closing.
"""
import logging

import cv2
import numpy as np

from bubble_reader import config as cfg
from bubble_reader.models import InputError, NormalizedImage

logger = logging.getLogger(__name__)


def validate_image(image) -> np.ndarray:
    """Reject images the pipeline cannot work on"""
    if image is None:
        raise InputError("No image supplied")
    if not isinstance(image, np.ndarray):
        raise InputError(f"Expected a numpy image, got {type(image).__name__}")
    if image.ndim not in (2, 3) or image.size == 0:
        raise InputError(f"Unsupported image shape: {image.shape}")
    if image.ndim == 3 and image.shape[2] not in (1, 3, 4):
        raise InputError(f"Unsupported channel count: {image.shape[2]}")
    return image


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert a BGR, BGRA or single channel image to 8-bit grayscale"""
    if image.ndim == 3:
        channels = image.shape[2]
        if channels == 4:
            gray = cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
        elif channels == 3:
            gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        else:
            gray = image[:, :, 0]
    else:
        gray = image
    if gray.dtype != np.uint8:
        gray = cv2.normalize(gray, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)
    return gray


def enhance_contrast(gray: np.ndarray):
    """Apply CLAHE, returning the original grayscale if it fails"""
    try:
        clahe = cv2.createCLAHE(clipLimit=cfg.CLAHE_CLIP_LIMIT,
                                tileGridSize=cfg.CLAHE_TILE_GRID)
        return clahe.apply(gray), True
    except Exception as e:
        logger.warning(f"Contrast enhancement failed, using original: {e}")
        return gray, False


def normalize_image(image: np.ndarray) -> NormalizedImage:
    image = validate_image(image)
    gray = to_grayscale(image)
    gray, enhanced = enhance_contrast(gray)

    blurred = cv2.GaussianBlur(gray, cfg.BLUR_KERNEL, 0)

    # Inverted so pencil marks and bubble outlines become foreground
    thresh = cv2.adaptiveThreshold(
        blurred, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
        cv2.THRESH_BINARY_INV, cfg.ADAPTIVE_BLOCK_SIZE, cfg.ADAPTIVE_C
    )

    kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, cfg.CLOSE_KERNEL)
    closed = cv2.morphologyEx(thresh, cv2.MORPH_CLOSE, kernel)

    return NormalizedImage(binary_mask=closed, smoothed_gray=blurred, enhanced=enhanced)
