"""
Bubble Sheet Analyzer
Runs normalization, candidate detection, fill classification, row
clustering and answer selection over a single answer sheet image.
"""
import argparse
import base64
import json
import logging
import sys
from collections import Counter
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence

import cv2
import numpy as np
from PIL import Image

from bubble_reader.candidates import extract_candidates
from bubble_reader.classifier import classify_bubbles
from bubble_reader.config import AnalysisConfig
from bubble_reader.models import (AnalysisResult, BubbleReaderError, ClassifiedBubble,
                                  InputError)
from bubble_reader.normalizer import normalize_image, validate_image
from bubble_reader.overlay import draw_overlay, save_overlay
from bubble_reader.rows import cluster_rows
from bubble_reader.scoring import load_answer_keys, score_answers
from bubble_reader.selector import select_answers

logger = logging.getLogger(__name__)


def row_confidence(rows: Sequence[Sequence[ClassifiedBubble]],
                   expected_options: Optional[int]) -> float:
    """Fraction of rows holding the expected (or most common) number of bubbles"""
    if not rows:
        return 0.0
    counts = [len(row) for row in rows]
    target = expected_options
    if target is None:
        # most_common keeps first-seen order on ties
        target = Counter(counts).most_common(1)[0][0]
    return sum(1 for c in counts if c == target) / len(counts)


class BubbleSheetAnalyzer:
    """Extracts selected options per question from a photographed answer sheet"""

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    @classmethod
    def from_config_file(cls, config_path: str) -> "BubbleSheetAnalyzer":
        return cls(AnalysisConfig.from_json(config_path))

    def load_image_from_file(self, path: str) -> np.ndarray:
        """Load image from file path"""
        img = cv2.imread(path, cv2.IMREAD_COLOR)
        if img is not None:
            return img
        try:
            with Image.open(path) as pil_image:
                return cv2.cvtColor(np.array(pil_image.convert('RGB')), cv2.COLOR_RGB2BGR)
        except (OSError, ValueError) as e:
            raise InputError(f"Image not found or corrupted: {path}") from e

    def load_image_from_bytes(self, raw: bytes) -> np.ndarray:
        """Decode an encoded image (PNG, JPEG, ...) held in memory"""
        if not raw:
            raise InputError("Image data is empty")
        img = cv2.imdecode(np.frombuffer(raw, np.uint8), cv2.IMREAD_COLOR)
        if img is not None:
            return img
        # Fallback to Pillow for formats OpenCV can't handle
        try:
            pil_image = Image.open(BytesIO(raw))
            pil_image.load()
            return cv2.cvtColor(np.array(pil_image.convert('RGB')), cv2.COLOR_RGB2BGR)
        except (OSError, ValueError) as e:
            raise InputError(f"Invalid image data: {e}") from e

    def load_image_from_base64(self, base64_string: str) -> np.ndarray:
        """Convert base64 string (optionally a data URL) to OpenCV image"""
        if base64_string.startswith('data:image'):
            base64_string = base64_string.split(',', 1)[1]
        try:
            raw = base64.b64decode(base64_string, validate=True)
        except ValueError as e:
            raise InputError(f"Invalid base64 image data: {e}") from e
        return self.load_image_from_bytes(raw)

    def analyze(self, image: np.ndarray) -> AnalysisResult:
        """Main processing pipeline.

        Raises InputError for unusable images. Low candidate yield is not an
        error: the result is returned with ``degraded`` set so it can be
        routed to manual review.
        """
        config = self.config
        image = validate_image(image)
        height = image.shape[0]
        logger.info(f"Processing image of size: {image.shape}")

        normalized = normalize_image(image)
        scan = extract_candidates(normalized.binary_mask, config)
        bubbles = classify_bubbles(scan.candidates, normalized.smoothed_gray,
                                   config.fill_threshold, config.workers)
        rows = cluster_rows(bubbles, height)
        questions = select_answers(rows, config.fill_threshold, config.expected_options)

        degraded = len(scan.candidates) < config.min_viable_candidates
        if degraded:
            logger.warning(f"Only {len(scan.candidates)} bubble candidates found "
                           f"after relaxed retry; result needs manual review")
        if config.expected_questions is not None and len(questions) != config.expected_questions:
            logger.info(f"Detected {len(questions)} questions, "
                        f"expected {config.expected_questions}")

        overlay = None
        if config.debug_overlay:
            overlay = draw_overlay(image, bubbles, questions, rows)

        result = AnalysisResult(
            questions=tuple(questions),
            bubbles=tuple(bubbles),
            confidence=row_confidence(rows, config.expected_options),
            degraded=degraded,
            retry_used=scan.retry_used,
            candidate_count=len(scan.candidates),
            debug_overlay=overlay,
        )
        logger.info(f"Detected {len(bubbles)} bubbles in {len(questions)} rows "
                    f"(confidence {result.confidence:.2f})")
        return result

    def process_file(self, path: str) -> Dict[str, Any]:
        """Analyze an image on disk, reporting input failures instead of raising"""
        try:
            img = self.load_image_from_file(path)
            return self.analyze(img).to_dict()
        except InputError as e:
            logger.error(f"OMR processing failed: {e}")
            return {
                'error': str(e),
                'processing_info': {'failed_at': 'input', 'error_details': str(e)},
            }


def analyze(image: np.ndarray, config: Optional[AnalysisConfig] = None) -> AnalysisResult:
    return BubbleSheetAnalyzer(config).analyze(image)


def _build_config(args: argparse.Namespace) -> AnalysisConfig:
    config = AnalysisConfig.from_json(args.config) if args.config else AnalysisConfig()
    overrides: Dict[str, Any] = {}
    if args.options is not None:
        overrides['expected_options'] = args.options
    if args.threshold is not None:
        overrides['fill_threshold'] = args.threshold
    if args.workers is not None:
        overrides['workers'] = args.workers
    if args.debug:
        overrides['debug_overlay'] = True
    return config.replace(**overrides) if overrides else config


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Extract marked answers from a bubble sheet')
    parser.add_argument('--image', required=True, help='Path to answer sheet image')
    parser.add_argument('--config', help='Path to analysis config JSON')
    parser.add_argument('--options', type=int, help='Expected options per question')
    parser.add_argument('--threshold', type=float, help='Fill threshold (0..1)')
    parser.add_argument('--workers', type=int, help='Threads used for fill classification')
    parser.add_argument('--key', help='Path to answer key JSON')
    parser.add_argument('--set', help='Answer key version to score against')
    parser.add_argument('--debug', help='Write debug overlay to this path')
    args = parser.parse_args(argv)
    if args.set and not args.key:
        parser.error("--set requires --key")

    logging.basicConfig(level=logging.INFO)

    try:
        analyzer = BubbleSheetAnalyzer(_build_config(args))
        result = analyzer.analyze(analyzer.load_image_from_file(args.image))
        output = result.to_dict()
        if args.key:
            keys = load_answer_keys(args.key)
            version = args.set or next(iter(keys), None)
            if version not in keys:
                raise BubbleReaderError(f"Answer key not found for set {version}")
            output['score'] = score_answers(result.questions, keys[version]).to_dict()
        if args.debug and result.debug_overlay is not None:
            save_overlay(result.debug_overlay, args.debug)
    except (BubbleReaderError, OSError) as e:
        logger.error(f"OMR processing failed: {e}")
        return 1

    print(json.dumps(output, indent=2))
    return 0


if __name__ == '__main__':
    sys.exit(main())
