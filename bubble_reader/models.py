"""
Bubble Reader Models
Result types and errors shared by the detection stages.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np


class BubbleReaderError(Exception):
    """Base class for all bubble reader errors"""


class InputError(BubbleReaderError, ValueError):
    """Image is missing, empty or could not be decoded"""


class ConfigError(BubbleReaderError, ValueError):
    """Analysis configuration is invalid"""


class AnswerKeyError(BubbleReaderError, ValueError):
    """Answer key is malformed or the requested version does not exist"""


@dataclass(frozen=True)
class NormalizedImage:
    binary_mask: np.ndarray
    smoothed_gray: np.ndarray
    enhanced: bool


@dataclass(frozen=True)
class BubbleCandidate:
    x: float
    y: float
    radius: float


@dataclass(frozen=True)
class CandidateScan:
    candidates: Tuple[BubbleCandidate, ...]
    contour_count: int
    retry_used: bool


@dataclass(frozen=True)
class ClassifiedBubble:
    x: float
    y: float
    radius: float
    fill_ratio: float
    is_filled: bool

    @classmethod
    def from_candidate(cls, candidate: BubbleCandidate, fill_ratio: float,
                       fill_threshold: float) -> "ClassifiedBubble":
        return cls(
            x=candidate.x,
            y=candidate.y,
            radius=candidate.radius,
            fill_ratio=fill_ratio,
            is_filled=fill_ratio >= fill_threshold,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'x': round(self.x, 2),
            'y': round(self.y, 2),
            'radius': round(self.radius, 2),
            'fill_ratio': round(self.fill_ratio, 4),
            'is_filled': self.is_filled,
        }


@dataclass(frozen=True)
class QuestionResult:
    """One detected question row.

    ``index`` is the 1-based top-to-bottom row position. ``selected_option``
    is a 0-based option index, or None when no option reached the fill
    threshold. ``option_count`` is the number of bubbles the row held
    before any merge.
    """
    index: int
    selected_option: Optional[int]
    scores: Tuple[float, ...]
    option_count: int

    @property
    def selected_letter(self) -> Optional[str]:
        if self.selected_option is None:
            return None
        return chr(65 + self.selected_option)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'question': self.index,
            'selected_option': self.selected_option,
            'marked_answer': self.selected_letter,
            'scores': [round(s, 4) for s in self.scores],
            'option_count': self.option_count,
        }


REVIEW_CONFIDENCE = 0.8


@dataclass(frozen=True)
class AnalysisResult:
    questions: Tuple[QuestionResult, ...]
    bubbles: Tuple[ClassifiedBubble, ...]
    confidence: float
    degraded: bool
    retry_used: bool
    candidate_count: int
    debug_overlay: Optional[np.ndarray] = field(default=None, repr=False, compare=False)

    @property
    def requires_review(self) -> bool:
        return self.degraded or self.confidence < REVIEW_CONFIDENCE

    def to_dict(self) -> Dict[str, Any]:
        questions: List[Dict[str, Any]] = [q.to_dict() for q in self.questions]
        return {
            'questions': questions,
            'bubbles': [b.to_dict() for b in self.bubbles],
            'processing_info': {
                'candidate_count': self.candidate_count,
                'retry_used': self.retry_used,
                'degraded': self.degraded,
                'confidence': round(self.confidence, 4),
                'requires_review': self.requires_review,
            },
        }
