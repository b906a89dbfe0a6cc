"""
Per-row answer selection
"""
import logging
from typing import List, Optional, Sequence

from bubble_reader.models import ClassifiedBubble, QuestionResult

logger = logging.getLogger(__name__)


def merge_to_count(row: Sequence[ClassifiedBubble], count: int,
                   fill_threshold: float) -> List[ClassifiedBubble]:
    """Partition a left-to-right row into ``count`` contiguous groups and average each.

    Member i goes to group floor(i * count / len(row)); the merge is positional,
    not distance based. Raises ValueError unless 1 <= count <= len(row).
    """
    n = len(row)
    if not 1 <= count <= n:
        raise ValueError(f"Cannot merge {n} bubbles into {count} groups")
    groups: List[List[ClassifiedBubble]] = [[] for _ in range(count)]
    for i, bubble in enumerate(row):
        groups[(i * count) // n].append(bubble)

    merged = []
    for group in groups:
        size = len(group)
        ratio = sum(b.fill_ratio for b in group) / size
        merged.append(ClassifiedBubble(
            x=sum(b.x for b in group) / size,
            y=sum(b.y for b in group) / size,
            radius=sum(b.radius for b in group) / size,
            fill_ratio=ratio,
            is_filled=ratio >= fill_threshold,
        ))
    return merged


def pick_option(scores: Sequence[float], fill_threshold: float) -> Optional[int]:
    """Index of the highest score, lowest index on ties; None below threshold"""
    best_idx = None
    best_score = None
    for idx, score in enumerate(scores):
        if best_score is None or score > best_score:
            best_idx, best_score = idx, score
    if best_score is None or best_score < fill_threshold:
        return None
    return best_idx


def select_answer(index: int, row: Sequence[ClassifiedBubble], fill_threshold: float,
                  expected_options: Optional[int] = None) -> QuestionResult:
    options = sorted(row, key=lambda b: b.x)
    if expected_options and len(options) > expected_options:
        options = merge_to_count(options, expected_options, fill_threshold)

    scores = tuple(b.fill_ratio for b in options)
    return QuestionResult(
        index=index,
        selected_option=pick_option(scores, fill_threshold),
        scores=scores,
        option_count=len(row),
    )


def select_answers(rows: Sequence[Sequence[ClassifiedBubble]], fill_threshold: float,
                   expected_options: Optional[int] = None) -> List[QuestionResult]:
    questions = [
        select_answer(i, row, fill_threshold, expected_options)
        for i, row in enumerate(rows, start=1)
    ]
    if expected_options:
        short = [q.index for q in questions if q.option_count < expected_options]
        if short:
            logger.debug(f"Rows with fewer than {expected_options} bubbles: {short}")
    return questions
