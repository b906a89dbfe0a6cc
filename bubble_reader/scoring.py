"""
Answer key scoring.

Compares detected answers against an answer key for one exam version.
Keys are passed explicitly per call; nothing here keeps a process-wide
table.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from bubble_reader.models import AnswerKeyError, QuestionResult

logger = logging.getLogger(__name__)


def _validate_options(subject: str, options: Sequence[str]) -> Tuple[str, ...]:
    if isinstance(options, str) or not options:
        raise AnswerKeyError(f"Subject {subject!r} needs a non-empty list of options")
    cleaned = []
    for i, option in enumerate(options, start=1):
        if not isinstance(option, str):
            raise AnswerKeyError(f"Subject {subject!r} question {i}: option must be a letter")
        letter = option.strip().upper()
        if len(letter) != 1 or not 'A' <= letter <= 'Z':
            raise AnswerKeyError(f"Subject {subject!r} question {i}: invalid option {option!r}")
        cleaned.append(letter)
    return tuple(cleaned)


@dataclass(frozen=True)
class AnswerKey:
    """Ordered mapping of subject to its sequence of correct option letters"""
    version: str
    subjects: Tuple[Tuple[str, Tuple[str, ...]], ...]

    @classmethod
    def from_dict(cls, version: str, mapping: Mapping[str, Sequence[str]],
                  questions_per_subject: Optional[int] = None) -> "AnswerKey":
        if not mapping:
            raise AnswerKeyError(f"Answer key {version!r} has no subjects")
        subjects = []
        for subject, options in mapping.items():
            cleaned = _validate_options(subject, options)
            if questions_per_subject is not None and len(cleaned) != questions_per_subject:
                raise AnswerKeyError(
                    f"Subject {subject!r} has {len(cleaned)} answers, "
                    f"expected {questions_per_subject}"
                )
            subjects.append((subject, cleaned))
        return cls(version=version, subjects=tuple(subjects))

    @property
    def total_questions(self) -> int:
        return sum(len(options) for _, options in self.subjects)

    def subject_names(self) -> List[str]:
        return [name for name, _ in self.subjects]


def load_answer_keys(path: str) -> Dict[str, AnswerKey]:
    """Load ``{version: {subject: [letters]}}`` from a JSON file"""
    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to load {path}: {e}")
        raise AnswerKeyError(f"Could not read answer key {path}: {e}") from e
    if not isinstance(data, dict):
        raise AnswerKeyError(f"Answer key file {path} must contain a JSON object")
    return {version: AnswerKey.from_dict(version, subjects)
            for version, subjects in data.items()}


@dataclass(frozen=True)
class QuestionScore:
    question: int
    subject: str
    marked: Optional[str]
    correct: str

    @property
    def is_correct(self) -> bool:
        return self.marked == self.correct

    @property
    def is_blank(self) -> bool:
        return self.marked is None


@dataclass(frozen=True)
class ScoreReport:
    version: str
    subject_scores: Dict[str, int]
    total_score: int
    total_questions: int
    blank_answers: int
    detailed_answers: Tuple[QuestionScore, ...] = field(default=())

    @property
    def accuracy_percentage(self) -> float:
        return (self.total_score / max(self.total_questions, 1)) * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            'set_id': self.version,
            'subject_scores': dict(self.subject_scores),
            'total_score': self.total_score,
            'total_questions': self.total_questions,
            'blank_answers': self.blank_answers,
            'accuracy_percentage': self.accuracy_percentage,
            'detailed_answers': [
                {
                    'question': d.question,
                    'subject': d.subject,
                    'marked': d.marked,
                    'correct': d.correct,
                    'is_correct': d.is_correct,
                    'is_blank': d.is_blank,
                }
                for d in self.detailed_answers
            ],
        }


def score_answers(questions: Sequence[QuestionResult], answer_key: AnswerKey) -> ScoreReport:
    """Calculate subject-wise and total scores.

    Questions are assigned to subjects consecutively in key order. Questions
    the sheet did not yield count as blank.
    """
    by_index = {q.index: q for q in questions}
    if len(questions) != answer_key.total_questions:
        logger.warning(f"Sheet has {len(questions)} questions, answer key "
                       f"{answer_key.version} expects {answer_key.total_questions}")

    subject_scores: Dict[str, int] = {}
    details: List[QuestionScore] = []
    question_no = 0
    for subject, options in answer_key.subjects:
        subject_score = 0
        for correct in options:
            question_no += 1
            result = by_index.get(question_no)
            marked = result.selected_letter if result is not None else None
            detail = QuestionScore(question=question_no, subject=subject,
                                   marked=marked, correct=correct)
            if detail.is_correct:
                subject_score += 1
            details.append(detail)
        subject_scores[subject] = subject_score

    return ScoreReport(
        version=answer_key.version,
        subject_scores=subject_scores,
        total_score=sum(subject_scores.values()),
        total_questions=question_no,
        blank_answers=sum(1 for d in details if d.is_blank),
        detailed_answers=tuple(details),
    )
