import json

import pytest

from bubble_reader.models import AnswerKeyError, QuestionResult
from bubble_reader.scoring import AnswerKey, load_answer_keys, score_answers


def question(index, selected):
    return QuestionResult(index=index, selected_option=selected,
                          scores=(0.0, 0.0, 0.0, 0.0), option_count=4)


@pytest.fixture
def key():
    return AnswerKey.from_dict("A", {"Statistics": ["B", "a", "C"], "SQL": ["D", "A"]})


def test_key_keeps_subject_order_and_normalizes_letters(key):
    assert key.subject_names() == ["Statistics", "SQL"]
    assert key.subjects[0][1] == ("B", "A", "C")
    assert key.total_questions == 5


@pytest.mark.parametrize("mapping", [
    {},
    {"Math": []},
    {"Math": "ABCD"},
    {"Math": ["A", "BB"]},
    {"Math": ["A", 3]},
    {"Math": ["A", "?"]},
])
def test_rejects_malformed_keys(mapping):
    with pytest.raises(AnswerKeyError):
        AnswerKey.from_dict("A", mapping)


def test_enforces_subject_length():
    with pytest.raises(AnswerKeyError):
        AnswerKey.from_dict("A", {"Math": ["A", "B"], "SQL": ["C"]}, questions_per_subject=2)


def test_scores_subjects_consecutively(key):
    # B A C | D A  -> marked B A D | D None
    questions = [question(1, 1), question(2, 0), question(3, 3), question(4, 3), question(5, None)]
    report = score_answers(questions, key)
    assert report.subject_scores == {"Statistics": 2, "SQL": 1}
    assert report.total_score == 3
    assert report.total_questions == 5
    assert report.blank_answers == 1
    assert report.accuracy_percentage == pytest.approx(60.0)
    assert [d.subject for d in report.detailed_answers] == ["Statistics"] * 3 + ["SQL"] * 2


def test_missing_questions_count_as_blank(key):
    report = score_answers([question(1, 1)], key)
    assert report.total_score == 1
    assert report.blank_answers == 4


def test_report_dict(key):
    data = score_answers([question(1, 1)], key).to_dict()
    assert data["set_id"] == "A"
    assert data["detailed_answers"][0] == {
        "question": 1, "subject": "Statistics", "marked": "B",
        "correct": "B", "is_correct": True, "is_blank": False,
    }


def test_load_answer_keys(tmp_path):
    path = tmp_path / "keys.json"
    path.write_text(json.dumps({
        "A": {"Math": ["A", "B"]},
        "B": {"Math": ["C", "D"]},
    }))
    keys = load_answer_keys(str(path))
    assert sorted(keys) == ["A", "B"]
    assert keys["B"].subjects == (("Math", ("C", "D")),)


def test_load_answer_keys_errors(tmp_path):
    with pytest.raises(AnswerKeyError):
        load_answer_keys(str(tmp_path / "missing.json"))
    path = tmp_path / "keys.json"
    path.write_text(json.dumps({"A": {"Math": ["A", "??"]}}))
    with pytest.raises(AnswerKeyError):
        load_answer_keys(str(path))
