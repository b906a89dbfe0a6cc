import json

import pytest

from bubble_reader.config import AnalysisConfig
from bubble_reader.models import ConfigError


def test_defaults():
    config = AnalysisConfig()
    assert config.min_bubble_area == 150
    assert config.max_bubble_area == 20000
    assert config.min_circularity == 0.35
    assert config.fill_threshold == 0.35
    assert config.expected_options is None
    assert config.expected_questions is None
    assert config.debug_overlay is False
    assert config.workers == 1


@pytest.mark.parametrize("kwargs", [
    {"min_bubble_area": 0},
    {"min_bubble_area": 500, "max_bubble_area": 400},
    {"fill_threshold": 1.5},
    {"min_circularity": -0.1},
    {"expected_options": 0},
    {"expected_questions": -3},
    {"workers": 0},
    {"min_viable_candidates": -1},
])
def test_rejects_invalid_values(kwargs):
    with pytest.raises(ConfigError):
        AnalysisConfig(**kwargs)


@pytest.mark.parametrize("kwargs", [
    {"expected_options": 4.0},
    {"expected_options": True},
    {"expected_questions": 2.5},
    {"expected_questions": "40"},
    {"workers": 2.0},
    {"min_viable_candidates": False},
])
def test_rejects_non_integer_counts(kwargs):
    with pytest.raises(ConfigError):
        AnalysisConfig(**kwargs)


def test_from_json_rejects_float_option_count(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"expected_options": 4.0}))
    with pytest.raises(ConfigError):
        AnalysisConfig.from_json(str(path))


def test_from_dict_ignores_unknown_keys():
    config = AnalysisConfig.from_dict({"expected_options": 5, "sheet_geometry": {}})
    assert config.expected_options == 5


def test_from_dict_wraps_type_errors():
    with pytest.raises(ConfigError):
        AnalysisConfig.from_dict({"fill_threshold": "high"})


def test_from_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"fill_threshold": 0.5, "debug_overlay": True}))
    config = AnalysisConfig.from_json(str(path))
    assert config.fill_threshold == 0.5
    assert config.debug_overlay is True


def test_from_json_missing_or_malformed(tmp_path):
    with pytest.raises(ConfigError):
        AnalysisConfig.from_json(str(tmp_path / "missing.json"))
    bad = tmp_path / "bad.json"
    bad.write_text("[1, 2")
    with pytest.raises(ConfigError):
        AnalysisConfig.from_json(str(bad))
    listed = tmp_path / "list.json"
    listed.write_text("[1, 2]")
    with pytest.raises(ConfigError):
        AnalysisConfig.from_json(str(listed))


def test_replace_revalidates():
    config = AnalysisConfig().replace(expected_options=4)
    assert config.expected_options == 4
    with pytest.raises(ConfigError):
        config.replace(fill_threshold=2.0)
