"""
Analysis configuration and detection tuning constants
"""
import json
import logging
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from bubble_reader.models import ConfigError

logger = logging.getLogger(__name__)

# Normalizer
CLAHE_CLIP_LIMIT = 2.0
CLAHE_TILE_GRID = (8, 8)
BLUR_KERNEL = (5, 5)
ADAPTIVE_BLOCK_SIZE = 15
ADAPTIVE_C = 7
CLOSE_KERNEL = (3, 3)

# Candidate extractor. The retry trigger and relaxation factors are
# empirical and should be re-tuned against real scan corpora.
RETRY_BELOW = 10
RELAXED_MIN_AREA_FACTOR = 0.6
RELAXED_MAX_AREA_FACTOR = 2.0
RELAXED_MIN_CIRCULARITY = 0.28
DEDUP_MIN_DISTANCE = 5.0
DEDUP_RADIUS_FACTOR = 0.6

# Fill classifier
INNER_RADIUS_FACTOR = 0.8
MIN_LOCAL_CONTRAST = 40
PAPER_RING_INNER_FACTOR = 1.15
PAPER_RING_OUTER_FACTOR = 1.5
UNIFORM_DARK_FRACTION = 0.5
DEFAULT_PAPER_LEVEL = 255.0

# Row clusterer
MIN_ROW_TOLERANCE = 8.0
ROW_TOLERANCE_DIVISOR = 200.0


@dataclass(frozen=True)
class AnalysisConfig:
    min_bubble_area: float = 150
    max_bubble_area: float = 20000
    min_circularity: float = 0.35
    fill_threshold: float = 0.35
    expected_options: Optional[int] = None
    expected_questions: Optional[int] = None
    debug_overlay: bool = False
    min_viable_candidates: int = RETRY_BELOW
    workers: int = 1

    def __post_init__(self):
        if self.min_bubble_area <= 0 or self.max_bubble_area <= 0:
            raise ConfigError("Bubble area bounds must be positive")
        if self.min_bubble_area > self.max_bubble_area:
            raise ConfigError(
                f"min_bubble_area ({self.min_bubble_area}) exceeds "
                f"max_bubble_area ({self.max_bubble_area})"
            )
        for name in ('min_circularity', 'fill_threshold'):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{name} must be within [0, 1], got {value}")
        for name in ('expected_options', 'expected_questions',
                     'min_viable_candidates', 'workers'):
            value = getattr(self, name)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise ConfigError(f"{name} must be an integer, got {value!r}")
        for name in ('expected_options', 'expected_questions'):
            value = getattr(self, name)
            if value is not None and value < 1:
                raise ConfigError(f"{name} must be at least 1, got {value}")
        if self.min_viable_candidates < 0:
            raise ConfigError("min_viable_candidates cannot be negative")
        if self.workers < 1:
            raise ConfigError(f"workers must be at least 1, got {self.workers}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisConfig":
        """Build a config from a plain mapping, ignoring unknown keys"""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.debug(f"Ignoring unknown config keys: {unknown}")
        try:
            return cls(**{k: v for k, v in data.items() if k in known})
        except TypeError as e:
            raise ConfigError(f"Invalid config value: {e}") from e

    @classmethod
    def from_json(cls, path: str) -> "AnalysisConfig":
        """Load configuration from a JSON file"""
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load {path}: {e}")
            raise ConfigError(f"Could not read config {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config {path} must contain a JSON object")
        return cls.from_dict(data)

    def replace(self, **changes) -> "AnalysisConfig":
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update(changes)
        return AnalysisConfig(**values)
