"""Data structures for text density analysis."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np

RectTuple = Tuple[float, float, float, float]

# Bins partition the horizontal axis; reported regions are full-height bands.
PARTITION_AXIS = "x"


class InvalidDensityConfigError(ValueError):
    """Raised when a DensityConfig is constructed with unusable values."""


class DensityMethod(str, Enum):
    """Metric used to accumulate a bin's raw density."""

    COUNT = "count"
    AREA = "area"
    WEIGHTED = "weighted"


@dataclass(frozen=True)
class NormalizedRect:
    """Rectangle in [0, 1] image units, origin bottom-left, y pointing up."""

    x: float
    y: float
    width: float
    height: float

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def max_y(self) -> float:
        return self.y + self.height

    @property
    def mid_x(self) -> float:
        return self.x + self.width / 2.0

    @property
    def mid_y(self) -> float:
        return self.y + self.height / 2.0

    def as_tuple(self) -> RectTuple:
        return (self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class TextObservation:
    """A single recognized text region."""

    text: str
    bounding_box: NormalizedRect


def _require_int(name: str, value: object, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise InvalidDensityConfigError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise InvalidDensityConfigError(f"{name} must be >= {minimum}, got {value}")


def _require_non_negative(name: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
        raise InvalidDensityConfigError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(float(value)) or value < 0:
        raise InvalidDensityConfigError(f"{name} must be finite and >= 0, got {value}")


@dataclass(frozen=True)
class DensityConfig:
    """Validated, immutable settings for one density analysis.

    Build a new instance (``dataclasses.replace``) to reconfigure, then re-run
    the whole pipeline.
    """

    sections: int = 10
    minimum_density: float = 1.0
    window_size: int = 3
    overlap: float = 0.2
    density_method: DensityMethod = DensityMethod.WEIGHTED

    def __post_init__(self) -> None:
        _require_int("sections", self.sections, 1)
        _require_int("window_size", self.window_size, 1)
        _require_non_negative("minimum_density", self.minimum_density)
        _require_non_negative("overlap", self.overlap)
        try:
            method = DensityMethod(self.density_method)
        except ValueError as exc:
            choices = ", ".join(m.value for m in DensityMethod)
            raise InvalidDensityConfigError(
                f"density_method must be one of {choices}, got {self.density_method!r}"
            ) from exc
        object.__setattr__(self, "density_method", method)

    def to_dict(self) -> Dict[str, object]:
        payload = asdict(self)
        payload["density_method"] = self.density_method.value
        return payload


@dataclass
class DensityAnalysisResult:
    """Structured result of one density analysis.

    ``region`` is None when no bin reached ``minimum_density`` or when the
    image pipeline failed before analysis (see ``errors``).
    """

    config: DensityConfig
    profile: np.ndarray
    smoothed: np.ndarray
    winning_index: Optional[int] = None
    winning_density: Optional[float] = None
    region: Optional[NormalizedRect] = None
    observations: Tuple[TextObservation, ...] = ()
    image_width: int = 0
    image_height: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def minimum_density(self) -> float:
        return self.config.minimum_density

    def to_dict(self) -> Dict[str, object]:
        return {
            "axis": PARTITION_AXIS,
            "config": self.config.to_dict(),
            "profile": [float(v) for v in self.profile],
            "smoothed": [float(v) for v in self.smoothed],
            "winning_index": self.winning_index,
            "winning_density": self.winning_density,
            "minimum_density": self.minimum_density,
            "region": list(self.region.as_tuple()) if self.region else None,
            "observations": [
                {"text": obs.text, "bbox": list(obs.bounding_box.as_tuple())}
                for obs in self.observations
            ],
            "image_width": self.image_width,
            "image_height": self.image_height,
            "errors": list(self.errors),
        }
