"""Raw density profile accumulation over horizontal bins."""

from __future__ import annotations

import math
from typing import Iterable, Optional

import numpy as np

from .density_types import DensityConfig, DensityMethod, TextObservation


def bin_index(midpoint: float, sections: int) -> Optional[int]:
    """Map a normalized midpoint to its bin, or None if it falls outside."""
    scaled = midpoint * sections
    if not math.isfinite(scaled) or not 0 <= scaled < sections:
        return None
    return int(math.floor(scaled))


def observation_weight(observation: TextObservation, method: DensityMethod) -> float:
    """Return how much a single observation adds to its bin under ``method``."""
    if method is DensityMethod.COUNT:
        return 1.0
    if method is DensityMethod.AREA:
        box = observation.bounding_box
        return box.width * box.height
    return float(len(observation.text or ""))


def estimate(
    observations: Iterable[TextObservation], config: DensityConfig
) -> np.ndarray:
    """Accumulate a raw density profile with one entry per section.

    Observations whose midpoint lands outside the bins (midpoint of exactly
    1.0, negative or otherwise out of range coordinates), whose box has a
    non-finite field, or whose weight is not a finite non-negative number are
    dropped. The profile is not normalized.
    """
    profile = np.zeros(config.sections, dtype=np.float64)
    for observation in observations:
        if not all(math.isfinite(v) for v in observation.bounding_box.as_tuple()):
            continue
        index = bin_index(observation.bounding_box.mid_x, config.sections)
        if index is None:
            continue
        weight = observation_weight(observation, config.density_method)
        if not math.isfinite(weight) or weight < 0:
            continue
        profile[index] += weight
    return profile
