"""Sliding-window smoothing and densest-bin selection."""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from .density_types import DensityConfig, NormalizedRect


def smooth_profile(profile: np.ndarray, window_size: int) -> np.ndarray:
    """Average each bin with its neighbours within ``window_size // 2``.

    Windows are truncated at the ends of the profile, so boundary bins average
    fewer values instead of being padded.
    """
    values = np.asarray(profile, dtype=np.float64)
    count = len(values)
    half = window_size // 2
    smoothed = np.zeros(count, dtype=np.float64)
    for i in range(count):
        lo = max(0, i - half)
        hi = min(count - 1, i + half)
        smoothed[i] = values[lo : hi + 1].mean()
    return smoothed


def find_peak(smoothed: np.ndarray) -> Optional[Tuple[int, float]]:
    """Return (index, value) of the maximum, lowest index on ties."""
    if len(smoothed) == 0:
        return None
    index = int(np.argmax(smoothed))
    return index, float(smoothed[index])


def expand_bin(index: int, config: DensityConfig) -> NormalizedRect:
    """Grow bin ``index`` symmetrically by ``config.overlap`` bin widths.

    The result spans the full height and is not clamped to [0, 1].
    """
    bin_width = 1.0 / config.sections
    base_start = index / config.sections
    expanded_width = bin_width * (1.0 + config.overlap)
    start = base_start - (expanded_width - bin_width) / 2.0
    return NormalizedRect(x=start, y=0.0, width=expanded_width, height=1.0)


def select_densest_region(
    profile: np.ndarray, config: DensityConfig
) -> Optional[NormalizedRect]:
    """Return the expanded densest bin, or None if it is below the threshold."""
    peak = find_peak(smooth_profile(profile, config.window_size))
    if peak is None:
        return None
    index, value = peak
    if value < config.minimum_density:
        return None
    return expand_bin(index, config)
