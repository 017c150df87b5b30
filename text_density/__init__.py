"""Text density analysis.

This package finds the band of an image with the most recognized text and
exposes the helpers used by the HTTP functions to detect, analyze and draw it.
"""

from .coordinates import PixelRect, to_display_rect  # noqa: F401
from .density_analysis import (  # noqa: F401
    analyze_density,
    analyze_density_from_image,
    analyze_density_from_image_bytes,
    observations_from_pairs,
    reanalyze,
)
from .density_estimate import estimate  # noqa: F401
from .density_select import expand_bin, select_densest_region, smooth_profile  # noqa: F401
from .density_types import (  # noqa: F401
    PARTITION_AXIS,
    DensityAnalysisResult,
    DensityConfig,
    DensityMethod,
    InvalidDensityConfigError,
    NormalizedRect,
    TextObservation,
)
