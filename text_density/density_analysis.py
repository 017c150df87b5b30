"""Text density analysis pipeline."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from PIL import Image

from .density_estimate import estimate
from .density_select import expand_bin, find_peak, smooth_profile
from .density_types import (
    DensityAnalysisResult,
    DensityConfig,
    NormalizedRect,
    TextObservation,
)
from .image_io import load_rgb_image
from .settings import TextDetectorConfig
from .text_detect import TextDetectionError, detect_text

logger = logging.getLogger(__name__)

ObservationLike = Union[
    TextObservation,
    Tuple[str, Sequence[float]],
    Mapping[str, object],
]


def _to_observation(item: ObservationLike) -> TextObservation:
    if isinstance(item, TextObservation):
        return item
    if isinstance(item, Mapping):
        text = item.get("text") or ""
        bbox = item.get("bbox", item.get("bounding_box"))
    else:
        text, bbox = item
    if isinstance(bbox, NormalizedRect):
        rect = bbox
    elif isinstance(bbox, Mapping):
        rect = NormalizedRect(
            x=float(bbox["x"]),
            y=float(bbox["y"]),
            width=float(bbox["width"]),
            height=float(bbox["height"]),
        )
    else:
        if bbox is None or len(bbox) != 4:
            raise ValueError(f"Bounding box must have 4 values, got {bbox!r}")
        x, y, w, h = (float(v) for v in bbox)
        rect = NormalizedRect(x=x, y=y, width=w, height=h)
    return TextObservation(text=str(text), bounding_box=rect)


def observations_from_pairs(items: Iterable[ObservationLike]) -> List[TextObservation]:
    """Build observations from ``(text, (x, y, w, h))`` pairs or JSON dicts.

    Raises ValueError for malformed entries.
    """
    observations: List[TextObservation] = []
    for item in items:
        try:
            observations.append(_to_observation(item))
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Malformed observation: {item!r}") from exc
    return observations


def analyze_density(
    observations: Iterable[TextObservation],
    config: Optional[DensityConfig] = None,
) -> DensityAnalysisResult:
    """Estimate, smooth and select the densest region for ``observations``."""
    config = config or DensityConfig()
    snapshot = tuple(observations)
    profile = estimate(snapshot, config)
    smoothed = smooth_profile(profile, config.window_size)

    result = DensityAnalysisResult(
        config=config,
        profile=profile,
        smoothed=smoothed,
        observations=snapshot,
    )
    peak = find_peak(smoothed)
    if peak is None:
        return result

    index, value = peak
    result.winning_index = index
    result.winning_density = value
    if value >= config.minimum_density:
        result.region = expand_bin(index, config)
    return result


def reanalyze(
    previous: DensityAnalysisResult, config: DensityConfig
) -> DensityAnalysisResult:
    """Re-run the pipeline over the observations kept on ``previous``."""
    result = analyze_density(previous.observations, config)
    return replace(
        result,
        image_width=previous.image_width,
        image_height=previous.image_height,
        errors=list(previous.errors),
    )


def failed_result(
    config: DensityConfig, error: str, *, width: int = 0, height: int = 0
) -> DensityAnalysisResult:
    """Result for an image that could not be analyzed; no region is reported."""
    result = analyze_density([], config)
    result.region = None
    result.image_width = width
    result.image_height = height
    result.errors.append(error)
    return result


def analyze_density_from_image(
    img: Image.Image,
    config: Optional[DensityConfig] = None,
    *,
    detector_config: Optional[TextDetectorConfig] = None,
) -> DensityAnalysisResult:
    """Run OCR on a decoded image and analyze the text density.

    OCR failures are reported through ``errors`` on the result.
    """
    config = config or DensityConfig()
    width, height = img.size

    try:
        observations = detect_text(img, detector_config)
    except TextDetectionError as exc:
        logger.exception("Text detection failed")
        return failed_result(
            config, f"text_detection_error: {exc}", width=width, height=height
        )

    logger.info("Detected %d text regions in %dx%d image", len(observations), width, height)
    result = analyze_density(observations, config)
    result.image_width = width
    result.image_height = height
    if result.region is None:
        logger.info(
            "No region reached minimum density %s (peak %s)",
            config.minimum_density,
            result.winning_density,
        )
    else:
        logger.info(
            "Densest region is section %d of %d with density %.3f",
            result.winning_index + 1,
            config.sections,
            result.winning_density,
        )
    return result


def analyze_density_from_image_bytes(
    image_bytes: bytes,
    config: Optional[DensityConfig] = None,
    *,
    detector_config: Optional[TextDetectorConfig] = None,
) -> DensityAnalysisResult:
    """Decode an image, run OCR and analyze the text density.

    Decode and OCR failures are reported through ``errors`` on the result.
    """
    config = config or DensityConfig()
    try:
        img = load_rgb_image(image_bytes)
    except ValueError as exc:
        return failed_result(config, str(exc))
    return analyze_density_from_image(img, config, detector_config=detector_config)
