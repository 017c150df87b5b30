"""Environment and request-parameter parsing for analysis settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Callable, Dict, Mapping, Optional, Tuple

from .density_types import DensityConfig, InvalidDensityConfigError

# Request/mapping key -> environment variable
_DENSITY_ENV_KEYS: Dict[str, str] = {
    "sections": "DENSITY_SECTIONS",
    "minimum_density": "DENSITY_MINIMUM",
    "window_size": "DENSITY_WINDOW_SIZE",
    "overlap": "DENSITY_OVERLAP",
    "density_method": "DENSITY_METHOD",
}

_DENSITY_PARSERS: Dict[str, Callable[[str], object]] = {
    "sections": int,
    "minimum_density": float,
    "window_size": int,
    "overlap": float,
    "density_method": lambda value: value.strip().lower(),
}

DEFAULT_OCR_LANGUAGES: Tuple[str, ...] = ("chi_tra", "chi_sim", "eng")


@dataclass(frozen=True)
class TextDetectorConfig:
    """Settings handed to the OCR engine.

    ``min_text_height`` is a fraction of the image height; lines shorter than
    that are discarded.
    """

    languages: Tuple[str, ...] = DEFAULT_OCR_LANGUAGES
    min_text_height: float = 0.02
    min_confidence: float = 0.0
    page_segmentation_mode: int = 11

    @property
    def lang(self) -> str:
        return "+".join(self.languages)

    @property
    def tesseract_config(self) -> str:
        return f"--psm {self.page_segmentation_mode}"


def density_config_from_mapping(
    values: Mapping[str, object], *, base: Optional[DensityConfig] = None
) -> DensityConfig:
    """Build a DensityConfig from string values, falling back to ``base``."""
    base = base or DensityConfig()
    overrides: Dict[str, object] = {}
    for key, parser in _DENSITY_PARSERS.items():
        raw = values.get(key)
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            continue
        if not isinstance(raw, str):
            overrides[key] = raw
            continue
        try:
            overrides[key] = parser(raw.strip())
        except ValueError as exc:
            raise InvalidDensityConfigError(f"{key}: cannot parse {raw!r}") from exc
    return replace(base, **overrides)


def load_density_config_from_env(
    environ: Optional[Mapping[str, str]] = None,
) -> DensityConfig:
    """Read DENSITY_* environment variables into a DensityConfig."""
    environ = os.environ if environ is None else environ
    values = {
        key: environ.get(env_key)
        for key, env_key in _DENSITY_ENV_KEYS.items()
        if environ.get(env_key) is not None
    }
    return density_config_from_mapping(values)


def load_text_detector_config_from_env(
    environ: Optional[Mapping[str, str]] = None,
) -> TextDetectorConfig:
    environ = os.environ if environ is None else environ
    config = TextDetectorConfig()
    languages = environ.get("OCR_LANGUAGES")
    if languages:
        parsed = tuple(lang.strip() for lang in languages.replace(",", "+").split("+"))
        config = replace(config, languages=tuple(lang for lang in parsed if lang))
    min_height = environ.get("OCR_MIN_TEXT_HEIGHT")
    if min_height:
        config = replace(config, min_text_height=float(min_height))
    min_conf = environ.get("OCR_MIN_CONFIDENCE")
    if min_conf:
        config = replace(config, min_confidence=float(min_conf))
    return config
