"""Tesseract-backed text detection producing normalized observations."""

from __future__ import annotations

import logging
import unicodedata
from typing import Dict, List, Optional, Tuple

from PIL import Image

from .density_types import NormalizedRect, TextObservation
from .settings import TextDetectorConfig

try:
    import pytesseract
except ImportError:
    pytesseract = None  # type: ignore

logger = logging.getLogger(__name__)

# Tesseract's image_to_data level for individual words
_WORD_LEVEL = 5

LineKey = Tuple[int, int, int, int]


class TextDetectionError(RuntimeError):
    """Raised when the OCR engine is unavailable or fails."""


def pixel_box_to_normalized(
    left: float, top: float, width: float, height: float, image_size: Tuple[int, int]
) -> NormalizedRect:
    """Convert a top-left-origin pixel box to a bottom-left-origin normalized rect."""
    img_width, img_height = image_size
    return NormalizedRect(
        x=left / img_width,
        y=1.0 - (top + height) / img_height,
        width=width / img_width,
        height=height / img_height,
    )


def _is_wide(char: str) -> bool:
    return unicodedata.east_asian_width(char) in ("W", "F")


def join_words(words: List[str]) -> str:
    """Join OCR words into a line; CJK neighbours are joined without a space."""
    text = ""
    for word in words:
        if text and not (_is_wide(text[-1]) and _is_wide(word[0])):
            text += " "
        text += word
    return text


def _group_words_into_lines(data: Dict[str, list], min_confidence: float):
    lines: Dict[LineKey, dict] = {}
    for i, word in enumerate(data.get("text", [])):
        if int(data["level"][i]) != _WORD_LEVEL:
            continue
        word = (word or "").strip()
        if not word:
            continue
        if float(data["conf"][i]) < min_confidence:
            continue
        key = (
            int(data["page_num"][i]),
            int(data["block_num"][i]),
            int(data["par_num"][i]),
            int(data["line_num"][i]),
        )
        x1 = int(data["left"][i])
        y1 = int(data["top"][i])
        x2 = x1 + int(data["width"][i])
        y2 = y1 + int(data["height"][i])
        line = lines.get(key)
        if line is None:
            lines[key] = {"words": [word], "box": [x1, y1, x2, y2]}
            continue
        line["words"].append(word)
        box = line["box"]
        box[0], box[1] = min(box[0], x1), min(box[1], y1)
        box[2], box[3] = max(box[2], x2), max(box[3], y2)
    return [lines[key] for key in sorted(lines)]


def detect_text(
    img: Image.Image, config: Optional[TextDetectorConfig] = None
) -> List[TextObservation]:
    """Run OCR on ``img`` and return one observation per recognized line."""
    config = config or TextDetectorConfig()
    if pytesseract is None:
        raise TextDetectionError("pytesseract is not installed")

    try:
        data = pytesseract.image_to_data(
            img,
            lang=config.lang,
            config=config.tesseract_config,
            output_type=pytesseract.Output.DICT,
        )
    except (pytesseract.TesseractNotFoundError, pytesseract.TesseractError) as exc:
        raise TextDetectionError(str(exc)) from exc

    observations: List[TextObservation] = []
    for line in _group_words_into_lines(data, config.min_confidence):
        x1, y1, x2, y2 = line["box"]
        rect = pixel_box_to_normalized(x1, y1, x2 - x1, y2 - y1, img.size)
        if rect.height < config.min_text_height:
            continue
        text = join_words(line["words"])
        logger.debug("Recognized text %r at %s", text, rect.as_tuple())
        observations.append(TextObservation(text=text, bounding_box=rect))

    if not observations:
        logger.warning("No text detected")
    return observations
