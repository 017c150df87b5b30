"""Overlay rendering of text boxes and the densest region."""

from __future__ import annotations

from typing import Iterable, Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

from .coordinates import to_display_rect
from .density_types import DensityAnalysisResult, NormalizedRect, TextObservation
from .image_io import encode_image_bytes

TEXT_BOX_COLOR = (0, 200, 0)
REGION_COLOR = (255, 0, 0)
LABEL_BACKGROUND = (0, 128, 0)
REGION_LABEL = "Densest text region"


def draw_bounding_box(
    draw: ImageDraw.ImageDraw,
    view_size: Tuple[int, int],
    rect: NormalizedRect,
    *,
    color: Tuple[int, int, int],
    label: Optional[str] = None,
    line_width: int = 2,
) -> None:
    """Stroke ``rect`` in display space and put ``label`` at its top-left."""
    x1, y1, x2, y2 = to_display_rect(view_size, rect).to_xyxy()
    x1, x2 = sorted((x1, x2))
    y1, y2 = sorted((y1, y2))
    draw.rectangle([(x1, y1), (x2, y2)], outline=color, width=line_width)
    if not label:
        return
    font = ImageFont.load_default()
    left, top, right, bottom = draw.textbbox((x1, y1), label, font=font)
    draw.rectangle([(left, top), (right, bottom)], fill=LABEL_BACKGROUND)
    draw.text((x1, y1), label, fill=(255, 255, 255), font=font)


def render_overlay(
    img: Image.Image,
    observations: Iterable[TextObservation],
    region: Optional[NormalizedRect],
    *,
    show_labels: bool = True,
) -> Image.Image:
    """Return a copy of ``img`` with observation boxes and the region drawn."""
    canvas = img.convert("RGB") if img.mode != "RGB" else img.copy()
    draw = ImageDraw.Draw(canvas)
    for observation in observations:
        draw_bounding_box(
            draw,
            canvas.size,
            observation.bounding_box,
            color=TEXT_BOX_COLOR,
            label=observation.text if show_labels else None,
        )
    if region is not None:
        draw_bounding_box(
            draw,
            canvas.size,
            region,
            color=REGION_COLOR,
            label=REGION_LABEL if show_labels else None,
        )
    return canvas


def render_overlay_bytes(
    img: Image.Image,
    result: DensityAnalysisResult,
    *,
    format: str = "png",
    show_labels: bool = True,
) -> Tuple[bytes, str]:
    """Render ``result`` over ``img`` and encode it."""
    canvas = render_overlay(
        img, result.observations, result.region, show_labels=show_labels
    )
    return encode_image_bytes(canvas, format=format)
