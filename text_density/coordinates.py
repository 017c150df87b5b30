"""Conversion from normalized detector space to display pixels."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from .density_types import NormalizedRect


@dataclass(frozen=True)
class PixelRect:
    """Rectangle in pixels, origin top-left, y pointing down."""

    x: float
    y: float
    width: float
    height: float

    def to_xyxy(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.x + self.width, self.y + self.height)


def to_display_rect(
    view_size: Tuple[float, float], rect: NormalizedRect
) -> PixelRect:
    """Map a bottom-left-origin normalized rect into ``view_size`` pixels.

    The flip uses the rect's top edge (``y + height``). Inputs are not
    validated; out-of-range values map linearly.
    """
    view_width, view_height = view_size
    return PixelRect(
        x=rect.x * view_width,
        y=(1.0 - (rect.y + rect.height)) * view_height,
        width=rect.width * view_width,
        height=rect.height * view_height,
    )
