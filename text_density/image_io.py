"""Image decoding helpers for density analysis."""

from __future__ import annotations

from io import BytesIO
from typing import Tuple, cast

from PIL import Image, ImageOps


def load_rgb_image(image_bytes: bytes) -> Image.Image:
    """Decode image bytes into an upright RGB PIL Image.

    EXIF orientation is applied so OCR boxes line up with what is displayed.
    """
    try:
        img = cast(Image.Image, Image.open(BytesIO(image_bytes)))
        img.load()
    except Exception as exc:
        raise ValueError("Invalid image bytes") from exc

    img = ImageOps.exif_transpose(img)
    if img.mode != "RGB":
        img = img.convert("RGB")
    return img


def encode_image_bytes(
    img: Image.Image, *, format: str = "png", quality: int = 90
) -> Tuple[bytes, str]:
    buf = BytesIO()
    save_kwargs = {"format": format.upper()}
    if format.lower() == "jpeg":
        save_kwargs["quality"] = quality
        save_kwargs["optimize"] = True
    img.save(buf, **save_kwargs)
    mime = f"image/{'jpeg' if format.lower() == 'jpeg' else 'png'}"
    return buf.getvalue(), mime
