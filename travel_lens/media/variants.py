from __future__ import annotations

import hashlib
from io import BytesIO
from pathlib import Path
from typing import Optional

from PIL import Image, ImageColor, ImageDraw, ImageFont, ImageOps

from travel_lens.core.models import VariantSpec, WatermarkSpec

WATERMARK_MARGIN = 10
GRAVITIES = (
    "north_west",
    "north",
    "north_east",
    "west",
    "center",
    "east",
    "south_west",
    "south",
    "south_east",
)


def gravity_for(position_x: float, position_y: float) -> str:
    """Map an overlay position (percent of frame) onto one of nine anchors by thirds."""
    vertical = "north" if position_y < 33 else "south" if position_y > 66 else ""
    horizontal = "west" if position_x < 33 else "east" if position_x > 66 else ""
    if vertical and horizontal:
        return f"{vertical}_{horizontal}"
    return vertical or horizontal or "center"


def standard_variants(watermark: Optional[WatermarkSpec]) -> dict[str, VariantSpec]:
    """Display recipes served to clients; every one carries the active watermark."""
    return {
        "thumbnail": VariantSpec(
            name="thumbnail", width=300, height=300, crop="fill", quality=70, watermark=watermark
        ),
        "medium": VariantSpec(name="medium", width=800, crop="limit", quality=85, watermark=watermark),
        "large": VariantSpec(name="large", width=1920, crop="limit", quality=85, watermark=watermark),
        "watermarked": VariantSpec(name="watermarked", crop="none", quality=90, watermark=watermark),
    }


def variant_key(spec: VariantSpec) -> str:
    """Stable file stem for a recipe: same spec, same key."""
    digest = hashlib.sha1(spec.model_dump_json().encode("utf-8")).hexdigest()[:16]
    return f"{spec.name}-{digest}"


def _parse_color(color: str) -> tuple[int, int, int]:
    value = color.strip()
    if not value.startswith("#"):
        value = f"#{value}"
    rgb = ImageColor.getrgb(value)
    return rgb[0], rgb[1], rgb[2]


def _load_font(size: int) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
    try:
        return ImageFont.truetype("DejaVuSans.ttf", size)
    except OSError:
        return ImageFont.load_default()


def _resize(img: Image.Image, spec: VariantSpec) -> Image.Image:
    if spec.crop == "none" or (spec.width is None and spec.height is None):
        return img
    if spec.crop == "fill":
        width = spec.width or spec.height or img.width
        height = spec.height or spec.width or img.height
        return ImageOps.fit(img, (width, height))
    # "limit" only ever shrinks.
    bound = (spec.width or img.width, spec.height or img.height)
    limited = img.copy()
    limited.thumbnail(bound)
    return limited


def apply_watermark(img: Image.Image, watermark: WatermarkSpec) -> Image.Image:
    base = img.convert("RGBA")
    overlay = Image.new("RGBA", base.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    font = _load_font(watermark.font_size)
    left, top, right, bottom = draw.textbbox((0, 0), watermark.text, font=font)
    text_w, text_h = right - left, bottom - top

    gravity = gravity_for(watermark.position_x, watermark.position_y)
    if gravity.endswith("west"):
        x = WATERMARK_MARGIN
    elif gravity.endswith("east"):
        x = base.width - text_w - WATERMARK_MARGIN
    else:
        x = (base.width - text_w) // 2
    if gravity.startswith("north"):
        y = WATERMARK_MARGIN
    elif gravity.startswith("south"):
        y = base.height - text_h - WATERMARK_MARGIN
    else:
        y = (base.height - text_h) // 2

    alpha = int(round(255 * watermark.opacity))
    draw.text((x - left, y - top), watermark.text, font=font, fill=(*_parse_color(watermark.color), alpha))
    return Image.alpha_composite(base, overlay).convert("RGB")


def render_variant(source: Path | bytes, spec: VariantSpec) -> bytes:
    """Render a recipe against an original image and return JPEG bytes."""
    stream = BytesIO(source) if isinstance(source, bytes) else source
    with Image.open(stream) as img:
        img = ImageOps.exif_transpose(img).convert("RGB")
        img = _resize(img, spec)
        if spec.watermark and spec.watermark.text:
            img = apply_watermark(img, spec.watermark)
        buf = BytesIO()
        img.save(buf, format="JPEG", quality=spec.quality)
    return buf.getvalue()
