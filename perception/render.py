from __future__ import annotations

import io
from typing import Iterable

from PIL import Image, ImageDraw, ImageFont

from .overlay import BoundingBox


def draw_boxes(image_bytes: bytes, boxes: Iterable[BoundingBox], *, color: str = "orange") -> bytes:
    """Outline resolved boxes on a full-page PNG screenshot."""
    img = Image.open(io.BytesIO(image_bytes)).convert("RGB")
    draw = ImageDraw.Draw(img)
    try:
        font = ImageFont.load_default()
    except OSError:
        font = None
    for box in boxes:
        rect = (box.left, box.top, box.left + box.width, box.top + box.height)
        draw.rectangle(rect, outline=color, width=2)
        if box.text:
            label_pos = (box.left, max(0, box.top - 12))
            if font:
                draw.text(label_pos, box.text, fill=color, font=font)
            else:
                draw.text(label_pos, box.text, fill=color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
