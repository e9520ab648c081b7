import io

from PIL import Image

from fakes import png_bytes
from perception.overlay import BoundingBox
from perception.render import draw_boxes


def test_draw_boxes():
    src = png_bytes(50, 50)
    boxes = [BoundingBox(text="Go", top=20, left=10, width=20, height=15)]

    out = draw_boxes(src, boxes)

    img = Image.open(io.BytesIO(out))
    assert img.format == "PNG"
    assert img.size == (50, 50)
    assert img.convert("RGB").getpixel((10, 25)) != (255, 255, 255)


def test_draw_boxes_without_boxes_keeps_image():
    out = draw_boxes(png_bytes(30, 20), [])
    assert Image.open(io.BytesIO(out)).size == (30, 20)
