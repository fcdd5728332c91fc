"""
Tests for the raster render engine.
"""

import asyncio
import base64
import threading
from io import BytesIO

import httpx
import pytest
from PIL import Image

from canvas_builder_backend.models import Canvas, Element, StoredImage
from canvas_builder_backend.renderer import RenderEngine, parse_color
from canvas_builder_backend.uploads import DiskUploadStore, MemoryUploadStore

RED = (255, 0, 0)
BLUE = (0, 0, 255)
GREEN = (0, 255, 0)
WHITE = (255, 255, 255)


def _render(canvas, engine=None):
    engine = engine or RenderEngine(MemoryUploadStore())
    return asyncio.run(engine.render(canvas))


def _canvas(*elements, width=100, height=100):
    return Canvas(width=width, height=height, elements=list(elements))


def _rect(x, y, width, height, color):
    return Element(type="rectangle", x=x, y=y, width=width, height=height, color=color)


class TestShapes:
    def test_surface_matches_canvas_size_with_white_background(self):
        image = _render(_canvas(width=320, height=240))
        assert image.size == (320, 240)
        assert image.mode == "RGB"
        assert image.getpixel((0, 0)) == WHITE
        assert image.getpixel((319, 239)) == WHITE

    def test_rectangle_is_filled_with_its_color(self):
        image = _render(_canvas(_rect(10, 10, 50, 50, "#ff0000")))
        assert image.getpixel((20, 20)) == RED
        assert image.getpixel((0, 0)) == WHITE
        assert image.getpixel((59, 59)) == RED
        assert image.getpixel((60, 60)) == WHITE

    def test_later_elements_paint_over_earlier_ones(self):
        image = _render(_canvas(_rect(10, 10, 40, 40, "blue"), _rect(10, 10, 40, 40, "red")))
        assert image.getpixel((30, 30)) == RED

        image = _render(_canvas(_rect(10, 10, 40, 40, "red"), _rect(10, 10, 40, 40, "blue")))
        assert image.getpixel((30, 30)) == BLUE

    def test_negative_rectangle_size_extends_up_and_left(self):
        image = _render(_canvas(_rect(50, 50, -20, -20, "#ff0000")))
        assert image.getpixel((40, 40)) == RED
        assert image.getpixel((55, 55)) == WHITE

    def test_zero_size_rectangle_draws_nothing(self):
        image = _render(_canvas(_rect(10, 10, 0, 50, "#ff0000")))
        assert image.getpixel((10, 20)) == WHITE

    def test_circle_is_centered_on_its_position(self):
        circle = Element(type="circle", x=50, y=50, radius=20, color="#0000ff")
        image = _render(_canvas(circle))
        assert image.getpixel((50, 50)) == BLUE
        assert image.getpixel((50, 35)) == BLUE
        assert image.getpixel((33, 33)) == WHITE

    def test_text_is_drawn_below_its_position(self):
        text = Element(type="text", x=5, y=20, text="WWWW", font_size=24, color="#000000")
        image = _render(_canvas(text, width=120, height=60))
        top_band = [image.getpixel((x, y)) for x in range(120) for y in range(0, 19)]
        text_band = [image.getpixel((x, y)) for x in range(120) for y in range(20, 50)]
        assert all(pixel == WHITE for pixel in top_band)
        assert any(pixel != WHITE for pixel in text_band)

    def test_translucent_colors_blend(self):
        image = _render(_canvas(_rect(0, 0, 10, 10, "#ff000080")))
        red, green, blue = image.getpixel((5, 5))
        assert red == 255
        assert 100 < green < 160
        assert 100 < blue < 160


class TestBestEffort:
    def test_unknown_types_are_skipped(self):
        baseline = _render(_canvas(_rect(10, 10, 20, 20, "red")))
        image = _render(_canvas(Element(type="triangle", x=5, y=5, width=50), _rect(10, 10, 20, 20, "red")))
        assert image.tobytes() == baseline.tobytes()

    def test_image_without_source_leaves_surface_unchanged(self):
        baseline = _render(_canvas(_rect(10, 10, 20, 20, "red")))
        image = _render(_canvas(Element(type="image", x=0, y=0, width=50, height=50), _rect(10, 10, 20, 20, "red")))
        assert image.tobytes() == baseline.tobytes()

    def test_bad_color_skips_only_that_element(self):
        image = _render(_canvas(_rect(0, 0, 10, 10, "not-a-color"), _rect(20, 20, 10, 10, "red")))
        assert image.getpixel((5, 5)) == WHITE
        assert image.getpixel((25, 25)) == RED

    def test_unreachable_url_is_skipped(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(404))
        engine = RenderEngine(MemoryUploadStore(), transport=transport)
        canvas = _canvas(
            Element(type="image", image_url="http://images.test/missing.png"),
            _rect(20, 20, 10, 10, "red"),
        )
        image = _render(canvas, engine)
        assert image.getpixel((0, 0)) == WHITE
        assert image.getpixel((25, 25)) == RED

    def test_undecodable_upload_is_skipped(self):
        uploads = MemoryUploadStore()
        stored = uploads.save(b"definitely not an image", "broken.png", "image/png")
        engine = RenderEngine(uploads)
        image = _render(_canvas(Element(type="image", file_data=stored), _rect(20, 20, 10, 10, "red")), engine)
        assert image.getpixel((0, 0)) == WHITE
        assert image.getpixel((25, 25)) == RED


class TestImages:
    def test_remote_image_drawn_at_natural_size(self, png_bytes):
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return httpx.Response(200, content=png_bytes, headers={"Content-Type": "image/png"})

        engine = RenderEngine(MemoryUploadStore(), transport=httpx.MockTransport(handler))
        image = _render(_canvas(Element(type="image", x=10, y=10, image_url="http://images.test/green.png")), engine)

        assert requested == ["http://images.test/green.png"]
        assert image.getpixel((10, 10)) == GREEN
        assert image.getpixel((13, 13)) == GREEN
        assert image.getpixel((14, 14)) == WHITE

    def test_image_is_scaled_to_requested_size(self, png_bytes):
        uploads = MemoryUploadStore()
        stored = uploads.save(png_bytes, "green.png", "image/png")
        engine = RenderEngine(uploads)
        image = _render(_canvas(Element(type="image", x=0, y=0, width=40, height=30, file_data=stored)), engine)
        assert image.getpixel((39, 29)) == GREEN
        assert image.getpixel((41, 31)) == WHITE

    def test_url_takes_priority_over_uploaded_file(self, png_bytes):
        uploads = MemoryUploadStore()
        stored = uploads.save(png_bytes, "green.png", "image/png")
        red_png = _png(RED)
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=red_png))
        engine = RenderEngine(uploads, transport=transport)

        element = Element(type="image", image_url="http://images.test/red.png", file_data=stored)
        image = _render(_canvas(element), engine)
        assert image.getpixel((1, 1)) == RED

    def test_disk_upload_reference(self, tmp_path, png_bytes):
        path = tmp_path / "green.png"
        path.write_bytes(png_bytes)
        element = Element(type="image", x=2, y=2, file_data=StoredImage(storage="disk", path=str(path)))

        engine = RenderEngine(DiskUploadStore(tmp_path / "uploads"))
        image = _render(_canvas(element), engine)
        assert image.getpixel((3, 3)) == GREEN

    def test_missing_memory_buffer_falls_back_to_legacy_path(self, tmp_path, png_bytes):
        path = tmp_path / "legacy.png"
        path.write_bytes(png_bytes)
        element = Element(
            type="image",
            file_data=StoredImage(storage="memory", id="mem_gone"),
            file_path=str(path),
        )
        image = _render(_canvas(element))
        assert image.getpixel((0, 0)) == GREEN

    def test_data_url_image(self, png_bytes):
        url = "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")
        image = _render(_canvas(Element(type="image", x=50, y=50, image_url=url)))
        assert image.getpixel((51, 51)) == GREEN


class RecordingUploadStore(MemoryUploadStore):
    """Memory store that notes which thread each read happens on."""

    def __init__(self):
        super().__init__()
        self.read_threads = []

    def read(self, stored):
        self.read_threads.append(threading.get_ident())
        return super().read(stored)


class TestEventLoop:
    def test_upload_reads_and_decoding_run_off_the_event_loop(self, png_bytes):
        uploads = RecordingUploadStore()
        stored = uploads.save(png_bytes, "green.png", "image/png")
        engine = RenderEngine(uploads)
        canvas = _canvas(_rect(0, 0, 100, 100, "red"), Element(type="image", x=0, y=0, file_data=stored))

        async def render():
            return threading.get_ident(), await engine.render(canvas)

        loop_ident, image = asyncio.run(render())
        assert image.getpixel((1, 1)) == GREEN
        assert image.getpixel((50, 50)) == RED
        assert uploads.read_threads
        assert loop_ident not in uploads.read_threads


def _png(color):
    buffer = BytesIO()
    Image.new("RGB", (4, 4), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.mark.parametrize(
    "value, expected",
    [
        ("#ff0000", (255, 0, 0, 255)),
        ("blue", (0, 0, 255, 255)),
        ("rgb(0, 255, 0)", (0, 255, 0, 255)),
        (" #000000 ", (0, 0, 0, 255)),
    ],
)
def test_parse_color(value, expected):
    assert parse_color(value) == expected


def test_parse_color_rejects_garbage():
    with pytest.raises(ValueError):
        parse_color("nope")
