"""
Shared fixtures for the drawing reconstruction test suite.

Provides:
- synthetic drawings built with Pillow (flat paper colour plus dark "ink" blocks)
- a deterministic text measurer so layout checks don't depend on installed fonts
- a recording surface that logs every fill and text draw in call order
"""

import base64
import io
from typing import List, Tuple

import pytest
from PIL import Image

import techdraw_reconstruct as rd


def fake_measure(text: str, size: int) -> float:
    """Every glyph is 0.6em wide."""
    return len(text) * size * 0.6


class RecordingSurface(rd.Surface):
    """Surface that measures with fake_measure and records fills and draws."""

    def __init__(self, image: Image.Image, fonts: rd.FontManager) -> None:
        super().__init__(image, fonts)
        self.events: List[Tuple] = []

    def fill_rect(self, x, y, w, h, color):
        self.events.append(("fill", (x, y, w, h), tuple(color)))
        super().fill_rect(x, y, w, h, color)

    def measure_text(self, text: str, size: int) -> float:
        return fake_measure(text, size)

    def draw_text(self, text, xy, size, anchor="mm", fill=rd.DEFAULT_TEXT_COLOR):
        self.events.append(("text", text, xy, size, anchor, tuple(fill)))
        super().draw_text(text, xy, size, anchor=anchor, fill=fill)

    @property
    def draws(self) -> List[Tuple]:
        return [e for e in self.events if e[0] == "text"]


@pytest.fixture(scope="session")
def fonts() -> rd.FontManager:
    """Font manager without system fonts: always Pillow's bundled font."""
    return rd.FontManager([], [])


@pytest.fixture
def make_image():
    def _make(width: int = 100, height: int = 100, color=(255, 255, 255)) -> Image.Image:
        return Image.new("RGB", (width, height), tuple(color))
    return _make


@pytest.fixture
def make_surface(make_image, fonts):
    def _make(width: int = 100, height: int = 100, color=(255, 255, 255)) -> RecordingSurface:
        return RecordingSurface(make_image(width, height, color), fonts)
    return _make


@pytest.fixture
def drawing_png() -> bytes:
    """A 400x200 light drawing with a dark label block at (100..300, 80..120)."""
    img = Image.new("RGB", (400, 200), (245, 245, 240))
    img.paste((20, 20, 20), (120, 90, 280, 110))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def drawing_base64(drawing_png) -> str:
    return base64.b64encode(drawing_png).decode("ascii")


@pytest.fixture
def label_annotation() -> dict:
    """Covers the dark label block of drawing_png."""
    return {
        "originalText": "技术要求",
        "translatedText": "Technical requirements",
        "box_2d": [400, 250, 600, 750],
        "category": "TEXT",
    }
