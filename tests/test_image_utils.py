import base64
import io

import pytest
from PIL import Image

import techdraw_reconstruct as rd
from app.utils.image_utils import decode_base64_image, open_rgb_image


def encode(img, fmt="PNG"):
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


class TestOpenRgbImage:
    def test_transparent_drawing_goes_on_white(self):
        img = Image.new("RGBA", (10, 10), (0, 0, 0, 0))
        img.putpixel((5, 5), (0, 0, 255, 255))

        out = open_rgb_image(encode(img))

        assert out.mode == "RGB"
        assert out.getpixel((0, 0)) == (255, 255, 255)
        assert out.getpixel((5, 5)) == (0, 0, 255)

    def test_grayscale_is_converted(self):
        out = open_rgb_image(encode(Image.new("L", (4, 4), 128)))
        assert out.mode == "RGB"
        assert out.getpixel((1, 1)) == (128, 128, 128)

    def test_undecodable(self):
        with pytest.raises(rd.SurfaceUnavailableError):
            open_rgb_image(b"\x00\x01garbage")


class TestDecodeBase64Image:
    def test_plain_and_data_url(self, drawing_png):
        encoded = base64.b64encode(drawing_png).decode("ascii")
        assert decode_base64_image(encoded) == drawing_png
        assert decode_base64_image(f"data:image/png;base64,{encoded}") == drawing_png

    def test_invalid(self):
        with pytest.raises(rd.SurfaceUnavailableError):
            decode_base64_image("%%%")
