"""
Tests for the erase pass: border sampling, brightness filter and fill geometry.
"""

import numpy as np
import pytest

import techdraw_reconstruct as rd


def pixel(surface, x, y):
    return tuple(int(v) for v in surface.image.getpixel((x, y)))


class TestPaddedRect:
    def test_floor_and_clamp(self):
        assert rd.padded_rect(rd.PixelRegion(40.7, 20.2, 10.5, 5.5), 1) == (39, 19, 12, 7)

    def test_clamped_at_origin(self):
        assert rd.padded_rect(rd.PixelRegion(0, 0, 10, 10), 2) == (0, 0, 14, 14)


class TestBorderSampling:
    """Background colour comes from light pixels just outside the padded box."""

    def test_uniform_border_colour(self, make_surface):
        surface = make_surface(100, 100, (200, 210, 220))
        surface.image.paste((0, 0, 0), (45, 42, 50, 47))

        fill = rd.erase_region(surface, rd.PixelRegion(40, 40, 20, 10), padding=1)

        assert isinstance(fill, rd.BorderFill)
        assert fill.color == (200, 210, 220)
        # 22x3 top + 22x3 bottom + 3x12 left + 3x12 right
        assert fill.samples == 204
        assert pixel(surface, 47, 44) == (200, 210, 220)

    def test_dark_pixels_are_excluded(self, make_surface):
        surface = make_surface(100, 100, (240, 240, 240))
        # a ruling line running through the top strip
        surface.image.paste((0, 0, 0), (0, 37, 100, 38))

        fill = rd.erase_region(surface, rd.PixelRegion(40, 40, 20, 10), padding=1)

        assert fill.color == (240, 240, 240)
        assert fill.samples == 204 - 22

    def test_mean_of_two_tones_rounds_half_up(self, make_surface):
        surface = make_surface(100, 100, (200, 200, 200))
        surface.image.paste((250, 250, 250), (0, 50, 100, 100))

        fill = rd.erase_region(surface, rd.PixelRegion(40, 45, 20, 8), padding=1)

        # 102 samples at 200 and 90 at 250 -> 223.4375
        assert fill.samples == 192
        assert fill.color == (223, 223, 223)

    def test_brightness_is_unweighted_channel_mean(self, make_surface):
        # luminance-weighted this would be dark; the plain mean is 121.67
        surface = make_surface(100, 100, (255, 0, 110))
        fill = rd.erase_region(surface, rd.PixelRegion(40, 40, 20, 10), padding=1)
        assert isinstance(fill, rd.BorderFill)
        assert fill.color == (255, 0, 110)

    def test_threshold_is_exclusive(self, make_surface):
        at_threshold = make_surface(100, 100, (120, 120, 120))
        above = make_surface(100, 100, (121, 121, 121))

        assert isinstance(rd.erase_region(at_threshold, rd.PixelRegion(40, 40, 20, 10), 1), rd.WhiteFallback)
        assert rd.erase_region(above, rd.PixelRegion(40, 40, 20, 10), 1).color == (121, 121, 121)

    def test_custom_threshold_and_thickness(self, make_surface):
        surface = make_surface(100, 100, (100, 100, 100))
        config = rd.ReconstructionConfig(brightness_threshold=50, sample_thickness=1)

        fill = rd.erase_region(surface, rd.PixelRegion(40, 40, 20, 10), padding=1, config=config)

        assert fill.color == (100, 100, 100)
        assert fill.samples == 22 + 22 + 12 + 12


class TestWhiteFallback:
    def test_dark_surroundings(self, make_surface):
        surface = make_surface(100, 100, (10, 10, 10))

        fill = rd.erase_region(surface, rd.PixelRegion(40, 40, 20, 10), padding=1)

        assert fill == rd.WhiteFallback()
        assert fill.color == (255, 255, 255)
        assert pixel(surface, 50, 45) == (255, 255, 255)
        assert pixel(surface, 10, 10) == (10, 10, 10)

    def test_full_width_band_at_top_edge(self, make_surface):
        surface = make_surface(1000, 200, (128, 128, 128))
        region = rd.denormalize_box([0, 0, 100, 1000], surface.width, surface.height)

        fill = rd.erase_region(surface, region, padding=1)

        # every strip leaves the surface, so nothing is sampled
        assert isinstance(fill, rd.WhiteFallback)
        assert pixel(surface, 500, 10) == (255, 255, 255)
        assert pixel(surface, 999, 21) == (255, 255, 255)
        assert pixel(surface, 500, 22) == (128, 128, 128)


class TestStripsOutsideSurface:
    def test_partial_strip_is_skipped_not_clamped(self, make_surface):
        surface = make_surface(100, 100, (230, 230, 230))

        fill = rd.erase_region(surface, rd.PixelRegion(40, 1, 20, 10), padding=1)

        # top strip would start at y=-3 and is dropped whole
        assert fill.samples == 204 - 66

    def test_fill_writes_only_in_bounds(self, make_surface):
        surface = make_surface(50, 50, (230, 230, 230))
        surface.image.paste((0, 0, 0), (40, 40, 50, 50))

        fill = rd.erase_region(surface, rd.PixelRegion(40, 40, 20, 20), padding=1)

        arr = np.asarray(surface.image)
        assert arr.shape == (50, 50, 3)
        assert tuple(arr[49, 49]) == tuple(fill.color)
        assert tuple(arr[10, 10]) == (230, 230, 230)

    def test_region_entirely_outside_is_a_no_op(self, make_surface):
        surface = make_surface(50, 50, (230, 230, 230))
        before = np.asarray(surface.image).copy()

        fill = rd.erase_region(surface, rd.PixelRegion(80, 80, 10, 10), padding=1)

        assert isinstance(fill, rd.WhiteFallback)
        assert np.array_equal(before, np.asarray(surface.image))


@pytest.mark.parametrize("value, expected", [(2.5, 3), (3.5, 4), (223.4375, 223), (0.49, 0)])
def test_round_half_up(value, expected):
    assert rd.round_half_up(value) == expected
