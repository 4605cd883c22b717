import unittest

from PIL import Image

from sticker_sheet.centering import center_content, content_bbox
from sticker_sheet.image_utils import Raster


def canvas_with_square(canvas=(100, 100), origin=(5, 5), size=10) -> Raster:
    img = Image.new("RGBA", canvas, (0, 0, 0, 0))
    img.paste(Image.new("RGBA", (size, size), (30, 60, 200, 255)), origin)
    return Raster.from_image(img)


class TestContentBbox(unittest.TestCase):
    def test_tight_box(self):
        self.assertEqual(content_bbox(canvas_with_square(origin=(5, 7))), (5, 7, 15, 17))

    def test_faint_pixels_are_noise(self):
        img = canvas_with_square().to_image()
        img.putpixel((90, 90), (255, 255, 255, 20))
        img.putpixel((80, 3), (255, 255, 255, 21))
        self.assertEqual(content_bbox(Raster.from_image(img)), (5, 3, 81, 15))

    def test_no_content(self):
        self.assertIsNone(content_bbox(Raster.from_image(Image.new("RGBA", (8, 8)))))


class TestCenterContent(unittest.TestCase):
    def test_off_center_square_moves_to_middle(self):
        centered = center_content(canvas_with_square(origin=(5, 5)))
        self.assertEqual(centered.size, (100, 100))

        left, upper, right, lower = content_bbox(centered)
        self.assertEqual((right - left, lower - upper), (10, 10))
        self.assertAlmostEqual((left + right) / 2, 50, delta=1)
        self.assertAlmostEqual((upper + lower) / 2, 50, delta=1)

    def test_pixels_keep_their_color(self):
        centered = center_content(canvas_with_square(origin=(70, 2)))
        left, upper, _, _ = content_bbox(centered)
        self.assertEqual(centered.pixel(left, upper), (30, 60, 200, 255))
        self.assertEqual(centered.pixel(0, 0), (0, 0, 0, 0))

    def test_content_spanning_canvas_is_unchanged(self):
        img = Image.new("RGBA", (20, 10), (0, 0, 0, 0))
        img.paste(Image.new("RGBA", (14, 10), (255, 0, 0, 255)), (6, 0))
        img.putpixel((0, 5), (0, 255, 0, 255))
        centered = center_content(Raster.from_image(img))
        # box (0, 0, 20, 10) is already centered
        self.assertEqual(centered, Raster.from_image(img))

    def test_fully_transparent_passes_through(self):
        empty = Raster.from_image(Image.new("RGBA", (16, 16)))
        self.assertIs(center_content(empty), empty)

    def test_already_centered_is_unchanged(self):
        raster = canvas_with_square(origin=(45, 45))
        self.assertIs(center_content(raster), raster)


if __name__ == "__main__":
    unittest.main()
