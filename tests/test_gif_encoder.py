import io
import unittest

from PIL import Image

from sticker_sheet.errors import EncodingError
from sticker_sheet.gif_encoder import (
    DISPOSAL_RESTORE_BACKGROUND,
    GifFrame,
    encode_gif,
    frame_delay_ms,
    synthesize_gif,
)
from sticker_sheet.image_utils import Raster
from sticker_sheet.palette import Palette

RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)
CLEAR = (0, 0, 0, 0)


def solid(color, size=(4, 4)) -> Raster:
    return Raster.from_image(Image.new("RGBA", size, color))


def read_frames(data: bytes) -> tuple[Image.Image, list[dict]]:
    """Decode every frame to RGBA with its duration and disposal."""
    gif = Image.open(io.BytesIO(data))
    frames = []
    for i in range(gif.n_frames):
        gif.seek(i)
        frames.append({
            "image": gif.convert("RGBA"),
            "duration": gif.info.get("duration"),
            "disposal": gif.disposal_method,
        })
    return gif, frames


class TestFrameDelay(unittest.TestCase):
    def test_rounds_to_milliseconds(self):
        self.assertEqual(frame_delay_ms(2), 500)
        self.assertEqual(frame_delay_ms(8), 125)
        self.assertEqual(frame_delay_ms(24), 42)

    def test_rejects_non_positive_fps(self):
        with self.assertRaises(EncodingError):
            frame_delay_ms(0)


class TestSynthesizeGif(unittest.TestCase):
    def test_red_blue_transparent_round_trip(self):
        data = synthesize_gif([solid(RED), solid(BLUE), solid(CLEAR)], fps=2)
        self.assertTrue(data.startswith(b"GIF89a"))

        gif, frames = read_frames(data)
        self.assertEqual(len(frames), 3)
        self.assertEqual(gif.info.get("loop"), 0)
        for frame in frames:
            self.assertEqual(frame["duration"], 500)
            self.assertEqual(frame["disposal"], DISPOSAL_RESTORE_BACKGROUND)
            self.assertEqual(frame["image"].size, (4, 4))

        r, g, b, a = frames[0]["image"].getpixel((1, 1))
        self.assertGreater(r, 200)
        self.assertLess(b, 60)
        self.assertEqual(a, 255)

        r, g, b, a = frames[1]["image"].getpixel((2, 2))
        self.assertGreater(b, 200)
        self.assertLess(r, 60)
        self.assertEqual(a, 255)

        self.assertEqual(frames[2]["image"].getchannel("A").getextrema(), (0, 0))

    def test_frames_are_centered(self):
        img = Image.new("RGBA", (20, 20), CLEAR)
        img.paste(Image.new("RGBA", (4, 4), RED), (0, 0))
        _, frames = read_frames(synthesize_gif([Raster.from_image(img)], fps=10))

        alpha = frames[0]["image"].getchannel("A")
        self.assertEqual(alpha.getbbox(), (8, 8, 12, 12))

    def test_semi_transparent_pixels_become_transparent(self):
        img = Image.new("RGBA", (4, 4), RED)
        img.putpixel((0, 0), (255, 0, 0, 100))
        _, frames = read_frames(synthesize_gif([Raster.from_image(img)], fps=10))
        self.assertEqual(frames[0]["image"].getpixel((0, 0))[3], 0)
        self.assertEqual(frames[0]["image"].getpixel((1, 0))[3], 255)

    def test_size_mismatch_fails(self):
        with self.assertRaises(EncodingError) as ctx:
            synthesize_gif([solid(RED), solid(BLUE, (5, 5))])
        self.assertEqual(ctx.exception.frame_index, 1)
        self.assertEqual(ctx.exception.expected, (4, 4))
        self.assertEqual(ctx.exception.actual, (5, 5))

    def test_no_frames_fails(self):
        with self.assertRaises(EncodingError):
            synthesize_gif([])


class TestEncodeGif(unittest.TestCase):
    def setUp(self):
        self.palette = Palette(colors=((255, 0, 0), (0, 0, 255)))

    def frame(self, indices: bytes, width=4, height=4, delay=100) -> GifFrame:
        return GifFrame(
            width=width,
            height=height,
            indices=indices,
            delay_ms=delay,
            transparent_index=self.palette.transparent_index,
        )

    def test_identical_frames_are_kept(self):
        red = self.frame(bytes([0] * 16))
        _, frames = read_frames(encode_gif([red, red, red], self.palette, 4, 4))
        self.assertEqual(len(frames), 3)
        self.assertEqual([f["duration"] for f in frames], [100, 100, 100])

    def test_larger_frames_decode_row_for_row(self):
        width, height = 40, 30
        indices = bytes(0 if x < 20 else 1 for y in range(height) for x in range(width))
        stripes = bytes(1 if y % 2 else 2 for y in range(height) for x in range(width))
        data = encode_gif(
            [self.frame(indices, width, height), self.frame(stripes, width, height)],
            self.palette, width, height,
        )
        _, frames = read_frames(data)

        first = frames[0]["image"]
        self.assertEqual(first.getpixel((5, 17)), RED)
        self.assertEqual(first.getpixel((35, 29)), BLUE)

        second = frames[1]["image"]
        self.assertEqual(second.getpixel((10, 0))[3], 0)
        self.assertEqual(second.getpixel((10, 1)), BLUE)
        self.assertEqual(second.getpixel((10, 28))[3], 0)

    def test_transparent_index_in_header(self):
        data = encode_gif([self.frame(bytes([2] * 16))], self.palette, 4, 4)
        gif = Image.open(io.BytesIO(data))
        self.assertEqual(gif.info.get("transparency"), 2)
        self.assertTrue(data.endswith(b";"))

    def test_dimension_mismatch_rejected_before_writing(self):
        frames = [self.frame(bytes(16)), self.frame(bytes(25), width=5, height=5)]
        with self.assertRaises(EncodingError) as ctx:
            encode_gif(frames, self.palette, 4, 4)
        self.assertEqual(ctx.exception.frame_index, 1)

    def test_short_index_buffer_rejected(self):
        with self.assertRaises(EncodingError):
            encode_gif([self.frame(bytes(15))], self.palette, 4, 4)

    def test_index_outside_palette_rejected(self):
        with self.assertRaises(EncodingError):
            encode_gif([self.frame(bytes([3] * 16))], self.palette, 4, 4)

    def test_wrong_transparent_index_rejected(self):
        frame = GifFrame(width=4, height=4, indices=bytes(16), delay_ms=100, transparent_index=0)
        with self.assertRaises(EncodingError):
            encode_gif([frame], self.palette, 4, 4)

    def test_empty_frame_list_rejected(self):
        with self.assertRaises(EncodingError):
            encode_gif([], self.palette, 4, 4)


if __name__ == "__main__":
    unittest.main()
