"""Encode centered, palette-mapped frames into a looping transparent GIF."""

import io
import struct
import sys
from dataclasses import dataclass

from PIL import Image

from .centering import center_content
from .errors import EncodingError
from .image_utils import Raster
from .palette import Palette, build_palette, map_to_palette

DEFAULT_FPS = 8

# Restore the frame area to background before the next frame is drawn
DISPOSAL_RESTORE_BACKGROUND = 2

LOOP_FOREVER = 0


@dataclass(frozen=True)
class GifFrame:
    """One palette-indexed frame: one index byte per pixel, row-major."""

    width: int
    height: int
    indices: bytes
    delay_ms: int
    transparent_index: int
    disposal: int = DISPOSAL_RESTORE_BACKGROUND


def frame_delay_ms(fps: float) -> int:
    """Per-frame delay for a frame rate, rounded to whole milliseconds."""
    if fps <= 0:
        raise EncodingError(f"fps must be positive, got {fps}")
    return round(1000 / fps)


def _validate_frames(frames: list[GifFrame], palette: Palette, width: int, height: int) -> None:
    if not frames:
        raise EncodingError("No frames to encode")
    if width <= 0 or height <= 0:
        raise EncodingError(f"GIF dimensions must be positive, got {width}x{height}")

    for i, frame in enumerate(frames):
        if (frame.width, frame.height) != (width, height):
            raise EncodingError(
                f"Frame {i} is {frame.width}x{frame.height}, expected {width}x{height}",
                frame_index=i,
                expected=(width, height),
                actual=(frame.width, frame.height),
            )
        if len(frame.indices) != width * height:
            raise EncodingError(
                f"Frame {i} has {len(frame.indices)} indices, expected {width * height}",
                frame_index=i,
                expected=(width, height),
                actual=(frame.width, frame.height),
            )
        if frame.transparent_index != palette.transparent_index:
            raise EncodingError(
                f"Frame {i} uses transparent index {frame.transparent_index}, "
                f"palette reserves {palette.transparent_index}",
                frame_index=i,
            )
        if max(frame.indices) >= palette.size:
            raise EncodingError(
                f"Frame {i} references index {max(frame.indices)} outside the {palette.size}-entry palette",
                frame_index=i,
            )


def _color_table(palette: Palette) -> tuple[bytes, int]:
    """Global color table padded to a power of two, and its bit depth."""
    bits = max(1, (palette.size - 1).bit_length())
    flat = palette.to_flat() + [0] * (3 * ((1 << bits) - palette.size))
    return bytes(flat), bits


def _skip_sub_blocks(data: bytes, pos: int) -> int:
    while data[pos]:
        pos += data[pos] + 1
    return pos + 1


def _lzw_image_data(img: Image.Image) -> tuple[int, bytes]:
    """LZW-compress one indexed frame with Pillow's GIF writer.

    Returns:
        (interlace_flag, data) where data is the table-based image data
        (minimum code size byte, data sub-blocks, terminator) cut out of a
        single-frame GIF.
    """
    buffer = io.BytesIO()
    img.save(buffer, format="GIF", optimize=False, interlace=False)
    data = buffer.getvalue()

    pos = 13
    flags = data[10]
    if flags & 0x80:
        pos += 3 << ((flags & 0x07) + 1)
    while pos < len(data):
        block = data[pos]
        if block == 0x21:
            pos = _skip_sub_blocks(data, pos + 2)
        elif block == 0x2C:
            flags = data[pos + 9]
            pos += 10
            if flags & 0x80:
                pos += 3 << ((flags & 0x07) + 1)
            start = pos
            pos = _skip_sub_blocks(data, pos + 1)
            return flags & 0x40, data[start:pos]
        else:
            break
    raise EncodingError("GIF writer produced no image data")


def _graphic_control(frame: GifFrame) -> bytes:
    packed = (frame.disposal & 0x07) << 2 | 0x01
    delay_cs = round(frame.delay_ms / 10)
    return b"\x21\xf9\x04" + struct.pack("<BHBB", packed, delay_cs, frame.transparent_index, 0)


def encode_gif(frames: list[GifFrame], palette: Palette, width: int, height: int) -> bytes:
    """Write frames into one animated GIF that loops forever.

    Layout: GIF89a header with ``palette`` as the global color table, a
    NETSCAPE2.0 loop extension, then per frame a graphic control extension
    (delay, disposal, transparent index) and a full-canvas image. Every frame
    is checked before any bytes are produced, so a bad frame never yields a
    partial file.

    Raises:
        EncodingError: On an empty frame list, a dimension mismatch or an
                       index outside the palette.
    """
    _validate_frames(frames, palette, width, height)

    table, bits = _color_table(palette)
    flat_table = list(table)

    out = io.BytesIO()
    out.write(b"GIF89a")
    packed = 0x80 | (bits - 1) << 4 | (bits - 1)
    out.write(struct.pack("<HHBBB", width, height, packed, palette.transparent_index, 0))
    out.write(table)
    out.write(b"\x21\xff\x0bNETSCAPE2.0\x03\x01" + struct.pack("<H", LOOP_FOREVER) + b"\x00")

    for frame in frames:
        img = Image.frombytes("P", (width, height), frame.indices)
        img.putpalette(flat_table)
        interlace, data = _lzw_image_data(img)
        out.write(_graphic_control(frame))
        out.write(b"\x2c" + struct.pack("<HHHHB", 0, 0, width, height, interlace))
        out.write(data)

    out.write(b"\x3b")
    return out.getvalue()


def synthesize_gif(rasters: list[Raster], fps: float = DEFAULT_FPS) -> bytes:
    """Turn slice rasters into an animated GIF.

    Each raster is centered on its own content, then all frames are mapped to
    one shared palette and encoded in order with a delay of round(1000 / fps).

    Args:
        rasters: Frame rasters, all the same size (e.g. slices of one grid).
        fps: Frames per second.

    Returns:
        GIF file bytes.
    """
    if not rasters:
        raise EncodingError("No frames to encode")

    delay = frame_delay_ms(fps)
    width, height = rasters[0].size

    centered = [center_content(raster) for raster in rasters]
    palette = build_palette(centered)
    frames = [
        GifFrame(
            width=raster.width,
            height=raster.height,
            indices=map_to_palette(raster, palette),
            delay_ms=delay,
            transparent_index=palette.transparent_index,
        )
        for raster in centered
    ]

    print(
        f"Encoding GIF: {len(frames)} frames, {width}x{height}, "
        f"{len(palette.colors)} colors, {delay}ms/frame",
        file=sys.stderr,
    )
    return encode_gif(frames, palette, width, height)
