"""Shared GIF palette: median-cut quantization over sampled frame pixels.

The palette holds at most 255 real colors. One more slot is appended after
them and used only as the transparent index, so a GIF built from it can mark
transparency without giving up a color.
"""

import math
import sys
from dataclasses import dataclass

import numpy as np
from PIL import Image

from .image_utils import Raster

# Alpha >= cutoff counts as opaque for both sampling and mapping
OPAQUE_ALPHA_CUTOFF = 128
MAX_PALETTE_SAMPLES = 40_000
MAX_PALETTE_COLORS = 255
PLACEHOLDER_COLOR = (0, 0, 0)

_MAP_CHUNK = 4096


@dataclass(frozen=True)
class Palette:
    """Real colors followed by one reserved transparent slot."""

    colors: tuple[tuple[int, int, int], ...]

    def __post_init__(self):
        if not 1 <= len(self.colors) <= MAX_PALETTE_COLORS:
            raise ValueError(f"Palette needs 1-{MAX_PALETTE_COLORS} colors, got {len(self.colors)}")

    @property
    def transparent_index(self) -> int:
        return len(self.colors)

    @property
    def size(self) -> int:
        return len(self.colors) + 1

    def to_flat(self) -> list[int]:
        """Flat [r, g, b, r, g, b, ...] list including the transparent slot."""
        flat = []
        for color in self.colors + (PLACEHOLDER_COLOR,):
            flat.extend(color)
        return flat


def sample_opaque_pixels(
    frames: list[Raster],
    max_samples: int = MAX_PALETTE_SAMPLES,
    cutoff: int = OPAQUE_ALPHA_CUTOFF,
) -> np.ndarray:
    """Sample every Nth pixel across all frames, keeping opaque ones.

    The stride runs over the concatenated pixels of all frames and is chosen so
    that at most ``max_samples`` pixels are visited.

    Returns:
        (n, 3) uint8 array of RGB samples.
    """
    total = sum(frame.width * frame.height for frame in frames)
    if total == 0:
        return np.empty((0, 3), dtype=np.uint8)

    stride = max(1, math.ceil(total / max_samples))
    chunks = []
    offset = 0
    for frame in frames:
        flat = frame.to_array().reshape(-1, 4)
        picked = flat[(-offset) % stride::stride]
        offset += len(flat)
        chunks.append(picked[picked[:, 3] >= cutoff, :3])
    return np.concatenate(chunks)


def build_palette(frames: list[Raster], max_colors: int = MAX_PALETTE_COLORS) -> Palette:
    """Build one palette shared by all frames.

    Falls back to a single-color palette when no frame has opaque pixels.
    """
    if not 1 <= max_colors <= MAX_PALETTE_COLORS:
        raise ValueError(f"max_colors must be in [1, {MAX_PALETTE_COLORS}], got {max_colors}")

    samples = sample_opaque_pixels(frames)
    if len(samples) == 0:
        print("Warning: no opaque pixels in any frame, using a single-color palette", file=sys.stderr)
        return Palette(colors=(PLACEHOLDER_COLOR,))

    sample_img = Image.fromarray(np.ascontiguousarray(samples.reshape(1, -1, 3), dtype=np.uint8))
    quantized = sample_img.quantize(colors=max_colors, method=Image.Quantize.MEDIANCUT)
    flat = quantized.getpalette()
    used = sorted(index for _, index in quantized.getcolors(256))

    colors = [tuple(flat[i * 3:i * 3 + 3]) for i in used]
    return Palette(colors=tuple(dict.fromkeys(colors)))


def map_to_palette(raster: Raster, palette: Palette, cutoff: int = OPAQUE_ALPHA_CUTOFF) -> bytes:
    """Map each pixel to a palette index.

    Pixels with alpha below ``cutoff`` get the transparent index directly;
    the rest get the nearest real color by squared RGB distance.

    Returns:
        One index byte per pixel, row-major.
    """
    pixels = raster.to_array().reshape(-1, 4)
    indices = np.full(len(pixels), palette.transparent_index, dtype=np.uint8)

    opaque = np.flatnonzero(pixels[:, 3] >= cutoff)
    table = np.asarray(palette.colors, dtype=np.int32)
    rgb = pixels[opaque, :3].astype(np.int32)

    # Chunked to bound the (n, colors, 3) distance array
    for start in range(0, len(rgb), _MAP_CHUNK):
        chunk = rgb[start:start + _MAP_CHUNK]
        dists = np.sum((chunk[:, None, :] - table[None, :, :]) ** 2, axis=2)
        indices[opaque[start:start + _MAP_CHUNK]] = np.argmin(dists, axis=1)

    return indices.tobytes()
