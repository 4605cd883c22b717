"""Cut a keyed sprite sheet into grid cells with padding and offset."""

import dataclasses
import math
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

import numpy as np
from PIL import Image

from .image_utils import MAX_TOLERANCE, Raster, encode_png

_MAX_WORKERS = 8

# auto-grid: a row/column is a divider when more than this share of it is background
_DIVIDER_RATIO = 0.9
_DIVIDER_COLOR_THRESHOLD = 30


@dataclass(frozen=True)
class GridConfig:
    """Grid layout and keying parameters for one sprite sheet.

    padding is a percentage of the cell size removed from each side;
    offset_x/offset_y shift the crop box by a percentage of the cell size.
    """

    rows: int = 4
    cols: int = 6
    padding: float = 5
    tolerance: float = 15
    offset_x: float = 0
    offset_y: float = 0

    def __post_init__(self):
        for name in ("rows", "cols"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
        if not 0 <= self.padding < 100:
            raise ValueError(f"padding must be in [0, 100), got {self.padding}")
        if not 0 <= self.tolerance <= MAX_TOLERANCE:
            raise ValueError(f"tolerance must be in [0, {MAX_TOLERANCE}], got {self.tolerance}")
        for name in ("offset_x", "offset_y"):
            value = getattr(self, name)
            if not -50 <= value <= 50:
                raise ValueError(f"{name} must be in [-50, 50], got {value}")

    def replace(self, **changes) -> "GridConfig":
        return dataclasses.replace(self, **changes)


@dataclass
class Slice:
    """One cut cell of the sheet.

    The PNG encoding is produced on first access and cached until release().
    """

    row: int
    col: int
    raster: Raster
    _png: bytes | None = field(default=None, repr=False, compare=False)

    @property
    def id(self) -> str:
        return f"sticker_{self.row}_{self.col}"

    @property
    def png(self) -> bytes:
        if self._png is None:
            self._png = encode_png(self.raster)
        return self._png

    def release(self) -> None:
        self._png = None


def cell_box(
    width: int, height: int, config: GridConfig, row: int, col: int
) -> tuple[float, float, int, int] | None:
    """Compute the crop box of one cell in source pixel space.

    Returns:
        (src_x, src_y, content_w, content_h), with the origin still fractional,
        or None if padding leaves no content area.
    """
    cell_w = width / config.cols
    cell_h = height / config.rows

    pad_x = cell_w * config.padding / 100
    pad_y = cell_h * config.padding / 100
    shift_x = cell_w * config.offset_x / 100
    shift_y = cell_h * config.offset_y / 100

    content_w = math.floor(cell_w - pad_x * 2)
    content_h = math.floor(cell_h - pad_y * 2)
    if content_w <= 0 or content_h <= 0:
        return None

    src_x = col * cell_w + pad_x + shift_x
    src_y = row * cell_h + pad_y + shift_y
    return (src_x, src_y, content_w, content_h)


def _extract_cell(
    img: Image.Image, row: int, col: int, box: tuple[float, float, int, int]
) -> Slice:
    src_x, src_y, content_w, content_h = box
    left = round(src_x)
    upper = round(src_y)
    # Regions past the sheet edge come back fully transparent
    cell = img.crop((left, upper, left + content_w, upper + content_h))
    return Slice(row=row, col=col, raster=Raster.from_image(cell))


def slice_to_grid(raster: Raster, config: GridConfig, max_workers: int = _MAX_WORKERS) -> list[Slice]:
    """Split a raster into rows x cols slices in row-major order.

    Cells whose padding leaves no content area are skipped, so the result can
    hold fewer than rows * cols slices. Cells are copied concurrently and
    reassembled in (row, col) order.

    Args:
        raster: Source sheet, usually already chroma keyed.
        config: Grid layout.
        max_workers: Thread pool size for cell extraction.

    Returns:
        List of Slice objects ordered sticker_0_0, sticker_0_1, ...
    """
    if raster.is_empty:
        return []

    cells = []
    for row in range(config.rows):
        for col in range(config.cols):
            box = cell_box(raster.width, raster.height, config, row, col)
            if box is None:
                print(
                    f"  sticker_{row}_{col}: no content area left after {config.padding}% padding, skipped",
                    file=sys.stderr,
                )
                continue
            cells.append((row, col, box))

    if not cells:
        return []

    img = raster.to_image()
    slices = []
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(cells)))) as executor:
        futures = [executor.submit(_extract_cell, img, row, col, box) for row, col, box in cells]
        for future in as_completed(futures):
            slices.append(future.result())

    slices.sort(key=lambda s: (s.row, s.col))
    return slices


def _count_segments(flags: list[bool]) -> int:
    """Count runs of content between divider bands."""
    segments = 0
    in_content = False
    for is_divider in flags:
        if not is_divider and not in_content:
            segments += 1
            in_content = True
        elif is_divider:
            in_content = False
    return segments


def detect_grid(raster: Raster) -> tuple[int, int] | None:
    """Auto-detect sheet grid dimensions by scanning for background-colored dividers.

    Algorithm:
    1. Classify background pixels: transparent pixels if the sheet has been
       keyed, otherwise pixels within a max-channel distance of the top-left color.
    2. A row (column) is a divider if more than 90% of its pixels are background.
    3. Count content segments between divider bands.

    Returns:
        (rows, cols) if a grid was found, else None.
    """
    if raster.is_empty:
        return None

    pixels = raster.to_array()
    alpha = pixels[..., 3]
    if (alpha == 0).any():
        background = alpha < 128
    else:
        key = pixels[0, 0, :3].astype(np.int16)
        diff = np.abs(pixels[..., :3].astype(np.int16) - key).max(axis=2)
        background = diff <= _DIVIDER_COLOR_THRESHOLD

    row_flags = (background.mean(axis=1) > _DIVIDER_RATIO).tolist()
    col_flags = (background.mean(axis=0) > _DIVIDER_RATIO).tolist()

    rows = _count_segments(row_flags)
    cols = _count_segments(col_flags)
    if rows == 0 or cols == 0:
        return None
    return (rows, cols)
