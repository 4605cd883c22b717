"""Shared image utilities: RGBA rasters, chroma key removal and cover-fit crops."""

import io
from dataclasses import dataclass

import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import DecodeError, EncodingError

# Tolerance slider range is 0-50; max RGB distance is ~441.
# 3.5 maps the full slider onto a 0-175 distance threshold.
TOLERANCE_SCALE = 3.5
MAX_TOLERANCE = 50

# Sticker shop asset sizes (width, height)
CROP_PRESETS = {
    "banner": (750, 400),
    "guide": (750, 560),
    "thankyou": (750, 750),
    "cover": (230, 230),
    "icon": (50, 50),
}


@dataclass(frozen=True)
class Raster:
    """Row-major RGBA pixel buffer with the origin at the top-left corner.

    ``data`` always holds exactly ``width * height * 4`` bytes. Rasters are
    never modified in place; every operation returns a new one.
    """

    width: int
    height: int
    data: bytes

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Raster dimensions must be non-negative, got {self.width}x{self.height}")
        expected = self.width * self.height * 4
        if len(self.data) != expected:
            raise ValueError(
                f"Raster buffer holds {len(self.data)} bytes, "
                f"expected {expected} for {self.width}x{self.height}"
            )

    @classmethod
    def empty(cls) -> "Raster":
        return cls(0, 0, b"")

    @classmethod
    def from_image(cls, img: Image.Image) -> "Raster":
        rgba = img.convert("RGBA")
        return cls(rgba.width, rgba.height, rgba.tobytes())

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "Raster":
        """Build a raster from an (height, width, 4) uint8 array."""
        if arr.ndim != 3 or arr.shape[2] != 4:
            raise ValueError(f"Expected an (h, w, 4) array, got shape {arr.shape}")
        height, width = arr.shape[:2]
        return cls(width, height, np.ascontiguousarray(arr, dtype=np.uint8).tobytes())

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def to_image(self) -> Image.Image:
        return Image.frombytes("RGBA", self.size, self.data)

    def to_array(self) -> np.ndarray:
        """Read-only (height, width, 4) view of the pixel data."""
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, 4)

    def pixel(self, x: int, y: int) -> tuple[int, int, int, int]:
        offset = (y * self.width + x) * 4
        return tuple(self.data[offset:offset + 4])


def decode_image(data: bytes) -> Raster:
    """Decode encoded image bytes (PNG, JPEG, WebP, ...) into an RGBA raster.

    Raises:
        DecodeError: If the bytes are not a readable image or decode to 0x0.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            raster = Raster.from_image(img)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise DecodeError(f"Could not decode image ({len(data)} bytes): {e}") from e

    if raster.is_empty:
        raise DecodeError(f"Decoded image has no pixels ({raster.width}x{raster.height})")
    return raster


def load_image(path: str) -> Raster:
    """Read and decode an image file."""
    with open(path, "rb") as f:
        return decode_image(f.read())


def encode_png(raster: Raster) -> bytes:
    """Encode a raster as PNG bytes."""
    if raster.is_empty:
        raise EncodingError(f"Cannot encode an empty raster ({raster.width}x{raster.height}) as PNG")
    buffer = io.BytesIO()
    raster.to_image().save(buffer, "PNG")
    return buffer.getvalue()


def tolerance_to_threshold(tolerance: float) -> float:
    """Map the user-facing tolerance (0-50) to a Euclidean RGB distance."""
    return tolerance * TOLERANCE_SCALE


def remove_background(raster: Raster, tolerance: float, clear_color: bool = True) -> Raster:
    """Remove the chroma key background sampled from the top-left pixel.

    Every pixel whose Euclidean RGB distance from the key color is below
    ``tolerance * TOLERANCE_SCALE`` becomes transparent. If the top-left pixel
    is already fully transparent the background has been removed before and
    the raster is returned unchanged.

    Args:
        raster: Source raster.
        tolerance: Tolerance value in [0, MAX_TOLERANCE].
        clear_color: Zero R/G/B as well as alpha on removed pixels so the key
                     color cannot fringe when composited over something else.

    Returns:
        New raster with the same dimensions.
    """
    if raster.is_empty:
        return Raster.empty()

    pixels = raster.to_array().copy()
    if pixels[0, 0, 3] == 0:
        return raster

    key = pixels[0, 0, :3].astype(np.int32)
    rgb = pixels[..., :3].astype(np.int32)
    dist = np.sqrt(np.sum((rgb - key) ** 2, axis=2))
    mask = dist < tolerance_to_threshold(tolerance)

    if clear_color:
        pixels[mask] = 0
    else:
        pixels[mask, 3] = 0
    return Raster.from_array(pixels)


def cover_fit_geometry(
    src_w: int, src_h: int, target_w: int, target_h: int
) -> tuple[float, float, float, float, float]:
    """Compute a cover-fit placement of a source box inside a target box.

    Returns:
        (scale, draw_w, draw_h, x, y) where the scaled source is drawn at
        (x, y) with size draw_w x draw_h. x or y is negative on the overflowing axis.
    """
    scale = max(target_w / src_w, target_h / src_h)
    draw_w = src_w * scale
    draw_h = src_h * scale
    return (scale, draw_w, draw_h, (target_w - draw_w) / 2, (target_h - draw_h) / 2)


def crop_to_size(raster: Raster, target_w: int, target_h: int) -> Raster:
    """Scale to cover the target box, preserving aspect ratio, and center-crop the overflow."""
    if target_w <= 0 or target_h <= 0:
        raise ValueError(f"Target size must be positive, got {target_w}x{target_h}")

    canvas = Image.new("RGBA", (target_w, target_h), (0, 0, 0, 0))
    if raster.is_empty:
        return Raster.from_image(canvas)

    _, draw_w, draw_h, x, y = cover_fit_geometry(raster.width, raster.height, target_w, target_h)
    scaled = raster.to_image().resize(
        (max(1, round(draw_w)), max(1, round(draw_h))), Image.LANCZOS
    )
    canvas.paste(scaled, (round(x), round(y)))
    return Raster.from_image(canvas)


def crop_to_preset(raster: Raster, preset: str, tolerance: float | None = None) -> Raster:
    """Crop to one of CROP_PRESETS, optionally keying out the background first.

    Cover and icon assets need a transparent background, so pass ``tolerance``
    for those when the source still has its chroma key color.
    """
    if preset not in CROP_PRESETS:
        raise ValueError(f"Unknown crop preset '{preset}'. Valid presets: {', '.join(sorted(CROP_PRESETS))}")
    if tolerance is not None:
        raster = remove_background(raster, tolerance)
    return crop_to_size(raster, *CROP_PRESETS[preset])
