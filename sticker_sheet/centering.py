"""Center frame content on its canvas.

Generated frames are not registered to each other, so each one is shifted
until the bounding box of its content sits in the middle of the canvas.
"""

import sys

from PIL import Image

from .image_utils import Raster

# Alpha at or below this is edge noise, not content
CONTENT_ALPHA_THRESHOLD = 20


def content_bbox(raster: Raster, threshold: int = CONTENT_ALPHA_THRESHOLD) -> tuple[int, int, int, int] | None:
    """Get the bounding box of pixels with alpha above ``threshold``.

    Returns:
        (left, upper, right, lower) with right/lower exclusive, or None if
        nothing is above the threshold.
    """
    if raster.is_empty:
        return None
    alpha = raster.to_image().getchannel("A")
    mask = alpha.point([255 if a > threshold else 0 for a in range(256)])
    return mask.getbbox()


def center_content(raster: Raster, threshold: int = CONTENT_ALPHA_THRESHOLD) -> Raster:
    """Translate the raster so its content bounding box is centered.

    Pixels moved past the edge are clipped; uncovered area is transparent.
    A raster with no content is returned unchanged.
    """
    bbox = content_bbox(raster, threshold)
    if bbox is None:
        if not raster.is_empty:
            print(f"  no content above alpha {threshold}, frame left uncentered", file=sys.stderr)
        return raster

    left, upper, right, lower = bbox
    dx = round(raster.width / 2 - (left + right) / 2)
    dy = round(raster.height / 2 - (upper + lower) / 2)
    if dx == 0 and dy == 0:
        return raster

    canvas = Image.new("RGBA", raster.size, (0, 0, 0, 0))
    canvas.paste(raster.to_image(), (dx, dy))
    return Raster.from_image(canvas)
