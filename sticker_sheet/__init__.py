# Sticker Sheet Helper - sprite sheet post-processing

from .archive import package_slices, write_archive
from .centering import center_content, content_bbox
from .errors import DecodeError, EncodingError, StickerSheetError
from .gif_encoder import GifFrame, encode_gif, frame_delay_ms, synthesize_gif
from .grid import GridConfig, Slice, detect_grid, slice_to_grid
from .image_utils import (
    CROP_PRESETS,
    Raster,
    crop_to_preset,
    crop_to_size,
    decode_image,
    encode_png,
    load_image,
    remove_background,
)
from .palette import Palette, build_palette, map_to_palette
from .session import EditorSession
