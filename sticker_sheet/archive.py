"""Package sticker slices into a single zip bundle."""

import io
import zipfile
from pathlib import Path

from .errors import EncodingError
from .grid import Slice

ARCHIVE_FOLDER = "stickers"
DEFAULT_ARCHIVE_NAME = "meme_stickers.zip"

# Fixed entry timestamp so identical slices give identical bundles
_ENTRY_DATE_TIME = (1980, 1, 1, 0, 0, 0)


def entry_name(index: int) -> str:
    """Archive path of the index-th slice (0-based), e.g. stickers/sticker_001.png."""
    return f"{ARCHIVE_FOLDER}/sticker_{index + 1:03d}.png"


def package_slices(slices: list[Slice]) -> bytes:
    """Bundle slices as PNG entries of one zip archive.

    Entries are written in (row, col) order and named sequentially, so the
    archive layout depends only on the slices themselves.

    Raises:
        EncodingError: If there are no slices to package.
    """
    if not slices:
        raise EncodingError("No slices to package")

    ordered = sorted(slices, key=lambda s: (s.row, s.col))
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for index, sticker in enumerate(ordered):
            info = zipfile.ZipInfo(entry_name(index), date_time=_ENTRY_DATE_TIME)
            info.compress_type = zipfile.ZIP_DEFLATED
            zf.writestr(info, sticker.png)
    return buffer.getvalue()


def write_archive(slices: list[Slice], output_path: str) -> Path:
    """Package slices and write the bundle to disk, creating parent directories."""
    out = Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(package_slices(slices))
    return out
