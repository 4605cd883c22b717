"""Cut AI-generated sprite sheets into sticker bundles, looping GIFs and shop crops."""

import argparse
import sys
from pathlib import Path

from .archive import DEFAULT_ARCHIVE_NAME, write_archive
from .errors import StickerSheetError
from .gif_encoder import DEFAULT_FPS, synthesize_gif
from .grid import GridConfig, Slice, detect_grid, slice_to_grid
from .image_utils import CROP_PRESETS, crop_to_preset, crop_to_size, encode_png, load_image, remove_background


def _keyed_slices(args) -> list[Slice]:
    """Load the sheet, remove its background and cut it into slices."""
    sheet = load_image(args.image_path)
    print(f"Loaded {args.image_path} ({sheet.width}x{sheet.height})", file=sys.stderr)

    keyed = remove_background(sheet, args.tolerance)

    rows, cols = args.rows, args.cols
    if args.auto_grid:
        detected = detect_grid(keyed)
        if detected is None:
            raise StickerSheetError(
                "--auto-grid could not detect a grid in the image. "
                "Try specifying --rows and --cols explicitly."
            )
        rows, cols = detected
        print(f"Auto-detected grid: {rows} rows × {cols} cols", file=sys.stderr)

    config = GridConfig(
        rows=rows,
        cols=cols,
        padding=args.padding,
        tolerance=args.tolerance,
        offset_x=args.offset_x,
        offset_y=args.offset_y,
    )
    slices = slice_to_grid(keyed, config)
    print(
        f"Cut {len(slices)} of {rows * cols} cells "
        f"(padding {config.padding}%, offset {config.offset_x}%/{config.offset_y}%, "
        f"tolerance {config.tolerance})",
        file=sys.stderr,
    )
    return slices


def make_stickers(args) -> Path:
    slices = _keyed_slices(args)
    out = write_archive(slices, args.output)
    print(f"Created sticker bundle: {out} ({len(slices)} stickers)", file=sys.stderr)
    return out


def make_gif(args) -> Path:
    slices = _keyed_slices(args)
    if not slices:
        raise StickerSheetError("No frames left after slicing; reduce --padding or adjust offsets.")
    data = synthesize_gif([s.raster for s in slices], args.fps)

    out = Path(args.output)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(data)
    print(f"Created GIF: {out} ({len(slices)} frames, {args.fps} fps, {len(data) / 1024:.1f}KB)", file=sys.stderr)
    return out


def make_crop(args) -> Path:
    source = load_image(args.image_path)
    if args.size:
        try:
            target_w, target_h = (int(v) for v in args.size.lower().split("x"))
        except ValueError:
            raise StickerSheetError(f"--size must look like 750x400, got '{args.size}'") from None
        if args.tolerance is not None:
            source = remove_background(source, args.tolerance)
        cropped = crop_to_size(source, target_w, target_h)
    else:
        cropped = crop_to_preset(source, args.preset, args.tolerance)

    out = Path(args.output)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(encode_png(cropped))
    print(f"Cropped {source.width}x{source.height} → {cropped.width}x{cropped.height}: {out}", file=sys.stderr)
    return out


def _add_grid_arguments(parser: argparse.ArgumentParser) -> None:
    defaults = GridConfig()
    parser.add_argument("image_path", help="Path to the sprite sheet image.")
    parser.add_argument("--rows", type=int, default=defaults.rows, help=f"Grid rows (default: {defaults.rows}).")
    parser.add_argument("--cols", type=int, default=defaults.cols, help=f"Grid columns (default: {defaults.cols}).")
    parser.add_argument(
        "--auto-grid",
        action="store_true",
        help="Auto-detect grid dimensions from background dividers (overrides --rows/--cols).",
    )
    parser.add_argument(
        "--padding",
        type=float,
        default=defaults.padding,
        help=f"Percent of the cell trimmed from each side, 0-100 (default: {defaults.padding}).",
    )
    parser.add_argument(
        "--tolerance",
        type=float,
        default=defaults.tolerance,
        help=f"Background removal tolerance, 0-50 (default: {defaults.tolerance}).",
    )
    parser.add_argument(
        "--offset-x", type=float, default=0.0, dest="offset_x",
        help="Shift the crop box by this percent of the cell width, -50 to 50 (default: 0).",
    )
    parser.add_argument(
        "--offset-y", type=float, default=0.0, dest="offset_y",
        help="Shift the crop box by this percent of the cell height, -50 to 50 (default: 0).",
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Remove sprite sheet backgrounds, cut them into stickers, and build looping GIFs."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- stickers subcommand ---
    stickers_parser = subparsers.add_parser("stickers", help="Cut a sheet into a zip of transparent PNG stickers.")
    _add_grid_arguments(stickers_parser)
    stickers_parser.add_argument(
        "-o", "--output", default=f"./{DEFAULT_ARCHIVE_NAME}",
        help=f"Output zip path (default: ./{DEFAULT_ARCHIVE_NAME}).",
    )

    # --- gif subcommand ---
    gif_parser = subparsers.add_parser("gif", help="Turn a sheet of animation frames into a looping GIF.")
    _add_grid_arguments(gif_parser)
    gif_parser.add_argument("--fps", type=float, default=DEFAULT_FPS, help=f"Frames per second (default: {DEFAULT_FPS}).")
    gif_parser.add_argument("-o", "--output", default="./sticker.gif", help="Output GIF path (default: ./sticker.gif).")

    # --- crop subcommand ---
    crop_parser = subparsers.add_parser("crop", help="Cover-fit crop an image to a shop asset size.")
    crop_parser.add_argument("image_path", help="Path to the source image.")
    size_group = crop_parser.add_mutually_exclusive_group(required=True)
    size_group.add_argument(
        "--preset", choices=sorted(CROP_PRESETS),
        help=", ".join(f"{name} {w}x{h}" for name, (w, h) in CROP_PRESETS.items()),
    )
    size_group.add_argument("--size", help="Explicit target size, e.g. 750x400.")
    crop_parser.add_argument(
        "--tolerance", type=float, default=None,
        help="Remove the background with this tolerance before cropping (for cover/icon assets).",
    )
    crop_parser.add_argument("-o", "--output", default="./cropped.png", help="Output PNG path (default: ./cropped.png).")

    args = parser.parse_args(argv)

    commands = {"stickers": make_stickers, "gif": make_gif, "crop": make_crop}
    try:
        out = commands[args.command](args)
    except (StickerSheetError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(str(out))
    return 0


if __name__ == "__main__":
    sys.exit(main())
