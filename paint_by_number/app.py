"""Paint-by-number converter - command line entry point."""

import argparse
import sys
from dataclasses import replace
from pathlib import Path

from .config_manager import ConfigManager
from .errors import ConversionError
from .image_processing.processor import convert
from .image_processing.svg_export import palette_legend, render_svg
from .image_processing.utils import color_name
from .models import QUANTIZATION_METHODS, Color, GridType, SamplingPolicy


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Turn an image into a paint-by-number grid")
    parser.add_argument("image", help="Path to input image")
    parser.add_argument(
        "-g", "--grid", choices=[g.value for g in GridType], default=None, help="Grid layout (default: saved or square)"
    )
    parser.add_argument("-s", "--cell-size", type=float, default=None, help="Cell size in pixels (default: 20)")
    parser.add_argument("-c", "--colors", type=int, default=None, help="Maximum palette size (default: 16)")
    parser.add_argument("-d", "--dither", action="store_true", default=None, help="Enable Floyd-Steinberg dithering")
    parser.add_argument(
        "-m", "--method", choices=QUANTIZATION_METHODS, default=None, help="Quantization method (default: kmeans)"
    )
    parser.add_argument(
        "--sampling", choices=[p.value for p in SamplingPolicy], default=None, help="Cell color sampling policy"
    )
    parser.add_argument("-w", "--workers", type=int, default=None, help="Dithering threads (default: 1)")
    parser.add_argument("-o", "--output", default=None, help="Write the project JSON here")
    parser.add_argument("--svg", default=None, help="Write a printable SVG template here")
    parser.add_argument(
        "--save-defaults", action="store_true", default=False, help="Remember these settings for next time"
    )
    return parser


def main(argv=None, config_manager: ConfigManager | None = None) -> int:
    """Convert one image and write the requested outputs."""
    args = build_parser().parse_args(argv)
    config_manager = config_manager or ConfigManager()

    image_path = Path(args.image)
    if not image_path.exists():
        print(f"File not found: {image_path}", file=sys.stderr)
        return 1

    config = config_manager.load()
    overrides = {
        "grid_type": args.grid,
        "cell_size": args.cell_size,
        "palette_size": args.colors,
        "use_dithering": args.dither,
        "quantization_method": args.method,
        "sampling": args.sampling,
        "dither_workers": args.workers,
    }
    config = replace(config, **{k: v for k, v in overrides.items() if v is not None})

    try:
        result = convert(image_path.read_bytes(), config)
    except ConversionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.save_defaults:
        success, error = config_manager.save(config)
        if not success:
            print(f"Warning: Could not save config file: {error}", file=sys.stderr)

    if args.output:
        Path(args.output).write_text(result.to_json(indent=2))
        print(f"✓ Wrote project to {args.output}")
    if args.svg:
        Path(args.svg).write_text(render_svg(result))
        print(f"✓ Wrote template to {args.svg}")

    print(f"{len(result.cells)} cells, {len(result.palette)} colors ({result.data_id})")
    for label, hex_color, count in palette_legend(result):
        name = color_name(Color.from_hex(hex_color))
        print(f"  {label:>2}  {hex_color}  {name:<12}  {count} cells")
    return 0


if __name__ == "__main__":
    sys.exit(main())
