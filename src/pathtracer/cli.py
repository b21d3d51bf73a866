"""Command line entry point: render a YAML scene to a PNG file.

Usage:
    pathtracer-render SCENE [options]

Options:
    --width WIDTH         Image width in pixels (default: from scene, else 800)
    --height HEIGHT       Image height in pixels (default: from scene, else 600)
    --samples SAMPLES     Samples per pixel (default: from scene, else 500)
    --batch-size SIZE     Samples per progress update (default: all at once)
    --seed SEED           Random seed (default: from scene, else 0)
    --max-bounces N       Maximum path length (default: from scene, else 10)
    --output OUTPUT       Output file path (default: render.png)
    --arch {cpu,gpu}      Taichi backend (default: cpu)
    --quiet               Only log warnings and errors
    --verbose             Log debug output

Example:
    pathtracer-render scenes/example.yaml --width 400 --height 300 --samples 64
"""

import argparse
import dataclasses
import logging
import sys
import time
from collections.abc import Sequence
from pathlib import Path

import taichi as ti

from pathtracer.core.renderer import Renderer
from pathtracer.preview.export import save_png
from pathtracer.scene.loader import load_scene

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="pathtracer-render",
        description="Render a YAML scene description with the Monte Carlo path tracer.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("scene", type=Path, help="Path to the scene .yaml file")
    parser.add_argument("--width", type=int, help="Image width in pixels")
    parser.add_argument("--height", type=int, help="Image height in pixels")
    parser.add_argument("--samples", type=int, help="Number of samples per pixel")
    parser.add_argument(
        "--batch-size",
        type=int,
        help="Samples per progress update (default: all samples in one batch)",
    )
    parser.add_argument("--seed", type=int, help="Seed for the random streams")
    parser.add_argument("--max-bounces", type=int, help="Maximum number of bounces per path")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("render.png"),
        help="Output file path (default: render.png)",
    )
    parser.add_argument(
        "--arch",
        choices=("cpu", "gpu"),
        default="cpu",
        help="Taichi backend (default: cpu)",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--quiet", action="store_true", help="Only log warnings and errors")
    verbosity.add_argument("--verbose", action="store_true", help="Log debug output")
    return parser.parse_args(argv)


def configure_logging(args: argparse.Namespace) -> None:
    """Set the root log level from --quiet / --verbose."""
    level = logging.INFO
    if args.quiet:
        level = logging.WARNING
    elif args.verbose:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def render_scene(args: argparse.Namespace) -> Path:
    """Load, render and save the scene named by the parsed arguments.

    Taichi must already be initialized.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Path to the saved image file.

    Raises:
        ValueError: If the scene file or an option is invalid.
        OSError: If the scene cannot be read or the image cannot be written.
    """
    loaded = load_scene(args.scene)

    overrides = {
        "width": args.width,
        "height": args.height,
        "samples": args.samples,
        "batch_size": args.batch_size,
        "seed": args.seed,
        "max_bounces": args.max_bounces,
    }
    settings = dataclasses.replace(
        loaded.settings, **{k: v for k, v in overrides.items() if v is not None}
    )

    renderer = Renderer(loaded.scene, loaded.camera, settings)
    logger.info(
        "Rendering %dx%d, %d samples per pixel, seed %d",
        settings.width,
        settings.height,
        settings.samples,
        settings.seed,
    )

    start_time = time.perf_counter()

    def progress_callback(current: int, target: int) -> None:
        elapsed = time.perf_counter() - start_time
        samples_per_sec = current / elapsed if elapsed > 0 else 0.0
        logger.info(
            "Progress: %d/%d samples (%.1f%%) - %.1f spp/s",
            current,
            target,
            100.0 * current / target,
            samples_per_sec,
        )

    image = renderer.render(callback=progress_callback)

    output_file = Path(args.output)
    save_png(image, output_file)
    logger.info("Saved to %s", output_file.absolute())
    return output_file


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    configure_logging(args)

    ti.init(arch=ti.gpu if args.arch == "gpu" else ti.cpu)

    try:
        render_scene(args)
        return 0
    except (ValueError, OSError) as e:
        logger.error("Error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
