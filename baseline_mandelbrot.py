import sys
import time

from mandelbrot_core import (
    MandelbrotError, RenderConfig, compute_grid, output_filename,
)
from pgm_writer import write_pgm

USAGE = "Usage: {prog} <N> <x_center> <y_center> <zoom> <cutoff>"


def render_serial(config):
    """
    Single-process reference render of the whole grid.
    Returns the (N, N) array of iteration counts and the compute time.
    """
    start_time = time.time()
    grid = compute_grid(config)
    return grid, time.time() - start_time


def main(argv, prog="baseline_mandelbrot"):
    try:
        config = RenderConfig.from_args(argv)
    except MandelbrotError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        print(USAGE.format(prog=prog), file=sys.stderr)
        return 1

    print(f"Starting serial render: {config.n}x{config.n}, cutoff {config.cutoff}")
    print(f"Center: {config.x_center} + {config.y_center}i | Zoom: 2^-{config.zoom}")

    try:
        grid, duration = render_serial(config)
        filename = write_pgm(output_filename(config), grid, config.cutoff)
    except (MandelbrotError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print("-" * 40)
    print(f"Total Compute Time: {duration:.4f}s")
    print(f"Image saved to {filename}")
    return 0


def run():
    sys.exit(main(sys.argv[1:]))


if __name__ == "__main__":
    run()
