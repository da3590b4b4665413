import multiprocessing
import os
import sys
import time

from mandelbrot_core import (
    ConfigurationError, MandelbrotError, RenderConfig, compute_range,
    gather, output_filename, partition,
)
from pgm_writer import write_pgm

# --- CONFIGURATION ---
# Number of worker processes. The parent process only coordinates.
WORKERS_ENV = "MANDELBROT_WORKERS"
USAGE = "Usage: {prog} <N> <x_center> <y_center> <zoom> <cutoff>"


def worker_count(environ=None):
    environ = os.environ if environ is None else environ
    value = environ.get(WORKERS_ENV)
    if value is None:
        return multiprocessing.cpu_count()
    try:
        workers = int(value)
    except ValueError as exc:
        raise ConfigurationError(f"{WORKERS_ENV} must be an integer, got {value!r}") from exc
    if workers < 1:
        raise ConfigurationError(f"{WORKERS_ENV} must be at least 1, got {workers}")
    return workers


# --- THE WORKER FUNCTION ---
# Runs in a separate process and owns the buffer it returns.
def process_rows(args):
    """
    args is a tuple: (worker_index, config, start_row, row_count)
    """
    worker, config, start_row, row_count = args

    start_t = time.time()
    local_buffer = compute_range(config, start_row, row_count)
    calc_time = time.time() - start_t

    return worker, local_buffer, calc_time


def render_parallel(config, workers, report=None):
    """
    Splits the rows across `workers` processes and gathers the result.

    Blocks until every worker has returned. `report` is called with
    (done, worker, rows, seconds) as results arrive.
    """
    part = partition(config.n, workers)
    tasks = [(worker, config, rows.start, rows.count) for worker, rows in part]

    # Compile in the parent; workers started by spawn or forkserver compile again
    compute_range(config, 0, 0)

    local_buffers = {}
    with multiprocessing.Pool(processes=workers) as pool:
        results = pool.imap_unordered(process_rows, tasks)
        for done, (worker, local_buffer, duration) in enumerate(results, start=1):
            local_buffers[worker] = local_buffer
            if report is not None:
                report(done, worker, part[worker], duration)

    return gather(part, local_buffers)


def main(argv, prog="multi_numba_mandelbrot", environ=None):
    try:
        config = RenderConfig.from_args(argv)
        workers = worker_count(environ)
    except MandelbrotError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        print(USAGE.format(prog=prog), file=sys.stderr)
        return 1

    print(f"--- STARTING MULTIPROCESSING RENDER ---")
    print(f"Cores Available: {multiprocessing.cpu_count()} | Workers: {workers}")
    print(f"Task: {config.n}x{config.n} grid, cutoff {config.cutoff}, "
          f"center {config.x_center} + {config.y_center}i, zoom {config.zoom}")

    def report(done, worker, rows, duration):
        print(f"[{done}/{workers}] Worker {worker} rows [{rows.start}, {rows.stop}) "
              f"in {duration:.2f}s")

    global_start = time.time()
    try:
        grid = render_parallel(config, workers, report)
        filename = write_pgm(output_filename(config), grid, config.cutoff)
    except (MandelbrotError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    total_time = time.time() - global_start

    print("-" * 40)
    print(f"Total Batch Time: {total_time:.2f}s")
    print(f"Image saved to {filename}")
    return 0


def run():
    sys.exit(main(sys.argv[1:]))


if __name__ == "__main__":
    run()
