"""Shared pieces for the serial and multi-process Mandelbrot renderers.

Rows of the N x N grid are split into contiguous blocks, one per worker,
computed independently and then gathered back into one array on the
coordinator.
"""
from collections import namedtuple
from dataclasses import dataclass
from types import MappingProxyType

import numpy as np
from numba import jit

# --- CONFIGURATION ---
OUTPUT_PREFIX = "mandel"
GRID_DTYPE = np.int32


# --- ERRORS ---
class MandelbrotError(Exception):
    """Base class for every fatal error of a render run."""


class ConfigurationError(MandelbrotError, ValueError):
    """Bad arguments, or a worker count that cannot be used."""


class ResourceError(MandelbrotError, MemoryError):
    """A grid buffer could not be allocated."""


class InvariantViolation(MandelbrotError, AssertionError):
    """A worker buffer does not match the slot the partition gave it."""


# --- RUN PARAMETERS ---
@dataclass(frozen=True)
class RenderConfig:
    n: int
    x_center: float
    y_center: float
    zoom: float
    cutoff: int

    def __post_init__(self):
        if self.n < 1:
            raise ConfigurationError(f"grid size must be positive, got {self.n}")
        if self.cutoff < 0:
            raise ConfigurationError(f"cutoff must be non-negative, got {self.cutoff}")

    @classmethod
    def from_args(cls, args):
        """Build a config from the five positional CLI strings."""
        if len(args) != 5:
            raise ConfigurationError(f"expected 5 arguments, got {len(args)}")
        n, x_c, y_c, zoom, cutoff = args
        try:
            values = int(n), float(x_c), float(y_c), float(zoom), int(cutoff)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        return cls(*values)

    @property
    def dist_between_points(self):
        return 2.0 ** -self.zoom

    @property
    def x_min(self):
        return self.x_center - (self.dist_between_points * self.n) / 2.0

    @property
    def y_max(self):
        return self.y_center + (self.dist_between_points * self.n) / 2.0


def output_filename(config, variant=None):
    name = (f"{OUTPUT_PREFIX}_{config.n}_{config.x_center:.3f}_{config.y_center:.3f}"
            f"_{config.zoom:.3f}_{config.cutoff}")
    if variant:
        name += f"_{variant}"
    return name + ".pgm"


def sample_point(config, x, y):
    """Complex-plane coordinate of grid cell (x, y). Row 0 is the top (y_max)."""
    dist = config.dist_between_points
    return x * dist + config.x_min, config.y_max - y * dist


# --- 1. THE KERNEL (COMPILED) ---
# No fastmath: serial and parallel runs must agree bit for bit.
# Non-finite inputs are not checked; NaN never escapes and returns cutoff.
@jit(nopython=True)
def escape(x_p, y_p, cutoff):
    c = complex(x_p, y_p)
    z = 0j
    for n in range(cutoff):
        if abs(z) > 2:
            return n
        z = z*z + c
    return cutoff


@jit(nopython=True)
def _fill_rows(n, x_min, y_max, dist, cutoff, start_row, out):
    for local_y in range(out.shape[0]):
        y_p = y_max - (start_row + local_y) * dist
        for x in range(n):
            x_p = x * dist + x_min
            out[local_y, x] = escape(x_p, y_p, cutoff)


# --- 2. THE PARTITION ---
class RowRange(namedtuple("RowRange", ["start", "count"])):
    __slots__ = ()

    @property
    def stop(self):
        return self.start + self.count


class Partition:
    """Contiguous row blocks for workers 1..W over a grid of n rows.

    The first ``n % W`` workers get one extra row. The coordinator is not
    a worker and owns no rows.
    """

    def __init__(self, n, ranges):
        self.n = n
        self.ranges = MappingProxyType(dict(ranges))

    @property
    def workers(self):
        return len(self.ranges)

    def __getitem__(self, worker):
        return self.ranges[worker]

    def __iter__(self):
        return iter(sorted(self.ranges.items()))

    def __repr__(self):
        return f"Partition(n={self.n}, ranges={dict(self.ranges)})"


def partition(n, workers):
    if workers < 1:
        raise ConfigurationError(f"need at least one worker, got {workers}")
    if n < 0:
        raise ConfigurationError(f"grid size must be non-negative, got {n}")

    rows_per_worker, remaining = divmod(n, workers)
    ranges = {}
    start = 0
    for worker in range(1, workers + 1):
        count = rows_per_worker + (1 if worker <= remaining else 0)
        ranges[worker] = RowRange(start, count)
        start += count
    return Partition(n, ranges)


# --- 3. THE WORKER ---
def allocate_rows(row_count, n):
    try:
        return np.zeros((row_count, n), dtype=GRID_DTYPE)
    except MemoryError as exc:
        raise ResourceError(f"cannot allocate {row_count}x{n} buffer") from exc


def compute_range(config, start_row, row_count):
    """Iteration counts for rows [start_row, start_row + row_count).

    Returns a fresh (row_count, n) array owned by the caller.
    """
    if start_row < 0 or row_count < 0 or start_row + row_count > config.n:
        raise ConfigurationError(
            f"rows [{start_row}, {start_row + row_count}) outside grid of {config.n}")
    local_buffer = allocate_rows(row_count, config.n)
    _fill_rows(config.n, config.x_min, config.y_max, config.dist_between_points,
               config.cutoff, start_row, local_buffer)
    return local_buffer


def compute_grid(config):
    """Serial reference: every row in one range."""
    return compute_range(config, 0, config.n)


# --- 4. THE GATHER ---
def allocate_grid(n):
    return allocate_rows(n, n)


def gather(part, local_buffers):
    """Assemble per-worker buffers into the full grid.

    ``local_buffers`` maps worker index to that worker's array. Each one is
    copied in at its start row; a buffer whose size disagrees with its row
    count is never truncated or padded.
    """
    mismatched = set(part.ranges) ^ set(local_buffers)
    if mismatched:
        raise InvariantViolation(
            f"buffers and partition disagree on workers {sorted(mismatched)}")

    grid = allocate_grid(part.n)
    flat = grid.reshape(-1)
    for worker, rows in part:
        local_buffer = np.asarray(local_buffers[worker])
        expected = rows.count * part.n
        if local_buffer.size != expected:
            raise InvariantViolation(
                f"worker {worker} sent {local_buffer.size} values, "
                f"expected {expected} for rows [{rows.start}, {rows.stop})")
        offset = rows.start * part.n
        flat[offset:offset + expected] = local_buffer.reshape(-1)
    return grid
