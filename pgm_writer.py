import numpy as np


def encode_pgm(grid, max_val):
    """
    Encodes a square grid of iteration counts as binary PGM (P5).
    Samples are one byte each, so counts above 255 wrap (value % 256).
    The header still carries max_val as given.
    """
    grid = np.asarray(grid)
    if grid.ndim != 2 or grid.shape[0] != grid.shape[1]:
        raise ValueError(f"grid must be square, got shape {grid.shape}")

    n = grid.shape[0]
    header = f"P5\n{n} {n}\n{max_val}\n".encode("ascii")
    return header + grid.astype(np.uint8).tobytes(order="C")


def write_pgm(filename, grid, max_val):
    data = encode_pgm(grid, max_val)
    with open(filename, "wb") as f:
        f.write(data)
    return filename
