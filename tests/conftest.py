import numpy as np
import pytest

from mandelbrot_core import RenderConfig


def decode_pgm(data):
    """Test-only reader for the P5 files written by pgm_writer."""
    magic, size, max_val, pixels = data.split(b"\n", 3)
    assert magic == b"P5"
    width, height = (int(v) for v in size.split())
    samples = np.frombuffer(pixels, dtype=np.uint8)
    assert samples.size == width * height
    return samples.reshape((height, width)), int(max_val)


@pytest.fixture
def small_config():
    return RenderConfig(n=23, x_center=-0.722, y_center=0.246, zoom=4.0, cutoff=64)
