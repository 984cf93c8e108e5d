import io

import numpy as np
import pytest
from PIL import Image


def gradient_pixels(width=64, height=32):
    """Smooth two-axis gradient, every pixel a distinct color."""
    xs = np.linspace(0, 255, width)
    ys = np.linspace(0, 255, height)
    pixels = np.zeros((height, width, 3), dtype=np.uint8)
    pixels[:, :, 0] = np.rint(xs)[None, :]
    pixels[:, :, 1] = np.rint(ys)[:, None]
    pixels[:, :, 2] = 128
    return pixels


def png_bytes(image):
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def gradient_png():
    return png_bytes(Image.fromarray(gradient_pixels(60, 40)))


@pytest.fixture(scope="session")
def qapp():
    from PyQt6.QtCore import QCoreApplication

    app = QCoreApplication.instance() or QCoreApplication([])
    yield app
