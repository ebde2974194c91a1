import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from models.pixel_buffer import PixelBuffer
from services.image_service import ImageService


def make_image(width, height, background, rects=()):
    """Opaque RGBA buffer filled with `background`, then each ((x0, y0, x1, y1), rgb) rectangle (inclusive)."""
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[:, :, :3] = background
    pixels[:, :, 3] = 255
    for (x0, y0, x1, y1), color in rects:
        pixels[y0:y1 + 1, x0:x1 + 1, :3] = color
    return PixelBuffer(pixels=pixels)


@pytest.fixture
def image_service():
    return ImageService()


@pytest.fixture
def studio_image():
    """100x100 light-gray studio shot with a 40x40 blue garment at 30..69."""
    return make_image(100, 100, (245, 245, 245), [((30, 30, 69, 69), (60, 90, 160))])


@pytest.fixture
def studio_data_uri(image_service, studio_image):
    return image_service.encode_data_uri(studio_image)
