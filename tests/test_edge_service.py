import logging

import numpy as np

from services.edge_service import feather_edges
from tests.conftest import make_image


def test_opaque_image_is_unchanged():
    image = make_image(8, 8, (90, 40, 10))
    out = feather_edges(image)
    assert out is not image
    assert np.array_equal(out.pixels, image.pixels)


def test_neighbours_of_a_hole_fade():
    image = make_image(5, 5, (90, 40, 10))
    image.alpha[2, 2] = 0
    out = feather_edges(image)
    # one transparent neighbour: floor(255 * 0.85 + 0.5)
    for y, x in ((1, 2), (3, 2), (2, 1), (2, 3)):
        assert out.alpha[y, x] == 217
    assert out.alpha[1, 1] == 255
    assert out.alpha[2, 2] == 0


def test_fade_reads_the_input_only():
    image = make_image(7, 3, (90, 40, 10))
    image.alpha[:, 0] = 0
    out = feather_edges(image)
    assert out.alpha[1, 1] == 217
    assert out.alpha[1, 2] == 255


def test_surrounded_pixel_is_left_alone():
    image = make_image(3, 3, (90, 40, 10))
    image.alpha[:] = 0
    image.alpha[1, 1] = 200
    assert feather_edges(image).alpha[1, 1] == 200


def test_tiny_images_are_copied():
    image = make_image(2, 5, (1, 1, 1))
    image.alpha[0, 0] = 0
    assert np.array_equal(feather_edges(image).pixels, image.pixels)


def test_injected_logger_is_used(caplog):
    image = make_image(5, 5, (90, 40, 10))
    image.alpha[2, 2] = 0
    logger = logging.getLogger("edge-fade-test")
    with caplog.at_level(logging.DEBUG, logger="edge-fade-test"):
        feather_edges(image, logger=logger)
    record = next(r for r in caplog.records if r.name == "edge-fade-test")
    assert record.edge_pixels == 4
