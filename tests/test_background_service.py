import logging

import numpy as np
import pytest

from models.background import DEFAULT_BACKGROUND
from services.background_service import BackgroundService
from tests.conftest import make_image


@pytest.fixture
def service():
    return BackgroundService()


def test_estimate_uses_light_anchors(service):
    image = make_image(10, 8, (240, 242, 244))
    estimate = service.estimate_background(image)
    assert not estimate.degraded
    assert estimate.anchors_used == 8
    assert (estimate.r, estimate.g, estimate.b) == (240, 242, 244)


def test_estimate_ignores_dark_anchors(service):
    # dark top row: corners (0,0), (9,0) and midpoint (5,0) do not qualify
    image = make_image(10, 8, (230, 230, 230), [((0, 0, 9, 0), (20, 20, 20))])
    estimate = service.estimate_background(image)
    assert estimate.anchors_used == 5
    assert estimate.r == pytest.approx(230)


def test_estimate_falls_back_to_default(service, caplog):
    image = make_image(10, 10, (30, 30, 30))
    with caplog.at_level(logging.WARNING):
        estimate = service.estimate_background(image)
    assert estimate.degraded
    assert estimate.anchors_used == 0
    assert (estimate.r, estimate.g, estimate.b) == DEFAULT_BACKGROUND
    assert "default background" in caplog.text


def test_uniform_light_image_is_all_background(service):
    image = make_image(12, 9, (245, 245, 245))
    fill = service.flood_fill_background(image, service.estimate_background(image))
    assert fill.visited.all()
    assert (fill.mask.values == 0).all()
    assert fill.enqueued == fill.visited_count == 12 * 9


def test_each_pixel_is_queued_once(service, studio_image):
    fill = service.flood_fill_background(studio_image, service.estimate_background(studio_image))
    assert fill.enqueued == int(fill.visited.sum())
    assert fill.enqueued == 100 * 100 - 40 * 40


def test_fill_does_not_cross_a_closed_outline(service):
    image = make_image(20, 20, (245, 245, 245), [((5, 5, 14, 14), (0, 0, 0))])
    image.pixels[6:14, 6:14, :3] = 245  # light pocket inside a dark frame
    fill = service.flood_fill_background(image, service.estimate_background(image))
    assert not fill.visited[6:14, 6:14].any()
    assert (fill.mask.values[6:14, 6:14] == 255).all()
    assert (fill.mask.values[0:5, :] == 0).all()


def test_remove_light_background(service, studio_image):
    out = service.remove_light_background(studio_image)
    assert out is not studio_image
    assert (studio_image.alpha == 255).all()
    assert out.alpha[0, 0] == 0
    assert (out.alpha[30:70, 30:70] == 255).all()
    assert np.array_equal(out.rgb, studio_image.rgb)


def test_remove_light_background_data_uri_passes_garbage_through(service):
    result = service.remove_light_background_data_uri("data:image/png;base64,AAAA")
    assert result.degraded
    assert result.image == "data:image/png;base64,AAAA"
    assert result.reason
