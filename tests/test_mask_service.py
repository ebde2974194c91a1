import numpy as np
import pytest

from models.pixel_buffer import PixelBuffer
from services.mask_service import MaskService
from services.segmentation_service import SegmentationService
from tests.conftest import make_image


@pytest.fixture
def service():
    return MaskService()


def test_white_mask_keeps_everything(service, studio_image):
    out = service.apply_mask(studio_image, make_image(100, 100, (255, 255, 255)))
    assert np.array_equal(out.pixels, studio_image.pixels)


def test_black_mask_removes_everything(service, studio_image):
    out = service.apply_mask(studio_image, make_image(100, 100, (0, 0, 0)))
    assert (out.alpha == 0).all()
    assert np.array_equal(out.rgb, studio_image.rgb)


def test_smaller_mask_is_resized(service):
    original = make_image(20, 20, (10, 200, 10))
    out = service.apply_mask(original, make_image(5, 5, (255, 255, 255)))
    assert (out.width, out.height) == (20, 20)
    assert (out.alpha == 255).all()


def test_mid_gray_lands_on_the_ramp(service):
    original = make_image(4, 4, (50, 50, 50))
    out = service.apply_mask(original, make_image(4, 4, (128, 128, 128)), threshold=128, feather_radius=0)
    # (128 - 98) / 60 * 255 = 127.5, rounded half up
    assert (out.alpha == 128).all()


def test_ramp_never_raises_source_alpha(service):
    original = make_image(4, 4, (50, 50, 50))
    original.alpha[:] = 100
    out = service.apply_mask(original, make_image(4, 4, (128, 128, 128)), feather_radius=0)
    assert (out.alpha == 100).all()


def test_transparent_mask_pixels_count_as_removed(service):
    mask = PixelBuffer.filled(4, 4, (255, 255, 255, 0))
    out = service.apply_mask(make_image(4, 4, (1, 2, 3)), mask, feather_radius=0)
    assert (out.alpha == 0).all()


def test_undecodable_mask_returns_original(service, studio_data_uri):
    result = service.apply_mask_data_uri(studio_data_uri, "data:image/png;base64,AAAA")
    assert result.degraded
    assert result.image == studio_data_uri


def test_code_mask_cuts_out_the_garment(service, studio_image):
    mask = SegmentationService().build_mask_image(studio_image)
    out = service.apply_mask(studio_image, mask, threshold=128, feather_radius=2)

    assert (out.alpha[34:66, 34:66] == 255).all()
    outside = np.ones((100, 100), dtype=bool)
    outside[26:74, 26:74] = False
    assert (out.alpha[outside] == 0).all()
