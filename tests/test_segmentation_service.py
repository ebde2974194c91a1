import numpy as np
import pytest

from models.errors import ImageDecodeError
from repositories.segmentation_repository import SegmentationRepository
from services.background_service import BackgroundService
from services.segmentation_service import SegmentationService
from tests.conftest import make_image


@pytest.fixture
def service():
    return SegmentationService()


def test_background_only_image_gives_empty_mask(service):
    mask = service.build_mask(make_image(16, 16, (245, 245, 245)))
    assert (mask.values == 0).all()


def test_mid_gray_backdrop_counts_as_background_only_when_building_masks(service):
    # 155 passes the mask builder's light test (>= 150) but not the remover's (>= 160)
    image = make_image(16, 16, (155, 155, 155))
    assert (service.build_mask(image).values == 0).all()
    assert (BackgroundService().remove_light_background(image).alpha == 255).all()


def test_garment_rectangle_is_kept(service):
    image = make_image(30, 30, (230, 230, 230), [((8, 8, 19, 19), (40, 60, 200))])
    values = service.build_mask(image).values

    outside = np.ones((30, 30), dtype=bool)
    outside[8:20, 8:20] = False
    assert (values[outside] == 0).all()

    inside = values[8:20, 8:20].copy()
    # each rectangle corner sees only 8 kept neighbours in its 5x5 window
    assert inside[0, 0] == inside[0, -1] == inside[-1, 0] == inside[-1, -1] == 0
    inside[0, 0] = inside[0, -1] = inside[-1, 0] = inside[-1, -1] = 255
    assert (inside == 255).all()


def test_mannequin_skin_is_removed(service):
    image = make_image(30, 30, (245, 245, 245), [
        ((5, 5, 24, 24), (40, 60, 200)),
        ((10, 10, 19, 14), (220, 180, 150)),  # arm across the garment
    ])
    values = service.build_mask(image).values
    # skin corners can be refilled by the hole pass; the rest stays removed
    assert (values[10:15, 11:19] == 0).all()
    assert (values[17:23, 8:22] == 255).all()


def test_mask_image_is_opaque_gray(service, studio_image):
    mask_image = service.build_mask_image(studio_image)
    assert (mask_image.alpha == 255).all()
    assert np.array_equal(mask_image.pixels[..., 0], mask_image.pixels[..., 1])
    assert mask_image.get_pixel(50, 50) == (255, 255, 255, 255)
    assert mask_image.get_pixel(5, 5) == (0, 0, 0, 255)


def test_build_mask_data_uri_rejects_garbage(service):
    with pytest.raises(ImageDecodeError):
        service.build_mask_data_uri("data:image/png;base64,AAAA")


def test_isolated_speck_is_dropped_but_not_on_the_border():
    values = np.zeros((9, 9), dtype=np.uint8)
    values[4, 4] = 255
    values[0, 0] = 255
    out = SegmentationRepository().remove_specks(values)
    assert out[4, 4] == 0
    assert out[0, 0] == 255


def test_hole_is_filled_unless_it_is_background():
    values = np.full((9, 9), 255, dtype=np.uint8)
    values[4, 4] = 0
    repo = SegmentationRepository()

    assert repo.fill_holes(values, np.zeros((9, 9), dtype=bool))[4, 4] == 255

    background = np.zeros((9, 9), dtype=bool)
    background[4, 4] = True
    assert repo.fill_holes(values, background)[4, 4] == 0
