# services/segmentation_service.py
import logging
import os

import numpy as np
from dotenv import load_dotenv

from models.mask import Mask, REMOVED
from models.pixel_buffer import PixelBuffer
from repositories.segmentation_repository import SegmentationRepository
from services.background_service import BackgroundService
from services.image_service import ImageService
from services.skin_service import classify_skin_array

# Load environment variables
load_dotenv()


class SegmentationService:
    """
    Code-based clothing mask for a dressed mannequin on a light backdrop.

    background flood fill → mannequin skin/shadow/highlight removal
    → speck removal → hole filling.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.repo = SegmentationRepository()
        self.background_service = BackgroundService(logger=self.logger)
        self.image_service = ImageService()
        self.flood_threshold = int(os.getenv("MASK_FLOOD_THRESHOLD", "35"))

    def build_mask(self, image: PixelBuffer) -> Mask:
        estimate = self.background_service.estimate_background(image)
        fill = self.background_service.flood_fill_background(
            image, estimate, similarity_threshold=self.flood_threshold
        )
        values = fill.mask.values.copy()

        mannequin = classify_skin_array(image.rgb) & (values != REMOVED)
        values[mannequin] = REMOVED

        values = self.repo.clean_mask(values, fill.visited)
        mask = Mask(values)

        self.logger.info(
            f"Built clothing mask: {mask.kept_count()} / {image.width * image.height} pixels kept",
            extra={
                "background_pixels": fill.visited_count,
                "mannequin_pixels": int(np.count_nonzero(mannequin)),
                "kept_pixels": mask.kept_count(),
                "degraded_estimate": estimate.degraded,
            },
        )
        return mask

    def build_mask_image(self, image: PixelBuffer) -> PixelBuffer:
        """Mask as an opaque grayscale RGBA image (R=G=B, A=255)."""
        return self.build_mask(image).to_pixel_buffer()

    def build_mask_data_uri(self, data_uri: str) -> str:
        """
        Raises:
            ImageDecodeError: input is not an image; nothing is produced.
        """
        image = self.image_service.decode_data_uri(data_uri)
        return self.image_service.encode_data_uri(self.build_mask_image(image))
