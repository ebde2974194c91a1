import logging
import os

import cv2
import numpy as np
from dotenv import load_dotenv

from models.errors import ImageDecodeError
from models.pixel_buffer import PixelBuffer
from models.transform_result import TransformResult
from services.image_service import ImageService

# Load environment variables
load_dotenv()

EDGE_BAND = 30 # brightness half-width of the partial-alpha ramp
SIGMA_PER_RADIUS = 0.8


def _round_half_up(x: np.ndarray) -> np.ndarray:
    return np.floor(x + 0.5)


class MaskService:
    """
    Cuts clothing out of an image with a brightness mask.
    White = keep, black / transparent = remove, grey edge band = alpha ramp.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger(__name__)
        self.image_service = ImageService()
        self.threshold = int(os.getenv("MASK_THRESHOLD", "128"))
        self.feather_radius = float(os.getenv("MASK_FEATHER_RADIUS", "2"))

    @staticmethod
    def _mask_brightness(mask: PixelBuffer, width: int, height: int, feather_radius: float) -> np.ndarray:
        """
        Resize to (width, height), grayscale, optional Gaussian feather, then
        fold the mask's own alpha in: round(gray/255 * alpha/255 * 255).
        """
        pixels = mask.pixels
        if (mask.width, mask.height) != (width, height):
            pixels = cv2.resize(pixels, (width, height), interpolation=cv2.INTER_LINEAR)

        gray = cv2.cvtColor(np.ascontiguousarray(pixels[:, :, :3]), cv2.COLOR_RGB2GRAY)
        if feather_radius > 0:
            sigma = feather_radius * SIGMA_PER_RADIUS
            gray = cv2.GaussianBlur(gray, (0, 0), sigmaX=sigma, sigmaY=sigma)

        gray = gray.astype(np.float64)
        alpha = pixels[:, :, 3].astype(np.float64)
        return _round_half_up(gray / 255.0 * (alpha / 255.0) * 255.0)

    def apply_mask(
            self,
            original: PixelBuffer,
            mask: PixelBuffer,
            threshold: int | None = None,
            feather_radius: float | None = None,
    ) -> PixelBuffer:
        """
        Three zones per pixel:
            brightness > threshold+30 → unchanged (clothing)
            brightness < threshold-30 → alpha 0 (background / mannequin)
            otherwise                 → alpha ramp, never above the source alpha
        Returns a new buffer the size of `original`.
        """
        threshold = self.threshold if threshold is None else threshold
        feather_radius = self.feather_radius if feather_radius is None else feather_radius

        brightness = self._mask_brightness(mask, original.width, original.height, feather_radius)
        low, high = threshold - EDGE_BAND, threshold + EDGE_BAND

        src_alpha = original.alpha.astype(np.float64)
        ramp = _round_half_up((brightness - low) / (2 * EDGE_BAND) * 255.0)
        edge_alpha = np.minimum(src_alpha, np.maximum(0.0, ramp))

        new_alpha = np.where(brightness > high, src_alpha,
                             np.where(brightness < low, 0.0, edge_alpha))

        out = original.copy()
        out.pixels[:, :, 3] = new_alpha.astype(np.uint8)

        kept = int(np.count_nonzero(brightness > high))
        removed = int(np.count_nonzero(brightness < low))
        self.logger.info(
            f"Applied mask: kept {kept}, removed {removed} pixels",
            extra={"kept_pixels": kept, "removed_pixels": removed,
                   "edge_pixels": original.width * original.height - kept - removed},
        )
        return out

    def apply_mask_data_uri(
            self,
            original_uri: str,
            mask_uri: str,
            threshold: int | None = None,
            feather_radius: float | None = None,
    ) -> TransformResult:
        """Best effort: if either input fails to decode the original comes back unchanged."""
        try:
            original = self.image_service.decode_data_uri(original_uri)
            mask = self.image_service.decode_data_uri(mask_uri)
        except ImageDecodeError as err:
            self.logger.warning(f"Mask not applied, returning original: {err}",
                                extra={"degraded": True})
            return TransformResult.passthrough(original_uri, str(err))

        out = self.apply_mask(original, mask, threshold, feather_radius)
        return TransformResult(image=self.image_service.encode_data_uri(out))
