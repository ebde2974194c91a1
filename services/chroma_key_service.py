import logging
import os

import numpy as np
from dotenv import load_dotenv

from models.errors import ImageDecodeError
from models.pixel_buffer import PixelBuffer
from models.transform_result import TransformResult
from services.image_service import ImageService

# Load environment variables
load_dotenv()


def green_screen_pixels(rgb: np.ndarray) -> np.ndarray:
    """
    (H, W) bool, True for studio green (#00FF00 family) and its brighter
    lime variants.
    """
    rgb = rgb.astype(np.int16)
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    is_green = (g > 150) & (g > r + 50) & (g > b + 50) & (r < 150) & (b < 150)
    is_lime = (g > 200) & (r < 200) & (b < 200) & (g - r > 30) & (g - b > 30)
    return is_green | is_lime


class ChromaKeyService:
    """Green-screen transparency and clean-up of three-colour (white/black/green) masks."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger(__name__)
        self.image_service = ImageService()
        self.tolerance = int(os.getenv("CHROMA_TOLERANCE", "80"))

    def remove_green_screen(self, image: PixelBuffer, tolerance: int | None = None) -> PixelBuffer:
        """
        Green pixels → alpha 0.
        `tolerance` is accepted for symmetry with the other removers only;
        the green limits are fixed.
        """
        tolerance = self.tolerance if tolerance is None else tolerance
        green = green_screen_pixels(image.rgb)

        out = image.copy()
        out.alpha[green] = 0
        self.logger.info(
            f"Removed {int(np.count_nonzero(green))} green pixels",
            extra={"removed_pixels": int(np.count_nonzero(green)), "tolerance": tolerance},
        )
        return out

    def convert_green_to_transparent(self, mask: PixelBuffer) -> PixelBuffer:
        """
        Normalise an AI-drawn mask:
            near-white (all > 200) → kept as clothing
            near-black (all < 60)  → kept as mannequin
            anything else          → alpha 0 (background)
        """
        rgb = mask.rgb.astype(np.int16)
        white = (rgb > 200).all(axis=-1)
        black = (rgb < 60).all(axis=-1)
        other = ~(white | black)

        out = mask.copy()
        out.alpha[other] = 0
        self.logger.info(
            "Normalised mask colours",
            extra={"white_pixels": int(np.count_nonzero(white)),
                   "black_pixels": int(np.count_nonzero(black)),
                   "transparent_pixels": int(np.count_nonzero(other))},
        )
        return out

    # ---------- data-URI wrappers (best effort) ----------
    def remove_green_screen_data_uri(self, data_uri: str, tolerance: int | None = None) -> TransformResult:
        try:
            image = self.image_service.decode_data_uri(data_uri)
        except ImageDecodeError as err:
            self.logger.warning(f"Green screen removal skipped, returning original: {err}")
            return TransformResult.passthrough(data_uri, str(err))
        out = self.remove_green_screen(image, tolerance)
        return TransformResult(image=self.image_service.encode_data_uri(out))

    def convert_green_to_transparent_data_uri(self, data_uri: str) -> TransformResult:
        try:
            mask = self.image_service.decode_data_uri(data_uri)
        except ImageDecodeError as err:
            self.logger.warning(f"Mask clean-up skipped, returning original: {err}")
            return TransformResult.passthrough(data_uri, str(err))
        return TransformResult(image=self.image_service.encode_data_uri(
            self.convert_green_to_transparent(mask)))
