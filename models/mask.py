from __future__ import annotations
from dataclasses import dataclass
import numpy as np

from models.pixel_buffer import PixelBuffer

REMOVED = 0
KEPT = 255


@dataclass
class Mask:
    """
    Single-channel clothing mask.
    0 = background / mannequin (removed), 255 = clothing (kept),
    anything in between = partial membership.
    """
    values: np.ndarray # Shape (H, W), dtype uint8.

    def __post_init__(self):
        if self.values.ndim != 2:
            raise ValueError(f"Mask needs (H, W) values, got {self.values.shape}")
        if self.values.dtype != np.uint8:
            self.values = self.values.astype(np.uint8)

    @property
    def width(self) -> int:
        return self.values.shape[1]

    @property
    def height(self) -> int:
        return self.values.shape[0]

    def kept_count(self) -> int:
        return int(np.count_nonzero(self.values == KEPT))

    def to_pixel_buffer(self) -> PixelBuffer:
        """Opaque grayscale RGBA image: R=G=B=value, A=255."""
        alpha = np.full_like(self.values, 255)
        pixels = np.dstack([self.values, self.values, self.values, alpha])
        return PixelBuffer(pixels=pixels)
