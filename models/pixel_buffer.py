from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple
import numpy as np

CHANNELS = 4


@dataclass
class PixelBuffer:
    """
    Simple data object: RGBA pixels (+ optional source path for bookkeeping).
    No codec logic outside repositories/image_repository.py.
    """
    pixels: np.ndarray # Shape (H, W, 4), dtype uint8, RGBA order.
    path: Path | None = None # Source of the image.

    def __post_init__(self):
        if self.pixels.ndim != 3 or self.pixels.shape[2] != CHANNELS:
            raise ValueError(f"PixelBuffer needs (H, W, 4) pixels, got {self.pixels.shape}")
        if self.pixels.shape[0] == 0 or self.pixels.shape[1] == 0:
            raise ValueError("PixelBuffer width and height must be positive")
        if self.pixels.dtype != np.uint8:
            self.pixels = self.pixels.astype(np.uint8)
        self.pixels = np.ascontiguousarray(self.pixels)

    @classmethod
    def from_array(cls, arr: np.ndarray, path: Path | None = None) -> "PixelBuffer":
        """Build a buffer from gray, RGB or RGBA pixels, forcing an alpha channel."""
        arr = np.asarray(arr, dtype=np.uint8)
        if arr.ndim == 2:
            arr = np.stack([arr, arr, arr], axis=-1)
        if arr.shape[2] == 3:
            alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
            arr = np.concatenate([arr, alpha], axis=-1)
        return cls(pixels=arr.copy(), path=path)

    @classmethod
    def filled(cls, width: int, height: int, rgba: Tuple[int, int, int, int]) -> "PixelBuffer":
        pixels = np.empty((height, width, CHANNELS), dtype=np.uint8)
        pixels[:, :] = rgba
        return cls(pixels=pixels)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def data(self) -> memoryview:
        """Interleaved RGBA bytes, length width*height*4."""
        return memoryview(self.pixels).cast("B")

    @property
    def rgb(self) -> np.ndarray:
        return self.pixels[:, :, :3]

    @property
    def alpha(self) -> np.ndarray:
        return self.pixels[:, :, 3]

    def index(self, x: int, y: int) -> int:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"({x}, {y}) outside {self.width}x{self.height} buffer")
        return (y * self.width + x) * CHANNELS

    def get_pixel(self, x: int, y: int) -> Tuple[int, int, int, int]:
        self.index(x, y)
        r, g, b, a = self.pixels[y, x]
        return int(r), int(g), int(b), int(a)

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(pixels=self.pixels.copy(), path=self.path)
