from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple
import numpy as np

from models.mask import Mask

DEFAULT_BACKGROUND: Tuple[int, int, int] = (245, 245, 245)  # studio light-gray


@dataclass
class BackgroundColorEstimate:
    """
    Mean RGB of the light / low-saturation anchor pixels.
    degraded=True means no anchor qualified and DEFAULT_BACKGROUND is used.
    """
    r: float
    g: float
    b: float
    anchors_used: int
    degraded: bool = False

    @classmethod
    def default(cls) -> "BackgroundColorEstimate":
        r, g, b = DEFAULT_BACKGROUND
        return cls(r=r, g=g, b=b, anchors_used=0, degraded=True)

    def as_array(self) -> np.ndarray:
        return np.array([self.r, self.g, self.b], dtype=np.float32)


@dataclass
class FloodFillResult:
    mask: Mask # visited → 0, everything else → 255
    visited: np.ndarray # (H, W) bool, the transient VisitedSet
    enqueued: int # total queue insertions; equals visited.sum()

    @property
    def visited_count(self) -> int:
        return int(np.count_nonzero(self.visited))
