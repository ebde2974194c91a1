from collections import deque
from typing import List, Tuple
import logging
import os

import numpy as np
from dotenv import load_dotenv

from models.background import BackgroundColorEstimate, FloodFillResult
from models.errors import ImageDecodeError
from models.mask import Mask, KEPT, REMOVED
from models.pixel_buffer import PixelBuffer
from models.transform_result import TransformResult
from services.image_service import ImageService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# Light / low-saturation limits: (min channel must exceed, channel range must stay under)
ESTIMATE_LIGHT_LIMITS: Tuple[int, int] = (150, 55)
REMOVAL_LIGHT_LIMITS: Tuple[int, int] = (160, 50)


class BackgroundService:
    """
    Background detection for studio shots on a light, uniform backdrop.

    • estimate_background: mean colour of the light anchor pixels
      (4 corners + 4 edge midpoints).
    • flood_fill_background: BFS from the image edges over pixels close
      to that colour.
    • remove_light_background: the same flood fill, applied directly as
      transparency.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger(__name__)
        self.image_service = ImageService()
        self.removal_threshold = int(os.getenv("BG_FLOOD_THRESHOLD", "30"))

    # ---------- private helpers ----------
    @staticmethod
    def _anchor_points(width: int, height: int) -> List[Tuple[int, int]]:
        cx, cy = width // 2, height // 2
        return [
            (0, 0), (width - 1, 0), (0, height - 1), (width - 1, height - 1),
            (cx, 0), (cx, height - 1), (0, cy), (width - 1, cy),
        ]

    @staticmethod
    def _is_light(rgb: np.ndarray, min_value: int, max_range: int) -> np.ndarray:
        """min(R,G,B) > min_value and max-min < max_range, element-wise over (..., 3)."""
        rgb = rgb.astype(np.int16)
        lo = rgb.min(axis=-1)
        hi = rgb.max(axis=-1)
        return (lo > min_value) & ((hi - lo) < max_range)

    @staticmethod
    def _edge_indices(width: int, height: int) -> List[int]:
        """Flat indices of every pixel on the four image edges (duplicates allowed)."""
        top = list(range(width))
        bottom = [(height - 1) * width + x for x in range(width)]
        left = [y * width for y in range(height)]
        right = [y * width + width - 1 for y in range(height)]
        return top + bottom + left + right

    # ---------- public API ----------
    def estimate_background(
            self,
            image: PixelBuffer,
            min_value: int = ESTIMATE_LIGHT_LIMITS[0],
            max_range: int = ESTIMATE_LIGHT_LIMITS[1],
    ) -> BackgroundColorEstimate:
        anchors = self._anchor_points(image.width, image.height)
        samples = np.array([image.rgb[y, x] for x, y in anchors], dtype=np.uint8)
        qualifying = samples[self._is_light(samples, min_value, max_range)]

        if len(qualifying) == 0:
            estimate = BackgroundColorEstimate.default()
            self.logger.warning(
                "No light anchor pixels found, using default background colour",
                extra={"anchors_used": 0, "default_rgb": (estimate.r, estimate.g, estimate.b)},
            )
            return estimate

        r, g, b = qualifying.astype(np.float64).mean(axis=0)
        return BackgroundColorEstimate(r=float(r), g=float(g), b=float(b),
                                       anchors_used=len(qualifying))

    def flood_fill_background(
            self,
            image: PixelBuffer,
            estimate: BackgroundColorEstimate,
            similarity_threshold: int = 35,
            min_value: int = ESTIMATE_LIGHT_LIMITS[0],
            max_range: int = ESTIMATE_LIGHT_LIMITS[1],
    ) -> FloodFillResult:
        """
        Breadth-first, 4-connected fill seeded from every edge pixel that
        matches the estimate. Pixels are marked when queued, so each one is
        queued at most once.
        """
        w, h = image.width, image.height
        delta = np.abs(image.rgb.astype(np.float32) - estimate.as_array())
        candidate = (delta <= similarity_threshold).all(axis=-1) & \
            self._is_light(image.rgb, min_value, max_range)
        cand = candidate.ravel().tolist()

        visited = bytearray(w * h)
        queue: deque[int] = deque()
        enqueued = 0

        for i in self._edge_indices(w, h):
            if cand[i] and not visited[i]:
                visited[i] = 1
                queue.append(i)
                enqueued += 1

        while queue:
            u = queue.popleft()
            x = u % w
            if x > 0:
                n = u - 1
                if cand[n] and not visited[n]:
                    visited[n] = 1
                    queue.append(n)
                    enqueued += 1
            if x + 1 < w:
                n = u + 1
                if cand[n] and not visited[n]:
                    visited[n] = 1
                    queue.append(n)
                    enqueued += 1
            if u >= w:
                n = u - w
                if cand[n] and not visited[n]:
                    visited[n] = 1
                    queue.append(n)
                    enqueued += 1
            if u + w < w * h:
                n = u + w
                if cand[n] and not visited[n]:
                    visited[n] = 1
                    queue.append(n)
                    enqueued += 1

        visited_arr = np.frombuffer(bytes(visited), dtype=np.uint8).reshape(h, w).astype(bool)
        mask = Mask(np.where(visited_arr, REMOVED, KEPT).astype(np.uint8))
        self.logger.debug(
            "Background flood fill done",
            extra={"background_pixels": enqueued, "threshold": similarity_threshold},
        )
        return FloodFillResult(mask=mask, visited=visited_arr, enqueued=enqueued)

    def remove_light_background(self, image: PixelBuffer, threshold: int | None = None) -> PixelBuffer:
        """Edge-connected light background → alpha 0. Returns a new buffer."""
        threshold = self.removal_threshold if threshold is None else threshold
        min_value, max_range = REMOVAL_LIGHT_LIMITS
        estimate = self.estimate_background(image, min_value, max_range)
        fill = self.flood_fill_background(image, estimate, threshold, min_value, max_range)

        out = image.copy()
        out.alpha[fill.visited] = 0
        self.logger.info(
            f"Removed {fill.visited_count} background pixels",
            extra={"removed_pixels": fill.visited_count, "degraded_estimate": estimate.degraded},
        )
        return out

    def remove_light_background_data_uri(self, data_uri: str, threshold: int | None = None) -> TransformResult:
        try:
            image = self.image_service.decode_data_uri(data_uri)
        except ImageDecodeError as err:
            self.logger.warning(f"Background removal skipped, returning original: {err}")
            return TransformResult.passthrough(data_uri, str(err))
        out = self.remove_light_background(image, threshold)
        return TransformResult(image=self.image_service.encode_data_uri(out))
