# repositories/segmentation_repository.py
import cv2
import numpy as np

from models.mask import KEPT, REMOVED

WINDOW = 5
MARGIN = WINDOW // 2
NEIGHBORS = WINDOW * WINDOW - 1 # 24, centre excluded

SPECK_MIN_RATIO = 0.40
HOLE_MIN_RATIO = 0.60


class SegmentationRepository:
    """
    Binary mask cleanup.

    • Removes isolated kept specks.
    • Fills internal holes that are not true background.
    Both passes look at the 5×5 window around interior pixels
    (≥ 2 px from every border) and read a snapshot of the mask taken
    at the start of the pass.
    """

    # ---------- private helpers ----------
    @staticmethod
    def _kept_neighbors(values: np.ndarray) -> np.ndarray:
        """Number of 255-valued pixels among the 24 window neighbours."""
        kernel = np.ones((WINDOW, WINDOW), np.float32)
        kernel[MARGIN, MARGIN] = 0
        kept = (values == KEPT).astype(np.float32)
        counts = cv2.filter2D(kept, -1, kernel, borderType=cv2.BORDER_CONSTANT)
        return np.rint(counts).astype(np.int32)

    @staticmethod
    def _interior(shape) -> np.ndarray:
        h, w = shape
        inside = np.zeros((h, w), dtype=bool)
        if h > 2 * MARGIN and w > 2 * MARGIN:
            inside[MARGIN:h - MARGIN, MARGIN:w - MARGIN] = True
        return inside

    # ---------- public API ----------
    def remove_specks(self, values: np.ndarray) -> np.ndarray:
        counts = self._kept_neighbors(values)
        specks = self._interior(values.shape) & (values == KEPT) & \
            (counts < SPECK_MIN_RATIO * NEIGHBORS)
        out = values.copy()
        out[specks] = REMOVED
        return out

    def fill_holes(self, values: np.ndarray, background: np.ndarray) -> np.ndarray:
        """
        background: the flood fill's visited set. Only removed pixels outside
        it are candidates, the check does not look at the final mask.

        Neighbour counts come from `values` as passed in (after speck removal),
        not from a mask updated while scanning, so a pixel filled here never
        counts towards its neighbours in the same pass. A row-major in-place
        scan would let fills cascade down and to the right.
        """
        counts = self._kept_neighbors(values)
        holes = self._interior(values.shape) & (values == REMOVED) & ~background & \
            (counts > HOLE_MIN_RATIO * NEIGHBORS)
        out = values.copy()
        out[holes] = KEPT
        return out

    def clean_mask(self, values: np.ndarray, background: np.ndarray) -> np.ndarray:
        """
        1) Drop specks with < 40 % kept neighbours
        2) Fill holes with > 60 % kept neighbours
        """
        return self.fill_holes(self.remove_specks(values), background)
