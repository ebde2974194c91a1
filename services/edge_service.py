import logging

import numpy as np

from models.pixel_buffer import PixelBuffer

FADE_PER_NEIGHBOR = 0.15

_logger = logging.getLogger(__name__)


def feather_edges(image: PixelBuffer, logger: logging.Logger | None = None) -> PixelBuffer:
    """
    Soften the cut-out border of a freshly transparentised image.

    Interior pixels with alpha > 0 and 1-3 fully transparent 4-neighbours get
    alpha *= 1 - 0.15 * n. Neighbours are read from the untouched input, so
    fades never cascade within a pass.
    """
    logger = logger or _logger
    src_alpha = image.alpha
    out = image.copy()
    h, w = src_alpha.shape
    if h < 3 or w < 3:
        return out

    clear = src_alpha == 0
    n = (clear[:-2, 1:-1].astype(np.int8) + clear[2:, 1:-1]
         + clear[1:-1, :-2] + clear[1:-1, 2:])
    centre = src_alpha[1:-1, 1:-1]
    fade = (centre > 0) & (n >= 1) & (n <= 3)

    faded = np.floor(centre.astype(np.float64) * (1.0 - n * FADE_PER_NEIGHBOR) + 0.5)
    inner = out.pixels[1:-1, 1:-1, 3]
    inner[fade] = faded[fade].astype(np.uint8)

    logger.debug("Feathered edge pixels", extra={"edge_pixels": int(np.count_nonzero(fade))})
    return out
