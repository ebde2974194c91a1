from __future__ import annotations
from typing import NamedTuple, Tuple

import numpy as np

# Empirically tuned mannequin tone ranges: (hue °, saturation %, value %).
SKIN_HUE = (10, 50)
SKIN_SAT = (5, 48)
SKIN_VAL = (50, 96)

SHADOW_HUE = (5, 55)
SHADOW_SAT = (3, 25)
SHADOW_VAL = (35, 65)

HIGHLIGHT_MAX_SAT = 12
HIGHLIGHT_VAL = (82, 98) # exclusive
HIGHLIGHT_MIN_RGB = (200, 190, 175) # exclusive
HIGHLIGHT_MAX_WARMTH = 40 # R - B, exclusive


class SkinClassification(NamedTuple):
    is_skin: bool
    is_shadow: bool
    is_highlight: bool

    @property
    def is_non_clothing(self) -> bool:
        return self.is_skin or self.is_shadow or self.is_highlight


def rgb_to_hsv(r: int, g: int, b: int) -> Tuple[float, float, float]:
    """RGB (0-255) → (hue in [0, 360), saturation %, value %)."""
    hi = max(r, g, b)
    lo = min(r, g, b)
    d = hi - lo

    if d == 0:
        h = 0.0
    elif hi == r:
        h = 60.0 * (((g - b) / d) % 6)
    elif hi == g:
        h = 60.0 * ((b - r) / d + 2)
    else:
        h = 60.0 * ((r - g) / d + 4)
    if h < 0:
        h += 360.0
    h %= 360.0

    s = 0.0 if hi == 0 else d / hi * 100.0
    v = hi / 255.0 * 100.0
    return h, s, v


def _between(x, bounds) -> bool:
    return bounds[0] <= x <= bounds[1]


def classify_skin(r: int, g: int, b: int) -> SkinClassification:
    h, s, v = rgb_to_hsv(r, g, b)

    is_skin = _between(h, SKIN_HUE) and _between(s, SKIN_SAT) and _between(v, SKIN_VAL)
    is_shadow = _between(h, SHADOW_HUE) and _between(s, SHADOW_SAT) and _between(v, SHADOW_VAL)
    # Near-whites on the mannequin; warm near-whites (R-B >= 40) are fabric.
    is_highlight = (
        s < HIGHLIGHT_MAX_SAT
        and HIGHLIGHT_VAL[0] < v < HIGHLIGHT_VAL[1]
        and r > HIGHLIGHT_MIN_RGB[0] and g > HIGHLIGHT_MIN_RGB[1] and b > HIGHLIGHT_MIN_RGB[2]
        and (r - b) < HIGHLIGHT_MAX_WARMTH
    )
    return SkinClassification(is_skin, is_shadow, is_highlight)


def rgb_to_hsv_array(rgb: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Vectorised rgb_to_hsv over (..., 3) uint8 pixels."""
    rgb = rgb.astype(np.float64)
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    hi = rgb.max(axis=-1)
    lo = rgb.min(axis=-1)
    d = hi - lo
    safe_d = np.where(d == 0, 1.0, d)

    h = np.zeros_like(hi)
    is_r = (d != 0) & (hi == r)
    is_g = (d != 0) & (hi == g) & ~is_r
    is_b = (d != 0) & ~is_r & ~is_g
    h = np.where(is_r, 60.0 * np.mod((g - b) / safe_d, 6), h)
    h = np.where(is_g, 60.0 * ((b - r) / safe_d + 2), h)
    h = np.where(is_b, 60.0 * ((r - g) / safe_d + 4), h)
    h = np.mod(h, 360.0)

    s = np.where(hi == 0, 0.0, d / np.where(hi == 0, 1.0, hi) * 100.0)
    v = hi / 255.0 * 100.0
    return h, s, v


def classify_skin_array(rgb: np.ndarray) -> np.ndarray:
    """
    Vectorised classify_skin(...).is_non_clothing over (H, W, 3) pixels.
    Returns a (H, W) bool array, True where the pixel is mannequin tone.
    """
    h, s, v = rgb_to_hsv_array(rgb)
    ints = rgb.astype(np.int16)
    r, g, b = ints[..., 0], ints[..., 1], ints[..., 2]

    def between(x, bounds):
        return (x >= bounds[0]) & (x <= bounds[1])

    skin = between(h, SKIN_HUE) & between(s, SKIN_SAT) & between(v, SKIN_VAL)
    shadow = between(h, SHADOW_HUE) & between(s, SHADOW_SAT) & between(v, SHADOW_VAL)
    highlight = (
        (s < HIGHLIGHT_MAX_SAT)
        & (v > HIGHLIGHT_VAL[0]) & (v < HIGHLIGHT_VAL[1])
        & (r > HIGHLIGHT_MIN_RGB[0]) & (g > HIGHLIGHT_MIN_RGB[1]) & (b > HIGHLIGHT_MIN_RGB[2])
        & ((r - b) < HIGHLIGHT_MAX_WARMTH)
    )
    return skin | shadow | highlight
