"""Pixel colour to terrain code classification.

Circuit images are drawn in four colours: white background, a green
start zone, a blue path and a red finish zone. Compression artifacts
and anti-aliasing mean the colours are never exact, so every rule is a
threshold rather than an equality test.
"""

import numpy as np

OFF_PATH = 0
START = 1
PATH = 2
FINISH = 3

TERRAIN_NAMES = {
    OFF_PATH: 'off_path',
    START: 'start',
    PATH: 'path',
    FINISH: 'finish',
}

MIN_ALPHA = 50
WHITE_MIN = 240
STRONG_MIN = 200
WEAK_MAX = 50


def classify_pixel(r: int, g: int, b: int, a: int = 255) -> int:
    """Return the terrain code for a single RGBA pixel."""
    if a < MIN_ALPHA:
        return OFF_PATH
    if r > WHITE_MIN and g > WHITE_MIN and b > WHITE_MIN:
        return OFF_PATH
    if r > STRONG_MIN and g < WEAK_MAX and b < WEAK_MAX:
        return FINISH
    if r < WEAK_MAX and g > STRONG_MIN and b < WEAK_MAX:
        return START
    return PATH


def classify_array(rgba: np.ndarray) -> np.ndarray:
    """Classify an (H, W, 3|4) pixel array, returning an (H, W) uint8 array.

    Applies exactly the rules of :func:`classify_pixel`; three-channel
    input is treated as fully opaque.
    """
    if rgba.ndim != 3 or rgba.shape[2] not in (3, 4):
        raise ValueError(f"expected an (H, W, 3|4) array, got shape {rgba.shape}")
    pixels = rgba.astype(np.int16, copy=False)
    r, g, b = pixels[..., 0], pixels[..., 1], pixels[..., 2]
    if pixels.shape[2] == 4:
        a = pixels[..., 3]
    else:
        a = np.full(r.shape, 255, dtype=np.int16)

    codes = np.full(r.shape, PATH, dtype=np.uint8)
    # Assigned lowest-priority first so earlier rules win
    codes[(r < WEAK_MAX) & (g > STRONG_MIN) & (b < WEAK_MAX)] = START
    codes[(r > STRONG_MIN) & (g < WEAK_MAX) & (b < WEAK_MAX)] = FINISH
    codes[(r > WHITE_MIN) & (g > WHITE_MIN) & (b > WHITE_MIN)] = OFF_PATH
    codes[a < MIN_ALPHA] = OFF_PATH
    return codes
