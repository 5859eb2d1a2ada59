"""
Fast approximate Gaussian blur.

Each colour channel is filtered with a tent kernel of half-width ``radius``
(weights ``radius + 1 - |i|``), first along rows and then along columns. A
tent is two box filters of width ``radius + 1`` applied back to back, and each
box is a difference of cumulative sums, so the cost is proportional to the
pixel count whatever the radius. Samples outside the image repeat the nearest
edge pixel. Alpha is copied through untouched.
"""

from __future__ import annotations

import numpy as np
from PIL import Image

MAX_RADIUS = 25


def blur_radius(percent: float) -> int:
    """Map a 0-100 intensity to a radius in 1..25 pixels."""
    return max(1, min(MAX_RADIUS, round(percent / 100 * MAX_RADIUS)))


def _window_sums(values: np.ndarray, size: int) -> np.ndarray:
    """Sums of every run of ``size`` consecutive rows along axis 0."""
    cumulative = np.cumsum(values, axis=0)
    cumulative = np.concatenate([np.zeros_like(values[:1]), cumulative])
    return cumulative[size:] - cumulative[:-size]


def _tent_pass(values: np.ndarray, radius: int, axis: int) -> np.ndarray:
    moved = np.moveaxis(values, axis, 0)
    pad_width = [(radius, radius)] + [(0, 0)] * (moved.ndim - 1)
    padded = np.pad(moved, pad_width, mode="edge")
    # n + 2r rows -> n + r box sums -> n tent sums
    tent = _window_sums(_window_sums(padded, radius + 1), radius + 1)
    return np.moveaxis(tent // ((radius + 1) ** 2), 0, axis)


def blur(image: Image.Image, percent: float) -> Image.Image:
    """
    Return a blurred copy of ``image`` as RGBA; the input is never modified.

    ``percent <= 0`` returns ``image`` itself.
    """
    if percent <= 0:
        return image
    if image.width == 0 or image.height == 0:
        return image.convert("RGBA")

    radius = blur_radius(percent)
    pixels = np.array(image.convert("RGBA"), dtype=np.uint8)
    rgb = pixels[..., :3].astype(np.int64)

    rgb = _tent_pass(rgb, radius, axis=1)
    rgb = _tent_pass(rgb, radius, axis=0)

    pixels[..., :3] = rgb.astype(np.uint8)
    return Image.fromarray(pixels)
