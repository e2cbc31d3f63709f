"""Colour-space conversion and perceptual distance metrics."""

from __future__ import annotations

import math
import re

import numpy as np
from skimage.color import rgb2lab

from pixel_blueprint.models import LabColor, OKLCHColor, RGBColor

# Linear sRGB -> LMS, then cube-rooted LMS -> OKLab
_LMS_MATRIX = np.array([
    [0.4122214708, 0.5363325363, 0.0514459929],
    [0.2119034982, 0.6806995451, 0.1073969566],
    [0.0883024619, 0.2817188376, 0.6299787005],
])
_OKLAB_MATRIX = np.array([
    [0.2104542553, 0.7936177850, -0.0040720468],
    [1.9779984951, -2.4285922050, 0.4505937099],
    [0.0259040371, 0.7827717662, -0.8086757660],
])

_HEX_RE = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE | re.ASCII)


def srgb_to_linear(values: np.ndarray) -> np.ndarray:
    """Gamma-decode sRGB values in [0, 1]."""
    values = np.asarray(values, dtype=np.float64)
    return np.where(
        values <= 0.04045,
        values / 12.92,
        ((values + 0.055) / 1.055) ** 2.4,
    )


def rgb_array_to_lab(rgb: np.ndarray) -> np.ndarray:
    """Convert flat (N, 3) 0-255 RGB → (N, 3) float64 CIELAB (D65)."""
    rgb = np.asarray(rgb, dtype=np.float64).reshape(-1, 3)
    if len(rgb) == 0:
        return np.empty((0, 3), dtype=np.float64)
    return rgb2lab(rgb.reshape(1, -1, 3) / 255.0).reshape(-1, 3)


def rgb_array_to_oklch(rgb: np.ndarray) -> np.ndarray:
    """Convert flat (N, 3) 0-255 RGB → (N, 3) float64 OKLCH.

    Columns are lightness (0-1), chroma and hue in degrees [0, 360).
    """
    rgb = np.asarray(rgb, dtype=np.float64).reshape(-1, 3)
    linear = srgb_to_linear(rgb / 255.0)
    lms = np.cbrt(linear @ _LMS_MATRIX.T)
    lab = lms @ _OKLAB_MATRIX.T

    chroma = np.hypot(lab[:, 1], lab[:, 2])
    hue = np.degrees(np.arctan2(lab[:, 2], lab[:, 1]))
    hue = np.where(hue < 0, hue + 360.0, hue)
    hue = np.where(hue >= 360.0, 0.0, hue)
    return np.stack([lab[:, 0], chroma, hue], axis=1)


def rgb_to_lab(rgb: RGBColor) -> LabColor:
    l, a, b = rgb_array_to_lab(np.array([rgb]))[0]  # noqa: E741
    return LabColor(float(l), float(a), float(b))


def rgb_to_oklch(rgb: RGBColor) -> OKLCHColor:
    l, c, h = rgb_array_to_oklch(np.array([rgb]))[0]  # noqa: E741
    return OKLCHColor(float(l), float(c), float(h))


def color_distance_lab(c1: RGBColor, c2: RGBColor) -> float:
    """Euclidean distance between two RGB colours in CIELAB."""
    lab = rgb_array_to_lab(np.array([c1, c2]))
    return float(np.sqrt(np.sum((lab[0] - lab[1]) ** 2)))


def color_distance_oklch(c1: OKLCHColor, c2: OKLCHColor) -> float:
    """Euclidean distance over (100·Δl, 100·Δc, Δh) with circular hue.

    Scaling lightness and chroma by 100 puts them on the same order of
    magnitude as hue degrees.
    """
    hue_diff = abs(c1.h - c2.h)
    if hue_diff > 180:
        hue_diff = 360 - hue_diff
    dl = (c1.l - c2.l) * 100
    dc = (c1.c - c2.c) * 100
    return math.sqrt(dl * dl + dc * dc + hue_diff * hue_diff)


def hex_to_rgb(hex_str: str) -> RGBColor:
    """Parse '#RRGGBB' (hash optional). Malformed input yields black."""
    match = _HEX_RE.match(hex_str.strip())
    if match is None:
        return RGBColor(0, 0, 0)
    return RGBColor(*(int(part, 16) for part in match.groups()))


def rgb_to_hex(rgb: RGBColor) -> str:
    return "#" + "".join(f"{int(round(v)):02x}" for v in rgb)


def oklch_to_css(color: OKLCHColor, alpha: float = 1) -> str:
    """CSS Color 4 ``oklch()`` string."""
    return f"oklch({color.l * 100:.1f}% {color.c:.3f} {color.h:.1f} / {alpha})"
