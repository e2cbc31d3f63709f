"""Representative-colour extraction: pixel filtering and k-means++ clustering."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from scipy.spatial.distance import cdist

from pixel_blueprint.color_utils import rgb_array_to_lab, rgb_array_to_oklch
from pixel_blueprint.config import KMEANS_CLUSTERS, KMEANS_ITERATIONS, ColorSettings
from pixel_blueprint.image_io import DecodedImageCache, load_pixel_samples
from pixel_blueprint.models import (
    NEUTRAL_GRAY,
    ColorPosition,
    ImageSprite,
    OKLCHColor,
    PixelSamples,
    RankedColor,
    RGBColor,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Cluster:
    centroid: RGBColor
    members: np.ndarray  # indices into the clustered samples


@dataclass(frozen=True)
class ExtractionResult:
    colors: tuple[RankedColor, ...]
    total_pixels: int


def filter_samples(rgb: np.ndarray, alpha: np.ndarray | None = None) -> np.ndarray:
    """Boolean mask of samples that count as image colour.

    Drops transparent pixels, near-white, near-black and light greys, which
    are almost always background or anti-aliasing artifacts.
    """
    rgb = np.asarray(rgb, dtype=np.int32).reshape(-1, 3)
    r, g, b = rgb[:, 0], rgb[:, 1], rgb[:, 2]

    keep = np.ones(len(rgb), dtype=bool)
    if alpha is not None:
        keep &= np.asarray(alpha).reshape(-1) >= 128
    keep &= ~((r > 240) & (g > 240) & (b > 240))
    keep &= ~((r < 15) & (g < 15) & (b < 15))

    spread = rgb.max(axis=1) - rgb.min(axis=1)
    avg = rgb.sum(axis=1) / 3
    keep &= ~((spread < 20) & (avg > 180))
    return keep


def _assign(lab: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """Index of the nearest centroid (Lab distance) for every sample."""
    return cdist(lab, rgb_array_to_lab(centroids)).argmin(axis=1)


def _init_centroids(
    rgb: np.ndarray,
    lab: np.ndarray,
    k: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """k-means++ seeding: spread centroids by squared-distance sampling."""
    n = len(rgb)
    chosen = [int(rng.integers(n))]

    for _ in range(1, k):
        dist = cdist(lab, lab[chosen]).min(axis=1) ** 2
        target = rng.random() * dist.sum()
        j = int(np.searchsorted(np.cumsum(dist), target, side="left"))
        if j >= n:
            j = int(rng.integers(n))
        chosen.append(j)

    return rgb[chosen].astype(np.int64)


def kmeans_clustering(
    rgb: np.ndarray,
    k: int = KMEANS_CLUSTERS,
    iterations: int = KMEANS_ITERATIONS,
    rng: np.random.Generator | None = None,
) -> list[Cluster]:
    """Cluster RGB samples in Lab space.

    Runs a fixed number of passes. Centroids are the rounded mean RGB of
    their members; a cluster left empty keeps its previous centroid.

    Args:
        rgb:        (N, 3) 0-255 samples.
        k:          Cluster count.
        iterations: Assignment/update passes.
        rng:        NumPy random generator (``None`` = non-deterministic).

    Returns:
        *k* clusters in centroid-index order, or one singleton cluster per
        sample when there are fewer than *k* samples.
    """
    rgb = np.asarray(rgb, dtype=np.int64).reshape(-1, 3)
    n = len(rgb)
    if n < k:
        return [
            Cluster(RGBColor(*(int(v) for v in rgb[i])), np.array([i]))
            for i in range(n)
        ]

    if rng is None:
        rng = np.random.default_rng()

    lab = rgb_array_to_lab(rgb)
    centroids = _init_centroids(rgb, lab, k, rng)
    labels = _assign(lab, centroids)

    for _ in range(iterations):
        labels = _assign(lab, centroids)
        for i in range(k):
            members = rgb[labels == i]
            if len(members):
                # round half up
                centroids[i] = np.floor(members.mean(axis=0) + 0.5)

    return [
        Cluster(
            RGBColor(*(int(v) for v in centroids[i])),
            np.flatnonzero(labels == i),
        )
        for i in range(k)
    ]


def compute_color_position(
    xy: np.ndarray,
    width: int,
    height: int,
) -> ColorPosition:
    """Where in the image a cluster's pixels sit on average."""
    xy = np.asarray(xy, dtype=np.float64).reshape(-1, 2)
    if len(xy) == 0:
        return ColorPosition.CENTER

    dx = xy[:, 0].mean() - width / 2
    dy = xy[:, 1].mean() - height / 2
    threshold = min(width, height) * 0.25

    if abs(dx) < threshold and abs(dy) < threshold:
        return ColorPosition.CENTER
    if abs(dx) >= abs(dy):
        return ColorPosition.RIGHT if dx > 0 else ColorPosition.LEFT
    return ColorPosition.BOTTOM if dy > 0 else ColorPosition.TOP


def extract_colors(
    samples: PixelSamples,
    k: int = KMEANS_CLUSTERS,
    iterations: int = KMEANS_ITERATIONS,
    seed: int | None = None,
) -> ExtractionResult:
    """Rank the representative colours of one image.

    Always clusters at the full *k* so the result can be cached and later
    narrowed with :func:`derive_active_colors`.
    """
    keep = filter_samples(samples.rgb, samples.alpha)
    rgb = np.asarray(samples.rgb).reshape(-1, 3)[keep]
    xy = np.asarray(samples.xy).reshape(-1, 2)[keep]

    if len(rgb) == 0:
        return ExtractionResult(colors=(NEUTRAL_GRAY,), total_pixels=0)

    clusters = kmeans_clustering(
        rgb, k=k, iterations=iterations, rng=np.random.default_rng(seed),
    )
    oklch = rgb_array_to_oklch(np.array([c.centroid for c in clusters]))

    ranked = [
        RankedColor(
            color=OKLCHColor(*(float(v) for v in oklch[i])),
            rgb=cluster.centroid,
            position=compute_color_position(
                xy[cluster.members], samples.width, samples.height,
            ),
            pixel_count=len(cluster.members),
        )
        for i, cluster in enumerate(clusters)
    ]
    ranked.sort(key=lambda c: c.pixel_count, reverse=True)
    return ExtractionResult(colors=tuple(ranked), total_pixels=len(rgb))


def derive_active_colors(
    colors: tuple[RankedColor, ...] | list[RankedColor],
    total_pixels: int,
    settings: ColorSettings,
) -> tuple[RankedColor, ...]:
    """Select the colours a view works with, from cached cluster data.

    Smart mode keeps every colour covering at least ``smart_threshold`` of
    the qualifying pixels (falling back to the top colour). Fixed mode takes
    the first ``num_colors``, padding with neutral grey.
    """
    if not colors:
        return (NEUTRAL_GRAY,)

    if settings.smart_detection:
        threshold = total_pixels * settings.smart_threshold
        kept = tuple(c for c in colors if c.pixel_count >= threshold)
        return kept or (colors[0],)

    padded = list(colors)
    padded += [NEUTRAL_GRAY] * (settings.num_colors - len(padded))
    return tuple(padded[: settings.num_colors])


def extract_sprite(
    path: str | Path,
    seed: int | None = None,
    cache: DecodedImageCache | None = None,
) -> ImageSprite:
    """Decode *path* and build its :class:`ImageSprite`."""
    t0 = time.perf_counter()
    samples = cache.load(path) if cache is not None else load_pixel_samples(path)
    result = extract_colors(samples, seed=seed)
    logger.debug(
        "Extracted %d colours from %s  (%d/%d px qualify, %.2f s)",
        len(result.colors), Path(path).name, result.total_pixels,
        len(samples), time.perf_counter() - t0,
    )
    return ImageSprite(
        filename=Path(path).name,
        image_path=str(path),
        colors=result.colors,
        total_pixels=result.total_pixels,
    )
