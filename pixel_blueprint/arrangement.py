"""Seeded grid arrangement with entropy shuffling and annealed smoothing."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Iterable, Sequence

from pixel_blueprint.color_utils import color_distance_oklch
from pixel_blueprint.config import ANNEALING_ITERATIONS, ArrangementParams, ColorSettings
from pixel_blueprint.extraction import derive_active_colors
from pixel_blueprint.models import (
    ArrangementState,
    BucketLocation,
    GridLocation,
    ImageLocation,
    ImageSprite,
    OKLCHColor,
    SwapRecord,
)

logger = logging.getLogger(__name__)

_MutableGrid = list[list["ImageSprite | None"]]


class SeededRandom:
    """Linear-congruential generator returning floats in [0, 1].

    The multiply-add is evaluated in double precision before masking, which
    keeps sequences identical across every client that decodes a state code.
    """

    def __init__(self, seed: int) -> None:
        self.state = int(seed)

    def __call__(self) -> float:
        self.state = int(float(self.state) * 1103515245.0 + 12345.0) & 0x7FFFFFFF
        return self.state / 0x7FFFFFFF

    def index(self, n: int) -> int:
        """Uniform index in ``range(n)``."""
        return min(int(self() * n), n - 1)


def compute_color_score(image: ImageSprite, axis: str) -> float:
    """Sort key from the primary colour's OKLCH component."""
    if not image.colors:
        return 0.5 if axis == "lightness" else 0.0
    color = image.colors[0].color
    if axis == "lightness":
        return color.l
    if axis == "chroma":
        return color.c
    return color.h


def apply_entropy(
    sorted_images: Sequence[ImageSprite],
    entropy: float,
    rng: SeededRandom,
) -> list[ImageSprite]:
    """Perturb a sorted sequence with short-range swaps.

    Swaps stay within a window of ``5 + 15 * entropy`` positions, so colour
    "pockets" form instead of a full shuffle.
    """
    result = list(sorted_images)
    if entropy == 0 or not result:
        return result

    n = len(result)
    swap_count = math.floor(n * entropy * 0.3)
    window = math.floor(5 + entropy * 15)

    for _ in range(swap_count):
        idx = rng.index(n)
        offset = math.floor(rng() * window * 2) - window
        swap_idx = max(0, min(n - 1, idx + offset))
        result[idx], result[swap_idx] = result[swap_idx], result[idx]

    return result


def min_color_distance(
    a: Sequence[OKLCHColor],
    b: Sequence[OKLCHColor],
) -> float:
    """Closest OKLCH distance over all colour pairs of two images.

    Images sharing any similar colour count as good neighbours.
    """
    best = math.inf
    for ca in a:
        for cb in b:
            dist = color_distance_oklch(ca, cb)
            if dist < best:
                best = dist
    return 0.0 if best == math.inf else best


def neighbor_energy(
    grid: _MutableGrid,
    row: int,
    col: int,
    radius: int,
    square: bool,
    palettes: dict[int, tuple[OKLCHColor, ...]],
) -> float:
    """Mean colour distance from a cell to its occupied neighbours.

    *square* selects the full (2r+1)^2 neighbourhood; otherwise only the
    orthogonal arms of the plus are used. Lower is smoother.
    """
    cell = grid[row][col]
    if cell is None or not palettes[id(cell)]:
        return 0.0

    own = palettes[id(cell)]
    rows, cols = len(grid), len(grid[0])
    total = 0.0
    count = 0

    for dr in range(-radius, radius + 1):
        for dc in range(-radius, radius + 1):
            if dr == 0 and dc == 0:
                continue
            if not square and dr != 0 and dc != 0:
                continue
            nr, nc = row + dr, col + dc
            if 0 <= nr < rows and 0 <= nc < cols:
                neighbour = grid[nr][nc]
                if neighbour is not None and palettes[id(neighbour)]:
                    total += min_color_distance(own, palettes[id(neighbour)])
                    count += 1

    return total / count if count else 0.0


def optimize_local_smoothness(
    grid: _MutableGrid,
    radius: int,
    square: bool,
    rng: SeededRandom,
    iterations: int = ANNEALING_ITERATIONS,
    palettes: dict[int, tuple[OKLCHColor, ...]] | None = None,
) -> None:
    """Simulated annealing over pairwise cell swaps, in place.

    A swap that raises the local energy survives with a probability falling
    linearly from 50 % to 0 over the run.
    """
    if radius == 0:
        return
    if palettes is None:
        palettes = _palettes(img for row in grid for img in row if img is not None)

    positions = [
        (r, c)
        for r in range(len(grid))
        for c in range(len(grid[0]))
        if grid[r][c] is not None
    ]
    if len(positions) < 2:
        return

    logger.debug(
        "Smoothing  | cells=%d  radius=%d  square=%s  iterations=%d",
        len(positions), radius, square, iterations,
    )
    t0 = time.perf_counter()
    uphill = 0
    rejected = 0

    for i in range(iterations):
        idx1 = rng.index(len(positions))
        idx2 = rng.index(len(positions))
        if idx1 == idx2:
            continue

        r1, c1 = positions[idx1]
        r2, c2 = positions[idx2]

        current = (
            neighbor_energy(grid, r1, c1, radius, square, palettes)
            + neighbor_energy(grid, r2, c2, radius, square, palettes)
        )
        grid[r1][c1], grid[r2][c2] = grid[r2][c2], grid[r1][c1]
        new = (
            neighbor_energy(grid, r1, c1, radius, square, palettes)
            + neighbor_energy(grid, r2, c2, radius, square, palettes)
        )

        if new > current:
            temperature = 1 - i / iterations
            if rng() > temperature * 0.5:
                grid[r1][c1], grid[r2][c2] = grid[r2][c2], grid[r1][c1]
                rejected += 1
            else:
                uphill += 1

    logger.debug(
        "Smoothing done | uphill accepted=%d  rejected=%d  (%.2f s)",
        uphill, rejected, time.perf_counter() - t0,
    )


def _palettes(
    images: Iterable[ImageSprite],
    settings: ColorSettings | None = None,
) -> dict[int, tuple[OKLCHColor, ...]]:
    """Per-sprite colour lists used for neighbour distances."""
    out: dict[int, tuple[OKLCHColor, ...]] = {}
    for img in images:
        colors = img.colors
        if settings is not None:
            colors = derive_active_colors(colors, img.total_pixels, settings)
        out[id(img)] = tuple(c.color for c in colors)
    return out


def arrange_images(
    images: Sequence[ImageSprite],
    rows: int,
    cols: int,
    params: ArrangementParams,
    inclusion_mask: Sequence[bool] | None = None,
    iterations: int = ANNEALING_ITERATIONS,
    color_settings: ColorSettings | None = None,
) -> ArrangementState:
    """Lay images out on a *rows* x *cols* grid, sorted by colour.

    Pipeline: stable sort by score, grid/bucket partition, entropy shuffle,
    row-major placement, then optional local smoothing. One generator seeded
    from ``params.seed`` drives every random step, so identical inputs give
    identical layouts.

    Args:
        images:         The working set.
        rows:           Grid rows.
        cols:           Grid columns.
        params:         Sort axis, entropy, smoothing and seed.
        inclusion_mask: Per-image grid membership aligned to *images*; ignored
            when its length differs. Without it the first ``rows * cols``
            sorted images go to the grid.
        iterations:     Annealing iterations for smoothing.
        color_settings: Narrow each sprite to its active colours for
            neighbour distances (``None`` = all cached colours).

    Returns:
        A fresh :class:`ArrangementState`. Grid-bound images that do not fit
        are appended to the bucket.
    """
    t0 = time.perf_counter()
    rng = SeededRandom(params.seed)

    order = sorted(
        range(len(images)),
        key=lambda i: compute_color_score(images[i], params.sort_axis),
    )

    capacity = rows * cols
    if inclusion_mask is not None and len(inclusion_mask) == len(images):
        grid_bound = [images[i] for i in order if inclusion_mask[i]]
        bucket = [images[i] for i in order if not inclusion_mask[i]]
    else:
        grid_bound = [images[i] for i in order[:capacity]]
        bucket = [images[i] for i in order[capacity:]]

    shuffled = apply_entropy(grid_bound, params.entropy_factor, rng)
    if len(shuffled) > capacity:
        logger.warning(
            "%d included images exceed %dx%d grid; overflow moved to bucket",
            len(shuffled), rows, cols,
        )
        bucket.extend(shuffled[capacity:])
        shuffled = shuffled[:capacity]

    grid: _MutableGrid = [[None] * cols for _ in range(rows)]
    for idx, img in enumerate(shuffled):
        grid[idx // cols][idx % cols] = img

    if params.neighbor_radius > 0:
        optimize_local_smoothness(
            grid,
            params.neighbor_radius,
            params.square_smoothing,
            rng,
            iterations=iterations,
            palettes=_palettes(shuffled, color_settings),
        )

    logger.info(
        "Arranged %d images  | grid=%dx%d  placed=%d  bucket=%d  axis=%s  seed=%d  (%.2f s)",
        len(images), rows, cols, len(shuffled), len(bucket),
        params.sort_axis, params.seed, time.perf_counter() - t0,
    )
    return ArrangementState(
        grid=tuple(tuple(row) for row in grid),
        bucket=tuple(bucket),
        rows=rows,
        cols=cols,
    )


def image_at(state: ArrangementState, location: ImageLocation) -> ImageSprite | None:
    return state.image_at(location)


def _addressable(state: ArrangementState, loc: ImageLocation) -> bool:
    """Grid cells inside the grid, or non-negative bucket indices."""
    if isinstance(loc, GridLocation):
        return 0 <= loc.row < state.rows and 0 <= loc.col < state.cols
    return loc.index >= 0


def apply_swap(
    state: ArrangementState,
    source: ImageLocation,
    target: ImageLocation,
) -> ArrangementState:
    """Swap or move the images at two locations; returns a new state.

    Works for grid↔grid, grid↔bucket and bucket↔bucket. An empty or
    out-of-range location holds nothing, which turns the swap into a move:
    a bucket slot traded for an empty cell is removed, and an image sent to a
    bucket index past the end is appended. Grid locations outside the grid,
    negative bucket indices and swaps with nothing on either side leave
    the state unchanged.
    """
    if not (_addressable(state, source) and _addressable(state, target)):
        return state

    source_img = state.image_at(source)
    target_img = state.image_at(target)
    if source_img is None and target_img is None:
        return state

    grid = [list(row) for row in state.grid]
    bucket = list(state.bucket)

    if isinstance(source, BucketLocation) and isinstance(target, BucketLocation):
        if source_img is not None and target_img is not None:
            bucket[source.index], bucket[target.index] = target_img, source_img
        else:
            # one side is past the end: move the existing image to the end
            existing = source if source_img is not None else target
            bucket.append(bucket.pop(existing.index))
    else:
        for loc, img in ((source, target_img), (target, source_img)):
            if isinstance(loc, GridLocation):
                grid[loc.row][loc.col] = img
            elif img is None:
                if loc.index < len(bucket):
                    del bucket[loc.index]
            elif loc.index < len(bucket):
                bucket[loc.index] = img
            else:
                bucket.append(img)

    return ArrangementState(
        grid=tuple(tuple(row) for row in grid),
        bucket=tuple(bucket),
        rows=state.rows,
        cols=state.cols,
    )


def swap_in_grid(
    state: ArrangementState,
    a: GridLocation,
    b: GridLocation,
) -> ArrangementState:
    return apply_swap(state, a, b)


def replay_swaps(
    state: ArrangementState,
    swaps: Iterable[SwapRecord],
) -> ArrangementState:
    """Apply a swap log in order."""
    for swap in swaps:
        state = apply_swap(state, swap.source, swap.target)
    return state


def auto_grid_size(count: int) -> tuple[int, int]:
    """(rows, cols) for *count* images with a roughly 1.4:1 landscape shape."""
    if count <= 0:
        return 1, 1
    cols = math.ceil(math.sqrt(count * 1.4))
    rows = math.ceil(count / cols)
    return rows, cols
