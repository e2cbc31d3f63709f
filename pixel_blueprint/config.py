"""Centralised configuration via frozen dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

# Fixed pass counts (no convergence test); override per call if needed.
KMEANS_CLUSTERS = 5
KMEANS_ITERATIONS = 20
ANNEALING_ITERATIONS = 2000

# Largest seed that fits the four base-36 characters of a state code
MAX_SEED = 36**4 - 1

SORT_AXES = ("hue", "lightness", "chroma")


@dataclass(frozen=True)
class ArrangementParams:
    """User-driven arrangement parameters.

    Attributes:
        sort_axis:        OKLCH component used to order images.
        entropy_factor:   0 = strict sort, 1 = strongest local shuffling.
        neighbor_radius:  Smoothing neighbourhood radius (0 disables it).
        square_smoothing: Use the full square neighbourhood instead of a plus.
        seed:             Seed for the linear-congruential generator.
    """

    sort_axis: str = "hue"
    entropy_factor: float = 0.0
    neighbor_radius: int = 0
    square_smoothing: bool = False
    seed: int = 0

    def __post_init__(self) -> None:
        if self.sort_axis not in SORT_AXES:
            available = ", ".join(SORT_AXES)
            msg = f"Unknown sort axis '{self.sort_axis}'. Available: {available}"
            raise ValueError(msg)
        if not 0.0 <= self.entropy_factor <= 1.0:
            msg = f"entropy_factor must be in [0, 1], got {self.entropy_factor}"
            raise ValueError(msg)
        if self.neighbor_radius < 0:
            msg = f"neighbor_radius must be >= 0, got {self.neighbor_radius}"
            raise ValueError(msg)
        if not 0 <= self.seed <= MAX_SEED:
            msg = f"seed must be in [0, {MAX_SEED}], got {self.seed}"
            raise ValueError(msg)


@dataclass(frozen=True)
class ColorSettings:
    """How many of the cached cluster colours a view treats as active."""

    num_colors: int = 3
    smart_detection: bool = False
    smart_threshold: float = 0.1  # share of qualifying pixels

    def __post_init__(self) -> None:
        if not 1 <= self.num_colors <= KMEANS_CLUSTERS:
            msg = f"num_colors must be in [1, {KMEANS_CLUSTERS}], got {self.num_colors}"
            raise ValueError(msg)
        if not 0.0 <= self.smart_threshold <= 1.0:
            msg = f"smart_threshold must be in [0, 1], got {self.smart_threshold}"
            raise ValueError(msg)


@dataclass(frozen=True)
class BlueprintConfig:
    """Defaults for a command-line run.

    Attributes:
        rows:         Grid rows (None = sized from the image count).
        cols:         Grid columns (None = sized from the image count).
        cell_size:    Pixel size of one cell in a rendered sheet.
        extraction_seed: k-means seed, fixed so colours (and therefore
                      layouts restored from a state code) are reproducible.
        input_dir:    Folder to scan for source images.
        output_dir:   Folder for rendered sheets.
    """

    rows: int | None = None
    cols: int | None = None
    cell_size: int = 48
    extraction_seed: int | None = 0

    input_dir: Path = field(default_factory=lambda: Path("images"))
    output_dir: Path = field(default_factory=lambda: Path("output"))

    SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(
        {".jpg", ".jpeg", ".png", ".bmp", ".gif", ".tiff", ".tif", ".webp"}
    )
