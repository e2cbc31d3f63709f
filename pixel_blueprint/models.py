"""Value types shared by extraction, arrangement and the state codec.

Everything here is immutable: edits produce new values.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Union

import numpy as np


class RGBColor(NamedTuple):
    r: int
    g: int
    b: int


class LabColor(NamedTuple):
    l: float  # noqa: E741
    a: float
    b: float


class OKLCHColor(NamedTuple):
    l: float  # noqa: E741  lightness 0-1
    c: float  # chroma 0-0.4+
    h: float  # hue [0, 360)


class ColorPosition(str, Enum):
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"
    CENTER = "center"


@dataclass(frozen=True, eq=False)
class PixelSamples:
    """Decoded pixels of one image.

    Attributes:
        rgb:    (N, 3) uint8 colours.
        xy:     (N, 2) integer pixel coordinates (x, y).
        width:  Image width.
        height: Image height.
        alpha:  Optional (N,) uint8 alpha channel.
    """

    rgb: np.ndarray
    xy: np.ndarray
    width: int
    height: int
    alpha: np.ndarray | None = None

    def __len__(self) -> int:
        return len(self.rgb)


@dataclass(frozen=True)
class RankedColor:
    """One cluster colour of an image, ranked by pixel count."""

    color: OKLCHColor
    rgb: RGBColor
    position: ColorPosition
    pixel_count: int


NEUTRAL_GRAY = RankedColor(
    color=OKLCHColor(0.5, 0.0, 0.0),
    rgb=RGBColor(128, 128, 128),
    position=ColorPosition.CENTER,
    pixel_count=0,
)


@dataclass(frozen=True)
class ImageSprite:
    """A loaded image and its cached cluster colours.

    Attributes:
        filename:     Identity of the image; canonical order sorts on it.
        image_path:   Where the decoded bytes live (owned by the caller).
        colors:       Up to five ranked colours, descending pixel count.
        total_pixels: Qualifying pixel count after filtering.
    """

    filename: str
    image_path: str = ""
    colors: tuple[RankedColor, ...] = ()
    total_pixels: int = 0

    @property
    def primary(self) -> RankedColor | None:
        return self.colors[0] if self.colors else None


@dataclass(frozen=True)
class GridLocation:
    row: int
    col: int


@dataclass(frozen=True)
class BucketLocation:
    index: int


ImageLocation = Union[GridLocation, BucketLocation]


@dataclass(frozen=True)
class SwapRecord:
    """One user edit, replayed in order on top of the base arrangement."""

    source: ImageLocation
    target: ImageLocation


@dataclass(frozen=True)
class ColorOverride:
    """A replaced colour slot, addressed by canonical image index."""

    image_index: int
    color_slot: int
    rgb: RGBColor


class OverrideKey(NamedTuple):
    """Display-layer key for a colour override."""

    filename: str
    color_slot: int


Grid = tuple[tuple[Union[ImageSprite, None], ...], ...]


@dataclass(frozen=True)
class ArrangementState:
    """A grid of optional sprites plus the overflow bucket.

    Every image of the working set sits in exactly one slot.
    """

    grid: Grid
    bucket: tuple[ImageSprite, ...]
    rows: int
    cols: int

    def image_at(self, location: ImageLocation) -> ImageSprite | None:
        """Sprite at *location*, or ``None`` for empty / out-of-range slots."""
        if isinstance(location, GridLocation):
            if 0 <= location.row < self.rows and 0 <= location.col < self.cols:
                return self.grid[location.row][location.col]
            return None
        if 0 <= location.index < len(self.bucket):
            return self.bucket[location.index]
        return None

    def grid_images(self) -> list[ImageSprite]:
        """Occupied cells in row-major order."""
        return [img for row in self.grid for img in row if img is not None]


@dataclass(frozen=True)
class StateCodeData:
    seed: int
    inclusion_mask: tuple[bool, ...]
    swaps: tuple[SwapRecord, ...]
    color_overrides: tuple[ColorOverride, ...]
    hash_mismatch: bool
