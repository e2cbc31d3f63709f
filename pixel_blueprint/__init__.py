"""
Pixel Blueprint
===============

Turn a collection of images into a colour-organised grid: a blueprint for
painting or assembling a mosaic by hand.

- **Colour extraction**: k-means++ clustering of each image's pixels
- **Arrangement**: seeded colour sort with local shuffling and smoothing
- **State codes**: compact tokens to share and restore an arrangement
"""

__version__ = "1.0.0"

from pixel_blueprint.arrangement import apply_swap, arrange_images, auto_grid_size
from pixel_blueprint.blueprint import blueprint_text, display_name
from pixel_blueprint.color_utils import (
    color_distance_lab,
    color_distance_oklch,
    hex_to_rgb,
    rgb_to_hex,
    rgb_to_lab,
    rgb_to_oklch,
)
from pixel_blueprint.config import ArrangementParams, BlueprintConfig, ColorSettings
from pixel_blueprint.extraction import derive_active_colors, extract_colors, extract_sprite
from pixel_blueprint.image_io import DecodedImageCache, load_pixel_samples, render_sheet
from pixel_blueprint.models import (
    ArrangementState,
    BucketLocation,
    GridLocation,
    ImageSprite,
    RankedColor,
    SwapRecord,
)
from pixel_blueprint.state_code import (
    decode_state_code,
    encode_state_code,
    is_valid_state_code,
)

__all__ = [
    "ArrangementParams",
    "ArrangementState",
    "BlueprintConfig",
    "BucketLocation",
    "ColorSettings",
    "DecodedImageCache",
    "GridLocation",
    "ImageSprite",
    "RankedColor",
    "SwapRecord",
    "apply_swap",
    "arrange_images",
    "auto_grid_size",
    "blueprint_text",
    "color_distance_lab",
    "color_distance_oklch",
    "decode_state_code",
    "derive_active_colors",
    "display_name",
    "encode_state_code",
    "extract_colors",
    "extract_sprite",
    "hex_to_rgb",
    "is_valid_state_code",
    "load_pixel_samples",
    "render_sheet",
    "rgb_to_hex",
    "rgb_to_lab",
    "rgb_to_oklch",
]
