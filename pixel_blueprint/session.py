"""Host-side session state driven through pure transitions.

A :class:`Session` bundles everything a front end needs to show and share
an arrangement. Each function returns a new session; nothing is mutated.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace

from pixel_blueprint.arrangement import apply_swap, arrange_images, auto_grid_size, replay_swaps
from pixel_blueprint.color_utils import rgb_to_oklch
from pixel_blueprint.config import ArrangementParams, ColorSettings
from pixel_blueprint.extraction import derive_active_colors
from pixel_blueprint.models import (
    ArrangementState,
    ColorOverride,
    ImageLocation,
    ImageSprite,
    OverrideKey,
    RankedColor,
    RGBColor,
    SwapRecord,
)
from pixel_blueprint.state_code import (
    canonical_order,
    decode_state_code,
    encode_state_code,
    random_seed,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    """Images (canonical order), layout inputs and the user's edits.

    Attributes:
        images:          Working set sorted by filename.
        rows:            Grid rows.
        cols:            Grid columns.
        params:          Arrangement parameters, including the seed.
        color_settings:  Active-colour selection for display and smoothing.
        inclusion_mask:  Grid membership of the base arrangement, aligned
            to ``images``.
        swaps:           Swap log on top of the base arrangement.
        color_overrides: Replaced colours keyed by (filename, slot).
        arrangement:     Current layout.
        hash_mismatch:   The last applied code was made for another image set.
    """

    images: tuple[ImageSprite, ...]
    rows: int
    cols: int
    params: ArrangementParams
    color_settings: ColorSettings
    inclusion_mask: tuple[bool, ...]
    swaps: tuple[SwapRecord, ...]
    arrangement: ArrangementState
    color_overrides: Mapping[OverrideKey, RGBColor] = field(default_factory=dict)
    hash_mismatch: bool = False

    @property
    def filenames(self) -> list[str]:
        return [img.filename for img in self.images]


def _default_mask(count: int, capacity: int) -> tuple[bool, ...]:
    return tuple(i < capacity for i in range(count))


def start_session(
    images: Sequence[ImageSprite],
    rows: int | None = None,
    cols: int | None = None,
    params: ArrangementParams | None = None,
    color_settings: ColorSettings | None = None,
) -> Session:
    """Build the first arrangement for *images*.

    Without *rows*/*cols* the grid is sized from the image count.
    """
    ordered = tuple(images[i] for i in canonical_order([img.filename for img in images]))
    if rows is None or cols is None:
        rows, cols = auto_grid_size(len(ordered))
    params = params or ArrangementParams()
    color_settings = color_settings or ColorSettings()

    mask = _default_mask(len(ordered), rows * cols)
    arrangement = arrange_images(
        ordered, rows, cols, params, mask, color_settings=color_settings,
    )
    return Session(
        images=ordered,
        rows=rows,
        cols=cols,
        params=params,
        color_settings=color_settings,
        inclusion_mask=mask,
        swaps=(),
        arrangement=arrangement,
    )


def rearrange(
    session: Session,
    params: ArrangementParams | None = None,
    rows: int | None = None,
    cols: int | None = None,
) -> Session:
    """Fresh base arrangement: the mask resets and the swap log clears."""
    params = params or session.params
    rows = session.rows if rows is None else rows
    cols = session.cols if cols is None else cols

    mask = _default_mask(len(session.images), rows * cols)
    arrangement = arrange_images(
        session.images, rows, cols, params, mask,
        color_settings=session.color_settings,
    )
    return replace(
        session,
        rows=rows,
        cols=cols,
        params=params,
        inclusion_mask=mask,
        swaps=(),
        arrangement=arrangement,
    )


def regenerate(session: Session, seed: int | None = None) -> Session:
    """Rearrange with a new (random unless given) seed."""
    if seed is None:
        seed = random_seed()
    logger.info("Regenerating with seed %d", seed)
    new = rearrange(session, params=replace(session.params, seed=seed))
    return replace(new, hash_mismatch=False)


def swap(session: Session, source: ImageLocation, target: ImageLocation) -> Session:
    """Apply and record one edit.

    The inclusion mask keeps describing the base arrangement, so a state
    code (mask + swap log) replays to exactly this layout.
    """
    return replace(
        session,
        arrangement=apply_swap(session.arrangement, source, target),
        swaps=(*session.swaps, SwapRecord(source, target)),
    )


def membership_mask(session: Session) -> tuple[bool, ...]:
    """Which images currently sit on the grid, aligned to ``images``."""
    on_grid = {id(img) for img in session.arrangement.grid_images()}
    return tuple(id(img) in on_grid for img in session.images)


def set_color_override(
    session: Session,
    filename: str,
    color_slot: int,
    rgb: RGBColor,
) -> Session:
    overrides = dict(session.color_overrides)
    overrides[OverrideKey(filename, color_slot)] = rgb
    return replace(session, color_overrides=overrides)


def reset_color_overrides(session: Session) -> Session:
    return replace(session, color_overrides={})


def effective_colors(session: Session, sprite: ImageSprite) -> tuple[RankedColor, ...]:
    """Active colours of *sprite* with any overrides applied."""
    active = derive_active_colors(sprite.colors, sprite.total_pixels, session.color_settings)
    out = []
    for slot, ranked in enumerate(active):
        rgb = session.color_overrides.get(OverrideKey(sprite.filename, slot))
        if rgb is not None:
            ranked = replace(ranked, rgb=rgb, color=rgb_to_oklch(rgb))
        out.append(ranked)
    return tuple(out)


def state_code(session: Session) -> str:
    """Shareable code for the current session ("" for an empty set)."""
    if not session.images:
        return ""
    index = {name: i for i, name in enumerate(session.filenames)}
    overrides = [
        ColorOverride(index[key.filename], key.color_slot, rgb)
        for key, rgb in session.color_overrides.items()
        if key.filename in index
    ]
    return encode_state_code(
        session.filenames,
        session.params.seed,
        session.inclusion_mask,
        session.swaps,
        overrides,
    )


def apply_state_code(session: Session, code: str) -> Session | None:
    """Restore seed, mask, swaps and overrides from *code*.

    Returns ``None`` for a structurally invalid code. A code made for a
    different image set still applies; ``hash_mismatch`` flags it.
    """
    decoded = decode_state_code(code, session.filenames)
    if decoded is None:
        logger.warning("Ignoring invalid state code %r", code)
        return None
    if decoded.hash_mismatch:
        logger.warning("State code was made for a different image set")

    params = replace(session.params, seed=decoded.seed)
    base = arrange_images(
        session.images, session.rows, session.cols, params,
        decoded.inclusion_mask, color_settings=session.color_settings,
    )
    overrides = {
        OverrideKey(session.images[o.image_index].filename, o.color_slot): o.rgb
        for o in decoded.color_overrides
        if o.image_index < len(session.images)
    }
    return replace(
        session,
        params=params,
        inclusion_mask=decoded.inclusion_mask,
        swaps=decoded.swaps,
        arrangement=replay_swaps(base, decoded.swaps),
        color_overrides=overrides,
        hash_mismatch=decoded.hash_mismatch,
    )
