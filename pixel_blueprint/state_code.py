"""Compact, shareable state codes.

A code has five colon-separated fields::

    <seed4>:<inclusion>:<swaps>:<colorOverrides>:<imageSetHash>

- ``seed4``: zero-padded 4-character base-36 seed.
- ``inclusion``: URL-safe unpadded base64 of an MSB-first bitmap, one bit
  per image in canonical (sorted filename) order; empty means all included.
- ``swaps``: base64 of 6 bytes per swap, ``[type, hi, lo] * 2``. Type 0 is a
  bucket index (15 bits), type 1 a grid cell (7-bit row, 8-bit column).
- ``colorOverrides``: base64 of 6 bytes per entry, ``[idx_hi, idx_lo, slot,
  r, g, b]`` with the index in canonical order.
- ``imageSetHash``: base-36 DJB2-XOR hash of the sorted filenames joined by
  ``|``, used only to detect a changed image set.

Decoding never raises: a structurally invalid code yields ``None`` and a
corrupt payload field decodes as empty.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from collections.abc import Sequence

import numpy as np

from pixel_blueprint.config import MAX_SEED
from pixel_blueprint.models import (
    BucketLocation,
    ColorOverride,
    GridLocation,
    ImageLocation,
    RGBColor,
    StateCodeData,
    SwapRecord,
)

logger = logging.getLogger(__name__)

MAX_GRID_ROW = 0x7F
MAX_GRID_COL = 0xFF
MAX_BUCKET_INDEX = 0x7FFF

_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"
_BASE36_RE = re.compile(r"[0-9a-z]+", re.IGNORECASE | re.ASCII)


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_DIGITS[rem])
    return sign + "".join(reversed(digits))


def seed_to_string(seed: int) -> str:
    return _to_base36(seed).rjust(4, "0")


def string_to_seed(text: str) -> int | None:
    """Parse a base-36 seed; ``None`` if *text* is not base-36."""
    if not _BASE36_RE.fullmatch(text):
        return None
    return int(text, 36)


def random_seed(rng: np.random.Generator | None = None) -> int:
    """A uniformly random seed that fits in four base-36 characters."""
    if rng is None:
        rng = np.random.default_rng()
    return int(rng.integers(0, MAX_SEED + 1))


def _utf16_key(name: str) -> bytes:
    # UTF-16 code-unit order, matching browser string sorting
    return name.encode("utf-16-be", "surrogatepass")


def canonical_order(filenames: Sequence[str]) -> list[int]:
    """Indices of *filenames* in canonical (sorted) order."""
    return sorted(range(len(filenames)), key=lambda i: _utf16_key(filenames[i]))


def hash_image_set(filenames: Sequence[str]) -> str:
    """Base-36 DJB2-XOR hash of the sorted, ``|``-joined filenames."""
    combined = "|".join(sorted(filenames, key=_utf16_key))
    data = combined.encode("utf-16-le", "surrogatepass")
    h = 5381
    for i in range(0, len(data), 2):
        code = data[i] | (data[i + 1] << 8)
        h = (((h << 5) + h) ^ code) & 0xFFFFFFFF
    return _to_base36(h)


def pack_bits(bits: Sequence[bool]) -> bytes:
    """Pack booleans MSB-first into ``ceil(len / 8)`` bytes."""
    out = bytearray((len(bits) + 7) // 8)
    for i, bit in enumerate(bits):
        if bit:
            out[i // 8] |= 1 << (7 - i % 8)
    return bytes(out)


def unpack_bits(data: bytes, count: int) -> list[bool]:
    """Read *count* MSB-first bits; bits past the data are ``False``."""
    return [
        i // 8 < len(data) and bool(data[i // 8] & (1 << (7 - i % 8)))
        for i in range(count)
    ]


def _encode_location(loc: ImageLocation) -> tuple[int, int]:
    if isinstance(loc, BucketLocation):
        if not 0 <= loc.index <= MAX_BUCKET_INDEX:
            logger.warning("Bucket index %d exceeds 15 bits; truncated", loc.index)
        return 0, loc.index & MAX_BUCKET_INDEX
    if not (0 <= loc.row <= MAX_GRID_ROW and 0 <= loc.col <= MAX_GRID_COL):
        logger.warning("Grid cell (%d, %d) exceeds 7/8 bits; truncated", loc.row, loc.col)
    return 1, ((loc.row & MAX_GRID_ROW) << 8) | (loc.col & MAX_GRID_COL)


def _decode_location(kind: int, value: int) -> ImageLocation:
    if kind == 0:
        return BucketLocation(index=value)
    return GridLocation(row=(value >> 8) & MAX_GRID_ROW, col=value & MAX_GRID_COL)


def encode_swaps(swaps: Sequence[SwapRecord]) -> bytes:
    out = bytearray()
    for swap in swaps:
        for loc in (swap.source, swap.target):
            kind, value = _encode_location(loc)
            out += bytes((kind, (value >> 8) & 0xFF, value & 0xFF))
    return bytes(out)


def decode_swaps(data: bytes) -> list[SwapRecord]:
    """Decode 6-byte swap records; a trailing partial record is ignored."""
    swaps = []
    for i in range(0, len(data) - 5, 6):
        swaps.append(SwapRecord(
            source=_decode_location(data[i], (data[i + 1] << 8) | data[i + 2]),
            target=_decode_location(data[i + 3], (data[i + 4] << 8) | data[i + 5]),
        ))
    return swaps


def encode_color_overrides(overrides: Sequence[ColorOverride]) -> bytes:
    out = bytearray()
    for o in overrides:
        out += bytes((
            (o.image_index >> 8) & 0xFF,
            o.image_index & 0xFF,
            o.color_slot & 0xFF,
            o.rgb.r & 0xFF,
            o.rgb.g & 0xFF,
            o.rgb.b & 0xFF,
        ))
    return bytes(out)


def decode_color_overrides(data: bytes) -> list[ColorOverride]:
    overrides = []
    for i in range(0, len(data) - 5, 6):
        overrides.append(ColorOverride(
            image_index=(data[i] << 8) | data[i + 1],
            color_slot=data[i + 2],
            rgb=RGBColor(data[i + 3], data[i + 4], data[i + 5]),
        ))
    return overrides


def to_base64(data: bytes) -> str:
    """URL-safe base64 without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def from_base64(text: str) -> bytes:
    """Inverse of :func:`to_base64`; malformed input decodes to ``b""``."""
    if not text:
        return b""
    padded = text + "=" * (-len(text) % 4)
    try:
        return base64.b64decode(padded, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError):
        logger.debug("Undecodable base64 field %r treated as empty", text)
        return b""


def encode_state_code(
    filenames: Sequence[str],
    seed: int,
    inclusion_mask: Sequence[bool],
    swaps: Sequence[SwapRecord],
    color_overrides: Sequence[ColorOverride] = (),
) -> str:
    """Serialise an arrangement's edit history.

    Never raises. A mask of the wrong length is padded with ``True`` or
    truncated, and a seed outside ``[0, MAX_SEED]`` wraps into range, so the
    result always decodes.

    Args:
        filenames:       The working set, in any order.
        seed:            Arrangement seed in ``[0, MAX_SEED]``.
        inclusion_mask:  Grid membership aligned to *filenames*.
        swaps:           Swap log applied after the base arrangement.
        color_overrides: Overrides addressed by canonical image index.
    """
    count = len(filenames)
    mask = list(inclusion_mask[:count])
    if len(inclusion_mask) != count:
        logger.warning(
            "inclusion_mask has %d entries for %d filenames; resized",
            len(inclusion_mask), count,
        )
        mask += [True] * (count - len(mask))

    if not 0 <= seed <= MAX_SEED:
        logger.warning("Seed %d outside [0, %d]; wrapped", seed, MAX_SEED)
        seed %= MAX_SEED + 1

    if all(mask):
        inclusion = ""
    else:
        inclusion = to_base64(pack_bits([mask[i] for i in canonical_order(filenames)]))

    return ":".join((
        seed_to_string(seed),
        inclusion,
        to_base64(encode_swaps(swaps)),
        to_base64(encode_color_overrides(color_overrides)),
        hash_image_set(filenames),
    ))


def decode_state_code(code: str, filenames: Sequence[str]) -> StateCodeData | None:
    """Parse a state code against the current working set.

    The inclusion mask comes back aligned to *filenames*. A hash that does
    not match *filenames* is reported via ``hash_mismatch``, not rejected.

    Returns:
        The decoded data, or ``None`` when the field count or seed is invalid.
    """
    if not isinstance(code, str):
        return None
    parts = code.strip().split(":")
    if len(parts) != 5:
        return None

    seed = string_to_seed(parts[0])
    if seed is None or not 0 <= seed <= MAX_SEED:
        return None

    if parts[1]:
        bits = unpack_bits(from_base64(parts[1]), len(filenames))
        mask = [True] * len(filenames)
        for pos, idx in enumerate(canonical_order(filenames)):
            mask[idx] = bits[pos]
    else:
        mask = [True] * len(filenames)

    return StateCodeData(
        seed=seed,
        inclusion_mask=tuple(mask),
        swaps=tuple(decode_swaps(from_base64(parts[2]))),
        color_overrides=tuple(decode_color_overrides(from_base64(parts[3]))),
        hash_mismatch=parts[4] != hash_image_set(filenames),
    )


def is_valid_state_code(code: str) -> bool:
    """Cheap structural check: five fields and a base-36 seed in range."""
    if not isinstance(code, str):
        return False
    parts = code.strip().split(":")
    if len(parts) != 5:
        return False
    seed = string_to_seed(parts[0])
    return seed is not None and 0 <= seed <= MAX_SEED
