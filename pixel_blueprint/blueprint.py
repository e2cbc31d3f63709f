"""Plain-text blueprints of an arrangement, for painting from."""

from __future__ import annotations

import re

from pixel_blueprint.models import ArrangementState

_LAYER_RE = re.compile(r"Layer-(\d+)-(\d+)\.png")
_EXT_RE = re.compile(r"\.[^.]+$")
EMPTY_CELL = "---"


def display_name(filename: str) -> str:
    """Short label: ``Pasted Layer-01-05.png`` → ``1-5``, else the stem."""
    match = _LAYER_RE.search(filename)
    if match:
        return f"{int(match.group(1))}-{int(match.group(2))}"
    return _EXT_RE.sub("", filename)


def blueprint_text(state: ArrangementState, compact: bool = False) -> str:
    """One line per grid row.

    The full form reads ``Row 1: a | b | ---``; the compact form separates
    cells with single spaces and drops the row labels.
    """
    lines = []
    for r, row in enumerate(state.grid):
        names = [display_name(img.filename) if img else EMPTY_CELL for img in row]
        if compact:
            lines.append(" ".join(names))
        else:
            lines.append(f"Row {r + 1}: " + " | ".join(names))
    return "\n".join(lines)
