"""Image decoding to pixel samples, decode caching, and sheet rendering."""

from __future__ import annotations

import hashlib
import io
import logging
from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from pixel_blueprint.models import ArrangementState, PixelSamples

logger = logging.getLogger(__name__)


def collect_images(folder: Path, extensions: frozenset[str]) -> list[Path]:
    """Image files directly inside *folder*, sorted by name."""
    if not folder.exists():
        return []
    return sorted(
        f for f in folder.iterdir()
        if f.is_file() and f.suffix.lower() in extensions
    )


def samples_from_image(img: Image.Image) -> PixelSamples:
    """Flatten a Pillow image into RGBA samples with (x, y) coordinates."""
    rgba = np.array(img.convert("RGBA"), dtype=np.uint8)
    h, w = rgba.shape[:2]
    ys, xs = np.divmod(np.arange(h * w), w)
    return PixelSamples(
        rgb=rgba[..., :3].reshape(-1, 3),
        xy=np.stack([xs, ys], axis=1),
        width=w,
        height=h,
        alpha=rgba[..., 3].reshape(-1),
    )


def load_pixel_samples(path: str | Path) -> PixelSamples:
    """Decode an image file into pixel samples.

    Raises:
        OSError: The file is missing or not a decodable image.
    """
    with Image.open(path) as img:
        return samples_from_image(img)


class DecodedImageCache:
    """Content-addressed cache of decoded images.

    Files are keyed by the SHA-256 of their bytes, so the same picture is
    decoded once however many paths point at it.
    """

    def __init__(self) -> None:
        self._entries: dict[str, PixelSamples] = {}
        self.decode_count = 0

    def __len__(self) -> int:
        return len(self._entries)

    def load(self, path: str | Path) -> PixelSamples:
        data = Path(path).read_bytes()
        digest = hashlib.sha256(data).hexdigest()
        cached = self._entries.get(digest)
        if cached is not None:
            logger.debug("Decode cache hit: %s (%s)", path, digest[:12])
            return cached

        with Image.open(io.BytesIO(data)) as img:
            samples = samples_from_image(img)
        self.decode_count += 1
        self._entries[digest] = samples
        logger.debug("Decoded %s  %dx%d", path, samples.width, samples.height)
        return samples


def render_sheet(
    state: ArrangementState,
    output_path: str | Path,
    cell_size: int = 48,
    mode: str = "sprites",
) -> None:
    """Render the grid as an image, one cell per sprite.

    *mode* ``"sprites"`` pastes thumbnails of the source images;
    ``"colors"`` fills each cell with its primary colour.
    """
    if mode not in ("sprites", "colors"):
        msg = f"Unknown render mode '{mode}'. Available: colors, sprites"
        raise ValueError(msg)

    gap = 2
    label_width = 36
    width = label_width + state.cols * (cell_size + gap)
    height = state.rows * (cell_size + gap)

    canvas = Image.new("RGB", (max(width, 1), max(height, 1)), (30, 30, 30))
    draw = ImageDraw.Draw(canvas)

    try:
        font = ImageFont.truetype(
            "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf", 12,
        )
    except OSError:
        font = ImageFont.load_default()

    for r, row in enumerate(state.grid):
        y = r * (cell_size + gap)
        draw.text((4, y + cell_size // 2 - 6), str(r + 1), fill=(160, 160, 160), font=font)
        for c, sprite in enumerate(row):
            x = label_width + c * (cell_size + gap)
            box = (x, y, x + cell_size - 1, y + cell_size - 1)
            if sprite is None:
                draw.rectangle(box, fill=(45, 45, 45))
                continue

            if mode == "colors" or not sprite.image_path:
                fill = tuple(sprite.primary.rgb) if sprite.primary else (128, 128, 128)
                draw.rectangle(box, fill=fill)
                continue

            with Image.open(sprite.image_path) as img:
                thumb = img.convert("RGBA").resize(
                    (cell_size, cell_size), Image.LANCZOS,
                )
            canvas.paste(thumb, (x, y), thumb)

    canvas.save(output_path)
