"""Rich command-line interface powered by Typer."""

from __future__ import annotations

import logging
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from pixel_blueprint.blueprint import blueprint_text
from pixel_blueprint.color_utils import rgb_to_hex
from pixel_blueprint.config import ArrangementParams, BlueprintConfig, ColorSettings
from pixel_blueprint.extraction import derive_active_colors, extract_sprite
from pixel_blueprint.image_io import DecodedImageCache, collect_images, render_sheet
from pixel_blueprint.models import BucketLocation, GridLocation
from pixel_blueprint.session import apply_state_code, start_session, state_code
from pixel_blueprint.state_code import MAX_SEED, decode_state_code, random_seed

app = typer.Typer(
    name="pixel-blueprint",
    help="Arrange a folder of images into a colour-sorted painting blueprint.",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=True)],
    )


def _color_settings(num_colors: int, smart: bool, threshold: float) -> ColorSettings:
    try:
        return ColorSettings(
            num_colors=num_colors, smart_detection=smart, smart_threshold=threshold,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


# Defaults come from BlueprintConfig - single source of truth
_DEFAULTS = BlueprintConfig()


# -- arrange command ---------------------------------------------------

@app.command()
def arrange(
    input_dir: Path = typer.Option(
        _DEFAULTS.input_dir, "--input", "-i", help="Folder with source images",
    ),
    rows: int | None = typer.Option(
        _DEFAULTS.rows, "--rows", "-r", min=1, max=127,
        help="Grid rows (default: sized from image count)",
    ),
    cols: int | None = typer.Option(
        _DEFAULTS.cols, "--cols", "-c", min=1, max=255,
        help="Grid columns (default: sized from image count)",
    ),
    sort_axis: str = typer.Option(
        "hue", "--sort", help="'hue', 'lightness' or 'chroma'",
    ),
    entropy: float = typer.Option(
        0.0, "--entropy", "-e", min=0.0, max=1.0,
        help="Local shuffling strength (0 = strict sort)",
    ),
    radius: int = typer.Option(
        0, "--radius", min=0, help="Smoothing neighbourhood radius (0 = off)",
    ),
    square: bool = typer.Option(
        False, "--square/--plus", help="Square or plus-shaped neighbourhood",
    ),
    seed: int | None = typer.Option(
        None, "--seed", "-s", min=0, max=MAX_SEED, help="Arrangement seed (None = random)",
    ),
    code: str | None = typer.Option(
        None, "--code", help="Restore a previously shared state code",
    ),
    num_colors: int = typer.Option(3, "--colors", "-n", help="Active colours per image (1-5)"),
    smart: bool = typer.Option(
        False, "--smart/--fixed", help="Pick colours by pixel share instead of count",
    ),
    smart_threshold: float = typer.Option(
        0.1, "--smart-threshold", help="Minimum pixel share in smart mode",
    ),
    render: Path | None = typer.Option(
        None, "--render", "-o", help="Save the arranged grid as an image",
    ),
    render_mode: str = typer.Option(
        "sprites", "--render-mode", help="'sprites' (thumbnails) or 'colors' (swatches)",
    ),
    cell_size: int = typer.Option(_DEFAULTS.cell_size, "--cell-size", min=4),
    compact: bool = typer.Option(False, "--compact", help="Compact blueprint text"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Extract colours from every image in INPUT_DIR and print a blueprint."""
    _setup_logging(verbose)
    logger = logging.getLogger("pixel_blueprint")

    settings = _color_settings(num_colors, smart, smart_threshold)
    try:
        params = ArrangementParams(
            sort_axis=sort_axis,
            entropy_factor=entropy,
            neighbor_radius=radius,
            square_smoothing=square,
            seed=random_seed() if seed is None else seed,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    paths = collect_images(input_dir, _DEFAULTS.SUPPORTED_EXTENSIONS)
    if not paths:
        console.print(f"\n[yellow]No images found in {input_dir}/[/yellow]")
        console.print("Place .png / .jpg / ... files there and re-run.\n")
        raise typer.Exit(0)

    cache = DecodedImageCache()
    sprites = []
    t0 = time.perf_counter()
    with console.status(f"Extracting colours from {len(paths)} images ..."):
        for path in paths:
            try:
                sprites.append(
                    extract_sprite(path, seed=_DEFAULTS.extraction_seed, cache=cache),
                )
            except OSError as exc:
                logger.error("Failed to process %s: %s", path.name, exc)
    logger.info(
        "Extracted %d images (%d decoded)  (%.1f s)",
        len(sprites), cache.decode_count, time.perf_counter() - t0,
    )

    session = start_session(sprites, rows, cols, params, settings)
    if code:
        restored = apply_state_code(session, code)
        if restored is None:
            console.print(f"[red]Invalid state code:[/red] {code}")
            raise typer.Exit(1)
        if restored.hash_mismatch:
            console.print("[yellow]Warning: code was made for a different image set[/yellow]")
        session = restored

    state = session.arrangement
    console.print(Panel.fit(
        f"[bold]PIXEL BLUEPRINT[/bold]\n"
        f"Grid: {state.rows}x{state.cols}  |  Images: {len(sprites)}"
        f"  |  Bucket: {len(state.bucket)}\n"
        f"Sort: {session.params.sort_axis}  |  Entropy: {session.params.entropy_factor}"
        f"  |  Radius: {session.params.neighbor_radius}"
        f"  |  Seed: {session.params.seed}",
        border_style="cyan",
    ))
    console.print(blueprint_text(state, compact=compact), highlight=False)

    if state.bucket:
        console.rule("[bold]Bucket[/bold]")
        console.print(", ".join(img.filename for img in state.bucket), highlight=False)

    if render is not None:
        render.parent.mkdir(parents=True, exist_ok=True)
        render_sheet(state, render, cell_size=cell_size, mode=render_mode)
        console.print(f"[green]✓[/green] Sheet saved to {render}")

    console.print(Panel.fit(
        f"[bold green]STATE CODE[/bold green]  {state_code(session)}",
        border_style="green",
    ))


# -- colors command ----------------------------------------------------

@app.command()
def colors(
    image: Path = typer.Argument(..., help="Path to an image"),
    num_colors: int = typer.Option(5, "--colors", "-n"),
    smart: bool = typer.Option(False, "--smart/--fixed"),
    smart_threshold: float = typer.Option(0.1, "--smart-threshold"),
    seed: int | None = typer.Option(_DEFAULTS.extraction_seed, "--seed", "-s"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Show the ranked representative colours of one image."""
    _setup_logging(verbose)
    settings = _color_settings(num_colors, smart, smart_threshold)

    sprite = extract_sprite(image, seed=seed)
    active = derive_active_colors(sprite.colors, sprite.total_pixels, settings)

    table = Table(title=f"{sprite.filename}  ({sprite.total_pixels:,} qualifying px)")
    table.add_column("#", justify="right")
    table.add_column("Swatch")
    table.add_column("Hex")
    table.add_column("OKLCH")
    table.add_column("Position")
    table.add_column("Pixels", justify="right")
    for i, ranked in enumerate(active, 1):
        hex_code = rgb_to_hex(ranked.rgb)
        c = ranked.color
        table.add_row(
            str(i),
            f"[on {hex_code}]      [/]",
            hex_code,
            f"{c.l:.3f} {c.c:.3f} {c.h:.1f}",
            ranked.position.value,
            f"{ranked.pixel_count:,}",
        )
    console.print(table)


# -- inspect command ---------------------------------------------------

@app.command()
def inspect(
    code: str = typer.Argument(..., help="State code to decode"),
    input_dir: Path | None = typer.Option(
        None, "--input", "-i", help="Image folder to check the code against",
    ),
) -> None:
    """Decode a state code and list its contents."""
    filenames = []
    if input_dir is not None:
        filenames = [p.name for p in collect_images(input_dir, _DEFAULTS.SUPPORTED_EXTENSIONS)]

    data = decode_state_code(code, filenames)
    if data is None:
        console.print(f"[red]Invalid state code:[/red] {code}")
        raise typer.Exit(1)

    console.print(f"Seed: [bold]{data.seed}[/bold]")
    if filenames:
        excluded = [n for n, on in zip(filenames, data.inclusion_mask, strict=True) if not on]
        console.print(f"Excluded from grid: {len(excluded)}")
        status = "[yellow]mismatch[/yellow]" if data.hash_mismatch else "[green]match[/green]"
        console.print(f"Image set: {status}")

    def _fmt(loc: GridLocation | BucketLocation) -> str:
        if isinstance(loc, GridLocation):
            return f"grid({loc.row},{loc.col})"
        return f"bucket[{loc.index}]"

    console.rule(f"Swaps ({len(data.swaps)})")
    for n, swap in enumerate(data.swaps, 1):
        console.print(f"{n:3d}. {_fmt(swap.source)} ⇄ {_fmt(swap.target)}", highlight=False)

    console.rule(f"Colour overrides ({len(data.color_overrides)})")
    for o in data.color_overrides:
        console.print(
            f"  image {o.image_index} slot {o.color_slot} → {rgb_to_hex(o.rgb)}",
            highlight=False,
        )


if __name__ == "__main__":
    app()
