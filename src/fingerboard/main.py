"""fingerboard CLI entry point.

The Streamlit app lives in ``app/streamlit_app.py``; this module runs the
same pipeline from the command line and writes the JSON result.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from fingerboard import __version__
from fingerboard.config import setup_logging
from fingerboard.fingering_engine.annotate import annotate, collect
from fingerboard.fingering_engine.models import AnalysisResult

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _overrides(scale: float | None) -> dict[str, float]:
    return {"scale": scale} if scale is not None else {}


def _report(result: AnalysisResult, show_logs: bool) -> None:
    """Print a summary of *result*; exit with status 1 on failure."""
    if not result.success:
        click.echo(f"  ERROR: {result.error}", err=True)
        click.echo("  Diagnostic log:", err=True)
        for entry in result.logs:
            click.echo(f"    {entry}", err=True)
        sys.exit(1)

    key = result.key
    click.echo(f"      Key        : {key.name} {key.mode.value}")
    if result.time_signature is not None:
        ts = result.time_signature
        click.echo(f"      Time       : {ts.numerator}/{ts.denominator}")
    click.echo(f"      Notes      : {len(result.notes)}")
    click.echo(f"      Fingerings : {len(result.fingerings)}  (unplayable: {result.unplayable_count})")
    clipped = sum(1 for p in result.placements if p.clipped)
    click.echo(f"      Clipped    : {clipped}")
    click.echo()
    for fingering, placement in zip(result.fingerings, result.placements):
        note = fingering.note
        flag = "  (clipped)" if placement.clipped else ""
        click.echo(
            f"        {note.name}{note.octave:<3} {fingering.string.value}-string  "
            f"{fingering.position.value:<4} finger {fingering.finger}  "
            f"@ ({placement.anchor_x:.1f}, {placement.anchor_y:.1f}){flag}"
        )

    if show_logs:
        click.echo()
        for entry in result.logs:
            click.echo(f"    {entry}")


# ── CLI group ──────────────────────────────────────────────────────────────────

@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="fingerboard")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Verbosity of the structured log on stderr.",
)
def main(log_level: str) -> None:
    """fingerboard — violin fingerings for recognised sheet music."""
    setup_logging(log_level)


_output_dir_option = click.option(
    "--output-dir",
    "-o",
    default=None,
    metavar="DIR",
    help="Directory for <name>_fingering.json. Defaults to data/annotations/.",
)
_config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    metavar="YAML",
    help="Overlay configuration file. Defaults to the shipped overlay.yaml.",
)
_scale_option = click.option(
    "--scale",
    type=float,
    default=None,
    help="Override the overlay render scale.",
)
_logs_option = click.option(
    "--show-logs",
    is_flag=True,
    default=False,
    help="Print the diagnostic log after the summary.",
)


# ── analyze subcommand ─────────────────────────────────────────────────────────

@main.command()
@click.argument("score", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option(
    "--image",
    type=click.Path(exists=True, dir_okay=False, readable=True),
    default=None,
    help="Page image the score was recognised from (sets the display bounds).",
)
@_output_dir_option
@_config_option
@_scale_option
@_logs_option
def analyze(
    score: str,
    image: str | None,
    output_dir: str | None,
    config_path: str | None,
    scale: float | None,
    show_logs: bool,
) -> None:
    """
    Assign violin fingerings to a MusicXML score.

    SCORE is a .musicxml, .xml or compressed .mxl file.

    \b
    Examples:
      fingerboard analyze etude.musicxml
      fingerboard analyze etude.mxl --image etude.png -o results/
    """
    click.echo(f"fingerboard v{__version__}")
    click.echo(f"  Score  : {score}")
    click.echo(f"  Image  : {image or '-'}")
    click.echo()
    click.echo("[1/1] Parsing score and assigning fingerings...")

    try:
        result = annotate(score, image, output_dir, config_path, _overrides(scale))
    except (OSError, ValueError) as exc:
        click.echo(f"  ERROR: {exc}", err=True)
        sys.exit(1)
    _report(result, show_logs)

    click.echo()
    click.echo(f"Done!  Results written to '{output_dir or Path('data') / 'annotations'}'.")


# ── collect subcommand ─────────────────────────────────────────────────────────

@main.command(name="collect")
@click.argument("engine_output", type=click.Path(file_okay=False))
@click.argument("input_file", type=click.Path(dir_okay=False))
@_output_dir_option
@_config_option
@_scale_option
@_logs_option
def collect_output(
    engine_output: str,
    input_file: str,
    output_dir: str | None,
    config_path: str | None,
    scale: float | None,
    show_logs: bool,
) -> None:
    """
    Assign fingerings from a recognition engine's output directory.

    ENGINE_OUTPUT is the directory the engine exported into; INPUT_FILE
    is the page that was recognised (used to find matching outputs).

    \b
    Examples:
      fingerboard collect /tmp/omr-output scan.png
    """
    click.echo(f"fingerboard v{__version__}")
    click.echo(f"  Output : {engine_output}")
    click.echo(f"  Input  : {input_file}")
    click.echo()
    click.echo("[1/2] Locating recognition output...")
    click.echo("[2/2] Parsing score and assigning fingerings...")

    try:
        result = collect(engine_output, input_file, output_dir, config_path, _overrides(scale))
    except (OSError, ValueError) as exc:
        click.echo(f"  ERROR: {exc}", err=True)
        sys.exit(1)
    _report(result, show_logs)

    click.echo()
    click.echo(f"Done!  Results written to '{output_dir or Path('data') / 'annotations'}'.")


if __name__ == "__main__":
    main()
