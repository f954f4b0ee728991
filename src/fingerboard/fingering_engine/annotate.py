"""Annotator — orchestrate the fingering pipeline and export results.

Responsibilities:
    1. Normalise the notation document into notes (notation parser).
    2. Resolve key signature accidentals and assign fingerings (solver).
    3. Map every fingering to a placement descriptor (overlay).
    4. Save ``<stem>_fingering.json`` (default: ``data/annotations/``).
    5. Return the :class:`AnalysisResult` for programmatic use.

Collaborator errors (missing files, unreadable output) are caught here
and returned in the same result shape as parse failures.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from ..config import load_overlay_config
from .diagnostics import Diagnostics
from .models import AnalysisResult, FailureKind, ParseResult
from .notation_parser import parse_musicxml, parse_score
from .overlay import OverlayConfig, place_all
from .score_loader import ScoreLoadError, find_page_image, find_recognition_output, read_page_size
from .solver import assign_fingerings


def _failed(parsed: ParseResult, diagnostics: Diagnostics) -> AnalysisResult:
    return AnalysisResult(
        success=False,
        error=parsed.error,
        failure=parsed.failure,
        logs=diagnostics.entries,
    )


def analyze_document(
    document: Any,
    image_bytes: bytes | None = None,
    overlay: OverlayConfig | Mapping[str, Any] | None = None,
    diagnostics: Diagnostics | None = None,
) -> AnalysisResult:
    """Run the full pipeline on one notation document.

    Args:
        document: MusicXML bytes/text (plain or ``.mxl``) or an already
            parsed loose tree (any other shape is reported as unrecognised).
        image_bytes: The source page image, used for display bounds.
        overlay: Overlay configuration or a raw options mapping.
        diagnostics: Optional accumulator shared with the caller.

    Returns:
        An :class:`AnalysisResult`. Unplayable notes are counted, not fatal.
    """
    diagnostics = diagnostics if diagnostics is not None else Diagnostics(__name__)
    diagnostics.add("Fingering analysis started")

    if isinstance(document, (bytes, str)):
        parsed = parse_musicxml(document, diagnostics)
    else:
        parsed = parse_score(document, diagnostics)
    if not parsed.success:
        return _failed(parsed, diagnostics)

    key = parsed.key
    fingerings, unplayable = assign_fingerings(parsed.notes, key, diagnostics)

    config = overlay if isinstance(overlay, OverlayConfig) else OverlayConfig.from_mapping(overlay, diagnostics)

    page_size: tuple[int, int] | None = None
    if image_bytes is not None:
        try:
            page_size = read_page_size(image_bytes)
            diagnostics.add(f"Page image: {page_size[0]}x{page_size[1]} px")
        except ValueError as exc:
            diagnostics.warning(str(exc))
    if not config.has_bounds and page_size is not None:
        config = config.with_bounds(*page_size)

    placements = place_all(fingerings, config, diagnostics)
    diagnostics.add("Fingering analysis finished")

    return AnalysisResult(
        success=True,
        key=key,
        time_signature=parsed.time_signature,
        notes=parsed.notes,
        fingerings=fingerings,
        placements=placements,
        page_size=page_size,
        unplayable_count=unplayable,
        logs=diagnostics.entries,
    )


def _overlay_options(
    config_path: str | Path | None,
    overlay: Mapping[str, Any] | None,
) -> dict[str, Any]:
    options: dict[str, Any] = dict(load_overlay_config(config_path))
    if overlay:
        options.update(overlay)
    return options


def _run_file(
    score_path: Path,
    image_path: str | Path | None,
    options: Mapping[str, Any],
    diagnostics: Diagnostics,
) -> AnalysisResult:
    try:
        document = score_path.read_bytes()
    except OSError as exc:
        diagnostics.error(f"Cannot read score file: {exc}")
        return AnalysisResult(
            success=False,
            error=f"Score file not readable: {score_path}",
            failure=FailureKind.NO_OUTPUT,
            logs=diagnostics.entries,
        )

    image_bytes = None
    if image_path is not None:
        try:
            image_bytes = Path(image_path).read_bytes()
        except OSError as exc:
            diagnostics.warning(f"Cannot read page image: {exc}")
    return analyze_document(document, image_bytes, options, diagnostics)


def annotate(
    score_path: str | Path,
    image_path: str | Path | None = None,
    output_dir: str | Path | None = None,
    config_path: str | Path | None = None,
    overlay: Mapping[str, Any] | None = None,
) -> AnalysisResult:
    """Run the pipeline on a MusicXML file and save the JSON result.

    Args:
        score_path: ``.musicxml`` / ``.xml`` / ``.mxl`` file.
        image_path: Page image the score was recognised from.
        output_dir: Directory for the JSON file. Defaults to
            ``data/annotations/`` under the current directory.
        config_path: Overlay YAML. Defaults to the shipped ``overlay.yaml``.
        overlay: Option overrides merged on top of the YAML file.

    Returns:
        The :class:`AnalysisResult` (also written to disk).
    """
    score_path = Path(score_path)
    options = _overlay_options(config_path, overlay)
    result = _run_file(score_path, image_path, options, Diagnostics(__name__))
    _save(result, score_path.stem, output_dir)
    return result


def collect(
    engine_output_dir: str | Path,
    input_path: str | Path,
    output_dir: str | Path | None = None,
    config_path: str | Path | None = None,
    overlay: Mapping[str, Any] | None = None,
) -> AnalysisResult:
    """Run the pipeline on whatever the recognition engine left behind.

    Finds the notation document and page image in *engine_output_dir*.
    A missing document is reported as ``no_output_found``.
    """
    options = _overlay_options(config_path, overlay)
    diagnostics = Diagnostics(__name__)
    diagnostics.add(f"Searching recognition output in {engine_output_dir}")

    try:
        score_path = find_recognition_output(engine_output_dir, input_path)
    except ScoreLoadError as exc:
        diagnostics.error(str(exc))
        result = AnalysisResult(success=False, error=str(exc), failure=exc.kind, logs=diagnostics.entries)
    else:
        image_path = find_page_image(engine_output_dir, input_path)
        diagnostics.add(f"Using notation document {score_path} and page image {image_path}")
        result = _run_file(score_path, image_path, options, diagnostics)

    _save(result, Path(input_path).stem, output_dir)
    return result


def _save(result: AnalysisResult, stem: str, output_dir: str | Path | None) -> Path:
    if output_dir is None:
        output_dir = Path.cwd() / "data" / "annotations"
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    json_path = output_dir / f"{stem}_fingering.json"
    with open(json_path, "w", encoding="utf-8") as fh:
        json.dump(result.to_dict(), fh, indent=2, ensure_ascii=False)
    return json_path


def analysis_to_json_bytes(result: AnalysisResult) -> bytes:
    """Serialise a result to UTF-8 JSON bytes (for download buttons)."""
    return json.dumps(result.to_dict(), indent=2, ensure_ascii=False).encode("utf-8")
