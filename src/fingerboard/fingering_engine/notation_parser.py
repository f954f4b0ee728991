"""Notation Parser — normalise a loosely structured score tree into notes.

Responsibilities:
    - Accept a tree whose nodes may be a single object or a list, with
      inconsistent key casing or namespacing (``part``/``Part``/``ns:part``).
    - Resolve key, time signature and divisions once, from the first
      measure of the first part.
    - Extract pitched notes in document order, skipping rests and
      pitch-less entries.
    - Resolve every note's page coordinates through a fixed fallback chain
      (explicit position → pitch-derived height / running cursor).

Nothing here raises for bad input: every outcome is a
:class:`~fingerboard.fingering_engine.models.ParseResult`.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any

from .diagnostics import Diagnostics
from .key_resolver import identity_key, resolve_key
from .models import (
    LETTER_SEMITONES,
    Accidental,
    FailureKind,
    KeySignature,
    Note,
    ParseResult,
    TimeSignature,
)
from .score_loader import ScoreLoadError, load_document


# ── Coordinate constants (document pixel space) ───────────────
TENTHS_TO_PX: float = 0.5          # MusicXML tenths → page pixels
PAGE_BASELINE_Y: float = 300.0     # origin for explicit default-y
UNSET_Y: float = 0.0               # default-y sentinel meaning "not placed"

STAFF_TOP_Y: float = 150.0
LINE_SPACING: float = 14.0
REFERENCE_OCTAVE: int = 4
STAFF_STEPS_PER_OCTAVE: int = 7
C4_Y: float = STAFF_TOP_Y + 1.5 * LINE_SPACING

CURSOR_START_X: float = 200.0      # after clef, key and time signature
LONG_NOTE_STEP: float = 60.0       # quarter note or longer
SHORT_NOTE_STEP: float = 40.0
LOOKAHEAD_STEP: float = 50.0       # next note after an explicitly placed one

# ── Document defaults ─────────────────────────────────────────
DEFAULT_OCTAVE: int = 4
DEFAULT_DIVISIONS: int = 1
DEFAULT_DURATION: float = 1.0
DEFAULT_BEATS: int = 4

ROOT_NAMES: tuple[str, ...] = ("score-partwise", "score-timewise")
_SAMPLE_LENGTH: int = 300

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


# ── Tree helpers ──────────────────────────────────────────────

def as_list(node: Any) -> list[Any]:
    """Treat a single node as a one-element collection; ``None`` as empty."""
    if node is None:
        return []
    if isinstance(node, list):
        return node
    if isinstance(node, tuple):
        return list(node)
    return [node]


def canonical_key(key: str) -> str:
    """Normalise a tree key: ``@_default-x``, ``ns:DefaultX`` → ``default-x``."""
    key = str(key)
    if ":" in key:
        key = key.rsplit(":", 1)[1]
    key = key.lstrip("@")
    if key.startswith("_"):
        key = key[1:]
    key = _CAMEL_BOUNDARY.sub("-", key)
    return key.replace("_", "-").lower()


def lookup(node: Any, name: str) -> Any:
    """Return the child of *node* named *name*, tolerating casing and prefixes."""
    if not isinstance(node, dict):
        return None
    if name in node:
        return node[name]
    wanted = canonical_key(name)
    for key, value in node.items():
        if canonical_key(key) == wanted:
            return value
    return None


def _text(node: Any) -> str | None:
    """Scalar text of a leaf, or of a ``#text`` entry when it carries attributes."""
    if isinstance(node, list):
        node = node[0] if node else None
    if isinstance(node, dict):
        node = node.get("#text")
    if node is None:
        return None
    text = str(node).strip()
    return text or None


def _number(node: Any) -> float | None:
    text = _text(node)
    if text is None:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _sample(node: Any) -> str:
    return json.dumps(node, default=str, ensure_ascii=False)[:_SAMPLE_LENGTH]


# ── Coordinate resolution ─────────────────────────────────────

def derived_y(letter: str, accidental: Accidental | None, octave: int) -> float:
    """Vertical position estimated from pitch height alone."""
    shift = accidental.shift if accidental is not None else 0
    semitone = LETTER_SEMITONES[letter] + shift
    octave_offset = (octave - REFERENCE_OCTAVE) * STAFF_STEPS_PER_OCTAVE * LINE_SPACING
    return C4_Y - octave_offset - semitone * (LINE_SPACING / 2)


class CoordinateCursor:
    """Running horizontal position for notes without an explicit ``default-x``.

    The cursor only depends on the notes already seen, in document order.
    """

    def __init__(self, start: float = CURSOR_START_X) -> None:
        self.x = start

    def resolve(self, element: dict[str, Any], letter: str, accidental: Accidental | None,
                octave: int, duration: float) -> tuple[float, float, bool, bool]:
        """Return ``(x, y, x_explicit, y_explicit)`` and advance the cursor."""
        raw_x = _number(lookup(element, "default-x"))
        raw_y = _number(lookup(element, "default-y"))

        y_explicit = raw_y is not None and raw_y != UNSET_Y
        if y_explicit:
            y = PAGE_BASELINE_Y - raw_y * TENTHS_TO_PX
        else:
            y = derived_y(letter, accidental, octave)

        if raw_x is not None:
            x = raw_x * TENTHS_TO_PX
            self.x = x + LOOKAHEAD_STEP
            return x, y, True, y_explicit

        x = self.x
        self.x += LONG_NOTE_STEP if duration >= 1 else SHORT_NOTE_STEP
        return x, y, False, y_explicit


# ── Structure ─────────────────────────────────────────────────

def _find_root(tree: dict[str, Any], diagnostics: Diagnostics) -> tuple[Any, bool]:
    """Return ``(score_node, is_timewise)``."""
    for name in ROOT_NAMES:
        node = lookup(tree, name)
        if node is not None:
            return node, name == "score-timewise"

    keys = list(tree.keys())
    diagnostics.add(f"Available root keys: {', '.join(map(str, keys)) or 'none'}")
    if not keys:
        return None, False
    diagnostics.warning(f"No score-partwise root, using first root key '{keys[0]}'")
    return tree[keys[0]], False


def _first_part_measures(score: dict[str, Any], timewise: bool,
                         diagnostics: Diagnostics) -> tuple[list[Any] | None, str]:
    """Measures of the first part, in order, for either score layout.

    Returns the measures, or ``None`` plus the name of the missing level.
    """
    if timewise:
        measures = [m for m in as_list(lookup(score, "measure")) if isinstance(m, dict)]
        if not measures:
            diagnostics.error(f"Measure structure: {_sample(score)}")
            return None, "measures"
        flattened: list[Any] = []
        for measure in measures:
            parts = [p for p in as_list(lookup(measure, "part")) if isinstance(p, dict)]
            if parts:
                flattened.append(parts[0])
        if not flattened:
            diagnostics.error(f"Part structure: {_sample(measures[0])}")
            return None, "parts"
        return flattened, ""

    parts = [p for p in as_list(lookup(score, "part")) if isinstance(p, dict)]
    if not parts:
        diagnostics.error(f"Part structure: {_sample(score)}")
        return None, "parts"
    diagnostics.add(f"Part count: {len(parts)}")
    if len(parts) > 1:
        diagnostics.add(f"Reading the first part only; {len(parts) - 1} other part(s) ignored")

    measures = [m for m in as_list(lookup(parts[0], "measure")) if isinstance(m, dict)]
    if not measures:
        diagnostics.error(f"Measure structure: {_sample(parts[0])}")
        return None, "measures"
    return measures, ""


def _read_attributes(
    measure: dict[str, Any], diagnostics: Diagnostics
) -> tuple[float, KeySignature | None, TimeSignature | None]:
    """Divisions, key and time signature from the first measure."""
    divisions = DEFAULT_DIVISIONS
    key = None
    time_signature = None

    for attributes in as_list(lookup(measure, "attributes")):
        if not isinstance(attributes, dict):
            continue

        raw_divisions = _number(lookup(attributes, "divisions"))
        if raw_divisions is not None and raw_divisions > 0:
            divisions = raw_divisions

        key_node = next(iter(as_list(lookup(attributes, "key"))), None)
        if key is None and isinstance(key_node, dict):
            fifths = _text(lookup(key_node, "fifths"))
            mode = _text(lookup(key_node, "mode"))
            key = resolve_key(fifths if fifths is not None else 0, mode, diagnostics)
            diagnostics.add(f"Key: {key.name} {key.mode.value}")

        time_node = next(iter(as_list(lookup(attributes, "time"))), None)
        if time_signature is None and isinstance(time_node, dict):
            beats = _text(lookup(time_node, "beats"))
            beat_type = _text(lookup(time_node, "beat-type"))
            if beats is not None and beat_type is not None:
                time_signature = TimeSignature(
                    numerator=_positive_int(beats, DEFAULT_BEATS),
                    denominator=_positive_int(beat_type, DEFAULT_BEATS),
                )
                diagnostics.add(
                    f"Time signature: {time_signature.numerator}/{time_signature.denominator}"
                )

    return divisions, key, time_signature


def _positive_int(text: str, default: int) -> int:
    try:
        value = int(float(text))
    except ValueError:
        return default
    return value if value > 0 else default


# ── Notes ─────────────────────────────────────────────────────

def _read_accidental(element: dict[str, Any], pitch: dict[str, Any]) -> Accidental | None:
    alter = _number(lookup(pitch, "alter"))
    if alter is not None and round(alter) > 0:
        return Accidental.SHARP
    if alter is not None and round(alter) < 0:
        return Accidental.FLAT

    marked = (_text(lookup(element, "accidental")) or "").lower()
    try:
        return Accidental(marked)
    except ValueError:
        return None


def _read_note(element: dict[str, Any], divisions: float, cursor: CoordinateCursor,
               diagnostics: Diagnostics) -> Note | None:
    pitch = lookup(element, "pitch")
    if isinstance(pitch, list):
        pitch = pitch[0] if pitch else None
    if not isinstance(pitch, dict):
        diagnostics.add("Skipping note without pitch")
        return None

    step = (_text(lookup(pitch, "step")) or "").upper()
    if step not in LETTER_SEMITONES:
        diagnostics.warning(f"Skipping note with unknown step '{step}'")
        return None

    raw_octave = _number(lookup(pitch, "octave"))
    if raw_octave is None:
        diagnostics.add(f"Note {step} has no octave, using {DEFAULT_OCTAVE}")
        octave = DEFAULT_OCTAVE
    else:
        octave = int(raw_octave)

    accidental = _read_accidental(element, pitch)

    raw_duration = _number(lookup(element, "duration"))
    duration = raw_duration / divisions if raw_duration else DEFAULT_DURATION

    x, y, x_explicit, y_explicit = cursor.resolve(element, step, accidental, octave, duration)
    note = Note(
        letter=step,
        octave=octave,
        x=x,
        y=y,
        accidental=accidental,
        duration=duration,
    )
    diagnostics.add(
        f"Note {note.name}{octave} at ({x:.1f}, {y:.1f}) - "
        f"X:{'explicit' if x_explicit else 'derived'} Y:{'explicit' if y_explicit else 'derived'}"
    )
    return note


def _failure(kind: FailureKind, error: str, diagnostics: Diagnostics) -> ParseResult:
    diagnostics.error(error)
    return ParseResult(success=False, error=error, failure=kind, logs=diagnostics.entries)


def parse_score(tree: Any, diagnostics: Diagnostics | None = None) -> ParseResult:
    """Normalise a loose score tree into ordered notes.

    Args:
        tree: ``{root_name: subtree}`` as produced by
            :func:`score_loader.xml_to_tree`, or any equivalent mapping.
        diagnostics: Optional accumulator shared with the caller.

    Returns:
        A :class:`ParseResult`. ``success`` is ``False`` when the structure
        is not recognised or no pitched note was found.
    """
    diagnostics = diagnostics if diagnostics is not None else Diagnostics(__name__)
    diagnostics.add("Parsing notation document")

    if not isinstance(tree, dict) or not tree:
        return _failure(FailureKind.STRUCTURE, "Parsed document is not a mapping", diagnostics)

    score, timewise = _find_root(tree, diagnostics)
    if isinstance(score, list):
        diagnostics.add(f"Score root is a collection of {len(score)}, using the first")
        score = score[0] if score else None
    if not isinstance(score, dict):
        root_name = next(iter(tree), "none")
        diagnostics.add(f"Parsed structure sample: {_sample(tree)}")
        return _failure(
            FailureKind.STRUCTURE,
            f"Structure not recognized: no valid MusicXML score found (root element: {root_name})",
            diagnostics,
        )

    measures, missing = _first_part_measures(score, timewise, diagnostics)
    if measures is None:
        return _failure(FailureKind.STRUCTURE, f"Structure not recognized: no {missing} found", diagnostics)
    diagnostics.add(f"Measure count: {len(measures)}")

    divisions, key, time_signature = _read_attributes(measures[0], diagnostics)

    notes: list[Note] = []
    cursor = CoordinateCursor()
    for measure in measures:
        for element in as_list(lookup(measure, "note")):
            if not isinstance(element, dict):
                continue
            if lookup(element, "rest") is not None:
                continue
            try:
                note = _read_note(element, divisions, cursor, diagnostics)
            except (TypeError, ValueError, KeyError) as exc:
                diagnostics.warning(f"Note processing error: {exc}")
                continue
            if note is not None:
                notes.append(note)

    if key is None:
        key = identity_key()
        diagnostics.add("No key signature found, using C major")

    diagnostics.add(f"Extracted {len(notes)} note(s)")
    if not notes:
        return _failure(FailureKind.EMPTY, "No notes found in the document", diagnostics)

    return ParseResult(
        success=True,
        notes=notes,
        key=key,
        time_signature=time_signature,
        logs=diagnostics.entries,
    )


def parse_musicxml(data: bytes | str, diagnostics: Diagnostics | None = None) -> ParseResult:
    """Decode and parse raw MusicXML (plain or ``.mxl``) into notes."""
    diagnostics = diagnostics if diagnostics is not None else Diagnostics(__name__)
    diagnostics.add(f"MusicXML size: {len(data)} bytes")
    try:
        tree = load_document(data)
    except ScoreLoadError as exc:
        return _failure(exc.kind, str(exc), diagnostics)
    return parse_score(tree, diagnostics)
