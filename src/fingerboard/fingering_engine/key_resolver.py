"""Key Resolver — key signature count → named key → altered letters.

Responsibilities:
    - Look up the major/minor key name for a circle-of-fifths count.
    - Build the accidental map: the first ``|count|`` letters of the
      sharp order (F C G D A E B) or flat order (B E A D G C F).
    - Apply that map to a written note, letting explicit accidentals win.

Counts outside -7..7 never raise: they resolve to C major (no
accidentals) and leave a warning in the diagnostics.
"""

from __future__ import annotations

from dataclasses import replace

from .diagnostics import Diagnostics
from .models import KeySignature, Mode, Note


# ── Circle of fifths ──────────────────────────────────────────
# count → (major key, relative minor key)
CIRCLE_OF_FIFTHS: dict[int, tuple[str, str]] = {
    0: ("C", "A"),
    1: ("G", "E"),
    2: ("D", "B"),
    3: ("A", "F#"),
    4: ("E", "C#"),
    5: ("B", "G#"),
    6: ("F#", "D#"),
    7: ("C#", "A#"),
    -1: ("F", "D"),
    -2: ("Bb", "G"),
    -3: ("Eb", "C"),
    -4: ("Ab", "F"),
    -5: ("Db", "Bb"),
    -6: ("Gb", "Eb"),
    -7: ("Cb", "Ab"),
}

SHARP_ORDER: tuple[str, ...] = ("F", "C", "G", "D", "A", "E", "B")
FLAT_ORDER: tuple[str, ...] = ("B", "E", "A", "D", "G", "C", "F")

DEFAULT_COUNT: int = 0
DEFAULT_MODE: Mode = Mode.MAJOR


def accidental_map(count: int) -> tuple[str, ...]:
    """Letters altered by a signature of *count* sharps (>0) or flats (<0)."""
    if count > 0:
        return SHARP_ORDER[:count]
    if count < 0:
        return FLAT_ORDER[:-count]
    return ()


def _parse_mode(mode: str | Mode | None, diagnostics: Diagnostics) -> Mode:
    if isinstance(mode, Mode):
        return mode
    if mode is None or str(mode).strip() == "":
        return DEFAULT_MODE
    try:
        return Mode(str(mode).strip().lower())
    except ValueError:
        diagnostics.warning(f"Unrecognised key mode '{mode}', using {DEFAULT_MODE.value}")
        return DEFAULT_MODE


def identity_key() -> KeySignature:
    """C major: the fallback for anything that cannot be resolved."""
    return KeySignature(count=DEFAULT_COUNT, mode=DEFAULT_MODE, name="C", altered_letters=())


def resolve_key(
    count: int | str | None,
    mode: str | Mode | None = DEFAULT_MODE,
    diagnostics: Diagnostics | None = None,
) -> KeySignature:
    """Resolve a signed accidental count and mode to a :class:`KeySignature`.

    Args:
        count: Circle-of-fifths position (positive = sharps, negative = flats).
            Strings such as ``"-3"`` are accepted as read from a document.
        mode: ``"major"`` or ``"minor"``. Anything else resolves as major.
        diagnostics: Optional accumulator for warnings.

    Returns:
        The resolved key. Unknown counts yield C major, never an exception.
    """
    diagnostics = diagnostics if diagnostics is not None else Diagnostics(__name__)

    try:
        signed = int(str(count).strip()) if count is not None else DEFAULT_COUNT
    except ValueError:
        diagnostics.warning(f"Key signature count '{count}' is not a number, using C major")
        return identity_key()

    names = CIRCLE_OF_FIFTHS.get(signed)
    if names is None:
        diagnostics.warning(f"Key signature count {signed} is outside -7..7, using C major")
        return identity_key()

    resolved_mode = _parse_mode(mode, diagnostics)
    major, minor = names
    name = minor if resolved_mode is Mode.MINOR else major
    return KeySignature(
        count=signed,
        mode=resolved_mode,
        name=name,
        altered_letters=accidental_map(signed),
    )


def key_from_accidentals(
    sharps: int = 0,
    flats: int = 0,
    mode: str | Mode | None = DEFAULT_MODE,
    diagnostics: Diagnostics | None = None,
) -> KeySignature:
    """Resolve a key from separate sharp and flat counts.

    Sharps win when both are given; otherwise the flat count is negated.
    """
    count = sharps if sharps > 0 else -flats
    return resolve_key(count, mode, diagnostics)


def resolve_accidental(note: Note, key: KeySignature) -> Note:
    """Return the sounding version of *note* under *key*.

    An explicit accidental on the note (natural included) overrides the
    signature. Otherwise, if the signature alters the note's letter, the
    signature's accidental is applied.
    """
    if note.accidental is not None:
        return note
    if note.letter in key.altered_letters and key.accidental is not None:
        return replace(note, accidental=key.accidental)
    return note

