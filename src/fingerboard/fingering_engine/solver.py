"""Solver — per-note violin fingering assignment.

For a target pitch every string is tried: the semitone offset above the
open string selects ``(position, finger)`` from a fixed lookup table.
An exact open-string match wins; otherwise candidates are ranked by
string (lowest first), then position, then finger.

Design choices:
    - No cross-note state: each note is decided on its own.
    - Offsets 0..7 are playable on a string; anything else is not.
    - The E string reaches its two highest slots with the 4th finger in
      1st position instead of shifting up.
    - ``finger`` is the canonical 0–4 index (0 = open string).
"""

from __future__ import annotations

from .diagnostics import Diagnostics
from .key_resolver import resolve_accidental
from .models import Fingering, KeySignature, Note, Position, ViolinString


# ── Instrument geometry ───────────────────────────────────────
# Open-string pitches in semitones from C0: G3, D4, A4, E5
OPEN_STRINGS: dict[ViolinString, int] = {
    ViolinString.G: 3 * 12 + 7,
    ViolinString.D: 4 * 12 + 2,
    ViolinString.A: 4 * 12 + 9,
    ViolinString.E: 5 * 12 + 4,
}

# Preference order: lowest-pitched string first
STRING_ORDER: tuple[ViolinString, ...] = (
    ViolinString.G,
    ViolinString.D,
    ViolinString.A,
    ViolinString.E,
)

POSITION_ORDER: dict[Position, int] = {
    Position.HALF: 0,
    Position.FIRST: 1,
    Position.SECOND: 2,
    Position.THIRD: 3,
    Position.FOURTH: 4,
}

MAX_OFFSET: int = 7

# offset above the open string → (position, finger)
STANDARD_TABLE: dict[int, tuple[Position, int]] = {
    0: (Position.FIRST, 0),
    1: (Position.HALF, 1),
    2: (Position.FIRST, 1),
    3: (Position.FIRST, 2),   # low 2
    4: (Position.FIRST, 2),   # high 2
    5: (Position.FIRST, 3),
    6: (Position.SECOND, 3),
    7: (Position.THIRD, 2),
}

E_STRING_TABLE: dict[int, tuple[Position, int]] = {
    **STANDARD_TABLE,
    6: (Position.FIRST, 4),   # low 4
    7: (Position.FIRST, 4),   # extended 4
}

FINGER_TABLES: dict[ViolinString, dict[int, tuple[Position, int]]] = {
    ViolinString.G: STANDARD_TABLE,
    ViolinString.D: STANDARD_TABLE,
    ViolinString.A: STANDARD_TABLE,
    ViolinString.E: E_STRING_TABLE,
}

LOWEST_PITCH: int = OPEN_STRINGS[ViolinString.G]
HIGHEST_PITCH: int = OPEN_STRINGS[ViolinString.E] + MAX_OFFSET


def fingering_on_string(pitch: int, string: ViolinString) -> tuple[Position, int] | None:
    """Return ``(position, finger)`` for *pitch* on *string*, or ``None``.

    Args:
        pitch: Absolute pitch height in semitones.
        string: The string to try.

    Returns:
        The table entry for the offset above the open string, or ``None``
        when the offset falls outside ``0..MAX_OFFSET``.
    """
    offset = pitch - OPEN_STRINGS[string]
    if offset < 0 or offset > MAX_OFFSET:
        return None
    return FINGER_TABLES[string][offset]


def _rank(fingering: Fingering) -> tuple[int, int, int, int]:
    # An open string is an exact match and outranks the 7-semitone slot
    # of the string below it.
    return (
        0 if fingering.finger == 0 else 1,
        STRING_ORDER.index(fingering.string),
        POSITION_ORDER[fingering.position],
        fingering.finger,
    )


def rank_candidates(note: Note) -> list[Fingering]:
    """All playable fingerings for an already-resolved *note*, best first.

    Ordering: open string, then string (G, D, A, E), then position, then
    finger.
    """
    pitch = note.pitch
    candidates: list[Fingering] = []
    for string in STRING_ORDER:
        entry = fingering_on_string(pitch, string)
        if entry is None:
            continue
        position, finger = entry
        candidates.append(Fingering(string=string, finger=finger, position=position, note=note))

    candidates.sort(key=_rank)
    return candidates


def assign_fingering(note: Note, key: KeySignature | None = None) -> Fingering | None:
    """Best fingering for *note*, or ``None`` if it is unplayable.

    Args:
        note: The written note. When *key* is given its signature
            accidental is applied first; otherwise the note is taken as
            already sounding.
        key: Key signature of the score.

    Returns:
        The first-ranked :class:`Fingering`, or ``None`` when the pitch is
        outside every string's range.
    """
    if key is not None:
        note = resolve_accidental(note, key)
    candidates = rank_candidates(note)
    return candidates[0] if candidates else None


def assign_fingerings(
    notes: list[Note],
    key: KeySignature | None = None,
    diagnostics: Diagnostics | None = None,
) -> tuple[list[Fingering], int]:
    """Assign fingerings to a sequence of notes, dropping unplayable ones.

    Returns:
        ``(fingerings, unplayable_count)``; fingerings keep note order.
    """
    diagnostics = diagnostics if diagnostics is not None else Diagnostics(__name__)
    fingerings: list[Fingering] = []
    unplayable = 0

    for index, note in enumerate(notes):
        fingering = assign_fingering(note, key)
        if fingering is None:
            unplayable += 1
            diagnostics.add(
                f"Note {index + 1} ({note.name}{note.octave}) is outside the playable range, skipped"
            )
            continue
        fingerings.append(fingering)

    diagnostics.add(f"Assigned {len(fingerings)} fingering(s), {unplayable} unplayable")
    return fingerings, unplayable
