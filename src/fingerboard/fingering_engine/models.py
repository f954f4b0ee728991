"""Models — value types shared by every stage of the fingering pipeline.

All records are frozen dataclasses: a pipeline run builds them once and
hands them on. The one permitted "change" to a note (resolving a key
signature accidental) is done with :func:`dataclasses.replace`, which
returns a new record.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


# ── Pitch constants ───────────────────────────────────────────
SEMITONES_PER_OCTAVE: int = 12

LETTER_SEMITONES: dict[str, int] = {
    "C": 0,
    "D": 2,
    "E": 4,
    "F": 5,
    "G": 7,
    "A": 9,
    "B": 11,
}

# 12-tone sharp spelling, used only for display
SHARP_NAMES: list[str] = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]


class Mode(str, Enum):
    MAJOR = "major"
    MINOR = "minor"


class Accidental(str, Enum):
    SHARP = "sharp"
    FLAT = "flat"
    NATURAL = "natural"

    @property
    def shift(self) -> int:
        """Semitone shift applied to the letter's natural pitch."""
        if self is Accidental.SHARP:
            return 1
        if self is Accidental.FLAT:
            return -1
        return 0

    @property
    def symbol(self) -> str:
        if self is Accidental.SHARP:
            return "#"
        if self is Accidental.FLAT:
            return "b"
        return ""


class ViolinString(str, Enum):
    G = "G"
    D = "D"
    A = "A"
    E = "E"


class Position(str, Enum):
    HALF = "half"
    FIRST = "1st"
    SECOND = "2nd"
    THIRD = "3rd"
    FOURTH = "4th"


class FailureKind(str, Enum):
    """Failure categories reported at the pipeline boundary."""

    STRUCTURE = "structure_not_recognized"
    EMPTY = "no_notes"
    NO_OUTPUT = "no_output_found"
    MALFORMED = "output_malformed"


# ── Records ───────────────────────────────────────────────────

@dataclass(frozen=True)
class Note:
    """A single pitched note as read from the notation document.

    Attributes:
        letter:     Letter name ``"A"``–``"G"``.
        octave:     Scientific octave number (middle C is C4).
        x:          Horizontal page coordinate (pixels).
        y:          Vertical page coordinate (pixels).
        accidental: Explicit or key-resolved accidental, ``None`` if unmarked.
        duration:   Length in quarter notes, when known.
    """

    letter: str
    octave: int
    x: float
    y: float
    accidental: Accidental | None = None
    duration: float | None = None

    @property
    def pitch(self) -> int:
        """Absolute pitch height in semitones (C0 = 0)."""
        shift = self.accidental.shift if self.accidental is not None else 0
        return self.octave * SEMITONES_PER_OCTAVE + LETTER_SEMITONES[self.letter] + shift

    @property
    def name(self) -> str:
        """Written spelling, e.g. ``"Bb"`` or ``"F#"``."""
        symbol = self.accidental.symbol if self.accidental is not None else ""
        return f"{self.letter}{symbol}"

    @property
    def sounding_name(self) -> str:
        """Sharp spelling of the sounding pitch class (``Bb`` → ``A#``)."""
        return SHARP_NAMES[self.pitch % SEMITONES_PER_OCTAVE]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "letter": self.letter,
            "accidental": self.accidental.value if self.accidental is not None else None,
            "octave": self.octave,
            "pitch": self.pitch,
            "x": self.x,
            "y": self.y,
            "duration": self.duration,
        }


@dataclass(frozen=True)
class KeySignature:
    """A resolved key and the letters its signature alters."""

    count: int
    mode: Mode
    name: str
    altered_letters: tuple[str, ...] = ()

    @property
    def accidental(self) -> Accidental | None:
        """The accidental applied by the signature (``None`` for no accidentals)."""
        if self.count > 0:
            return Accidental.SHARP
        if self.count < 0:
            return Accidental.FLAT
        return None

    @property
    def sharps(self) -> int:
        return max(self.count, 0)

    @property
    def flats(self) -> int:
        return max(-self.count, 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.name,
            "mode": self.mode.value,
            "fifths": self.count,
            "sharps": self.sharps,
            "flats": self.flats,
            "altered_letters": list(self.altered_letters),
        }


@dataclass(frozen=True)
class TimeSignature:
    numerator: int
    denominator: int


@dataclass(frozen=True)
class Fingering:
    """Where and how a note is played: string, hand position and finger.

    ``finger`` is the canonical 0–4 index (0 = open string).
    """

    string: ViolinString
    finger: int
    position: Position
    note: Note

    def __post_init__(self) -> None:
        if not 0 <= self.finger <= 4:
            raise ValueError(f"Finger must be 0-4, got {self.finger}")
        if self.finger == 0 and self.position is not Position.FIRST:
            raise ValueError(
                f"Open string (finger 0) requires 1st position, got {self.position.value}"
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "string": self.string.value,
            "finger": self.finger,
            "position": self.position.value,
            "note": self.note.to_dict(),
        }


@dataclass(frozen=True)
class Placement:
    """Where the rendering collaborator should draw one fingering badge.

    ``anchor_x``/``anchor_y`` are in unscaled page pixels; multiply by
    ``render_scale`` for the high-resolution canvas. Clipped placements
    must not be drawn.
    """

    anchor_x: float
    anchor_y: float
    render_scale: float
    clipped: bool
    string: ViolinString
    finger: int
    position: Position

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["string"] = self.string.value
        data["position"] = self.position.value
        return data


# ── Results ───────────────────────────────────────────────────

@dataclass
class ParseResult:
    """Outcome of normalising a notation document."""

    success: bool
    notes: list[Note] = field(default_factory=list)
    key: KeySignature | None = None
    time_signature: TimeSignature | None = None
    error: str | None = None
    failure: FailureKind | None = None
    logs: list[str] = field(default_factory=list)


@dataclass
class AnalysisResult:
    """Outcome of a full pipeline run for one document."""

    success: bool
    key: KeySignature | None = None
    time_signature: TimeSignature | None = None
    notes: list[Note] = field(default_factory=list)
    fingerings: list[Fingering] = field(default_factory=list)
    placements: list[Placement] = field(default_factory=list)
    page_size: tuple[int, int] | None = None
    unplayable_count: int = 0
    error: str | None = None
    failure: FailureKind | None = None
    logs: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "key": self.key.to_dict() if self.key is not None else None,
            "time_signature": asdict(self.time_signature) if self.time_signature else None,
            "notes": [n.to_dict() for n in self.notes],
            "fingerings": [f.to_dict() for f in self.fingerings],
            "placements": [p.to_dict() for p in self.placements],
            "page_size": list(self.page_size) if self.page_size else None,
            "note_count": len(self.notes),
            "fingering_count": len(self.fingerings),
            "unplayable_count": self.unplayable_count,
            "error": self.error,
            "failure": self.failure.value if self.failure is not None else None,
            "logs": list(self.logs),
        }
