"""Shared fixtures: small inline MusicXML documents and page images."""

from __future__ import annotations

import io

import pytest
from PIL import Image

from fingerboard.fingering_engine.models import Accidental, Note

HEADER = """<?xml version="1.0" encoding="UTF-8"?>
<score-partwise version="3.1">
  <part-list>
    <score-part id="P1"><part-name>Violin</part-name></score-part>
  </part-list>
  <part id="P1">
"""
FOOTER = """  </part>
</score-partwise>
"""

A_MAJOR_ATTRIBUTES = """
      <attributes>
        <divisions>2</divisions>
        <key><fifths>3</fifths><mode>major</mode></key>
        <time><beats>3</beats><beat-type>4</beat-type></time>
      </attributes>"""


def pitched(step: str, octave: int | None = 4, duration: int = 2, x: float | None = None,
            y: float | None = None, alter: int | None = None, accidental: str | None = None) -> str:
    """One ``<note>`` element."""
    attrs = ""
    if x is not None:
        attrs += f' default-x="{x}"'
    if y is not None:
        attrs += f' default-y="{y}"'
    pitch = f"<step>{step}</step>"
    if alter is not None:
        pitch += f"<alter>{alter}</alter>"
    if octave is not None:
        pitch += f"<octave>{octave}</octave>"
    marked = f"<accidental>{accidental}</accidental>" if accidental else ""
    return f"<note{attrs}><pitch>{pitch}</pitch><duration>{duration}</duration>{marked}</note>"


def rest(duration: int = 2) -> str:
    return f"<note><rest/><duration>{duration}</duration></note>"


def score(*measures: str, attributes: str = A_MAJOR_ATTRIBUTES) -> str:
    """A one-part score; the attributes go into the first measure."""
    body = []
    for number, content in enumerate(measures, start=1):
        head = attributes if number == 1 else ""
        body.append(f'    <measure number="{number}">{head}\n      {content}\n    </measure>\n')
    return HEADER + "".join(body) + FOOTER


def make_note(pitch: int, x: float = 100.0, y: float = 200.0) -> Note:
    """A note at an absolute pitch, spelled with sharps."""
    letters = ["C", "C", "D", "D", "E", "F", "F", "G", "G", "A", "A", "B"]
    sharp = {1, 3, 6, 8, 10}
    semitone = pitch % 12
    return Note(
        letter=letters[semitone],
        octave=pitch // 12,
        x=x,
        y=y,
        accidental=Accidental.SHARP if semitone in sharp else None,
    )


@pytest.fixture
def a_major_score() -> str:
    return score(
        pitched("A", 4, x=100, y=-10)
        + pitched("F", 4, x=160, y=-20)
        + rest()
        + pitched("E", 5, x=220, y=-30)
    )


@pytest.fixture
def png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (640, 480), "white").save(buffer, format="PNG")
    return buffer.getvalue()
