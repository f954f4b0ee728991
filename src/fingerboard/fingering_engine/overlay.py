"""Overlay — map fingerings to on-page placement descriptors.

Presentation options come from a plain mapping (YAML file or UI state):

    scale:          render scale for the high-resolution canvas (> 0)
    axis_offsets:   {x, y} correction applied to the note coordinate
    anchor_offset:  vertical distance from the note to the badge
    display_bounds: {width, height} of the original, unscaled page

Every option has a named default. Unknown keys and invalid values fall
back to that default and leave a diagnostic; nothing is clamped silently.
The mapper flags placements too close to the page edge as ``clipped``
but never drops them; filtering is the renderer's job.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping

from .diagnostics import Diagnostics
from .models import Fingering, Placement


DEFAULT_SCALE: float = 2.0
DEFAULT_OFFSET_X: float = 15.0      # centres the badge on the note head
DEFAULT_OFFSET_Y: float = 0.0
DEFAULT_ANCHOR_OFFSET: float = 35.0  # badge sits below the note
DEFAULT_PAGE_WIDTH: int = 1200
DEFAULT_PAGE_HEIGHT: int = 1600

# Badge radius: a badge centred closer than this to an edge is cut off
EDGE_MARGIN: float = 18.0

KNOWN_KEYS: frozenset[str] = frozenset(
    {"scale", "axis_offsets", "anchor_offset", "display_bounds"}
)


@dataclass(frozen=True)
class OverlayConfig:
    scale: float = DEFAULT_SCALE
    offset_x: float = DEFAULT_OFFSET_X
    offset_y: float = DEFAULT_OFFSET_Y
    anchor_offset: float = DEFAULT_ANCHOR_OFFSET
    display_width: float | None = None
    display_height: float | None = None

    @property
    def has_bounds(self) -> bool:
        return self.display_width is not None and self.display_height is not None

    def with_bounds(self, width: float, height: float) -> "OverlayConfig":
        return OverlayConfig(
            scale=self.scale,
            offset_x=self.offset_x,
            offset_y=self.offset_y,
            anchor_offset=self.anchor_offset,
            display_width=width,
            display_height=height,
        )

    @classmethod
    def from_mapping(
        cls,
        options: Mapping[str, Any] | None,
        diagnostics: Diagnostics | None = None,
    ) -> "OverlayConfig":
        """Build a config from user options, falling back per field.

        Args:
            options: Mapping with any of the keys in :data:`KNOWN_KEYS`.
            diagnostics: Accumulator for every fallback applied.

        Returns:
            A fully populated :class:`OverlayConfig`.
        """
        diagnostics = diagnostics if diagnostics is not None else Diagnostics(__name__)
        if options is None:
            return cls()
        if not isinstance(options, Mapping):
            diagnostics.warning(f"Overlay options must be a mapping, got {type(options).__name__}; using defaults")
            return cls()

        for key in options:
            if key not in KNOWN_KEYS:
                diagnostics.warning(f"Unknown overlay option '{key}' ignored")

        scale = _number(options, "scale", DEFAULT_SCALE, diagnostics)
        if scale <= 0:
            diagnostics.warning(f"Overlay scale must be > 0, got {scale}; using {DEFAULT_SCALE}")
            scale = DEFAULT_SCALE

        offsets = _section(options, "axis_offsets", diagnostics)
        offset_x = _number(offsets, "x", DEFAULT_OFFSET_X, diagnostics, prefix="axis_offsets.")
        offset_y = _number(offsets, "y", DEFAULT_OFFSET_Y, diagnostics, prefix="axis_offsets.")
        anchor_offset = _number(options, "anchor_offset", DEFAULT_ANCHOR_OFFSET, diagnostics)

        width = height = None
        bounds = _section(options, "display_bounds", diagnostics)
        if bounds:
            width = _number(bounds, "width", None, diagnostics, prefix="display_bounds.")
            height = _number(bounds, "height", None, diagnostics, prefix="display_bounds.")
            if width is None or height is None or width <= 0 or height <= 0:
                diagnostics.warning(
                    "display_bounds needs positive width and height; using the page image size"
                )
                width = height = None

        return cls(
            scale=scale,
            offset_x=offset_x,
            offset_y=offset_y,
            anchor_offset=anchor_offset,
            display_width=width,
            display_height=height,
        )


def _section(options: Mapping[str, Any], key: str, diagnostics: Diagnostics) -> Mapping[str, Any]:
    value = options.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        diagnostics.warning(f"Overlay option '{key}' must be a mapping; using defaults")
        return {}
    return value


def _number(
    options: Mapping[str, Any],
    key: str,
    default: float | None,
    diagnostics: Diagnostics,
    prefix: str = "",
) -> float | None:
    value = options.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        diagnostics.warning(f"Overlay option '{prefix}{key}' is not a number; using {default}")
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        diagnostics.warning(f"Overlay option '{prefix}{key}'={value!r} is not a number; using {default}")
        return default
    if not math.isfinite(number):
        diagnostics.warning(f"Overlay option '{prefix}{key}' is not finite; using {default}")
        return default
    return number


def is_clipped(x: float, y: float, width: float, height: float, margin: float = EDGE_MARGIN) -> bool:
    """True when ``(x, y)`` lies within *margin* of the page edge or outside it."""
    return x < margin or y < margin or x > width - margin or y > height - margin


def place(fingering: Fingering, config: OverlayConfig) -> Placement:
    """Placement descriptor for one fingering.

    Offsets are applied to the source note's page coordinate, then the
    result is checked against the unscaled display bounds (defaults are
    used when the config has none).
    """
    note = fingering.note
    anchor_x = note.x + config.offset_x
    anchor_y = note.y + config.offset_y + config.anchor_offset

    width = config.display_width if config.display_width is not None else DEFAULT_PAGE_WIDTH
    height = config.display_height if config.display_height is not None else DEFAULT_PAGE_HEIGHT

    return Placement(
        anchor_x=anchor_x,
        anchor_y=anchor_y,
        render_scale=config.scale,
        clipped=is_clipped(anchor_x, anchor_y, width, height),
        string=fingering.string,
        finger=fingering.finger,
        position=fingering.position,
    )


def place_all(
    fingerings: list[Fingering],
    config: OverlayConfig,
    diagnostics: Diagnostics | None = None,
) -> list[Placement]:
    """Placement descriptors for every fingering, in order."""
    diagnostics = diagnostics if diagnostics is not None else Diagnostics(__name__)
    if not config.has_bounds:
        diagnostics.warning(
            f"No display bounds known, clipping against {DEFAULT_PAGE_WIDTH}x{DEFAULT_PAGE_HEIGHT}"
        )
    placements = [place(f, config) for f in fingerings]
    clipped = sum(1 for p in placements if p.clipped)
    if clipped:
        diagnostics.add(f"{clipped} placement(s) fall outside the drawable page area")
    return placements
