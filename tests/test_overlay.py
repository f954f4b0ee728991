"""Tests for overlay configuration and placement."""

from __future__ import annotations

import pytest

from conftest import make_note
from fingerboard.fingering_engine.diagnostics import Diagnostics
from fingerboard.fingering_engine.models import Fingering, Position, ViolinString
from fingerboard.fingering_engine.overlay import (
    DEFAULT_ANCHOR_OFFSET,
    DEFAULT_OFFSET_X,
    DEFAULT_SCALE,
    EDGE_MARGIN,
    OverlayConfig,
    is_clipped,
    place,
    place_all,
)


def fingering_at(x: float, y: float) -> Fingering:
    return Fingering(string=ViolinString.A, finger=1, position=Position.FIRST, note=make_note(59, x=x, y=y))


class TestOverlayConfig:
    def test_defaults(self) -> None:
        config = OverlayConfig.from_mapping(None)
        assert config.scale == DEFAULT_SCALE == 2.0
        assert config.offset_x == DEFAULT_OFFSET_X == 15.0
        assert config.offset_y == 0.0
        assert config.anchor_offset == DEFAULT_ANCHOR_OFFSET == 35.0
        assert not config.has_bounds

    def test_values_are_read(self) -> None:
        config = OverlayConfig.from_mapping(
            {
                "scale": 3,
                "axis_offsets": {"x": 5, "y": -2},
                "anchor_offset": 20,
                "display_bounds": {"width": 800, "height": 1000},
            }
        )
        assert (config.scale, config.offset_x, config.offset_y, config.anchor_offset) == (3.0, 5.0, -2.0, 20.0)
        assert (config.display_width, config.display_height) == (800.0, 1000.0)

    @pytest.mark.parametrize("scale", [0, -1, "big", True, float("nan")])
    def test_invalid_scale_falls_back_with_diagnostic(self, scale: object) -> None:
        diagnostics = Diagnostics()
        config = OverlayConfig.from_mapping({"scale": scale}, diagnostics)
        assert config.scale == DEFAULT_SCALE
        assert len(diagnostics) == 1

    def test_unknown_key_is_reported(self) -> None:
        diagnostics = Diagnostics()
        OverlayConfig.from_mapping({"colour": "red"}, diagnostics)
        assert any("colour" in entry for entry in diagnostics.entries)

    def test_offsets_must_be_a_mapping(self) -> None:
        diagnostics = Diagnostics()
        config = OverlayConfig.from_mapping({"axis_offsets": 10}, diagnostics)
        assert config.offset_x == DEFAULT_OFFSET_X
        assert len(diagnostics) == 1

    def test_incomplete_bounds_are_dropped(self) -> None:
        diagnostics = Diagnostics()
        config = OverlayConfig.from_mapping({"display_bounds": {"width": 800}}, diagnostics)
        assert not config.has_bounds
        assert any("display_bounds" in entry for entry in diagnostics.entries)

    def test_with_bounds(self) -> None:
        config = OverlayConfig(scale=4).with_bounds(640, 480)
        assert config.scale == 4
        assert (config.display_width, config.display_height) == (640, 480)


class TestPlacement:
    def test_anchor_is_offset_from_note(self) -> None:
        placement = place(fingering_at(100, 200), OverlayConfig())
        assert (placement.anchor_x, placement.anchor_y) == (115.0, 235.0)
        assert placement.render_scale == 2.0
        assert not placement.clipped
        assert (placement.string, placement.finger, placement.position) == (
            ViolinString.A,
            1,
            Position.FIRST,
        )

    @pytest.mark.parametrize(
        "x, y",
        [(-20, 200), (100, -40), (700, 200), (100, 460)],
    )
    def test_near_edge_is_clipped(self, x: float, y: float) -> None:
        config = OverlayConfig().with_bounds(640, 480)
        assert place(fingering_at(x, y), config).clipped

    def test_default_page_size_when_no_bounds(self) -> None:
        # inside 1200x1600, outside a 640x480 page
        fingering = fingering_at(900, 1000)
        assert not place(fingering, OverlayConfig()).clipped
        assert place(fingering, OverlayConfig().with_bounds(640, 480)).clipped

    def test_is_clipped_margin(self) -> None:
        assert is_clipped(EDGE_MARGIN - 1, 100, 500, 500)
        assert not is_clipped(EDGE_MARGIN, 100, 500, 500)
        assert not is_clipped(500 - EDGE_MARGIN, 500 - EDGE_MARGIN, 500, 500)
        assert is_clipped(500 - EDGE_MARGIN + 1, 100, 500, 500)

    def test_place_all_keeps_clipped_placements(self) -> None:
        diagnostics = Diagnostics()
        fingerings = [fingering_at(100, 100), fingering_at(5000, 100)]
        placements = place_all(fingerings, OverlayConfig().with_bounds(640, 480), diagnostics)
        assert len(placements) == 2
        assert [p.clipped for p in placements] == [False, True]
        assert any("1 placement(s)" in entry for entry in diagnostics.entries)

    def test_place_all_warns_without_bounds(self) -> None:
        diagnostics = Diagnostics()
        place_all([fingering_at(100, 100)], OverlayConfig(), diagnostics)
        assert any("No display bounds" in entry for entry in diagnostics.entries)
