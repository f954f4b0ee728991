"""Tests for the end-to-end pipeline and its JSON export."""

from __future__ import annotations

import io
import json
import zipfile
from pathlib import Path

import pytest

from conftest import pitched, rest, score
from fingerboard.config import load_overlay_config
from fingerboard.fingering_engine.annotate import (
    analysis_to_json_bytes,
    analyze_document,
    annotate,
    collect,
)
from fingerboard.fingering_engine.models import FailureKind, ViolinString
from fingerboard.fingering_engine.overlay import OverlayConfig


class TestAnalyzeDocument:
    def test_success(self, a_major_score: str) -> None:
        result = analyze_document(a_major_score.encode("utf-8"))
        assert result.success
        assert result.key.name == "A"
        assert len(result.notes) == 3
        assert len(result.fingerings) == len(result.placements) == 3
        assert result.unplayable_count == 0
        # F is sharpened by the signature before lookup
        assert result.fingerings[1].note.name == "F#"
        assert result.fingerings[0].string is ViolinString.A
        assert result.fingerings[0].finger == 0

    def test_placements_follow_note_coordinates(self, a_major_score: str) -> None:
        result = analyze_document(a_major_score, overlay={"axis_offsets": {"x": 0, "y": 0}, "anchor_offset": 10})
        first = result.placements[0]
        assert (first.anchor_x, first.anchor_y) == (50.0, 315.0)

    def test_unplayable_notes_are_counted_not_fatal(self) -> None:
        result = analyze_document(score(pitched("C", 3) + pitched("A", 4) + pitched("C", 8)))
        assert result.success
        assert result.unplayable_count == 2
        assert len(result.fingerings) == 1

    def test_page_image_sets_bounds(self, a_major_score: str, png_bytes: bytes) -> None:
        far_right = score(pitched("A", 4, x=1400, y=-10))
        result = analyze_document(far_right, image_bytes=png_bytes)
        assert result.page_size == (640, 480)
        assert result.placements[0].clipped

    def test_unreadable_image_is_a_warning(self, a_major_score: str) -> None:
        result = analyze_document(a_major_score, image_bytes=b"nope")
        assert result.success
        assert result.page_size is None
        assert any("Cannot read page image" in entry for entry in result.logs)

    def test_explicit_config_bounds_win_over_image(self, a_major_score: str, png_bytes: bytes) -> None:
        config = OverlayConfig().with_bounds(2000, 2000)
        far_right = score(pitched("A", 4, x=1400, y=-10))
        result = analyze_document(far_right, image_bytes=png_bytes, overlay=config)
        assert not result.placements[0].clipped

    def test_loose_tree_input(self) -> None:
        tree = {"score-partwise": {"part": {"measure": {"note": {"pitch": {"step": "E", "octave": "5"}}}}}}
        result = analyze_document(tree)
        assert result.success
        assert result.fingerings[0].string is ViolinString.E

    def test_no_notes(self) -> None:
        result = analyze_document(score(rest()))
        assert not result.success
        assert result.failure is FailureKind.EMPTY
        assert result.error
        assert result.logs
        assert result.fingerings == []

    def test_malformed(self) -> None:
        result = analyze_document(b"")
        assert result.failure is FailureKind.MALFORMED

    @pytest.mark.parametrize("tree", [[{"score-partwise": {}}], None, 42])
    def test_tree_that_is_not_a_mapping(self, tree: object) -> None:
        result = analyze_document(tree)
        assert not result.success
        assert result.failure is FailureKind.STRUCTURE

    def test_compressed_score_with_dangling_rootfile(self, a_major_score: str) -> None:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            archive.writestr(
                "META-INF/container.xml",
                '<container><rootfiles><rootfile full-path="gone.xml"/></rootfiles></container>',
            )
            archive.writestr("real.xml", a_major_score)
        result = analyze_document(buffer.getvalue())
        assert result.success
        assert len(result.notes) == 3

    def test_key_is_logged_once(self, a_major_score: str) -> None:
        result = analyze_document(a_major_score)
        assert sum(1 for entry in result.logs if "] Key: A major" in entry) == 1

    def test_json_export(self, a_major_score: str) -> None:
        data = json.loads(analysis_to_json_bytes(analyze_document(a_major_score)))
        assert data["success"] is True
        assert data["note_count"] == 3
        assert data["fingering_count"] == 3
        assert data["key"]["key"] == "A"
        assert data["time_signature"] == {"numerator": 3, "denominator": 4}
        assert data["fingerings"][0] == {
            "string": "A",
            "finger": 0,
            "position": "1st",
            "note": data["notes"][0],
        }
        assert set(data["placements"][0]) == {
            "anchor_x", "anchor_y", "render_scale", "clipped", "string", "finger", "position",
        }
        assert data["failure"] is None


class TestAnnotateFile:
    def test_writes_json(self, tmp_path: Path, a_major_score: str) -> None:
        source = tmp_path / "etude.musicxml"
        source.write_text(a_major_score, encoding="utf-8")
        result = annotate(source, output_dir=tmp_path / "out")
        assert result.success
        saved = json.loads((tmp_path / "out" / "etude_fingering.json").read_text(encoding="utf-8"))
        assert saved["fingering_count"] == 3

    def test_missing_score_is_reported(self, tmp_path: Path) -> None:
        result = annotate(tmp_path / "missing.musicxml", output_dir=tmp_path)
        assert not result.success
        assert result.failure is FailureKind.NO_OUTPUT
        assert (tmp_path / "missing_fingering.json").is_file()

    def test_overrides_beat_config_file(self, tmp_path: Path, a_major_score: str) -> None:
        config = tmp_path / "overlay.yaml"
        config.write_text("overlay:\n  scale: 3\n", encoding="utf-8")
        source = tmp_path / "etude.xml"
        source.write_text(a_major_score, encoding="utf-8")

        from_file = annotate(source, output_dir=tmp_path, config_path=config)
        overridden = annotate(source, output_dir=tmp_path, config_path=config, overlay={"scale": 4})
        assert from_file.placements[0].render_scale == 3
        assert overridden.placements[0].render_scale == 4


class TestCollect:
    def test_no_output(self, tmp_path: Path) -> None:
        result = collect(tmp_path / "engine", "scan.png", output_dir=tmp_path)
        assert not result.success
        assert result.failure is FailureKind.NO_OUTPUT
        saved = json.loads((tmp_path / "scan_fingering.json").read_text(encoding="utf-8"))
        assert saved["failure"] == "no_output_found"

    def test_picks_up_score_and_image(self, tmp_path: Path, a_major_score: str, png_bytes: bytes) -> None:
        engine = tmp_path / "engine"
        engine.mkdir()
        (engine / "scan.musicxml").write_text(a_major_score, encoding="utf-8")
        (engine / "scan.png").write_bytes(png_bytes)

        result = collect(engine, "/uploads/scan.pdf", output_dir=tmp_path / "out")
        assert result.success
        assert result.page_size == (640, 480)
        assert any("Searching recognition output" in entry for entry in result.logs)

    def test_malformed_output(self, tmp_path: Path) -> None:
        (tmp_path / "score.xml").write_text("   ", encoding="utf-8")
        result = collect(tmp_path, "scan.png", output_dir=tmp_path / "out")
        assert result.failure is FailureKind.MALFORMED


class TestOverlayConfigFile:
    def test_shipped_defaults(self) -> None:
        options = load_overlay_config()
        assert options["scale"] == 2
        assert options["axis_offsets"] == {"x": 15, "y": 0}
        assert options["anchor_offset"] == 35

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_overlay_config(tmp_path / "nope.yaml")

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_overlay_config(path) == {}

    def test_top_level_mapping_without_section(self, tmp_path: Path) -> None:
        path = tmp_path / "flat.yaml"
        path.write_text("scale: 5\n", encoding="utf-8")
        assert load_overlay_config(path) == {"scale": 5}

    def test_non_mapping_is_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_overlay_config(path)
