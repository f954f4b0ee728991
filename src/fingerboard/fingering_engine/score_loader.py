"""Score Loader — turn recognition-engine output into a loose document tree.

Responsibilities:
    - Locate the notation document the recognition engine wrote.
    - Decode raw bytes: plain MusicXML (with or without a UTF-8 BOM) or a
      compressed ``.mxl`` ZIP container.
    - Parse the XML with *lxml* into nested dicts/lists/strings, the same
      loose shape a JSON-style XML converter produces.
    - Read the page image size with *Pillow*.

Like any collaborator, this module raises; the pipeline translates
:class:`ScoreLoadError` into a failure result.
"""

from __future__ import annotations

import io
import zipfile
import zlib
from pathlib import Path
from typing import Any

from lxml import etree
from PIL import Image, UnidentifiedImageError

from .models import FailureKind


NOTATION_EXTENSIONS: tuple[str, ...] = (".musicxml", ".xml", ".mxl")
IMAGE_EXTENSIONS: tuple[str, ...] = (".png", ".jpg", ".jpeg", ".tiff", ".tif")

_UTF8_BOM = b"\xef\xbb\xbf"
_ZIP_SIGNATURE = b"PK"
_CONTAINER_PATH = "META-INF/container.xml"


class ScoreLoadError(Exception):
    """Recognition output could not be found or read."""

    def __init__(self, kind: FailureKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


# ── Discovery ─────────────────────────────────────────────────

def find_recognition_output(output_dir: str | Path, input_name: str | Path) -> Path:
    """Return the notation document written into *output_dir*.

    The preferred names ``<stem>.musicxml|.xml|.mxl`` and
    ``score.musicxml|.xml`` directly inside *output_dir* win, in that
    order; otherwise the first file found recursively in sorted order.

    Raises:
        ScoreLoadError: (``NO_OUTPUT``) if nothing usable exists.
    """
    root = Path(output_dir)
    if not root.is_dir():
        raise ScoreLoadError(FailureKind.NO_OUTPUT, f"Recognition output directory not found: {root}")

    found: list[Path] = sorted(
        p for p in root.rglob("*") if p.is_file() and p.suffix.lower() in NOTATION_EXTENSIONS
    )

    stem = Path(input_name).stem
    preferred = [f"{stem}{ext}" for ext in NOTATION_EXTENSIONS] + ["score.musicxml", "score.xml"]
    first = [root / name for name in preferred if (root / name).is_file()]
    found = first + [p for p in found if p not in first]

    if not found:
        raise ScoreLoadError(
            FailureKind.NO_OUTPUT,
            f"No MusicXML output found in {root}. Check that the recognition engine ran successfully.",
        )
    return found[0]


def find_page_image(output_dir: str | Path, input_path: str | Path) -> Path:
    """Return the rendered page image next to the output, else the input file."""
    input_path = Path(input_path)
    for ext in IMAGE_EXTENSIONS:
        candidate = Path(output_dir) / f"{input_path.stem}{ext}"
        if candidate.is_file():
            return candidate
    return input_path


# ── Decoding ──────────────────────────────────────────────────

def _extract_from_container(data: bytes) -> str:
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as exc:
        raise ScoreLoadError(FailureKind.MALFORMED, f"Compressed MusicXML is not a valid archive: {exc}") from exc

    with archive:
        members = archive.namelist()
        names = [n for n in members if n != _CONTAINER_PATH]
        try:
            # Prefer the root file declared by the container, if any
            if _CONTAINER_PATH in members:
                try:
                    container = etree.fromstring(archive.read(_CONTAINER_PATH))
                except etree.XMLSyntaxError:
                    container = None
                if container is not None:
                    rootfiles = [
                        el.get("full-path")
                        for el in container.iter()
                        if isinstance(el.tag, str)
                        and etree.QName(el).localname == "rootfile"
                        and el.get("full-path") in members
                    ]
                    names = rootfiles + names
            for name in names:
                if name.lower().endswith((".xml", ".musicxml")):
                    return archive.read(name).decode("utf-8", errors="replace")
        except (KeyError, zipfile.BadZipFile, zlib.error) as exc:
            raise ScoreLoadError(
                FailureKind.MALFORMED, f"Compressed MusicXML member is unreadable: {exc}"
            ) from exc

    raise ScoreLoadError(FailureKind.MALFORMED, "No XML document found inside the compressed MusicXML file")


def decode_document(data: bytes | str) -> str:
    """Decode recognition output to XML text.

    Raises:
        ScoreLoadError: (``MALFORMED``) for empty or unreadable content.
    """
    if isinstance(data, str):
        text = data
    elif data.startswith(_ZIP_SIGNATURE):
        text = _extract_from_container(data)
    else:
        if data.startswith(_UTF8_BOM):
            data = data[len(_UTF8_BOM):]
        text = data.decode("utf-8", errors="replace")

    if not text.strip():
        raise ScoreLoadError(FailureKind.MALFORMED, "MusicXML document is empty")
    return text.lstrip("\ufeff")


# ── XML → loose tree ─────────────────────────────────────────

def _element_to_tree(element: etree._Element) -> Any:
    children: dict[str, Any] = {}
    for name, value in element.attrib.items():
        children[f"@{etree.QName(name).localname}"] = value

    for child in element:
        if not isinstance(child.tag, str):
            continue  # comments, processing instructions
        key = etree.QName(child).localname
        value = _element_to_tree(child)
        if key in children:
            existing = children[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                children[key] = [existing, value]
        else:
            children[key] = value

    text = (element.text or "").strip()
    if not children:
        return text
    if text:
        children["#text"] = text
    return children


def xml_to_tree(text: str) -> dict[str, Any]:
    """Parse XML text into ``{root_name: subtree}``.

    A strict parse is tried first, then a recovering one. Elements that
    occur once become a value, repeated elements become a list.

    Raises:
        ScoreLoadError: (``MALFORMED``) if neither parser yields a root.
    """
    raw = text.encode("utf-8")
    strict = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=False)
    try:
        root = etree.fromstring(raw, parser=strict)
    except etree.XMLSyntaxError as strict_error:
        lenient = etree.XMLParser(recover=True, resolve_entities=False, no_network=True)
        try:
            root = etree.fromstring(raw, parser=lenient)
        except etree.XMLSyntaxError as lenient_error:
            raise ScoreLoadError(
                FailureKind.MALFORMED,
                f"XML parsing failed: {strict_error}. Recovering parser also failed: {lenient_error}",
            ) from lenient_error
        if root is None:
            raise ScoreLoadError(FailureKind.MALFORMED, f"XML parsing failed: {strict_error}") from strict_error

    return {etree.QName(root).localname: _element_to_tree(root)}


def load_document(data: bytes | str) -> dict[str, Any]:
    """Convenience wrapper: decode → parse."""
    return xml_to_tree(decode_document(data))


# ── Page image ────────────────────────────────────────────────

def read_page_size(image_bytes: bytes) -> tuple[int, int]:
    """Return ``(width, height)`` of the page image in pixels.

    Raises:
        ValueError: If the bytes are not a readable image.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            return image.size
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError(f"Cannot read page image: {exc}") from exc
