"""Tests for analysis input handling."""

from __future__ import annotations

import io
from pathlib import Path

import pytest
from PIL import Image

from lingolens.errors import InputInvalid
from lingolens.inputs import (
    DescriptionInput,
    InputSelection,
    format_file_size,
    image_from_bytes,
    load_image,
    validate_description,
)

from conftest import make_png_bytes


@pytest.mark.parametrize(
    ("size", "expected"),
    [(0, "0 Bytes"), (512, "512 Bytes"), (1536, "1.5 KB"), (1048576, "1 MB"), (5 * 1024 ** 3, "5 GB")],
)
def test_format_file_size(size: int, expected: str) -> None:
    assert format_file_size(size) == expected


def test_image_from_bytes_detects_png(png_bytes: bytes) -> None:
    image = image_from_bytes(png_bytes, "photo.png")

    assert image.mime_type == "image/png"
    assert image.size == len(png_bytes)
    assert image.name == "photo.png"
    assert image.base64


def test_image_from_bytes_rejects_garbage() -> None:
    with pytest.raises(InputInvalid):
        image_from_bytes(b"definitely not an image", "fake.png")


def test_image_from_bytes_rejects_empty() -> None:
    with pytest.raises(InputInvalid):
        image_from_bytes(b"", "empty.png")


def test_image_from_bytes_accepts_multi_frame_jpeg() -> None:
    """Phone cameras write MPO (multi-frame JPEG); Pillow reports it as its own format."""
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), "red").save(
        buffer, format="MPO", save_all=True, append_images=[Image.new("RGB", (8, 8), "blue")]
    )

    image = image_from_bytes(buffer.getvalue(), "photo.jpg")

    assert image.mime_type == "image/jpeg"


def test_image_from_bytes_rejects_decompression_bomb(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)

    with pytest.raises(InputInvalid):
        image_from_bytes(make_png_bytes(size=(64, 64)), "huge.png")


def test_load_image_from_disk(tmp_path: Path) -> None:
    path = tmp_path / "scene.PNG"
    path.write_bytes(make_png_bytes((16, 12), "blue"))

    image = load_image(str(path))

    assert image.name == "scene.PNG"
    assert image.mime_type == "image/png"


def test_load_image_rejects_extension(tmp_path: Path) -> None:
    path = tmp_path / "notes.txt"
    path.write_bytes(make_png_bytes())

    with pytest.raises(InputInvalid):
        load_image(str(path))


def test_load_image_missing_file(tmp_path: Path) -> None:
    with pytest.raises(InputInvalid):
        load_image(str(tmp_path / "missing.jpg"))


def test_validate_description_trims() -> None:
    assert validate_description("   A dog in the park   ") == DescriptionInput("A dog in the park")


@pytest.mark.parametrize("text", [None, "", "short", "   nine ch  ", "y" * 501])
def test_validate_description_bounds(text) -> None:
    with pytest.raises(InputInvalid):
        validate_description(text)


def test_validate_description_accepts_limits() -> None:
    assert validate_description("x" * 10).text == "x" * 10
    assert validate_description("x" * 500).text == "x" * 500


def test_selection_is_exclusive(image_input) -> None:
    """Selecting an image clears the description and vice versa."""
    selection = InputSelection()
    assert selection.mode is None

    selection.select_description("A crowded train station")
    assert selection.mode == "description"

    selection.select_image(image_input)
    assert selection.mode == "image"
    assert selection.description is None
    assert selection.active() is image_input

    selection.select_description("A crowded train station")
    assert selection.image is None
    assert selection.active() == DescriptionInput("A crowded train station")


def test_selection_active_requires_input() -> None:
    selection = InputSelection()
    with pytest.raises(InputInvalid):
        selection.active()


def test_invalid_description_keeps_previous_selection(image_input) -> None:
    selection = InputSelection()
    selection.select_image(image_input)

    with pytest.raises(InputInvalid):
        selection.select_description("tiny")

    assert selection.image is image_input
