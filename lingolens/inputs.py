"""
Analysis inputs: an image or a free-text scene description.

Images are checked with Pillow before they are accepted, so a renamed or
truncated file is rejected here instead of failing inside the model call.
"""

import base64
import io
import os
from dataclasses import dataclass
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError

from .config import DESCRIPTION_MAX_LENGTH, DESCRIPTION_MIN_LENGTH, IMAGE_FORMATS, IMAGE_MIME_TYPES
from .errors import InputInvalid
from .logger import logger


@dataclass(frozen=True)
class ImageInput:
    data: bytes
    mime_type: str
    name: str
    size: int

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


@dataclass(frozen=True)
class DescriptionInput:
    text: str


AnalysisInput = Union[ImageInput, DescriptionInput]


def format_file_size(num_bytes: int) -> str:
    """Human-readable size, e.g. 1536 -> '1.5 KB'."""
    if num_bytes <= 0:
        return "0 Bytes"
    size = float(num_bytes)
    for unit in ("Bytes", "KB", "MB"):
        if size < 1024:
            return f"{size:.2f}".rstrip("0").rstrip(".") + f" {unit}"
        size /= 1024
    return f"{size:.2f}".rstrip("0").rstrip(".") + " GB"


def validate_description(text: Optional[str]) -> DescriptionInput:
    """Trim and length-check a scene description."""
    cleaned = (text or "").strip()
    if len(cleaned) < DESCRIPTION_MIN_LENGTH:
        raise InputInvalid(
            f"Description must be at least {DESCRIPTION_MIN_LENGTH} characters (got {len(cleaned)})"
        )
    if len(cleaned) > DESCRIPTION_MAX_LENGTH:
        raise InputInvalid(
            f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters (got {len(cleaned)})"
        )
    return DescriptionInput(text=cleaned)


def image_from_bytes(data: bytes, name: str) -> ImageInput:
    """Build an ImageInput after verifying the bytes decode as a supported image."""
    if not data:
        raise InputInvalid(f"{name} is empty")
    try:
        with Image.open(io.BytesIO(data)) as img:
            image_format = img.format
            img.verify()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as e:
        raise InputInvalid(f"{name} is not a readable image: {e}") from e

    mime_type = IMAGE_FORMATS.get(image_format or "")
    if mime_type is None:
        raise InputInvalid(
            f"{name} has unsupported format {image_format}; use JPG, PNG, WebP or GIF"
        )
    return ImageInput(data=data, mime_type=mime_type, name=name, size=len(data))


def load_image(path: str) -> ImageInput:
    """Read and verify an image file chosen by the user."""
    ext = os.path.splitext(path)[1].lower()
    if ext not in IMAGE_MIME_TYPES:
        raise InputInvalid(f"Please select a valid image file (JPG, PNG, WebP, GIF), got '{ext}'")
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise InputInvalid(f"Could not read {path}: {e}") from e

    image = image_from_bytes(data, os.path.basename(path))
    logger.io(f"Loaded image {image.name} ({format_file_size(image.size)}, {image.mime_type})")
    return image


class InputSelection:
    """
    Holds the current analysis input. At most one of image/description is
    set; selecting one clears the other.
    """

    def __init__(self) -> None:
        self._image: Optional[ImageInput] = None
        self._description: Optional[DescriptionInput] = None

    @property
    def image(self) -> Optional[ImageInput]:
        return self._image

    @property
    def description(self) -> Optional[DescriptionInput]:
        return self._description

    @property
    def mode(self) -> Optional[str]:
        if self._image is not None:
            return "image"
        if self._description is not None:
            return "description"
        return None

    def select_image(self, image: ImageInput) -> None:
        self._image = image
        self._description = None

    def select_description(self, text: str) -> DescriptionInput:
        description = validate_description(text)
        self._description = description
        self._image = None
        return description

    def clear(self) -> None:
        self._image = None
        self._description = None

    def active(self) -> AnalysisInput:
        """The selected input; raises InputInvalid when nothing is selected."""
        if self._image is not None:
            return self._image
        if self._description is not None:
            return self._description
        raise InputInvalid("Select an image or enter a scene description first")
