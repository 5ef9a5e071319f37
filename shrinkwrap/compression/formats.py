"""Accepted source formats and their compression capability."""

from dataclasses import dataclass
from enum import Enum
from io import BytesIO
from typing import Dict, List

from PIL import Image, UnidentifiedImageError

from .errors import DecodeFailure, UnsupportedFormat


class FormatCapability(Enum):
    """How a source format is handled by the search.

    LOSSLESS formats may skip the search when near-full size is requested.
    LOSSY formats are always searched.
    """
    LOSSLESS = "lossless"
    LOSSY = "lossy"


@dataclass(frozen=True)
class SourceFormat:
    """A supported input format.

    Attributes:
        mime_type: MIME type as reported by the upload (image/png, ...)
        name: Pillow format name (PNG, JPEG, WEBP)
        capability: Lossless or lossy handling
        extension: Preferred file extension
    """
    mime_type: str
    name: str
    capability: FormatCapability
    extension: str

    @property
    def is_lossless(self) -> bool:
        return self.capability is FormatCapability.LOSSLESS


JPEG = SourceFormat("image/jpeg", "JPEG", FormatCapability.LOSSY, ".jpg")
PNG = SourceFormat("image/png", "PNG", FormatCapability.LOSSLESS, ".png")
WEBP = SourceFormat("image/webp", "WEBP", FormatCapability.LOSSY, ".webp")

_FORMATS: Dict[str, SourceFormat] = {
    fmt.mime_type: fmt for fmt in (JPEG, PNG, WEBP)
}

# Pillow's Image.format -> MIME type
_PIL_NAMES: Dict[str, str] = {fmt.name: fmt.mime_type for fmt in _FORMATS.values()}
_PIL_NAMES['MPO'] = JPEG.mime_type  # multi-picture JPEGs from phone cameras


def get_source_format(mime_type: str) -> SourceFormat:
    """Look up an accepted source format.

    Args:
        mime_type: MIME type of the uploaded image

    Returns:
        Matching SourceFormat

    Raises:
        UnsupportedFormat: If the type is not accepted
    """
    fmt = _FORMATS.get((mime_type or "").lower())
    if fmt is None:
        raise UnsupportedFormat(mime_type)
    return fmt


def mime_type_for_pil_format(pil_format: str) -> str:
    """Map a Pillow format name to an accepted MIME type.

    Raises:
        UnsupportedFormat: If Pillow detected a format we do not accept
    """
    mime_type = _PIL_NAMES.get((pil_format or "").upper())
    if mime_type is None:
        raise UnsupportedFormat(pil_format or "unknown")
    return mime_type


def get_supported_mime_types() -> List[str]:
    """Get the accepted MIME types."""
    return list(_FORMATS.keys())


def sniff_mime_type(data: bytes) -> str:
    """Detect the MIME type of encoded image bytes from their content.

    Only the header is parsed; pixel data is not decoded.

    Args:
        data: Encoded image bytes

    Returns:
        Accepted MIME type

    Raises:
        DecodeFailure: If Pillow cannot identify the data as an image
        UnsupportedFormat: If the image is not JPEG, PNG or WEBP
    """
    try:
        with Image.open(BytesIO(data)) as img:
            pil_format = img.format
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise DecodeFailure(f"Not a readable image: {exc}") from exc
    return mime_type_for_pil_format(pil_format)
