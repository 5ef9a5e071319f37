"""Value records passed into and out of the compression search."""

import base64
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

from .formats import SourceFormat, get_source_format, sniff_mime_type


@dataclass(frozen=True)
class SourceImage:
    """An uploaded image, kept exactly as it was received.

    Attributes:
        data: Original encoded bytes
        mime_type: image/jpeg, image/png or image/webp
        original_size_bytes: Declared size of the original upload
        name: Original file name (used for download naming)
    """
    data: bytes
    mime_type: str
    original_size_bytes: int
    name: str = "image"

    def __post_init__(self):
        """Validate source fields."""
        # Raises UnsupportedFormat for anything outside the accepted set
        get_source_format(self.mime_type)
        if self.original_size_bytes <= 0:
            raise ValueError(
                f"original_size_bytes must be positive, got {self.original_size_bytes}"
            )

    @property
    def source_format(self) -> SourceFormat:
        return get_source_format(self.mime_type)

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        mime_type: Optional[str] = None,
        name: str = "image",
    ) -> "SourceImage":
        """Build a source from raw upload bytes.

        Args:
            data: Encoded image bytes
            mime_type: Declared MIME type (sniffed from content when None)
            name: Original file name

        Returns:
            SourceImage sized by len(data)
        """
        if mime_type is None:
            mime_type = sniff_mime_type(data)
        return cls(data=bytes(data), mime_type=mime_type,
                   original_size_bytes=len(data), name=name)

    @classmethod
    def from_file(cls, filepath: Union[str, Path]) -> "SourceImage":
        """Read a source image from disk, detecting its type from content."""
        filepath = Path(filepath)
        data = filepath.read_bytes()
        return cls.from_bytes(data, name=filepath.name)


@dataclass(frozen=True)
class CompressionRequest:
    """A single search invocation.

    Attributes:
        source: Image to compress
        target_percentage: Desired output size as percent of the original (1-100)
    """
    source: SourceImage
    target_percentage: float

    def __post_init__(self):
        if not 1 <= self.target_percentage <= 100:
            raise ValueError(
                f"target_percentage must be 1-100, got {self.target_percentage}"
            )

    @property
    def target_size_bytes(self) -> float:
        """Target size in bytes (not rounded)."""
        return self.source.original_size_bytes * (self.target_percentage / 100)


@dataclass(frozen=True)
class CompressionResult:
    """Outcome of a search.

    Attributes:
        encoded_bytes: The compressed image data
        size_bytes: Size of encoded_bytes
        quality_setting: Encoder quality used, on a 0-100 scale
        mime_type: Output MIME type (image/jpeg or image/png)
        dimensions: Pixel dimensions (width, height)
        is_original: True if nothing beat the unmodified upload
        iterations: Number of encode trials performed
        encoding_time_ms: Wall time spent in the search
        ssim_score: Structural similarity to the source, if calculated
        message: Human-readable status message
    """
    encoded_bytes: bytes
    size_bytes: int
    quality_setting: int
    mime_type: str
    dimensions: Tuple[int, int] = (0, 0)
    is_original: bool = False

    iterations: int = 0
    encoding_time_ms: int = 0
    ssim_score: Optional[float] = None

    message: str = ""

    @property
    def size_kb(self) -> float:
        """Get size in kilobytes."""
        return self.size_bytes / 1024

    @property
    def file_extension(self) -> str:
        return get_source_format(self.mime_type).extension

    def to_data_url(self) -> str:
        """Encode the result as a data URL suitable for display."""
        payload = base64.b64encode(self.encoded_bytes).decode('ascii')
        return f"data:{self.mime_type};base64,{payload}"


@dataclass
class EncoderOptions:
    """Options for format-specific encoding.

    Attributes:
        quality: Native encoder quality (1-100)
        chroma_subsampling: JPEG chroma mode (0=4:4:4, 1=4:2:2, 2=4:2:0)
        progressive: Enable progressive encoding
        use_mozjpeg: Apply MozJPEG lossless optimization
    """
    quality: int = 85
    chroma_subsampling: int = 2
    progressive: bool = False
    use_mozjpeg: bool = False

    def __post_init__(self):
        """Validate options."""
        if not 1 <= self.quality <= 100:
            raise ValueError(f"quality must be 1-100, got {self.quality}")
        if self.chroma_subsampling not in (0, 1, 2):
            raise ValueError("chroma_subsampling must be 0, 1, or 2")

    def with_quality(self, quality: int) -> "EncoderOptions":
        """Copy these options with a different quality."""
        return EncoderOptions(
            quality=quality,
            chroma_subsampling=self.chroma_subsampling,
            progressive=self.progressive,
            use_mozjpeg=self.use_mozjpeg,
        )
