"""Encoders, decoder and quality metrics with optional dependency support.

Provides one lossy encoder (JPEG) and one lossless encoder (PNG), plus the
decoder used once per search to rasterize the source. MozJPEG optimization
and SSIM scoring degrade gracefully when their optional packages
(mozjpeg-lossless-optimization, scikit-image) are not installed.
"""

import logging
import math
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Optional, Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import DecodeFailure
from .result import EncoderOptions


_logger = logging.getLogger(__name__)


# Optional dependency checks
SSIM_AVAILABLE = False
try:
    from skimage.metrics import structural_similarity
    SSIM_AVAILABLE = True
except ImportError:
    pass

MOZJPEG_AVAILABLE = False
try:
    import mozjpeg_lossless_optimization
    MOZJPEG_AVAILABLE = True
except ImportError:
    pass


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


class BaseEncoder(ABC):
    """Abstract base class for format-specific encoders."""

    format_name: str
    mime_type: str

    @abstractmethod
    def encode(
        self,
        image: Image.Image,
        options: EncoderOptions
    ) -> bytes:
        """Encode image to bytes.

        Args:
            image: PIL Image to encode
            options: Encoding options

        Returns:
            Encoded image bytes
        """
        pass

    def get_quality_range(self) -> Tuple[int, int]:
        """Get valid native quality range for this format.

        Returns:
            Tuple of (min_quality, max_quality)
        """
        return (1, 100)

    def native_quality(self, quality: float) -> int:
        """Map a normalized quality in [0, 1] onto this encoder's range.

        Args:
            quality: Normalized quality parameter

        Returns:
            Native quality clamped to get_quality_range()
        """
        low, high = self.get_quality_range()
        return max(low, min(high, round_half_up(quality * 100)))

    def prepare_image(self, image: Image.Image) -> Image.Image:
        """Prepare image for encoding (mode conversion, etc).

        Args:
            image: Source image

        Returns:
            Image ready for encoding
        """
        return image


class JpegEncoder(BaseEncoder):
    """JPEG encoder with MozJPEG optimization support."""

    format_name = "JPEG"
    mime_type = "image/jpeg"

    def encode(self, image: Image.Image, options: EncoderOptions) -> bytes:
        """Encode image as JPEG."""
        image = self.prepare_image(image)

        buffer = BytesIO()
        image.save(
            buffer,
            format='JPEG',
            quality=options.quality,
            optimize=True,
            progressive=options.progressive,
            subsampling=options.chroma_subsampling,
        )
        encoded_bytes = buffer.getvalue()

        if options.use_mozjpeg and MOZJPEG_AVAILABLE:
            try:
                encoded_bytes = mozjpeg_lossless_optimization.optimize(encoded_bytes)
            except Exception as exc:
                # Output is still a valid JPEG, just not optimized
                _logger.warning(f"MozJPEG optimization skipped: {exc}")

        return encoded_bytes

    def prepare_image(self, image: Image.Image) -> Image.Image:
        """Convert to RGB for JPEG."""
        if image.mode == 'RGBA':
            # Composite on white background
            background = Image.new('RGB', image.size, (255, 255, 255))
            background.paste(image, mask=image.split()[3])
            return background
        elif image.mode in ('LA', 'PA') or (
            image.mode == 'P' and 'transparency' in image.info
        ):
            return self.prepare_image(image.convert('RGBA'))
        elif image.mode != 'RGB':
            return image.convert('RGB')
        return image


class PngEncoder(BaseEncoder):
    """PNG encoder (lossless, no quality setting)."""

    format_name = "PNG"
    mime_type = "image/png"

    def encode(self, image: Image.Image, options: EncoderOptions) -> bytes:
        """Encode image as PNG."""
        buffer = BytesIO()
        image.save(buffer, format='PNG', optimize=True)
        return buffer.getvalue()

    def get_quality_range(self) -> Tuple[int, int]:
        """PNG doesn't use quality."""
        return (100, 100)


def decode_image(data: bytes) -> Image.Image:
    """Rasterize encoded image bytes.

    The pixel data is fully loaded so later encodes never touch the
    original buffer again.

    Args:
        data: Encoded image bytes

    Returns:
        Loaded PIL Image

    Raises:
        DecodeFailure: If the data is not a readable image
    """
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError,
            OSError, ValueError, SyntaxError) as exc:
        raise DecodeFailure(f"Could not decode image: {exc}") from exc
    return image


def probe_dimensions(data: bytes) -> Tuple[int, int]:
    """Read pixel dimensions from the image header without decoding.

    Raises:
        DecodeFailure: If the data is not a readable image
    """
    try:
        with Image.open(BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise DecodeFailure(f"Could not read image dimensions: {exc}") from exc


def calculate_ssim_inmemory(
    original: Image.Image,
    compressed: Image.Image
) -> Optional[float]:
    """Calculate SSIM between two images in memory.

    Args:
        original: Original PIL Image
        compressed: Compressed PIL Image

    Returns:
        SSIM score (0.0 to 1.0) or None if scikit-image unavailable
    """
    if not SSIM_AVAILABLE:
        return None

    if original.size != compressed.size:
        compressed = compressed.resize(original.size, Image.Resampling.LANCZOS)

    # JPEG output has no alpha, so compare everything as RGB
    if original.mode != 'RGB':
        original = original.convert('RGB')
    if compressed.mode != 'RGB':
        compressed = compressed.convert('RGB')

    orig_array = np.array(original)
    comp_array = np.array(compressed)

    return float(structural_similarity(
        orig_array,
        comp_array,
        data_range=255,
        channel_axis=-1
    ))
