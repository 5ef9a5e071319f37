"""Target-size compression engine.

Encoders expose quality, not size, so the engine bisects a normalized
quality parameter in [0, 1] against the measured output size. Lossless
sources asking for (nearly) full size skip the search entirely.
"""

import logging
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional, Tuple

from PIL import Image

from .errors import EncodeFailure
from .result import CompressionRequest, CompressionResult, EncoderOptions, SourceImage
from .encoders import (
    BaseEncoder,
    JpegEncoder,
    PngEncoder,
    calculate_ssim_inmemory,
    decode_image,
    round_half_up,
)


_logger = logging.getLogger(__name__)


# Constants
MAX_ITERATIONS = 8  # Hard cap on encode trials per search
MIN_QUALITY = 0.01
MAX_QUALITY = 1.0
CONVERGENCE_WIDTH = 0.01  # Stop once the bracket is narrower than this
EARLY_EXIT_TOLERANCE = 0.02  # Fraction of the original size
LOSSLESS_THRESHOLD = 99.5  # Percent at or above which lossless sources are kept lossless

# progress_callback(iteration, quality_setting, size_bytes, adopted)
ProgressCallback = Optional[Callable[[int, int, int, bool], None]]


def initial_quality(target_percentage: float) -> float:
    """Heuristic first trial, biased toward the target ratio.

    Output size grows faster than linearly near the low end of the
    quality range, so this lands closer than the bracket midpoint.
    """
    return max(MIN_QUALITY, min(MAX_QUALITY, (target_percentage / 100) * 0.9 + 0.1))


def to_quality_setting(quality: float) -> int:
    """Express a normalized quality on the 0-100 reporting scale."""
    return max(0, min(100, round_half_up(quality * 100)))


@dataclass
class SearchState:
    """Running state of one bisection search.

    Attributes:
        low_quality: Lower bracket bound in [0, 1]
        high_quality: Upper bracket bound in [0, 1]
        best_result: Best candidate so far (starts as the unmodified source)
        iterations_remaining: Encode trials left before the cap
    """
    low_quality: float
    high_quality: float
    best_result: CompressionResult
    iterations_remaining: int

    @classmethod
    def start(
        cls,
        baseline: CompressionResult,
        max_iterations: int = MAX_ITERATIONS,
    ) -> "SearchState":
        """Create the state for a fresh search around a baseline result."""
        return cls(
            low_quality=MIN_QUALITY,
            high_quality=MAX_QUALITY,
            best_result=baseline,
            iterations_remaining=max_iterations,
        )

    def trial_quality(self, iteration: int, seed: float) -> float:
        """Quality to try next: the seed first, then the bracket midpoint.

        PNG sources transcoding to JPEG are seeded too; they do not start
        at the midpoint.
        """
        if iteration == 0:
            return seed
        return (self.low_quality + self.high_quality) / 2

    def converged(self) -> bool:
        """True once further bisection would not change the result."""
        return self.high_quality - self.low_quality < CONVERGENCE_WIDTH

    def consider(
        self,
        candidate: CompressionResult,
        iteration: int,
        target_bytes: float,
    ) -> bool:
        """Adopt candidate as best if it improves on it.

        Rules, first match wins:
        1. Candidate at or under target, and best is over target or smaller
           than candidate (largest under-target wins).
        2. Both over target and candidate is smaller (smallest over-target wins).
        3. First iteration only: candidate over target while best is still
           the untouched original.

        Returns:
            True if candidate became the new best
        """
        best = self.best_result
        size = candidate.size_bytes

        under_and_closer = size <= target_bytes and (
            best.size_bytes > target_bytes or size > best.size_bytes
        )
        smallest_over = (
            size > target_bytes
            and best.size_bytes > target_bytes
            and size < best.size_bytes
        )
        bootstrap = iteration == 0 and size > target_bytes and best.is_original

        if under_and_closer or smallest_over or bootstrap:
            self.best_result = candidate
            return True
        return False

    def close_enough(self, target_bytes: float, original_size_bytes: int) -> bool:
        """True if best is under target and within tolerance of it."""
        size = self.best_result.size_bytes
        return (
            size <= target_bytes
            and abs(size - target_bytes) < original_size_bytes * EARLY_EXIT_TOLERANCE
        )

    def narrow(self, quality: float, size_bytes: int, target_bytes: float) -> None:
        """Shrink the bracket around the trial just measured."""
        if size_bytes < target_bytes:
            self.low_quality = quality
        else:
            self.high_quality = quality


class CompressionEngine:
    """Finds the encoder quality whose output best approximates a target size.

    Features:
    - Lossless fast path for PNG at (nearly) full size
    - Seeded bisection capped at MAX_ITERATIONS encodes
    - Early exit when close to target
    - Per-search encode cache keyed by native quality

    The engine keeps no state between searches, so one instance can
    serve many sources.
    """

    def __init__(
        self,
        lossy_encoder: Optional[BaseEncoder] = None,
        lossless_encoder: Optional[BaseEncoder] = None,
        options: Optional[EncoderOptions] = None,
        max_iterations: int = MAX_ITERATIONS,
    ):
        """Initialize engine.

        Args:
            lossy_encoder: Encoder used for the search (JPEG by default)
            lossless_encoder: Encoder for the lossless fast path (PNG by default)
            options: Base encoding options (quality is overridden per trial)
            max_iterations: Cap on encode trials
        """
        self.lossy_encoder = lossy_encoder or JpegEncoder()
        self.lossless_encoder = lossless_encoder or PngEncoder()
        self.options = options or EncoderOptions()
        self.max_iterations = max_iterations

    def compress(self, request: CompressionRequest, **kwargs) -> CompressionResult:
        """Run a search for a prepared request."""
        return self.search(request.source, request.target_percentage, **kwargs)

    def search(
        self,
        source: SourceImage,
        target_percentage: float,
        calculate_ssim: bool = False,
        progress_callback: ProgressCallback = None,
    ) -> CompressionResult:
        """Compress source toward target_percentage of its original size.

        Args:
            source: Image to compress
            target_percentage: Desired size as percent of original (1-100)
            calculate_ssim: Whether to score the result against the source
            progress_callback: Called after every encode trial

        Returns:
            Best CompressionResult found

        Raises:
            ValueError: If target_percentage is outside 1-100
            DecodeFailure: If the source cannot be rasterized
            EncodeFailure: If any encode trial fails
        """
        request = CompressionRequest(source, target_percentage)
        start_time = time.time()

        image = decode_image(source.data)

        if source.source_format.is_lossless and target_percentage >= LOSSLESS_THRESHOLD:
            result = self._encode_lossless(image, source)
        else:
            result = self._search_lossy(
                image, request, progress_callback
            )

        if calculate_ssim:
            result = replace(
                result,
                ssim_score=calculate_ssim_inmemory(
                    image, decode_image(result.encoded_bytes)
                ),
            )

        result = replace(
            result,
            encoding_time_ms=int((time.time() - start_time) * 1000),
            message=self._build_message(result, request.target_size_bytes),
        )
        _logger.info(
            f"{source.name}: {source.original_size_bytes} -> {result.size_bytes} bytes "
            f"(target {target_percentage}%, quality {result.quality_setting}, "
            f"{result.iterations} encodes)"
        )
        return result

    def _encode_lossless(
        self,
        image: Image.Image,
        source: SourceImage,
    ) -> CompressionResult:
        """Re-serialize without loss; no search."""
        encoded, size = self._encode(
            image, self.lossless_encoder, self.options.with_quality(100)
        )
        return CompressionResult(
            encoded_bytes=encoded,
            size_bytes=size,
            quality_setting=100,
            mime_type=self.lossless_encoder.mime_type,
            dimensions=image.size,
            iterations=1,
        )

    def _search_lossy(
        self,
        image: Image.Image,
        request: CompressionRequest,
        progress_callback: ProgressCallback,
    ) -> CompressionResult:
        """Seeded bisection over normalized quality.

        Returns:
            Best result, or the unmodified source if no trial beat it
        """
        source = request.source
        target_bytes = request.target_size_bytes
        original_size = source.original_size_bytes

        baseline = CompressionResult(
            encoded_bytes=source.data,
            size_bytes=original_size,
            quality_setting=100,
            mime_type=source.mime_type,
            dimensions=image.size,
            is_original=True,
        )
        state = SearchState.start(baseline, self.max_iterations)
        seed = initial_quality(request.target_percentage)
        cache: Dict[int, Tuple[bytes, int]] = {}

        iteration = 0
        while state.iterations_remaining > 0:
            quality = state.trial_quality(iteration, seed)
            if iteration > 0 and state.converged():
                break

            encoded, size = self._encode_cached(image, quality, cache)
            state.iterations_remaining -= 1

            candidate = CompressionResult(
                encoded_bytes=encoded,
                size_bytes=size,
                quality_setting=to_quality_setting(quality),
                mime_type=self.lossy_encoder.mime_type,
                dimensions=image.size,
            )
            adopted = state.consider(candidate, iteration, target_bytes)

            _logger.debug(
                f"trial {iteration}: quality {quality:.4f} -> {size} bytes "
                f"(target {target_bytes:.0f}){' adopted' if adopted else ''}"
            )
            if progress_callback:
                progress_callback(iteration, candidate.quality_setting, size, adopted)

            iteration += 1

            if state.close_enough(target_bytes, original_size):
                break

            state.narrow(quality, size, target_bytes)

        return replace(state.best_result, iterations=iteration)

    def _encode_cached(
        self,
        image: Image.Image,
        quality: float,
        cache: Dict[int, Tuple[bytes, int]],
    ) -> Tuple[bytes, int]:
        """Encode with the lossy encoder, re-using same-native-quality output.

        Args:
            image: Decoded source
            quality: Normalized quality in [0, 1]
            cache: Per-search cache keyed by native quality

        Returns:
            Tuple of (encoded_bytes, size_in_bytes)
        """
        native = self.lossy_encoder.native_quality(quality)
        if native in cache:
            return cache[native]

        entry = self._encode(
            image, self.lossy_encoder, self.options.with_quality(native)
        )
        cache[native] = entry
        return entry

    def _encode(
        self,
        image: Image.Image,
        encoder: BaseEncoder,
        options: EncoderOptions,
    ) -> Tuple[bytes, int]:
        """Encode once, turning any encoder failure into EncodeFailure."""
        try:
            encoded = encoder.encode(image, options)
        except (OSError, ValueError, MemoryError) as exc:
            _logger.error(f"{encoder.format_name} encode failed at quality {options.quality}: {exc}")
            raise EncodeFailure(
                f"{encoder.format_name} encoder failed at quality {options.quality}: {exc}"
            ) from exc

        if not encoded:
            raise EncodeFailure(
                f"{encoder.format_name} encoder produced no output at quality {options.quality}"
            )
        return encoded, len(encoded)

    def _build_message(self, result: CompressionResult, target_bytes: float) -> str:
        """Build human-readable result message."""
        size_kb = result.size_bytes / 1024
        target_kb = target_bytes / 1024

        if result.is_original:
            return f"Kept original ({size_kb:.2f} KB); no encode beat it"
        if result.size_bytes <= target_bytes:
            return f"Compressed to {size_kb:.2f} KB at quality {result.quality_setting}"
        return (
            f"Could not reach target {target_kb:.2f} KB. "
            f"Closest: {size_kb:.2f} KB at quality {result.quality_setting}"
        )


_default_engine: Optional[CompressionEngine] = None


def search(
    source: SourceImage,
    target_percentage: float,
    **kwargs
) -> CompressionResult:
    """Run a search with a shared default engine.

    See CompressionEngine.search for arguments.
    """
    global _default_engine
    if _default_engine is None:
        _default_engine = CompressionEngine()
    return _default_engine.search(source, target_percentage, **kwargs)
