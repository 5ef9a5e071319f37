"""
Compression session state for a single loaded image
"""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

from .compression import (
    CompressionEngine,
    CompressionError,
    CompressionResult,
    DecodeFailure,
    EncodeFailure,
    SourceImage,
    UnsupportedFormat,
    probe_dimensions,
)
from .compression.advisor import Suggester, Suggestion
from .compression.engine import ProgressCallback
from .utils import build_output_name, calculate_savings


_logger = logging.getLogger(__name__)

DEFAULT_TARGET_PERCENTAGE = 80


@dataclass(frozen=True)
class SearchOutcome:
    """Tagged outcome of one search request.

    Exactly one of result and error is set.
    """
    generation: int
    target_percentage: float
    result: Optional[CompressionResult] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None  # 'decode', 'encode', 'unsupported'

    @property
    def ok(self) -> bool:
        return self.result is not None


def _check_target(target_percentage: Optional[float]):
    if target_percentage is not None and not 1 <= target_percentage <= 100:
        raise ValueError(f"target_percentage must be 1-100, got {target_percentage}")


def _error_kind(ex: CompressionError) -> str:
    if isinstance(ex, DecodeFailure):
        return 'decode'
    if isinstance(ex, EncodeFailure):
        return 'encode'
    if isinstance(ex, UnsupportedFormat):
        return 'unsupported'
    return 'error'


class CompressionSession:
    """Holds the loaded image and surfaces the latest compression result.

    Searches requested with request() run on one background worker at a
    time. A newer request supersedes any that is still pending, and a
    result is only surfaced if no newer request was made while it ran.
    """

    def __init__(
        self,
        engine: Optional[CompressionEngine] = None,
        suggester: Optional[Suggester] = None,
        on_result: Optional[Callable[[SearchOutcome], None]] = None,
        default_target: int = DEFAULT_TARGET_PERCENTAGE,
        calculate_ssim: bool = False,
        progress_callback: ProgressCallback = None,
    ):
        """
        Initialize session

        Args:
            engine: Compression engine (default engine when None)
            suggester: Optional advisory suggester
            on_result: Called with each surfaced outcome (from the worker thread)
            default_target: Target percentage after load/clear
            calculate_ssim: Request SSIM scores with each search
            progress_callback: Forwarded to the engine for every encode trial
        """
        self.engine = engine or CompressionEngine()
        self.suggester = suggester
        self.on_result = on_result
        self.default_target = default_target
        self.calculate_ssim = calculate_ssim
        self.progress_callback = progress_callback

        self._lock = threading.Lock()
        self._generation = 0
        self._pending: Optional[Tuple[int, float]] = None
        self._worker: Optional[threading.Thread] = None
        self._running = False

        self.source: Optional[SourceImage] = None
        self.dimensions: Optional[Tuple[int, int]] = None
        self.target_percentage: float = default_target
        self.outcome: Optional[SearchOutcome] = None
        self.suggestion: Optional[Suggestion] = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def clear(self):
        """Forget the loaded image and everything derived from it"""
        with self._lock:
            # Anything still running belongs to the old image
            self._generation += 1
            self._pending = None
            self.source = None
            self.dimensions = None
            self.outcome = None
            self.suggestion = None
            self.target_percentage = self.default_target

    def load_bytes(
        self,
        data: bytes,
        mime_type: Optional[str] = None,
        name: str = "image",
    ) -> SourceImage:
        """
        Load an uploaded image.

        Args:
            data: Encoded image bytes
            mime_type: Declared MIME type (sniffed when None)
            name: Original file name

        Returns:
            The loaded SourceImage

        Raises:
            UnsupportedFormat: If the type is not JPEG, PNG or WEBP
            DecodeFailure: If the image header cannot be read
        """
        self.clear()
        source = SourceImage.from_bytes(data, mime_type=mime_type, name=name)
        dimensions = probe_dimensions(source.data)

        with self._lock:
            self.source = source
            self.dimensions = dimensions
        _logger.info(
            f"Loaded {name} ({source.mime_type}, {dimensions[0]}x{dimensions[1]}, "
            f"{source.original_size_bytes} bytes)"
        )
        return source

    def load_file(self, filepath: Union[str, Path]) -> SourceImage:
        """Load an image from disk."""
        filepath = Path(filepath)
        return self.load_bytes(filepath.read_bytes(), name=filepath.name)

    # ------------------------------------------------------------------
    # Compression
    # ------------------------------------------------------------------

    def compress(self, target_percentage: Optional[float] = None) -> SearchOutcome:
        """
        Run a search synchronously and surface its outcome.

        Args:
            target_percentage: Target to use (current target when None)

        Returns:
            SearchOutcome for this request

        Raises:
            ValueError: If target_percentage is outside 1-100
        """
        with self._lock:
            source = self._require_source()
            _check_target(target_percentage)
            if target_percentage is not None:
                self.target_percentage = target_percentage
            self._generation += 1
            self._pending = None
            generation = self._generation
            target = self.target_percentage

        outcome = self._run(generation, source, target)
        self._surface(outcome)
        return outcome

    def request(self, target_percentage: Optional[float] = None) -> int:
        """
        Queue a search on the background worker.

        Args:
            target_percentage: Target to use (current target when None)

        Returns:
            Generation number of this request

        Raises:
            ValueError: If target_percentage is outside 1-100
        """
        with self._lock:
            self._require_source()
            _check_target(target_percentage)
            if target_percentage is not None:
                self.target_percentage = target_percentage
            self._generation += 1
            self._pending = (self._generation, self.target_percentage)
            generation = self._generation

            if not self._running:
                self._running = True
                self._worker = threading.Thread(target=self._worker_loop, daemon=True)
                self._worker.start()
        return generation

    def wait(self, timeout: Optional[float] = None) -> Optional[SearchOutcome]:
        """Block until the background worker is idle; return the surfaced outcome."""
        worker = self._worker
        if worker is not None:
            worker.join(timeout)
        return self.outcome

    @property
    def is_processing(self) -> bool:
        return self._running

    @property
    def result(self) -> Optional[CompressionResult]:
        """Latest surfaced result, None after a failure"""
        outcome = self.outcome
        return outcome.result if outcome else None

    def _worker_loop(self):
        """Worker thread: run the newest pending request until none is left"""
        idle = False
        try:
            while True:
                with self._lock:
                    if self._pending is None or self.source is None:
                        # Cleared in the same critical section that request() checks
                        self._pending = None
                        self._running = False
                        idle = True
                        return
                    generation, target = self._pending
                    self._pending = None
                    source = self.source

                outcome = self._run(generation, source, target)
                self._surface(outcome)
        except Exception:
            _logger.exception("Background compression worker stopped")
            raise
        finally:
            if not idle:
                # Let the next request() start a fresh worker
                with self._lock:
                    self._running = False

    def _run(self, generation: int, source: SourceImage, target: float) -> SearchOutcome:
        try:
            result = self.engine.search(
                source,
                target,
                calculate_ssim=self.calculate_ssim,
                progress_callback=self.progress_callback,
            )
        except CompressionError as ex:
            _logger.error(f"Compression failed ({type(ex).__name__}): {ex}")
            return SearchOutcome(
                generation=generation,
                target_percentage=target,
                error=str(ex),
                error_kind=_error_kind(ex),
            )
        return SearchOutcome(generation=generation, target_percentage=target, result=result)

    def _surface(self, outcome: SearchOutcome):
        """Publish outcome unless a newer request has been made"""
        with self._lock:
            if outcome.generation != self._generation:
                _logger.debug(f"Dropping superseded result (generation {outcome.generation})")
                return
            self.outcome = outcome

        if self.on_result:
            self.on_result(outcome)

    def _require_source(self) -> SourceImage:
        if self.source is None:
            raise RuntimeError("No image loaded")
        return self.source

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------

    def suggest(self) -> Suggestion:
        """
        Ask the suggester for a target and apply it as the current target.

        The caller decides when to compress with it.

        Raises:
            RuntimeError: If no image is loaded or no suggester is configured
            SuggestionError: If the suggester fails
        """
        if self.suggester is None:
            raise RuntimeError("No suggester configured")
        source = self._require_source()

        suggestion = self.suggester.suggest(source.data, source.mime_type)
        with self._lock:
            if self.source is source:
                self.suggestion = suggestion
                self.target_percentage = suggestion.percentage
        return suggestion

    # ------------------------------------------------------------------
    # Presentation helpers
    # ------------------------------------------------------------------

    def savings_percent(self) -> float:
        """Size reduction of the current result, in percent"""
        result = self.result
        if self.source is None or result is None:
            return 0.0
        return calculate_savings(self.source.original_size_bytes, result.size_bytes)

    def download_name(self) -> Optional[str]:
        """File name for saving the current result"""
        result = self.result
        if self.source is None or result is None:
            return None
        return build_output_name(
            self.source.name, self.outcome.target_percentage, result.mime_type
        )
