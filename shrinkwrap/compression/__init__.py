"""Target-size image compression: search engine, encoders and suggester."""

from .errors import (
    CompressionError,
    DecodeFailure,
    EncodeFailure,
    UnsupportedFormat,
    SuggestionError,
)
from .formats import FormatCapability, SourceFormat, get_source_format, get_supported_mime_types
from .result import SourceImage, CompressionRequest, CompressionResult, EncoderOptions
from .engine import CompressionEngine, SearchState, search
from .encoders import (
    MOZJPEG_AVAILABLE,
    SSIM_AVAILABLE,
    decode_image,
    probe_dimensions,
    calculate_ssim_inmemory,
)
from .advisor import Suggestion, Suggester, HttpSuggester

__all__ = [
    'CompressionError',
    'DecodeFailure',
    'EncodeFailure',
    'UnsupportedFormat',
    'SuggestionError',
    'FormatCapability',
    'SourceFormat',
    'get_source_format',
    'get_supported_mime_types',
    'SourceImage',
    'CompressionRequest',
    'CompressionResult',
    'EncoderOptions',
    'CompressionEngine',
    'SearchState',
    'search',
    'MOZJPEG_AVAILABLE',
    'SSIM_AVAILABLE',
    'decode_image',
    'probe_dimensions',
    'calculate_ssim_inmemory',
    'Suggestion',
    'Suggester',
    'HttpSuggester',
]
