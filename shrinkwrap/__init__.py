"""ShrinkWrap: recompress images toward a chosen percentage of their size"""

from .compression import (
    CompressionEngine,
    CompressionResult,
    SourceImage,
    search,
)
from .session import CompressionSession, SearchOutcome
from .settings import AppSettings, load_settings, save_settings

__version__ = "1.0.0"

__all__ = [
    'CompressionEngine',
    'CompressionResult',
    'SourceImage',
    'search',
    'CompressionSession',
    'SearchOutcome',
    'AppSettings',
    'load_settings',
    'save_settings',
]
