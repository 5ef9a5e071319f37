"""
Settings persistence for ShrinkWrap
"""

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union


# Settings file location
SETTINGS_FILE = Path.cwd() / "shrinkwrap_settings.json"


@dataclass
class AppSettings:
    """User-adjustable settings.

    Attributes:
        default_target_percentage: Target used until the user picks one
        suggester_endpoint: Chat completions URL for target suggestions
        suggester_model: Model name for target suggestions
        suggester_api_key_env: Environment variable holding the API key
        suggester_timeout: Suggestion request timeout in seconds
        use_mozjpeg: Apply MozJPEG lossless optimization to JPEG output
        chroma_subsampling: JPEG chroma mode (0=4:4:4, 1=4:2:2, 2=4:2:0)
        calculate_ssim: Report SSIM for each result
        log_file: Log file name in the working directory
    """
    default_target_percentage: int = 80
    suggester_endpoint: str = "https://api.openai.com/v1/chat/completions"
    suggester_model: str = "gpt-4o-mini"
    suggester_api_key_env: str = "SHRINKWRAP_API_KEY"
    suggester_timeout: float = 60
    use_mozjpeg: bool = False
    chroma_subsampling: int = 2
    calculate_ssim: bool = False
    log_file: str = "shrinkwrap.log"

    def __post_init__(self):
        if not 1 <= self.default_target_percentage <= 100:
            raise ValueError(
                f"default_target_percentage must be 1-100, got {self.default_target_percentage}"
            )
        if self.chroma_subsampling not in (0, 1, 2):
            raise ValueError("chroma_subsampling must be 0, 1, or 2")

    @property
    def suggester_api_key(self) -> Optional[str]:
        """API key read from the configured environment variable."""
        return os.environ.get(self.suggester_api_key_env) or None


def get_default_settings() -> AppSettings:
    return AppSettings()


def load_settings(path: Optional[Union[str, Path]] = None) -> AppSettings:
    """
    Load settings from JSON file.

    Missing, unreadable or invalid files give the defaults; unknown keys
    are ignored.

    Args:
        path: Settings file (SETTINGS_FILE when None)

    Returns:
        AppSettings
    """
    path = Path(path) if path else SETTINGS_FILE
    if not path.exists():
        return get_default_settings()

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError):
        return get_default_settings()

    if not isinstance(data, dict):
        return get_default_settings()

    known = {f.name for f in fields(AppSettings)}
    values: Dict[str, Any] = {k: v for k, v in data.items() if k in known}
    try:
        return AppSettings(**values)
    except (TypeError, ValueError):
        return get_default_settings()


def save_settings(settings: AppSettings, path: Optional[Union[str, Path]] = None) -> bool:
    """
    Save settings to JSON file.

    Args:
        settings: Settings to save
        path: Settings file (SETTINGS_FILE when None)

    Returns:
        True if saved successfully
    """
    path = Path(path) if path else SETTINGS_FILE
    try:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(asdict(settings), f, indent=2)
        return True
    except IOError:
        return False
