"""Utility functions for sizes, savings and output naming"""

from pathlib import Path

# Accepted upload extensions
SUPPORTED_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp'}


def is_supported_format(filepath: Path) -> bool:
    """
    Check if file extension is supported.

    Args:
        filepath: Path to check

    Returns:
        True if extension is supported
    """
    return Path(filepath).suffix.lower() in SUPPORTED_EXTENSIONS


def format_size_kb(size_bytes: int) -> str:
    """Format a byte count the way the results view shows it."""
    return f"{size_bytes / 1024:.2f} KB"


def calculate_savings(original_size: int, compressed_size: int) -> float:
    """
    Percentage saved relative to the original.

    Args:
        original_size: Original size in bytes
        compressed_size: Compressed size in bytes

    Returns:
        Savings in percent, 0.0 when the output is not smaller
    """
    if original_size <= 0 or compressed_size <= 0 or compressed_size >= original_size:
        return 0.0
    return (original_size - compressed_size) / original_size * 100


def build_output_name(original_name: str, target_percentage: float, mime_type: str) -> str:
    """
    Name for a downloaded result.

    Args:
        original_name: Uploaded file name
        target_percentage: Target the result was produced for
        mime_type: Output MIME type

    Returns:
        e.g. "holiday_compressed_target_50pct.jpg"
    """
    stem = Path(original_name).stem or original_name
    extension = {'image/png': '.png', 'image/webp': '.webp'}.get(mime_type, '.jpg')
    pct = f"{target_percentage:g}"
    return f"{stem}_compressed_target_{pct}pct{extension}"
