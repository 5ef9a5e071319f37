"""Exception types raised by the compression search and its collaborators."""


class CompressionError(Exception):
    """Base class for all compression failures."""
    pass


class DecodeFailure(CompressionError):
    """Source bytes could not be rasterized for re-encoding."""
    pass


class EncodeFailure(CompressionError):
    """The encoder could not produce output for a trial.

    Fatal to the whole search: no partial result is returned.
    """
    pass


class UnsupportedFormat(CompressionError, ValueError):
    """Input MIME type is outside the accepted set."""

    def __init__(self, mime_type: str):
        self.mime_type = mime_type
        super().__init__(f"Unsupported image type: {mime_type}")


class SuggestionError(Exception):
    """The advisory suggester failed to produce a usable suggestion."""
    pass
