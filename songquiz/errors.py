"""Error types shared by the song resolution and round layers."""


class SongQuizError(Exception):
    """Base class for every error raised by this package."""


class CurationError(SongQuizError):
    """Curation service unreachable, or its answer had no usable songs."""


class EmptyCache(SongQuizError):
    """No cached song batch is loaded (or it belongs to another language)."""


class ToolInvocationError(SongQuizError):
    """An external search, download or trim step failed or timed out."""


class NotFoundError(SongQuizError):
    """Unknown round id."""


class ValidationError(SongQuizError):
    """Malformed request parameters."""


def short(text, limit: int = 800) -> str:
    """Truncate tool output so it can be logged or stored safely."""
    text = "" if text is None else str(text)
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
