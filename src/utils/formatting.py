"""Human-readable formatting helpers shared by the API, services and CLI."""

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_file_size(size: int) -> str:
    """Format a byte count using base-1024 units.

    Up to two decimals are kept, trailing zeros dropped::

        >>> format_file_size(0)
        '0 B'
        >>> format_file_size(1536)
        '1.5 KB'
        >>> format_file_size(1048576)
        '1 MB'
    """
    if size <= 0:
        return "0 B"

    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1

    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[unit]}"


def format_megabytes(size: int) -> str:
    """Whole-megabyte rendering used in size-limit error messages (``10MB``)."""
    return f"{size // (1024 * 1024)}MB"


def truncate(text: str, limit: int, suffix: str = "...") -> str:
    """Cut *text* to at most *limit* characters, appending *suffix* when cut."""
    if len(text) <= limit:
        return text
    return text[: max(0, limit - len(suffix))].rstrip() + suffix
