import math


def sanitize_error(e: Exception) -> str:
    """
    Sanitize exception messages to prevent information leakage.
    Returns a generic message for unexpected errors, or the specific message
    for safe errors (like ValueError from validation).
    """
    # FileNotFoundError and PermissionError from validate_path carry absolute paths
    if isinstance(e, OSError):
        return "An I/O error occurred. Please check the logs."

    if isinstance(e, (ValueError, TypeError)):
        return str(e)

    return "An internal server error occurred."


def format_seconds(seconds: float) -> str:
    """Format a wait duration for status messages ("20 s", "2.5 s")."""
    if seconds is None or math.isnan(seconds):
        return "-"
    if float(seconds).is_integer():
        return f"{int(seconds)} s"
    return f"{seconds:g} s"
