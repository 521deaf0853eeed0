"""Helper functions for remote path handling and size formatting."""
from posixpath import basename


def format_megabytes(size_bytes: int, precision: int = 2) -> str:
    """Megabytes rounded to ``precision`` decimals without trailing zeros (``6.5``, ``5``)."""

    value = round(size_bytes / (1024 * 1024), precision)
    return f"{value:g}"


def join_remote_path(parent: str, name: str) -> str:
    return f"{parent.rstrip('/')}/{name}"


def remote_basename(path: str) -> str:
    return basename(path.rstrip("/")) or path


def file_extension(name: str) -> str:
    base = basename(name)
    if "." not in base:
        return ""
    return base.rsplit(".", 1)[-1].lower()
