"""Utility functions for modelops-blobs."""


def humanize_size(size: float) -> str:
    """Convert bytes to human-readable format."""
    if size < 0:
        return "unknown"
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"
