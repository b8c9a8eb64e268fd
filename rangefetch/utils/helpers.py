"""Helper utility functions for rangefetch."""

import re
from typing import Optional, Tuple

from .constants import BYTES_PER_KB, BYTES_PER_MB, BYTES_PER_GB


def format_bytes(bytes_value: int) -> str:
    """Format bytes into human-readable string.

    Args:
        bytes_value: Number of bytes

    Returns:
        Formatted string (e.g., "1.5 MB", "2.3 GB")
    """
    if bytes_value < BYTES_PER_KB:
        return f"{bytes_value} B"
    elif bytes_value < BYTES_PER_MB:
        return f"{bytes_value / BYTES_PER_KB:.1f} KB"
    elif bytes_value < BYTES_PER_GB:
        return f"{bytes_value / BYTES_PER_MB:.1f} MB"
    else:
        return f"{bytes_value / BYTES_PER_GB:.1f} GB"


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string (e.g., "1m 30s", "2h 15m")
    """
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        remaining_seconds = seconds % 60
        if remaining_seconds < 1:
            return f"{minutes}m"
        else:
            return f"{minutes}m {remaining_seconds:.0f}s"
    else:
        hours = int(seconds // 3600)
        remaining_minutes = int((seconds % 3600) // 60)
        if remaining_minutes == 0:
            return f"{hours}h"
        else:
            return f"{hours}h {remaining_minutes}m"


def parse_content_range(content_range: str) -> Tuple[Optional[int], Optional[int], Optional[int]]:
    """Parse HTTP Content-Range header.

    Args:
        content_range: Content-Range header value

    Returns:
        Tuple of (start, end, total) or (None, None, None) if invalid
    """
    # Format: "bytes start-end/total"
    match = re.match(r'bytes (\d+)-(\d+)/(\d+|\*)', content_range or "")
    if match:
        start = int(match.group(1))
        end = int(match.group(2))
        total = int(match.group(3)) if match.group(3) != '*' else None
        return start, end, total

    return None, None, None


def parse_s3_uri(uri: str) -> Tuple[str, str]:
    """Split an ``s3://bucket/key`` URI into bucket and key.

    Raises:
        ValueError: If the URI is not of that form
    """
    match = re.match(r'^s3://([^/]+)/(.+)$', uri)
    if not match:
        raise ValueError(f"Not an s3://bucket/key URI: {uri!r}")
    return match.group(1), match.group(2)
