"""Utility functions for pybuildsync."""

import re
import time
from datetime import datetime
from typing import Optional

# =============================================================================
# Constants
# =============================================================================

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Request timeout for calls to the remote engine
DEFAULT_TIMEOUT: float = 30.0  # seconds

NANOS_PER_MILLI: int = 1_000_000


# =============================================================================
# Timestamp utilities
# =============================================================================


def ns_to_millis(timestamp_ns: int) -> int:
    """Convert a nanosecond timestamp to whole milliseconds since epoch.

    Integer division keeps the conversion exact; going through a float
    ``st_mtime`` can round a value across a millisecond boundary.

    Examples:
        >>> ns_to_millis(1_700_000_000_123_999_999)
        1700000000123
        >>> ns_to_millis(0)
        0
    """
    return timestamp_ns // NANOS_PER_MILLI


def current_millis() -> int:
    """Current wall-clock time in milliseconds since epoch."""
    return ns_to_millis(time.time_ns())


def format_millis(timestamp_ms: Optional[int]) -> str:
    """Format a millisecond timestamp for display.

    Args:
        timestamp_ms: Milliseconds since epoch, or None/0 for "never"

    Returns:
        Local time string, or "never"
    """
    if not timestamp_ms:
        return "never"
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


# =============================================================================
# URL utilities
# =============================================================================


def normalize_base_url(url: str) -> str:
    """Normalize a base URL so endpoint paths can be appended directly.

    Examples:
        >>> normalize_base_url("http://localhost:9090/api/v1")
        'http://localhost:9090/api/v1/'
        >>> normalize_base_url("  https://host/api/v1///  ")
        'https://host/api/v1/'
    """
    return re.sub(r"/+$", "", url.strip()) + "/"
