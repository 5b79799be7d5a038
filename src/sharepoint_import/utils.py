# -*- coding: utf-8 -*-
"""
Shared utility functions for SharePoint import operations.

This module provides common helper functions used across multiple modules.
"""

import base64
import os


def is_debug_metadata_enabled():
    """
    Check if debug metadata mode is enabled via DEBUG_METADATA environment variable.

    This is for detailed Graph API debugging: request URLs, response bodies
    and rate limiting headers.

    Returns:
        bool: True if debug metadata mode is enabled, False otherwise
    """
    return os.environ.get('DEBUG_METADATA', 'false').lower() == 'true'


def is_debug_enabled():
    """
    Check if general debug mode is enabled via DEBUG environment variable.

    This controls individual file operation messages, folder operations,
    path resolution attempts and job polling progress. Does not affect:
    - Initial connection messages
    - Final summary statistics
    - Error messages

    Returns:
        bool: True if general debug mode is enabled, False otherwise
    """
    return os.environ.get('DEBUG', 'false').lower() == 'true'


def base64url_encode(data):
    """
    Encode bytes (or str) as base64url without padding, per JWT compact serialization.

    Args:
        data (bytes | str): Data to encode

    Returns:
        str: Base64url string with '+' -> '-', '/' -> '_' and no trailing '='
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    return base64.urlsafe_b64encode(data).rstrip(b'=').decode('ascii')


def estimate_token_lifetime(file_count, seconds_per_file=3, safety_seconds=120, minimum=3600):
    """
    Estimate how long an access token must live to cover an upload session.

    Each file costs roughly the throttle delay plus the PUT itself, so the
    estimate is linear in the number of files with a fixed safety net.

    Args:
        file_count (int): Number of files that will be uploaded
        seconds_per_file (int): Budget per file, in seconds (default: 3)
        safety_seconds (int): Fixed safety net added to the estimate (default: 120)
        minimum (int): Lower bound for the returned lifetime (default: 3600)

    Returns:
        int: Token lifetime in seconds

    Examples:
        >>> estimate_token_lifetime(10)
        3600
        >>> estimate_token_lifetime(2000)
        6120
    """
    estimate = int(file_count) * seconds_per_file + safety_seconds
    return max(minimum, estimate)


def format_duration(seconds):
    """Format a duration in seconds as e.g. '1m 05s' or '12.3s'."""
    if seconds is None:
        return "unknown"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs:02d}s"
