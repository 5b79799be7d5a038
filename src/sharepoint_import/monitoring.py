# -*- coding: utf-8 -*-
"""
Rate limiting monitoring and upload report tracking for SharePoint import.

This module provides classes for monitoring Graph API rate limits and
accumulating the per-session upload report.
"""

import threading

from .utils import is_debug_metadata_enabled


class RateLimitMonitor:
    """
    Monitor and track Graph API rate limiting metrics.

    Analyzes response headers to detect and track throttling:
    - x-ms-throttle-limit-percentage: Utilization percentage (0.8-1.8 range)
    - x-ms-resource-unit: Resource units consumed per request
    - x-ms-throttle-scope: Throttling scope details

    Headers only appear when >80% of limit consumed. Each GraphClient owns
    one monitor; updates are lock protected.
    """

    def __init__(self):
        """Initialize rate limit monitoring metrics"""
        self._lock = threading.Lock()
        self.metrics = {
            'total_requests': 0,
            'throttled_requests': 0,
            'max_throttle_percentage': 0.0,
            'resource_units_consumed': 0,
            'alerts_triggered': 0
        }
        self.throttle_threshold = 0.8  # Alert when >80% of limit

        self.request_types = {
            'GET': 0,
            'POST': 0,
            'PUT': 0,
        }

        self.operations = {
            'file_upload': 0,           # PUT to /content endpoint
            'folder_create': 0,         # POST create folder
            'folder_lookup': 0,         # GET /children (existing folder after 409, segment walk)
            'search': 0,                # GET search(q=...) or drives?search=
            'site_lookup': 0,           # GET /sites/{host}:/sites/{path}
            'other': 0
        }

    def analyze_response_headers(self, response, method=None, url=None):
        """
        Analyze Graph API response headers for rate limiting info.

        Args:
            response: requests.Response object from Graph API call
            method (str): HTTP method (GET, POST, PUT)
            url (str): Request URL for operation type detection

        Returns:
            dict: Rate limiting information extracted from headers
        """
        headers = response.headers
        throttle_percentage = headers.get('x-ms-throttle-limit-percentage')
        resource_unit = headers.get('x-ms-resource-unit')
        throttle_scope = headers.get('x-ms-throttle-scope')

        with self._lock:
            self.metrics['total_requests'] += 1
            if method and method.upper() in self.request_types:
                self.request_types[method.upper()] += 1
            if url and method:
                self.operations[self._categorize_operation(url, method.upper())] += 1
            if response.status_code == 429:
                self.metrics['throttled_requests'] += 1

            if throttle_percentage:
                percentage = float(throttle_percentage)
                self.metrics['max_throttle_percentage'] = max(
                    self.metrics['max_throttle_percentage'],
                    percentage
                )
                if percentage >= 1.0:
                    print(f"[!] THROTTLING DETECTED: {percentage:.1%} of limit used")
                    if throttle_scope:
                        print(f"[!] Throttle scope: {throttle_scope}")
                elif percentage >= self.throttle_threshold:
                    self.metrics['alerts_triggered'] += 1
                    print(f"[ ] Rate limit warning: {percentage:.1%} of limit used")

            if resource_unit:
                units = int(resource_unit)
                self.metrics['resource_units_consumed'] += units
                if is_debug_metadata_enabled():
                    print(f"[=] Resource units consumed: {units}")

        return {
            'throttle_percentage': float(throttle_percentage) if throttle_percentage else None,
            'resource_unit': int(resource_unit) if resource_unit else None,
            'throttle_scope': throttle_scope,
            'is_throttled': response.status_code == 429
        }

    @staticmethod
    def _categorize_operation(url, method):
        """
        Categorize API operation based on URL pattern and HTTP method.

        Returns:
            str: Key into self.operations
        """
        url_lower = url.lower()

        if method == 'PUT' and '/content' in url_lower:
            return 'file_upload'
        if method == 'POST' and '/children' in url_lower:
            return 'folder_create'
        if method == 'GET' and ('search(' in url_lower or 'search=' in url_lower):
            return 'search'
        if method == 'GET' and '/children' in url_lower:
            return 'folder_lookup'
        if method == 'GET' and '/sites/' in url_lower and '/drive' not in url_lower:
            return 'site_lookup'
        return 'other'

    def get_metrics_summary(self):
        """
        Get comprehensive rate limiting metrics.

        Returns:
            dict: Summary of all rate limiting metrics
        """
        with self._lock:
            total = self.metrics['total_requests']
            return {
                'total_requests': total,
                'throttled_requests': self.metrics['throttled_requests'],
                'throttle_rate': self.metrics['throttled_requests'] / max(total, 1),
                'max_throttle_percentage': self.metrics['max_throttle_percentage'],
                'resource_units_consumed': self.metrics['resource_units_consumed'],
                'alerts_triggered': self.metrics['alerts_triggered']
            }


def print_rate_limiting_summary(monitor):
    """
    Print rate limiting statistics collected during execution.

    Displays total requests, throttled (429) responses, peak throttle
    percentage and the request/operation breakdown.

    Args:
        monitor (RateLimitMonitor): The monitor of the session to report on
    """
    metrics = monitor.get_metrics_summary()

    print("\n" + "="*60)
    print("GRAPH API RATE LIMITING SUMMARY")
    print("="*60)
    print(f"[STATS] API Request Statistics:")
    print(f"   - Total API Requests:       {metrics['total_requests']:>6}")
    print(f"   - Throttled Requests:       {metrics['throttled_requests']:>6} ({metrics['throttle_rate']:.1%})")
    print(f"   - Max Throttle %:           {metrics['max_throttle_percentage']:>6.1%}")
    print(f"   - Resource Units Used:      {metrics['resource_units_consumed']:>6}")

    if any(monitor.operations.values()):
        print(f"\n[OPS] Operation Types:")
        for op_type, count in monitor.operations.items():
            if count > 0:
                op_name = op_type.replace('_', ' ').title()
                print(f"   - {f'{op_name}:':<27} {count:>6}")

    if metrics['throttled_requests'] > 0 or metrics['max_throttle_percentage'] >= 1.0:
        print(f"\n[!] WARNING: Hit throttling limits during execution")
    elif metrics['max_throttle_percentage'] >= 0.8:
        print(f"\n[ ] CAUTION: Approached throttling limits")
    else:
        print(f"\n[OK] Stayed within throttling limits")
    print("="*60)


class UploadReport:
    """
    Accumulate the outcome of one upload session.

    Mutated only by the folder synchronizer and the file uploader while the
    session runs; finalize() freezes it before it is handed to the caller.
    """

    def __init__(self):
        """Initialize an empty report"""
        self.uploaded = 0
        self.failed = 0
        self.failed_folder_creations = 0
        self.failed_files = []
        self.bytes_uploaded = 0
        self._finalized = False

    @property
    def finalized(self):
        return self._finalized

    def _check_mutable(self):
        if self._finalized:
            raise RuntimeError("Upload report is finalized and can no longer change")

    def record_upload(self, relative_path, size=0):
        """Count one successfully uploaded file."""
        self._check_mutable()
        self.uploaded += 1
        self.bytes_uploaded += size

    def record_failure(self, relative_path):
        """Count one failed file and remember its path (in order)."""
        self._check_mutable()
        self.failed += 1
        self.failed_files.append(relative_path)

    def record_folder_failure(self):
        """Count one folder subtree that could not be created or resolved."""
        self._check_mutable()
        self.failed_folder_creations += 1

    def finalize(self):
        """Freeze the report; returns self for chaining."""
        self._finalized = True
        self.failed_files = tuple(self.failed_files)
        return self

    @property
    def has_failures(self):
        return self.failed > 0 or self.failed_folder_creations > 0

    def to_dict(self):
        """
        Export the report counters for the calling orchestration.

        Returns:
            dict: uploaded, failed, failed_folder_creations and failed_files
        """
        return {
            'uploaded': self.uploaded,
            'failed': self.failed,
            'failed_folder_creations': self.failed_folder_creations,
            'failed_files': list(self.failed_files),
        }

    def print_summary(self, total_files):
        """
        Print final summary report of the upload session.

        Args:
            total_files (int): Total number of files found in the local tree
        """
        print(f"[STATS] Upload Statistics:")
        print(f"   - Files uploaded:           {self.uploaded:>6}")
        print(f"   - Failed uploads:           {self.failed:>6}")
        print(f"   - Failed folder creations:  {self.failed_folder_creations:>6}")
        print(f"   - Total files found:        {total_files:>6}")
        print(f"\n[DATA] Transfer Summary:")
        print(f"   - Data uploaded:   {format_bytes(self.bytes_uploaded)}")

        if self.failed_files:
            print(f"\n[!] Failed files:")
            for path in self.failed_files:
                print(f"   - {path}")


def format_bytes(bytes_value):
    """
    Convert bytes to human-readable format.

    Args:
        bytes_value (int): Number of bytes to format

    Returns:
        str: Human-readable string (e.g., "1.5 MB")
    """
    for unit in ['B', 'KB', 'MB', 'GB']:
        if bytes_value < 1024.0:
            return f"{bytes_value:.1f} {unit}"
        bytes_value /= 1024.0
    return f"{bytes_value:.1f} TB"
