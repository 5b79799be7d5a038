"""Unit tests for monitoring.py: upload report and rate limit monitor."""

import pytest

from conftest import make_response
from sharepoint_import.monitoring import RateLimitMonitor, UploadReport, format_bytes


class TestUploadReport:
    def test_counts_and_ordered_failures(self):
        report = UploadReport()
        report.record_upload("a.txt", 10)
        report.record_failure("z.txt")
        report.record_failure("b.txt")
        report.record_folder_failure()

        assert report.to_dict() == {
            "uploaded": 1,
            "failed": 2,
            "failed_folder_creations": 1,
            "failed_files": ["z.txt", "b.txt"],
        }
        assert report.bytes_uploaded == 10
        assert report.has_failures

    def test_finalize_freezes(self):
        report = UploadReport().finalize()

        assert report.finalized
        assert not report.has_failures
        for mutate in (lambda: report.record_upload("a"), lambda: report.record_failure("a"),
                       report.record_folder_failure):
            with pytest.raises(RuntimeError):
                mutate()

    def test_print_summary_lists_failed_files(self, capsys):
        report = UploadReport()
        report.record_failure("sub/b.txt")

        report.finalize().print_summary(total_files=2)

        out = capsys.readouterr().out
        assert "Failed uploads:" in out
        assert "sub/b.txt" in out


class TestRateLimitMonitor:
    def test_counts_requests_and_operations(self):
        monitor = RateLimitMonitor()

        monitor.analyze_response_headers(make_response(201), "PUT", "https://g/v1.0/drives/d/items/p:/a.txt:/content")
        monitor.analyze_response_headers(make_response(429), "PUT", "https://g/v1.0/drives/d/items/p:/a.txt:/content")
        monitor.analyze_response_headers(make_response(201), "POST", "https://g/v1.0/drives/d/items/p/children")
        monitor.analyze_response_headers(make_response(200), "GET", "https://g/v1.0/sites/site-1/drives")

        summary = monitor.get_metrics_summary()
        assert summary["total_requests"] == 4
        assert summary["throttled_requests"] == 1
        assert monitor.operations["file_upload"] == 2
        assert monitor.operations["folder_create"] == 1
        assert monitor.request_types["PUT"] == 2

    def test_tracks_throttle_headers(self):
        monitor = RateLimitMonitor()
        response = make_response(200, headers={"x-ms-throttle-limit-percentage": "0.9", "x-ms-resource-unit": "2"})

        info = monitor.analyze_response_headers(response, "GET", "https://g/v1.0/sites/x")

        assert info["throttle_percentage"] == 0.9
        assert monitor.metrics["resource_units_consumed"] == 2
        assert monitor.metrics["alerts_triggered"] == 1


def test_format_bytes():
    assert format_bytes(512) == "512.0 B"
    assert format_bytes(1536) == "1.5 KB"
