"""Unit tests for uploader.py: folder synchronization and throttled uploads."""

from unittest.mock import MagicMock, call

import pytest

from conftest import make_response
from sharepoint_import.errors import UploadAborted
from sharepoint_import.file_handler import build_local_tree
from sharepoint_import.graph_api import GraphClient
from sharepoint_import.monitoring import UploadReport
from sharepoint_import.uploader import (
    FAILED,
    THROTTLED,
    UPLOADED,
    UploadPolicy,
    ensure_folders,
    upload_all,
    upload_directory,
    upload_file,
)

ROOT_ID = "root-folder"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeDrive:
    """
    In-memory drive answering the folder and upload calls of the uploader.

    Folders are keyed by (parent_id, name). create_status / put_statuses
    let a test force specific responses.
    """

    def __init__(self):
        self.folders = {}
        self.files = {}
        self.create_status = {}
        self.lookup_override = {}
        self.put_statuses = {}
        self.puts = []
        self.creates = []
        self.session = MagicMock()
        self.session.request.side_effect = self.handle

    def client(self):
        return GraphClient("token", session=self.session)

    def handle(self, method, url, json=None, data=None, params=None, **kwargs):
        path = url.split("/v1.0", 1)[1]
        if method == "POST" and path.endswith("/children"):
            return self._create(path.split("/items/")[1].split("/")[0], json["name"])
        if method == "GET" and path.endswith("/children"):
            parent_id = path.split("/items/")[1].split("/")[0]
            name = params["$filter"].split("name eq ", 1)[1][1:-1].replace("''", "'")
            if (parent_id, name) in self.lookup_override:
                return self.lookup_override[(parent_id, name)]
            folder_id = self.folders.get((parent_id, name))
            items = [{"id": folder_id, "name": name, "folder": {}}] if folder_id else []
            return make_response(200, {"value": items})
        if method == "PUT" and path.endswith(":/content"):
            parent_id, name = path.split("/items/")[1][:-len(":/content")].split(":/", 1)
            self.puts.append((parent_id, name))
            statuses = self.put_statuses.get(name)
            status = statuses.pop(0) if statuses else 201
            if status in (200, 201):
                self.files[(parent_id, name)] = data.read()
            return make_response(status, {"id": f"file-{name}"} if status < 300 else None, text=f"status {status}")
        raise AssertionError(f"unexpected request {method} {url}")

    def _create(self, parent_id, name):
        self.creates.append((parent_id, name))
        forced = self.create_status.get(name)
        if forced is not None and forced != 409:
            return make_response(forced, text='{"error":{"code":"accessDenied"}}')
        if (parent_id, name) in self.folders or forced == 409:
            return make_response(409, text='{"error":{"code":"nameAlreadyExists"}}')
        folder_id = f"id-{name}"
        self.folders[(parent_id, name)] = folder_id
        return make_response(201, {"id": folder_id, "name": name, "folder": {}})


@pytest.fixture
def drive():
    return FakeDrive()


@pytest.fixture
def content(tmp_path):
    """Local tree {a.txt, sub/b.txt}."""
    (tmp_path / "a.txt").write_text("alpha")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "b.txt").write_text("bravo")
    return tmp_path


# ---------------------------------------------------------------------------
# ensure_folders tests
# ---------------------------------------------------------------------------


class TestEnsureFolders:
    def test_shared_prefixes_created_once(self, drive):
        report = UploadReport()

        folder_map = ensure_folders(drive.client(), "drive-1", ROOT_ID, ["a", "a/b", "a/c", "a/b/d"], report)

        assert drive.creates == [(ROOT_ID, "a"), ("id-a", "b"), ("id-a", "c"), ("id-b", "d")]
        assert folder_map == {"": ROOT_ID, "a": "id-a", "a/b": "id-b", "a/c": "id-c", "a/b/d": "id-d"}
        assert report.failed_folder_creations == 0

    def test_conflict_reuses_existing_folder(self, drive):
        drive.folders[(ROOT_ID, "sub")] = "existing-sub"
        report = UploadReport()

        folder_map = ensure_folders(drive.client(), "drive-1", ROOT_ID, ["sub"], report)

        assert folder_map["sub"] == "existing-sub"
        assert report.failed_folder_creations == 0

    def test_unresolvable_conflict_skips_subtree(self, drive):
        drive.create_status["broken"] = 409
        report = UploadReport()

        folder_map = ensure_folders(drive.client(), "drive-1", ROOT_ID, ["broken", "broken/deeper", "ok"], report)

        assert "broken" not in folder_map
        assert "broken/deeper" not in folder_map
        assert folder_map["ok"] == "id-ok"
        assert report.failed_folder_creations == 1
        assert (ROOT_ID, "broken") in drive.creates
        assert not any(name == "deeper" for _, name in drive.creates)

    def test_multiple_matches_after_conflict_is_a_subtree_failure(self, drive):
        drive.create_status["dup"] = 409
        drive.lookup_override[(ROOT_ID, "dup")] = make_response(200, {"value": [
            {"id": "x", "name": "dup", "folder": {}}, {"id": "y", "name": "dup", "folder": {}},
        ]})
        report = UploadReport()

        folder_map = ensure_folders(drive.client(), "drive-1", ROOT_ID, ["dup"], report)

        assert "dup" not in folder_map
        assert report.failed_folder_creations == 1

    def test_other_failure_aborts_session(self, drive):
        drive.create_status["locked"] = 403
        report = UploadReport()

        with pytest.raises(UploadAborted, match="locked"):
            ensure_folders(drive.client(), "drive-1", ROOT_ID, ["locked"], report)

        assert report.failed_folder_creations == 1

    @pytest.mark.parametrize("response", [
        make_response(201, None, text="<html>gateway</html>"),
        make_response(201, {"name": "odd"}, text='{"name": "odd"}'),
    ])
    def test_unreadable_create_response_aborts_session(self, drive, response):
        drive.session.request.side_effect = lambda *args, **kwargs: response
        report = UploadReport()

        with pytest.raises(UploadAborted, match="unexpected response"):
            ensure_folders(drive.client(), "drive-1", ROOT_ID, ["odd"], report)

        assert report.failed_folder_creations == 1

    def test_supplied_map_is_reused(self, drive):
        report = UploadReport()
        folder_map = {"": ROOT_ID, "sub": "known-sub"}

        ensure_folders(drive.client(), "drive-1", ROOT_ID, ["sub", "sub/x"], report, folder_map=folder_map)

        assert drive.creates == [("known-sub", "x")]


# ---------------------------------------------------------------------------
# upload_file tests
# ---------------------------------------------------------------------------


class TestUploadFile:
    def _entry(self, content):
        return build_local_tree(str(content)).files[0]

    def test_success(self, drive, content):
        sleep = MagicMock()
        assert upload_file(drive.client(), "d", ROOT_ID, self._entry(content), UploadPolicy(), sleep) == UPLOADED
        sleep.assert_not_called()

    def test_throttled_every_time_makes_exactly_three_attempts(self, drive, content):
        drive.put_statuses["a.txt"] = [429, 429, 429, 429]
        sleep = MagicMock()

        outcome = upload_file(drive.client(), "d", ROOT_ID, self._entry(content), UploadPolicy(), sleep)

        assert outcome == THROTTLED
        assert len(drive.puts) == 3
        assert sleep.call_args_list == [call(5), call(5)]

    def test_throttled_then_success(self, drive, content):
        drive.put_statuses["a.txt"] = [429, 201]

        outcome = upload_file(drive.client(), "d", ROOT_ID, self._entry(content), UploadPolicy(), MagicMock())

        assert outcome == UPLOADED
        assert len(drive.puts) == 2
        assert drive.files[(ROOT_ID, "a.txt")] == b"alpha"

    def test_other_status_is_not_retried(self, drive, content):
        drive.put_statuses["a.txt"] = [500, 201]
        sleep = MagicMock()

        assert upload_file(drive.client(), "d", ROOT_ID, self._entry(content), UploadPolicy(), sleep) == FAILED
        assert len(drive.puts) == 1
        sleep.assert_not_called()

    def test_policy_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            UploadPolicy(max_attempts=0)


# ---------------------------------------------------------------------------
# upload_all / upload_directory tests
# ---------------------------------------------------------------------------


class TestUploadDirectory:
    def test_tree_is_mirrored(self, drive, content):
        report, tree = upload_directory(drive.client(), "drive-1", ROOT_ID, str(content),
                                        throttle_delay_ms=0, sleep=MagicMock())

        assert drive.creates == [(ROOT_ID, "sub")]
        assert report.uploaded == 2
        assert report.failed == 0
        assert report.failed_folder_creations == 0
        assert drive.files == {(ROOT_ID, "a.txt"): b"alpha", ("id-sub", "b.txt"): b"bravo"}
        assert report.finalized
        assert len(tree.files) == 2

    def test_second_run_creates_no_duplicate_folders(self, drive, content):
        upload_directory(drive.client(), "drive-1", ROOT_ID, str(content), throttle_delay_ms=0, sleep=MagicMock())
        report, _ = upload_directory(drive.client(), "drive-1", ROOT_ID, str(content),
                                     throttle_delay_ms=0, sleep=MagicMock())

        assert list(drive.folders) == [(ROOT_ID, "sub")]
        assert report.uploaded == 2
        assert report.failed_folder_creations == 0

    def test_throttle_delay_after_every_file(self, drive, content):
        sleep = MagicMock()

        upload_directory(drive.client(), "drive-1", ROOT_ID, str(content), throttle_delay_ms=250, sleep=sleep)

        assert sleep.call_args_list == [call(0.25), call(0.25)]

    def test_throttled_file_is_recorded_and_loop_continues(self, drive, content):
        drive.put_statuses["a.txt"] = [429, 429, 429]
        sleep = MagicMock()

        report, _ = upload_directory(drive.client(), "drive-1", ROOT_ID, str(content),
                                     throttle_delay_ms=100, sleep=sleep)

        assert report.uploaded == 1
        assert report.failed == 1
        assert report.failed_files == ("a.txt",)
        assert sleep.call_args_list == [call(5), call(5), call(0.1), call(0.1)]

    def test_file_under_failed_folder_is_recorded_without_upload(self, drive, content):
        drive.create_status["sub"] = 409
        sleep = MagicMock()

        report, _ = upload_directory(drive.client(), "drive-1", ROOT_ID, str(content),
                                     throttle_delay_ms=100, sleep=sleep)

        assert report.failed_folder_creations == 1
        assert report.failed_files == ("sub/b.txt",)
        assert [name for _, name in drive.puts] == ["a.txt"]
        assert sleep.call_args_list == [call(0.1)]

    def test_finalized_report_cannot_change(self, drive, content):
        report, _ = upload_directory(drive.client(), "drive-1", ROOT_ID, str(content),
                                     throttle_delay_ms=0, sleep=MagicMock())

        with pytest.raises(RuntimeError):
            report.record_upload("late.txt")


class TestCircuitBreaker:
    def test_disabled_by_default(self, drive, tmp_path):
        for name in ("1.txt", "2.txt", "3.txt"):
            (tmp_path / name).write_text(name)
            drive.put_statuses[name] = [429, 429, 429]
        tree = build_local_tree(str(tmp_path))
        report = UploadReport()

        upload_all(drive.client(), "d", tree.files, {"": ROOT_ID}, 0, report, sleep=MagicMock())

        assert report.failed == 3

    def test_trips_after_consecutive_throttled_files(self, drive, tmp_path):
        for name in ("1.txt", "2.txt", "3.txt"):
            (tmp_path / name).write_text(name)
            drive.put_statuses[name] = [429, 429, 429]
        tree = build_local_tree(str(tmp_path))
        report = UploadReport()
        policy = UploadPolicy(max_consecutive_throttled=2)

        with pytest.raises(UploadAborted, match="2 consecutive"):
            upload_all(drive.client(), "d", tree.files, {"": ROOT_ID}, 0, report, policy=policy, sleep=MagicMock())

        assert report.failed == 2
        assert len(drive.puts) == 6
