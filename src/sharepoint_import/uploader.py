# -*- coding: utf-8 -*-
"""
Upload operations for SharePoint import.

This module mirrors a local tree onto a drive folder: the folder structure
is created (or reused) first, then each file is PUT under its resolved
parent folder, one at a time, with a fixed delay between files.

All operations use direct Graph REST API calls.
"""

import os
import time

from .errors import FolderCreationError, GraphApiError, GraphRequestError, UploadAborted
from .file_handler import build_local_tree
from .graph_api import create_folder, find_children_by_name, graph_client_for, upload_file_content
from .models import DirEntry
from .monitoring import UploadReport
from .utils import is_debug_enabled

UPLOADED = 'uploaded'
THROTTLED = 'throttled'
FAILED = 'failed'

# Print a progress line after this many successful uploads
PROGRESS_EVERY = 100


class UploadPolicy:
    """
    Retry and circuit breaker settings for file uploads.

    Attributes:
        max_attempts (int): PUT attempts per file while throttled (429)
        backoff_seconds (float): Sleep between throttled attempts
        max_consecutive_throttled (int | None): Abort the session after this
            many consecutive files exhaust their 429 retries; None disables it
    """

    def __init__(self, max_attempts=3, backoff_seconds=5, max_consecutive_throttled=None):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.max_consecutive_throttled = max_consecutive_throttled


# ====================================================================
# FOLDER STRUCTURE
# ====================================================================

def _resolve_existing_folder(client, drive_id, parent_id, folder_name, current_path):
    """
    Find the id of a folder that already exists (after a 409 Conflict).

    Raises:
        FolderCreationError: Zero or several matching folders, or the lookup failed
    """
    try:
        existing = find_children_by_name(client, drive_id, parent_id, folder_name)
    except (GraphApiError, GraphRequestError) as e:
        raise FolderCreationError(
            f"Failed to get data for existing folder {current_path}: {e}", current_path) from e

    folders = [child for child in existing if 'folder' in child]
    if not folders:
        raise FolderCreationError(f"Failed to get data for existing folder {current_path}.", current_path)
    if len(folders) > 1:
        raise FolderCreationError(f"Found multiple existing folders for {current_path}.", current_path)
    return folders[0]['id']


def _create_or_reuse_folder(client, drive_id, parent_id, folder_name, current_path, report):
    """
    Create one folder, or resolve it to its existing id on 409.

    Returns:
        str: Folder item ID

    Raises:
        FolderCreationError: 409 but the existing folder could not be resolved
        UploadAborted: Any other failure to create the folder
    """
    try:
        response = create_folder(client, drive_id, parent_id, folder_name)
    except GraphRequestError as e:
        report.record_folder_failure()
        raise UploadAborted(f"Failed to create folder {current_path}. Upload is aborted. {e}") from e

    if response.status_code in (200, 201):
        try:
            folder_id = response.json()['id']
        except (ValueError, KeyError, TypeError) as e:
            report.record_folder_failure()
            raise UploadAborted(
                f"Failed to create folder {current_path}: unexpected response {response.text[:500]}. "
                f"Upload is aborted."
            ) from e
        if is_debug_enabled():
            print(f"[✓] Created folder: {current_path}")
        return folder_id

    if response.status_code == 409:
        if is_debug_enabled():
            print(f"[=] Folder already exists: {current_path}")
        return _resolve_existing_folder(client, drive_id, parent_id, folder_name, current_path)

    print(f"[!] Failed to create folder {current_path}: {response.status_code} {response.text[:500]}")
    report.record_folder_failure()
    raise UploadAborted(
        f"Failed to create folder {current_path}: {response.status_code} {response.text}. Upload is aborted."
    )


def _under_failed_prefix(relative_path, failed_prefixes):
    return any(relative_path == prefix or relative_path.startswith(prefix + '/')
               for prefix in failed_prefixes)


def ensure_folders(graph, drive_id, root_folder_id, directories, report, folder_map=None):
    """
    Ensure every local directory exists under the destination folder.

    Directories are processed in input order (parents before children) and
    split into segments; each intermediate path is memoized in the folder
    map so that shared prefixes are created at most once per session.

    Args:
        graph (str | AccessToken | GraphClient): Token or authenticated client
        drive_id (str): Destination drive ID
        root_folder_id (str): Destination folder ID (maps to '')
        directories (iterable): Relative directory paths (str or DirEntry)
        report (UploadReport): Session report; failed subtrees are counted
        folder_map (dict): Optional existing map to extend (relative path -> id)

    Returns:
        dict: Folder map, relative directory path -> remote folder id

    Raises:
        UploadAborted: A folder creation failed with anything but 409

    Example:
        folder_map = ensure_folders(token, drive_id, folder_id, ['sub', 'sub/deeper'], report)
        folder_map['sub/deeper']  # remote id of the nested folder
    """
    client = graph_client_for(graph)
    if folder_map is None:
        folder_map = {}
    folder_map.setdefault('', root_folder_id)
    failed_prefixes = []

    for directory in directories:
        relative_path = directory.relative_path if isinstance(directory, DirEntry) else directory
        relative_path = relative_path.replace('\\', '/').strip('/')
        if not relative_path or relative_path in folder_map:
            continue

        if _under_failed_prefix(relative_path, failed_prefixes):
            if is_debug_enabled():
                print(f"[DEBUG] Skipping folder under abandoned subtree: {relative_path}")
            continue

        parent_id = root_folder_id
        current_path = ''
        for segment in [part for part in relative_path.split('/') if part]:
            current_path = f"{current_path}/{segment}" if current_path else segment

            if current_path in folder_map:
                parent_id = folder_map[current_path]
                continue

            try:
                parent_id = _create_or_reuse_folder(client, drive_id, parent_id, segment, current_path, report)
            except FolderCreationError as e:
                print(f"[!] {e} Skipping this folder and everything under it.")
                report.record_folder_failure()
                failed_prefixes.append(current_path)
                break

            folder_map[current_path] = parent_id

    return folder_map


# ====================================================================
# FILE UPLOAD
# ====================================================================

def upload_file(client, drive_id, parent_id, entry, policy, sleep=time.sleep):
    """
    Upload one file, retrying only while throttled.

    Args:
        client (GraphClient): Authenticated Graph client
        drive_id (str): Destination drive ID
        parent_id (str): Parent folder item ID
        entry (FileEntry): File to upload
        policy (UploadPolicy): Retry settings
        sleep (callable): Sleep function (seconds)

    Returns:
        str: UPLOADED, THROTTLED (429 on every attempt) or FAILED
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            with open(entry.local_path, 'rb') as stream:
                response = upload_file_content(client, drive_id, parent_id, entry.name, stream)
        except GraphRequestError as e:
            print(f"[!] Failed to upload file {entry.relative_path}: {e}")
            return FAILED
        except OSError as e:
            print(f"[!] Could not read local file {entry.local_path}: {e}")
            return FAILED

        if response.status_code in (200, 201):
            if is_debug_enabled():
                print(f"[✓] File {entry.relative_path} uploaded successfully.")
            return UPLOADED

        if response.status_code == 429:
            if attempt < policy.max_attempts:
                print(f"[!] Throttled on {entry.relative_path} ({attempt}/{policy.max_attempts}). Retrying...")
                sleep(policy.backoff_seconds)
                continue
            print(f"[!] Throttled on {entry.relative_path}. Retry limit reached. Skipping...")
            return THROTTLED

        print(f"[!] Upload of {entry.relative_path} failed with HTTP status: "
              f"{response.status_code} {response.text[:500]}")
        return FAILED

    return THROTTLED


def upload_all(graph, drive_id, files, folder_map, throttle_delay_ms, report, policy=None, sleep=time.sleep):
    """
    Upload files one at a time to their parent folders.

    Files are processed strictly sequentially to respect one shared rate
    budget; after every attempted file the uploader sleeps throttle_delay_ms.
    A single file failure is recorded in the report and never stops the loop.

    Args:
        graph (str | AccessToken | GraphClient): Token or authenticated client
        drive_id (str): Destination drive ID
        files (iterable): FileEntry items
        folder_map (dict): Relative directory path -> remote folder id
        throttle_delay_ms (int): Delay after each file, in milliseconds
        report (UploadReport): Session report accumulator
        policy (UploadPolicy): Retry and circuit breaker settings
        sleep (callable): Sleep function (seconds), injectable for tests

    Raises:
        UploadAborted: Only when the optional circuit breaker trips
    """
    client = graph_client_for(graph)
    policy = policy or UploadPolicy()
    delay_seconds = max(0, float(throttle_delay_ms)) / 1000.0
    consecutive_throttled = 0

    for entry in files:
        parent_id = folder_map.get(entry.parent_path)
        if parent_id is None:
            print(f"[!] Skipping {entry.relative_path}: parent folder '{entry.parent_path}' was not created")
            report.record_failure(entry.relative_path)
            continue

        if is_debug_enabled():
            print(f"[→] Uploading file: {entry.relative_path}")
        outcome = upload_file(client, drive_id, parent_id, entry, policy, sleep=sleep)

        if outcome == UPLOADED:
            report.record_upload(entry.relative_path, _file_size(entry.local_path))
            consecutive_throttled = 0
            if report.uploaded % PROGRESS_EVERY == 0:
                print(f"[*] Successfully uploaded {report.uploaded} files so far. {report.failed} failed.")
        else:
            report.record_failure(entry.relative_path)
            consecutive_throttled = consecutive_throttled + 1 if outcome == THROTTLED else 0

        if (policy.max_consecutive_throttled is not None
                and consecutive_throttled >= policy.max_consecutive_throttled):
            raise UploadAborted(
                f"{consecutive_throttled} consecutive files were throttled after all retries. Upload is aborted."
            )

        sleep(delay_seconds)


def _file_size(path):
    try:
        return os.path.getsize(path)
    except OSError:
        return 0


def upload_tree(graph, drive_id, folder_id, tree, throttle_delay_ms=1000, policy=None, sleep=time.sleep):
    """
    Mirror an enumerated local tree onto a drive folder.

    Args:
        graph (str | AccessToken | GraphClient): Token or authenticated client
        drive_id (str): Destination drive ID
        folder_id (str): Destination folder ID
        tree (LocalTree): Local directories and files to upload
        throttle_delay_ms (int): Delay after each file, in milliseconds
        policy (UploadPolicy): Retry and circuit breaker settings

    Returns:
        UploadReport: Finalized report

    Raises:
        UploadAborted: The folder structure could not be created; no partial
            report is returned in that case
    """
    client = graph_client_for(graph)
    report = UploadReport()

    print(f"[*] Upload files from {tree.root} with a delay of {throttle_delay_ms} milliseconds between uploads.")
    folder_map = ensure_folders(client, drive_id, folder_id, tree.directories, report)
    upload_all(client, drive_id, tree.files, folder_map, throttle_delay_ms, report, policy=policy, sleep=sleep)

    return report.finalize()


def upload_directory(graph, drive_id, folder_id, source_dir, throttle_delay_ms=1000, policy=None,
                     sleep=time.sleep):
    """
    Enumerate a local directory and mirror it onto a drive folder.

    Returns:
        tuple: (finalized UploadReport, LocalTree)
    """
    tree = build_local_tree(source_dir)
    report = upload_tree(graph, drive_id, folder_id, tree, throttle_delay_ms, policy=policy, sleep=sleep)
    return report, tree
