# -*- coding: utf-8 -*-
"""
Destination path resolution for SharePoint import.

A destination folder path is authored by a human and may be a literal path
under the site's default document library, a path prefixed with the
library's display name, or a "library link" of the form
'<Drive Name>/sites/<path>'. This module maps it to a concrete
(drive id, folder id) pair by trying progressively more expensive lookups.

Each lookup strategy returns a StrategyResult instead of raising, and the
resolver stops at the first unambiguous match. Ambiguous matches are never
resolved by picking one of the candidates.
"""

import urllib.parse

from .errors import GraphApiError, GraphRequestError, ResolutionError
from .graph_api import (
    find_children_by_name,
    get_default_drive_root,
    get_item_by_drive_path,
    get_item_by_site_path,
    get_site,
    graph_client_for,
    search_drives,
    search_site_items,
)
from .models import DriveFolderRef
from .utils import is_debug_enabled

FOUND = 'found'
NOT_FOUND = 'not_found'
AMBIGUOUS = 'ambiguous'

# Display names of the default document library that are not part of root paths
DEFAULT_LIBRARY_NAMES = ('Documents', 'Shared Documents')

# Separator between a drive display name and the path inside that drive
DRIVE_LINK_MARKER = '/sites/'


class StrategyResult:
    """Outcome of one resolution strategy: found, not_found, or ambiguous."""

    def __init__(self, status, ref=None, reason=''):
        self.status = status
        self.ref = ref
        self.reason = reason

    @classmethod
    def found(cls, ref):
        return cls(FOUND, ref=ref)

    @classmethod
    def not_found(cls, reason):
        return cls(NOT_FOUND, reason=reason)

    @classmethod
    def ambiguous(cls, reason):
        return cls(AMBIGUOUS, reason=reason)

    @property
    def is_found(self):
        return self.status == FOUND

    def __repr__(self):
        return f"StrategyResult({self.status!r}, ref={self.ref!r}, reason={self.reason!r})"


def split_segments(path):
    """Split a drive path into non-empty segments."""
    return [segment for segment in path.replace('\\', '/').split('/') if segment]


def _is_folder(item):
    return 'folder' in item


def _drive_id_of(item):
    return (item.get('parentReference') or {}).get('driveId')


def walk_segments(client, drive_id, start_id, segments, skippable_first=()):
    """
    Resolve a path one child lookup at a time, starting at a known folder.

    Args:
        client (GraphClient): Authenticated Graph client
        drive_id (str): Drive ID containing start_id
        start_id (str): Folder item ID to start from (usually the drive root)
        segments (list): Path segments to resolve
        skippable_first (tuple): Names the first segment may have without
            being a real folder (library display names)

    Returns:
        StrategyResult: found with the final folder id, or why it stopped
    """
    current_id = start_id
    walked = []

    for index, segment in enumerate(segments):
        matches = [child for child in find_children_by_name(client, drive_id, current_id, segment)
                   if _is_folder(child)]

        if not matches and index == 0 and segment in skippable_first:
            if is_debug_enabled():
                print(f"[DEBUG] Skipping library name '{segment}' at drive root")
            continue
        if not matches:
            return StrategyResult.not_found(
                f"segment '{segment}' not found under '/{'/'.join(walked)}'")
        if len(matches) > 1:
            return StrategyResult.ambiguous(
                f"multiple folders named '{segment}' under '/{'/'.join(walked)}'")

        current_id = matches[0]['id']
        walked.append(segment)

    return StrategyResult.found(DriveFolderRef(drive_id, current_id, '/'.join(walked)))


# ====================================================================
# STRATEGIES - each takes (client, site_id, folder_path)
# ====================================================================

def lookup_direct_path(client, site_id, folder_path):
    """Strategy 1: the folder path is a literal path under the default drive root."""
    item = get_item_by_site_path(client, site_id, folder_path)
    if not _is_folder(item):
        return StrategyResult.not_found(f"'{folder_path}' is not a folder")
    return StrategyResult.found(DriveFolderRef(_drive_id_of(item), item['id'], folder_path.strip('/')))


def lookup_segment_walk(client, site_id, folder_path):
    """Strategy 2: walk the path segment by segment from the default drive root."""
    segments = split_segments(folder_path)
    if not segments:
        return StrategyResult.not_found("empty folder path")

    root = get_default_drive_root(client, site_id)
    return walk_segments(client, _drive_id_of(root), root['id'], segments,
                         skippable_first=DEFAULT_LIBRARY_NAMES)


def lookup_name_search(client, site_id, folder_path):
    """Strategy 3: search the site for a folder named like the last path segment."""
    segments = split_segments(folder_path)
    if not segments:
        return StrategyResult.not_found("empty folder path")

    folder_name = segments[-1]
    results = search_site_items(client, site_id, folder_name)
    folders = [item for item in results
               if _is_folder(item) and (item.get('name') or '').lower() == folder_name.lower()]

    if not folders:
        return StrategyResult.not_found(f"no folder named '{folder_name}' found by search")
    if len(folders) > 1:
        return StrategyResult.ambiguous(f"multiple folders named '{folder_name}' found by search")

    folder = folders[0]
    return StrategyResult.found(DriveFolderRef(_drive_id_of(folder), folder['id'], folder_name))


def lookup_drive_name(client, site_id, folder_path):
    """Strategy 4: '<Drive Name>/sites/<path>' names a drive, then a path inside it."""
    if DRIVE_LINK_MARKER not in folder_path:
        return StrategyResult.not_found(f"no '{DRIVE_LINK_MARKER}' drive marker in path")

    drive_name, inner_path = folder_path.split(DRIVE_LINK_MARKER, 1)
    drive_name = drive_name.strip('/')
    if not drive_name:
        return StrategyResult.not_found("empty drive name before drive marker")

    drives = search_drives(client, site_id, drive_name)
    if not drives:
        return StrategyResult.not_found(f"drive '{drive_name}' not found in site")
    if len(drives) > 1:
        for drive in drives:
            print(f"[!] Drive ID: {drive.get('id')}, Name: {drive.get('name')}")
        return StrategyResult.ambiguous(f"multiple drives named '{drive_name}' found in site")

    drive_id = drives[0]['id']
    if is_debug_enabled():
        print(f"[DEBUG] Drive '{drive_name}' found in site with id {drive_id}")

    root = get_item_by_drive_path(client, drive_id, '')
    segments = split_segments(inner_path)
    if not segments:
        return StrategyResult.found(DriveFolderRef(drive_id, root['id'], ''))
    return walk_segments(client, drive_id, root['id'], segments)


STRATEGIES = (
    ('direct path', lookup_direct_path),
    ('segment walk', lookup_segment_walk),
    ('name search', lookup_name_search),
    ('drive name', lookup_drive_name),
)


def run_strategy(strategy, client, site_id, folder_path):
    """
    Run one strategy, turning Graph failures into a not-found result.

    The remote error body is kept in the reason so it reaches the final
    ResolutionError if no later strategy succeeds.
    """
    try:
        return strategy(client, site_id, folder_path)
    except GraphApiError as e:
        return StrategyResult.not_found(f"Graph API error {e.status_code}: {e.body}")
    except GraphRequestError as e:
        return StrategyResult.not_found(str(e))


def resolve_drive_folder(graph, host, site_path, folder_path, strategies=STRATEGIES):
    """
    Resolve a human-authored destination to a (drive id, folder id) pair.

    Args:
        graph (str | AccessToken | GraphClient): Token or authenticated client
        host (str): SharePoint host (e.g. 'contoso.sharepoint.com')
        site_path (str): Site name under /sites/
        folder_path (str): Folder path, possibly percent-encoded
        strategies (tuple): Ordered (name, function) pairs to try

    Returns:
        DriveFolderRef: The single unambiguous match

    Raises:
        ResolutionError: Site not found, or no strategy produced an
            unambiguous match (message lists every strategy's outcome)
    """
    client = graph_client_for(graph)
    decoded_path = urllib.parse.unquote(folder_path or '')
    print(f"[*] Resolving destination '{host} : {site_path} : {decoded_path}'")

    try:
        site_id = get_site(client, host, site_path)['id']
    except (GraphApiError, GraphRequestError) as e:
        raise ResolutionError(f"Failed to get site id for {host}/sites/{site_path}: {e}") from e
    print(f"[✓] Site ID: {site_id}")

    outcomes = []
    for name, strategy in strategies:
        result = run_strategy(strategy, client, site_id, decoded_path)
        if result.is_found:
            print(f"[✓] Drive ID: {result.ref.drive_id}")
            print(f"[✓] Folder ID: {result.ref.folder_id} (by {name})")
            return result.ref
        if is_debug_enabled():
            print(f"[DEBUG] {name} lookup: {result.status} - {result.reason}")
        outcomes.append((name, result))

    ambiguous = [f"{name}: {r.reason}" for name, r in outcomes if r.status == AMBIGUOUS]
    details = '; '.join(f"{name}: {r.reason}" for name, r in outcomes)
    if ambiguous:
        raise ResolutionError(f"Destination '{decoded_path}' is ambiguous ({'; '.join(ambiguous)}). "
                              f"All lookups: {details}")
    raise ResolutionError(f"Destination '{decoded_path}' not found. All lookups: {details}")
