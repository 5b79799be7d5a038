# -*- coding: utf-8 -*-
"""
Mountpoint handling for SharePoint import.

A project declares its content source in fstab.yml:

    mountpoints:
      /: https://contoso.sharepoint.com/sites/marketing/Shared%20Documents/site

or with the URL under a `url` key. The root mountpoint decides where an
import is uploaded.
"""

import os
import re
import urllib.parse

import yaml

from .errors import MountpointError
from .models import RemotePathSpec

FSTAB_FILE = 'fstab.yml'

SHAREPOINT = 'sharepoint'
CROSSWALK = 'crosswalk'
UNKNOWN = 'unknown'

SUPPORTED_TYPES = (SHAREPOINT, CROSSWALK)

# (pattern, type) pairs checked in order
_TYPE_PATTERNS = (
    (re.compile(r'sharepoint', re.IGNORECASE), SHAREPOINT),
    (re.compile(r'adobeaemcloud', re.IGNORECASE), CROSSWALK),
)

# (pattern, message) pairs for providers that cannot receive uploads
_UNSUPPORTED_PATTERNS = (
    (re.compile(r'drive\.google\.com', re.IGNORECASE), 'Google is not supported for upload yet.'),
    (re.compile(r'dropbox', re.IGNORECASE), 'Dropbox is not supported for upload.'),
    (re.compile(r'github\.com', re.IGNORECASE), 'GitHub is not supported for upload.'),
)


def read_fstab(workspace):
    """
    Read the root mountpoint URL from `<workspace>/fstab.yml`.

    Args:
        workspace (str): Directory containing fstab.yml

    Returns:
        str: The mountpoint URL mapped to '/'

    Raises:
        MountpointError: Missing file, invalid YAML, or no usable '/' entry
    """
    path = os.path.join(workspace, FSTAB_FILE)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            parsed = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise MountpointError(f"A mountpoint was not provided and {FSTAB_FILE} was not found in {workspace}") from e
    except yaml.YAMLError as e:
        raise MountpointError(f"The {FSTAB_FILE} file is not valid YAML: {e}") from e

    mountpoints = (parsed or {}).get('mountpoints') if isinstance(parsed, dict) else None
    root_entry = (mountpoints or {}).get('/')
    if not root_entry:
        raise MountpointError(f"No mountpoint for '/' found in {FSTAB_FILE}")

    if isinstance(root_entry, str):
        value = root_entry
    elif isinstance(root_entry, dict):
        value = root_entry.get('url') or ''
    else:
        value = ''

    value = value.strip()
    if not value:
        raise MountpointError("Found mountpoint value is empty")

    print(f"[*] Mountpoint: {value}")
    return value


def mountpoint_type(url):
    """
    Classify a mountpoint URL.

    Returns:
        str: 'sharepoint', 'crosswalk' or 'unknown'

    Raises:
        MountpointError: The URL points at a provider that cannot receive uploads
    """
    for pattern, kind in _TYPE_PATTERNS:
        if pattern.search(url):
            return kind
    for pattern, message in _UNSUPPORTED_PATTERNS:
        if pattern.search(url):
            raise MountpointError(message)
    return UNKNOWN


def require_mountpoint_type(url, desired):
    """
    Check that a mountpoint is of the requested type.

    Returns:
        str: The detected type (equal to desired)

    Raises:
        MountpointError: Invalid desired type or a mismatch
    """
    if desired not in SUPPORTED_TYPES:
        raise MountpointError(f"Invalid requested mountpoint type: {desired}")
    found = mountpoint_type(url)
    if found != desired:
        raise MountpointError(
            f"Requested mountpoint type {desired} does not match found mountpoint type: {found}")
    print(f"[✓] Mountpoint type: {found}")
    return found


def parse_sharepoint_mountpoint(url):
    """
    Split a SharePoint mountpoint URL into host, site and folder path.

    Sharing-link prefixes such as '/:f:/r/' are ignored. The folder path is
    returned as found in the URL (possibly percent-encoded); the resolver
    decodes it once.

    Args:
        url (str): e.g. 'https://contoso.sharepoint.com/sites/mysite/Shared%20Documents/site'

    Returns:
        RemotePathSpec: host='contoso.sharepoint.com', site_path='mysite',
            folder_path='Shared%20Documents/site'

    Raises:
        MountpointError: Not a SharePoint URL, or no '/sites/<name>' segment
    """
    parsed = urllib.parse.urlsplit(url.strip())
    host = parsed.hostname
    if not host or mountpoint_type(url) != SHAREPOINT:
        raise MountpointError(f"Not a SharePoint mountpoint: {url}")

    segments = [segment for segment in parsed.path.split('/') if segment]
    try:
        sites_index = segments.index('sites')
        site_path = segments[sites_index + 1]
    except (ValueError, IndexError) as e:
        raise MountpointError(f"Mountpoint has no '/sites/<name>' segment: {url}") from e

    folder_path = '/'.join(segments[sites_index + 2:])
    return RemotePathSpec(host=host, site_path=site_path, folder_path=folder_path)
