# -*- coding: utf-8 -*-
"""
Data models for SharePoint import sessions.
"""

import time
from dataclasses import dataclass, field

# Bulk job operations and their admin API path segment
OPERATION_PATHS = {
    'preview': 'preview',
    'publish': 'live',
}

# Job state reported by the admin API once a job is finished
JOB_STATE_STOPPED = 'stopped'


@dataclass(frozen=True)
class Credential:
    """Certificate credential used to sign a client assertion."""

    tenant_id: str
    client_id: str
    certificate: bytes
    password: str
    thumbprint: str
    lifetime: int = 3600


@dataclass(frozen=True)
class AccessToken:
    """Bearer token with its implicit expiry (issue time + requested lifetime)."""

    value: str
    expires_at: float

    def __str__(self):
        return self.value

    @property
    def seconds_remaining(self):
        return self.expires_at - time.time()


@dataclass(frozen=True)
class SignedAssertion:
    """A signed client assertion split into its JWT compact parts."""

    header: dict
    payload: dict
    signature: str
    encoded: str

    def compact(self):
        """Return the JWT compact serialization 'header.payload.signature'."""
        return self.encoded

    def __str__(self):
        return self.encoded


@dataclass(frozen=True)
class RemotePathSpec:
    """Destination as authored by a human: host, site path and folder path."""

    host: str
    site_path: str
    folder_path: str


@dataclass(frozen=True)
class DriveFolderRef:
    """A resolved destination folder inside a drive."""

    drive_id: str
    folder_id: str
    matched_path: str = ""


@dataclass(frozen=True)
class DirEntry:
    """A directory of the local tree, relative to the tree root (forward slashes)."""

    relative_path: str


@dataclass(frozen=True)
class FileEntry:
    """A file of the local tree with its relative and absolute paths."""

    relative_path: str
    local_path: str

    @property
    def name(self):
        return self.relative_path.rsplit('/', 1)[-1]

    @property
    def parent_path(self):
        """Relative path of the containing directory ('' for the tree root)."""
        if '/' not in self.relative_path:
            return ''
        return self.relative_path.rsplit('/', 1)[0]


@dataclass(frozen=True)
class LocalTree:
    """Pre-order enumeration of a local directory; read-only once built."""

    root: str
    directories: tuple = ()
    files: tuple = ()


@dataclass(frozen=True)
class BulkJob:
    """A submitted bulk preview/publish job on the admin API."""

    name: str
    operation: str
    owner: str
    repo: str
    branch: str = 'main'

    @property
    def operation_path(self):
        return OPERATION_PATHS[self.operation]


@dataclass
class JobResult:
    """Final progress counters of a stopped bulk job."""

    processed: int = 0
    failed: int = 0
    total: int = 0
    duration_seconds: float = None
    resources: list = field(default_factory=list)
