# -*- coding: utf-8 -*-
"""
SharePoint Import Upload Package
================================

This package provides modular components for uploading an extracted import
tree into a SharePoint document library through Microsoft Graph, and for
driving bulk preview/publish jobs on the admin API to completion.

Modules:
--------
- config: Configuration and argument parsing
- auth: Certificate client assertion signing and token exchange
- graph_api: Microsoft Graph REST primitives
- resolver: Destination folder resolution (site, drive, folder)
- file_handler: Local tree enumeration
- uploader: Folder synchronization and throttled file uploads
- job_poller: Bulk preview/publish jobs
- mountpoint: fstab.yml mountpoint handling
- monitoring: Rate limiting monitoring and upload report
- utils: Shared utility functions

Usage Example:
-------------
    from sharepoint_import.auth import acquire_token, decode_certificate_bundle
    from sharepoint_import.models import Credential
    from sharepoint_import.resolver import resolve_drive_folder
    from sharepoint_import.uploader import upload_directory

    credential = Credential(tenant_id, client_id,
                            decode_certificate_bundle(pfx_base64), password, thumbprint)
    token = acquire_token(credential)
    ref = resolve_drive_folder(token, 'contoso.sharepoint.com', 'marketing', 'Shared Documents/site')
    report, tree = upload_directory(token, ref.drive_id, ref.folder_id, 'import')
"""

__version__ = "1.0.0"

# Main exports for convenience
from .config import parse_config, UploadConfig, BulkConfig
from .errors import (
    SharePointImportError,
    CredentialError,
    AuthError,
    GraphRequestError,
    GraphApiError,
    ResolutionError,
    MountpointError,
    FolderCreationError,
    UploadAborted,
    JobSubmissionError,
    JobTimeoutError,
)
from .auth import acquire_token, sign_client_assertion, exchange_assertion_for_token, decode_certificate_bundle
from .graph_api import GraphClient
from .resolver import resolve_drive_folder
from .file_handler import build_local_tree
from .uploader import UploadPolicy, ensure_folders, upload_all, upload_tree, upload_directory
from .job_poller import BulkJobSession, submit_job, submit_and_await
from .mountpoint import read_fstab, mountpoint_type, parse_sharepoint_mountpoint
from .monitoring import UploadReport, RateLimitMonitor, print_rate_limiting_summary
from .utils import estimate_token_lifetime, is_debug_metadata_enabled, is_debug_enabled

__all__ = [
    # Configuration
    'parse_config',
    'UploadConfig',
    'BulkConfig',
    # Errors
    'SharePointImportError',
    'CredentialError',
    'AuthError',
    'GraphRequestError',
    'GraphApiError',
    'ResolutionError',
    'MountpointError',
    'FolderCreationError',
    'UploadAborted',
    'JobSubmissionError',
    'JobTimeoutError',
    # Authentication
    'acquire_token',
    'sign_client_assertion',
    'exchange_assertion_for_token',
    'decode_certificate_bundle',
    # Graph API
    'GraphClient',
    'resolve_drive_folder',
    # Upload Operations
    'build_local_tree',
    'UploadPolicy',
    'ensure_folders',
    'upload_all',
    'upload_tree',
    'upload_directory',
    # Bulk jobs
    'BulkJobSession',
    'submit_job',
    'submit_and_await',
    # Mountpoint
    'read_fstab',
    'mountpoint_type',
    'parse_sharepoint_mountpoint',
    # Monitoring
    'UploadReport',
    'RateLimitMonitor',
    'print_rate_limiting_summary',
    # Utilities
    'estimate_token_lifetime',
    'is_debug_metadata_enabled',
    'is_debug_enabled',
]
