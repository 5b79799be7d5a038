#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
SharePoint Import Upload Script for GitHub Actions
==================================================

PURPOSE:
    Uploads an extracted import (a local directory tree) into a SharePoint
    document library through Microsoft Graph, authenticating with a
    certificate credential, and drives bulk preview/publish jobs on the
    admin API to completion.

SYNOPSIS:
    python main.py upload <tenant_id> <client_id> <source_dir>
                          [mountpoint] [throttle_delay_ms] [token_lifetime]
                          [max_token_lifetime] [login_endpoint] [graph_endpoint]
                          [workspace] [max_consecutive_throttled]
                          [debug] [debug_metadata]

    python main.py preview <owner> <repo> <urls> [branch] [force]
                           [poll_interval_ms] [debug]

    python main.py publish <owner> <repo> <urls> [branch] [force]
                           [poll_interval_ms] [debug]

PARAMETERS (upload):
    <tenant_id>
        Azure AD tenant ID (GUID format).
        `Position`: 2

    <client_id>
        Azure AD App Registration application (client) ID. The app must have
        the certificate uploaded and Sites.ReadWrite.All granted.
        `Position`: 3

    <source_dir>
        Local directory to upload, usually the extracted import zip.
        The directory structure is recreated under the destination folder.
        `Position`: 4

    [mountpoint]
        SharePoint folder URL, e.g.
        'https://contoso.sharepoint.com/sites/marketing/Shared%20Documents/site'.
        Default: the '/' mountpoint of fstab.yml in the workspace.
        `Position`: 5

    [throttle_delay_ms]
        Delay after each uploaded file, in milliseconds.
        Default: 1000
        `Position`: 6

    [token_lifetime]
        Requested access token lifetime in seconds.
        Default: estimated from the number of files (3 seconds per file plus
        120 seconds, at least 3600), capped by max_token_lifetime.
        `Position`: 7

    [max_token_lifetime]
        Upper bound for the token lifetime in seconds.
        Default: 3600
        `Position`: 8

    [login_endpoint] / [graph_endpoint]
        Azure AD and Microsoft Graph hosts for special cloud environments.
        Default: 'login.microsoftonline.com' / 'graph.microsoft.com'
        `Position`: 9 / 10

    [workspace]
        Directory holding fstab.yml.
        Default: $GITHUB_WORKSPACE or the current directory
        `Position`: 11

    [max_consecutive_throttled]
        Abort the whole upload after this many consecutive files stayed
        throttled (HTTP 429) through all their retries.
        Default: '' (disabled)
        `Position`: 12

    [debug] / [debug_metadata]
        'True' enables per-item output / Graph request details.
        `Position`: 13 / 14

ENVIRONMENT (upload):
    AZURE_PRIVATE_KEY_BASE64  base64 encoded PFX bundle (required)
    AZURE_PFX_PASSWORD        PFX password
    AZURE_THUMBPRINT          certificate thumbprint (computed from the PFX if unset)
    Values may also come from a .env file in the working directory.

PARAMETERS (preview / publish):
    <owner> <repo>   Repository the content belongs to (positions 2, 3)
    <urls>           Comma-separated content paths (position 4)
    [branch]         Default: 'main' (position 5)
    [force]          'True' forces the update (position 6)
    [poll_interval_ms] Job status polling interval, default 4000 (position 7)
    [debug]          'True' lists every processed resource (position 8)

EXIT CODES:
    0   Everything uploaded / job completed
    1   Configuration, authentication, resolution or job error, or any file
        or folder failed to upload

REQUIREMENTS:
    - Python 3.10 or higher
    - requests (HTTP client for Graph REST API and admin API)
    - cryptography (PFX bundle parsing)
    - PyJWT (RS256 client assertion)
    - PyYAML (fstab.yml)
    - python-dotenv (Environment variable loading)
"""

import sys
import os
import time

from sharepoint_import.config import parse_config
from sharepoint_import.auth import acquire_token, decode_certificate_bundle
from sharepoint_import.errors import SharePointImportError
from sharepoint_import.file_handler import build_local_tree
from sharepoint_import.graph_api import GraphClient
from sharepoint_import.job_poller import submit_and_await
from sharepoint_import.models import Credential
from sharepoint_import.monitoring import print_rate_limiting_summary
from sharepoint_import.mountpoint import SHAREPOINT, parse_sharepoint_mountpoint, read_fstab, require_mountpoint_type
from sharepoint_import.resolver import resolve_drive_folder
from sharepoint_import.uploader import UploadPolicy, upload_tree
from sharepoint_import.utils import estimate_token_lifetime, format_duration, is_debug_enabled


def print_stage(title):
    print("\n" + "="*60)
    print(title)
    print("="*60)


def choose_token_lifetime(config, file_count):
    """
    Pick the token lifetime for an upload of `file_count` files.

    An explicit lifetime wins; otherwise the estimate is used, capped by the
    configured maximum.
    """
    if config.token_lifetime:
        return config.token_lifetime

    estimate = estimate_token_lifetime(file_count)
    if estimate > config.max_token_lifetime:
        print(f"[!] Estimated upload time needs a {estimate}s token but the maximum is "
              f"{config.max_token_lifetime}s. The token may expire before the upload finishes.")
        return config.max_token_lifetime
    return estimate


def fail(title, error, hints=()):
    """Print an error banner and exit with status 1."""
    print(f"[Error] {title}: {error}")
    if hints:
        print("[!] Ensure that:")
        for hint in hints:
            print(f"    - {hint}")
    sys.exit(1)


def run_upload(config):
    """
    Upload the source directory to the SharePoint mountpoint.

    Process:
        1. Determine the destination from the mountpoint
        2. Enumerate the local tree
        3. Acquire an access token with the certificate credential
        4. Resolve the destination drive and folder
        5. Create folders and upload files
    """
    # ============================================================
    # [1/5] DESTINATION
    # ============================================================
    print_stage("[1/5] DESTINATION")
    try:
        mountpoint = config.mountpoint or read_fstab(config.workspace)
        require_mountpoint_type(mountpoint, SHAREPOINT)
        destination = parse_sharepoint_mountpoint(mountpoint)
    except SharePointImportError as e:
        fail("Invalid mountpoint", e)
    print(f"[✓] {destination.host} : {destination.site_path} : {destination.folder_path}")

    # ============================================================
    # [2/5] FILE DISCOVERY
    # ============================================================
    discovery_start = time.time()
    print_stage("[2/5] FILE DISCOVERY")
    try:
        tree = build_local_tree(config.source_dir)
    except NotADirectoryError as e:
        fail("File discovery failed", e)

    if not tree.files:
        print("[!] No files found to upload")
        sys.exit(1)
    print(f"[✓] Found {len(tree.files)} files to upload ({time.time() - discovery_start:.3f}s)")

    # ============================================================
    # [3/5] AUTHENTICATION
    # ============================================================
    print_stage("[3/5] AUTHENTICATION")
    lifetime = choose_token_lifetime(config, len(tree.files))
    try:
        credential = Credential(
            tenant_id=config.tenant_id,
            client_id=config.client_id,
            certificate=decode_certificate_bundle(config.private_key_base64),
            password=config.pfx_password,
            thumbprint=config.thumbprint,
            lifetime=lifetime,
        )
        token = acquire_token(
            credential, max_lifetime=config.max_token_lifetime,
            login_endpoint=config.login_endpoint, graph_endpoint=config.graph_endpoint
        )
    except SharePointImportError as e:
        fail("Failed to get access token", e, hints=(
            "The certificate bundle and its password are correct",
            "The certificate is uploaded to the app registration",
            "TENANT_ID and CLIENT_ID are correct",
        ))

    # ============================================================
    # [4/5] SHAREPOINT CONNECTION
    # ============================================================
    connection_start = time.time()
    print_stage("[4/5] SHAREPOINT CONNECTION")
    client = GraphClient(token, config.graph_endpoint)
    try:
        ref = resolve_drive_folder(client, destination.host, destination.site_path, destination.folder_path)
    except SharePointImportError as e:
        fail("Could not find the destination folder", e, hints=(
            "The site URL is correct",
            "The upload folder exists on the SharePoint site",
            "You have appropriate permissions",
        ))
    print(f"\n[✓] SharePoint connection established ({time.time() - connection_start:.3f}s)")

    # ============================================================
    # [5/5] FILE PROCESSING
    # ============================================================
    upload_start = time.time()
    print_stage("[5/5] FILE PROCESSING")
    policy = UploadPolicy(max_consecutive_throttled=config.max_consecutive_throttled)
    try:
        report = upload_tree(client, ref.drive_id, ref.folder_id, tree,
                             throttle_delay_ms=config.throttle_delay_ms, policy=policy)
    except SharePointImportError as e:
        print_rate_limiting_summary(client.monitor)
        fail("Upload aborted", e)

    print_stage("[✓] UPLOAD COMPLETE")
    report.print_summary(len(tree.files))
    print(f"   - Elapsed:         {format_duration(time.time() - upload_start)}")
    print_rate_limiting_summary(client.monitor)

    if report.has_failures:
        print(f"[!] {report.failed} file(s) and {report.failed_folder_creations} folder(s) failed to upload")
        sys.exit(1)

    if is_debug_enabled():
        print("[✓] All files uploaded successfully")


def run_bulk(config):
    """Submit a bulk preview or publish job and wait for it to finish."""
    print_stage(f"BULK {config.command.upper()}")
    try:
        result = submit_and_await(
            config.command, config.owner, config.repo, config.branch, config.paths,
            force_update=config.force_update, poll_interval_ms=config.poll_interval_ms
        )
    except SharePointImportError as e:
        fail(f"Bulk {config.command} failed", e)

    print(f"[STATS] Bulk {config.command}:")
    print(f"   - Processed:  {result.processed:>6}")
    print(f"   - Failed:     {result.failed:>6}")
    print(f"   - Total:      {result.total:>6}")
    print(f"   - Duration:   {format_duration(result.duration_seconds)}")

    if result.failed:
        sys.exit(1)


def main():
    """
    Main execution function: parse configuration and run the command.
    """
    try:
        config = parse_config()
    except (ValueError, IndexError) as e:
        print(f"[Error] Invalid arguments: {e}")
        print(__doc__.split("PARAMETERS")[0])
        sys.exit(1)

    # Set environment variables for debug flags (enables existing debug checks in utils.py)
    if config.debug:
        os.environ['DEBUG'] = 'true'
    if config.debug_metadata:
        os.environ['DEBUG_METADATA'] = 'true'

    if config.command == 'upload':
        run_upload(config)
    else:
        run_bulk(config)


if __name__ == "__main__":
    main()
