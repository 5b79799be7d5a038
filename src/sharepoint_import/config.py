# -*- coding: utf-8 -*-
"""
Configuration management for SharePoint import.

This module handles command-line argument parsing and configuration setup.
Certificate secrets are read from the environment (a .env file is loaded
first) so they never appear on the command line.
"""

import os
import sys

from dotenv import load_dotenv

from .auth import DEFAULT_GRAPH_ENDPOINT, DEFAULT_LOGIN_ENDPOINT, DEFAULT_MAX_LIFETIME
from .job_poller import DEFAULT_POLL_INTERVAL_MS

COMMANDS = ('upload', 'preview', 'publish')

# Environment variables holding the certificate credential
ENV_PRIVATE_KEY = 'AZURE_PRIVATE_KEY_BASE64'
ENV_PFX_PASSWORD = 'AZURE_PFX_PASSWORD'
ENV_THUMBPRINT = 'AZURE_THUMBPRINT'


def _arg(position, default=''):
    return sys.argv[position] if len(sys.argv) > position and sys.argv[position] else default


def _flag(position, default='false'):
    return _arg(position, default).lower() == 'true'


class UploadConfig:
    """Configuration for the upload command"""

    command = 'upload'

    def __init__(self):
        """
        Parse command-line arguments and initialize configuration.

        Arguments are parsed from sys.argv in the following order:
        1. command - 'upload'
        2. tenant_id - Azure AD tenant ID
        3. client_id - App registration client ID
        4. source_dir - Local directory to upload (extracted import zip)
        5. mountpoint (optional) - SharePoint folder URL (default: read from fstab.yml)
        6. throttle_delay_ms (optional) - Delay after each file (default: 1000)
        7. token_lifetime (optional) - Token lifetime in seconds (default: estimated from file count)
        8. max_token_lifetime (optional) - Upper bound for the lifetime (default: 3600)
        9. login_endpoint (optional) - Azure AD endpoint (default: login.microsoftonline.com)
        10. graph_endpoint (optional) - Graph API endpoint (default: graph.microsoft.com)
        11. workspace (optional) - Directory holding fstab.yml (default: $GITHUB_WORKSPACE or cwd)
        12. max_consecutive_throttled (optional) - Abort after N throttled files (default: disabled)
        13. debug (optional) - Enable general debug output (default: False)
        14. debug_metadata (optional) - Enable metadata-specific debug output (default: False)

        Environment:
            AZURE_PRIVATE_KEY_BASE64 - base64 encoded PFX bundle
            AZURE_PFX_PASSWORD - PFX password
            AZURE_THUMBPRINT (optional) - certificate thumbprint, computed from the PFX if absent
        """
        # Required arguments
        self.tenant_id = sys.argv[2]
        self.client_id = sys.argv[3]
        self.source_dir = sys.argv[4]

        # Optional arguments with defaults
        self.mountpoint = _arg(5)
        self.throttle_delay_ms = int(_arg(6, '1000'))
        self.token_lifetime = int(_arg(7, '0'))
        self.max_token_lifetime = int(_arg(8, str(DEFAULT_MAX_LIFETIME)))
        self.login_endpoint = _arg(9, DEFAULT_LOGIN_ENDPOINT)
        self.graph_endpoint = _arg(10, DEFAULT_GRAPH_ENDPOINT)
        self.workspace = _arg(11, os.environ.get('GITHUB_WORKSPACE') or os.getcwd())
        max_throttled = _arg(12)
        self.max_consecutive_throttled = int(max_throttled) if max_throttled else None

        # Debug flags
        self.debug = _flag(13)
        self.debug_metadata = _flag(14)

        # Secrets
        self.private_key_base64 = os.environ.get(ENV_PRIVATE_KEY, '')
        self.pfx_password = os.environ.get(ENV_PFX_PASSWORD, '')
        self.thumbprint = os.environ.get(ENV_THUMBPRINT, '')

    def validate(self):
        """
        Validate configuration values.

        Raises:
            ValueError: If configuration is invalid
        """
        if not self.tenant_id:
            raise ValueError("tenant_id cannot be empty")
        if not self.client_id:
            raise ValueError("client_id cannot be empty")
        if not self.source_dir:
            raise ValueError("source_dir cannot be empty")
        if not self.private_key_base64:
            raise ValueError(f"{ENV_PRIVATE_KEY} must be set")
        if self.throttle_delay_ms < 0:
            raise ValueError("throttle_delay_ms must be non-negative")
        if self.token_lifetime < 0:
            raise ValueError("token_lifetime must be non-negative")
        if self.max_token_lifetime <= 0:
            raise ValueError("max_token_lifetime must be positive")
        if self.token_lifetime > self.max_token_lifetime:
            raise ValueError(
                f"token_lifetime {self.token_lifetime} exceeds max_token_lifetime {self.max_token_lifetime}")
        if self.max_consecutive_throttled is not None and self.max_consecutive_throttled < 1:
            raise ValueError("max_consecutive_throttled must be at least 1")


class BulkConfig:
    """Configuration for the preview and publish commands"""

    def __init__(self):
        """
        Parse command-line arguments and initialize configuration.

        Arguments are parsed from sys.argv in the following order:
        1. command - 'preview' or 'publish'
        2. owner - Repository owner
        3. repo - Repository name
        4. urls - Comma-separated content paths
        5. branch (optional) - Branch name (default: main)
        6. force (optional) - Force the update (default: False)
        7. poll_interval_ms (optional) - Job status polling interval (default: 4000)
        8. debug (optional) - Enable general debug output (default: False)
        """
        self.command = sys.argv[1]

        # Required arguments
        self.owner = sys.argv[2]
        self.repo = sys.argv[3]
        self.urls = sys.argv[4]

        # Optional arguments with defaults
        self.branch = _arg(5, 'main')
        self.force_update = _flag(6)
        self.poll_interval_ms = int(_arg(7, str(DEFAULT_POLL_INTERVAL_MS)))
        self.debug = _flag(8)
        self.debug_metadata = False

        # Derived values
        self.paths = [url.strip() for url in self.urls.split(',') if url.strip()]

    def validate(self):
        """
        Validate configuration values.

        Raises:
            ValueError: If configuration is invalid
        """
        if not self.owner:
            raise ValueError("owner cannot be empty")
        if not self.repo:
            raise ValueError("repo cannot be empty")
        if not self.paths:
            raise ValueError("urls must name at least one path")
        if self.poll_interval_ms <= 0:
            raise ValueError("poll_interval_ms must be positive")


def parse_config():
    """
    Parse configuration from command-line arguments.

    Returns:
        UploadConfig | BulkConfig: Configured object for the requested command

    Raises:
        ValueError: If configuration is invalid or the command is unknown
        IndexError: If required arguments are missing
    """
    load_dotenv()

    command = sys.argv[1] if len(sys.argv) > 1 else ''
    if command not in COMMANDS:
        raise ValueError(f"Unknown command '{command}', expected one of: {', '.join(COMMANDS)}")

    config = UploadConfig() if command == 'upload' else BulkConfig()
    config.validate()
    return config
