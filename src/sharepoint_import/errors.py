# -*- coding: utf-8 -*-
"""
Exception classes for SharePoint import operations.

Fatal errors abort the whole session and propagate to the caller.
Non-fatal errors (single file transfers, folder subtrees) are recorded in the
UploadReport instead of being raised out of the upload loop.
"""


class SharePointImportError(Exception):
    """Base class for all errors raised by this package."""


class CredentialError(SharePointImportError):
    """
    Raised when the certificate bundle cannot be used to sign an assertion.

    This typically occurs when:
    - The PFX password is wrong
    - The bundle is corrupt or not base64/PKCS#12 encoded
    - The bundle contains no private key, or a non-RSA key

    This is a fatal input error and is never retried.
    """


class AuthError(SharePointImportError):
    """
    Raised when the token endpoint rejects the client assertion.

    Carries the provider's HTTP status code and error body verbatim.
    """

    def __init__(self, message, status_code=None, body=None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class GraphRequestError(SharePointImportError):
    """Raised when a Graph request could not be sent (timeout, SSL, proxy, network)."""


class GraphApiError(SharePointImportError):
    """Raised when the Graph API returns a non-2xx response."""

    def __init__(self, status_code, body, url=None):
        self.status_code = status_code
        self.body = body
        self.url = url
        super().__init__(f"Graph API error {status_code}: {body}")


class ResolutionError(SharePointImportError):
    """Raised when a destination path is missing or ambiguous."""


class MountpointError(SharePointImportError):
    """Raised when fstab.yml is missing, invalid, or names an unsupported mountpoint."""


class FolderCreationError(SharePointImportError):
    """
    Raised when an existing folder cannot be resolved after a 409 Conflict.

    Scoped to one subtree: the synchronizer records it and keeps going.
    """

    def __init__(self, message, folder_path=None):
        self.folder_path = folder_path
        super().__init__(message)


class UploadAborted(SharePointImportError):
    """Raised when the upload session cannot continue (folder structure failure, circuit breaker)."""


class JobSubmissionError(SharePointImportError):
    """Raised when the bulk job submission is rejected."""


class JobTimeoutError(SharePointImportError):
    """Raised when job status polling fails too many times in a row."""

    def __init__(self, message, job_name=None, failures=None):
        self.job_name = job_name
        self.failures = failures
        super().__init__(message)
