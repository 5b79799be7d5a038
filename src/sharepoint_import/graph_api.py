# -*- coding: utf-8 -*-
"""
Microsoft Graph API operations for SharePoint import.

This module provides the bearer-authenticated Graph client and the drive
endpoints used by path resolution, folder synchronization and file upload.

Requests are sent exactly once; callers own the retry policy.
Non-2xx bodies are always surfaced (printed and carried on GraphApiError).
"""

import urllib.parse

import requests

from .errors import GraphApiError, GraphRequestError
from .models import AccessToken
from .monitoring import RateLimitMonitor
from .utils import is_debug_enabled, is_debug_metadata_enabled

DEFAULT_GRAPH_ENDPOINT = 'graph.microsoft.com'

# Seconds to wait for a Graph response (connect, read)
REQUEST_TIMEOUT = (10, 300)


def quote_path(path):
    """Percent-encode a drive path, keeping '/' separators."""
    return urllib.parse.quote(path.strip('/'), safe='/')


def odata_string(value):
    """Quote a value for an OData string literal (single quotes doubled)."""
    return "'" + value.replace("'", "''") + "'"


class GraphClient:
    """
    Bearer-authenticated client for the Microsoft Graph v1.0 REST API.

    The token is read-only to this client; it is never refreshed here.
    """

    def __init__(self, token, graph_endpoint=DEFAULT_GRAPH_ENDPOINT, session=None, monitor=None):
        """
        Args:
            token (str | AccessToken): Bearer access token
            graph_endpoint (str): Graph host (e.g. 'graph.microsoft.us' for GovCloud)
            session (requests.Session): Optional session, injected by tests
            monitor (RateLimitMonitor): Rate limit monitor for this session (default: a new one)
        """
        self.token = token.value if isinstance(token, AccessToken) else token
        self.graph_endpoint = graph_endpoint
        self.session = session or requests.Session()
        self.monitor = monitor if monitor is not None else RateLimitMonitor()

    @property
    def base_url(self):
        return f"https://{self.graph_endpoint}/v1.0"

    def url(self, path):
        return f"{self.base_url}{path}"

    def request(self, method, path, json_data=None, data=None, params=None, content_type=None):
        """
        Send one Graph API request and return the raw response.

        Args:
            method (str): HTTP method ('GET', 'POST', 'PUT')
            path (str): Path relative to /v1.0 (must start with '/')
            json_data (dict): JSON body (mutually exclusive with data)
            data (bytes | file): Binary body for uploads
            params (dict): Query parameters
            content_type (str): Content-Type override for binary bodies

        Returns:
            requests.Response: The response, whatever its status code

        Raises:
            GraphRequestError: If the request could not be sent at all
        """
        url = self.url(path)
        headers = {
            'Authorization': f"Bearer {self.token}",
            'Accept': 'application/json',
        }
        if content_type:
            headers['Content-Type'] = content_type

        if is_debug_metadata_enabled():
            print(f"[DEBUG] {method} {url}")

        try:
            response = self.session.request(
                method, url, headers=headers, json=json_data, data=data,
                params=params, timeout=REQUEST_TIMEOUT
            )

        except requests.exceptions.Timeout as e:
            print("[!] ========================================")
            print("[!] REQUEST TIMEOUT")
            print("[!] ========================================")
            print("[!] The request to Graph API timed out.")
            print("[!]   1. Check your internet connection speed")
            print("[!]   2. For large file uploads, this may indicate a very slow connection")
            print(f"[!] URL: {url[:100]}...")
            raise GraphRequestError(f"Graph API request timed out: {str(e)[:200]}") from e

        except requests.exceptions.SSLError as e:
            print("[!] ========================================")
            print("[!] SSL/TLS CERTIFICATE ERROR")
            print("[!] ========================================")
            print("[!]   1. Check if corporate proxy is intercepting SSL/TLS connections")
            print("[!]   2. Ensure system clock is accurate (SSL cert validation requires correct time)")
            print(f"[!] Technical details: {str(e)[:300]}")
            raise GraphRequestError(f"SSL certificate verification failed: {str(e)[:200]}") from e

        except requests.exceptions.ProxyError as e:
            print("[!] ========================================")
            print("[!] PROXY CONNECTION ERROR")
            print("[!] ========================================")
            print("[!]   1. Verify HTTP_PROXY and HTTPS_PROXY environment variables are set correctly")
            print("[!]   2. Check proxy server allows connections to *.microsoft.com")
            print(f"[!] Technical details: {str(e)[:300]}")
            raise GraphRequestError(f"Proxy connection failed: {str(e)[:200]}") from e

        except requests.exceptions.ConnectionError as e:
            print(f"[!] Network connection error: {str(e)[:200]}")
            raise GraphRequestError(f"Network connection failed: {str(e)[:200]}") from e

        except requests.exceptions.RequestException as e:
            print(f"[!] HTTP request error: {str(e)[:200]}")
            raise GraphRequestError(f"HTTP request failed: {str(e)[:200]}") from e

        self.monitor.analyze_response_headers(response, method=method, url=url)

        if is_debug_metadata_enabled():
            print(f"[DEBUG] -> {response.status_code}")
        return response

    def get_json(self, path, params=None):
        """
        GET a Graph resource and return its JSON body.

        Raises:
            GraphApiError: If the API returns a non-2xx status code
            GraphRequestError: If the request could not be sent
        """
        response = self.request('GET', path, params=params)
        return parse_json_response(response)


def parse_json_response(response):
    """
    Return the JSON body of a 2xx response, or raise with the remote error body.

    Raises:
        GraphApiError: On any non-2xx status (body carried verbatim)
    """
    if not 200 <= response.status_code < 300:
        body = response.text
        request_id = response.headers.get('request-id', '')
        print(f"[!] Graph API error {response.status_code}: {body[:500]}")
        if request_id and is_debug_enabled():
            print(f"[DEBUG] request-id: {request_id}")
        raise GraphApiError(response.status_code, body, url=getattr(response, 'url', None))
    return response.json()


def graph_client_for(graph):
    """Return a GraphClient for a token string, an AccessToken, or an existing client."""
    if isinstance(graph, GraphClient):
        return graph
    return GraphClient(graph)


# ====================================================================
# SITE AND DRIVE LOOKUPS
# ====================================================================

def get_site(client, host, site_path):
    """
    Look up a SharePoint site by host and server-relative path.

    Args:
        client (GraphClient): Authenticated Graph client
        host (str): SharePoint host (e.g. 'contoso.sharepoint.com')
        site_path (str): Site name under /sites/ (e.g. 'TeamSite')

    Returns:
        dict: Site resource including 'id'
    """
    site_path = site_path.strip('/')
    if site_path.startswith('sites/'):
        site_path = site_path[len('sites/'):]
    return client.get_json(f"/sites/{host}:/sites/{quote_path(site_path)}")


def get_default_drive_root(client, site_id):
    """Return the root driveItem of a site's default document library."""
    return client.get_json(f"/sites/{site_id}/drive/root")


def get_item_by_site_path(client, site_id, path):
    """Return the driveItem at a root-relative path of the site's default drive."""
    if not path.strip('/'):
        return client.get_json(f"/sites/{site_id}/drive/root")
    return client.get_json(f"/sites/{site_id}/drive/root:/{quote_path(path)}")


def get_item_by_drive_path(client, drive_id, path):
    """Return the driveItem at a root-relative path of a specific drive."""
    if not path.strip('/'):
        return client.get_json(f"/drives/{drive_id}/root")
    return client.get_json(f"/drives/{drive_id}/root:/{quote_path(path)}")


def find_children_by_name(client, drive_id, parent_id, name):
    """
    List the children of a folder whose name equals `name`.

    Returns:
        list: Matching driveItem dicts (may be empty or have several entries)
    """
    data = client.get_json(
        f"/drives/{drive_id}/items/{parent_id}/children",
        params={'$filter': f"name eq {odata_string(name)}"}
    )
    return data.get('value', [])


def search_site_items(client, site_id, name):
    """Full-text search of the site's default drive for items named like `name`."""
    query = urllib.parse.quote(odata_string(name), safe="'")
    data = client.get_json(f"/sites/{site_id}/drive/root/search(q={query})")
    return data.get('value', [])


def search_drives(client, site_id, name):
    """
    Return the site's drives (document libraries) whose display name equals `name`.

    The search parameter is only a hint for this endpoint; names are
    compared client-side, case-insensitively.
    """
    data = client.get_json(f"/sites/{site_id}/drives", params={'search': name})
    drives = data.get('value', [])
    exact = [d for d in drives if (d.get('name') or '').lower() == name.lower()]
    return exact


# ====================================================================
# FOLDER AND FILE WRITES
# ====================================================================

def create_folder(client, drive_id, parent_id, folder_name):
    """
    Create a child folder, failing on a name collision.

    Args:
        client (GraphClient): Authenticated Graph client
        drive_id (str): Drive ID
        parent_id (str): Parent folder item ID
        folder_name (str): Name for the new folder

    Returns:
        requests.Response: Raw response; 200/201 created, 409 already exists

    Note:
        conflictBehavior is 'fail' so that an existing folder is reported
        with 409 instead of being silently renamed to "Folder 1".
    """
    request_body = {
        "name": folder_name,
        "folder": {},
        "@microsoft.graph.conflictBehavior": "fail"
    }
    if is_debug_enabled():
        print(f"[DEBUG] Creating folder: {folder_name} in parent {parent_id}")
    return client.request(
        'POST', f"/drives/{drive_id}/items/{parent_id}/children", json_data=request_body
    )


def upload_file_content(client, drive_id, parent_id, filename, stream):
    """
    Upload file bytes under a parent folder: PUT /items/{parent-id}:/{filename}:/content

    Args:
        client (GraphClient): Authenticated Graph client
        drive_id (str): Drive ID
        parent_id (str): Parent folder item ID
        filename (str): Name for the uploaded file
        stream (file | bytes): Open binary file object (streamed) or bytes

    Returns:
        requests.Response: Raw response; the caller decides about retries
    """
    encoded_filename = urllib.parse.quote(filename)
    return client.request(
        'PUT', f"/drives/{drive_id}/items/{parent_id}:/{encoded_filename}:/content",
        data=stream, content_type='application/octet-stream'
    )
