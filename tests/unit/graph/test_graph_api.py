"""Unit tests for graph_api.py: Graph client and drive endpoints."""

from unittest.mock import MagicMock

import pytest
import requests

from conftest import make_response
from sharepoint_import.errors import GraphApiError, GraphRequestError
from sharepoint_import.graph_api import (
    GraphClient,
    create_folder,
    find_children_by_name,
    get_item_by_drive_path,
    get_item_by_site_path,
    get_site,
    graph_client_for,
    odata_string,
    quote_path,
    search_drives,
    upload_file_content,
)
from sharepoint_import.models import AccessToken

BASE = "https://graph.microsoft.com/v1.0"


def _client(*responses):
    session = MagicMock()
    session.request.side_effect = list(responses)
    return GraphClient("token-abc", session=session), session


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestQuoting:
    def test_odata_string_doubles_single_quotes(self):
        assert odata_string("Bob's folder") == "'Bob''s folder'"

    def test_quote_path_keeps_separators(self):
        assert quote_path("/Shared Documents/site/") == "Shared%20Documents/site"


class TestGraphClientFor:
    def test_accepts_access_token(self):
        client = graph_client_for(AccessToken("bearer", 0))
        assert client.token == "bearer"

    def test_returns_existing_client(self):
        client, _ = _client()
        assert graph_client_for(client) is client


# ---------------------------------------------------------------------------
# request() tests
# ---------------------------------------------------------------------------


class TestRequest:
    def test_sends_bearer_header(self):
        client, session = _client(make_response(200, {"id": "x"}))

        client.request("GET", "/sites/root")

        method, url = session.request.call_args.args
        assert method == "GET"
        assert url == f"{BASE}/sites/root"
        assert session.request.call_args.kwargs["headers"]["Authorization"] == "Bearer token-abc"

    def test_returns_non_2xx_response_without_raising(self):
        client, _ = _client(make_response(409, {"error": {"code": "nameAlreadyExists"}}))
        assert client.request("POST", "/drives/d/items/p/children").status_code == 409

    @pytest.mark.parametrize("error", [
        requests.exceptions.Timeout("slow"),
        requests.exceptions.SSLError("bad cert"),
        requests.exceptions.ProxyError("proxy"),
        requests.exceptions.ConnectionError("reset"),
    ])
    def test_transport_errors_raise_graph_request_error(self, error):
        client, _ = _client(error)
        with pytest.raises(GraphRequestError):
            client.request("GET", "/sites/root")

    def test_get_json_raises_with_remote_body(self):
        client, _ = _client(make_response(404, text='{"error":{"code":"itemNotFound"}}'))

        with pytest.raises(GraphApiError) as excinfo:
            client.get_json("/drives/d/root:/missing")

        assert excinfo.value.status_code == 404
        assert "itemNotFound" in excinfo.value.body

    def test_each_client_keeps_its_own_rate_counts(self):
        first, _ = _client(make_response(200, {"id": "a"}))
        second, _ = _client(make_response(200, {"id": "b"}), make_response(429))

        first.request("GET", "/sites/root")
        second.request("GET", "/sites/root")
        second.request("PUT", "/drives/d/items/p:/a.txt:/content")

        assert first.monitor is not second.monitor
        assert first.monitor.get_metrics_summary()["total_requests"] == 1
        assert second.monitor.get_metrics_summary()["total_requests"] == 2
        assert second.monitor.get_metrics_summary()["throttled_requests"] == 1


# ---------------------------------------------------------------------------
# Endpoint tests
# ---------------------------------------------------------------------------


class TestEndpoints:
    def test_get_site_strips_sites_prefix(self):
        client, session = _client(make_response(200, {"id": "site-1"}))

        assert get_site(client, "contoso.sharepoint.com", "/sites/marketing")["id"] == "site-1"
        assert session.request.call_args.args[1] == f"{BASE}/sites/contoso.sharepoint.com:/sites/marketing"

    def test_drive_root_for_empty_path(self):
        client, session = _client(make_response(200, {"id": "root"}))

        get_item_by_drive_path(client, "drive-1", "/")

        assert session.request.call_args.args[1] == f"{BASE}/drives/drive-1/root"

    def test_site_drive_root_for_empty_path(self):
        client, session = _client(make_response(200, {"id": "root"}))

        get_item_by_site_path(client, "site-1", "")

        assert session.request.call_args.args[1] == f"{BASE}/sites/site-1/drive/root"

    def test_site_item_by_path(self):
        client, session = _client(make_response(200, {"id": "f"}))

        get_item_by_site_path(client, "site-1", "Docs/a b")

        assert session.request.call_args.args[1] == f"{BASE}/sites/site-1/drive/root:/Docs/a%20b"

    def test_find_children_filters_by_quoted_name(self):
        client, session = _client(make_response(200, {"value": [{"id": "c1", "folder": {}}]}))

        children = find_children_by_name(client, "drive-1", "parent-1", "it's")

        assert children == [{"id": "c1", "folder": {}}]
        assert session.request.call_args.args[1] == f"{BASE}/drives/drive-1/items/parent-1/children"
        assert session.request.call_args.kwargs["params"] == {"$filter": "name eq 'it''s'"}

    def test_search_drives_keeps_exact_names_only(self):
        client, _ = _client(make_response(200, {"value": [
            {"id": "d1", "name": "Demo"},
            {"id": "d2", "name": "Demo Archive"},
            {"id": "d3", "name": "demo"},
        ]}))

        assert [d["id"] for d in search_drives(client, "site-1", "Demo")] == ["d1", "d3"]

    def test_create_folder_fails_on_conflict(self):
        client, session = _client(make_response(201, {"id": "new"}))

        response = create_folder(client, "drive-1", "parent-1", "sub")

        assert response.status_code == 201
        body = session.request.call_args.kwargs["json"]
        assert body == {"name": "sub", "folder": {}, "@microsoft.graph.conflictBehavior": "fail"}

    def test_upload_puts_octet_stream_under_parent(self):
        client, session = _client(make_response(201, {"id": "file"}))

        upload_file_content(client, "drive-1", "parent-1", "a b.txt", b"data")

        assert session.request.call_args.args == ("PUT", f"{BASE}/drives/drive-1/items/parent-1:/a%20b.txt:/content")
        kwargs = session.request.call_args.kwargs
        assert kwargs["data"] == b"data"
        assert kwargs["headers"]["Content-Type"] == "application/octet-stream"
