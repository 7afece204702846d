"""Tests for node documentation catalogs."""

import json
from unittest.mock import Mock

import pytest
import requests

from flowsmith.catalog import HttpNodeCatalog, NodeCatalog, StaticNodeCatalog
from flowsmith.core.exceptions import CatalogUnavailableError


def make_response(status_code=200, content_type="application/json", payload=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.headers = {"content-type": content_type}
    response.text = text
    response.json = Mock(return_value=payload)
    return response


class TestStaticNodeCatalog:
    def test_bundled_catalog_loads(self):
        catalog = StaticNodeCatalog()

        assert isinstance(catalog, NodeCatalog)
        assert "httpRequest" in catalog.node_types()
        assert "retry" in catalog.get_documentation("httpRequest").lower()

    def test_unknown_type_returns_none(self):
        assert StaticNodeCatalog({"webhook": "docs"}).get_documentation("ghost") is None

    def test_from_file_accepts_plain_and_object_entries(self, tmp_path):
        path = tmp_path / "docs.json"
        path.write_text(json.dumps({"webhook": {"documentation": "Webhook docs"}, "set": "Set docs"}))

        catalog = StaticNodeCatalog.from_file(path)

        assert catalog.get_documentation("webhook") == "Webhook docs"
        assert catalog.get_documentation("set") == "Set docs"
        assert catalog.node_types() == ["set", "webhook"]


class TestHttpNodeCatalog:
    def test_json_documentation(self):
        session = Mock()
        session.get.return_value = make_response(payload={"documentation": "HTTP docs"})
        catalog = HttpNodeCatalog("https://docs.example.com/", session=session, timeout=3)

        assert catalog.get_documentation("httpRequest") == "HTTP docs"
        session.get.assert_called_once_with("https://docs.example.com/nodes/httpRequest", timeout=3)

    def test_plain_text_documentation(self):
        session = Mock()
        session.get.return_value = make_response(content_type="text/markdown", text="# Set")

        assert HttpNodeCatalog("https://docs", session=session).get_documentation("set") == "# Set"

    def test_not_found_returns_none(self):
        session = Mock()
        session.get.return_value = make_response(status_code=404)

        assert HttpNodeCatalog("https://docs", session=session).get_documentation("ghost") is None

    def test_server_error_is_unavailable(self):
        session = Mock()
        session.get.return_value = make_response(status_code=503)

        with pytest.raises(CatalogUnavailableError, match="HTTP 503"):
            HttpNodeCatalog("https://docs", session=session).get_documentation("set")

    def test_timeout_is_unavailable(self):
        session = Mock()
        session.get.side_effect = requests.Timeout("slow")

        with pytest.raises(CatalogUnavailableError, match="timed out"):
            HttpNodeCatalog("https://docs", session=session).get_documentation("set")

    def test_connection_error_is_unavailable(self):
        session = Mock()
        session.get.side_effect = requests.ConnectionError("refused")

        with pytest.raises(CatalogUnavailableError, match="unreachable"):
            HttpNodeCatalog("https://docs", session=session).get_documentation("set")

    def test_invalid_json_is_unavailable(self):
        session = Mock()
        response = make_response()
        response.json.side_effect = ValueError("bad json")
        session.get.return_value = response

        with pytest.raises(CatalogUnavailableError, match="invalid JSON"):
            HttpNodeCatalog("https://docs", session=session).get_documentation("set")
