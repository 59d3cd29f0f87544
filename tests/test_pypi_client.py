"""Tests for PyPI metadata lookups."""
import json
from unittest.mock import Mock, patch

import pytest

from constants import Constants, ExitCodes
from registry.pypi.client import _runtime_dependencies, fetch_info, parse_info


def _response(status_code=200, payload=None):
    resp = Mock()
    resp.status_code = status_code
    resp.text = json.dumps(payload if payload is not None else {})
    return resp


INFO = {
    "name": "requests",
    "summary": "Python HTTP for Humans.",
    "version": "2.32.3",
    "home_page": "https://requests.readthedocs.io",
    "docs_url": None,
    "author": "Kenneth Reitz",
    "author_email": "me@kennethreitz.org",
    "license": "Apache-2.0",
    "project_urls": {
        "Documentation": "https://requests.readthedocs.io",
        "Source": "https://github.com/psf/requests",
        "Bug Tracker": "https://github.com/psf/requests/issues",
    },
    "requires_dist": [
        "charset-normalizer<4,>=2",
        "idna<4,>=2.5",
        "urllib3<3,>=1.21.1",
        "certifi>=2017.4.17",
        "PySocks!=1.5.7,>=1.5.6; extra == \"socks\"",
        "chardet<6,>=3.0.2; extra == \"use-chardet-on-py3\"",
    ],
}


class TestParseInfo:
    """Test PyPI info to metadata conversion."""

    def test_fields_mapped(self):
        """Test field mapping from the info object."""
        meta = parse_info(INFO)
        assert meta.name == "requests"
        assert meta.description == "Python HTTP for Humans."
        assert meta.version == "2.32.3"
        assert meta.homepage_url == "https://requests.readthedocs.io"
        assert meta.documentation_url == "https://requests.readthedocs.io"
        assert meta.source_code_url == "https://github.com/psf/requests"
        assert meta.bug_tracker_url == "https://github.com/psf/requests/issues"
        assert meta.author == "Kenneth Reitz <me@kennethreitz.org>"
        assert meta.license == "Apache-2.0"

    def test_extras_only_requirements_skipped(self):
        """Test that extras-only requirements are skipped."""
        assert parse_info(INFO).dependencies == ["charset-normalizer", "idna", "urllib3", "certifi"]

    def test_environment_markers_without_extra_kept(self):
        """Test that marker requirements without extras are kept."""
        deps = _runtime_dependencies(["tomli>=1.1; python_version < \"3.11\"", "tomli"])
        assert deps == ["tomli"]

    def test_missing_fields_default_empty(self):
        """Test defaults for missing fields."""
        meta = parse_info({"name": "bare"})
        assert meta.version == ""
        assert meta.author == ""
        assert meta.dependencies == []


class TestFetchInfo:
    """Test PyPI package metadata fetching."""

    @patch("registry.pypi.client.safe_get")
    def test_found(self, mock_get):
        """Test a successful lookup."""
        mock_get.return_value = _response(payload={"info": INFO})
        meta = fetch_info("requests")
        assert meta.name == "requests"
        assert mock_get.call_args[0][0] == Constants.REGISTRY_URL_PYPI + "requests/json"

    @patch("registry.pypi.client.safe_get")
    def test_name_canonicalized_in_url(self, mock_get):
        """Test that the name is canonicalized in the URL."""
        mock_get.return_value = _response(payload={"info": {"name": "Flask-RESTful"}})
        fetch_info("Flask_RESTful")
        assert mock_get.call_args[0][0].endswith("/flask-restful/json")

    @patch("registry.pypi.client.safe_get")
    def test_not_found_is_none(self, mock_get):
        """Test that a 404 yields None."""
        mock_get.return_value = _response(status_code=404)
        assert fetch_info("no-such-package-here") is None

    @patch("registry.pypi.client.safe_get")
    def test_server_error_exits(self, mock_get):
        """Test that a server error exits with CONNECTION_ERROR."""
        mock_get.return_value = _response(status_code=500)
        with pytest.raises(SystemExit) as excinfo:
            fetch_info("requests")
        assert excinfo.value.code == ExitCodes.CONNECTION_ERROR.value

    @patch("registry.pypi.client.safe_get")
    def test_missing_info_object_exits(self, mock_get):
        """Test that a payload without info exits."""
        mock_get.return_value = _response(payload={"releases": {}})
        with pytest.raises(SystemExit):
            fetch_info("requests")

    @patch("registry.pypi.client.safe_get")
    def test_invalid_json_exits(self, mock_get):
        """Test that a non-JSON body exits."""
        resp = Mock(status_code=200, text="<html>")
        mock_get.return_value = resp
        with pytest.raises(SystemExit) as excinfo:
            fetch_info("requests")
        assert excinfo.value.code == ExitCodes.CONNECTION_ERROR.value
