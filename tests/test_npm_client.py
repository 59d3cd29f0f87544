"""Tests for npm registry lookups and search."""
import json
from unittest.mock import Mock, patch

import pytest

from constants import Constants, ExitCodes
from registry.npm.client import fetch_info, parse_packument, search_names


def _response(status_code=200, payload=None):
    resp = Mock()
    resp.status_code = status_code
    resp.text = json.dumps(payload if payload is not None else {})
    return resp


PACKUMENT = {
    "name": "express",
    "dist-tags": {"latest": "4.19.2"},
    "description": "top-level description",
    "versions": {
        "4.19.2": {
            "description": "Fast, unopinionated, minimalist web framework",
            "homepage": "http://expressjs.com/",
            "repository": {"type": "git", "url": "git+https://github.com/expressjs/express.git"},
            "bugs": "https://github.com/expressjs/express/issues",
            "author": {"name": "TJ Holowaychuk", "email": "tj@vision-media.ca"},
            "license": "MIT",
            "dependencies": {"accepts": "~1.3.8", "body-parser": "1.20.2"},
        }
    },
}


class TestParsePackument:
    """Test packument to metadata conversion."""

    def test_latest_manifest_used(self):
        """Test that fields come from the latest version's manifest."""
        meta = parse_packument(PACKUMENT)
        assert meta.name == "express"
        assert meta.version == "4.19.2"
        assert meta.description == "Fast, unopinionated, minimalist web framework"
        assert meta.homepage_url == "http://expressjs.com/"
        assert meta.source_code_url == "git+https://github.com/expressjs/express.git"
        assert meta.bug_tracker_url == "https://github.com/expressjs/express/issues"
        assert meta.author == "TJ Holowaychuk <tj@vision-media.ca>"
        assert meta.license == "MIT"
        assert meta.dependencies == ["accepts", "body-parser"]

    def test_falls_back_to_top_level_fields(self):
        """Test fallback to top-level fields without dist-tags."""
        meta = parse_packument({"name": "x", "description": "d", "license": {"type": "ISC"}})
        assert meta.description == "d"
        assert meta.license == "ISC"
        assert meta.version == ""


class TestFetchInfo:
    """Test npm package metadata fetching."""

    @patch("registry.npm.client.safe_get")
    def test_scoped_name_encoded(self, mock_get):
        """Test that the slash of a scoped name is percent-encoded."""
        mock_get.return_value = _response(payload={"name": "@babel/core"})
        fetch_info("@babel/core")
        assert mock_get.call_args[0][0] == Constants.REGISTRY_URL_NPM + "@babel%2Fcore"

    @patch("registry.npm.client.safe_get")
    def test_not_found_is_none(self, mock_get):
        """Test that a 404 yields None."""
        mock_get.return_value = _response(status_code=404)
        assert fetch_info("no-such-package") is None

    @patch("registry.npm.client.safe_get")
    def test_error_status_exits(self, mock_get):
        """Test that other error statuses exit with CONNECTION_ERROR."""
        mock_get.return_value = _response(status_code=502)
        with pytest.raises(SystemExit) as excinfo:
            fetch_info("express")
        assert excinfo.value.code == ExitCodes.CONNECTION_ERROR.value


class TestSearchNames:
    """Test npm search."""

    @patch("registry.npm.client.safe_get")
    def test_hits_with_popularity(self, mock_get):
        """Test hits with download counts or scaled popularity scores."""
        mock_get.return_value = _response(payload={
            "objects": [
                {"package": {"name": "left-pad"}, "downloads": {"weekly": 1200}},
                {"package": {"name": "leftpad"}, "score": {"detail": {"popularity": 0.25}}},
                {"package": {"name": "pad-left"}, "downloads": {"weekly": 9}},
            ]
        })
        assert search_names("left") == [("left-pad", 1200), ("leftpad", 250000), ("pad-left", 9)]
        assert mock_get.call_args[1]["params"] == {"text": "left", "size": Constants.NPM_SEARCH_SIZE}

    @patch("registry.npm.client.safe_get")
    def test_hits_not_containing_query_dropped(self, mock_get):
        """Test that hits whose name lacks the query are dropped."""
        mock_get.return_value = _response(payload={
            "objects": [{"package": {"name": "unrelated"}}, {"package": {"name": "my-query"}}]
        })
        assert search_names("query") == [("my-query", 0)]

    @patch("registry.npm.client.safe_get")
    def test_name_filter_ignores_case(self, mock_get):
        """Test that the name filter ignores case like the PyPI search."""
        mock_get.return_value = _response(payload={
            "objects": [{"package": {"name": "left-pad"}}, {"package": {"name": "JSONStream"}}]
        })
        assert search_names("Left") == [("left-pad", 0)]
        assert search_names("jsonstream") == [("JSONStream", 0)]

    @patch("registry.npm.client.safe_get")
    def test_error_status_exits(self, mock_get):
        """Test that a failed search exits."""
        mock_get.return_value = _response(status_code=500)
        with pytest.raises(SystemExit):
            search_names("left")
