"""Tests for tool version resolution."""

from importlib.metadata import PackageNotFoundError
from unittest.mock import MagicMock, patch

import pytest
import requests

from pg_snapdump.version import (
    TAGS_URL,
    __version__,
    fetch_latest_tag,
    get_tool_version,
    resolve_tool_version,
)


class TestGetToolVersion:
    """Installed version lookup."""

    def test_falls_back_to_source_version(self) -> None:
        with patch("pg_snapdump.version.version", side_effect=PackageNotFoundError):
            assert get_tool_version() == __version__


class TestFetchLatestTag:
    """GitHub tag lookup via requests."""

    def test_returns_first_tag(self) -> None:
        response = MagicMock()
        response.json.return_value = [{"name": "v1.4.0"}, {"name": "v1.3.2"}]
        with patch("pg_snapdump.version.requests.get", return_value=response) as mock_get:
            assert fetch_latest_tag("acme", "pg-snapdump", timeout=2) == "v1.4.0"

        mock_get.assert_called_once()
        assert mock_get.call_args.args[0] == TAGS_URL.format(owner="acme", repo="pg-snapdump")
        assert mock_get.call_args.kwargs["timeout"] == 2
        response.raise_for_status.assert_called_once()

    def test_no_tags(self) -> None:
        response = MagicMock()
        response.json.return_value = []
        with patch("pg_snapdump.version.requests.get", return_value=response):
            with pytest.raises(ValueError, match="No tags"):
                fetch_latest_tag("acme", "empty")

    def test_http_error_propagates(self) -> None:
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("404")
        with patch("pg_snapdump.version.requests.get", return_value=response):
            with pytest.raises(requests.HTTPError):
                fetch_latest_tag("acme", "missing")


class TestResolveToolVersion:
    """Never-failing resolution for the dump header."""

    def test_no_source_uses_installed(self) -> None:
        assert resolve_tool_version() == get_tool_version()

    def test_source_value_used(self) -> None:
        assert resolve_tool_version(lambda: "v2.0.0") == "v2.0.0"

    def test_source_failure_falls_back(self, caplog) -> None:
        def offline() -> str:
            raise requests.ConnectionError("offline")

        with caplog.at_level("WARNING", logger="pg_snapdump.version"):
            assert resolve_tool_version(offline) == get_tool_version()
        assert "offline" in caplog.text
