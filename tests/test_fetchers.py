"""
Tests for version resolution (release_radar/fetchers.py, release_radar/marketplace.py).
"""

import pytest
from unittest.mock import patch

from release_radar.errors import (
    ApiError,
    FetchError,
    NotFoundError,
    ParseError,
    RateLimitError,
    ResolutionError,
)
from release_radar.fetchers import (
    CMAKE_JSON_URL,
    CMAKE_LISTING_URL,
    VSCODE_RELEASES_URL,
    fetch_claude_cli_version,
    fetch_cmake_version,
    fetch_github_release,
    fetch_marketplace_version,
    fetch_npm_version,
    fetch_vscode_version,
    resolve_version,
    strip_version_prefix,
)
from release_radar.marketplace import is_prerelease, select_stable_version
from release_radar.tools import ToolDescriptor


def _marketplace_response(versions):
    return {"results": [{"extensions": [{"versions": versions}]}]}


class TestStripVersionPrefix:
    """Tests for tag prefix stripping."""

    def test_strips_leading_v(self):
        assert strip_version_prefix("v1.12.0") == "1.12.0"

    def test_leaves_plain_tag(self):
        assert strip_version_prefix("2.44.0") == "2.44.0"

    def test_only_first_v(self):
        assert strip_version_prefix("vv1") == "v1"


class TestFetchGitHubRelease:
    """Tests for the GitHub latest-release fetcher."""

    @patch("release_radar.fetchers.http_get_json")
    def test_extracts_version_from_tag_name(self, mock_get):
        """Test that the v prefix is removed from tag_name."""
        mock_get.return_value = {"tag_name": "v1.12.0"}

        assert fetch_github_release("ninja-build/ninja") == "1.12.0"
        url = mock_get.call_args[0][0]
        assert url == "https://api.github.com/repos/ninja-build/ninja/releases/latest"

    @patch("release_radar.fetchers.http_get_json")
    def test_tag_without_prefix(self, mock_get):
        mock_get.return_value = {"tag_name": "2.44.0"}
        assert fetch_github_release("git-for-windows/git") == "2.44.0"

    @patch("release_radar.fetchers.http_get_json")
    def test_passes_token_header(self, mock_get, monkeypatch):
        """Test that GITHUB_TOKEN is forwarded."""
        monkeypatch.setenv("GITHUB_TOKEN", "secret")
        mock_get.return_value = {"tag_name": "v1.0.0"}

        fetch_github_release("owner/repo")

        headers = mock_get.call_args.kwargs["headers"]
        assert headers["Authorization"] == "token secret"

    @patch("release_radar.fetchers.http_get_json")
    def test_missing_tag_name(self, mock_get):
        mock_get.return_value = {"name": "Release"}
        with pytest.raises(ParseError):
            fetch_github_release("owner/repo")

    @patch("release_radar.fetchers.http_get_json")
    def test_api_error_propagates(self, mock_get):
        mock_get.side_effect = ApiError("GitHub API error: 404 Not Found", status=404)
        with pytest.raises(ApiError, match="404 Not Found"):
            fetch_github_release("invalid/repo")

    @patch("release_radar.fetchers.http_get_json")
    def test_rate_limit_propagates(self, mock_get):
        mock_get.side_effect = RateLimitError("GitHub API error: 403 rate limit exceeded")
        with pytest.raises(RateLimitError) as exc_info:
            fetch_github_release("owner/repo")
        assert exc_info.value.retryable is True


class TestFetchNpmVersion:
    """Tests for the npm registry fetcher."""

    @patch("release_radar.fetchers.http_get_json")
    def test_extracts_version(self, mock_get):
        mock_get.return_value = {"name": "ralphy-cli", "version": "2.1.0"}

        assert fetch_npm_version("ralphy-cli") == "2.1.0"
        assert mock_get.call_args[0][0] == "https://registry.npmjs.org/ralphy-cli/latest"

    @patch("release_radar.fetchers.http_get_json")
    def test_version_returned_verbatim(self, mock_get):
        mock_get.return_value = {"version": "3.0.0-beta.1"}
        assert fetch_npm_version("pkg") == "3.0.0-beta.1"

    @patch("release_radar.fetchers.http_get_json")
    def test_registry_error(self, mock_get):
        mock_get.side_effect = ApiError("npm registry error: 404 Not Found", status=404)
        with pytest.raises(ApiError, match="npm registry error"):
            fetch_npm_version("nonexistent-package")


class TestPrereleaseClassification:
    """Tests for marketplace pre-release detection."""

    def test_explicit_flag(self):
        entry = {
            "version": "2026.1.0",
            "properties": [{"key": "Microsoft.VisualStudio.Code.PreRelease", "value": "true"}],
        }
        assert is_prerelease(entry) is True

    def test_flag_false_is_stable(self):
        entry = {
            "version": "2026.0.0",
            "properties": [{"key": "Microsoft.VisualStudio.Code.PreRelease", "value": "false"}],
        }
        assert is_prerelease(entry) is False

    def test_long_build_number(self):
        assert is_prerelease({"version": "1.17.10291017"}) is True

    def test_four_digit_segment_is_stable(self):
        assert is_prerelease({"version": "1.2.2024"}) is False

    def test_non_numeric_segment_is_stable(self):
        assert is_prerelease({"version": "1.2.3-insiders"}) is False

    def test_no_stable_falls_back_to_first(self):
        versions = [{"version": "1.0.123456"}, {"version": "1.0.123455"}]
        assert select_stable_version(versions, "x.y") == "1.0.123456"

    def test_empty_list(self):
        with pytest.raises(NotFoundError):
            select_stable_version([], "x.y")


class TestFetchMarketplaceVersion:
    """Tests for the VS Code Marketplace fetcher."""

    @patch("release_radar.marketplace.http_post_json")
    def test_extracts_version(self, mock_post):
        mock_post.return_value = _marketplace_response([{"version": "1.2.3"}])

        assert fetch_marketplace_version("anthropic.claude-code") == "1.2.3"

        payload = mock_post.call_args[0][1]
        criteria = payload["filters"][0]["criteria"][0]
        assert criteria == {"filterType": 7, "value": "anthropic.claude-code"}

    @patch("release_radar.marketplace.http_post_json")
    def test_skips_flagged_prerelease(self, mock_post):
        mock_post.return_value = _marketplace_response([
            {
                "version": "2026.1.2026012801",
                "properties": [{"key": "Microsoft.VisualStudio.Code.PreRelease", "value": "true"}],
            },
            {"version": "2026.0.0", "properties": []},
        ])

        assert fetch_marketplace_version("ms-python.python") == "2026.0.0"

    @patch("release_radar.marketplace.http_post_json")
    def test_skips_long_build_numbers(self, mock_post):
        mock_post.return_value = _marketplace_response([
            {"version": "1.17.10291017"},
            {"version": "1.16.0"},
        ])

        assert fetch_marketplace_version("ms-python.vscode-python-envs") == "1.16.0"

    @patch("release_radar.marketplace.http_post_json")
    def test_extension_not_found(self, mock_post):
        mock_post.return_value = {"results": [{"extensions": []}]}

        with pytest.raises(NotFoundError, match="Extension not found: nonexistent.extension"):
            fetch_marketplace_version("nonexistent.extension")

    @patch("release_radar.marketplace.http_post_json")
    def test_api_error(self, mock_post):
        mock_post.side_effect = ApiError("VS Code Marketplace error: 500 Internal Server Error", status=500)

        with pytest.raises(ApiError, match="500 Internal Server Error"):
            fetch_marketplace_version("some.extension")


class TestCustomFetchers:
    """Tests for the custom strategy table."""

    @patch("release_radar.fetchers.http_get_json")
    def test_vscode_first_release(self, mock_get):
        mock_get.return_value = ["1.96.0", "1.95.3", "1.95.2"]
        tool = ToolDescriptor(name="VSCode", source_kind="custom", custom_fetcher="vscode")

        assert fetch_vscode_version(tool) == "1.96.0"
        assert mock_get.call_args[0][0] == VSCODE_RELEASES_URL

    @patch("release_radar.fetchers.http_get_json")
    def test_vscode_empty_list(self, mock_get):
        mock_get.return_value = []
        tool = ToolDescriptor(name="VSCode", source_kind="custom", custom_fetcher="vscode")

        with pytest.raises(NotFoundError):
            fetch_vscode_version(tool)

    @patch("release_radar.fetchers.http_get")
    def test_claude_cli_text_body(self, mock_get):
        mock_get.return_value = b"1.0.5\n"
        tool = ToolDescriptor(
            name="Claude Code CLI", source_kind="custom",
            custom_fetcher="claude-cli", url="https://example.com/stable",
        )

        assert fetch_claude_cli_version(tool) == "1.0.5"

    @patch("release_radar.fetchers.http_get_json")
    @patch("release_radar.fetchers.http_get")
    def test_claude_cli_falls_back_to_github(self, mock_get, mock_get_json):
        mock_get.side_effect = ApiError("Claude Code CLI error: 503 Service Unavailable", status=503)
        mock_get_json.return_value = {"tag_name": "v1.0.6"}
        tool = ToolDescriptor(
            name="Claude Code CLI", source_kind="custom",
            custom_fetcher="claude-cli", url="https://example.com/stable",
        )

        assert fetch_claude_cli_version(tool) == "1.0.6"

    @patch("release_radar.fetchers.http_get_json")
    @patch("release_radar.fetchers.http_get")
    def test_claude_cli_without_url_uses_github(self, mock_get, mock_get_json):
        mock_get_json.return_value = {"tag_name": "v2.0.0"}
        tool = ToolDescriptor(name="Claude Code CLI", source_kind="custom", custom_fetcher="claude-cli")

        assert fetch_claude_cli_version(tool) == "2.0.0"
        mock_get.assert_not_called()

    @patch("release_radar.fetchers.http_get")
    def test_cmake_json_endpoint(self, mock_get):
        mock_get.return_value = b'{"version": {"string": "3.31.0"}}'
        tool = ToolDescriptor(name="CMake", source_kind="custom", custom_fetcher="cmake")

        assert fetch_cmake_version(tool) == "3.31.0"
        assert mock_get.call_args[0][0] == CMAKE_JSON_URL

    @patch("release_radar.fetchers.http_get")
    def test_cmake_listing_returns_last_match(self, mock_get):
        html = (
            b'<a href="cmake-3.28.0-linux-x86_64.tar.gz">cmake-3.28.0-linux-x86_64.tar.gz</a>\n'
            b'<a href="cmake-3.31.0-linux-x86_64.tar.gz">cmake-3.31.0-linux-x86_64.tar.gz</a>\n'
        )
        mock_get.side_effect = [ApiError("CMake error: 404 Not Found", status=404), html]
        tool = ToolDescriptor(name="CMake", source_kind="custom", custom_fetcher="cmake")

        assert fetch_cmake_version(tool) == "3.31.0"
        assert mock_get.call_args[0][0] == CMAKE_LISTING_URL

    @patch("release_radar.fetchers.http_get")
    def test_cmake_malformed_json_uses_listing(self, mock_get):
        mock_get.side_effect = [b"not json", b"cmake-3.30.5.tar.gz"]
        tool = ToolDescriptor(name="CMake", source_kind="custom", custom_fetcher="cmake")

        assert fetch_cmake_version(tool) == "3.30.5"

    @patch("release_radar.fetchers.http_get")
    def test_cmake_no_match(self, mock_get):
        mock_get.side_effect = [FetchError("timed out"), b"<html>empty</html>"]
        tool = ToolDescriptor(name="CMake", source_kind="custom", custom_fetcher="cmake")

        with pytest.raises(NotFoundError, match="Could not parse CMake version from directory listing"):
            fetch_cmake_version(tool)


class TestResolveVersion:
    """Tests for source-kind dispatch."""

    @patch("release_radar.fetchers.fetch_github_release", return_value="1.12.0")
    def test_routes_github(self, mock_fetch):
        tool = ToolDescriptor(name="Ninja", source_kind="github", repo="ninja-build/ninja")
        assert resolve_version(tool) == "1.12.0"
        assert mock_fetch.call_args[0][0] == "ninja-build/ninja"

    @patch("release_radar.fetchers.fetch_npm_version", return_value="2.1.0")
    def test_routes_npm(self, mock_fetch):
        tool = ToolDescriptor(name="Ralphy", source_kind="npm", package="ralphy-cli")
        assert resolve_version(tool) == "2.1.0"

    @patch("release_radar.fetchers.fetch_marketplace_version", return_value="1.2.3")
    def test_routes_marketplace(self, mock_fetch):
        tool = ToolDescriptor(
            name="Claude Code", source_kind="vscode-marketplace", extension_id="anthropic.claude-code",
        )
        assert resolve_version(tool) == "1.2.3"

    def test_routes_custom(self):
        tool = ToolDescriptor(name="VSCode", source_kind="custom", custom_fetcher="vscode")
        with patch.dict("release_radar.fetchers.CUSTOM_FETCHERS", {"vscode": lambda t, timeout: "1.96.0"}):
            assert resolve_version(tool) == "1.96.0"

    def test_unknown_custom_fetcher(self):
        tool = ToolDescriptor(name="X", source_kind="custom", custom_fetcher="nope")
        with pytest.raises(ResolutionError, match="Unknown custom fetcher: nope"):
            resolve_version(tool)
