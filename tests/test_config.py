"""
Tests for configuration parsing (release_radar/config.py, tools.py, downloads.py).
"""

import json
import pytest
from pathlib import Path

from release_radar.config import (
    Config,
    MirrorSettings,
    load_config,
    load_config_file,
)
from release_radar.downloads import (
    DownloadConfigNpm,
    DownloadConfigUrl,
    MirrorConfig,
    mirror_config_for,
    parse_download_config,
)
from release_radar.errors import ConfigError
from release_radar.tools import ToolDescriptor, parse_tools


EXAMPLE_CONFIG = Path(__file__).parent.parent / "config" / "release-radar.example.yml"


class TestToolDescriptor:
    """Tests for ToolDescriptor validation."""

    def test_github_tool(self):
        tool = ToolDescriptor(name="Ninja", source_kind="github", repo="ninja-build/ninja")
        assert tool.repo == "ninja-build/ninja"

    def test_from_dict_camel_case(self):
        tool = ToolDescriptor.from_dict({
            "name": "Claude Code VSCode",
            "type": "vscode-marketplace",
            "extensionId": "anthropic.claude-code",
        })
        assert tool.source_kind == "vscode-marketplace"
        assert tool.extension_id == "anthropic.claude-code"

    def test_from_dict_custom(self):
        tool = ToolDescriptor.from_dict({
            "name": "Claude CLI",
            "type": "custom",
            "customFetcher": "claude-cli",
            "url": "https://example.com/latest",
            "fallbackUrl": "https://example.com/fallback",
        })
        assert tool.custom_fetcher == "claude-cli"
        assert tool.fallback_url == "https://example.com/fallback"

    def test_unknown_type(self):
        with pytest.raises(ConfigError, match="Unknown tool type: pypi"):
            ToolDescriptor(name="Black", source_kind="pypi")

    @pytest.mark.parametrize("kind,param", [
        ("github", "repo"),
        ("npm", "package"),
        ("vscode-marketplace", "extension_id"),
        ("custom", "custom_fetcher"),
    ])
    def test_missing_required_param(self, kind, param):
        with pytest.raises(ConfigError, match=f"Missing {param} for Tool"):
            ToolDescriptor(name="Tool", source_kind=kind)

    def test_empty_name(self):
        with pytest.raises(ConfigError):
            ToolDescriptor(name="", source_kind="npm", package="x")

    def test_immutable(self):
        tool = ToolDescriptor(name="Ninja", source_kind="github", repo="ninja-build/ninja")
        with pytest.raises(AttributeError):
            tool.repo = "other/repo"


class TestParseTools:
    """Tests for parse_tools."""

    def test_preserves_order(self):
        tools = parse_tools([
            {"name": "VSCode", "type": "custom", "customFetcher": "vscode"},
            {"name": "Ninja", "type": "github", "repo": "ninja-build/ninja"},
        ])
        assert [t.name for t in tools] == ["VSCode", "Ninja"]

    def test_duplicate_names_rejected(self):
        with pytest.raises(ConfigError, match="Duplicate tool name: Ninja"):
            parse_tools([
                {"name": "Ninja", "type": "github", "repo": "ninja-build/ninja"},
                {"name": "Ninja", "type": "npm", "package": "ninja"},
            ])

    def test_non_mapping_entry(self):
        with pytest.raises(ConfigError):
            parse_tools(["Ninja"])


class TestDownloadConfig:
    """Tests for download configuration variants."""

    def test_default_type_is_download(self):
        config = parse_download_config("Ninja", {
            "displayName": "Ninja Build",
            "downloadUrl": "github.com/ninja-build/ninja/releases/download/v{{VERSION}}/ninja-win.zip",
            "filename": "ninja-{{VERSION}}-win.zip",
        })
        assert isinstance(config, DownloadConfigUrl)
        assert config.display_name == "Ninja Build"
        assert config.mirror is None
        assert mirror_config_for(config) is None

    def test_npm_variant(self):
        config = parse_download_config("Ralphy", {"type": "npm", "displayName": "Ralphy", "package": "ralphy-cli"})
        assert config == DownloadConfigNpm(display_name="Ralphy", package="ralphy-cli")
        assert mirror_config_for(config) is None

    def test_display_name_defaults_to_tool_name(self):
        config = parse_download_config("Ralphy", {"type": "npm", "package": "ralphy-cli"})
        assert config.display_name == "Ralphy"

    def test_mirror_block(self):
        config = parse_download_config("Claude Code VSCode", {
            "downloadUrl": "{{MIRROR_URL}}",
            "filename": "claude-code-{{VERSION}}.vsix",
            "mirror": {
                "sourceUrl": "marketplace-api",
                "extensionId": "anthropic.claude-code",
                "targetPlatform": "win32-x64",
            },
        })
        mirror = mirror_config_for(config)
        assert mirror.uses_marketplace is True
        assert mirror.target_platform == "win32-x64"

    def test_marketplace_mirror_needs_extension_id(self):
        with pytest.raises(ConfigError, match="extensionId is required"):
            MirrorConfig(source_url="marketplace-api")

    def test_unknown_type(self):
        with pytest.raises(ConfigError, match="unknown type 'zip'"):
            parse_download_config("Ninja", {"type": "zip"})

    def test_missing_fields(self):
        with pytest.raises(ConfigError, match="downloadUrl and filename are required"):
            parse_download_config("Ninja", {"downloadUrl": "github.com/x"})

    def test_npm_without_package(self):
        with pytest.raises(ConfigError):
            parse_download_config("Ralphy", {"type": "npm"})

    def test_mirror_config_for_rejects_unknown_variant(self):
        with pytest.raises(TypeError):
            mirror_config_for({"downloadUrl": "x"})


class TestMirrorSettings:
    """Tests for MirrorSettings."""

    def test_defaults(self):
        settings = MirrorSettings()
        assert settings.repo == "lvntbkdmr/apps"
        assert settings.batch_delay_seconds == 2.0

    def test_invalid_repo(self):
        with pytest.raises(ConfigError, match="Invalid mirror repo"):
            MirrorSettings(repo="apps")

    def test_negative_delay(self):
        with pytest.raises(ConfigError):
            MirrorSettings(batch_delay_seconds=-1)

    def test_timeout_bounds(self):
        with pytest.raises(ConfigError, match="download_timeout"):
            MirrorSettings(download_timeout=0)


class TestConfig:
    """Tests for Config."""

    def test_defaults(self):
        config = Config()
        assert config.check_interval_hours == 6
        assert config.tools == ()
        assert config.downloads == {}

    @pytest.mark.parametrize("hours", [0, 169])
    def test_interval_bounds(self, hours):
        with pytest.raises(ConfigError, match="Must be between 1 and 168"):
            Config(check_interval_hours=hours)

    def test_fetch_timeout_bounds(self):
        with pytest.raises(ConfigError):
            Config(fetch_timeout=0)

    def test_from_dict_camel_case_interval(self):
        config = Config.from_dict({"checkIntervalHours": 12})
        assert config.check_interval_hours == 12

    def test_get_tool(self):
        config = Config.from_dict({"tools": [{"name": "Ninja", "type": "github", "repo": "ninja-build/ninja"}]})
        assert config.get_tool("Ninja").repo == "ninja-build/ninja"
        assert config.get_tool("CMake") is None


class TestLoadConfigFile:
    """Tests for load_config_file."""

    def test_example_config(self):
        config = load_config_file(str(EXAMPLE_CONFIG))
        names = [t.name for t in config.tools]
        assert names[0] == "Ninja"
        assert "CMake" in names
        assert isinstance(config.downloads["Ralphy"], DownloadConfigNpm)
        assert config.downloads["Claude Code VSCode"].mirror.uses_marketplace
        assert config.mirror.repo == "lvntbkdmr/apps"

    def test_json_config(self, tmp_path):
        path = tmp_path / "tools.json"
        path.write_text(json.dumps({
            "checkIntervalHours": 6,
            "tools": [{"name": "Ralphy", "type": "npm", "package": "ralphy-cli"}],
        }))
        config = load_config_file(str(path))
        assert config.tools[0].package == "ralphy-cli"
        assert config.source == str(path)

    def test_downloads_from_separate_file(self, tmp_path):
        (tmp_path / "downloads.json").write_text(json.dumps({
            "Ralphy": {"type": "npm", "displayName": "Ralphy", "package": "ralphy-cli"},
        }))
        path = tmp_path / "release-radar.yml"
        path.write_text(
            "tools:\n"
            "  - name: Ralphy\n"
            "    type: npm\n"
            "    package: ralphy-cli\n"
            "downloads: downloads.json\n"
        )
        config = load_config_file(str(path))
        assert config.downloads["Ralphy"].package == "ralphy-cli"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_config_file(str(path)).tools == ()

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("tools: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid config file"):
            load_config_file(str(path))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{")
        with pytest.raises(ConfigError, match="Invalid config file"):
            load_config_file(str(path))

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="must contain a mapping"):
            load_config_file(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Could not read config"):
            load_config_file(str(tmp_path / "missing.yml"))


class TestLoadConfig:
    """Tests for load_config location precedence."""

    def test_custom_path_wins(self, tmp_path, monkeypatch):
        custom = tmp_path / "custom.yml"
        custom.write_text("check_interval_hours: 3\n")
        env = tmp_path / "env.yml"
        env.write_text("check_interval_hours: 4\n")
        monkeypatch.setenv("RELEASE_RADAR_CONFIG", str(env))

        assert load_config(str(custom)).check_interval_hours == 3

    def test_env_path(self, tmp_path, monkeypatch):
        env = tmp_path / "env.yml"
        env.write_text("check_interval_hours: 4\n")
        monkeypatch.setenv("RELEASE_RADAR_CONFIG", str(env))

        assert load_config().check_interval_hours == 4

    def test_default_location(self, tmp_path, monkeypatch):
        monkeypatch.delenv("RELEASE_RADAR_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        (tmp_path / "release-radar.yml").write_text("check_interval_hours: 8\n")

        assert load_config().check_interval_hours == 8

    def test_nothing_found(self, tmp_path, monkeypatch):
        monkeypatch.delenv("RELEASE_RADAR_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr("release_radar.config.CONFIG_LOCATIONS", ["release-radar.yml"])

        with pytest.raises(ConfigError, match="No configuration file found"):
            load_config()
