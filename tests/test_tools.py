"""
Tests for tool definitions and the registry (cli_manager/tools.py).
"""

from dataclasses import FrozenInstanceError

import pytest

from cli_manager.package_managers import ManagerId
from cli_manager.tools import (
    DEFAULT_CURSOR_MANIFEST_URL,
    DEFAULT_VERSION_PATTERN,
    ReleaseApiSource,
    RegistryPackageSource,
    SourceIndexSource,
    ToolDefinition,
    ToolRegistry,
    UnknownSource,
    VendorManifestSource,
    VendorUpdateSource,
    parse_version_source,
)


class TestParseVersionSource:
    """Tests for parse_version_source."""

    def test_npm(self):
        assert parse_version_source({"type": "npm", "package": "@openai/codex"}) == \
            RegistryPackageSource("@openai/codex")

    def test_github(self):
        assert parse_version_source({"type": "github", "owner": "github", "repo": "gh-copilot"}) == \
            ReleaseApiSource("github", "gh-copilot")

    def test_pypi(self):
        assert parse_version_source({"type": "pypi", "package": "aider-chat"}) == SourceIndexSource("aider-chat")

    def test_vscode_default_channel(self):
        assert parse_version_source({"type": "vscode-update"}) == VendorUpdateSource("stable")

    def test_cursor_default_url(self):
        assert parse_version_source({"type": "cursor-todesktop"}) == VendorManifestSource(DEFAULT_CURSOR_MANIFEST_URL)

    def test_missing_required_field(self):
        """Test a recognized type without its required field is rejected."""
        with pytest.raises(ValueError, match="requires 'package'"):
            parse_version_source({"type": "npm"})
        with pytest.raises(ValueError, match="requires 'repo'"):
            parse_version_source({"type": "github", "owner": "x"})

    def test_unknown_type(self):
        """Test unrecognized types become UnknownSource, not an error."""
        assert parse_version_source({"type": "crates"}) == UnknownSource("crates")

    def test_empty(self):
        assert parse_version_source(None) == UnknownSource()
        assert parse_version_source({}) == UnknownSource()


class TestToolDefinition:
    """Tests for ToolDefinition."""

    def test_from_dict(self, make_tool):
        """Test catalog data is parsed into typed fields."""
        tool = make_tool(key="MyAgent")
        assert tool.key == "myagent"
        assert tool.version_pattern == DEFAULT_VERSION_PATTERN
        assert tool.version_source == RegistryPackageSource("myagent")
        assert tool.install["linux"][ManagerId.NPM] == "npm install -g myagent"
        assert tool.env_vars == ("MYAGENT_API_KEY",)

    def test_manager_alias_in_catalog(self, make_tool):
        """Test manager aliases are accepted in install maps."""
        tool = make_tool(install={"darwin": {"homebrew": "brew install myagent"}})
        assert ManagerId.BREW in tool.install["darwin"]

    def test_unknown_manager_rejected(self, make_tool):
        """Test a misspelled manager fails at load time."""
        with pytest.raises(ValueError, match="Unknown package manager"):
            make_tool(install={"linux": {"nmp": "npm install -g myagent"}})

    def test_unknown_os_rejected(self, make_tool):
        with pytest.raises(ValueError, match="Unknown OS key"):
            make_tool(install={"freebsd": {"pip": "pip install myagent"}})

    def test_empty_commands_dropped(self, make_tool):
        """Test an empty command string means the manager is not declared."""
        tool = make_tool(install={"linux": {"npm": "", "pip": "pip install myagent"}})
        assert list(tool.install["linux"]) == [ManagerId.PIP]

    def test_missing_key_rejected(self):
        with pytest.raises(ValueError, match="key"):
            ToolDefinition.from_dict({"name": "Nameless"})

    def test_compound_command(self, make_tool):
        """Test plugin-style commands check only the base executable."""
        tool = make_tool(command="gh", subcommand="copilot")
        assert tool.base_executable == "gh"
        assert tool.full_command == "gh copilot"

        inline = make_tool(command="gh copilot")
        assert inline.base_executable == "gh"

    def test_spec_for_platform(self, make_tool, linux, windows):
        """Test per-OS lookups, including an OS with no uninstall spec."""
        tool = make_tool()
        assert ManagerId.NPM in tool.install_spec_for(linux)
        assert ManagerId.WINGET in tool.install_spec_for(windows)
        assert len(tool.uninstall_spec_for(windows)) == 0

    def test_immutable(self, make_tool):
        """Test definitions cannot be modified after creation."""
        tool = make_tool()
        with pytest.raises(FrozenInstanceError):
            tool.name = "Other"
        with pytest.raises(TypeError):
            tool.install["linux"][ManagerId.NPM] = "rm -rf /"

    def test_to_dict(self, make_tool):
        data = make_tool(command="gh", subcommand="copilot").to_dict()
        assert data["key"] == "myagent"
        assert data["subcommand"] == "copilot"
        assert data["version_source"] == {"type": "npm", "package": "myagent"}
        assert data["install"]["linux"]["npm"] == "npm install -g myagent"


class TestToolRegistry:
    """Tests for ToolRegistry."""

    def test_lookup(self, make_tool):
        registry = ToolRegistry([make_tool(key="a", name="A"), make_tool(key="b", name="B")])
        assert len(registry) == 2
        assert registry.get("A").name == "A"
        assert "b" in registry
        assert "c" not in registry
        assert registry.get("c") is None
        assert registry.keys() == ["a", "b"]

    def test_require_unknown(self, make_tool):
        registry = ToolRegistry([make_tool()])
        with pytest.raises(KeyError, match="Unknown tool"):
            registry.require("nope")

    def test_duplicate_keys_rejected(self, make_tool):
        with pytest.raises(ValueError, match="Duplicate tool key"):
            ToolRegistry([make_tool(), make_tool()])

    def test_filter_keeps_catalog_order(self, make_tool):
        registry = ToolRegistry([make_tool(key=k, name=k) for k in ("a", "b", "c")])
        assert [t.key for t in registry.filter(["c", "A"])] == ["a", "c"]

    def test_immutable(self, make_tool):
        registry = ToolRegistry([make_tool()])
        with pytest.raises(AttributeError):
            registry._tools = ()
