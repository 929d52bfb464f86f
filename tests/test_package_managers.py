"""
Tests for the package manager registry and method selection (cli_manager/package_managers.py).
"""

from unittest.mock import patch

import pytest

from cli_manager.package_managers import (
    ManagerId,
    MethodSelection,
    PACKAGE_MANAGERS,
    detect_available_managers,
    get_available_install_methods,
    get_package_manager,
    get_priority_order,
    select_install_method,
    to_update_command,
)


def which_only(*names):
    """shutil.which replacement that resolves only the given executables."""
    return lambda exe: f"/usr/bin/{exe}" if exe in names else None


class TestManagerId:
    """Tests for ManagerId parsing."""

    def test_parse_exact(self):
        """Test parsing canonical identifiers."""
        assert ManagerId.parse("npm") is ManagerId.NPM
        assert ManagerId.parse(" WinGet ") is ManagerId.WINGET

    @pytest.mark.parametrize("alias,expected", [
        ("homebrew", ManagerId.BREW),
        ("apt-get", ManagerId.APT),
        ("pip3", ManagerId.PIP),
    ])
    def test_parse_aliases(self, alias, expected):
        """Test common aliases map to their manager."""
        assert ManagerId.parse(alias) is expected

    def test_parse_unknown_raises(self):
        """Test typos are rejected instead of silently ignored."""
        with pytest.raises(ValueError, match="Unknown package manager"):
            ManagerId.parse("nmp")

    def test_parse_passthrough(self):
        """Test an existing ManagerId is returned unchanged."""
        assert ManagerId.parse(ManagerId.SCRIPT) is ManagerId.SCRIPT


class TestPackageManagerAvailability:
    """Tests for PackageManager.is_available and detect_available_managers."""

    def test_registry_covers_every_id(self):
        """Test every ManagerId has a registry entry."""
        assert {pm.id for pm in PACKAGE_MANAGERS} == set(ManagerId)

    def test_winget_not_applicable_on_linux(self, linux):
        """Test OS applicability wins over PATH presence."""
        winget = get_package_manager("winget")
        with patch("cli_manager.package_managers.shutil.which", side_effect=which_only("winget")):
            assert winget.is_available(linux) is False

    def test_winget_on_windows(self, windows):
        """Test winget available on Windows when on PATH."""
        winget = get_package_manager(ManagerId.WINGET)
        with patch("cli_manager.package_managers.shutil.which", side_effect=which_only("winget")):
            assert winget.is_available(windows) is True

    def test_pip_accepts_pip3(self, linux):
        """Test pip is available when only pip3 resolves."""
        pip = get_package_manager("pip")
        with patch("cli_manager.package_managers.shutil.which", side_effect=which_only("pip3")):
            assert pip.is_available(linux) is True

    def test_script_always_available(self, linux, windows):
        """Test the script manager needs no executable."""
        script = get_package_manager("script")
        with patch("cli_manager.package_managers.shutil.which", return_value=None):
            assert script.is_available(linux) is True
            assert script.is_available(windows) is True

    def test_get_package_manager_unknown(self):
        """Test unknown identifiers return None."""
        assert get_package_manager("chocolatey") is None

    def test_detect_available_managers(self, linux):
        """Test detection on a Linux host with apt and npm."""
        with patch("cli_manager.package_managers.shutil.which", side_effect=which_only("apt", "npm", "winget")):
            available = detect_available_managers(linux)
        assert available == frozenset({ManagerId.APT, ManagerId.NPM, ManagerId.SCRIPT})

    def test_detection_is_not_cached(self, linux):
        """Test a manager installed between calls is picked up."""
        with patch("cli_manager.package_managers.shutil.which", side_effect=which_only()):
            before = detect_available_managers(linux)
        with patch("cli_manager.package_managers.shutil.which", side_effect=which_only("npm")):
            after = detect_available_managers(linux)
        assert ManagerId.NPM not in before
        assert ManagerId.NPM in after


class TestPriorityOrder:
    """Tests for get_priority_order."""

    def test_linux(self, linux):
        assert get_priority_order(linux) == [
            ManagerId.APT, ManagerId.BREW, ManagerId.PACMAN,
            ManagerId.NPM, ManagerId.PIP, ManagerId.SCRIPT,
        ]

    def test_windows(self, windows):
        assert get_priority_order(windows) == [ManagerId.WINGET, ManagerId.NPM, ManagerId.PIP, ManagerId.SCRIPT]

    def test_darwin(self, darwin):
        assert get_priority_order(darwin)[0] is ManagerId.BREW

    def test_npm_ahead_of_pip_everywhere(self, linux, darwin, windows):
        """Test the cross-platform fallbacks keep npm before pip."""
        for platform in (linux, darwin, windows):
            order = get_priority_order(platform)
            assert order.index(ManagerId.NPM) < order.index(ManagerId.PIP)


class TestSelectInstallMethod:
    """Tests for select_install_method."""

    SPEC = {
        ManagerId.WINGET: "winget install --id My.Agent",
        ManagerId.NPM: "npm install -g myagent",
        ManagerId.PIP: "pip install myagent",
    }

    def test_priority_order_without_preference(self, windows):
        """Test npm chosen over pip when winget is unavailable."""
        selection = select_install_method(self.SPEC, windows, {ManagerId.NPM, ManagerId.PIP})
        assert selection == MethodSelection(ManagerId.NPM, "npm install -g myagent")

    def test_preferred_overrides_priority(self, windows):
        """Test an available preferred manager wins regardless of order."""
        selection = select_install_method(self.SPEC, windows, {ManagerId.NPM, ManagerId.PIP}, preferred="pip")
        assert selection.manager is ManagerId.PIP
        assert selection.command == "pip install myagent"

    def test_preferred_unavailable_falls_back(self, windows):
        """Test an unavailable preferred manager is skipped."""
        selection = select_install_method(self.SPEC, windows, {ManagerId.NPM, ManagerId.PIP}, preferred="winget")
        assert selection.manager is ManagerId.NPM

    def test_undeclared_preferred_falls_back(self, windows):
        """Test a preferred manager the tool does not declare is skipped."""
        selection = select_install_method(self.SPEC, windows, {ManagerId.NPM, ManagerId.BREW}, preferred="brew")
        assert selection.manager is ManagerId.NPM

    def test_invalid_preferred_falls_back(self, windows):
        """Test a misspelled preference does not raise."""
        selection = select_install_method(self.SPEC, windows, {ManagerId.PIP}, preferred="pipp")
        assert selection.manager is ManagerId.PIP

    def test_native_first_when_available(self, windows):
        """Test the native manager leads when usable."""
        selection = select_install_method(self.SPEC, windows, {ManagerId.WINGET, ManagerId.NPM})
        assert selection.manager is ManagerId.WINGET

    def test_no_install_commands(self, linux):
        """Test a tool with no install commands yields no method."""
        assert select_install_method({}, linux, {ManagerId.NPM, ManagerId.SCRIPT}) is None

    def test_only_unavailable_managers(self, linux):
        """Test install commands whose managers are all unavailable yield no method."""
        assert select_install_method({ManagerId.BREW: "brew install x"}, linux, {ManagerId.NPM}) is None

    def test_manager_outside_os_priority_ignored(self, linux):
        """Test a manager with no place in the OS order is never selected."""
        assert select_install_method({ManagerId.WINGET: "winget install x"}, linux, {ManagerId.WINGET}) is None


class TestGetAvailableInstallMethods:
    """Tests for get_available_install_methods."""

    def test_lists_usable_in_priority_order(self, linux):
        spec = {
            ManagerId.SCRIPT: "curl -fsSL https://example.com/install.sh | sh",
            ManagerId.PIP: "pip install myagent",
            ManagerId.APT: "sudo apt-get install -y myagent",
        }
        available = {ManagerId.SCRIPT, ManagerId.PIP, ManagerId.APT}
        assert get_available_install_methods(spec, linux, available) == [
            ManagerId.APT, ManagerId.PIP, ManagerId.SCRIPT,
        ]

    def test_skips_unavailable(self, linux):
        spec = {ManagerId.NPM: "npm install -g a", ManagerId.PIP: "pip install a"}
        assert get_available_install_methods(spec, linux, {ManagerId.PIP}) == [ManagerId.PIP]


class TestToUpdateCommand:
    """Tests for to_update_command."""

    def test_winget_upgrade(self):
        assert to_update_command(ManagerId.WINGET, "winget install --id Anysphere.Cursor -e") == \
            "winget upgrade --id Anysphere.Cursor -e"

    def test_brew_upgrade(self):
        assert to_update_command(ManagerId.BREW, "brew install --cask cursor") == "brew upgrade --cask cursor"

    def test_npm_unchanged(self):
        """Test npm reinstalls to latest with the install command."""
        assert to_update_command(ManagerId.NPM, "npm install -g @openai/codex") == "npm install -g @openai/codex"

    def test_brew_non_install_command_unchanged(self):
        """Test only a leading install verb is rewritten."""
        command = "brew tap owner/tap && brew install tool"
        assert to_update_command(ManagerId.BREW, command) == command
