"""
Tests for installed-version detection and PATH recovery (cli_manager/detection.py).
"""

import os
import re
import stat
from unittest.mock import patch

import pytest

from cli_manager.collectors import VersionLookup
from cli_manager.common import ErrorKind
from cli_manager.detection import (
    candidate_directories,
    extend_search_path,
    extract_version,
    probe_installed_version,
    recover_search_path,
    strip_ansi,
    verify_installed,
)
from cli_manager.executor import CommandResult


def ran(stdout="", stderr="", success=True, error_message=None):
    return CommandResult("myagent --version", success, stdout=stdout, stderr=stderr,
                         exit_code=0 if success else 1, error_message=error_message)


class TestExtractVersion:
    """Tests for extract_version()."""

    def test_first_group(self):
        assert extract_version("myagent version 2.5.0 (build 91)") == "2.5.0"

    def test_whole_match_without_group(self):
        assert extract_version("v10.2.3", r"\d+\.\d+\.\d+") == "10.2.3"

    def test_anchored_multiline(self):
        """Test ^ anchors per line (code --version prints version first)."""
        output = "1.95.3\nf1a4fb101478ce6ec82fe9627c43efbf9e98c813\nx64\n"
        assert extract_version(output, r"^(\d+\.\d+\.\d+)") == "1.95.3"

    def test_ansi_stripped(self):
        assert extract_version("\x1b[32m0.86.1\x1b[0m") == "0.86.1"
        assert strip_ansi("\x1b[1;31mred\x1b[0m") == "red"

    def test_no_match(self):
        assert extract_version("command not found") == ""

    def test_invalid_pattern(self):
        with pytest.raises(re.error):
            extract_version("1.0.0", "(unclosed")


class TestProbeInstalledVersion:
    """Tests for probe_installed_version()."""

    @patch("cli_manager.detection.run_shell_command")
    @patch("cli_manager.detection.shutil.which", return_value=None)
    def test_not_on_path_skips_execution(self, mock_which, mock_run, make_tool, linux):
        """Test a missing executable is reported without spawning anything."""
        lookup = probe_installed_version(make_tool(), linux)
        assert not lookup.ok
        assert lookup.error_kind is ErrorKind.NOT_INSTALLED
        assert "not found on PATH" in lookup.error
        mock_run.assert_not_called()

    @patch("cli_manager.detection.run_shell_command")
    @patch("cli_manager.detection.shutil.which", return_value="/usr/bin/myagent")
    def test_version_from_stdout(self, mock_which, mock_run, make_tool, linux):
        mock_run.return_value = ran(stdout="myagent 1.4.2\n")
        assert probe_installed_version(make_tool(), linux) == VersionLookup.found("1.4.2")
        assert mock_run.call_args[1]["env"]["NO_COLOR"] == "1"

    @patch("cli_manager.detection.run_shell_command")
    @patch("cli_manager.detection.shutil.which", return_value="/usr/bin/myagent")
    def test_version_from_stderr(self, mock_which, mock_run, make_tool, linux):
        """Test tools that print their version on stderr."""
        mock_run.return_value = ran(stderr="1.4.2\n")
        assert probe_installed_version(make_tool(), linux).version == "1.4.2"

    @patch("cli_manager.detection.run_shell_command")
    @patch("cli_manager.detection.shutil.which")
    def test_compound_command_checks_base(self, mock_which, mock_run, make_tool, linux):
        """Test gh copilot probes gh on PATH and runs the full version command."""
        mock_which.return_value = "/usr/bin/gh"
        mock_run.return_value = ran(stdout="version 1.1.1 (2025-06-17)\n")
        tool = make_tool(command="gh", subcommand="copilot", version_cmd="gh copilot --version",
                         version_pattern=r"version (\d+\.\d+\.\d+)")
        assert probe_installed_version(tool, linux).version == "1.1.1"
        mock_which.assert_called_once_with("gh")
        assert mock_run.call_args[0][0] == "gh copilot --version"

    @patch("cli_manager.detection.run_shell_command")
    @patch("cli_manager.detection.shutil.which", return_value="/usr/bin/gh")
    def test_extension_missing(self, mock_which, mock_run, make_tool, linux):
        """Test gh present but the extension missing reports not installed."""
        mock_run.return_value = ran(stderr='unknown command "copilot" for "gh"\n', success=False,
                                    error_message="Command failed with exit code 1")
        tool = make_tool(command="gh", subcommand="copilot", version_cmd="gh copilot --version",
                         version_pattern=r"version (\d+\.\d+\.\d+)")
        lookup = probe_installed_version(tool, linux)
        assert not lookup.ok
        assert lookup.error_kind is ErrorKind.NOT_INSTALLED
        assert "exit code 1" in lookup.error

    @patch("cli_manager.detection.run_shell_command")
    @patch("cli_manager.detection.shutil.which", return_value="/usr/bin/myagent")
    def test_failed_command_with_version_text(self, mock_which, mock_run, make_tool, linux):
        """Test a crashing binary is not reported at a version it printed."""
        mock_run.return_value = ran(stderr="Node.js v18.17.0\nSyntaxError: Unexpected token\n", success=False,
                                    error_message="Command failed with exit code 1")
        lookup = probe_installed_version(make_tool(), linux)
        assert not lookup.ok
        assert lookup.version == ""
        assert lookup.error_kind is ErrorKind.NOT_INSTALLED
        assert "exit code 1" in lookup.error

    @patch("cli_manager.detection.run_shell_command")
    @patch("cli_manager.detection.shutil.which", return_value="/usr/bin/myagent")
    def test_timeout(self, mock_which, mock_run, make_tool, linux):
        mock_run.return_value = ran(success=False, error_message="Command timed out after 15s")
        lookup = probe_installed_version(make_tool(), linux)
        assert lookup.error_kind is ErrorKind.NOT_INSTALLED
        assert "timed out" in lookup.error

    @patch("cli_manager.detection.run_shell_command")
    @patch("cli_manager.detection.shutil.which", return_value="/usr/bin/myagent")
    def test_empty_output(self, mock_which, mock_run, make_tool, linux):
        mock_run.return_value = ran()
        lookup = probe_installed_version(make_tool(), linux)
        assert lookup.error_kind is ErrorKind.NOT_INSTALLED
        assert "printed nothing" in lookup.error

    @patch("cli_manager.detection.run_shell_command")
    @patch("cli_manager.detection.shutil.which", return_value="/usr/bin/myagent")
    def test_invalid_pattern(self, mock_which, mock_run, make_tool, linux):
        mock_run.return_value = ran(stdout="1.0.0")
        lookup = probe_installed_version(make_tool(version_pattern="(broken"), linux)
        assert not lookup.ok
        assert "invalid version pattern" in lookup.error

    def test_no_version_command(self, make_tool, linux):
        lookup = probe_installed_version(make_tool(version_cmd=""), linux)
        assert lookup.error_kind is ErrorKind.NOT_INSTALLED

    @pytest.mark.integration
    @pytest.mark.skipif(os.name == "nt", reason="uses POSIX sh")
    def test_real_command(self, make_tool, linux):
        tool = make_tool(command="sh", version_cmd="echo 'myagent 3.2.1'")
        assert probe_installed_version(tool, linux).version == "3.2.1"


class TestCandidateDirectories:
    """Tests for candidate_directories()."""

    def test_posix(self, linux):
        dirs = candidate_directories(linux, environ={}, home="/home/u")
        assert dirs[0] == os.path.join("/home/u", ".local", "bin")
        assert "/opt/homebrew/bin" in dirs

    def test_windows(self, windows):
        environ = {"APPDATA": "C:\\Users\\u\\AppData\\Roaming", "LOCALAPPDATA": "C:\\Users\\u\\AppData\\Local"}
        dirs = candidate_directories(windows, environ=environ, home="C:\\Users\\u")
        assert dirs[0] == os.path.join(environ["APPDATA"], "npm")
        assert os.path.join(environ["LOCALAPPDATA"], "Microsoft", "WinGet", "Links") in dirs

    def test_windows_without_appdata(self, windows):
        dirs = candidate_directories(windows, environ={}, home="C:\\Users\\u")
        assert len(dirs) == 2


class TestSearchPath:
    """Tests for extend_search_path() and recover_search_path()."""

    def test_extend_prepends(self):
        environ = {"PATH": os.pathsep.join(["/usr/bin", "/bin"])}
        assert extend_search_path("/opt/tool/bin", environ) is True
        assert environ["PATH"].split(os.pathsep)[0] == "/opt/tool/bin"

    def test_extend_idempotent(self):
        environ = {"PATH": "/usr/bin"}
        extend_search_path("/opt/tool/bin", environ)
        assert extend_search_path("/opt/tool/bin/", environ) is False
        assert environ["PATH"].count("/opt/tool/bin") == 1

    def test_extend_empty_path(self):
        environ = {}
        extend_search_path("/opt/tool/bin", environ)
        assert environ["PATH"] == "/opt/tool/bin"

    @pytest.mark.skipif(os.name == "nt", reason="POSIX executable bits")
    def test_recover_finds_executable(self, tmp_path, monkeypatch, make_tool, linux):
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir()
        exe = bin_dir / "myagent"
        exe.write_text("#!/bin/sh\necho 1.0.0\n")
        exe.chmod(exe.stat().st_mode | stat.S_IXUSR)
        monkeypatch.setenv("PATH", "/usr/bin")

        found = recover_search_path(make_tool(), linux, search_dirs=[str(tmp_path / "missing"), str(bin_dir)])

        assert found == str(bin_dir)
        assert os.environ["PATH"].split(os.pathsep)[0] == str(bin_dir)

    def test_recover_nothing_found(self, tmp_path, make_tool, linux):
        assert recover_search_path(make_tool(), linux, search_dirs=[str(tmp_path)]) is None


class TestVerifyInstalled:
    """Tests for verify_installed()."""

    @patch("cli_manager.detection.recover_search_path")
    @patch("cli_manager.detection.probe_installed_version")
    def test_first_probe_succeeds(self, mock_probe, mock_recover, make_tool, linux):
        mock_probe.return_value = VersionLookup.found("1.0.0")
        assert verify_installed(make_tool(), linux) == (VersionLookup.found("1.0.0"), None)
        mock_recover.assert_not_called()

    @patch("cli_manager.detection.recover_search_path", return_value="/home/u/.local/bin")
    @patch("cli_manager.detection.probe_installed_version")
    def test_recovered(self, mock_probe, mock_recover, make_tool, linux):
        mock_probe.side_effect = [
            VersionLookup.missing("myagent not found on PATH", ErrorKind.NOT_INSTALLED),
            VersionLookup.found("1.0.0"),
        ]
        lookup, recovered = verify_installed(make_tool(), linux)
        assert lookup.version == "1.0.0"
        assert recovered == "/home/u/.local/bin"

    @patch("cli_manager.detection.recover_search_path", return_value=None)
    @patch("cli_manager.detection.probe_installed_version")
    def test_not_recovered(self, mock_probe, mock_recover, make_tool, linux):
        missing = VersionLookup.missing("myagent not found on PATH", ErrorKind.NOT_INSTALLED)
        mock_probe.return_value = missing
        assert verify_installed(make_tool(), linux) == (missing, None)
        assert mock_probe.call_count == 1
