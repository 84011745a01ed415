"""Tests for shared.build_info module."""

import importlib
import subprocess
from importlib import metadata
from unittest.mock import patch

import shared.build_info as build_info_module


class TestGitShortSha:
    def test_returns_stripped_git_output(self):
        with patch("subprocess.check_output", return_value="a1b2c3d\n"):
            assert build_info_module._git_short_sha() == "a1b2c3d"

    def test_returns_dev_when_git_not_found(self):
        with patch("subprocess.check_output", side_effect=FileNotFoundError):
            assert build_info_module._git_short_sha() == "dev"

    def test_returns_dev_when_git_fails(self):
        with patch(
            "subprocess.check_output",
            side_effect=subprocess.CalledProcessError(128, "git"),
        ):
            assert build_info_module._git_short_sha() == "dev"


class TestInstalledVersion:
    def test_reads_distribution_metadata(self):
        with patch("shared.build_info.metadata.version", return_value="2.0.0") as version:
            assert build_info_module._installed_version() == "2.0.0"
        version.assert_called_once_with("promptify-backend")

    def test_dev_when_not_installed(self):
        with patch(
            "shared.build_info.metadata.version",
            side_effect=metadata.PackageNotFoundError("promptify-backend"),
        ):
            assert build_info_module._installed_version() == "dev"


class TestModuleLevelConstants:
    def test_env_overrides_version_and_commit(self):
        with patch.dict("os.environ", {"APP_VERSION": "1.2.3", "GIT_COMMIT": "abc1234"}):
            importlib.reload(build_info_module)
            assert build_info_module.APP_VERSION == "1.2.3"
            assert build_info_module.GIT_COMMIT == "abc1234"
        importlib.reload(build_info_module)

    def test_commit_falls_back_to_git(self, monkeypatch):
        monkeypatch.delenv("GIT_COMMIT", raising=False)
        with patch("subprocess.check_output", return_value="feed123\n"):
            importlib.reload(build_info_module)
            assert build_info_module.GIT_COMMIT == "feed123"
        importlib.reload(build_info_module)
