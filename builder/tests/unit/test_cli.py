"""Unit tests for the bundler CLI."""

import json
from unittest.mock import patch

import pytest

from bundler.__main__ import main


@pytest.fixture
def cli_settings(settings, layer_source, tmp_path):
    """Patch the CLI's settings to point at the test layer source."""
    settings.layer_source_dir = str(layer_source)
    settings.layer_output_dir = str(tmp_path / "out")
    with patch("bundler.__main__.get_settings", return_value=settings):
        yield settings


class TestBuildCommand:
    """Tests for `python -m bundler build`."""

    def test_build_prints_artifact_summary(self, cli_settings, tmp_path, capsys):
        """Test that a build prints the artifact as JSON."""
        assert main(["build"]) == 0

        summary = json.loads(capsys.readouterr().out)
        assert summary["target_platform"] == "linux-x64"
        assert summary["path"] == str((tmp_path / "out").resolve())
        assert len(summary["digest"]) == 64

    def test_no_command_defaults_to_build(self, cli_settings, tmp_path):
        """Test that running without a command builds."""
        assert main([]) == 0
        assert (tmp_path / "out" / "package.json").is_file()

    def test_arguments_override_settings(self, cli_settings, tmp_path, capsys):
        """Test --output and --platform overrides."""
        output = tmp_path / "custom"
        assert main(["build", "--output", str(output), "--platform", "linux-x86_64"]) == 0
        assert json.loads(capsys.readouterr().out)["path"] == str(output.resolve())

    def test_bundle_error_exits_non_zero(self, cli_settings, tmp_path, caplog):
        """Test that bundling failures map to exit code 1."""
        assert main(["build", "--platform", "darwin-x64"]) == 1
        assert "[prune]" in caplog.text
        assert not (tmp_path / "out").exists()

    def test_invalid_platform_exits_non_zero(self, cli_settings):
        """Test that an unknown platform maps to exit code 1."""
        assert main(["build", "--platform", "amiga"]) == 1


class TestInspectCommand:
    """Tests for `python -m bundler inspect`."""

    def test_inspect_lists_native_packages(self, cli_settings, layer_source, capsys):
        """Test that inspect reports packages and platforms without pruning."""
        modules = layer_source / "node_modules"
        assert main(["inspect", str(modules)]) == 0

        packages = {p["name"]: p for p in json.loads(capsys.readouterr().out)}
        assert packages["@prisma/engines"]["platforms"] == ["darwin-arm64", "linux-x64", "windows-x64"]
        assert packages["@esbuild/darwin-arm64"]["family"] == "@esbuild/*"
        assert (modules / "@esbuild" / "darwin-arm64").exists()

    def test_inspect_missing_directory(self, cli_settings, tmp_path):
        """Test that inspecting a missing directory fails."""
        assert main(["inspect", str(tmp_path / "nope")]) == 1
