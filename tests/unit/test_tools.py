"""Unit tests for tool discovery."""

import os
from pathlib import Path

import pytest

from apkweaver.core.config import ToolsConfig
from apkweaver.services.tools import ToolLocator, first_existing
from apkweaver.services.tools.service import SubprocessProbe, is_executable_file


def make_executable(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(0o755)
    return path


def nothing_installed(_command):
    return False


class TestFirstExisting:
    """Tests for the candidate search helper."""

    def test_first_match_wins(self, temp_dir):
        (temp_dir / "b").touch()
        (temp_dir / "c").touch()
        found = first_existing([temp_dir / "a", temp_dir / "b", temp_dir / "c"])
        assert found == temp_dir / "b"

    def test_none_entries_are_skipped(self, temp_dir):
        (temp_dir / "a").touch()
        assert first_existing([None, temp_dir / "a"]) == temp_dir / "a"

    def test_no_match(self, temp_dir):
        assert first_existing([temp_dir / "x", None]) is None
        assert first_existing([]) is None

    def test_custom_predicate(self, temp_dir):
        (temp_dir / "file").touch()
        (temp_dir / "dir").mkdir()
        assert first_existing([temp_dir / "file", temp_dir / "dir"], Path.is_dir) == temp_dir / "dir"


class TestExecutableCheck:
    """Tests for the executable predicate."""

    def test_executable_file(self, temp_dir):
        assert is_executable_file(make_executable(temp_dir / "tool"))

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_plain_file_is_not_executable(self, temp_dir):
        plain = temp_dir / "tool"
        plain.write_text("data")
        plain.chmod(0o644)
        assert not is_executable_file(plain)

    def test_directory_is_not_executable(self, temp_dir):
        assert not is_executable_file(temp_dir)


class TestSubprocessProbe:
    """Tests for the system-wide invocability probe."""

    def test_missing_command(self):
        assert not SubprocessProbe(timeout=5)("apkweaver-no-such-command-3f9a")


class TestToolLocator:
    """Tests for resolving tool paths."""

    def test_system_tool_preferred(self, config, full_probe):
        locator = ToolLocator(config.tools, probe=full_probe)
        assert locator.locate("zipalign") is not None
        assert "zipalign" in full_probe.probed

    def test_bundled_fallback_linux(self, lib_dir):
        java = make_executable(lib_dir / "jdk-21" / "bin" / "java")
        locator = ToolLocator(ToolsConfig(lib_path=lib_dir, platform="linux"), probe=nothing_installed)
        assert locator.locate("java") == java
        assert locator.locate_runtime() == java

    def test_bundled_fallback_mac(self, lib_dir):
        java = make_executable(lib_dir / "jdk-21" / "Contents" / "Home" / "bin" / "java")
        locator = ToolLocator(ToolsConfig(lib_path=lib_dir, platform="mac"), probe=nothing_installed)
        assert locator.locate("java") == java

    def test_bundled_candidates_windows(self, lib_dir):
        locator = ToolLocator(ToolsConfig(lib_path=lib_dir, platform="windows"), probe=nothing_installed)
        assert locator.bundled_candidates("java") == [lib_dir / "jdk-21" / "bin" / "java.exe"]
        assert locator.bundled_candidates("zipalign") == [lib_dir / "build-tools" / "zipalign.exe"]
        assert locator.bundled_candidates("unknown") == []

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_non_executable_counts_as_absent(self, lib_dir):
        zipalign = lib_dir / "build-tools" / "zipalign"
        zipalign.parent.mkdir(parents=True)
        zipalign.write_text("not executable")
        zipalign.chmod(0o644)
        locator = ToolLocator(ToolsConfig(lib_path=lib_dir, platform="linux"), probe=nothing_installed)
        assert locator.locate("zipalign") is None

    def test_runtime_override(self, lib_dir):
        custom = make_executable(lib_dir / "custom" / "java")
        config = ToolsConfig(lib_path=lib_dir, platform="linux", java_path=custom)
        locator = ToolLocator(config, probe=nothing_installed)
        assert locator.locate_runtime() == custom

    def test_archives_in_lib(self, config, full_probe):
        locator = ToolLocator(config.tools, probe=full_probe)
        assert locator.locate_apk_editor() == config.tools.lib_path / "APKEditor.jar"
        assert locator.locate_template() == config.tools.lib_path / "webgal-template.apk"

    def test_archive_override_first(self, lib_dir, temp_dir):
        custom = temp_dir / "custom-template.apk"
        custom.write_bytes(b"PK")
        config = ToolsConfig(lib_path=lib_dir, template_apk_path=custom)
        assert ToolLocator(config, probe=nothing_installed).locate_template() == custom

    def test_missing_override_falls_back(self, lib_dir, temp_dir):
        config = ToolsConfig(lib_path=lib_dir, apk_editor_path=temp_dir / "missing.jar")
        assert ToolLocator(config, probe=nothing_installed).locate_apk_editor() == lib_dir / "APKEditor.jar"

    def test_signer_jar_fallback(self, lib_dir):
        jar = lib_dir / "build-tools" / "lib" / "apksigner.jar"
        jar.parent.mkdir(parents=True)
        jar.write_bytes(b"jar")
        locator = ToolLocator(ToolsConfig(lib_path=lib_dir, platform="linux"), probe=nothing_installed)
        assert locator.locate_signer() == (jar, True)

    def test_signer_launcher(self, config, full_probe):
        path, is_jar = ToolLocator(config.tools, probe=full_probe).locate_signer()
        assert path is not None
        assert not is_jar

    def test_resolve_nothing_installed(self, temp_dir):
        locator = ToolLocator(ToolsConfig(lib_path=temp_dir / "empty", platform="linux"), probe=nothing_installed)
        tools = locator.resolve()
        assert tools.missing_required() == ["APKEditor", "template APK", "java"]
        assert tools.zipalign is None
        assert tools.apksigner is None

    def test_resolve_full(self, locator):
        tools = locator.resolve()
        assert tools.missing_required() == []
        assert tools.can_align
        assert tools.can_sign
