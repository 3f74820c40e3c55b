"""Unit tests for configuration, errors, logging and shared types."""

from dataclasses import fields
from pathlib import Path

import pytest
from pydantic import ValidationError

from apkweaver.core.config import Config, detect_platform
from apkweaver.core.exceptions import (
    ApkWeaverError,
    ExternalProcessError,
    FilesystemError,
    StructuralMismatchError,
    ToolMissingError,
)
from apkweaver.core.logging import SECRET_MASK, mask_secrets
from apkweaver.core.types import BuildStage, ProgressEvent, ProgressRecorder, ServiceResult


class TestConfig:
    """Tests for configuration loading."""

    def test_defaults(self):
        config = Config()
        assert config.template.package_name == "com.openwebgal.demo"
        assert config.template.text_extensions == (".xml", ".json", ".smali")
        assert config.signing.align_boundary == 4
        assert config.tools.platform == detect_platform()

    def test_from_env(self, monkeypatch, temp_dir):
        monkeypatch.setenv("APKWEAVER_LIB_PATH", str(temp_dir / "lib"))
        monkeypatch.setenv("APKWEAVER_TEMPLATE", str(temp_dir / "t.apk"))
        monkeypatch.setenv("APKWEAVER_OUTPUT_PATH", str(temp_dir / "out"))
        monkeypatch.setenv("APKWEAVER_LOG_LEVEL", "debug")

        config = Config.from_env()

        assert config.tools.lib_path == temp_dir / "lib"
        assert config.tools.template_apk_path == temp_dir / "t.apk"
        assert config.tools.apk_editor_path is None
        assert config.output.output_path == temp_dir / "out"
        assert config.log_level == "DEBUG"

    def test_frozen(self):
        with pytest.raises(ValidationError):
            Config().log_level = "DEBUG"


class TestExceptions:
    """Tests for the error taxonomy."""

    def test_hierarchy(self):
        for error_type in (ToolMissingError, ExternalProcessError, StructuralMismatchError, FilesystemError):
            assert issubclass(error_type, ApkWeaverError)

    def test_external_process_error(self):
        error = ExternalProcessError(message="Build APK failed", exit_code=2, stage="recompile")
        assert str(error) == "[recompile] Build APK failed (exit code 2)"
        assert "did not start" in str(ExternalProcessError(message="x", stage="decompile"))

    def test_tool_missing_error(self):
        error = ToolMissingError(message="missing", tool_name="APKEditor", expected_path="/lib")
        assert "APKEditor" in str(error)
        assert "/lib" in str(error)

    def test_cause_is_reported(self):
        error = FilesystemError(message="Copy failed", path="/x", cause=OSError("disk full"))
        assert "disk full" in str(error)
        assert "/x" in str(error)


class TestLogging:
    """Tests for log processors."""

    def test_mask_secrets(self):
        event = {"event": "x", "store_password": "s3cret", "ks_pass": "k", "keystore": "release.jks"}
        masked = mask_secrets(None, "info", event)
        assert masked["store_password"] == SECRET_MASK
        assert masked["ks_pass"] == SECRET_MASK
        assert masked["keystore"] == "release.jks"


class TestTypes:
    """Tests for shared progress and result types."""

    def test_build_stage_flags(self):
        assert BuildStage.ERROR.is_terminal
        assert BuildStage.COMPLETED.is_terminal
        assert not BuildStage.WARNING.is_terminal
        assert BuildStage.RUNNING.is_busy
        assert BuildStage.INITIALIZING.is_busy
        assert not BuildStage.NOT_STARTED.is_busy

    def test_percentage_bounds(self):
        with pytest.raises(ValidationError):
            ProgressEvent(message="x", stage=BuildStage.RUNNING, percentage=101)

    def test_recorder(self):
        recorder = ProgressRecorder()
        assert recorder.last is None
        recorder(ProgressEvent(message="a", stage=BuildStage.RUNNING, percentage=10))
        assert recorder.stages == [BuildStage.RUNNING]
        assert recorder.last.message == "a"

    def test_service_result(self):
        ok = ServiceResult.ok(Path("x"), created=True)
        assert ok.success and ok.metadata == {"created": True}
        failed = ServiceResult.fail("nope")
        assert not failed.success and failed.error == "nope"
        assert [f.name for f in fields(ServiceResult)] == ["success", "data", "error", "metadata"]
