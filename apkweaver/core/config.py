"""
Configuration management for apkweaver.

Provides immutable, type-safe configuration with environment variable overrides
and sensible defaults for tool discovery, template identity and signing.
"""

from __future__ import annotations

import os
import sys
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load .env file if it exists (looks in cwd and parent directories)
load_dotenv()

Platform = Literal["windows", "mac", "linux"]


def detect_platform() -> Platform:
    """Map ``sys.platform`` to the bundled-tools layout key."""
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "mac"
    return "linux"


def _optional_path(env_var: str) -> Path | None:
    value = os.environ.get(env_var, "").strip()
    return Path(value).expanduser() if value else None


class ToolsConfig(BaseModel):
    """External tools configuration."""

    lib_path: Path = Field(
        default_factory=lambda: Path.cwd() / "lib",
        description="Bundled tools directory (APKEditor, template, JDK, build-tools)",
    )
    java_path: Path | None = Field(default=None, description="Custom java executable")
    apk_editor_path: Path | None = Field(default=None, description="Custom APKEditor.jar path")
    template_apk_path: Path | None = Field(default=None, description="Custom template APK path")
    platform: Platform = Field(default_factory=detect_platform, description="Host platform")
    probe_timeout_seconds: float = Field(default=30.0, gt=0, description="Invocability probe timeout")

    model_config = {"frozen": True}


class TemplateConfig(BaseModel):
    """Identity and layout of the template APK being repackaged."""

    package_name: str = Field(default="com.openwebgal.demo", description="Template package token")
    app_name: str = Field(default="WebGAL", description="Template display name")
    version_code: int = Field(default=1, description="Template versionCode")
    version_name: str = Field(default="1.0", description="Template versionName")
    text_extensions: tuple[str, ...] = Field(
        default=(".xml", ".json", ".smali"),
        description="File extensions eligible for identity rewriting",
    )
    bytecode_dirs: tuple[str, ...] = Field(
        default=("smali/classes", "smali/classes2"),
        description="Decompiled bytecode containers, searched in order",
    )
    engine_template_dir: Path = Field(
        default=Path("..", "..", "..", "assets", "templates", "WebGAL_Template"),
        description="Engine asset tree, relative to the project directory",
    )
    asset_slot: Path = Field(default=Path("root", "assets", "webgal"), description="Engine slot in decompiled tree")
    game_dir_name: str = Field(default="game", description="Game content directory name")
    stale_members: tuple[str, ...] = Field(
        default=("game", "webgal-serviceworker.js", "icons"),
        description="Engine entries removed before game content is copied",
    )
    icon_source_dir: Path = Field(default=Path("icons", "android"), description="Project icon directory")
    icon_marker: str = Field(default="ic_launcher-playstore.png", description="File that enables icon copy")
    icon_dest_dir: Path = Field(default=Path("resources", "package_1", "res"), description="Icon destination")

    model_config = {"frozen": True}


class OutputConfig(BaseModel):
    """Output layout configuration."""

    output_path: Path | None = Field(default=None, description="Explicit output directory")
    exported_games_dir: Path = Field(
        default=Path("..", "..", "..", "Exported_Games"),
        description="Export root, relative to the project directory",
    )
    work_dir_name: str = Field(default="build", description="Scratch directory name inside the output")

    model_config = {"frozen": True}


class SigningConfig(BaseModel):
    """Alignment and signing configuration."""

    v1_signing_enabled: bool = Field(default=True)
    v2_signing_enabled: bool = Field(default=True)
    v3_signing_enabled: bool = Field(default=True)
    v4_signing_enabled: bool = Field(default=True)
    align_boundary: int = Field(default=4, ge=1, description="zipalign boundary in bytes")
    debug_keystore_name: str = Field(default="debug.keystore")
    debug_key_alias: str = Field(default="androiddebugkey")
    debug_password: str = Field(default="android")
    debug_validity_days: int = Field(default=10000, ge=1)
    debug_dname: str = Field(default="CN=Android Debug,O=Android,C=US")

    model_config = {"frozen": True}


class Config(BaseModel):
    """Root configuration for apkweaver."""

    project_name: str = Field(default="apkweaver", description="Project identifier")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    template: TemplateConfig = Field(default_factory=TemplateConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    signing: SigningConfig = Field(default_factory=SigningConfig)

    model_config = {"extra": "ignore", "frozen": True}

    @classmethod
    def from_env(cls) -> Config:
        """Create configuration from environment variables."""
        lib_path = _optional_path("APKWEAVER_LIB_PATH")
        tools = ToolsConfig(
            java_path=_optional_path("APKWEAVER_JAVA"),
            apk_editor_path=_optional_path("APKWEAVER_APKEDITOR"),
            template_apk_path=_optional_path("APKWEAVER_TEMPLATE"),
            **({"lib_path": lib_path} if lib_path else {}),
        )
        return cls(
            log_level=os.environ.get("APKWEAVER_LOG_LEVEL", "INFO").upper(),  # type: ignore
            tools=tools,
            output=OutputConfig(output_path=_optional_path("APKWEAVER_OUTPUT_PATH")),
        )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.from_env()
