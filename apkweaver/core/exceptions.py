"""
Custom exception hierarchy for apkweaver.

All exceptions inherit from ApkWeaverError so the pipeline can map any stage
failure onto a structured build result. Each type carries the context needed
to report the failure to the user.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ApkWeaverError(Exception):
    """Base exception for all apkweaver errors."""

    message: str
    context: dict[str, Any] = field(default_factory=dict)
    cause: Exception | None = None

    def __str__(self) -> str:
        ctx = f" | context: {self.context}" if self.context else ""
        cause = f" | caused by: {self.cause}" if self.cause else ""
        return f"{self.message}{ctx}{cause}"


@dataclass
class ConfigurationError(ApkWeaverError):
    """Raised when project metadata is missing or malformed."""

    field_name: str | None = None

    def __str__(self) -> str:
        base = super().__str__()
        if self.field_name:
            return f"Invalid '{self.field_name}': {base}"
        return f"Invalid configuration: {base}"


@dataclass
class ToolMissingError(ApkWeaverError):
    """Raised when a required external tool or archive cannot be located."""

    tool_name: str = ""
    expected_path: str = ""
    install_hint: str = ""

    def __str__(self) -> str:
        hint = f" Install hint: {self.install_hint}" if self.install_hint else ""
        return f"Tool '{self.tool_name}' not found at '{self.expected_path}'.{hint}"


@dataclass
class ExternalProcessError(ApkWeaverError):
    """Raised when an external tool exits with a non-zero status."""

    exit_code: int | None = None
    stage: str = ""
    command: str = ""

    def __str__(self) -> str:
        base = super().__str__()
        code = "did not start" if self.exit_code is None else f"exit code {self.exit_code}"
        return f"[{self.stage}] {base} ({code})"


@dataclass
class StructuralMismatchError(ApkWeaverError):
    """Raised when the decompiled tree lacks the expected package directory.

    This signals an incompatibility between the template APK and the
    decompiler, not a user input problem.
    """

    searched: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        return f"{self.message} | searched: {', '.join(self.searched) or 'nothing'}"


@dataclass
class FilesystemError(ApkWeaverError):
    """Raised when a filesystem operation fails."""

    path: str = ""

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base} (path: {self.path})" if self.path else base


@dataclass
class PipelineError(ApkWeaverError):
    """Raised when pipeline orchestration fails unexpectedly."""

    stage: str = ""
    run_id: str = ""

    def __str__(self) -> str:
        base = super().__str__()
        return f"Pipeline error at stage '{self.stage}' (run: {self.run_id}): {base}"
