"""
Core type definitions for apkweaver.

Provides result wrappers, build stages and progress events shared by the
services, the pipeline and its listeners.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Generic, Protocol, TypeVar

from pydantic import BaseModel, Field


class BuildStage(str, Enum):
    """Coarse build status, as bound by user interfaces."""

    NOT_STARTED = "NOT_STARTED"
    INITIALIZING = "INITIALIZING"
    RUNNING = "RUNNING"
    WARNING = "WARNING"
    ERROR = "ERROR"
    COMPLETED = "COMPLETED"

    @property
    def is_terminal(self) -> bool:
        return self in (BuildStage.ERROR, BuildStage.COMPLETED)

    @property
    def is_busy(self) -> bool:
        """Whether a build trigger should be disabled while in this stage."""
        return self in (BuildStage.INITIALIZING, BuildStage.RUNNING)


class PipelineState(str, Enum):
    """States of the build state machine, in execution order."""

    INIT = "init"
    VALIDATE_PROJECT = "validate_project"
    VALIDATE_KEYSTORE = "validate_keystore"
    LOCATE_TOOLS = "locate_tools"
    CLEAN_WORKDIR = "clean_workdir"
    DECOMPILE = "decompile"
    PATCH_IDENTITY = "patch_identity"
    RELOCATE_PACKAGE = "relocate_package"
    INJECT_CONTENT = "inject_content"
    RECOMPILE = "recompile"
    ALIGN = "align"
    SIGN = "sign"
    COMPLETED = "completed"
    ERROR = "error"


T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """Result wrapper for service operations.

    Provides a consistent return type that includes success/failure status,
    the result data, and any error.
    """

    success: bool
    data: T | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: T, **metadata: Any) -> ServiceResult[T]:
        """Create a successful result."""
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(cls, error: str, **metadata: Any) -> ServiceResult[T]:
        """Create a failed result."""
        return cls(success=False, error=error, metadata=metadata)


class ProgressEvent(BaseModel):
    """A single progress notification emitted by the pipeline."""

    message: str = Field(description="Human-readable progress message")
    message_key: str = Field(default="", description="Stable locale key for the message")
    stage: BuildStage = Field(description="Coarse build status")
    percentage: int = Field(ge=0, le=100, description="Overall completion")
    state: PipelineState | None = Field(default=None, description="State machine position")


class ProgressListener(Protocol):
    """Receives progress events synchronously, in stage execution order."""

    def __call__(self, event: ProgressEvent) -> None: ...


class ProgressRecorder:
    """Listener that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []

    def __call__(self, event: ProgressEvent) -> None:
        self.events.append(event)

    @property
    def stages(self) -> list[BuildStage]:
        return [event.stage for event in self.events]

    @property
    def states(self) -> list[PipelineState | None]:
        return [event.state for event in self.events]

    @property
    def last(self) -> ProgressEvent | None:
        return self.events[-1] if self.events else None


class BuildResult(BaseModel):
    """Terminal value of one pipeline run."""

    success: bool
    message: str
    output_path: Path | None = Field(default=None, description="Final artifact on success")
    error: str | None = Field(default=None, description="Underlying error detail")
    failed_state: PipelineState | None = Field(default=None)
    warnings: list[str] = Field(default_factory=list)
    run_id: str = Field(default="")
    duration_seconds: float = Field(default=0.0)
