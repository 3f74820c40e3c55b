"""Core infrastructure components for apkweaver."""

from .config import Config, get_config
from .exceptions import (
    ApkWeaverError,
    ConfigurationError,
    ExternalProcessError,
    FilesystemError,
    PipelineError,
    StructuralMismatchError,
    ToolMissingError,
)
from .logging import get_logger, setup_logging
from .types import (
    BuildResult,
    BuildStage,
    PipelineState,
    ProgressEvent,
    ProgressListener,
    ProgressRecorder,
    ServiceResult,
)

__all__ = [
    "Config",
    "get_config",
    "ApkWeaverError",
    "ConfigurationError",
    "ExternalProcessError",
    "FilesystemError",
    "PipelineError",
    "StructuralMismatchError",
    "ToolMissingError",
    "get_logger",
    "setup_logging",
    "BuildResult",
    "BuildStage",
    "PipelineState",
    "ProgressEvent",
    "ProgressListener",
    "ProgressRecorder",
    "ServiceResult",
]
