"""External process execution."""

from .service import CommandRunner, ProcessOutcome, ProcessRunner, redact_args, redact_command

__all__ = ["CommandRunner", "ProcessOutcome", "ProcessRunner", "redact_args", "redact_command"]
