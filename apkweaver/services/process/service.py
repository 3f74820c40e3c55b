"""
Process Runner Service.

Spawns one external command at a time, streams its output line by line to the
log, and maps the exit status to success or failure. Credentials are redacted
from the logged invocation line only.
"""

from __future__ import annotations

import asyncio
import contextlib
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from ...core.exceptions import ExternalProcessError
from ...core.logging import get_logger

logger = get_logger(__name__)

REDACTION_MASK = "***"

# Bytes per read; lines may be longer than one chunk
READ_CHUNK_SIZE = 64 * 1024

# --ks-pass, --ksPass, --ks-key-pass, --ksKeyPass, --key-pass, -storepass, -keypass,
# -srcstorepass, -destkeypass, --password
_CREDENTIAL_FLAG = re.compile(
    r"^--?(?:ks-?(?:key-?)?pass|key-?pass|(?:src|dest)?(?:store|key)pass|store-?pass|pass(?:word)?)$",
    re.IGNORECASE,
)
_PASS_PREFIX = "pass:"

LineSink = Callable[[str, str], None]


def is_credential_flag(arg: str) -> bool:
    """Check whether an argument is a flag whose value is a credential."""
    return bool(_CREDENTIAL_FLAG.match(arg))


def redact_args(args: Sequence[str]) -> list[str]:
    """Mask credential-bearing arguments for logging.

    Args:
        args: Arguments exactly as they will be passed to the process.

    Returns:
        A new list; the input is never modified.
    """
    redacted: list[str] = []
    mask_next = False
    for arg in args:
        if mask_next:
            redacted.append(REDACTION_MASK)
            mask_next = False
            continue

        flag, sep, _ = arg.partition("=")
        if sep and is_credential_flag(flag):
            redacted.append(f"{flag}={REDACTION_MASK}")
        elif arg.startswith(_PASS_PREFIX):
            redacted.append(f"{_PASS_PREFIX}{REDACTION_MASK}")
        else:
            redacted.append(arg)
            mask_next = is_credential_flag(arg)
    return redacted


def redact_command(command: str | Path, args: Sequence[str]) -> str:
    """Render a loggable invocation line with credentials masked."""
    return " ".join([str(command), *redact_args(args)])


@dataclass
class ProcessOutcome:
    """Result of one external command."""

    command: str
    exit_code: int | None
    stdout_lines: list[str] = field(default_factory=list)
    stderr_lines: list[str] = field(default_factory=list)
    spawn_error: str | None = None

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def tail(self, lines: int = 20) -> str:
        """Last lines of combined output, for error reports."""
        combined = self.stdout_lines + self.stderr_lines
        if self.spawn_error:
            combined.append(self.spawn_error)
        return "\n".join(combined[-lines:])

    def raise_on_failure(self, stage: str, action: str) -> None:
        """Raise ExternalProcessError unless the command succeeded.

        Args:
            stage: Pipeline stage reported on the error.
            action: Human-readable action, e.g. ``Build APK``.

        Raises:
            ExternalProcessError: Carrying the exit code and output tail.
        """
        if self.success:
            return
        tail = self.tail(5)
        raise ExternalProcessError(
            message=f"{action} failed: {tail}" if tail else f"{action} failed",
            exit_code=self.exit_code,
            stage=stage,
            command=self.command,
        )


class CommandRunner(Protocol):
    """Anything able to run one external command to completion."""

    async def run(
        self, command: str | Path, args: Sequence[str], description: str = ""
    ) -> ProcessOutcome: ...


class ProcessRunner:
    """Runs external commands asynchronously, one attempt per call.

    No timeout is applied: a hung tool blocks the caller until it exits.
    """

    def __init__(self, sink: LineSink | None = None) -> None:
        """Initialize the runner.

        Args:
            sink: Optional callback receiving ``(stream_name, line)`` for
                every line the child writes.
        """
        self.sink = sink

    async def run(
        self, command: str | Path, args: Sequence[str], description: str = ""
    ) -> ProcessOutcome:
        """Run a command and wait for it to exit.

        Args:
            command: Executable to spawn.
            args: Arguments, passed unmodified.
            description: Short label used in log lines.

        Returns:
            ProcessOutcome; non-zero exit or a spawn failure is not success.
        """
        label = description or str(command)
        cmd_str = redact_command(command, args)
        logger.info("Running command", description=label, command=cmd_str)

        try:
            process = await asyncio.create_subprocess_exec(
                str(command),
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error("Command could not be started", description=label, error=str(e))
            return ProcessOutcome(command=cmd_str, exit_code=None, spawn_error=str(e))

        stdout_lines: list[str] = []
        stderr_lines: list[str] = []

        def emit(raw: bytes, lines: list[str], stream_name: str) -> None:
            decoded = raw.decode("utf-8", errors="replace").rstrip()
            lines.append(decoded)
            logger.debug(f"[{stream_name}] {decoded}")
            if self.sink is not None:
                self.sink(stream_name, decoded)

        async def read_stream(stream: asyncio.StreamReader, lines: list[str], stream_name: str) -> None:
            pending = bytearray()
            while True:
                chunk = await stream.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                pending.extend(chunk)
                *complete, rest = pending.split(b"\n")
                for raw in complete:
                    emit(raw, lines, stream_name)
                pending = bytearray(rest)
            if pending:
                emit(bytes(pending), lines, stream_name)

        try:
            await asyncio.gather(
                read_stream(process.stdout, stdout_lines, "stdout"),  # type: ignore
                read_stream(process.stderr, stderr_lines, "stderr"),  # type: ignore
            )
        except BaseException:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            raise

        exit_code = await process.wait()
        outcome = ProcessOutcome(
            command=cmd_str,
            exit_code=exit_code,
            stdout_lines=stdout_lines,
            stderr_lines=stderr_lines,
        )

        if outcome.success:
            logger.info(f"{label} completed successfully")
        else:
            logger.error("Command failed", description=label, exit_code=exit_code)
        return outcome
