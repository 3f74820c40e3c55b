"""Unit tests for the process runner and credential redaction."""

import sys

import pytest

from apkweaver.core.exceptions import ExternalProcessError
from apkweaver.services.process import ProcessOutcome, ProcessRunner, redact_args, redact_command
from apkweaver.services.process.service import REDACTION_MASK, is_credential_flag


class TestRedaction:
    """Tests for log redaction of credential arguments."""

    @pytest.mark.parametrize(
        "flag",
        ["--ks-pass", "--ksPass", "--ksKeyPass", "--key-pass", "-storepass", "-keypass", "--password"],
    )
    def test_credential_flags(self, flag):
        assert is_credential_flag(flag)

    @pytest.mark.parametrize("flag", ["--ks", "--ks-key-alias", "-keystore", "--out", "-alias", "pass"])
    def test_plain_flags(self, flag):
        assert not is_credential_flag(flag)

    def test_masks_value_after_flag(self):
        args = ["-genkey", "-storepass", "s3cret", "-keypass", "k3y", "-alias", "release"]
        assert redact_args(args) == [
            "-genkey", "-storepass", REDACTION_MASK, "-keypass", REDACTION_MASK, "-alias", "release",
        ]

    def test_masks_pass_prefix(self):
        args = ["sign", "--ks", "release.jks", "--ks-pass", "pass:s3cret", "--out", "app.apk"]
        redacted = redact_args(args)
        assert "s3cret" not in " ".join(redacted)
        assert redacted[:4] == ["sign", "--ks", "release.jks", "--ks-pass"]
        assert redacted[-2:] == ["--out", "app.apk"]

    def test_masks_standalone_pass_prefix(self):
        assert redact_args(["pass:hunter2"]) == [f"pass:{REDACTION_MASK}"]

    def test_masks_inline_assignment(self):
        assert redact_args(["--ksPass=hunter2"]) == [f"--ksPass={REDACTION_MASK}"]

    def test_input_is_not_modified(self):
        args = ["-storepass", "s3cret"]
        redact_args(args)
        assert args == ["-storepass", "s3cret"]

    def test_redact_command(self):
        line = redact_command("keytool", ["-storepass", "s3cret"])
        assert line == f"keytool -storepass {REDACTION_MASK}"


class TestProcessOutcome:
    """Tests for command outcomes."""

    def test_success_requires_zero_exit(self):
        assert ProcessOutcome(command="x", exit_code=0).success
        assert not ProcessOutcome(command="x", exit_code=2).success
        assert not ProcessOutcome(command="x", exit_code=None, spawn_error="not found").success

    def test_tail(self):
        outcome = ProcessOutcome(
            command="x",
            exit_code=1,
            stdout_lines=["one", "two"],
            stderr_lines=["three"],
        )
        assert outcome.tail(2) == "two\nthree"

    def test_raise_on_failure(self):
        failed = ProcessOutcome(command="java -jar APKEditor.jar b", exit_code=2, stderr_lines=["bad smali"])

        with pytest.raises(ExternalProcessError) as exc_info:
            failed.raise_on_failure("recompile", "Build APK")

        assert exc_info.value.message == "Build APK failed: bad smali"
        assert exc_info.value.exit_code == 2
        assert exc_info.value.stage == "recompile"

    def test_raise_on_failure_without_output(self):
        with pytest.raises(ExternalProcessError) as exc_info:
            ProcessOutcome(command="x", exit_code=1).raise_on_failure("align", "APK alignment")
        assert exc_info.value.message == "APK alignment failed"

    def test_success_does_not_raise(self):
        ProcessOutcome(command="x", exit_code=0).raise_on_failure("sign", "APK signing")


@pytest.mark.asyncio
class TestProcessRunner:
    """Tests for spawning real child processes."""

    async def test_streams_output_lines(self):
        lines = []
        runner = ProcessRunner(sink=lambda stream, line: lines.append((stream, line)))
        outcome = await runner.run(
            sys.executable,
            ["-c", "import sys; print('hello'); print('oops', file=sys.stderr)"],
            "echo",
        )

        assert outcome.success
        assert outcome.stdout_lines == ["hello"]
        assert outcome.stderr_lines == ["oops"]
        assert ("stdout", "hello") in lines
        assert ("stderr", "oops") in lines

    async def test_nonzero_exit_is_failure(self):
        outcome = await ProcessRunner().run(sys.executable, ["-c", "raise SystemExit(3)"])
        assert not outcome.success
        assert outcome.exit_code == 3

    async def test_missing_executable(self, temp_dir):
        outcome = await ProcessRunner().run(temp_dir / "no-such-tool", [])
        assert not outcome.success
        assert outcome.exit_code is None
        assert outcome.spawn_error

    async def test_arguments_are_passed_unredacted(self):
        outcome = await ProcessRunner().run(
            sys.executable,
            ["-c", "import sys; print(sys.argv[1:])", "-storepass", "s3cret"],
        )
        assert outcome.stdout_lines == ["['-storepass', 's3cret']"]
        assert "s3cret" not in outcome.command

    async def test_line_longer_than_read_chunk(self):
        outcome = await ProcessRunner().run(
            sys.executable,
            ["-c", "print('x' * 200000); print('done')"],
        )

        assert outcome.success
        assert outcome.stdout_lines == ["x" * 200000, "done"]

    async def test_last_line_without_newline(self):
        outcome = await ProcessRunner().run(
            sys.executable,
            ["-c", "import sys; sys.stdout.write('one\\ntwo')"],
        )
        assert outcome.stdout_lines == ["one", "two"]

    async def test_sink_error_reaps_child(self):
        def failing_sink(stream, line):
            raise RuntimeError("sink broke")

        with pytest.raises(RuntimeError, match="sink broke"):
            await ProcessRunner(sink=failing_sink).run(
                sys.executable,
                ["-c", "import time; print('hi', flush=True); time.sleep(30)"],
            )
