"""
Build pipeline orchestration for apkweaver.

Runs the repackaging state machine: validate the project and keystore, locate
tools, reset the workspace, decompile the template, patch its identity,
relocate the package directory, inject the game content, recompile, align and
sign. Every run ends with exactly one terminal progress event and a
BuildResult; no stage failure escapes ``run()``.
"""

from __future__ import annotations

import asyncio
import shutil
import time
import uuid
from collections.abc import Awaitable, Callable
from pathlib import Path

from ..core.config import Config, get_config
from ..core.exceptions import (
    ApkWeaverError,
    ConfigurationError,
    ExternalProcessError,
    FilesystemError,
    PipelineError,
    ToolMissingError,
)
from ..core.logging import bind_context, clear_context, get_logger
from ..core.types import BuildResult, BuildStage, PipelineState, ProgressEvent, ProgressListener
from ..models.build import BuildContext, BuildLayout
from ..models.project import Keystore, ProjectInfo, validate_project_info
from ..services.content import ContentInjector
from ..services.decompiler import DecompilerService
from ..services.patcher import AssetPatcher
from ..services.process import CommandRunner, ProcessRunner
from ..services.signing import AlignerSigner
from ..services.tools import ToolLocator
from ..storage import LocalProjectStore, ProjectStore

logger = get_logger(__name__)

# Overall completion reported when a state is entered
STATE_PERCENTAGES: dict[PipelineState, int] = {
    PipelineState.INIT: 0,
    PipelineState.VALIDATE_PROJECT: 5,
    PipelineState.VALIDATE_KEYSTORE: 10,
    PipelineState.LOCATE_TOOLS: 15,
    PipelineState.CLEAN_WORKDIR: 20,
    PipelineState.DECOMPILE: 30,
    PipelineState.PATCH_IDENTITY: 45,
    PipelineState.RELOCATE_PACKAGE: 55,
    PipelineState.INJECT_CONTENT: 60,
    PipelineState.RECOMPILE: 75,
    PipelineState.ALIGN: 85,
    PipelineState.SIGN: 95,
    PipelineState.COMPLETED: 100,
}

MESSAGES: dict[str, str] = {
    "initializing": "Initializing build",
    "checking_project_info": "Checking project info",
    "project_info_invalid": "Project info is invalid",
    "checking_keystore_info": "Checking keystore info",
    "keystore_info_missing_skip_signing": "Keystore info is missing, signing will be skipped",
    "locating_tools": "Locating build tools",
    "apkeditor_not_found": "APKEditor not found",
    "webgal_template_not_found": "WebGAL template APK not found",
    "jdk_not_found": "JDK not found",
    "cleaning_build_dir": "Cleaning build directory",
    "cleaning_build_dir_failed": "Cleaning build directory failed",
    "decompiling_template_apk": "Decompiling template APK",
    "apk_decompilation_failed": "APK decompilation failed",
    "replacing_assets": "Replacing assets",
    "relocating_package": "Moving package directory",
    "copying_game_assets": "Copying engine and game assets",
    "replacing_assets_failed": "Replacing assets failed",
    "building_apk": "Building APK",
    "build_apk_failed": "Build APK failed",
    "aligning_apk": "Aligning APK",
    "apk_alignment_failed": "APK alignment failed",
    "signing_apk": "Signing APK",
    "apksigner_not_found_skip_signing": "apksigner not found, signing will be skipped",
    "apk_signing_failed_check_info": "APK signing failed, please check the keystore info",
    "completed": "Build completed",
    "unexpected_error": "Unexpected build error",
}

# Message key of the ERROR event for each failing state
FAILURE_KEYS: dict[PipelineState, str] = {
    PipelineState.CLEAN_WORKDIR: "cleaning_build_dir_failed",
    PipelineState.DECOMPILE: "apk_decompilation_failed",
    PipelineState.PATCH_IDENTITY: "replacing_assets_failed",
    PipelineState.RELOCATE_PACKAGE: "replacing_assets_failed",
    PipelineState.INJECT_CONTENT: "replacing_assets_failed",
    PipelineState.RECOMPILE: "build_apk_failed",
    PipelineState.ALIGN: "apk_alignment_failed",
    PipelineState.SIGN: "apk_signing_failed_check_info",
}

TOOL_MISSING_KEYS: dict[str, str] = {
    "APKEditor": "apkeditor_not_found",
    "template APK": "webgal_template_not_found",
    "java": "jdk_not_found",
}

Stage = Callable[[BuildContext], Awaitable[None]]


class BuildPipeline:
    """Sequential build state machine for one project at a time.

    Concurrent runs against the same output directory are not supported;
    callers must serialize them.
    """

    def __init__(
        self,
        config: Config | None = None,
        listener: ProgressListener | None = None,
        runner: CommandRunner | None = None,
        locator: ToolLocator | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Immutable configuration. Defaults to ``get_config()``.
            listener: Receives progress events in execution order.
            runner: Command runner for every external tool.
            locator: Tool locator. Defaults to one built from ``config.tools``.
        """
        self.config = config or get_config()
        self.listener = listener
        self.runner = runner or ProcessRunner()
        self.locator = locator or ToolLocator(self.config.tools)
        self.patcher = AssetPatcher(self.config.template.text_extensions)
        self.injector = ContentInjector()
        self.signer = AlignerSigner(self.runner, self.config.signing)
        self._state = PipelineState.INIT

    @property
    def state(self) -> PipelineState:
        """Current (or final) state of the most recent run."""
        return self._state

    def _emit(self, stage: BuildStage, message_key: str, message: str | None = None, percentage: int | None = None) -> None:
        event = ProgressEvent(
            message=message or MESSAGES.get(message_key, message_key),
            message_key=message_key,
            stage=stage,
            percentage=STATE_PERCENTAGES.get(self._state, 100) if percentage is None else percentage,
            state=self._state,
        )
        if self.listener is None:
            return
        try:
            self.listener(event)
        except Exception as e:
            logger.warning("Progress listener raised", error=str(e), message_key=message_key)

    def _enter(self, state: PipelineState, message_key: str) -> None:
        self._state = state
        logger.info(MESSAGES[message_key], state=state.value)
        self._emit(BuildStage.RUNNING, message_key)

    def _stages(self) -> list[Stage]:
        return [
            self._validate_project,
            self._validate_keystore,
            self._locate_tools,
            self._clean_workdir,
            self._decompile,
            self._patch_identity,
            self._relocate_package,
            self._inject_content,
            self._recompile,
            self._align,
            self._sign,
        ]

    async def run(
        self,
        project_path: Path,
        project: ProjectInfo,
        keystore: Keystore | None = None,
        output_dir: Path | None = None,
    ) -> BuildResult:
        """Build a signed (or unsigned) APK for a project.

        Args:
            project_path: Game project directory.
            project: Target identity.
            keystore: Signing credentials; incomplete credentials skip signing.
            output_dir: Explicit output directory, overriding configuration.

        Returns:
            BuildResult describing the run. Never raises for stage failures.
        """
        run_id = str(uuid.uuid4())[:8]
        started = time.monotonic()
        self._state = PipelineState.INIT
        bind_context(run_id=run_id, package_name=project.package_name)

        ctx = BuildContext(
            run_id=run_id,
            project=project,
            keystore=keystore,
            layout=BuildLayout.for_project(Path(project_path), project, self.config, output_dir),
            config=self.config,
        )
        logger.info("Starting build", project=str(ctx.layout.project_path), output=str(ctx.layout.output_dir))
        self._emit(BuildStage.INITIALIZING, "initializing")

        try:
            for stage in self._stages():
                await stage(ctx)
        except Exception as e:
            result = self._failure(ctx, self._wrap(e, run_id))
        else:
            result = self._success(ctx)
        finally:
            clear_context()

        result.duration_seconds = time.monotonic() - started
        return result

    def _wrap(self, error: Exception, run_id: str) -> ApkWeaverError:
        if isinstance(error, ApkWeaverError):
            return error
        if isinstance(error, OSError):
            return FilesystemError(message=str(error), path=str(error.filename or ""), cause=error)
        return PipelineError(message=str(error), stage=self._state.value, run_id=run_id, cause=error)

    def _failure(self, ctx: BuildContext, error: ApkWeaverError) -> BuildResult:
        failed_state = self._state
        if isinstance(error, ConfigurationError):
            key, message = "project_info_invalid", error.message
        elif isinstance(error, ToolMissingError):
            key = TOOL_MISSING_KEYS.get(error.tool_name, "unexpected_error")
            message = error.message
        elif isinstance(error, ExternalProcessError):
            # Already names the failed action and carries the tool output
            key, message = FAILURE_KEYS.get(failed_state, "unexpected_error"), error.message
        else:
            key = FAILURE_KEYS.get(failed_state, "unexpected_error")
            message = f"{MESSAGES[key]}: {error.message}"

        logger.error("Build failed", state=failed_state.value, error=str(error))
        self._state = PipelineState.ERROR
        self._emit(BuildStage.ERROR, key, message, STATE_PERCENTAGES.get(failed_state, 0))
        return BuildResult(
            success=False,
            message=message,
            error=str(error),
            failed_state=failed_state,
            warnings=ctx.warnings,
            run_id=ctx.run_id,
        )

    def _success(self, ctx: BuildContext) -> BuildResult:
        layout = ctx.layout
        output = layout.signed_apk if layout.signed_apk.is_file() else layout.unsigned_apk
        self._state = PipelineState.COMPLETED
        logger.info("Build completed", output=str(output), warnings=len(ctx.warnings))
        self._emit(BuildStage.COMPLETED, "completed")
        return BuildResult(
            success=True,
            message=MESSAGES["completed"],
            output_path=output,
            warnings=ctx.warnings,
            run_id=ctx.run_id,
        )

    async def _validate_project(self, ctx: BuildContext) -> None:
        self._enter(PipelineState.VALIDATE_PROJECT, "checking_project_info")
        validate_project_info(ctx.project)

    async def _validate_keystore(self, ctx: BuildContext) -> None:
        self._enter(PipelineState.VALIDATE_KEYSTORE, "checking_keystore_info")
        keystore = ctx.keystore
        if keystore is not None and keystore.is_complete:
            return

        missing = keystore.missing_fields() if keystore is not None else ["keystore"]
        logger.warning("Keystore incomplete, skipping signing", missing=missing)
        ctx.keystore = None
        ctx.warnings.append(MESSAGES["keystore_info_missing_skip_signing"])
        self._emit(BuildStage.WARNING, "keystore_info_missing_skip_signing")

    async def _locate_tools(self, ctx: BuildContext) -> None:
        self._enter(PipelineState.LOCATE_TOOLS, "locating_tools")
        tools = await asyncio.to_thread(self.locator.resolve)
        missing = tools.missing_required()
        if missing:
            name = missing[0]
            raise ToolMissingError(
                message=MESSAGES[TOOL_MISSING_KEYS[name]],
                tool_name=name,
                expected_path=str(self.config.tools.lib_path),
                context={"missing": missing},
            )
        ctx.tools = tools

    async def _clean_workdir(self, ctx: BuildContext) -> None:
        self._enter(PipelineState.CLEAN_WORKDIR, "cleaning_build_dir")
        await asyncio.to_thread(clean_workspace, ctx.layout)

    async def _decompile(self, ctx: BuildContext) -> None:
        self._enter(PipelineState.DECOMPILE, "decompiling_template_apk")
        await self._decompiler(ctx).decompile(ctx.tools.template_apk, ctx.layout.work_dir)  # type: ignore[union-attr,arg-type]

    async def _patch_identity(self, ctx: BuildContext) -> None:
        self._enter(PipelineState.PATCH_IDENTITY, "replacing_assets")
        counts = await asyncio.to_thread(
            self.patcher.patch_identity, ctx.layout.work_dir, self.config.template, ctx.project
        )
        logger.info("Identity patched", **counts)

    async def _relocate_package(self, ctx: BuildContext) -> None:
        self._enter(PipelineState.RELOCATE_PACKAGE, "relocating_package")
        await asyncio.to_thread(
            self.patcher.relocate_package,
            ctx.layout.work_dir,
            self.config.template.bytecode_dirs,
            self.config.template.package_name,
            ctx.project.package_name,
        )

    async def _inject_content(self, ctx: BuildContext) -> None:
        self._enter(PipelineState.INJECT_CONTENT, "copying_game_assets")
        report = await asyncio.to_thread(self.injector.inject, ctx.layout, self.config.template)
        ctx.warnings.extend(report.warnings)

    async def _recompile(self, ctx: BuildContext) -> None:
        self._enter(PipelineState.RECOMPILE, "building_apk")
        await self._decompiler(ctx).recompile(ctx.layout.work_dir, ctx.layout.unsigned_apk)

    async def _align(self, ctx: BuildContext) -> None:
        tools = ctx.tools
        if tools is None or not tools.can_align:
            logger.info("zipalign not found, skipping alignment")
            return
        self._enter(PipelineState.ALIGN, "aligning_apk")
        await self.signer.align(tools.zipalign, ctx.layout.unsigned_apk, ctx.layout.aligned_apk)  # type: ignore[arg-type]

    async def _sign(self, ctx: BuildContext) -> None:
        tools = ctx.tools
        if ctx.keystore is None:
            logger.info("No keystore, skipping signing")
            return
        if tools is None or not tools.can_sign:
            logger.warning("apksigner not found, skipping signing")
            ctx.warnings.append(MESSAGES["apksigner_not_found_skip_signing"])
            self._emit(BuildStage.WARNING, "apksigner_not_found_skip_signing")
            return
        self._enter(PipelineState.SIGN, "signing_apk")
        await self.signer.sign(tools, ctx.keystore, ctx.layout.unsigned_apk, ctx.layout.signed_apk)

    def _decompiler(self, ctx: BuildContext) -> DecompilerService:
        tools = ctx.tools
        if tools is None or tools.java is None or tools.apk_editor is None:
            raise PipelineError(message="Tools were not located", stage=self._state.value, run_id=ctx.run_id)
        return DecompilerService(self.runner, tools.java, tools.apk_editor)


def clean_workspace(layout: BuildLayout) -> None:
    """Remove the previous work directory and artifacts of an earlier run.

    Missing entries are ignored. The output directory is created if needed.

    Raises:
        FilesystemError: On any other filesystem failure.
    """
    try:
        shutil.rmtree(layout.work_dir)
    except FileNotFoundError:
        pass
    except OSError as e:
        raise FilesystemError(message=f"Could not remove work directory: {e}", path=str(layout.work_dir), cause=e)

    for artifact in layout.stale_artifacts:
        try:
            artifact.unlink()
        except FileNotFoundError:
            continue
        except OSError as e:
            raise FilesystemError(message=f"Could not remove stale artifact: {e}", path=str(artifact), cause=e)
        logger.debug("Removed stale artifact", path=str(artifact))

    try:
        layout.output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(message=f"Could not create output directory: {e}", path=str(layout.output_dir), cause=e)


async def run_build(
    project_path: str | Path,
    config: Config | None = None,
    listener: ProgressListener | None = None,
    output_dir: Path | None = None,
    store: ProjectStore | None = None,
    **kwargs: object,
) -> BuildResult:
    """Convenience function to load a project and build it.

    Args:
        project_path: Game project directory.
        config: Configuration. Defaults to ``get_config()``.
        listener: Progress listener.
        output_dir: Explicit output directory.
        store: Project store. Defaults to LocalProjectStore.
        **kwargs: Passed to BuildPipeline (``runner``, ``locator``).

    Returns:
        BuildResult of the run.
    """
    project_path = Path(project_path)
    store = store or LocalProjectStore()
    project = await store.load_project_info(project_path)
    keystore = await store.load_keystore(project_path)

    pipeline = BuildPipeline(config, listener, **kwargs)  # type: ignore[arg-type]
    return await pipeline.run(project_path, project, keystore, output_dir)
