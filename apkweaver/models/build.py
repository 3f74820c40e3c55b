"""
Build-run models.

ToolSet records which external tools were found, BuildLayout computes every
path one run touches, and BuildContext aggregates both with the project for
the lifetime of a single run.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from ..core.config import Config
from .project import Keystore, ProjectInfo


class ToolSet(BaseModel):
    """Resolved tool locations. Each entry is independently present or absent."""

    apk_editor: Path | None = Field(default=None, description="Decompiler/recompiler archive")
    template_apk: Path | None = Field(default=None, description="Template application archive")
    java: Path | None = Field(default=None, description="Java runtime executable")
    keytool: Path | None = Field(default=None, description="Credential tool executable")
    zipalign: Path | None = Field(default=None, description="Aligner executable")
    apksigner: Path | None = Field(default=None, description="Signer launcher or archive")
    apksigner_is_jar: bool = Field(default=False, description="Signer must be run with the runtime")

    model_config = {"frozen": True}

    def missing_required(self) -> list[str]:
        """Names of absent tools without which no build is possible."""
        required = {
            "APKEditor": self.apk_editor,
            "template APK": self.template_apk,
            "java": self.java,
        }
        return [name for name, path in required.items() if path is None]

    @property
    def can_align(self) -> bool:
        return self.zipalign is not None

    @property
    def can_sign(self) -> bool:
        if self.apksigner is None:
            return False
        return self.java is not None or not self.apksigner_is_jar


class BuildLayout(BaseModel):
    """Every path used by one build run."""

    project_path: Path
    output_dir: Path
    work_dir: Path
    unsigned_apk: Path
    aligned_apk: Path
    signed_apk: Path
    idsig_file: Path
    engine_source: Path
    game_source: Path
    icon_source: Path

    model_config = {"frozen": True}

    @classmethod
    def for_project(
        cls,
        project_path: Path,
        info: ProjectInfo,
        config: Config,
        output_dir: Path | None = None,
    ) -> BuildLayout:
        """Compute the layout for a project.

        Args:
            project_path: Game project directory.
            info: Project identity, used for artifact names.
            config: Immutable configuration.
            output_dir: Explicit output directory, overriding configuration.

        Returns:
            The layout for one run.
        """
        project_path = project_path.resolve()
        output = output_dir or config.output.output_path
        if output is None:
            output = project_path / config.output.exported_games_dir / project_path.name / "apk"
        output = output.resolve()

        name = info.artifact_basename
        signed = output / f"{name}-signed.apk"
        template = config.template
        return cls(
            project_path=project_path,
            output_dir=output,
            work_dir=output / config.output.work_dir_name,
            unsigned_apk=output / f"{name}-unsigned.apk",
            aligned_apk=output / f"{name}-aligned.apk",
            signed_apk=signed,
            idsig_file=signed.with_name(signed.name + ".idsig"),
            engine_source=(project_path / template.engine_template_dir).resolve(),
            game_source=project_path / template.game_dir_name,
            icon_source=project_path / template.icon_source_dir,
        )

    @property
    def stale_artifacts(self) -> list[Path]:
        """Artifacts a previous run may have left behind."""
        return [self.unsigned_apk, self.aligned_apk, self.signed_apk, self.idsig_file]


class BuildContext(BaseModel):
    """One-shot aggregate for a single run. Never reused."""

    run_id: str
    project: ProjectInfo
    keystore: Keystore | None = None
    tools: ToolSet | None = None
    layout: BuildLayout
    config: Config
    warnings: list[str] = Field(default_factory=list)
