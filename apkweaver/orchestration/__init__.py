"""Build orchestration for apkweaver."""

from .pipeline import BuildPipeline, clean_workspace, run_build

__all__ = ["BuildPipeline", "clean_workspace", "run_build"]
