"""
Decompiler Service.

Adapter for APKEditor, which turns an APK into an editable tree of resources
and smali (``d``) and builds such a tree back into an APK (``b``).
"""

from __future__ import annotations

from pathlib import Path

from ...core.logging import get_logger
from ..process import CommandRunner

logger = get_logger(__name__)


class DecompilerService:
    """Runs APKEditor through the Java runtime."""

    def __init__(self, runner: CommandRunner, java: Path, apk_editor: Path) -> None:
        """Initialize the adapter.

        Args:
            runner: Command runner used for every invocation.
            java: Java runtime executable.
            apk_editor: APKEditor.jar archive.
        """
        self.runner = runner
        self.java = java
        self.apk_editor = apk_editor

    async def decompile(self, apk_path: Path, output_dir: Path) -> Path:
        """Decompile an APK into ``output_dir``.

        Args:
            apk_path: Archive to decompile.
            output_dir: Destination tree; must not exist yet.

        Returns:
            The output directory.

        Raises:
            ExternalProcessError: If APKEditor exits non-zero.
        """
        logger.info("Starting APK decompilation", apk=str(apk_path), output=str(output_dir))
        outcome = await self.runner.run(
            self.java,
            ["-jar", str(self.apk_editor), "d", "-i", str(apk_path), "-o", str(output_dir)],
            "APK decompilation",
        )
        outcome.raise_on_failure("decompile", "APK decompilation")
        return output_dir

    async def recompile(self, source_dir: Path, output_apk: Path) -> Path:
        """Build a decompiled tree into an unsigned APK.

        Args:
            source_dir: Decompiled (and patched) tree.
            output_apk: Destination archive.

        Returns:
            The output archive path.

        Raises:
            ExternalProcessError: If APKEditor exits non-zero.
        """
        logger.info("Building APK", source=str(source_dir), output=str(output_apk))
        outcome = await self.runner.run(
            self.java,
            ["-jar", str(self.apk_editor), "b", "-i", str(source_dir), "-o", str(output_apk)],
            "Build APK",
        )
        outcome.raise_on_failure("recompile", "Build APK")
        return output_apk
