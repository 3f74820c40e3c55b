"""
Content Injector Service.

Places the engine asset tree and the project's game content into the
decompiled template, and optionally the project's launcher icons.
"""

from __future__ import annotations

import shutil
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from ...core.config import TemplateConfig
from ...core.exceptions import FilesystemError
from ...core.logging import get_logger
from ...models.build import BuildLayout

logger = get_logger(__name__)


@dataclass
class InjectionReport:
    """What one injection pass did."""

    engine_dir: Path
    game_dir: Path
    pruned: list[Path] = field(default_factory=list)
    icons_copied: bool = False
    warnings: list[str] = field(default_factory=list)


class ContentInjector:
    """Recursive copy and prune operations over the working tree."""

    def copy_dir(self, src: Path, dest: Path) -> Path:
        """Copy a directory tree, overwriting existing destination files.

        Args:
            src: Source directory; must exist.
            dest: Destination directory, created on demand.

        Returns:
            The destination directory.

        Raises:
            FilesystemError: If the source is missing or the copy fails.
        """
        if not src.is_dir():
            raise FilesystemError(message="Source directory not found", path=str(src))
        try:
            shutil.copytree(src, dest, dirs_exist_ok=True, copy_function=shutil.copyfile)
        except OSError as e:
            raise FilesystemError(message=f"Copy failed: {e}", path=str(src), cause=e)
        return dest

    def prune(self, root: Path, members: Iterable[str]) -> list[Path]:
        """Remove named entries directly under ``root`` if present.

        Args:
            root: Directory to prune.
            members: Entry names; files and directories are both removed.

        Returns:
            Entries that were removed.
        """
        removed: list[Path] = []
        for name in members:
            target = root / name
            try:
                if target.is_dir() and not target.is_symlink():
                    shutil.rmtree(target)
                elif target.exists() or target.is_symlink():
                    target.unlink()
                else:
                    continue
            except OSError as e:
                raise FilesystemError(message=f"Could not remove stale entry: {e}", path=str(target), cause=e)
            removed.append(target)
        return removed

    def inject(self, layout: BuildLayout, template: TemplateConfig) -> InjectionReport:
        """Copy engine, game content and icons into the decompiled tree.

        Args:
            layout: Paths of the current run.
            template: Template layout configuration.

        Returns:
            InjectionReport describing the pass.

        Raises:
            FilesystemError: If the engine or game content cannot be copied.
        """
        engine_dest = layout.work_dir / template.asset_slot
        logger.info("Copying engine", source=str(layout.engine_source), dest=str(engine_dest))
        self.copy_dir(layout.engine_source, engine_dest)

        pruned = self.prune(engine_dest, template.stale_members)

        game_dest = engine_dest / template.game_dir_name
        logger.info("Copying game resources", source=str(layout.game_source), dest=str(game_dest))
        self.copy_dir(layout.game_source, game_dest)

        report = InjectionReport(engine_dir=engine_dest, game_dir=game_dest, pruned=pruned)

        if (layout.icon_source / template.icon_marker).is_file():
            icon_dest = layout.work_dir / template.icon_dest_dir
            logger.info("Copying icons", source=str(layout.icon_source), dest=str(icon_dest))
            try:
                self.copy_dir(layout.icon_source, icon_dest)
                report.icons_copied = True
            except FilesystemError as e:
                logger.warning("Icon copy failed, keeping template icons", error=str(e))
                report.warnings.append(f"Icon copy failed: {e.message}")
        else:
            logger.info("Skip copying icons")

        return report
