"""
Asset Patcher Service.

Rewrites the template's identity (package name, display name, version) across
the decompiled tree and moves the smali package directory so it mirrors the
new package name.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from xml.sax.saxutils import escape

from ...core.config import TemplateConfig
from ...core.exceptions import FilesystemError, StructuralMismatchError
from ...core.logging import get_logger
from ...models.project import ProjectInfo
from ..tools import first_existing

logger = get_logger(__name__)

# Written at the tree root after a move; holds the package the tree was relocated to
RELOCATION_MARKER = ".relocated-package"


def escape_string_resource(value: str) -> str:
    """Escape text for an Android ``<string>`` resource body."""
    return escape(value).replace("'", "\\'").replace('"', '\\"')


def escape_attribute(value: str) -> str:
    """Escape text for a double-quoted XML attribute."""
    return escape(value, {'"': "&quot;"})


@dataclass(frozen=True)
class Substitution:
    """One literal replacement applied across the tree."""

    label: str
    old: str
    new: str


def identity_substitutions(template: TemplateConfig, project: ProjectInfo) -> list[Substitution]:
    """Build the ordered identity rewrites for a project.

    The order is fixed: package token, package path, display name, version
    code, version name. A later rewrite never matches text produced by an
    earlier one.

    Args:
        template: Sentinel values baked into the template APK.
        project: Target identity.

    Returns:
        Substitutions in application order.
    """
    return [
        Substitution("package_name", template.package_name, project.package_name),
        Substitution(
            "package_path",
            template.package_name.replace(".", "/"),
            project.package_path,
        ),
        Substitution(
            "app_name",
            f'<string name="app_name">{template.app_name}</string>',
            f'<string name="app_name">{escape_string_resource(project.app_name)}</string>',
        ),
        Substitution(
            "version_code",
            f'android:versionCode="{template.version_code}"',
            f'android:versionCode="{project.version_code}"',
        ),
        Substitution(
            "version_name",
            f'android:versionName="{template.version_name}"',
            f'android:versionName="{escape_attribute(project.version_name)}"',
        ),
    ]


class AssetPatcher:
    """Literal text rewriting and package relocation over a decompiled tree."""

    def __init__(self, extensions: Iterable[str]) -> None:
        """Initialize the patcher.

        Args:
            extensions: Allow-listed file extensions, e.g. ``.xml``.
        """
        self.extensions = frozenset(ext.lower() for ext in extensions)

    def _rewrite_file(self, path: Path, old: str, new: str) -> bool:
        try:
            with open(path, encoding="utf-8", errors="surrogateescape", newline="") as f:
                content = f.read()
            if old not in content:
                return False
            with open(path, "w", encoding="utf-8", errors="surrogateescape", newline="") as f:
                f.write(content.replace(old, new))
        except OSError as e:
            raise FilesystemError(message=f"Could not rewrite file: {e}", path=str(path), cause=e)
        return True

    def replace_text_in_tree(self, root: Path, old: str, new: str) -> list[Path]:
        """Replace every occurrence of ``old`` in allow-listed files under ``root``.

        Directories are walked depth-first in sorted order. A file is written
        back only if it contains ``old``.

        Args:
            root: Directory to walk.
            old: Exact text to find.
            new: Replacement text.

        Returns:
            Files that were rewritten.

        Raises:
            FilesystemError: If a directory or file cannot be read or written.
        """
        if not old or old == new:
            return []

        rewritten: list[Path] = []
        try:
            entries = sorted(root.iterdir())
        except OSError as e:
            raise FilesystemError(message=f"Could not read directory: {e}", path=str(root), cause=e)

        for entry in entries:
            if entry.is_dir() and not entry.is_symlink():
                rewritten.extend(self.replace_text_in_tree(entry, old, new))
            elif entry.is_file() and entry.suffix.lower() in self.extensions:
                if self._rewrite_file(entry, old, new):
                    logger.debug("Replaced text", file=str(entry))
                    rewritten.append(entry)
        return rewritten

    def patch_identity(self, root: Path, template: TemplateConfig, project: ProjectInfo) -> dict[str, int]:
        """Apply all identity substitutions in order.

        Args:
            root: Decompiled tree.
            template: Template sentinel values.
            project: Target identity.

        Returns:
            Number of rewritten files per substitution label.
        """
        counts: dict[str, int] = {}
        for substitution in identity_substitutions(template, project):
            files = self.replace_text_in_tree(root, substitution.old, substitution.new)
            counts[substitution.label] = len(files)
            logger.info("Applied substitution", label=substitution.label, files=len(files))
        return counts

    def relocate_package(
        self,
        root: Path,
        bytecode_dirs: Sequence[str],
        old_package: str,
        new_package: str,
    ) -> Path:
        """Move the smali package directory to mirror a renamed package.

        The containers in ``bytecode_dirs`` are searched in order and the first
        one holding the old package directory is used. A tree this method already
        relocated to ``new_package`` is left untouched.

        Args:
            root: Decompiled tree.
            bytecode_dirs: Container directories relative to ``root``.
            old_package: Dotted template package.
            new_package: Dotted target package.

        Returns:
            The package directory after relocation.

        Raises:
            StructuralMismatchError: If no container holds the old package.
            FilesystemError: If the move fails.
        """
        old_segments = old_package.split(".")
        new_segments = new_package.split(".")
        containers = [root / Path(d) for d in bytecode_dirs]
        old_candidates = [c.joinpath(*old_segments) for c in containers]

        source = first_existing(old_candidates, Path.is_dir)
        if source is not None and old_package == new_package:
            return source

        marker = root / RELOCATION_MARKER
        if marker.is_file() and marker.read_text(encoding="utf-8").strip() == new_package:
            for container in containers:
                existing = container.joinpath(*new_segments)
                if existing.is_dir():
                    logger.info("Package directory already relocated", path=str(existing))
                    return existing

        if source is None:
            raise StructuralMismatchError(
                message="Could not find package directory in decompiled APK",
                searched=[str(p) for p in old_candidates],
            )

        logger.info("Found package directory", path=str(source))
        container = source.parents[len(old_segments) - 1]
        target = container.joinpath(*new_segments)

        try:
            self._move_directory(source, target, container)
            self._prune_empty_parents(source.parent, container)
            marker.write_text(new_package, encoding="utf-8")
        except OSError as e:
            raise FilesystemError(message=f"Could not move package directory: {e}", path=str(source), cause=e)

        logger.info("Files moved successfully", source=str(source), target=str(target))
        return target

    @staticmethod
    def _move_directory(source: Path, target: Path, container: Path) -> None:
        if target.is_relative_to(source) or source.is_relative_to(target):
            # One path contains the other; stage the leaf directly under the container
            staging = container / f".{source.name}.relocating"
            os.rename(source, staging)
            source = staging
        target.parent.mkdir(parents=True, exist_ok=True)
        if target.is_dir() and not any(target.iterdir()):
            target.rmdir()
        os.rename(source, target)

    @staticmethod
    def _prune_empty_parents(directory: Path, stop: Path) -> None:
        while directory != stop and directory.is_relative_to(stop) and directory.is_dir():
            if any(directory.iterdir()):
                break
            directory.rmdir()
            directory = directory.parent
