"""
Tool Locator Service.

Resolves the external tools a build needs. System-wide installs are preferred:
a tool counts as installed when its bare name can be executed. Otherwise an
ordered list of bundled fallbacks under the lib directory is checked.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Protocol

from ...core.config import ToolsConfig
from ...core.logging import get_logger
from ...models.build import ToolSet

logger = get_logger(__name__)

PathPredicate = Callable[[Path], bool]


class InvocationProbe(Protocol):
    """Decides whether a bare command name can be executed."""

    def __call__(self, command: str) -> bool: ...


def is_executable_file(path: Path) -> bool:
    """Check that a path is a regular file the current user may execute."""
    return path.is_file() and os.access(path, os.X_OK)


def first_existing(
    candidates: Iterable[Path | None],
    predicate: PathPredicate = Path.exists,
) -> Path | None:
    """Return the first candidate accepted by ``predicate``.

    Args:
        candidates: Paths in priority order; ``None`` entries are skipped.
        predicate: Acceptance test, ``Path.exists`` by default.

    Returns:
        The first accepted path, or None.
    """
    for candidate in candidates:
        if candidate is not None and predicate(candidate):
            return candidate
    return None


class SubprocessProbe:
    """Probe that runs the command once with no arguments."""

    def __init__(self, timeout: float = 30.0) -> None:
        self.timeout = timeout

    def __call__(self, command: str) -> bool:
        try:
            subprocess.run(
                [command],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            # It started, so it is invocable
            return True
        except OSError:
            return False
        return True


class ToolLocator:
    """Resolves paths for every tool used by the build pipeline."""

    def __init__(self, config: ToolsConfig, probe: InvocationProbe | None = None) -> None:
        """Initialize the locator.

        Args:
            config: Tools configuration (lib directory, overrides, platform).
            probe: System-wide invocability check. Defaults to SubprocessProbe.
        """
        self.config = config
        self.probe = probe or SubprocessProbe(config.probe_timeout_seconds)

    def _exe(self, name: str) -> str:
        return f"{name}.exe" if self.config.platform == "windows" else name

    def _jdk_bin(self) -> Path:
        jdk = self.config.lib_path / "jdk-21"
        if self.config.platform == "mac":
            return jdk / "Contents" / "Home" / "bin"
        return jdk / "bin"

    def bundled_candidates(self, name: str) -> list[Path]:
        """Bundled fallback paths for a tool, in priority order.

        Args:
            name: One of ``java``, ``keytool``, ``zipalign``, ``apksigner``.

        Returns:
            Candidate paths; empty for unknown tools.
        """
        lib = self.config.lib_path
        if name == "java":
            return [self._jdk_bin() / self._exe("java")]
        if name == "keytool":
            return [self._jdk_bin() / self._exe("keytool")]
        if name == "zipalign":
            return [lib / "build-tools" / self._exe("zipalign")]
        if name == "apksigner":
            return [lib / "build-tools" / "lib" / "apksigner.jar"]
        return []

    def locate(self, name: str) -> Path | None:
        """Locate an executable tool.

        Never raises. A bundled file that exists but cannot be executed is
        treated as absent.

        Args:
            name: Bare command name.

        Returns:
            Path to the tool, or None.
        """
        if self.probe(name):
            resolved = shutil.which(name)
            logger.debug("Tool found in system path", tool=name, path=resolved or name)
            return Path(resolved) if resolved else Path(name)

        found = first_existing(self.bundled_candidates(name), is_executable_file)
        logger.debug("Bundled tool lookup", tool=name, found=str(found) if found else None)
        return found

    def locate_apk_editor(self) -> Path | None:
        return first_existing(
            [self.config.apk_editor_path, self.config.lib_path / "APKEditor.jar"],
            Path.is_file,
        )

    def locate_template(self) -> Path | None:
        return first_existing(
            [self.config.template_apk_path, self.config.lib_path / "webgal-template.apk"],
            Path.is_file,
        )

    def locate_runtime(self) -> Path | None:
        override = self.config.java_path
        if override is not None and is_executable_file(override):
            return override
        return self.locate("java")

    def locate_signer(self) -> tuple[Path | None, bool]:
        """Locate apksigner.

        Returns:
            ``(path, is_jar)``; a jar must be run with the Java runtime.
        """
        if self.probe("apksigner"):
            resolved = shutil.which("apksigner")
            return (Path(resolved) if resolved else Path("apksigner")), False
        jar = first_existing(self.bundled_candidates("apksigner"), Path.is_file)
        return jar, jar is not None

    def resolve(self) -> ToolSet:
        """Resolve every tool into an immutable ToolSet."""
        apksigner, apksigner_is_jar = self.locate_signer()
        tools = ToolSet(
            apk_editor=self.locate_apk_editor(),
            template_apk=self.locate_template(),
            java=self.locate_runtime(),
            keytool=self.locate("keytool"),
            zipalign=self.locate("zipalign"),
            apksigner=apksigner,
            apksigner_is_jar=apksigner_is_jar,
        )
        logger.info(
            "Resolved tools",
            apk_editor=str(tools.apk_editor),
            template_apk=str(tools.template_apk),
            java=str(tools.java),
            zipalign=str(tools.zipalign),
            apksigner=str(tools.apksigner),
        )
        return tools
