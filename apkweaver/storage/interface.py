"""
Project store interface.

Defines the abstract interface for reading and writing a project's metadata
and signing credentials, so the pipeline never depends on their file formats.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from ..models.project import Keystore, ProjectInfo


class ProjectStore(ABC):
    """Abstract project-config store."""

    @abstractmethod
    async def load_project_info(self, project_path: Path) -> ProjectInfo:
        """Load project metadata.

        Missing values come back empty; validation is the caller's job.

        Args:
            project_path: Game project directory.

        Returns:
            The stored ProjectInfo.
        """
        ...

    @abstractmethod
    async def save_project_info(self, project_path: Path, info: ProjectInfo) -> None:
        """Persist project metadata.

        Args:
            project_path: Game project directory.
            info: Metadata to store.
        """
        ...

    @abstractmethod
    async def load_keystore(self, project_path: Path) -> Keystore | None:
        """Load signing credentials.

        Args:
            project_path: Game project directory.

        Returns:
            The stored Keystore, or None if the project has none.
        """
        ...

    @abstractmethod
    async def save_keystore(self, project_path: Path, keystore: Keystore) -> None:
        """Persist signing credentials.

        Args:
            project_path: Game project directory.
            keystore: Credentials to store.
        """
        ...
