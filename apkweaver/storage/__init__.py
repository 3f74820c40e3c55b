"""Project-config store for apkweaver."""

from .interface import ProjectStore
from .local import LocalProjectStore

__all__ = ["ProjectStore", "LocalProjectStore"]
