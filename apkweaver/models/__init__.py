"""Data models for apkweaver."""

from .build import BuildContext, BuildLayout, ToolSet
from .project import (
    DistinguishedName,
    Keystore,
    ProjectInfo,
    is_valid_package_name,
    validate_project_info,
)

__all__ = [
    "BuildContext",
    "BuildLayout",
    "ToolSet",
    "DistinguishedName",
    "Keystore",
    "ProjectInfo",
    "is_valid_package_name",
    "validate_project_info",
]
