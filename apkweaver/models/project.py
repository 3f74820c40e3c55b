"""
Project and keystore models.

These models describe the game project being exported and the credentials
used to sign it. They are read from the project-config store and only read
and validated by the build pipeline.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, SecretStr

from ..core.exceptions import ConfigurationError

PACKAGE_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_]*(?:\.[a-z0-9_]+)+$")


def is_valid_package_name(package_name: str) -> bool:
    """Check a dotted Android package identifier.

    Args:
        package_name: Candidate identifier, e.g. ``com.example.app``.

    Returns:
        True if the identifier has at least two lowercase segments.
    """
    return bool(PACKAGE_NAME_PATTERN.match(package_name))


class ProjectInfo(BaseModel):
    """Identity of the game project being exported."""

    app_name: str = Field(default="", description="Display name shown on the launcher")
    package_name: str = Field(default="", description="Dotted package identifier")
    version_name: str = Field(default="", description="Free-form version string")
    version_code: int = Field(default=0, description="Monotonic integer version")

    @property
    def package_path(self) -> str:
        """Package name in slash-path form (``com/example/app``)."""
        return self.package_name.replace(".", "/")

    @property
    def artifact_basename(self) -> str:
        """Base file name shared by all artifacts of this version.

        Path separators in the free-form version name become underscores.
        """
        version = self.version_name.replace("/", "_").replace("\\", "_")
        return f"{self.package_name}-{version}-build{self.version_code}"


def validate_project_info(info: ProjectInfo) -> None:
    """Validate every field required to repackage a project.

    Args:
        info: Project metadata to check.

    Raises:
        ConfigurationError: Naming the first failing field.
    """
    if not info.app_name.strip():
        raise ConfigurationError(message="App name not found", field_name="app_name")
    if not info.package_name:
        raise ConfigurationError(message="Package name not found", field_name="package_name")
    if not is_valid_package_name(info.package_name):
        raise ConfigurationError(
            message=f"Package name is invalid: {info.package_name}",
            field_name="package_name",
        )
    if not info.version_name.strip():
        raise ConfigurationError(message="Version name not found", field_name="version_name")
    if info.version_code < 1:
        raise ConfigurationError(
            message=f"Version code must be a positive integer, got {info.version_code}",
            field_name="version_code",
        )


class DistinguishedName(BaseModel):
    """Certificate subject used when creating a new keystore."""

    first_and_last_name: str = ""
    organizational_unit: str = ""
    organization: str = ""
    city_or_locality: str = ""
    state_or_province: str = ""
    country_code: str = ""

    def to_dname(self) -> str:
        """Render as an X.500 string, skipping empty parts.

        Returns:
            str: e.g. ``CN=Jane Doe,O=Example,C=US``.
        """
        parts = [
            ("CN", self.first_and_last_name),
            ("OU", self.organizational_unit),
            ("O", self.organization),
            ("L", self.city_or_locality),
            ("ST", self.state_or_province),
            ("C", self.country_code),
        ]
        escaped = [(tag, value.strip().replace(",", "\\,")) for tag, value in parts]
        return ",".join(f"{tag}={value}" for tag, value in escaped if value)


class Keystore(BaseModel):
    """Signing credentials for a project."""

    store_file: str = Field(default="", description="Path to the keystore file")
    store_password: SecretStr = Field(default=SecretStr(""))
    key_alias: str = Field(default="")
    key_password: SecretStr = Field(default=SecretStr(""))
    validity: int | None = Field(default=None, ge=1, description="Validity in years, for creation only")
    dname: DistinguishedName | None = Field(default=None, description="Subject, for creation only")

    def missing_fields(self) -> list[str]:
        """Names of required signing fields that are empty."""
        required = {
            "store_file": self.store_file,
            "store_password": self.store_password.get_secret_value(),
            "key_alias": self.key_alias,
            "key_password": self.key_password.get_secret_value(),
        }
        return [name for name, value in required.items() if not value]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()
