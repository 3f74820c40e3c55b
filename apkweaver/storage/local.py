"""
Local filesystem project store.

Project metadata lives in ``<project>/game/config.txt`` as ``Key:value;``
lines, next to the engine's own settings. Signing credentials live in
``<project>/key.properties`` in Java properties syntax.
"""

from __future__ import annotations

import re
from pathlib import Path

import aiofiles
import aiofiles.os
from pydantic import SecretStr

from ..core.logging import get_logger
from ..models.project import DistinguishedName, Keystore, ProjectInfo
from .interface import ProjectStore

logger = get_logger(__name__)

# ProjectInfo field -> config.txt key
PROJECT_KEYS = {
    "app_name": "Game_name",
    "package_name": "Package_name",
    "version_name": "Version_name",
    "version_code": "Version_code",
}

# DistinguishedName field -> key.properties key suffix
DNAME_KEYS = {
    "first_and_last_name": "firstAndLastName",
    "organizational_unit": "organizationalUnit",
    "organization": "organization",
    "city_or_locality": "cityOrLocality",
    "state_or_province": "stateOrProvince",
    "country_code": "countryCode",
}

_PROPERTY_LINE = re.compile(r"^((?:\\.|[^=:\s\\])+)\s*[=:\s]?\s*(.*)$")
_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


def parse_config_line(line: str) -> tuple[str, str] | None:
    """Split a ``Key:value;`` line, or return None for anything else."""
    stripped = line.strip()
    if not stripped or ":" not in stripped:
        return None
    key, _, value = stripped.partition(":")
    return key.strip(), value.strip().removesuffix(";").strip()


def _unescape(text: str) -> str:
    out: list[str] = []
    chars = iter(text)
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, "")
            out.append(_ESCAPES.get(nxt, nxt))
        else:
            out.append(ch)
    return "".join(out)


def _escape(text: str, is_key: bool = False) -> str:
    escaped = text.replace("\\", "\\\\").replace("\n", "\\n")
    if is_key:
        escaped = escaped.replace("=", "\\=").replace(":", "\\:").replace(" ", "\\ ")
    return escaped


def parse_properties(text: str) -> dict[str, str]:
    """Parse Java properties text (no line continuations)."""
    result: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.lstrip()
        if not line or line[0] in "#!":
            continue
        match = _PROPERTY_LINE.match(line)
        if match:
            result[_unescape(match.group(1))] = _unescape(match.group(2).rstrip())
    return result


def dump_properties(values: dict[str, str]) -> str:
    return "".join(f"{_escape(key, is_key=True)}={_escape(value)}\n" for key, value in values.items())


class LocalProjectStore(ProjectStore):
    """Reads and writes project files inside the project directory."""

    def __init__(
        self,
        config_file: Path = Path("game", "config.txt"),
        properties_file: Path = Path("key.properties"),
    ) -> None:
        """Initialize the store.

        Args:
            config_file: Metadata file, relative to the project.
            properties_file: Credentials file, relative to the project.
        """
        self.config_file = config_file
        self.properties_file = properties_file

    async def _read_text(self, path: Path) -> str | None:
        if not await aiofiles.os.path.exists(path):
            return None
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            return await f.read()

    async def _write_text(self, path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(content)

    async def load_project_info(self, project_path: Path) -> ProjectInfo:
        text = await self._read_text(project_path / self.config_file)
        if text is None:
            logger.warning("Project config not found", path=str(project_path / self.config_file))
            return ProjectInfo()

        entries = dict(filter(None, (parse_config_line(line) for line in text.splitlines())))
        version_code = entries.get(PROJECT_KEYS["version_code"], "")
        return ProjectInfo(
            app_name=entries.get(PROJECT_KEYS["app_name"], ""),
            package_name=entries.get(PROJECT_KEYS["package_name"], ""),
            version_name=entries.get(PROJECT_KEYS["version_name"], ""),
            version_code=int(version_code) if version_code.isdigit() else 0,
        )

    async def save_project_info(self, project_path: Path, info: ProjectInfo) -> None:
        path = project_path / self.config_file
        existing = await self._read_text(path) or ""
        values = {key: str(getattr(info, field)) for field, key in PROJECT_KEYS.items()}

        lines: list[str] = []
        for line in existing.splitlines():
            parsed = parse_config_line(line)
            if parsed and parsed[0] in values:
                lines.append(f"{parsed[0]}:{values.pop(parsed[0])};")
            else:
                lines.append(line)
        lines.extend(f"{key}:{value};" for key, value in values.items())

        await self._write_text(path, "\n".join(lines) + "\n")
        logger.info("Saved project info", path=str(path))

    async def load_keystore(self, project_path: Path) -> Keystore | None:
        text = await self._read_text(project_path / self.properties_file)
        if text is None:
            return None

        props = parse_properties(text)
        dname_values = {
            field: props.get(f"dname.{key}", "") for field, key in DNAME_KEYS.items()
        }
        validity = props.get("validity", "")
        return Keystore(
            store_file=props.get("storeFile", ""),
            store_password=SecretStr(props.get("storePassword", "")),
            key_alias=props.get("keyAlias", ""),
            key_password=SecretStr(props.get("keyPassword", "")),
            validity=int(validity) if validity.isdigit() and int(validity) > 0 else None,
            dname=DistinguishedName(**dname_values) if any(dname_values.values()) else None,
        )

    async def save_keystore(self, project_path: Path, keystore: Keystore) -> None:
        values = {
            "storeFile": keystore.store_file,
            "storePassword": keystore.store_password.get_secret_value(),
            "keyAlias": keystore.key_alias,
            "keyPassword": keystore.key_password.get_secret_value(),
        }
        if keystore.validity:
            values["validity"] = str(keystore.validity)
        if keystore.dname:
            for field, key in DNAME_KEYS.items():
                value = getattr(keystore.dname, field)
                if value:
                    values[f"dname.{key}"] = value

        path = project_path / self.properties_file
        await self._write_text(path, dump_properties(values))
        logger.info("Saved keystore properties", path=str(path))
