"""
Aligner/Signer Service.

Runs zipalign and apksigner against a built APK, and creates keystores with
keytool when a project has none.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import SecretStr

from ...core.config import SigningConfig
from ...core.exceptions import FilesystemError
from ...core.logging import get_logger
from ...core.types import ServiceResult
from ...models.build import ToolSet
from ...models.project import Keystore
from ..process import CommandRunner

logger = get_logger(__name__)


def _flag(enabled: bool) -> str:
    return "true" if enabled else "false"


class AlignerSigner:
    """Alignment, signing and keystore creation."""

    def __init__(self, runner: CommandRunner, config: SigningConfig) -> None:
        """Initialize the service.

        Args:
            runner: Command runner used for every invocation.
            config: Signing configuration (schemes, alignment boundary).
        """
        self.runner = runner
        self.config = config

    async def align(self, zipalign: Path, unsigned_apk: Path, aligned_apk: Path) -> Path:
        """Align an APK in place.

        zipalign writes ``aligned_apk``, which then replaces ``unsigned_apk``.

        Args:
            zipalign: Aligner executable.
            unsigned_apk: Artifact to align.
            aligned_apk: Intermediate output path.

        Returns:
            ``unsigned_apk``, now aligned.

        Raises:
            ExternalProcessError: If zipalign fails.
            FilesystemError: If the replacement fails.
        """
        outcome = await self.runner.run(
            zipalign,
            ["-v", "-p", str(self.config.align_boundary), str(unsigned_apk), str(aligned_apk)],
            "APK alignment",
        )
        outcome.raise_on_failure("align", "APK alignment")

        try:
            unsigned_apk.unlink(missing_ok=True)
            os.rename(aligned_apk, unsigned_apk)
        except OSError as e:
            raise FilesystemError(message=f"Could not replace aligned APK: {e}", path=str(aligned_apk), cause=e)
        return unsigned_apk

    def signing_args(self, keystore: Keystore, input_apk: Path, signed_apk: Path) -> list[str]:
        """apksigner ``sign`` arguments, credentials included."""
        return [
            "sign",
            "--ks", keystore.store_file,
            "--ks-key-alias", keystore.key_alias,
            "--ks-pass", f"pass:{keystore.store_password.get_secret_value()}",
            "--key-pass", f"pass:{keystore.key_password.get_secret_value()}",
            "--v1-signing-enabled", _flag(self.config.v1_signing_enabled),
            "--v2-signing-enabled", _flag(self.config.v2_signing_enabled),
            "--v3-signing-enabled", _flag(self.config.v3_signing_enabled),
            "--v4-signing-enabled", _flag(self.config.v4_signing_enabled),
            "--out", str(signed_apk),
            str(input_apk),
        ]

    async def sign(self, tools: ToolSet, keystore: Keystore, input_apk: Path, signed_apk: Path) -> Path:
        """Sign an APK, then delete the unsigned input.

        With v4 signing enabled apksigner also writes ``<signed>.idsig``.

        Args:
            tools: Resolved tools; the signer must be present.
            keystore: Complete signing credentials.
            input_apk: Aligned, unsigned artifact.
            signed_apk: Output path.

        Returns:
            The signed artifact.

        Raises:
            ExternalProcessError: If apksigner fails.
        """
        if tools.apksigner is None:
            raise ValueError("sign() requires a located apksigner")

        args = self.signing_args(keystore, input_apk, signed_apk)
        if tools.apksigner_is_jar:
            outcome = await self.runner.run(tools.java, ["-jar", str(tools.apksigner), *args], "APK signing")  # type: ignore[arg-type]
        else:
            outcome = await self.runner.run(tools.apksigner, args, "APK signing")
        outcome.raise_on_failure("sign", "APK signing")

        try:
            input_apk.unlink(missing_ok=True)
        except OSError as e:
            raise FilesystemError(message=f"Could not remove unsigned APK: {e}", path=str(input_apk), cause=e)
        return signed_apk

    async def create_keystore(
        self,
        keytool: Path,
        keystore: Keystore,
        validity_days: int,
        dname: str,
    ) -> ServiceResult[Keystore]:
        """Create a keystore with one RSA key, unless the file already exists.

        Args:
            keytool: Credential tool executable.
            keystore: Target file, alias and passwords.
            validity_days: Certificate validity.
            dname: Certificate subject, e.g. ``CN=Jane Doe,C=US``.

        Returns:
            ServiceResult with the keystore, or a failure message.
        """
        if Path(keystore.store_file).exists():
            logger.info("Keystore exists", path=keystore.store_file)
            return ServiceResult.ok(keystore, created=False)

        Path(keystore.store_file).parent.mkdir(parents=True, exist_ok=True)
        outcome = await self.runner.run(
            keytool,
            [
                "-genkey",
                "-v",
                "-keystore", keystore.store_file,
                "-alias", keystore.key_alias,
                "-keyalg", "RSA",
                "-keysize", "2048",
                "-validity", str(validity_days),
                "-storepass", keystore.store_password.get_secret_value(),
                "-keypass", keystore.key_password.get_secret_value(),
                "-dname", dname,
            ],
            "Keystore creation",
        )
        if not outcome.success:
            logger.error("Keystore creation failed", exit_code=outcome.exit_code)
            return ServiceResult.fail(f"Keystore creation failed: {outcome.tail(5)}")
        return ServiceResult.ok(keystore, created=True)

    async def create_project_keystore(self, keytool: Path, keystore: Keystore) -> ServiceResult[Keystore]:
        """Create a keystore from a project's stored credentials.

        Validity is stored in years; the subject comes from the stored
        distinguished name.
        """
        if not keystore.is_complete:
            return ServiceResult.fail(f"Keystore info incomplete: {', '.join(keystore.missing_fields())}")
        years = keystore.validity or 25
        dname = keystore.dname.to_dname() if keystore.dname else ""
        if not dname:
            return ServiceResult.fail("Keystore subject (dname) is required to create a keystore")
        return await self.create_keystore(keytool, keystore, years * 365, dname)

    async def create_debug_keystore(self, keytool: Path, directory: Path) -> ServiceResult[Keystore]:
        """Create (or reuse) the shared debug keystore in ``directory``."""
        keystore = Keystore(
            store_file=str(directory / self.config.debug_keystore_name),
            store_password=SecretStr(self.config.debug_password),
            key_alias=self.config.debug_key_alias,
            key_password=SecretStr(self.config.debug_password),
        )
        return await self.create_keystore(
            keytool,
            keystore,
            self.config.debug_validity_days,
            self.config.debug_dname,
        )
