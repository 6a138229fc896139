"""APK aligning and signing for dev-mode archives."""

import logging
import shutil
import threading
from pathlib import Path

from secureapk.exceptions import (
    APKAlignError,
    APKSignError,
    KeystoreError,
    ProcessError,
    ToolNotFoundError,
)
from secureapk.models.apk import RepackagedArtifact
from secureapk.utils.android_sdk import find_build_tool, find_jdk_tool
from secureapk.utils.config import Settings, get_settings
from secureapk.utils.process import run_tool

logger = logging.getLogger(__name__)


class APKSigner:
    """Aligns and signs archives with a lazily provisioned debug keystore."""

    KEYSTORE_DNAME = "CN=Android Debug,O=Android,C=US"

    # Shared by every signer in the process; guards keystore creation
    _keystore_lock = threading.Lock()

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    @property
    def keystore_path(self) -> Path:
        return self.settings.keystore_path

    def ensure_keystore(self) -> bool:
        """Create the debug keystore if it does not exist yet.

        Returns:
            True if this call generated the keystore.

        Raises:
            KeystoreError: If keytool is missing or fails.
        """
        keystore = self.keystore_path
        with self._keystore_lock:
            if keystore.is_file():
                return False

            try:
                keytool = find_jdk_tool("keytool")
            except ToolNotFoundError as e:
                raise KeystoreError(str(e)) from e

            try:
                keystore.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise KeystoreError(
                    f"Cannot create keystore directory {keystore.parent}: {e}"
                ) from e

            cmd = [
                str(keytool),
                "-genkeypair",
                "-keystore",
                str(keystore),
                "-alias",
                self.settings.key_alias,
                "-keyalg",
                "RSA",
                "-keysize",
                "2048",
                "-validity",
                "10000",
                "-storepass",
                self.settings.keystore_pass,
                "-keypass",
                self.settings.key_pass,
                "-dname",
                self.KEYSTORE_DNAME,
            ]

            try:
                run_tool(cmd, check=True, timeout=self.settings.tool_timeout)
            except ProcessError as e:
                keystore.unlink(missing_ok=True)
                raise KeystoreError(f"Failed to generate debug keystore: {e}") from e

            if not keystore.is_file():
                raise KeystoreError(
                    f"Keystore generation completed but file not found: {keystore}"
                )

        logger.info("Generated debug keystore at %s", keystore)
        return True

    def align(self, input_apk: Path, output: Path) -> Path:
        """Align APK using zipalign.

        Raises:
            APKAlignError: If zipalign is missing or fails.
        """
        try:
            zipalign = find_build_tool("zipalign")
        except ToolNotFoundError as e:
            raise APKAlignError(str(e)) from e

        # -P 16: page-align uncompressed .so files for 16 KiB pages
        cmd = [str(zipalign), "-P", "16", "-f", "4", str(input_apk), str(output)]

        try:
            run_tool(cmd, check=True, timeout=self.settings.tool_timeout)
        except ProcessError as e:
            raise APKAlignError(f"Failed to align APK: {e}") from e

        if not output.is_file():
            raise APKAlignError(f"Alignment completed but APK not found: {output}")

        return output

    def sign(self, input_apk: Path, output: Path) -> Path:
        """Sign APK with apksigner, or jarsigner when apksigner is absent.

        Raises:
            APKSignError: If no signer is available or signing fails.
        """
        try:
            apksigner = find_build_tool("apksigner")
        except ToolNotFoundError:
            logger.info("apksigner not found; falling back to jarsigner")
            return self.sign_with_jarsigner(input_apk, output)

        cmd = [
            str(apksigner),
            "sign",
            "--ks",
            str(self.keystore_path),
            "--ks-key-alias",
            self.settings.key_alias,
            "--ks-pass",
            f"pass:{self.settings.keystore_pass}",
            "--key-pass",
            f"pass:{self.settings.key_pass}",
            "--out",
            str(output),
            str(input_apk),
        ]

        try:
            run_tool(cmd, check=True, timeout=self.settings.tool_timeout)
        except ProcessError as e:
            raise APKSignError(f"Failed to sign APK: {e}") from e

        if not output.is_file():
            raise APKSignError(f"Signing completed but APK not found: {output}")

        return output

    def sign_with_jarsigner(self, input_apk: Path, output: Path) -> Path:
        """v1 (JAR) signing; jarsigner signs in place, so a copy is signed.

        Raises:
            APKSignError: If jarsigner is missing or fails.
        """
        try:
            jarsigner = find_jdk_tool("jarsigner")
        except ToolNotFoundError as e:
            raise APKSignError(str(e)) from e

        try:
            shutil.copyfile(input_apk, output)
        except OSError as e:
            raise APKSignError(f"Failed to stage APK for signing: {e}") from e

        cmd = [
            str(jarsigner),
            "-keystore",
            str(self.keystore_path),
            "-storepass",
            self.settings.keystore_pass,
            "-keypass",
            self.settings.key_pass,
            "-sigalg",
            "SHA256withRSA",
            "-digestalg",
            "SHA-256",
            str(output),
            self.settings.key_alias,
        ]

        try:
            run_tool(cmd, check=True, timeout=self.settings.tool_timeout)
        except ProcessError as e:
            output.unlink(missing_ok=True)
            raise APKSignError(f"Failed to sign APK: {e}") from e

        return output

    def sign_artifact(self, unsigned_apk: Path) -> RepackagedArtifact:
        """Align and sign a dev-mode archive, degrading instead of failing.

        - zipalign unavailable or failing: the aligned file is a plain copy
        - keystore or signing failure: the aligned unsigned copy is delivered
        - nothing usable: the input archive itself is delivered

        Never raises for tool or I/O failures.
        """
        aligned_apk = unsigned_apk.with_name(f"{unsigned_apk.stem}_aligned.apk")
        signed_apk = unsigned_apk.with_name(f"{unsigned_apk.stem}_signed.apk")

        aligned = False
        try:
            self.align(unsigned_apk, aligned_apk)
            aligned = True
        except APKAlignError as e:
            logger.warning("Alignment skipped: %s", e)
            try:
                shutil.copyfile(unsigned_apk, aligned_apk)
            except OSError as copy_error:
                logger.error("Could not stage archive for signing: %s", copy_error)
                aligned_apk.unlink(missing_ok=True)
                return RepackagedArtifact(path=unsigned_apk)

        try:
            generated = self.ensure_keystore()
        except KeystoreError as e:
            logger.warning("Signing skipped, delivering unsigned APK: %s", e)
            return RepackagedArtifact(path=aligned_apk, aligned=aligned)

        try:
            self.sign(aligned_apk, signed_apk)
        except APKSignError as e:
            logger.warning("Signing failed, delivering unsigned APK: %s", e)
            return RepackagedArtifact(
                path=aligned_apk, aligned=aligned, keystore_generated=generated
            )

        for intermediate in (unsigned_apk, aligned_apk):
            try:
                intermediate.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Could not remove %s: %s", intermediate, e)

        logger.info("Signed APK written to %s", signed_apk)
        return RepackagedArtifact(
            path=signed_apk,
            signed=True,
            aligned=aligned,
            keystore_generated=generated,
        )
