"""APK input validation utilities."""

from pathlib import Path

from secureapk.exceptions import ArchiveError, SecureAPKError

# ZIP local file header (APKs are ZIP files)
ZIP_FILE_HEADER = b"PK\x03\x04"


def validate_apk_path(
    apk_path: Path,
    *,
    error_cls: type[SecureAPKError] = ArchiveError,
) -> None:
    """Validate that a path points at a readable zip-format package.

    Performs the following checks:
    - File exists
    - Path is a file (not a directory)
    - File starts with the ZIP local header magic

    Uploaded files often carry temporary names, so the extension is not
    checked.

    Args:
        apk_path: Path to the APK file to validate.
        error_cls: Exception class to raise on validation failure.

    Raises:
        SecureAPKError (or subclass): If validation fails.
    """
    if not apk_path.exists():
        raise error_cls(f"APK not found: {apk_path}")

    if not apk_path.is_file():
        raise error_cls(f"Not a file: {apk_path}")

    try:
        with apk_path.open("rb") as f:
            header = f.read(len(ZIP_FILE_HEADER))
    except OSError as e:
        raise error_cls(f"Failed to read APK header: {e}") from e

    if len(header) < len(ZIP_FILE_HEADER):
        raise error_cls("File is too small to be a valid APK")

    if header != ZIP_FILE_HEADER:
        raise error_cls(
            f"Header mismatch. Expected: {ZIP_FILE_HEADER!r}, got: {header!r}"
        )

