"""APK extraction into a job-scoped scratch directory."""

import logging
import re
import shutil
import tempfile
import zipfile
from pathlib import Path, PurePosixPath
from types import TracebackType

from secureapk.exceptions import ArchiveError, CleanupError
from secureapk.models.apk import ExtractionResult

logger = logging.getLogger(__name__)

_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")
_COPY_CHUNK = 1024 * 1024


def safe_target(root: Path, entry_name: str) -> Path | None:
    """Resolve an archive entry name below root.

    Backslashes are treated as separators. Returns None for absolute names,
    drive-qualified names, and anything that resolves outside root.
    """
    name = entry_name.replace("\\", "/")
    if not name or PurePosixPath(name).is_absolute() or _DRIVE_PREFIX.match(name):
        return None

    target = (root / name).resolve()
    if target == root or not target.is_relative_to(root):
        return None
    return target


def extract_archive(apk_path: Path, root: Path) -> ExtractionResult:
    """Stream every file entry of apk_path into root.

    Directory entries are skipped. Entries that would escape root, or that
    fail to write, are logged and recorded as skipped; extraction continues.

    Raises:
        ArchiveError: If the archive itself cannot be opened or listed.
    """
    root = root.resolve()
    result = ExtractionResult(root=root)

    try:
        archive = zipfile.ZipFile(apk_path, "r")
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveError(f"Cannot open package archive {apk_path}: {e}") from e

    with archive:
        try:
            entries = archive.infolist()
        except (zipfile.BadZipFile, OSError) as e:
            raise ArchiveError(f"Cannot read archive directory: {e}") from e

        for info in entries:
            if info.is_dir():
                continue

            target = safe_target(root, info.filename)
            if target is None:
                logger.warning("Skipping entry outside extraction root: %r", info.filename)
                result.skipped.append(info.filename)
                continue

            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                with archive.open(info) as src, target.open("wb") as dst:
                    shutil.copyfileobj(src, dst, _COPY_CHUNK)
            except (OSError, zipfile.BadZipFile, NotImplementedError, RuntimeError) as e:
                # CRC mismatch, unsupported compression, encrypted entry, disk error
                logger.error("Failed to extract %s: %s", info.filename, e)
                result.skipped.append(info.filename)
                # The target may be a directory, or its parent a file
                if target.is_file():
                    target.unlink()
                continue

            result.files.append(target.relative_to(root).as_posix())

    logger.info(
        "Extracted %d entries from %s (%d skipped)",
        len(result.files),
        apk_path.name,
        len(result.skipped),
    )
    return result


def remove_tree(path: Path) -> None:
    """Delete a scratch directory; failures are logged, never raised."""
    if not path.exists():
        return
    try:
        shutil.rmtree(path)
    except OSError as e:
        error = CleanupError(f"Failed to remove scratch directory {path}: {e}")
        logger.error("%s", error)
    else:
        logger.debug("Removed scratch directory %s", path)


class ArchiveExtractor:
    """Scoped extraction of a package archive.

    Used as a context manager: the scratch directory is created and filled on
    entry and removed on exit, whether the block succeeds, raises, or is
    interrupted.

        with ArchiveExtractor(apk_path) as extraction:
            ...  # extraction.root is valid here
    """

    PREFIX = "secureapk-"

    def __init__(self, apk_path: Path, scratch_parent: Path | None = None):
        """Initialize extractor.

        Args:
            apk_path: Path to the package archive.
            scratch_parent: Directory in which to create the extraction root.
                Defaults to the system temp directory.
        """
        self.apk_path = apk_path.resolve()
        self.scratch_parent = scratch_parent
        self.root: Path | None = None

    def __enter__(self) -> ExtractionResult:
        if self.scratch_parent is not None:
            self.scratch_parent.mkdir(parents=True, exist_ok=True)
        self.root = Path(
            tempfile.mkdtemp(prefix=self.PREFIX, dir=self.scratch_parent)
        ).resolve()

        try:
            return extract_archive(self.apk_path, self.root)
        except BaseException:
            self.cleanup()
            raise

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        """Remove the extraction root if it exists."""
        if self.root is not None:
            remove_tree(self.root)
            self.root = None
