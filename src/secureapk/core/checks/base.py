"""Base check class and the read-only context handed to every check.

A check inspects one extraction root and returns exactly one CategoryResult
for its category. Checks never write to the extraction root and hold no
state between calls, so the pipeline may run them concurrently.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from secureapk.core.manifest import ManifestDocument
from secureapk.models.analysis import CategoryResult

logger = logging.getLogger(__name__)


def find_files(root: Path, extensions: Iterable[str]) -> list[Path]:
    """List files under root whose name ends with one of extensions.

    The result is sorted so that checks report findings deterministically.
    Unreadable directories are skipped.
    """
    suffixes = tuple(extensions)
    matches: list[Path] = []
    for path in root.rglob("*"):
        try:
            if path.is_file() and path.name.endswith(suffixes):
                matches.append(path)
        except OSError as e:
            logger.debug("Skipping inaccessible path %s: %s", path, e)
    return sorted(matches)


@dataclass(frozen=True)
class CheckContext:
    """Everything a check may read for one job."""

    root: Path
    """Extraction root (read-only for checks)."""

    manifest: ManifestDocument | None = None
    """Parsed manifest, or None when it was missing or undecodable."""

    @property
    def degraded(self) -> bool:
        """True when manifest-based checks cannot run."""
        return self.manifest is None

    def find_files(self, extensions: Iterable[str]) -> list[Path]:
        return find_files(self.root, extensions)

    def relative(self, path: Path) -> str:
        """Archive-relative posix name of an extracted file."""
        return path.relative_to(self.root).as_posix()

    def read_text(self, path: Path) -> str:
        """Read an extracted file as text, replacing undecodable bytes."""
        return path.read_text(encoding="utf-8", errors="replace")


class BaseCheck(ABC):
    """Abstract base class for all security checks.

    Attributes:
        category: Registry id of the category (e.g., "xss"); also the key
            of the CategoryResult the check returns.
        label: Human-readable category name.
    """

    category: str = "base"
    label: str = "Base"

    @abstractmethod
    def detect(self, context: CheckContext) -> CategoryResult:
        """Inspect the extraction root and return this category's result."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(category={self.category!r})"


class PlaceholderCheck(BaseCheck):
    """A category without detection logic yet; always reports passed."""

    def __init__(self, category: str, label: str, details: str):
        self.category = category
        self.label = label
        self.details = details

    def detect(self, context: CheckContext) -> CategoryResult:
        return CategoryResult.passed(self.category, details=self.details)
