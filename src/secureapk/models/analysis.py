"""Pydantic models for security check results and analysis reports."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Severity(StrEnum):
    """Vulnerability severity, ordered critical > high > medium > low."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Ordering key; higher is more severe."""
        return _SEVERITY_RANK[self]

    @property
    def weight(self) -> int:
        """Score penalty applied per vulnerability of this severity."""
        return _SEVERITY_WEIGHT[self]


_SEVERITY_RANK = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}

_SEVERITY_WEIGHT = {
    Severity.CRITICAL: 25,
    Severity.HIGH: 15,
    Severity.MEDIUM: 8,
    Severity.LOW: 3,
}


class CheckStatus(StrEnum):
    """Outcome of a single security check category."""

    PASSED = "passed"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    CheckStatus.PASSED: 0,
    CheckStatus.WARNING: 1,
    CheckStatus.CRITICAL: 2,
}


class Vulnerability(BaseModel):
    """One concrete finding produced by a security check."""

    model_config = ConfigDict(frozen=True)

    id: str
    """Category-scoped identifier (e.g., recon-001)."""

    title: str
    description: str
    severity: Severity

    category: str
    """Human-readable weakness class (e.g., Access Control)."""

    location: str
    """Manifest name or archive-relative source path."""

    cvss_score: float | None = None
    recommendation: str | None = None


def derive_status(vulnerabilities: list[Vulnerability]) -> CheckStatus:
    """Derive a category status from its vulnerabilities.

    critical if any vulnerability is critical or high, warning if there is
    any issue at all, passed otherwise.
    """
    if any(v.severity.rank >= Severity.HIGH.rank for v in vulnerabilities):
        return CheckStatus.CRITICAL
    if vulnerabilities:
        return CheckStatus.WARNING
    return CheckStatus.PASSED


class CategoryResult(BaseModel):
    """Outcome of one security check category."""

    model_config = ConfigDict(frozen=True)

    category: str
    """Registry id of the check (e.g., reconnaissance, xss)."""

    status: CheckStatus
    issue_count: int = Field(ge=0)
    details: str = ""
    findings: list[str] = Field(default_factory=list)
    vulnerabilities: list[Vulnerability] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    code_snippets: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_status(self) -> "CategoryResult":
        if self.issue_count != len(self.vulnerabilities):
            raise ValueError(
                f"issue_count {self.issue_count} does not match "
                f"{len(self.vulnerabilities)} vulnerabilities"
            )
        expected = derive_status(self.vulnerabilities)
        if self.status != expected:
            raise ValueError(
                f"status {self.status.value!r} inconsistent with findings "
                f"(expected {expected.value!r})"
            )
        return self

    @classmethod
    def build(
        cls,
        category: str,
        *,
        details: str = "",
        findings: list[str] | None = None,
        vulnerabilities: list[Vulnerability] | None = None,
        recommendations: list[str] | None = None,
        code_snippets: list[str] | None = None,
    ) -> "CategoryResult":
        """Create a result whose status and issue count follow the findings."""
        vulns = list(vulnerabilities or [])
        return cls(
            category=category,
            status=derive_status(vulns),
            issue_count=len(vulns),
            details=details,
            findings=list(findings or []),
            vulnerabilities=vulns,
            recommendations=list(recommendations or []),
            code_snippets=list(code_snippets or []),
        )

    @classmethod
    def passed(cls, category: str, details: str = "") -> "CategoryResult":
        """A clean result with no issues."""
        return cls.build(category, details=details)


class PackageMetadata(BaseModel):
    """Identity of the analyzed package as declared by its manifest."""

    model_config = ConfigDict(frozen=True)

    package_name: str | None = None
    version: str | None = None
    target_sdk: int | None = None

    permissions: list[str] = Field(default_factory=list)
    """Requested permissions, duplicates removed, first-seen order."""

    manifest_found: bool = False
    manifest_format: str | None = None
    """'text' or 'binary' when a manifest was decoded."""


class AnalysisReport(BaseModel):
    """Aggregated outcome of every security check for one package."""

    model_config = ConfigDict(frozen=True)

    categories: list[CategoryResult]
    vulnerabilities: list[Vulnerability]
    metadata: PackageMetadata
    score: int = Field(ge=0, le=100)
    critical_issues: int = Field(ge=0)
    warning_issues: int = Field(ge=0)

    @property
    def overall_status(self) -> CheckStatus:
        """Worst status across all categories."""
        return max(
            (c.status for c in self.categories),
            key=lambda s: s.rank,
            default=CheckStatus.PASSED,
        )

    def category(self, category_id: str) -> CategoryResult | None:
        """Find a category result by its registry id."""
        for result in self.categories:
            if result.category == category_id:
                return result
        return None
