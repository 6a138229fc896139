"""Aggregate category results into a report-level vulnerability list and score."""

from collections.abc import Iterable

from secureapk.models.analysis import (
    AnalysisReport,
    CategoryResult,
    PackageMetadata,
    Severity,
    Vulnerability,
)

MAX_SCORE = 100
MIN_SCORE = 0


def flatten(results: Iterable[CategoryResult]) -> list[Vulnerability]:
    """Concatenate vulnerabilities in category order, then in-category order."""
    return [vuln for result in results for vuln in result.vulnerabilities]


def compute_score(vulnerabilities: Iterable[Vulnerability]) -> int:
    """100 minus a per-severity penalty, clamped to [0, 100]."""
    score = MAX_SCORE - sum(v.severity.weight for v in vulnerabilities)
    return max(MIN_SCORE, min(MAX_SCORE, score))


def count_critical(vulnerabilities: Iterable[Vulnerability]) -> int:
    return sum(1 for v in vulnerabilities if v.severity == Severity.CRITICAL)


def count_warnings(vulnerabilities: Iterable[Vulnerability]) -> int:
    """High, medium and low findings all count as warnings."""
    return sum(1 for v in vulnerabilities if v.severity != Severity.CRITICAL)


def severity_breakdown(vulnerabilities: Iterable[Vulnerability]) -> dict[str, int]:
    """Count vulnerabilities per severity, most severe first."""
    counts = {severity.value: 0 for severity in Severity}
    for vuln in vulnerabilities:
        counts[vuln.severity.value] += 1
    return counts


def aggregate(
    results: list[CategoryResult],
    metadata: PackageMetadata,
) -> AnalysisReport:
    """Build the AnalysisReport for one job from its category results."""
    vulnerabilities = flatten(results)
    return AnalysisReport(
        categories=list(results),
        vulnerabilities=vulnerabilities,
        metadata=metadata,
        score=compute_score(vulnerabilities),
        critical_issues=count_critical(vulnerabilities),
        warning_issues=count_warnings(vulnerabilities),
    )
