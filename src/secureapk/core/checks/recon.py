"""Reconnaissance check: risky flags declared in AndroidManifest.xml."""

from secureapk.core.checks.base import BaseCheck, CheckContext
from secureapk.core.manifest import MANIFEST_NAME, ManifestDocument
from secureapk.models.analysis import CategoryResult, Severity, Vulnerability

DEBUGGABLE = Vulnerability(
    id="recon-001",
    title="Debug Mode Enabled",
    description=(
        "Application has debug mode enabled which can expose sensitive information"
    ),
    severity=Severity.MEDIUM,
    category="Information Disclosure",
    location=MANIFEST_NAME,
    cvss_score=5.3,
    recommendation="Disable debug mode in production builds",
)

BACKUP_ALLOWED = Vulnerability(
    id="recon-002",
    title="Backup Allowed",
    description="Application allows backup which may expose sensitive data",
    severity=Severity.LOW,
    category="Data Protection",
    location=MANIFEST_NAME,
    cvss_score=3.1,
    recommendation="Disable backup for sensitive applications",
)

UNPROTECTED_EXPORTS = Vulnerability(
    id="recon-003",
    title="Exported Components Without Protection",
    description="Components are exported without proper permission checks",
    severity=Severity.HIGH,
    category="Access Control",
    location=MANIFEST_NAME,
    cvss_score=7.5,
    recommendation="Add permission requirements to exported components",
)


def _has_flag(manifest: ManifestDocument, name: str) -> bool:
    if manifest.parsed:
        return any(True for _ in manifest.iter_with_attr(name, "true"))
    return f'android:{name}="true"' in manifest.raw_text


def _has_unprotected_exports(manifest: ManifestDocument) -> bool:
    """Exported components exist while no element declares a permission.

    The permission test is document-wide: a single android:permission
    anywhere in the manifest clears every exported component.
    """
    if manifest.parsed:
        exported = any(True for _ in manifest.iter_with_attr("exported", "true"))
        protected = any(True for _ in manifest.iter_with_attr("permission"))
        return exported and not protected
    text = manifest.raw_text
    return 'android:exported="true"' in text and "android:permission=" not in text


class ReconnaissanceCheck(BaseCheck):
    """Flags debuggable builds, allowed backups and unprotected exports."""

    category = "reconnaissance"
    label = "Reconnaissance"

    def detect(self, context: CheckContext) -> CategoryResult:
        manifest = context.manifest
        if manifest is None:
            return CategoryResult.passed(
                self.category,
                details=f"{MANIFEST_NAME} not available; reconnaissance skipped",
            )

        findings: list[str] = []
        vulnerabilities: list[Vulnerability] = []
        recommendations: list[str] = []
        snippets: list[str] = []

        if _has_flag(manifest, "debuggable"):
            findings.append("Debug mode enabled in production")
            vulnerabilities.append(DEBUGGABLE)
            recommendations.append('Set android:debuggable="false" in production builds')
            snippets.append('android:debuggable="true"')

        if _has_flag(manifest, "allowBackup"):
            findings.append("Backup allowed for sensitive data")
            vulnerabilities.append(BACKUP_ALLOWED)
            recommendations.append(
                'Set android:allowBackup="false" for sensitive applications'
            )
            snippets.append('android:allowBackup="true"')

        if _has_unprotected_exports(manifest):
            findings.append("Exported components without proper permissions")
            vulnerabilities.append(UNPROTECTED_EXPORTS)
            recommendations.append("Add android:permission to all exported components")
            snippets.append('android:exported="true" without permission')

        return CategoryResult.build(
            self.category,
            details=f"Found {len(vulnerabilities)} reconnaissance issues",
            findings=findings,
            vulnerabilities=vulnerabilities,
            recommendations=recommendations,
            code_snippets=snippets,
        )
