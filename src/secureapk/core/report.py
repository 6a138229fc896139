"""Detailed JSON report for a finished analysis job."""

from datetime import datetime, timezone
from typing import Any

from secureapk.core.scoring import aggregate, severity_breakdown
from secureapk.models.analysis import (
    AnalysisReport,
    CheckStatus,
    PackageMetadata,
    Severity,
)
from secureapk.models.job import AnalysisJob

ENGINE_NAME = "SecureAPK Analyzer v2.0"
REPORT_VERSION = "1.0"

DANGEROUS_PERMISSION_MARKERS = (
    "WRITE_EXTERNAL_STORAGE",
    "READ_PHONE_STATE",
    "ACCESS_FINE_LOCATION",
    "CAMERA",
    "RECORD_AUDIO",
)
HIGH_PERMISSION_COUNT = 10

TEST_PRODUCT_IDS = (
    "android.test.purchased",
    "android.test.canceled",
    "android.test.refunded",
    "android.test.item_unavailable",
)


def risk_level(critical_issues: int, warning_issues: int) -> str:
    if critical_issues > 0:
        return "HIGH"
    if warning_issues > 0:
        return "MEDIUM"
    return "LOW"


def _empty_report() -> AnalysisReport:
    return aggregate([], PackageMetadata())


def _executive_summary(job: AnalysisJob, report: AnalysisReport) -> dict[str, Any]:
    return {
        "application_name": job.file_name,
        "package_name": report.metadata.package_name,
        "version": report.metadata.version,
        "analysis_date": job.upload_time.isoformat(),
        "overall_risk_level": risk_level(report.critical_issues, report.warning_issues),
        "security_score": report.score,
        "total_vulnerabilities": len(report.vulnerabilities),
        "critical_findings": report.critical_issues,
        "risk_factors": [
            v.title for v in report.vulnerabilities if v.severity == Severity.CRITICAL
        ],
    }


def _analysis_metadata(job: AnalysisJob) -> dict[str, Any]:
    return {
        "id": job.id,
        "file_name": job.file_name,
        "file_size": f"{job.file_size / (1024 * 1024):.2f} MB",
        "upload_time": job.upload_time.isoformat(),
        "analysis_status": job.status.value,
        "analysis_engine": ENGINE_NAME,
        "report_version": REPORT_VERSION,
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }


def _dev_mode_features(job: AnalysisJob) -> dict[str, Any]:
    """Features applied to the dev-mode archive; empty when none was built."""
    if job.fixed_apk_path is None:
        return {}

    return {
        "artifact": {
            "path": str(job.fixed_apk_path),
            "signed": job.fixed_apk_signed,
        },
        "in_app_purchase_testing": {
            "sandbox_mode_enabled": True,
            "mock_purchase_responses": True,
            "test_product_ids": list(TEST_PRODUCT_IDS),
        },
        "development_enhancements": {
            "debug_mode_enabled": True,
            "backup_enabled": True,
            "root_detection_disabled": True,
            "license_checks_bypassed": True,
            "network_security_config_added": True,
            "logging_enhanced": True,
        },
        "testing_capabilities": {
            "premium_features_unlocked": True,
            "subscription_bypass": True,
        },
    }


def _application_profile(report: AnalysisReport) -> dict[str, Any]:
    metadata = report.metadata
    permissions = metadata.permissions
    dangerous = [
        p for p in permissions if any(m in p for m in DANGEROUS_PERMISSION_MARKERS)
    ]
    return {
        "package_information": {
            "package_name": metadata.package_name,
            "version_name": metadata.version,
            "target_sdk_version": metadata.target_sdk,
            "manifest_format": metadata.manifest_format,
        },
        "permissions": {
            "total": len(permissions),
            "dangerous": len(dangerous),
            "list": list(permissions),
            "risk_assessment": (
                "High permission usage detected"
                if len(permissions) > HIGH_PERMISSION_COUNT
                else "Normal permission usage"
            ),
        },
    }


def _security_assessment(report: AnalysisReport) -> dict[str, Any]:
    statuses = [result.status for result in report.categories]
    return {
        "overall_score": report.score,
        "risk_level": risk_level(report.critical_issues, report.warning_issues),
        "critical_issues": report.critical_issues,
        "warning_issues": report.warning_issues,
        "passed_checks": statuses.count(CheckStatus.PASSED),
        "failed_checks": statuses.count(CheckStatus.CRITICAL),
    }


def _vulnerability_findings(report: AnalysisReport) -> dict[str, Any]:
    return {
        "summary": {
            "total": len(report.vulnerabilities),
            **severity_breakdown(report.vulnerabilities),
        },
        "detailed_findings": [
            {
                "id": v.id,
                "title": v.title,
                "severity": v.severity.value,
                "category": v.category,
                "description": v.description,
                "location": v.location,
                "cvss_score": v.cvss_score,
                "remediation": v.recommendation,
            }
            for v in report.vulnerabilities
        ],
    }


def build_detailed_report(job: AnalysisJob) -> dict[str, Any]:
    """Project a job onto the nested detailed-report structure.

    Reads only the job. A job without a report (pending, failed)
    yields zeroed sections.
    """
    report = job.report or _empty_report()
    return {
        "executive_summary": _executive_summary(job, report),
        "analysis_metadata": _analysis_metadata(job),
        "dev_mode_features": _dev_mode_features(job),
        "application_profile": _application_profile(report),
        "security_assessment": _security_assessment(report),
        "vulnerability_findings": _vulnerability_findings(report),
    }
