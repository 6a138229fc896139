"""Security checks and their fixed, ordered registry.

Registry order is the order categories appear in every AnalysisReport.
Categories without detection logic are PlaceholderChecks; replacing one with
a real BaseCheck subclass needs no change to the pipeline.
"""

from secureapk.core.checks.base import BaseCheck, CheckContext, PlaceholderCheck
from secureapk.core.checks.recon import ReconnaissanceCheck
from secureapk.core.checks.xss import XSSCheck

CHECK_REGISTRY: tuple[BaseCheck, ...] = (
    ReconnaissanceCheck(),
    XSSCheck(),
    PlaceholderCheck("csrf", "CSRF", "CSRF analysis completed"),
    PlaceholderCheck("ssrf", "SSRF", "SSRF analysis completed"),
    PlaceholderCheck("idor", "IDOR", "IDOR analysis completed"),
    PlaceholderCheck("rce", "RCE", "RCE analysis completed"),
    PlaceholderCheck(
        "accessControl", "Access Control", "Access control analysis completed"
    ),
    PlaceholderCheck(
        "inputValidation", "Input Validation", "Input validation analysis completed"
    ),
    PlaceholderCheck(
        "sqlInjection", "SQL Injection", "SQL injection analysis completed"
    ),
    PlaceholderCheck(
        "sessionManagement",
        "Session Management",
        "Session management analysis completed",
    ),
    PlaceholderCheck(
        "authenticationTesting",
        "Authentication Testing",
        "Authentication testing completed",
    ),
    PlaceholderCheck(
        "fileInclusion", "File Inclusion", "File inclusion analysis completed"
    ),
    PlaceholderCheck("clickjacking", "Clickjacking", "Clickjacking analysis completed"),
    PlaceholderCheck(
        "rateLimiting", "Rate Limiting", "Rate limiting analysis completed"
    ),
    PlaceholderCheck(
        "businessLogic", "Business Logic", "Business logic analysis completed"
    ),
    PlaceholderCheck("apiTesting", "API Testing", "API testing completed"),
    PlaceholderCheck(
        "mobileAppTesting",
        "Mobile App Testing",
        "Mobile app security analysis completed",
    ),
    PlaceholderCheck(
        "clientSideVulns",
        "Client-Side Vulnerabilities",
        "Client-side vulnerability analysis completed",
    ),
    PlaceholderCheck(
        "informationDisclosure",
        "Information Disclosure",
        "Information disclosure analysis completed",
    ),
    PlaceholderCheck(
        "serverSideVulns",
        "Server-Side Vulnerabilities",
        "Server-side vulnerability analysis completed",
    ),
    PlaceholderCheck(
        "vulnerabilityScanning",
        "Vulnerability Scanning",
        "Vulnerability scanning completed",
    ),
    PlaceholderCheck(
        "subdomainEnumeration",
        "Subdomain Enumeration",
        "Subdomain enumeration completed",
    ),
    PlaceholderCheck("portScanning", "Port Scanning", "Port scanning completed"),
    PlaceholderCheck(
        "directoryEnumeration",
        "Directory Enumeration",
        "Directory enumeration completed",
    ),
    PlaceholderCheck(
        "manualTesting", "Manual Testing", "Manual testing guidelines provided"
    ),
)

__all__ = [
    "CHECK_REGISTRY",
    "BaseCheck",
    "CheckContext",
    "PlaceholderCheck",
    "ReconnaissanceCheck",
    "XSSCheck",
]
