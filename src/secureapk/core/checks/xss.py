"""Cross-site scripting check over WebView and web sources.

Source text has no structured representation here, so detection is a
substring heuristic per file. It both over- and under-reports: a file that
mentions addJavascriptInterface anywhere counts as protected, and a single
https prefix check anywhere clears every loadUrl call in the file.
"""

import logging

from secureapk.core.checks.base import BaseCheck, CheckContext
from secureapk.models.analysis import CategoryResult, Severity, Vulnerability

logger = logging.getLogger(__name__)

SOURCE_EXTENSIONS = (".java", ".kt", ".js", ".html")

XSS_CATEGORY = "Cross-Site Scripting"


class XSSCheck(BaseCheck):
    """Flags unsafe WebView configuration and raw HTML injection."""

    category = "xss"
    label = "Cross-Site Scripting"

    def detect(self, context: CheckContext) -> CategoryResult:
        findings: list[str] = []
        vulnerabilities: list[Vulnerability] = []
        recommendations: list[str] = []
        snippets: list[str] = []

        for path in context.find_files(SOURCE_EXTENSIONS):
            try:
                content = context.read_text(path)
            except OSError as e:
                logger.warning("Cannot read %s: %s", path, e)
                continue

            location = context.relative(path)

            if "setJavaScriptEnabled(true)" in content and not (
                "addJavascriptInterface" in content
                and "@JavascriptInterface" in content
            ):
                findings.append(
                    "JavaScript enabled without proper interface protection "
                    f"in {path.name}"
                )
                vulnerabilities.append(
                    Vulnerability(
                        id="xss-001",
                        title="Unsafe WebView JavaScript Configuration",
                        description=(
                            "WebView has JavaScript enabled without proper "
                            "JavascriptInterface protection"
                        ),
                        severity=Severity.HIGH,
                        category=XSS_CATEGORY,
                        location=location,
                        cvss_score=7.5,
                        recommendation=(
                            "Implement proper JavascriptInterface annotations "
                            "and input validation"
                        ),
                    )
                )
                recommendations.append(
                    "Use @JavascriptInterface annotation and validate all "
                    "JavaScript interactions"
                )
                snippets.append("setJavaScriptEnabled(true)")

            if "loadUrl(" in content and 'startsWith("https://")' not in content:
                findings.append(f"Potentially unsafe URL loading in {path.name}")
                vulnerabilities.append(
                    Vulnerability(
                        id="xss-002",
                        title="Unsafe URL Loading",
                        description="WebView loads URLs without proper validation",
                        severity=Severity.MEDIUM,
                        category=XSS_CATEGORY,
                        location=location,
                        cvss_score=6.1,
                        recommendation="Validate URLs before loading and use HTTPS only",
                    )
                )
                recommendations.append("Validate all URLs and enforce HTTPS")
                snippets.append("loadUrl(userInput)")

            if "innerHTML" in content or "document.write" in content:
                findings.append(f"Potential DOM-based XSS in {path.name}")
                vulnerabilities.append(
                    Vulnerability(
                        id="xss-003",
                        title="DOM-based XSS Risk",
                        description=(
                            "Code uses innerHTML or document.write which can "
                            "lead to XSS"
                        ),
                        severity=Severity.HIGH,
                        category=XSS_CATEGORY,
                        location=location,
                        cvss_score=8.2,
                        recommendation=(
                            "Use safe DOM manipulation methods and sanitize input"
                        ),
                    )
                )
                recommendations.append(
                    "Use textContent instead of innerHTML and sanitize all user input"
                )
                snippets.append("element.innerHTML = userInput")

        return CategoryResult.build(
            self.category,
            details=f"Found {len(vulnerabilities)} XSS vulnerabilities",
            findings=findings,
            vulnerabilities=vulnerabilities,
            recommendations=recommendations,
            code_snippets=snippets,
        )
