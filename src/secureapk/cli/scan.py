"""CLI commands for scanning APKs and listing security checks."""

import json
from contextlib import nullcontext
from pathlib import Path

import typer
from rich.table import Table

from secureapk.core.analyzer import JobRunner
from secureapk.core.checks import CHECK_REGISTRY, PlaceholderCheck
from secureapk.core.report import build_detailed_report
from secureapk.core.store import InMemoryJobStore
from secureapk.exceptions import SecureAPKError
from secureapk.models.analysis import CheckStatus, Severity
from secureapk.models.job import AnalysisJob, JobStatus
from secureapk.utils.config import get_settings
from secureapk.utils.output import console

STATUS_STYLES = {
    CheckStatus.PASSED: "green",
    CheckStatus.WARNING: "yellow",
    CheckStatus.CRITICAL: "red",
}

SEVERITY_STYLES = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "blue",
}


def _print_job(job: AnalysisJob) -> None:
    report = job.report
    if report is None:
        return

    metadata = report.metadata
    console.print(f"\n[bold]{job.file_name}[/bold]")
    console.print(f"  Package:     {metadata.package_name or 'unknown'}")
    console.print(f"  Version:     {metadata.version or 'unknown'}")
    console.print(f"  Target SDK:  {metadata.target_sdk or 'unknown'}")
    console.print(f"  Permissions: {len(metadata.permissions)}")
    if not metadata.manifest_found:
        console.print_warning("No usable AndroidManifest.xml; manifest checks skipped")

    table = Table(title="Security Checks")
    table.add_column("Category", style="cyan")
    table.add_column("Status")
    table.add_column("Issues", justify="right")
    table.add_column("Details")
    for result in report.categories:
        style = STATUS_STYLES[result.status]
        table.add_row(
            result.category,
            f"[{style}]{result.status.value}[/{style}]",
            str(result.issue_count),
            result.details,
        )
    console.print(table)

    if report.vulnerabilities:
        vulns = Table(title=f"Vulnerabilities ({len(report.vulnerabilities)})")
        vulns.add_column("Severity")
        vulns.add_column("ID", style="cyan")
        vulns.add_column("Title")
        vulns.add_column("Location", style="dim")
        for vuln in report.vulnerabilities:
            style = SEVERITY_STYLES[vuln.severity]
            vulns.add_row(
                f"[{style}]{vuln.severity.value}[/{style}]",
                vuln.id,
                vuln.title,
                vuln.location,
            )
        console.print(vulns)

    style = STATUS_STYLES[report.overall_status]
    console.print(
        f"\n[bold]Security score:[/bold] [{style}]{report.score}/100[/{style}] "
        f"({report.critical_issues} critical, {report.warning_issues} warnings)"
    )

    if job.fixed_apk_path is not None:
        if job.fixed_apk_signed:
            console.print_success(f"Dev-mode APK (signed): {job.fixed_apk_path}")
        else:
            console.print_warning(f"Dev-mode APK (unsigned): {job.fixed_apk_path}")

    console.print()


def scan_package(
    apk_path: Path = typer.Argument(
        ...,
        help="Path to the APK file to analyze.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    output_dir: Path = typer.Option(
        None,
        "--output-dir",
        "-o",
        help="Directory for the dev-mode APK (default: ./fixed_apks).",
    ),
    no_dev_mode: bool = typer.Option(
        False,
        "--no-dev-mode",
        help="Only analyze; do not build a dev-mode APK.",
    ),
    report_file: Path = typer.Option(
        None,
        "--report",
        "-r",
        help="Write the detailed JSON report to this file.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Show debug logging.",
    ),
) -> None:
    """Analyze an APK and build a signed dev-mode variant.

    Runs every registered security check, prints the category results and
    score, and (unless --no-dev-mode) writes a debuggable, test-friendly
    rebuild of the package to the output directory.
    """
    console.set_json_mode(json_output)
    console.configure_logging(verbose)

    try:
        settings = get_settings(output_dir=output_dir)
        runner = JobRunner(InMemoryJobStore(), settings, dev_mode=not no_dev_mode)
        job = runner.submit(apk_path)

        spinner = (
            console.status(f"Analyzing {apk_path.name}...")
            if not json_output
            else nullcontext()
        )
        with spinner:
            job = runner.run(job.id)

        if report_file is not None and job.status == JobStatus.COMPLETED:
            detailed = build_detailed_report(job)
            report_file.write_text(json.dumps(detailed, indent=2))
            console.print_success(f"Detailed report written to {report_file}")

    except (SecureAPKError, OSError) as e:
        console.print_error(str(e))
        raise typer.Exit(1) from None

    if json_output:
        typer.echo(json.dumps(job.model_dump(mode="json"), indent=2))
    elif job.status == JobStatus.COMPLETED:
        _print_job(job)

    if job.status == JobStatus.FAILED:
        console.print_error(f"Analysis failed: {job.error}")
        raise typer.Exit(1)


def list_checks(
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON.",
    ),
) -> None:
    """List registered security checks in report order."""
    rows = [
        {
            "category": check.category,
            "label": check.label,
            "detector": not isinstance(check, PlaceholderCheck),
        }
        for check in CHECK_REGISTRY
    ]

    if json_output:
        typer.echo(json.dumps(rows, indent=2))
        return

    table = Table(title=f"Security Checks ({len(rows)})")
    table.add_column("#", style="cyan", width=4)
    table.add_column("Category", style="green")
    table.add_column("Name")
    table.add_column("Detection")
    for i, row in enumerate(rows, 1):
        table.add_row(
            str(i),
            row["category"],
            row["label"],
            "static analysis" if row["detector"] else "placeholder",
        )
    console.print(table)
