"""Job orchestration: extract, analyze, repackage and sign one package."""

import asyncio
import logging
import threading
from pathlib import Path

from secureapk.core.checks import CheckContext
from secureapk.core.extractor import ArchiveExtractor
from secureapk.core.manifest import extract_metadata, try_load_manifest
from secureapk.core.pipeline import run_checks
from secureapk.core.repackager import DevModeRepackager, dev_mode_output_path
from secureapk.core.scoring import aggregate
from secureapk.core.signer import APKSigner
from secureapk.core.store import JobStore
from secureapk.exceptions import (
    ArchiveError,
    JobCancelledError,
    RepackagingError,
    SecureAPKError,
)
from secureapk.models.apk import RepackagedArtifact
from secureapk.models.job import AnalysisJob, AnalysisOutcome, JobStatus
from secureapk.utils.apk import validate_apk_path
from secureapk.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)


def _check_cancelled(cancel_event: threading.Event | None, stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise JobCancelledError(f"Analysis cancelled before {stage}")


def _build_dev_mode(
    root: Path,
    apk_path: Path,
    settings: Settings,
    cancel_event: threading.Event | None,
) -> RepackagedArtifact | None:
    """Repackage and sign; None when the archive could not be built."""
    output = dev_mode_output_path(settings.output_dir, apk_path)
    try:
        unsigned = DevModeRepackager(root, output).build()
    except RepackagingError as e:
        logger.error("%s", e)
        return None

    if cancel_event is not None and cancel_event.is_set():
        unsigned.path.unlink(missing_ok=True)
        raise JobCancelledError("Analysis cancelled before signing")

    return APKSigner(settings).sign_artifact(unsigned.path)


def analyze_package(
    apk_path: Path,
    settings: Settings | None = None,
    cancel_event: threading.Event | None = None,
    dev_mode: bool = True,
) -> AnalysisOutcome:
    """Run the full pipeline for one package.

    The extraction root is removed on every exit path, including
    cancellation.

    Args:
        apk_path: Package archive to analyze.
        settings: Runtime settings; defaults to get_settings().
        cancel_event: Checked between stages; when set the job stops with
            JobCancelledError.
        dev_mode: Whether to build the dev-mode archive.

    Returns:
        AnalysisOutcome with the report and the dev-mode artifact (None when
        repackaging was skipped or abandoned).

    Raises:
        ArchiveError: If the input is missing or not a readable archive.
        JobCancelledError: If cancel_event was set.
    """
    settings = settings or get_settings()
    apk_path = Path(apk_path)
    validate_apk_path(apk_path, error_cls=ArchiveError)
    _check_cancelled(cancel_event, "extraction")

    with ArchiveExtractor(apk_path, settings.scratch_dir) as extraction:
        _check_cancelled(cancel_event, "analysis")

        manifest = try_load_manifest(extraction.root)
        context = CheckContext(root=extraction.root, manifest=manifest)
        results = run_checks(context, max_workers=settings.max_workers)
        report = aggregate(results, extract_metadata(manifest))
        logger.info(
            "%s scored %d (%d vulnerabilities)",
            apk_path.name,
            report.score,
            len(report.vulnerabilities),
        )

        artifact = None
        if dev_mode:
            _check_cancelled(cancel_event, "repackaging")
            artifact = _build_dev_mode(extraction.root, apk_path, settings, cancel_event)

    return AnalysisOutcome(report=report, artifact=artifact)


async def analyze_package_async(
    apk_path: Path,
    settings: Settings | None = None,
    dev_mode: bool = True,
) -> AnalysisOutcome:
    """Run analyze_package in a worker thread.

    If the awaiting task is cancelled, the worker is told to stop and the
    cancellation is re-raised only after its cleanup has finished.
    """
    cancel_event = threading.Event()
    worker = asyncio.ensure_future(
        asyncio.to_thread(analyze_package, apk_path, settings, cancel_event, dev_mode)
    )
    try:
        return await asyncio.shield(worker)
    except asyncio.CancelledError:
        cancel_event.set()
        try:
            await worker
        except Exception as e:
            logger.debug("Worker stopped after cancellation: %s", e)
        raise


class JobRunner:
    """Drives jobs through pending -> analyzing -> completed | failed."""

    def __init__(
        self,
        store: JobStore,
        settings: Settings | None = None,
        dev_mode: bool = True,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.dev_mode = dev_mode

    def submit(self, apk_path: Path, file_name: str | None = None) -> AnalysisJob:
        """Record a pending job for apk_path."""
        apk_path = Path(apk_path)
        try:
            file_size = apk_path.stat().st_size
        except OSError:
            file_size = 0
        return self.store.create(
            file_name=file_name or apk_path.name,
            file_size=file_size,
            source_path=apk_path,
        )

    def _start(self, job_id: int) -> AnalysisJob:
        job = self.store.get(job_id)
        if job.status != JobStatus.PENDING:
            raise SecureAPKError(f"Job {job_id} is {job.status}, expected pending")
        return self.store.update(job_id, status=JobStatus.ANALYZING)

    def _complete(self, job_id: int, outcome: AnalysisOutcome) -> AnalysisJob:
        artifact = outcome.artifact
        return self.store.update(
            job_id,
            status=JobStatus.COMPLETED,
            report=outcome.report,
            fixed_apk_path=artifact.path if artifact else None,
            fixed_apk_signed=artifact.signed if artifact else False,
        )

    def _fail(self, job_id: int, error: str) -> AnalysisJob:
        return self.store.update(job_id, status=JobStatus.FAILED, error=error)

    def run(self, job_id: int, cancel_event: threading.Event | None = None) -> AnalysisJob:
        """Analyze a pending job and persist the terminal state.

        Raises:
            JobNotFoundError: If job_id is unknown.
            SecureAPKError: If the job is not pending.
        """
        job = self._start(job_id)
        try:
            outcome = analyze_package(
                job.source_path, self.settings, cancel_event, self.dev_mode
            )
        except JobCancelledError:
            logger.info("Job %d cancelled", job_id)
            return self._fail(job_id, "cancelled")
        except SecureAPKError as e:
            logger.error("Job %d failed: %s", job_id, e)
            return self._fail(job_id, str(e))
        except Exception as e:
            logger.exception("Job %d failed unexpectedly", job_id)
            return self._fail(job_id, f"Unexpected error: {e}")

        return self._complete(job_id, outcome)

    async def run_async(self, job_id: int) -> AnalysisJob:
        """Async variant of run; task cancellation marks the job cancelled."""
        job = self._start(job_id)
        try:
            outcome = await analyze_package_async(
                job.source_path, self.settings, self.dev_mode
            )
        except asyncio.CancelledError:
            self._fail(job_id, "cancelled")
            raise
        except JobCancelledError:
            return self._fail(job_id, "cancelled")
        except SecureAPKError as e:
            logger.error("Job %d failed: %s", job_id, e)
            return self._fail(job_id, str(e))
        except Exception as e:
            logger.exception("Job %d failed unexpectedly", job_id)
            return self._fail(job_id, f"Unexpected error: {e}")

        return self._complete(job_id, outcome)
