"""End-to-end tests for the analysis pipeline and job runner."""

import asyncio
import threading
import zipfile

import pytest

from secureapk.core import analyzer
from secureapk.core.analyzer import JobRunner, analyze_package, analyze_package_async
from secureapk.core.checks import CHECK_REGISTRY
from secureapk.core.repackager import NETWORK_SECURITY_CONFIG_PATH, DevModeRepackager
from secureapk.core.store import InMemoryJobStore
from secureapk.exceptions import ArchiveError, JobCancelledError, RepackagingError, SecureAPKError
from secureapk.models.analysis import CheckStatus
from secureapk.models.job import JobStatus

real_run_checks = analyzer.run_checks


def _leftovers(directory):
    return list(directory.iterdir()) if directory.exists() else []


@pytest.fixture
def corrupt_apk(tmp_path):
    path = tmp_path / "corrupt.apk"
    path.write_bytes(b"PK\x03\x04 this is not really a zip archive")
    return path


class TestAnalyzePackage:
    def test_report_without_dev_mode(self, settings, insecure_apk):
        outcome = analyze_package(insecure_apk, settings, dev_mode=False)

        report = outcome.report
        assert outcome.artifact is None
        assert report.score == 59
        assert len(report.categories) == len(CHECK_REGISTRY)
        assert report.critical_issues == 0
        assert report.warning_issues == 4
        assert report.overall_status == CheckStatus.CRITICAL
        assert report.metadata.package_name == "com.example.shop"
        assert report.metadata.version == "1.4.2"
        assert report.metadata.target_sdk == 33
        assert report.metadata.permissions == [
            "android.permission.INTERNET",
            "android.permission.CAMERA",
        ]
        assert _leftovers(settings.scratch_dir) == []
        assert _leftovers(settings.output_dir) == []

    def test_secure_package(self, settings, secure_apk):
        outcome = analyze_package(secure_apk, settings, dev_mode=False)

        assert outcome.report.score == 100
        assert outcome.report.overall_status == CheckStatus.PASSED

    def test_dev_mode_without_signing_tools(self, settings, insecure_apk, no_signing_tools):
        outcome = analyze_package(insecure_apk, settings)

        artifact = outcome.artifact
        assert artifact is not None
        assert artifact.signed is False
        assert artifact.path.parent == settings.output_dir
        with zipfile.ZipFile(artifact.path) as archive:
            assert NETWORK_SECURITY_CONFIG_PATH in archive.namelist()
            gate = archive.read("sources/com/example/shop/Gate.java").decode()
        assert "BuildConfig.DEBUG" in gate
        assert _leftovers(settings.scratch_dir) == []

    def test_repackaging_failure_keeps_report(self, settings, insecure_apk, monkeypatch):
        def failing_build(self):
            raise RepackagingError("disk full")

        monkeypatch.setattr(DevModeRepackager, "build", failing_build)

        outcome = analyze_package(insecure_apk, settings)

        assert outcome.artifact is None
        assert outcome.report.score == 59

    def test_missing_input(self, settings, tmp_path):
        with pytest.raises(ArchiveError):
            analyze_package(tmp_path / "nope.apk", settings)

    def test_not_a_zip(self, settings, tmp_path):
        path = tmp_path / "notes.apk"
        path.write_text("plain text")

        with pytest.raises(ArchiveError):
            analyze_package(path, settings)

    def test_corrupt_archive_cleans_up(self, settings, corrupt_apk):
        with pytest.raises(ArchiveError):
            analyze_package(corrupt_apk, settings)

        assert _leftovers(settings.scratch_dir) == []

    def test_cancel_before_start(self, settings, insecure_apk):
        event = threading.Event()
        event.set()

        with pytest.raises(JobCancelledError):
            analyze_package(insecure_apk, settings, cancel_event=event)

        assert _leftovers(settings.scratch_dir) == []

    def test_cancel_between_stages(self, settings, insecure_apk, monkeypatch):
        event = threading.Event()

        def run_then_cancel(context, **kwargs):
            results = real_run_checks(context, **kwargs)
            event.set()
            return results

        monkeypatch.setattr(analyzer, "run_checks", run_then_cancel)

        with pytest.raises(JobCancelledError):
            analyze_package(insecure_apk, settings, cancel_event=event)

        assert _leftovers(settings.scratch_dir) == []
        assert _leftovers(settings.output_dir) == []


class TestAnalyzePackageAsync:
    @pytest.mark.asyncio
    async def test_completes(self, settings, insecure_apk):
        outcome = await analyze_package_async(insecure_apk, settings, dev_mode=False)

        assert outcome.report.score == 59

    @pytest.mark.asyncio
    async def test_cancellation_waits_for_cleanup(self, settings, insecure_apk, monkeypatch):
        started = threading.Event()
        release = threading.Event()

        def blocking_run_checks(context, **kwargs):
            started.set()
            release.wait(5)
            return real_run_checks(context, **kwargs)

        monkeypatch.setattr(analyzer, "run_checks", blocking_run_checks)

        task = asyncio.create_task(analyze_package_async(insecure_apk, settings))
        assert await asyncio.to_thread(started.wait, 5)
        task.cancel()
        await asyncio.sleep(0.05)
        assert not task.done()
        release.set()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert _leftovers(settings.scratch_dir) == []
        assert _leftovers(settings.output_dir) == []


class TestJobRunner:
    @pytest.fixture
    def store(self):
        return InMemoryJobStore()

    def test_completed_job(self, store, settings, insecure_apk):
        runner = JobRunner(store, settings, dev_mode=False)
        job = runner.submit(insecure_apk)

        assert job.status == JobStatus.PENDING
        assert job.file_name == "shop.apk"
        assert job.file_size == insecure_apk.stat().st_size

        finished = runner.run(job.id)

        assert finished.status == JobStatus.COMPLETED
        assert finished.report.score == 59
        assert finished.fixed_apk_path is None
        assert store.get(job.id) == finished

    def test_dev_mode_job_records_artifact(self, store, settings, insecure_apk, no_signing_tools):
        runner = JobRunner(store, settings)

        finished = runner.run(runner.submit(insecure_apk, file_name="upload.apk").id)

        assert finished.file_name == "upload.apk"
        assert finished.status == JobStatus.COMPLETED
        assert finished.fixed_apk_path.is_file()
        assert finished.fixed_apk_signed is False

    def test_failed_job(self, store, settings, corrupt_apk):
        runner = JobRunner(store, settings)

        finished = runner.run(runner.submit(corrupt_apk).id)

        assert finished.status == JobStatus.FAILED
        assert "Cannot open package archive" in finished.error
        assert finished.report is None

    def test_unexpected_error_fails_job(self, store, settings, insecure_apk, monkeypatch):
        def broken(context, **kwargs):
            raise KeyError("boom")

        monkeypatch.setattr(analyzer, "run_checks", broken)
        runner = JobRunner(store, settings, dev_mode=False)

        finished = runner.run(runner.submit(insecure_apk).id)

        assert finished.status == JobStatus.FAILED
        assert finished.error.startswith("Unexpected error:")

    def test_failing_detector_still_completes(self, store, settings, insecure_apk, monkeypatch):
        xss = CHECK_REGISTRY[1]

        def exploding(context):
            raise RuntimeError("pattern table corrupted")

        monkeypatch.setattr(xss, "detect", exploding)
        runner = JobRunner(store, settings, dev_mode=False)

        finished = runner.run(runner.submit(insecure_apk).id)

        assert finished.status == JobStatus.COMPLETED
        report = finished.report
        assert len(report.categories) == len(CHECK_REGISTRY)
        xss_result = report.category(xss.category)
        assert xss_result.status == CheckStatus.PASSED
        assert xss_result.issue_count == 0
        assert report.category("reconnaissance").issue_count == 3
        assert report.score == 74

    def test_cancelled_job(self, store, settings, insecure_apk):
        runner = JobRunner(store, settings)
        job = runner.submit(insecure_apk)
        event = threading.Event()
        event.set()

        finished = runner.run(job.id, cancel_event=event)

        assert finished.status == JobStatus.FAILED
        assert finished.error == "cancelled"

    def test_job_runs_once(self, store, settings, insecure_apk):
        runner = JobRunner(store, settings, dev_mode=False)
        job = runner.submit(insecure_apk)
        runner.run(job.id)

        with pytest.raises(SecureAPKError):
            runner.run(job.id)

    @pytest.mark.asyncio
    async def test_run_async(self, store, settings, insecure_apk):
        runner = JobRunner(store, settings, dev_mode=False)
        job = runner.submit(insecure_apk)

        finished = await runner.run_async(job.id)

        assert finished.status == JobStatus.COMPLETED
        assert finished.report.score == 59

    @pytest.mark.asyncio
    async def test_run_async_cancelled(self, store, settings, insecure_apk, monkeypatch):
        started = threading.Event()
        release = threading.Event()

        def blocking_run_checks(context, **kwargs):
            started.set()
            release.wait(5)
            return real_run_checks(context, **kwargs)

        monkeypatch.setattr(analyzer, "run_checks", blocking_run_checks)
        runner = JobRunner(store, settings)
        job = runner.submit(insecure_apk)

        task = asyncio.create_task(runner.run_async(job.id))
        assert await asyncio.to_thread(started.wait, 5)
        task.cancel()
        release.set()

        with pytest.raises(asyncio.CancelledError):
            await task

        finished = store.get(job.id)
        assert finished.status == JobStatus.FAILED
        assert finished.error == "cancelled"
