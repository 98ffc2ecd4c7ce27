"""
Tests for the downloader.

A fake transport serves content from memory so failures can be injected
per reference.
"""

import asyncio
from collections import Counter
from dataclasses import replace

import aiohttp
import pytest

from updater.core.files import checksum_bytes
from updater.core.progress import ProgressTracker
from updater.errors import AuthError, ChecksumMismatch, TransferFailed
from updater.core.constants import LARGE_FILE_THRESHOLD
from updater.sync.downloader import LARGE_FILE_WORKERS, DownloadJob, Downloader


class FakeSession:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeTransport:
    """Serves bytes per reference; can fail a reference a number of times."""

    def __init__(self, contents, failures=None, refuse=()):
        self.contents = contents
        self.failures = dict(failures or {})
        self.refuse = set(refuse)
        self.calls = Counter()
        self.in_flight = 0
        self.peak = 0
        self.limit = None

    def session(self, limit=8):
        self.limit = limit
        return FakeSession()

    async def fetch(self, session, reference):
        self.calls[reference] += 1
        if reference in self.refuse:
            raise AuthError(reference, "access denied (HTTP 401)")
        if self.failures.get(reference, 0) > 0:
            self.failures[reference] -= 1
            raise aiohttp.ClientConnectionError("connection reset")
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            data = self.contents[reference]
            for i in range(0, len(data), 4):
                yield data[i:i + 4]
                await asyncio.sleep(0)
        finally:
            self.in_flight -= 1


class CancellingTransport(FakeTransport):
    """Cancels the batch as soon as the first chunk is served."""

    def __init__(self, contents, progress):
        super().__init__(contents)
        self.progress = progress

    async def fetch(self, session, reference):
        async for chunk in super().fetch(session, reference):
            self.progress.cancel()
            yield chunk


class RecordingProgress(ProgressTracker):
    def __init__(self):
        super().__init__()
        self.updates = []
        self.completed = []

    def update(self, job_id, done, total):
        self.updates.append((job_id, done, total))

    def job_completed(self, job_id):
        self.completed.append(job_id)


def make_job(staging, name, content, checksum=None):
    return DownloadJob(
        job_id=name,
        reference=f"mem://{name}",
        size=len(content),
        destination=staging / name,
        checksum=checksum or checksum_bytes(content),
    )


@pytest.fixture
def staging(temp_dir):
    return temp_dir / "update"


def make_downloader(transport, ui=None, max_retries=3, max_workers=4):
    downloader = Downloader(transport, ui, max_workers=max_workers, max_retries=max_retries)
    downloader.retry_delay = 0
    return downloader


class TestDownloadMany:

    def test_all_jobs_staged(self, staging):
        contents = {"mem://a": b"alpha" * 10, "mem://jars/b.jar": b"bravo"}
        jobs = [make_job(staging, "a", contents["mem://a"]), make_job(staging, "jars/b.jar", b"bravo")]

        report = make_downloader(FakeTransport(contents)).download_many(jobs)

        assert report.ok
        assert (staging / "a").read_bytes() == b"alpha" * 10
        assert (staging / "jars" / "b.jar").read_bytes() == b"bravo"
        assert not list(staging.rglob("*.part"))
        assert [r.job_id for r in report.results] == ["a", "jars/b.jar"]

    def test_corrupted_stream_fails_only_that_job(self, staging, fake_ui):
        contents = {"mem://good": b"good content", "mem://bad": b"tampered"}
        jobs = [
            make_job(staging, "good", b"good content"),
            make_job(staging, "bad", b"bad", checksum=checksum_bytes(b"original")),
        ]
        transport = FakeTransport(contents)

        report = make_downloader(transport, fake_ui).download_many(jobs)

        assert report.failed == ["bad"]
        assert report.succeeded == ["good"]
        bad = report.result("bad")
        assert isinstance(bad.error, ChecksumMismatch)
        assert bad.attempts == 1
        assert transport.calls["mem://bad"] == 1
        assert not (staging / "bad").exists()
        assert not (staging / "bad.part").exists()
        assert (staging / "good").read_bytes() == b"good content"
        assert any("bad" in w for w in fake_ui.warnings)

    def test_transient_failures_retried(self, staging):
        transport = FakeTransport({"mem://a": b"data"}, failures={"mem://a": 2})
        report = make_downloader(transport, max_retries=3).download_many([make_job(staging, "a", b"data")])
        assert report.ok
        assert report.result("a").attempts == 3

    def test_persistent_failure_reported(self, staging, fake_ui):
        transport = FakeTransport({"mem://a": b"data"}, failures={"mem://a": 10})
        report = make_downloader(transport, fake_ui, max_retries=2).download_many([make_job(staging, "a", b"data")])
        result = report.result("a")
        assert not result.success
        assert isinstance(result.error, TransferFailed)
        assert result.attempts == 2
        assert transport.calls["mem://a"] == 2
        assert not (staging / "a").exists()

    def test_auth_error_aborts_batch(self, staging):
        transport = FakeTransport({"mem://a": b"data", "mem://b": b"more"}, refuse={"mem://a"})
        jobs = [make_job(staging, "a", b"data"), make_job(staging, "b", b"more")]
        with pytest.raises(AuthError):
            make_downloader(transport).download_many(jobs)
        assert not list(staging.rglob("*.part"))

    def test_cancelled_before_start(self, staging):
        progress = RecordingProgress()
        progress.cancel()
        report = make_downloader(FakeTransport({"mem://a": b"data"})).download_many(
            [make_job(staging, "a", b"data")], progress
        )
        assert report.cancelled
        assert report.result("a").cancelled
        assert report.failed == []
        assert not (staging / "a").exists()

    def test_progress_reported_per_job(self, staging):
        progress = RecordingProgress()
        make_downloader(FakeTransport({"mem://a": b"12345678"})).download_many(
            [make_job(staging, "a", b"12345678")], progress
        )
        assert progress.updates[-1] == ("a", 8, 8)
        assert progress.completed == ["a"]

    def test_no_jobs(self):
        report = make_downloader(FakeTransport({})).download_many([])
        assert report.ok and report.results == ()


class TestConcurrency:

    def many_jobs(self, staging, count=10):
        contents = {f"mem://f{i}": b"x" * 64 for i in range(count)}
        jobs = [make_job(staging, f"f{i}", b"x" * 64) for i in range(count)]
        return contents, jobs

    def test_worker_pool_is_bounded(self, staging):
        contents, jobs = self.many_jobs(staging)
        transport = FakeTransport(contents)

        report = make_downloader(transport, max_workers=4).download_many(jobs)

        assert report.ok
        assert transport.peak == 4
        assert transport.limit == 4

    def test_large_file_lowers_concurrency(self, staging):
        contents, jobs = self.many_jobs(staging)
        jobs[3] = replace(jobs[3], size=LARGE_FILE_THRESHOLD + 1)
        transport = FakeTransport(contents)

        report = make_downloader(transport, max_workers=4).download_many(jobs)

        assert report.ok
        assert transport.peak == LARGE_FILE_WORKERS
        assert transport.limit == LARGE_FILE_WORKERS

    def test_cancel_lets_running_download_finish(self, staging):
        progress = RecordingProgress()
        transport = CancellingTransport({"mem://a": b"alpha" * 4, "mem://b": b"bravo"}, progress)
        jobs = [make_job(staging, "a", b"alpha" * 4), make_job(staging, "b", b"bravo")]

        report = make_downloader(transport, max_workers=1).download_many(jobs, progress)

        assert report.cancelled
        assert report.result("a").success
        assert (staging / "a").read_bytes() == b"alpha" * 4
        assert report.result("b").cancelled
        assert transport.calls["mem://b"] == 0
        assert not (staging / "b").exists()
