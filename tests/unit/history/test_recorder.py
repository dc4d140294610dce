"""
Unit tests for the document recorder.

Each behavioural test runs against both the in-memory backend and a real git
repository (skipped when git is not installed).
"""

import asyncio
import shutil
import tempfile
from pathlib import Path

import pytest

from chronicle.history.commit_queue import CommitQueue
from chronicle.history.errors import (
    BackendError,
    CommitFailure,
    PublishFailure,
    RecordingFailure,
    WriteFailure,
)
from chronicle.history.git import GitBackend
from chronicle.history.memory import InMemoryBackend
from chronicle.history.recorder import Recorder, extension_for, is_textual
from chronicle.history.schemas import CommitStatus

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


@pytest.fixture
def temp_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(params=["memory", pytest.param("git", marks=requires_git)])
def recorder(request, temp_dir):
    root = temp_dir / "versions"
    if request.param == "git":
        backend = GitBackend(root)
    else:
        backend = InMemoryBackend(root)
    return Recorder(root, backend=backend)


class SpyCommitQueue(CommitQueue):
    """Commit queue remembering the order tasks were enqueued in."""

    def __init__(self, backend):
        super().__init__(backend)
        self.enqueued = []

    def enqueue(self, path, message):
        self.enqueued.append(self.backend.relative(path))
        return super().enqueue(path, message)


class SynchronousCommitRunner:
    """Runs each commit immediately instead of through a worker."""

    def __init__(self, backend):
        self.backend = backend
        self.messages = []

    def enqueue(self, path, message):
        self.messages.append(message)
        future = asyncio.get_running_loop().create_future()
        try:
            future.set_result(self.backend.commit(path, message))
        except BackendError as e:
            future.set_exception(CommitFailure(str(path), message, e))
        return future

    async def join(self):
        pass

    async def close(self):
        pass


class TestRecord:
    """Test recording document snapshots."""

    def test_end_to_end_scenario(self, recorder):
        async def run():
            first = await recorder.record(
                "acme", "privacy-policy", "v1 text", changelog="initial capture"
            )
            again = await recorder.record("acme", "privacy-policy", "v1 text")
            second = await recorder.record("acme", "privacy-policy", "v2 text")
            latest = await recorder.get_latest_record("acme", "privacy-policy")
            await recorder.close()
            return first, again, second, latest

        first, again, second, latest = asyncio.run(run())

        assert first.path == recorder.root / "acme" / "privacy-policy.md"
        assert first.version_id
        assert first.is_first_version is True
        assert first.status is CommitStatus.COMMITTED

        assert again.version_id is None
        assert again.changed is False
        assert again.status is CommitStatus.UNCHANGED

        assert second.version_id
        assert second.version_id != first.version_id
        assert second.is_first_version is False

        assert latest is not None
        assert latest.content == "v2 text"
        assert latest.version_id == second.version_id

    def test_identical_content_creates_no_version(self, recorder):
        async def run():
            first = await recorder.record("acme", "terms-of-service", "same")
            second = await recorder.record("acme", "terms-of-service", "same")
            history = await recorder.history("acme", "terms-of-service")
            await recorder.close()
            return first, second, history

        first, second, history = asyncio.run(run())

        assert first.version_id is not None
        assert second.version_id is None
        assert history == [first.version_id]

    def test_first_version_flag_is_set_exactly_once(self, recorder):
        async def run():
            records = []
            for content in ["a", "b", "b", "c"]:
                records.append(await recorder.record("acme", "imprint", content))
            await recorder.close()
            return records

        records = asyncio.run(run())

        assert [r.is_first_version for r in records] == [True, False, False, False]
        assert [r.changed for r in records] == [True, True, False, True]

    def test_latest_record_is_never_an_older_version(self, recorder):
        async def run():
            v1 = await recorder.record("acme", "cookies-policy", "A")
            v2 = await recorder.record("acme", "cookies-policy", "B")
            latest = await recorder.get_latest_record("acme", "cookies-policy")
            await recorder.close()
            return v1, v2, latest

        v1, v2, latest = asyncio.run(run())

        assert latest.content == "B"
        assert latest.version_id == v2.version_id
        assert latest.version_id != v1.version_id
        assert latest.mime_type == "text/markdown"

    def test_untracked_document_lookups(self, recorder):
        async def run():
            await recorder.record("acme", "terms-of-service", "v1")
            latest = await recorder.get_latest_record("acme", "privacy-policy")
            tracked = await recorder.is_tracked("acme", "privacy-policy")
            other = await recorder.get_latest_record("other", "terms-of-service")
            await recorder.close()
            return latest, tracked, other

        latest, tracked, other = asyncio.run(run())

        assert latest is None
        assert tracked is False
        assert other is None

    def test_lookups_before_anything_was_recorded(self, recorder):
        async def run():
            return (
                await recorder.get_latest_record("acme", "terms-of-service"),
                await recorder.is_tracked("acme", "terms-of-service"),
                await recorder.history("acme", "terms-of-service"),
            )

        assert asyncio.run(run()) == (None, False, [])

    def test_is_tracked_after_record(self, recorder):
        async def run():
            await recorder.record(None, "terms-of-service", "v1")
            tracked = await recorder.is_tracked(None, "terms-of-service")
            await recorder.close()
            return tracked

        assert asyncio.run(run()) is True

    def test_collection_wide_document(self, recorder):
        async def run():
            record = await recorder.record(None, "privacy-policy", "v1")
            await recorder.close()
            return record

        record = asyncio.run(run())
        assert record.path == recorder.root / "privacy-policy.md"

    def test_invalid_utf8_in_text_document_is_replaced(self, recorder):
        async def run():
            record = await recorder.record("acme", "terms-of-service", b"\xff\xfe\x00ok")
            latest = await recorder.get_latest_record("acme", "terms-of-service")
            await recorder.close()
            return record, latest

        record, latest = asyncio.run(run())

        assert latest.version_id == record.version_id
        assert latest.mime_type == "text/markdown"
        assert latest.content == "\ufffd\ufffd\x00ok"

    def test_binary_content_round_trip(self, recorder):
        data = b"%PDF-1.4\n\x00\xff\x10"

        async def run():
            await recorder.record("acme", "terms-of-service", data, mime_type="application/pdf")
            latest = await recorder.get_latest_record("acme", "terms-of-service")
            await recorder.close()
            return latest

        latest = asyncio.run(run())

        assert latest.path.suffix == ".pdf"
        assert latest.mime_type == "application/pdf"
        assert latest.content == data

    def test_latest_record_follows_extension_change(self, recorder):
        async def run():
            await recorder.record("acme", "terms-of-service", "<p>v1</p>", extension="html")
            second = await recorder.record("acme", "terms-of-service", "v2")
            latest = await recorder.get_latest_record("acme", "terms-of-service")
            await recorder.close()
            return second, latest

        second, latest = asyncio.run(run())

        assert second.is_first_version is True
        assert latest.version_id == second.version_id
        assert latest.content == "v2"

    def test_invalid_identity_is_rejected(self, recorder):
        with pytest.raises(ValueError):
            asyncio.run(recorder.record("acme/../..", "terms-of-service", "v1"))

    def test_concurrent_records_commit_in_enqueue_order(self, temp_dir):
        backend = InMemoryBackend(temp_dir, commit_delay=0.005)
        queue = SpyCommitQueue(backend)
        recorder = Recorder(temp_dir, backend=backend, commit_runner=queue)
        collections = [f"service-{i}" for i in range(10)]

        async def run():
            records = await asyncio.gather(
                *(recorder.record(c, "terms-of-service", c) for c in collections)
            )
            await recorder.close()
            return records

        records = asyncio.run(run())

        assert all(r.is_first_version for r in records)
        assert [c.path for c in backend.commits] == queue.enqueued
        assert sorted(queue.enqueued) == sorted(f"{c}/terms-of-service.md" for c in collections)
        assert backend.max_concurrent_commits == 1

    @requires_git
    def test_concurrent_records_on_git(self, temp_dir):
        recorder = Recorder(temp_dir, backend=GitBackend(temp_dir))
        collections = [f"service-{i}" for i in range(6)]

        async def run():
            records = await asyncio.gather(
                *(recorder.record(c, "privacy-policy", f"{c} text") for c in collections)
            )
            history = [await recorder.history(c, "privacy-policy") for c in collections]
            await recorder.close()
            return records, history

        records, history = asyncio.run(run())

        assert len({r.version_id for r in records}) == len(collections)
        assert history == [[r.version_id] for r in records]

    def test_commit_failure_is_raised_and_isolated(self, temp_dir):
        backend = InMemoryBackend(temp_dir, fail_on={"x/terms-of-service.md"})
        recorder = Recorder(temp_dir, backend=backend)

        async def run():
            outcomes = await asyncio.gather(
                recorder.record("x", "terms-of-service", "x"),
                recorder.record("y", "terms-of-service", "y"),
                return_exceptions=True,
            )
            await recorder.close()
            return outcomes

        failure, record = asyncio.run(run())

        assert isinstance(failure, CommitFailure)
        assert isinstance(failure, RecordingFailure)
        assert "Start tracking x Terms of Service" in str(failure)
        assert record.version_id == backend.commits[0].version_id

    def test_write_failure(self, temp_dir):
        blocker = temp_dir / "acme"
        blocker.write_text("not a directory")
        recorder = Recorder(temp_dir, backend=InMemoryBackend(temp_dir))

        with pytest.raises(WriteFailure) as exc_info:
            asyncio.run(recorder.record("acme", "terms-of-service", "v1"))

        assert exc_info.value.path == str(temp_dir / "acme" / "terms-of-service.md")
        assert isinstance(exc_info.value, RecordingFailure)


class TestCommit:
    """Test the three-way commit outcome."""

    @pytest.fixture
    def backend(self, temp_dir):
        return InMemoryBackend(temp_dir)

    def test_committed_unchanged_failed(self, temp_dir):
        backend = InMemoryBackend(temp_dir, fail_on={"b/terms.md"})
        recorder = Recorder(temp_dir, backend=backend)

        async def run():
            first = await recorder.save("a", "terms", "v1")
            committed = await recorder.commit(first, "Start tracking a terms")
            unchanged = await recorder.commit(first, "Update a terms")
            second = await recorder.save("b", "terms", "v1")
            failed = await recorder.commit(second, "Start tracking b terms")
            await recorder.close()
            return committed, unchanged, failed

        committed, unchanged, failed = asyncio.run(run())

        assert committed.status is CommitStatus.COMMITTED
        assert committed.is_committed
        assert committed.version_id == backend.commits[0].version_id
        assert unchanged.status is CommitStatus.UNCHANGED
        assert unchanged.version_id is None
        assert failed.status is CommitStatus.FAILED
        assert isinstance(failed.error, CommitFailure)
        assert failed.error.message == "Start tracking b terms"

    def test_synchronous_commit_runner(self, backend, temp_dir):
        runner = SynchronousCommitRunner(backend)
        recorder = Recorder(temp_dir, backend=backend, commit_runner=runner)

        async def run():
            first = await recorder.record("acme", "privacy-policy", "v1", changelog="initial")
            second = await recorder.record("acme", "privacy-policy", "v2")
            await recorder.close()
            return first, second

        first, second = asyncio.run(run())

        assert runner.messages == [
            "Start tracking acme Privacy Policy\n\ninitial",
            "Update acme Privacy Policy",
        ]
        assert [c.version_id for c in backend.commits] == [first.version_id, second.version_id]


class TestCommitMessage:
    """Test commit message construction."""

    def test_first_version_subject(self):
        message = Recorder.commit_message("acme", "privacy-policy", True)
        assert message == "Start tracking acme Privacy Policy"

    def test_update_subject(self):
        message = Recorder.commit_message("acme", "terms-of-service", False)
        assert message == "Update acme Terms of Service"

    def test_changelog_body(self):
        message = Recorder.commit_message("acme", "imprint", False, "Section 2 reworded")
        assert message == "Update acme Imprint\n\nSection 2 reworded"

    def test_collection_wide_subject(self):
        assert Recorder.commit_message(None, "privacy-policy", True) == (
            "Start tracking Privacy Policy"
        )

    def test_unknown_kind_uses_its_id(self):
        assert Recorder.commit_message("acme", "bug-bounty", True) == (
            "Start tracking acme bug-bounty"
        )

    def test_recorded_message(self, temp_dir):
        backend = InMemoryBackend(temp_dir)
        recorder = Recorder(temp_dir, backend=backend)

        async def run():
            record = await recorder.record("acme", "privacy-policy", "v1", changelog="initial")
            await recorder.close()
            return record

        record = asyncio.run(run())
        assert backend.message_of(record.version_id) == (
            "Start tracking acme Privacy Policy\n\ninitial"
        )


class TestPublish:
    """Test publishing recorded versions."""

    def test_publish_pushes_versions(self, temp_dir):
        backend = InMemoryBackend(temp_dir)
        recorder = Recorder(temp_dir, backend=backend)

        async def run():
            await recorder.record("acme", "privacy-policy", "v1")
            await recorder.drain()
            await recorder.publish()
            await recorder.close()

        asyncio.run(run())
        assert backend.pushed == backend.commits

    def test_publish_failure_propagates(self, temp_dir):
        recorder = Recorder(temp_dir, backend=InMemoryBackend(temp_dir, fail_push=True))
        with pytest.raises(PublishFailure):
            asyncio.run(recorder.publish())


class TestContentTypes:
    """Test MIME type helpers."""

    @pytest.mark.parametrize(
        "mime_type,expected",
        [
            ("text/markdown", True),
            ("text/html", True),
            ("application/json", True),
            ("application/pdf", False),
            ("image/png", False),
            (None, False),
        ],
    )
    def test_is_textual(self, mime_type, expected):
        assert is_textual(mime_type) is expected

    @pytest.mark.parametrize(
        "mime_type,expected",
        [
            ("text/markdown", "md"),
            ("text/html", "html"),
            ("text/html; charset=utf-8", "html"),
            ("application/pdf", "pdf"),
            ("application/x-unknown-type", None),
            (None, None),
        ],
    )
    def test_extension_for(self, mime_type, expected):
        assert extension_for(mime_type) == expected
