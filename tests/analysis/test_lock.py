"""Tests for AnalysisLock."""

import pytest

from pipedash.analysis import AnalysisLock
from pipedash.analysis.errors import LockNotHeldError
from pipedash.analysis.types import LockResult


class TestAnalysisLock:
    """Tests for the single-flight analysis lock."""

    def test_acquire_free_lock(self):
        lock = AnalysisLock()
        assert lock.acquire("content") == LockResult(acquired=True)
        status = lock.get_status()
        assert status.pipeline_slug == "content"
        assert status.started_at is not None

    def test_second_acquire_reports_holder(self):
        lock = AnalysisLock()
        lock.acquire("a")
        result = lock.acquire("b")
        assert result == LockResult(acquired=False, held_by="a")
        assert result.to_dict() == {"acquired": False, "heldBy": "a"}

    def test_not_reentrant(self):
        """Acquiring again for the same slug fails too."""
        lock = AnalysisLock()
        lock.acquire("a")
        assert lock.acquire("a") == LockResult(acquired=False, held_by="a")

    def test_release_then_acquire(self):
        lock = AnalysisLock()
        lock.acquire("a")
        lock.release("a")
        assert lock.get_status() is None
        assert lock.acquire("b").acquired is True

    def test_release_by_wrong_holder_raises(self):
        lock = AnalysisLock()
        lock.acquire("a")
        with pytest.raises(LockNotHeldError, match="held by 'a'"):
            lock.release("b")
        assert lock.get_status().pipeline_slug == "a"

    def test_release_when_free_raises(self):
        lock = AnalysisLock()
        with pytest.raises(LockNotHeldError, match="no lock is currently held"):
            lock.release("a")

    def test_status_when_free(self):
        assert AnalysisLock().get_status() is None

    def test_instances_are_independent(self):
        first = AnalysisLock()
        second = AnalysisLock()
        first.acquire("a")
        assert second.acquire("b").acquired is True

    @pytest.mark.parametrize("slug", ["", None, 42])
    def test_invalid_slug(self, slug):
        with pytest.raises(ValueError):
            AnalysisLock().acquire(slug)
