"""Single-flight lock for whole-pipeline analysis runs.

One AnalysisLock instance is created at process start (see
``pipedash.cli.context.ProjectContext``) and handed to every caller that
needs exclusion. It has two states: free, or held by one pipeline slug.

    lock = AnalysisLock()
    result = lock.acquire("content")
    if not result.acquired:
        print(f"busy: {result.held_by}")
    try:
        ...
    finally:
        lock.release("content")
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .errors import LockNotHeldError
from .types import LockResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisLockState:
    pipeline_slug: str
    started_at: datetime


class AnalysisLock:
    """In-memory lock ensuring only one pipeline is analyzed at a time."""

    def __init__(self):
        self._state: Optional[AnalysisLockState] = None
        self._guard = threading.Lock()

    def acquire(self, pipeline_slug: str) -> LockResult:
        """Try to take the lock for a pipeline.

        Not re-entrant: acquiring again for the holder's own slug fails too.

        Returns:
            LockResult(acquired=True), or LockResult(acquired=False,
            held_by=<current holder>)
        """
        _check_slug(pipeline_slug)
        with self._guard:
            if self._state is None:
                self._state = AnalysisLockState(pipeline_slug, datetime.now())
                logger.debug(f"Analysis lock acquired for '{pipeline_slug}'")
                return LockResult(acquired=True)
            return LockResult(acquired=False, held_by=self._state.pipeline_slug)

    def release(self, pipeline_slug: str) -> None:
        """Release the lock held by ``pipeline_slug``.

        Raises:
            LockNotHeldError: If no lock is held, or another slug holds it
        """
        _check_slug(pipeline_slug)
        with self._guard:
            if self._state is None:
                raise LockNotHeldError(
                    f"Cannot release lock for '{pipeline_slug}': no lock is currently held"
                )
            if self._state.pipeline_slug != pipeline_slug:
                raise LockNotHeldError(
                    f"Cannot release lock for '{pipeline_slug}': "
                    f"lock is held by '{self._state.pipeline_slug}'"
                )
            self._state = None
            logger.debug(f"Analysis lock released for '{pipeline_slug}'")

    def get_status(self) -> Optional[AnalysisLockState]:
        """Current holder, or None when free."""
        return self._state


def _check_slug(pipeline_slug: str) -> None:
    if not pipeline_slug or not isinstance(pipeline_slug, str):
        raise ValueError(
            f"Invalid pipeline_slug: expected non-empty string, got {type(pipeline_slug).__name__}"
        )
