"""
Build lifecycle for branch jobs.

A BranchBuild resolves its workspace when it starts, captures the branch the
job is bound to at that moment, and releases the workspace when it ends.
A rebind of the job during the build does not affect the running build.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

import structlog

from .job import BranchJob
from .scm.branch import Branch
from .steps import BuildStep
from .workspace import Node, WorkspaceLease, WorkspaceList, decide_workspace

logger = structlog.get_logger()


class BuildStatus(Enum):
    """Build status."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class BranchBuild:
    """One build of a branch job."""

    def __init__(self, job: BranchJob):
        self.job = job
        self.number: Optional[int] = None
        self.status = BuildStatus.PENDING
        self.branch: Optional[Branch] = None
        self.lease: Optional[WorkspaceLease] = None
        self.started_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None
        self._cancelled = threading.Event()
        # guards status, lease and completion transitions
        self._lock = threading.Lock()

    @property
    def workspace(self):
        return self.lease.path if self.lease is not None else None

    def start(self, node: Node, workspace_list: WorkspaceList) -> "BranchBuild":
        """Lease the workspace and capture the branch.

        Raises:
            RuntimeError: If the build was already started
            NodeDisconnected: If the node lost the parent's workspace
            InterruptedError: If cancelled before the build got running
        """
        with self._lock:
            if self.status is not BuildStatus.PENDING:
                raise RuntimeError(f"Build of {self.job.name} already {self.status.value}")
            if not self.job.is_buildable():
                raise RuntimeError(f"Job {self.job.name} is not buildable")

        try:
            lease = decide_workspace(node, workspace_list, self.job, self._cancelled)
        except InterruptedError:
            with self._lock:
                self.status = BuildStatus.CANCELLED
            raise
        except Exception:
            with self._lock:
                self.status = BuildStatus.FAILED
            raise

        with self._lock:
            if self._cancelled.is_set():
                # cancelled between acquiring the lease and getting here
                lease.release()
                self.status = BuildStatus.CANCELLED
                raise InterruptedError(f"Build of {self.job.name} was cancelled")
            self.lease = lease
            self.branch = self.job.branch
            self.number = self.job.assign_build_number()
            self.status = BuildStatus.RUNNING
            self.started_at = datetime.now(timezone.utc)
        logger.info(
            "build_started",
            job=self.job.full_name,
            number=self.number,
            branch=self.branch.name,
            workspace=str(self.lease.path),
        )
        return self

    def steps(self) -> List[BuildStep]:
        """Wrappers, builders and publishers in execution order."""
        return (
            self.job.wrappers.to_list()
            + self.job.builders.to_list()
            + self.job.publishers.to_list()
        )

    def finish(self, success: bool = True) -> None:
        """End the build and release its workspace."""
        with self._lock:
            if self.status is BuildStatus.RUNNING:
                self.status = BuildStatus.COMPLETED if success else BuildStatus.FAILED
            ended = self._end()
        if ended:
            self._log_finished()

    def cancel(self) -> None:
        """Cancel the build, whether it is waiting for a workspace or running."""
        with self._lock:
            self._cancelled.set()
            if self.status in (BuildStatus.PENDING, BuildStatus.RUNNING):
                self.status = BuildStatus.CANCELLED
            ended = self._end()
        if ended:
            self._log_finished()

    def _end(self) -> bool:
        """Release the lease and stamp completion. Caller holds the lock."""
        if self.lease is not None:
            self.lease.release()
        if self.completed_at is None and self.status is not BuildStatus.PENDING:
            self.completed_at = datetime.now(timezone.utc)
            return True
        return False

    def _log_finished(self) -> None:
        logger.info(
            "build_finished",
            job=self.job.full_name,
            number=self.number,
            status=self.status.value,
        )

    def __enter__(self) -> "BranchBuild":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.finish(success=exc_type is None)
