"""
Workspace resolution for branch job builds.

Every branch job builds in `<parent workspace on node>/<encoded branch name>`,
so all branch workspaces of one multibranch project sit together under the
project's own workspace. Leases are exclusive per path: sibling branch jobs
never share a path, and two builds of the same branch job on the same node
take turns.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

import structlog

from .errors import NodeDisconnected

if TYPE_CHECKING:
    from .job import BranchJob

logger = structlog.get_logger()

# Poll interval while waiting on a busy workspace, so cancellation is noticed.
_WAIT_SLICE_SECONDS = 0.1


class Node:
    """An execution node with a workspace root."""

    def __init__(self, name: str, root: Path, online: bool = True):
        self.name = name
        self.root = Path(root)
        self.online = online

    def workspace_for(self, item: Any) -> Optional[Path]:
        """Workspace of a top-level item on this node, None when offline."""
        if not self.online:
            return None
        return self.root / item.full_name

    def __repr__(self) -> str:
        return f"Node({self.name!r}, online={self.online})"


class WorkspaceLease:
    """Exclusive use of one workspace path on one node, for one build."""

    def __init__(self, node_name: str, path: Path, owner: "WorkspaceList"):
        self.node_name = node_name
        self.path = path
        self._owner = owner
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Give the path back. Safe to call more than once."""
        if self._released:
            return
        self._released = True
        self._owner._release(self.path)

    def __enter__(self) -> "WorkspaceLease":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"WorkspaceLease({self.node_name!r}, {str(self.path)!r})"


class WorkspaceList:
    """Tracks which workspace paths of one node are in use."""

    def __init__(self, node_name: str = ""):
        self.node_name = node_name
        self._in_use: Dict[Path, str] = {}
        self._cond = threading.Condition()

    def acquire(
        self,
        path: Path,
        holder: str = "",
        cancelled: Optional[threading.Event] = None,
    ) -> WorkspaceLease:
        """Block until `path` is free, then lease it.

        Raises:
            InterruptedError: If `cancelled` is set while waiting
        """
        path = Path(path)
        with self._cond:
            while path in self._in_use:
                if cancelled is not None and cancelled.is_set():
                    raise InterruptedError(f"Cancelled while waiting for workspace {path}")
                logger.debug(
                    "workspace_busy", path=str(path), held_by=self._in_use[path]
                )
                self._cond.wait(_WAIT_SLICE_SECONDS)
            if cancelled is not None and cancelled.is_set():
                raise InterruptedError(f"Cancelled before acquiring workspace {path}")
            self._in_use[path] = holder
        return WorkspaceLease(self.node_name, path, self)

    def in_use(self, path: Path) -> bool:
        with self._cond:
            return Path(path) in self._in_use

    def _release(self, path: Path) -> None:
        with self._cond:
            self._in_use.pop(path, None)
            self._cond.notify_all()


def decide_workspace(
    node: Node,
    workspace_list: WorkspaceList,
    job: "BranchJob",
    cancelled: Optional[threading.Event] = None,
) -> WorkspaceLease:
    """Lease the workspace a build of `job` runs in on `node`.

    Raises:
        NodeDisconnected: If the node has no workspace for the parent
            project, e.g. it went offline after the build was scheduled
    """
    parent = job.parent
    if parent is None:
        raise ValueError(f"Job '{job.name}' is not attached to a multibranch project")

    parent_workspace = node.workspace_for(parent)
    if parent_workspace is None:
        raise NodeDisconnected(
            node.name,
            f"Node '{node.name}' has no workspace for '{parent.full_name}'; "
            "it was probably disconnected since the build was scheduled",
        )

    lease = workspace_list.acquire(
        parent_workspace / job.name, holder=job.full_name, cancelled=cancelled
    )
    logger.debug("workspace_leased", job=job.full_name, node=node.name, path=str(lease.path))
    return lease
