"""Unit tests for workspace resolution and leasing."""

import threading
import time

import pytest

from freestyle_multibranch.errors import NodeDisconnected
from freestyle_multibranch.factory import BranchJobFactory
from freestyle_multibranch.project import MultiBranchProject
from freestyle_multibranch.workspace import Node, WorkspaceList, decide_workspace


@pytest.fixture
def node(tmp_path) -> Node:
    return Node("agent-1", tmp_path / "ws")


class TestDecideWorkspace:
    """Tests for the workspace path a branch job builds in."""

    def test_path_is_parent_workspace_plus_job_name(self, node, project, feature):
        job = project.factory.new_instance(feature)

        with decide_workspace(node, WorkspaceList(node.name), job) as lease:
            assert lease.path == node.root / "app" / "feature-x"
            assert lease.node_name == "agent-1"

    def test_path_is_deterministic(self, node, project, feature):
        job = project.factory.new_instance(feature)
        workspaces = WorkspaceList(node.name)

        with decide_workspace(node, workspaces, job) as first:
            first_path = first.path
        with decide_workspace(node, workspaces, job) as second:
            assert second.path == first_path

    def test_path_includes_folder(self, node, mock_store, feature):
        owner = MultiBranchProject("app", folder="org", store=mock_store)
        job = owner.factory.new_instance(feature)

        with decide_workspace(node, WorkspaceList(), job) as lease:
            assert lease.path == node.root / "org" / "app" / "feature-x"

    def test_sibling_jobs_get_distinct_leases(self, node, project, master, feature):
        workspaces = WorkspaceList(node.name)
        master_job = project.factory.new_instance(master)
        feature_job = project.factory.new_instance(feature)

        with decide_workspace(node, workspaces, master_job) as a:
            with decide_workspace(node, workspaces, feature_job) as b:
                assert a.path != b.path
                assert workspaces.in_use(a.path) and workspaces.in_use(b.path)

    def test_offline_node_raises(self, node, project, master):
        node.online = False
        job = project.factory.new_instance(master)

        with pytest.raises(NodeDisconnected) as exc_info:
            decide_workspace(node, WorkspaceList(node.name), job)
        assert exc_info.value.code == "NODE_DISCONNECTED"
        assert exc_info.value.node_name == "agent-1"

    def test_job_without_parent_raises(self, node, master):
        factory = BranchJobFactory()
        job = factory.new_instance(master)

        with pytest.raises(ValueError):
            decide_workspace(node, WorkspaceList(), job)


class TestWorkspaceList:
    """Tests for exclusive leasing."""

    def test_release_frees_path(self, tmp_path):
        workspaces = WorkspaceList()
        lease = workspaces.acquire(tmp_path / "a")

        lease.release()
        lease.release()

        assert lease.released
        assert not workspaces.in_use(tmp_path / "a")

    def test_second_acquire_waits_for_release(self, tmp_path):
        workspaces = WorkspaceList()
        first = workspaces.acquire(tmp_path / "a", holder="build 1")
        acquired = []

        thread = threading.Thread(
            target=lambda: acquired.append(workspaces.acquire(tmp_path / "a", holder="build 2"))
        )
        thread.start()
        time.sleep(0.3)
        assert acquired == []

        first.release()
        thread.join(timeout=5)

        assert len(acquired) == 1
        assert acquired[0].path == first.path
        acquired[0].release()

    def test_cancelled_wait_raises(self, tmp_path):
        workspaces = WorkspaceList()
        held = workspaces.acquire(tmp_path / "a")
        cancelled = threading.Event()
        errors = []

        def wait():
            try:
                workspaces.acquire(tmp_path / "a", cancelled=cancelled)
            except InterruptedError as e:
                errors.append(e)

        thread = threading.Thread(target=wait)
        thread.start()
        time.sleep(0.2)
        cancelled.set()
        thread.join(timeout=5)

        assert len(errors) == 1
        assert workspaces.in_use(held.path)
        held.release()
