"""Test configuration and fixtures."""

from unittest.mock import MagicMock

import pytest

from freestyle_multibranch.persistence import FileJobStore, register_type_aliases
from freestyle_multibranch.project import MultiBranchProject
from freestyle_multibranch.scm.branch import Branch
from freestyle_multibranch.steps import ArtifactArchiver, BuildTimeoutWrapper, ShellBuilder


@pytest.fixture(autouse=True)
def type_aliases():
    """Record type tags are registered as they would be at process start."""
    register_type_aliases()
    yield
    register_type_aliases()


@pytest.fixture
def mock_store() -> MagicMock:
    """A store double that records save/delete calls."""
    return MagicMock(spec=FileJobStore)


@pytest.fixture
def project(mock_store) -> MultiBranchProject:
    """A multibranch project with a one-step-of-each-kind template."""
    proj = MultiBranchProject("app", store=mock_store)
    proj.factory.replace_all(
        wrappers=[BuildTimeoutWrapper(timeout_minutes=30)],
        builders=[ShellBuilder(command="make test")],
        publishers=[ArtifactArchiver(artifacts="dist/*")],
    )
    return proj


@pytest.fixture
def file_store(tmp_path) -> FileJobStore:
    return FileJobStore(tmp_path / "state")


@pytest.fixture
def master() -> Branch:
    return Branch.of("master")


@pytest.fixture
def feature() -> Branch:
    return Branch.of("feature/x")
