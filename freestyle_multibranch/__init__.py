"""
Freestyle Multibranch

Multibranch projects whose per-branch jobs are classic freestyle jobs:
a shared build template is materialized into one job per eligible branch.
"""

import importlib.metadata

__version__ = importlib.metadata.version("freestyle-multibranch")

from .bootstrap import initialize
from .build import BranchBuild, BuildStatus
from .criteria import AlwaysInclude, InclusionCriteria, MarkerFilePresent, bind_criteria
from .errors import (
    ConfigurationError,
    FreestyleMultibranchError,
    NodeDisconnected,
    PersistenceError,
    RebindSaveFailure,
    TemplateReplaceFailure,
)
from .factory import BranchJobFactory
from .job import BranchJob
from .persistence import FileJobStore
from .project import MultiBranchProject, MultiBranchProjectFactory
from .scm import Branch, SCMHead, encode_name
from .template import BuildTemplate
from .workspace import Node, WorkspaceList, decide_workspace

__all__ = [
    "AlwaysInclude",
    "Branch",
    "BranchBuild",
    "BranchJob",
    "BranchJobFactory",
    "BuildStatus",
    "BuildTemplate",
    "ConfigurationError",
    "FileJobStore",
    "FreestyleMultibranchError",
    "InclusionCriteria",
    "MarkerFilePresent",
    "MultiBranchProject",
    "MultiBranchProjectFactory",
    "Node",
    "NodeDisconnected",
    "PersistenceError",
    "RebindSaveFailure",
    "SCMHead",
    "TemplateReplaceFailure",
    "WorkspaceList",
    "bind_criteria",
    "decide_workspace",
    "encode_name",
    "initialize",
]
