"""
SCM-facing value types: branches, heads and read-only probes.
"""

from .branch import Branch, NullSCM, SCMHead, encode_name
from .probe import (
    DirectoryProbe,
    GitProbe,
    MappingProbe,
    Probe,
    ProbeStat,
    list_git_branches,
)

__all__ = [
    "Branch",
    "NullSCM",
    "SCMHead",
    "encode_name",
    "Probe",
    "ProbeStat",
    "DirectoryProbe",
    "MappingProbe",
    "GitProbe",
    "list_git_branches",
]
