"""
Per-branch job.

A BranchJob behaves like a hand-configured freestyle job whose identity is
the encoded name of the branch it was created for. It owns private copies
of the template's steps; later template edits do not reach it.
"""

from __future__ import annotations

import threading
import weakref
from typing import TYPE_CHECKING, Any, Iterable, List, Optional

from .scm.branch import Branch
from .steps import BUILDER, PUBLISHER, WRAPPER, BuildStep
from .template import StepList, detached_owner

if TYPE_CHECKING:
    from .factory import BranchJobFactory
    from .project import MultiBranchProject


class BranchJob:
    """The job materialized for one branch.

    Attributes:
        properties: Extra job properties (opaque)
        disabled: Job-level switch; a disabled job is never buildable
        wrappers, builders, publishers: This job's own step lists
    """

    def __init__(
        self,
        factory: Optional["BranchJobFactory"],
        branch: Branch,
        properties: Iterable[Any] = (),
        wrappers: Iterable[BuildStep] = (),
        builders: Iterable[BuildStep] = (),
        publishers: Iterable[BuildStep] = (),
    ):
        self._factory_ref = weakref.ref(factory) if factory is not None else None
        self._name = branch.encoded_name
        self._branch = branch
        self._lock = threading.Lock()
        self.properties: List[Any] = list(properties)
        self.disabled = False
        self.next_build_number = 1

        self.wrappers = StepList(self, WRAPPER, keyed=True)
        self.builders = StepList(self, BUILDER)
        self.publishers = StepList(self, PUBLISHER, keyed=True)
        # populating the lists must not persist a job nobody has saved yet
        with detached_owner(self.wrappers, self.builders, self.publishers):
            self.wrappers.replace_by(wrappers)
            self.builders.replace_by(builders)
            self.publishers.replace_by(publishers)

    @property
    def factory(self) -> Optional["BranchJobFactory"]:
        return self._factory_ref() if self._factory_ref is not None else None

    def set_factory(self, factory: Optional["BranchJobFactory"]) -> None:
        """Re-point this job at the factory its project now uses."""
        self._factory_ref = weakref.ref(factory) if factory is not None else None

    @property
    def parent(self) -> Optional["MultiBranchProject"]:
        factory = self.factory
        return factory.owner if factory is not None else None

    @property
    def name(self) -> str:
        return self._name

    @property
    def display_name(self) -> str:
        return self._branch.name

    @property
    def branch(self) -> Branch:
        return self._branch

    @property
    def full_name(self) -> str:
        parent = self.parent
        return f"{parent.full_name}/{self._name}" if parent is not None else self._name

    def is_name_editable(self) -> bool:
        return False

    def get_scm(self) -> Any:
        return self._branch.scm

    def is_buildable(self) -> bool:
        return not self.disabled and self._branch.is_buildable()

    def bind_branch(self, branch: Branch) -> None:
        """Point this job at `branch`. Callers go through the factory."""
        self._branch = branch

    def assign_build_number(self) -> int:
        with self._lock:
            number = self.next_build_number
            self.next_build_number += 1
            return number

    def save(self) -> None:
        """Persist this job through the owning project's store, if any."""
        parent = self.parent
        if parent is not None:
            parent.save_job(self)

    def __repr__(self) -> str:
        return f"BranchJob({self._name!r}, branch={self._branch.name!r})"
