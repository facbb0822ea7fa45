"""
Branch job factory.

The factory owns the shared BuildTemplate of one multibranch project and
is the only place branch jobs are created or rebound:

- new_instance(branch): pure in-memory construction, never saves
- set_branch(job, branch): rebinds in place; saves only when the branch
  actually changed, and a failed save is logged rather than raised
- is_project(item) / get_branch(job): membership test and accessor used by
  the reconciliation loop
- replace_all(...): atomic, save-free replacement of the template
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Optional, Sequence

import structlog

from .errors import RebindSaveFailure
from .job import BranchJob
from .scm.branch import Branch
from .steps import BUILDER, PUBLISHER, WRAPPER, BuildStep, StepDescriptor, step_registry
from .template import BuildTemplate, StepList

if TYPE_CHECKING:
    from .project import MultiBranchProject

logger = structlog.get_logger()


class BranchJobFactory:
    """Creates and rebinds the branch jobs of one multibranch project."""

    def __init__(
        self,
        builders: Optional[Sequence[BuildStep]] = None,
        wrappers: Optional[Sequence[BuildStep]] = None,
        publishers: Optional[Sequence[BuildStep]] = None,
        owner: Optional["MultiBranchProject"] = None,
    ):
        self.owner = owner
        self.template = BuildTemplate(self)
        # validation errors surface to the caller here; owner-less saves are no-ops
        if builders is not None:
            self.template.builders.replace_by(builders)
        if wrappers is not None:
            self.template.wrappers.replace_by(wrappers)
        if publishers is not None:
            self.template.publishers.replace_by(publishers)

    # Template access

    @property
    def wrappers(self) -> StepList:
        return self.template.wrappers

    @property
    def builders(self) -> StepList:
        return self.template.builders

    @property
    def publishers(self) -> StepList:
        return self.template.publishers

    def replace_all(
        self,
        wrappers: Optional[Sequence[BuildStep]] = None,
        builders: Optional[Sequence[BuildStep]] = None,
        publishers: Optional[Sequence[BuildStep]] = None,
    ) -> bool:
        """Replace the template without triggering a save. See BuildTemplate.replace_all."""
        return self.template.replace_all(wrappers, builders, publishers)

    def set_owner(self, owner: Optional["MultiBranchProject"]) -> None:
        self.owner = owner

    def save(self) -> None:
        if self.owner is not None:
            self.owner.save()

    # Job lifecycle

    def new_instance(self, branch: Branch) -> BranchJob:
        """Create the job for `branch` from a snapshot of the template."""
        wrappers, builders, publishers = self.template.snapshot()
        job = BranchJob(
            self,
            branch,
            properties=[],
            wrappers=wrappers,
            builders=builders,
            publishers=publishers,
        )
        logger.debug("branch_job_created", job=job.name, branch=branch.name)
        return job

    def set_branch(self, job: BranchJob, branch: Branch) -> BranchJob:
        """Rebind `job` to `branch` in place and return it.

        The rebind always happens. The job is saved only if `branch` differs
        from the current one; a failed save leaves the rebind standing.
        """
        if job.branch != branch:
            job.bind_branch(branch)
            try:
                job.save()
            except Exception as e:
                failure = RebindSaveFailure(job.name, f"Could not save job '{job.name}' after rebind: {e}")
                logger.warning(
                    "branch_rebind_save_failed",
                    code=failure.code,
                    job=job.name,
                    branch=branch.name,
                    exc_info=True,
                )
            else:
                logger.info("branch_rebound", job=job.name, branch=branch.name)
        else:
            job.bind_branch(branch)
        return job

    def is_project(self, item: Any) -> bool:
        return isinstance(item, BranchJob)

    def get_branch(self, job: BranchJob) -> Branch:
        return job.branch

    # Step type listings

    def wrapper_descriptors(self) -> List[StepDescriptor]:
        return step_registry.for_capability(WRAPPER, BranchJob)

    def builder_descriptors(self) -> List[StepDescriptor]:
        return step_registry.for_capability(BUILDER, BranchJob)

    def publisher_descriptors(self) -> List[StepDescriptor]:
        return step_registry.for_capability(PUBLISHER, BranchJob)

    def copy(self) -> "BranchJobFactory":
        """An owner-less factory with an independent copy of the template."""
        clone = BranchJobFactory()
        clone.template = self.template.copy(clone)
        return clone
