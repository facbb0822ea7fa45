"""
Multibranch projects.

MultiBranchProject owns one BranchJobFactory, the inclusion criteria and the
branch jobs created so far. MultiBranchProjectFactory creates one such
project per repository found by an organization scan.

The real reconciliation loop (discovery, event delivery, orphan handling)
lives in the orchestrator; reconcile() below is the minimal in-process
driver of the same contract.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, TextIO, Tuple

import structlog

from .config import get_settings
from .criteria import AlwaysInclude, InclusionCriteria, bind_criteria
from .errors import ConfigurationError, PersistenceError
from .factory import BranchJobFactory
from .job import BranchJob
from .scm.branch import Branch
from .scm.probe import Probe
from .steps import BUILDER, PUBLISHER, WRAPPER, step_registry

logger = structlog.get_logger()


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass, by job name."""

    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    excluded: List[str] = field(default_factory=list)


class MultiBranchProject:
    """A project that keeps one freestyle-style job per eligible branch."""

    def __init__(
        self,
        name: str,
        folder: Optional[str] = None,
        store: Optional[Any] = None,
    ):
        self.name = name
        self.folder = folder
        self.store = store
        self.items: Dict[str, BranchJob] = {}
        self.needs_rescan = False
        self._criteria: InclusionCriteria = AlwaysInclude()
        self.factory = self.new_project_factory()
        self.factory.set_owner(self)

    @property
    def full_name(self) -> str:
        return f"{self.folder}/{self.name}" if self.folder else self.name

    def new_project_factory(self) -> BranchJobFactory:
        return BranchJobFactory()

    def set_project_factory(self, factory: BranchJobFactory) -> None:
        """Install `factory` and move the existing branch jobs over to it."""
        factory.set_owner(self)
        self.factory = factory
        for job in self.items.values():
            job.set_factory(factory)

    # Inclusion criteria

    @property
    def inclusion_criteria(self) -> InclusionCriteria:
        return self._criteria

    @inclusion_criteria.setter
    def inclusion_criteria(self, criteria: Optional[InclusionCriteria]) -> None:
        self.set_inclusion_criteria(criteria)

    def set_inclusion_criteria(self, criteria: Optional[InclusionCriteria]) -> bool:
        """Store `criteria` unless it equals the current one.

        Returns:
            True if the stored criteria changed
        """
        criteria = criteria if criteria is not None else AlwaysInclude()
        if criteria == self._criteria:
            return False
        self._criteria = criteria
        return True

    def get_inclusion_criteria(self, source: Any = None) -> Optional[InclusionCriteria]:
        """Criteria the orchestrator applies to heads of `source`.

        None means "accept every head" and is returned for AlwaysInclude.
        """
        if isinstance(self._criteria, AlwaysInclude):
            return None
        return self._criteria

    # Configuration

    def submit(self, form: Mapping[str, Any]) -> None:
        """Apply a submitted configuration form and save.

        Recognized keys: "inclusion_criteria" (a criteria form), "wrappers",
        "builders", "publishers" (lists of step records). Everything is bound
        before anything is applied, so a ConfigurationError leaves the project
        untouched and unsaved.
        """
        criteria = None
        if "inclusion_criteria" in form:
            criteria = bind_criteria(form["inclusion_criteria"])
        steps = {}
        for key, capability in (("wrappers", WRAPPER), ("builders", BUILDER), ("publishers", PUBLISHER)):
            if key in form:
                records = form[key]
                if not isinstance(records, list):
                    raise ConfigurationError(f"'{key}' must be a list of step records")
                steps[key] = step_registry.instantiate_all(records, capability)

        if steps and not self.factory.replace_all(**steps):
            logger.warning("template_needs_resave", project=self.full_name)
        if criteria is not None and self.set_inclusion_criteria(criteria):
            self.needs_rescan = True
            logger.info(
                "inclusion_criteria_changed",
                project=self.full_name,
                criteria=criteria.to_form(),
            )
        self.save()

    # Children

    def get_item(self, name: str) -> Optional[BranchJob]:
        return self.items.get(name)

    def dummy_branch_job(self) -> BranchJob:
        """A throwaway job, never added to items, for step applicability checks."""
        return BranchJob(self.factory, Branch.dummy())

    def primary_branch_job(self) -> Optional[BranchJob]:
        """The job of the main line of development, or the first job."""
        if not self.items:
            return None
        primary = get_settings().primary_branches
        for job in self.items.values():
            if job.name in primary:
                return job
        return next(iter(self.items.values()))

    def reconcile(
        self, candidates: Iterable[Tuple[Branch, Probe]], log: TextIO
    ) -> ReconcileResult:
        """Bring the children in line with the discovered heads."""
        result = ReconcileResult()
        criteria = self.get_inclusion_criteria()
        seen = set()

        for branch, probe in candidates:
            if criteria is not None:
                with probe:
                    included = criteria.is_head(probe, log)
                if not included:
                    log.write(f"Skipping {branch.name}: does not meet criteria\n")
                    result.excluded.append(branch.encoded_name)
                    continue

            name = branch.encoded_name
            if name in seen:
                logger.warning(
                    "duplicate_branch_head", project=self.full_name, job=name, branch=branch.name
                )
                continue
            seen.add(name)

            job = self.items.get(name)
            if job is None or not self.factory.is_project(job):
                job = self.factory.new_instance(branch)
                self.items[name] = job
                self._save_new_job(job)
                result.created.append(name)
            else:
                self.factory.set_branch(job, branch)
                result.updated.append(name)

        for name in [n for n in self.items if n not in seen]:
            self._delete_vanished_job(name)
            result.removed.append(name)

        self.needs_rescan = False
        logger.info(
            "reconcile_completed",
            project=self.full_name,
            created=len(result.created),
            updated=len(result.updated),
            removed=len(result.removed),
            excluded=len(result.excluded),
        )
        return result

    def delete_job(self, name: str) -> None:
        job = self.items.pop(name, None)
        if job is not None and self.store is not None:
            self.store.delete_job(self, job)

    def _save_new_job(self, job: BranchJob) -> None:
        # the job exists in memory either way; the next successful save persists it
        try:
            job.save()
        except PersistenceError as e:
            logger.warning(
                "branch_job_save_failed",
                code=e.code,
                project=self.full_name,
                job=job.name,
                exc_info=True,
            )

    def _delete_vanished_job(self, name: str) -> None:
        try:
            self.delete_job(name)
        except PersistenceError as e:
            logger.warning(
                "branch_job_delete_failed",
                code=e.code,
                project=self.full_name,
                job=name,
                exc_info=True,
            )

    # Persistence

    def save(self) -> None:
        if self.store is not None:
            self.store.save_project(self)

    def save_job(self, job: BranchJob) -> None:
        if self.store is not None:
            self.store.save_job(self, job)

    def __repr__(self) -> str:
        return f"MultiBranchProject({self.full_name!r}, jobs={len(self.items)})"


class MultiBranchProjectFactory:
    """Creates a multibranch project for each recognized repository."""

    def __init__(
        self,
        factory: Optional[BranchJobFactory] = None,
        inclusion_criteria: Optional[InclusionCriteria] = None,
        store: Optional[Any] = None,
    ):
        self.factory = factory if factory is not None else BranchJobFactory()
        self.inclusion_criteria = inclusion_criteria or AlwaysInclude()
        self.store = store

    def get_inclusion_criteria(self, source: Any = None) -> InclusionCriteria:
        return self.inclusion_criteria

    def recognizes(self, probes: Iterable[Probe], log: TextIO) -> bool:
        """Whether any head of a repository meets the criteria."""
        for probe in probes:
            with probe:
                if self.inclusion_criteria.is_head(probe, log):
                    return True
        return False

    def create_project(self, name: str, folder: Optional[str] = None) -> MultiBranchProject:
        """A new project with its own copy of the configured factory."""
        project = MultiBranchProject(name, folder=folder, store=self.store)
        project.set_project_factory(self.factory.copy())
        project.set_inclusion_criteria(self.inclusion_criteria)
        logger.info("multibranch_project_created", project=project.full_name)
        return project
