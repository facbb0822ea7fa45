"""
Durable records for multibranch projects and their branch jobs.

Layout under the store root:
    {project full name}/
    ├── config.json                  # "_type": "freestyle-multibranch"
    └── branches/
        └── {encoded branch name}/
            └── config.json          # "_type": "freestyle-branch"

The "_type" tags are stable aliases registered at process start by
bootstrap.initialize(). Records cannot be written or read before that.

SCM bindings are opaque to this package. Only their type name is recorded,
and a loaded job is bound to a NullSCM branch until the next reconciliation
rebinds it to the freshly resolved one.
"""

from __future__ import annotations

import json
import shutil
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Type

import structlog

from .config import get_settings
from .criteria import bind_criteria
from .errors import ConfigurationError, PersistenceError
from .scm.branch import Branch, NullSCM, SCMHead
from .steps import BUILDER, PUBLISHER, WRAPPER, step_registry

if TYPE_CHECKING:
    from .job import BranchJob
    from .project import MultiBranchProject

logger = structlog.get_logger()

PROJECT_TYPE = "freestyle-multibranch"
BRANCH_JOB_TYPE = "freestyle-branch"

CONFIG_FILE = "config.json"
BRANCHES_DIR = "branches"

_type_aliases: Dict[str, type] = {}
_aliases_lock = threading.Lock()


def register_type_aliases() -> None:
    """Register the record type tags. Safe to call more than once."""
    from .job import BranchJob
    from .project import MultiBranchProject

    with _aliases_lock:
        _type_aliases[PROJECT_TYPE] = MultiBranchProject
        _type_aliases[BRANCH_JOB_TYPE] = BranchJob


def clear_type_aliases() -> None:
    with _aliases_lock:
        _type_aliases.clear()


def type_for_tag(tag: str) -> type:
    with _aliases_lock:
        cls = _type_aliases.get(tag)
    if cls is None:
        raise PersistenceError(
            f"Record type '{tag}' is not registered; call initialize() at process start"
        )
    return cls


def tag_for(obj: Any) -> str:
    with _aliases_lock:
        for tag, cls in _type_aliases.items():
            if type(obj) is cls:
                return tag
    raise PersistenceError(
        f"No record type registered for {type(obj).__name__}; call initialize() at process start"
    )


def _branch_to_record(branch: Branch) -> Dict[str, Any]:
    return {
        "name": branch.name,
        "head": branch.head.model_dump(),
        "buildable": branch.buildable,
        "scm": type(branch.scm).__name__,
    }


def _branch_from_record(record: Dict[str, Any]) -> Branch:
    return Branch(
        name=record["name"],
        head=SCMHead(**record["head"]),
        scm=NullSCM(),
        buildable=record.get("buildable", True),
    )


def _steps_to_record(owner: Any) -> Dict[str, List[Dict[str, Any]]]:
    return {
        "wrappers": [step.to_record() for step in owner.wrappers],
        "builders": [step.to_record() for step in owner.builders],
        "publishers": [step.to_record() for step in owner.publishers],
    }


def _steps_from_record(record: Dict[str, Any]) -> Dict[str, list]:
    return {
        key: step_registry.instantiate_all(record.get(key, []), capability)
        for key, capability in (
            ("wrappers", WRAPPER),
            ("builders", BUILDER),
            ("publishers", PUBLISHER),
        )
    }


class FileJobStore:
    """Local filesystem store for project and branch job records."""

    def __init__(self, root: Path):
        self.root = Path(root)

    # Paths

    def project_dir(self, full_name: str) -> Path:
        return self.root / full_name

    def job_dir(self, project: "MultiBranchProject", job_name: str) -> Path:
        return self.project_dir(project.full_name) / BRANCHES_DIR / job_name

    # Writing

    def _write_json(self, path: Path, data: Dict[str, Any]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            raise PersistenceError(f"Could not write {path}: {e}") from e

    def save_project(self, project: "MultiBranchProject") -> None:
        record = {
            "_type": tag_for(project),
            "name": project.name,
            "folder": project.folder,
            "inclusion_criteria": project.inclusion_criteria.to_form(),
            "needs_rescan": project.needs_rescan,
            "template": _steps_to_record(project.factory),
        }
        self._write_json(self.project_dir(project.full_name) / CONFIG_FILE, record)
        logger.debug("project_saved", project=project.full_name)

    def save_job(self, project: "MultiBranchProject", job: "BranchJob") -> None:
        record = {
            "_type": tag_for(job),
            "name": job.name,
            "branch": _branch_to_record(job.branch),
            "disabled": job.disabled,
            "next_build_number": job.next_build_number,
            **_steps_to_record(job),
        }
        self._write_json(self.job_dir(project, job.name) / CONFIG_FILE, record)
        logger.debug("branch_job_saved", project=project.full_name, job=job.name)

    def delete_job(self, project: "MultiBranchProject", job: "BranchJob") -> None:
        path = self.job_dir(project, job.name)
        try:
            if path.exists():
                shutil.rmtree(path)
        except OSError as e:
            raise PersistenceError(f"Could not delete {path}: {e}") from e
        logger.info("branch_job_deleted", project=project.full_name, job=job.name)

    # Reading

    def _read_record(self, path: Path, expected: Type) -> Dict[str, Any]:
        try:
            record = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise PersistenceError(f"No record at {path}") from None
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Could not read {path}: {e}") from e
        tag = record.get("_type")
        if not tag:
            raise PersistenceError(f"Record {path} has no '_type' tag")
        if type_for_tag(tag) is not expected:
            raise PersistenceError(f"Record {path} is a '{tag}', not a {expected.__name__}")
        return record

    def load_project(self, full_name: str) -> "MultiBranchProject":
        """Load a project and all of its branch jobs."""
        from .job import BranchJob
        from .project import MultiBranchProject

        record = self._read_record(
            self.project_dir(full_name) / CONFIG_FILE, MultiBranchProject
        )
        try:
            criteria = bind_criteria(record.get("inclusion_criteria", {"kind": "always"}))
            template = _steps_from_record(record.get("template", {}))
        except ConfigurationError as e:
            raise PersistenceError(f"Invalid record for project '{full_name}': {e.message}") from e

        project = MultiBranchProject(record["name"], folder=record.get("folder"), store=self)
        project.set_inclusion_criteria(criteria)
        project.needs_rescan = record.get("needs_rescan", False)
        if not project.factory.replace_all(**template):
            raise PersistenceError(f"Could not restore the template of '{full_name}'")

        branches = self.project_dir(full_name) / BRANCHES_DIR
        if branches.is_dir():
            for job_dir in sorted(p for p in branches.iterdir() if p.is_dir()):
                job_record = self._read_record(job_dir / CONFIG_FILE, BranchJob)
                job = self._job_from_record(project, job_record)
                project.items[job.name] = job

        logger.info("project_loaded", project=full_name, jobs=len(project.items))
        return project

    def _job_from_record(
        self, project: "MultiBranchProject", record: Dict[str, Any]
    ) -> "BranchJob":
        from .job import BranchJob

        try:
            branch = _branch_from_record(record["branch"])
            steps = _steps_from_record(record)
        except (KeyError, ValueError) as e:
            raise PersistenceError(f"Invalid branch job record '{record.get('name')}': {e}") from e
        except ConfigurationError as e:
            raise PersistenceError(
                f"Invalid branch job record '{record.get('name')}': {e.message}"
            ) from e

        job = BranchJob(project.factory, branch, **steps)
        if job.name != record.get("name"):
            raise PersistenceError(
                f"Branch job record '{record.get('name')}' does not match "
                f"branch '{branch.name}' (encodes to '{job.name}')"
            )
        job.disabled = record.get("disabled", False)
        job.next_build_number = record.get("next_build_number", 1)
        return job

    def list_projects(self) -> List[str]:
        """Full names of all stored projects."""
        if not self.root.is_dir():
            return []
        return sorted(
            str(path.parent.relative_to(self.root).as_posix())
            for path in self.root.rglob(CONFIG_FILE)
            if BRANCHES_DIR not in path.relative_to(self.root).parts
        )


def create_job_store(root: Optional[str] = None) -> FileJobStore:
    """Store rooted at `root`, or at Settings.state_root."""
    return FileJobStore(Path(root or get_settings().state_root))
