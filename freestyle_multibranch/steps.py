"""
Build step types and the step registry.

Build steps are opaque configuration records: this package stores, clones
and lists them but never runs them. Each step type declares one capability
(wrapper, builder or publisher) and registers itself with a StepRegistry.
Listings of "which step types can be added to a branch job" are answered
by querying the registry by capability, not by introspection.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Optional, Type

from pydantic import BaseModel, ConfigDict, ValidationError, conint, constr

from .errors import ConfigurationError

WRAPPER = "wrapper"
BUILDER = "builder"
PUBLISHER = "publisher"

CAPABILITIES = (WRAPPER, BUILDER, PUBLISHER)


@dataclass(frozen=True)
class StepDescriptor:
    """Describes one registered step type."""

    id: str
    display_name: str
    capability: str
    step_class: Type["BuildStep"]

    def is_applicable(self, job_type: Optional[type]) -> bool:
        return job_type is None or self.step_class.is_applicable(job_type)


class BuildStep(BaseModel):
    """Base class for all step configuration records."""

    model_config = ConfigDict(extra="forbid")

    step_id: ClassVar[str] = ""
    display_name: ClassVar[str] = ""
    capability: ClassVar[str] = ""

    @classmethod
    def is_applicable(cls, job_type: type) -> bool:
        """Whether this step type may be configured on jobs of `job_type`."""
        return True

    @property
    def descriptor(self) -> StepDescriptor:
        return step_registry.get(self.step_id)

    def to_record(self) -> Dict[str, Any]:
        return {"id": self.step_id, **self.model_dump()}


class BuildWrapper(BuildStep):
    """Sets up and tears down the environment around the build."""

    capability: ClassVar[str] = WRAPPER


class Builder(BuildStep):
    """A single build step."""

    capability: ClassVar[str] = BUILDER


class Publisher(BuildStep):
    """Runs after the build steps, typically to report or archive results."""

    capability: ClassVar[str] = PUBLISHER


class StepRegistry:
    """Static list of step types, queried by capability."""

    def __init__(self):
        self._descriptors: Dict[str, StepDescriptor] = {}

    def register(self, step_class: Type[BuildStep]) -> Type[BuildStep]:
        """Register a step type. Usable as a class decorator."""
        if not step_class.step_id:
            raise ValueError(f"{step_class.__name__} has no step_id")
        if step_class.capability not in CAPABILITIES:
            raise ValueError(
                f"{step_class.__name__} has unknown capability '{step_class.capability}'"
            )
        existing = self._descriptors.get(step_class.step_id)
        if existing is not None and existing.step_class is not step_class:
            raise ValueError(f"Step id '{step_class.step_id}' is already registered")
        self._descriptors[step_class.step_id] = StepDescriptor(
            id=step_class.step_id,
            display_name=step_class.display_name or step_class.__name__,
            capability=step_class.capability,
            step_class=step_class,
        )
        return step_class

    def get(self, step_id: str) -> StepDescriptor:
        try:
            return self._descriptors[step_id]
        except KeyError:
            raise ConfigurationError(f"Unknown step type '{step_id}'") from None

    def for_capability(
        self, capability: str, job_type: Optional[type] = None
    ) -> List[StepDescriptor]:
        """Descriptors with `capability`, in registration order."""
        return [
            d
            for d in self._descriptors.values()
            if d.capability == capability and d.is_applicable(job_type)
        ]

    def instantiate(
        self, record: Mapping[str, Any], capability: Optional[str] = None
    ) -> BuildStep:
        """Build a step from a record of the form {"id": ..., **fields}."""
        data = dict(record)
        step_id = data.pop("id", None)
        if not step_id:
            raise ConfigurationError("Step record is missing its 'id'")
        descriptor = self.get(step_id)
        if capability is not None and descriptor.capability != capability:
            raise ConfigurationError(
                f"Step type '{step_id}' is a {descriptor.capability}, not a {capability}"
            )
        try:
            return descriptor.step_class(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid step '{step_id}': {e}") from e

    def instantiate_all(
        self, records: Iterable[Mapping[str, Any]], capability: Optional[str] = None
    ) -> List[BuildStep]:
        return [self.instantiate(r, capability) for r in records]


step_registry = StepRegistry()


@step_registry.register
class BuildTimeoutWrapper(BuildWrapper):
    step_id: ClassVar[str] = "build-timeout"
    display_name: ClassVar[str] = "Abort the build if it's stuck"

    timeout_minutes: conint(ge=1) = 60


@step_registry.register
class ShellBuilder(Builder):
    step_id: ClassVar[str] = "shell"
    display_name: ClassVar[str] = "Execute shell"

    command: constr(min_length=1)


@step_registry.register
class ArtifactArchiver(Publisher):
    step_id: ClassVar[str] = "archive-artifacts"
    display_name: ClassVar[str] = "Archive the artifacts"

    artifacts: constr(min_length=1)
    allow_empty: bool = False
