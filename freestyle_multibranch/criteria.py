"""
Inclusion criteria for discovered heads.

A criteria is a pure, side-effect free predicate evaluated once per head per
reconciliation pass. It decides whether the head gets a branch job at all.

Criteria are frozen value objects: two instances with the same kind and
fields compare equal and hash equal. The orchestrator caches criteria and
treats any inequality as "criteria changed", which forces a full rescan, so
semantically identical criteria must never compare unequal.

Binding from a submitted form:
    {"kind": "always"}                              -> AlwaysInclude()
    {"kind": "marker", "file_name": "marker.txt"}   -> MarkerFilePresent("marker.txt")
Unknown kinds and invalid fields raise ConfigurationError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, Mapping, Optional, TextIO, Type

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import ConfigurationError
from .scm.probe import Probe


class InclusionCriteria(BaseModel, ABC):
    """Decides whether a head should be materialized as a branch job."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: ClassVar[str] = ""
    display_name: ClassVar[str] = ""

    @abstractmethod
    def is_head(self, probe: Probe, log: TextIO) -> bool:
        """Evaluate the head behind `probe`.

        Args:
            probe: Read-only view of the head's latest revision
            log: Task log for diagnostic lines

        Returns:
            True if the head should get a branch job
        """
        pass

    def to_form(self) -> Dict[str, Any]:
        """Inverse of bind_criteria."""
        return {"kind": self.kind, **self.model_dump()}


class AlwaysInclude(InclusionCriteria):
    """Every head is included. Performs no I/O."""

    kind: ClassVar[str] = "always"
    display_name: ClassVar[str] = "All branches"

    def is_head(self, probe: Probe, log: TextIO) -> bool:
        return True


class MarkerFilePresent(InclusionCriteria):
    """A head is included iff a marker file exists at its root.

    An empty or missing file name includes every head.
    """

    kind: ClassVar[str] = "marker"
    display_name: ClassVar[str] = "Branches containing a marker file"

    file_name: Optional[str] = None

    def __init__(self, file_name: Optional[str] = None, **data: Any):
        super().__init__(file_name=file_name, **data)

    @field_validator("file_name", mode="before")
    @classmethod
    def blank_means_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    def is_head(self, probe: Probe, log: TextIO) -> bool:
        if self.file_name is None:
            return True
        log.write(f"Checking for {self.file_name}\n")
        return probe.stat(self.file_name).exists()


CRITERIA_KINDS: Dict[str, Type[InclusionCriteria]] = {
    AlwaysInclude.kind: AlwaysInclude,
    MarkerFilePresent.kind: MarkerFilePresent,
}


def bind_criteria(form: Mapping[str, Any]) -> InclusionCriteria:
    """Bind a submitted form to a concrete criteria.

    Raises:
        ConfigurationError: If the kind is missing or unknown, or the
            remaining fields do not validate for that kind
    """
    if not isinstance(form, Mapping):
        raise ConfigurationError(
            f"Inclusion criteria must be an object, got {type(form).__name__}"
        )
    data = dict(form)
    kind = data.pop("kind", None)
    if not kind:
        raise ConfigurationError("Inclusion criteria is missing its 'kind'")
    criteria_class = CRITERIA_KINDS.get(kind)
    if criteria_class is None:
        raise ConfigurationError(
            f"Unknown inclusion criteria kind '{kind}'. "
            f"Known kinds: {', '.join(sorted(CRITERIA_KINDS))}"
        )
    try:
        return criteria_class(**data)
    except (ValidationError, TypeError) as e:
        raise ConfigurationError(
            f"Invalid inclusion criteria '{kind}': {e}"
        ) from e
