"""
Shared build template.

A BuildTemplate bundles the three step collections configured once on a
multibranch project: wrappers, builders and publishers. Every branch job
is created from a snapshot of it.

Each collection reports mutations to an owner (anything with `save()`).
Bulk replacement detaches the owners for the duration of the replace so no
save fires halfway through, and re-attaches them even if the replace fails.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple

import structlog

from .errors import ConfigurationError, TemplateReplaceFailure
from .steps import BUILDER, PUBLISHER, WRAPPER, BuildStep, StepDescriptor

logger = structlog.get_logger()


class Saveable(Protocol):
    """Anything that can persist itself."""

    def save(self) -> None: ...


class _NoopSaveable:
    def save(self) -> None:
        pass

    def __repr__(self) -> str:
        return "NOOP_SAVEABLE"


NOOP_SAVEABLE = _NoopSaveable()


class StepList:
    """Ordered collection of build steps of one capability.

    Keyed lists (wrappers, publishers) hold at most one step per step type:
    a later step of the same type replaces the earlier value but keeps the
    earlier position.
    """

    def __init__(self, owner: Saveable, capability: str, keyed: bool = False):
        self.owner = owner
        self.capability = capability
        self.keyed = keyed
        self._items: Tuple[BuildStep, ...] = ()

    def prepare(self, items: Iterable[BuildStep]) -> Tuple[BuildStep, ...]:
        """Validate and normalize `items` without touching the list."""
        prepared: List[BuildStep] = []
        positions: Dict[str, int] = {}
        for item in items:
            if not isinstance(item, BuildStep) or item.capability != self.capability:
                raise ConfigurationError(
                    f"{type(item).__name__} cannot be added to the {self.capability} list"
                )
            if self.keyed and item.step_id in positions:
                prepared[positions[item.step_id]] = item
                continue
            positions[item.step_id] = len(prepared)
            prepared.append(item)
        return tuple(prepared)

    def replace_by(self, items: Iterable[BuildStep]) -> None:
        """Replace the whole content, then notify the owner."""
        self._items = self.prepare(items)
        self.owner.save()

    def to_list(self) -> List[BuildStep]:
        return list(self._items)

    def to_map(self) -> Dict[StepDescriptor, BuildStep]:
        return {item.descriptor: item for item in self._items}

    def get(self, step_type: type) -> Optional[BuildStep]:
        for item in self._items:
            if isinstance(item, step_type):
                return item
        return None

    def clone(self) -> List[BuildStep]:
        """Deep copies of the current steps."""
        return [item.model_copy(deep=True) for item in self._items]

    def __iter__(self) -> Iterator[BuildStep]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"StepList({self.capability}, {list(self._items)!r})"


@contextmanager
def detached_owner(*step_lists: StepList) -> Iterator[None]:
    """Point each list's owner at NOOP_SAVEABLE, restoring it on exit."""
    owners = [step_list.owner for step_list in step_lists]
    for step_list in step_lists:
        step_list.owner = NOOP_SAVEABLE
    try:
        yield
    finally:
        for step_list, owner in zip(step_lists, owners):
            step_list.owner = owner


class BuildTemplate:
    """The wrappers, builders and publishers shared by all branch jobs."""

    def __init__(self, owner: Saveable = NOOP_SAVEABLE):
        self.wrappers = StepList(owner, WRAPPER, keyed=True)
        self.builders = StepList(owner, BUILDER)
        self.publishers = StepList(owner, PUBLISHER, keyed=True)
        self._lock = threading.RLock()

    @property
    def step_lists(self) -> Tuple[StepList, StepList, StepList]:
        return (self.wrappers, self.builders, self.publishers)

    def set_owner(self, owner: Saveable) -> None:
        with self._lock:
            for step_list in self.step_lists:
                step_list.owner = owner

    def replace_all(
        self,
        wrappers: Optional[Sequence[BuildStep]] = None,
        builders: Optional[Sequence[BuildStep]] = None,
        publishers: Optional[Sequence[BuildStep]] = None,
    ) -> bool:
        """Replace the given collections as one unit, without saving.

        A None argument leaves that collection unchanged. Failures are
        logged, never raised; owners are re-attached either way.

        Returns:
            True if every collection was replaced, False if the replace
            failed and the owner should be saved again once fixed
        """
        with self._lock:
            with detached_owner(*self.step_lists):
                try:
                    pending = [
                        (step_list, step_list.prepare(items))
                        for step_list, items in zip(
                            self.step_lists, (wrappers, builders, publishers)
                        )
                        if items is not None
                    ]
                    for step_list, items in pending:
                        step_list.replace_by(items)
                except Exception as e:
                    failure = TemplateReplaceFailure(f"Template replace failed: {e}")
                    logger.error(
                        "template_replace_failed",
                        code=failure.code,
                        error=str(e),
                        exc_info=True,
                    )
                    return False
        return True

    def snapshot(self) -> Tuple[List[BuildStep], List[BuildStep], List[BuildStep]]:
        """Deep copies of (wrappers, builders, publishers) taken atomically."""
        with self._lock:
            return (
                self.wrappers.clone(),
                self.builders.clone(),
                self.publishers.clone(),
            )

    def copy(self, owner: Saveable = NOOP_SAVEABLE) -> "BuildTemplate":
        """An independent template with the same content, owned by `owner`."""
        clone = BuildTemplate(owner)
        clone.replace_all(*self.snapshot())
        return clone
