"""
Branch model.

A Branch is an immutable value describing one discovered head plus the SCM
binding a build of that head should use. Branches are compared structurally;
the reconciliation loop relies on that to decide whether a rebind needs to
be persisted.
"""

from __future__ import annotations

from typing import Any, Literal, Tuple
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, constr

# Characters that survive unchanged in an encoded name. quote() never
# escapes '-', so a literal dash is escaped separately.
_SAFE_CHARACTERS = "._~"


def _encode_part(part: str) -> str:
    return quote(part, safe=_SAFE_CHARACTERS).replace("-", "%2D")


def encode_name(name: str) -> str:
    """Derive a filesystem and URL safe name from a branch name.

    - '/' becomes '-' so "feature/x" encodes to "feature-x"
    - a literal '-' becomes "%2D", so no two branch names share a job name
    - every other character outside [A-Za-z0-9._~] is percent-encoded
      (UTF-8 bytes, upper-case hex), including '%' itself
    - the reserved names "." and ".." are fully percent-encoded

    Examples:
        "master" -> "master"
        "feature/x" -> "feature-x"
        "feature-x" -> "feature%2Dx"
        "fix #12" -> "fix%20%2312"
        ".." -> "%2E%2E"
    """
    if not name:
        raise ValueError("Branch name must not be empty")
    if name in (".", ".."):
        return "%2E" * len(name)
    return "-".join(_encode_part(part) for part in name.split("/"))


class SCMHead(BaseModel):
    """A named revision line as presented by the SCM connector."""

    model_config = ConfigDict(frozen=True)

    name: constr(min_length=1)
    kind: Literal["branch", "tag", "change_request"] = "branch"


class NullSCM(BaseModel):
    """SCM binding that checks nothing out."""

    model_config = ConfigDict(frozen=True)


class Branch(BaseModel):
    """One head plus its resolved SCM binding and properties.

    The SCM binding and the properties are opaque to this package; they only
    need to support equality.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: constr(min_length=1)
    head: SCMHead
    scm: Any = Field(default_factory=NullSCM)
    properties: Tuple[Any, ...] = ()
    buildable: bool = Field(
        default=True,
        description="False once the head has disappeared and the job is pending deletion",
    )

    @classmethod
    def of(cls, name: str, scm: Any = None, *properties: Any) -> "Branch":
        """Convenience constructor for a plain branch head."""
        return cls(
            name=name,
            head=SCMHead(name=name),
            scm=scm if scm is not None else NullSCM(),
            properties=tuple(properties),
        )

    @classmethod
    def dummy(cls) -> "Branch":
        return cls(name="DUMMY", head=SCMHead(name="DUMMY"), scm=NullSCM())

    @property
    def encoded_name(self) -> str:
        return encode_name(self.name)

    def is_buildable(self) -> bool:
        return self.buildable

    def dead(self) -> "Branch":
        """Return a copy of this branch that can no longer be built."""
        return self.model_copy(update={"buildable": False})
