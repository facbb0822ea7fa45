"""
Read-only probes over a head's repository content.

A probe answers "does this path exist at the head's latest revision?" without
checking anything out. Inclusion criteria receive a probe per candidate head.
"""

from __future__ import annotations

import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional

NONEXISTENT = "nonexistent"
REGULAR_FILE = "regular_file"
DIRECTORY = "directory"
OTHER = "other"


@dataclass(frozen=True)
class ProbeStat:
    """Result of probing one path."""

    path: str
    type: str = NONEXISTENT

    def exists(self) -> bool:
        return self.type != NONEXISTENT


def _normalize(path: str) -> Optional[str]:
    """Normalize a probe path relative to the repository root.

    Returns None for paths that escape the root.
    """
    parts = []
    for part in PurePosixPath(path.replace("\\", "/")).parts:
        if part in ("", ".", "/"):
            continue
        if part == "..":
            if not parts:
                return None
            parts.pop()
            continue
        parts.append(part)
    return "/".join(parts)


class Probe(ABC):
    """Abstract read-only handle on one head's repository tree."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def stat(self, path: str) -> ProbeStat:
        """Stat a path relative to the repository root."""
        pass

    def close(self) -> None:
        """Release any resources held by the probe."""
        pass

    def __enter__(self) -> "Probe":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class DirectoryProbe(Probe):
    """Probe over an already checked-out directory."""

    def __init__(self, root: Path, name: Optional[str] = None):
        self.root = Path(root)
        super().__init__(name or self.root.name)

    def stat(self, path: str) -> ProbeStat:
        rel = _normalize(path)
        if rel is None:
            return ProbeStat(path)
        target = self.root / rel if rel else self.root
        if not target.exists():
            return ProbeStat(path)
        if target.is_dir():
            return ProbeStat(path, DIRECTORY)
        if target.is_file():
            return ProbeStat(path, REGULAR_FILE)
        return ProbeStat(path, OTHER)


class MappingProbe(Probe):
    """Probe over an in-memory set of file paths."""

    def __init__(self, files: Iterable[str], name: str = "memory"):
        super().__init__(name)
        self.files = set()
        for f in files:
            rel = _normalize(f)
            if rel:
                self.files.add(rel)

    def stat(self, path: str) -> ProbeStat:
        rel = _normalize(path)
        if rel is None:
            return ProbeStat(path)
        if rel == "":
            return ProbeStat(path, DIRECTORY)
        if rel in self.files:
            return ProbeStat(path, REGULAR_FILE)
        prefix = rel + "/"
        if any(f.startswith(prefix) for f in self.files):
            return ProbeStat(path, DIRECTORY)
        return ProbeStat(path)


class GitProbe(Probe):
    """Probe a revision of a git repository without checking it out.

    Uses `git cat-file -t <revision>:<path>`: "blob" is a file, "tree" a
    directory, a non-zero exit means the path does not exist at that revision.
    """

    def __init__(self, repo: Path, revision: str, name: Optional[str] = None):
        super().__init__(name or revision)
        self.repo = Path(repo)
        self.revision = revision

    def stat(self, path: str) -> ProbeStat:
        rel = _normalize(path)
        if rel is None:
            return ProbeStat(path)
        proc = subprocess.run(
            ["git", "cat-file", "-t", f"{self.revision}:{rel}"],
            cwd=str(self.repo),
            text=True,
            capture_output=True,
            check=False,
        )
        if proc.returncode != 0:
            return ProbeStat(path)
        kind = proc.stdout.strip()
        if kind == "blob":
            return ProbeStat(path, REGULAR_FILE)
        if kind == "tree":
            return ProbeStat(path, DIRECTORY)
        return ProbeStat(path, OTHER)


def list_git_branches(repo: Path) -> list[str]:
    """Return the local branch names of a git repository."""
    out = subprocess.check_output(
        ["git", "for-each-ref", "--format=%(refname:short)", "refs/heads"],
        cwd=str(repo),
        text=True,
    ).strip()
    if not out:
        return []
    return out.splitlines()
