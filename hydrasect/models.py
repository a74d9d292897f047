"""Data types shared by the store, the resolver and the ranker."""

import re
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple

_COMMIT_RE = re.compile(r"^(?:[0-9a-f]{40}|[0-9a-f]{64})$")


def normalize_commit(value: str) -> str:
    """Validate a full hex commit id and return it lower-cased.

    Raises:
        ValueError: If the value is not a 40 (SHA-1) or 64 (SHA-256)
            character hex digest.
    """
    commit = value.strip().lower()
    if not _COMMIT_RE.match(commit):
        raise ValueError(f"not a full commit hash: {value!r}")
    return commit


@dataclass(frozen=True)
class EvaluationRecord:
    """One upstream evaluation of a commit."""
    commit: str
    eval_id: Optional[int] = None  # Hydra evaluation id, informational only

    def to_line(self) -> str:
        if self.eval_id is None:
            return f"{self.commit}\n"
        return f"{self.commit} {self.eval_id}\n"


@dataclass(frozen=True)
class BisectInterval:
    """Commits still eligible for testing in the current bisection.

    ``commits`` already excludes the bad commit and skipped commits.
    ``graph`` is the commit graph the interval was computed from; it is not
    part of equality.
    """
    commits: FrozenSet[str]
    reference: str
    bad: str
    good: Tuple[str, ...] = ()
    skipped: FrozenSet[str] = frozenset()
    graph: object = field(default=None, compare=False, repr=False)

    def __len__(self) -> int:
        return len(self.commits)

    def __contains__(self, commit: str) -> bool:
        return commit in self.commits


@dataclass(frozen=True)
class Candidate:
    """An evaluated commit inside the interval and its distance to the reference."""
    commit: str
    distance: float
    relation: str  # "self", "ancestor", "descendant", "related"
