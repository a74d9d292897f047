"""In-memory commit graph of the commits a bisection still considers."""

from collections import deque
from typing import Dict, Iterable, Iterator, Optional, Set

from .models import normalize_commit

DIRECTIONS = ("parents", "children")


class CommitGraph:
    """Parent and child links between a fixed set of commits.

    Edges to commits outside the set (e.g. parents of the oldest commits in
    a bisection range) are dropped, so every walk stays inside the range.
    """

    def __init__(self, parents: Dict[str, Set[str]], head: Optional[str] = None):
        self.head = head
        self._parents: Dict[str, Set[str]] = {}
        self._children: Dict[str, Set[str]] = {oid: set() for oid in parents}
        for oid, oid_parents in parents.items():
            kept = {p for p in oid_parents if p in parents}
            self._parents[oid] = kept
            for parent in kept:
                self._children[parent].add(oid)

    @classmethod
    def parse(cls, lines: Iterable[str]) -> 'CommitGraph':
        """Build a graph from ``git log --format='%H %P'`` lines.

        The first commit listed is recorded as ``head``.

        Raises:
            ValueError: If a line holds something other than commit hashes.
        """
        parents: Dict[str, Set[str]] = {}
        head = None
        for line in lines:
            fields = line.split()
            if not fields:
                continue
            oid = normalize_commit(fields[0])
            if head is None:
                head = oid
            parents[oid] = {normalize_commit(p) for p in fields[1:]}
        return cls(parents, head=head)

    def __contains__(self, oid: str) -> bool:
        return oid in self._parents

    def __len__(self) -> int:
        return len(self._parents)

    def __iter__(self) -> Iterator[str]:
        return iter(self._parents)

    def parents(self, oid: str) -> Set[str]:
        return self._parents.get(oid, set())

    def children(self, oid: str) -> Set[str]:
        return self._children.get(oid, set())

    def walk(self, start: str, direction: str) -> Dict[str, int]:
        """Breadth-first distances from ``start`` along one direction.

        Args:
            start: Commit to walk from (distance 0).
            direction: ``"parents"`` to reach ancestors, ``"children"`` to
                reach descendants.

        Returns:
            Mapping of every reachable commit to its edge count from start.
        """
        if direction not in DIRECTIONS:
            raise ValueError(f"direction must be one of {DIRECTIONS}, got {direction!r}")
        step = self.parents if direction == "parents" else self.children
        return self._bfs(start, step)

    def distances(self, start: str) -> Dict[str, int]:
        """Breadth-first distances from ``start`` ignoring edge direction."""
        return self._bfs(start, lambda oid: self.parents(oid) | self.children(oid))

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        return ancestor in self.walk(descendant, "parents")

    @staticmethod
    def _bfs(start, neighbours) -> Dict[str, int]:
        seen = {start: 0}
        queue = deque([start])
        while queue:
            oid = queue.popleft()
            for nxt in neighbours(oid):
                if nxt not in seen:
                    seen[nxt] = seen[oid] + 1
                    queue.append(nxt)
        return seen
