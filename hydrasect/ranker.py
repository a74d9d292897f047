"""Rank evaluated commits by their distance to the reference commit."""

import math
from typing import Iterable, List

from .graph import CommitGraph
from .models import Candidate


class Ranker:
    """Order the evaluated commits of a bisection interval, closest first."""

    def __init__(self, graph: CommitGraph):
        self.graph = graph

    def rank(self, interval: Iterable[str], reference: str,
             evaluated: Iterable[str]) -> List[str]:
        """Return the evaluated commits in ``interval``, closest to ``reference`` first.

        An empty result means no evaluated commit is left to try.
        """
        return [c.commit for c in self.rank_candidates(interval, reference, evaluated)]

    def rank_candidates(self, interval: Iterable[str], reference: str,
                        evaluated: Iterable[str]) -> List[Candidate]:
        """Like ``rank`` but keep each candidate's distance and relation.

        Distance is the shorter of the ancestor path (through parents) and
        the descendant path (through children); the ancestor path wins a
        tie. Commits reachable by neither, such as siblings across a merge,
        fall back to the undirected distance; unconnected ones sort last.
        Equal distances are ordered by commit hash.
        """
        targets = set(interval) & set(evaluated)
        if not targets:
            return []

        ancestors = self.graph.walk(reference, "parents")
        descendants = self.graph.walk(reference, "children")
        undirected = None

        candidates = []
        for commit in targets:
            up = ancestors.get(commit, math.inf)
            down = descendants.get(commit, math.inf)
            if commit == reference:
                candidate = Candidate(commit, 0, "self")
            elif up <= down and up != math.inf:
                candidate = Candidate(commit, up, "ancestor")
            elif down != math.inf:
                candidate = Candidate(commit, down, "descendant")
            else:
                if undirected is None:
                    undirected = self.graph.distances(reference)
                candidate = Candidate(commit, undirected.get(commit, math.inf), "related")
            candidates.append(candidate)

        candidates.sort(key=lambda c: (c.distance, c.commit))
        return candidates
