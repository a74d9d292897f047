"""Read the state of an in-progress git bisect."""

import logging
from typing import Optional

from .errors import NotBisectingError
from .git import Git
from .graph import CommitGraph
from .models import BisectInterval


class BisectRangeResolver:
    """Compute the commits a running bisection still has to test.

    The interval is what ``git log --bisect`` lists (descendants of every
    good commit that are ancestors of the bad commit) minus the commits
    already tested: the bad commit itself and every skipped commit.
    """

    def __init__(self, git: Git, logger: Optional[logging.Logger] = None):
        self.git = git
        self.logger = logger or logging.getLogger("hydrasect")

    def resolve(self, reference: Optional[str] = None) -> BisectInterval:
        """Resolve the current interval and reference commit.

        Args:
            reference: Revision to measure distances from (default: HEAD,
                the commit git bisect checked out).

        Raises:
            NotBisectingError: If no bisect session is active.
            GitError: If git fails.
        """
        bad_term, good_term = self.git.bisect_terms()
        refs = self.git.bisect_refs()
        bad = refs.get(bad_term)
        if not bad:
            raise NotBisectingError(self.git.repo_path, f"refs/bisect/{bad_term}")
        good = tuple(sorted(
            oid for name, oid in refs.items() if name.startswith(f"{good_term}-")
        ))
        if not good:
            raise NotBisectingError(self.git.repo_path, f"refs/bisect/{good_term}-*")
        skipped = frozenset(
            oid for name, oid in refs.items() if name.startswith("skip-")
        )

        graph = CommitGraph.parse(self.git.bisect_graph_lines())
        tested = skipped | {bad}
        commits = frozenset(oid for oid in graph if oid not in tested)

        ref = self.git.rev_parse(reference or "HEAD")
        if ref not in graph:
            self.logger.warning(
                f"Reference {ref[:12]} is outside the bisection range"
            )

        self.logger.debug(
            f"Bisecting {len(commits)} commits "
            f"(bad {bad[:12]}, {len(good)} good, {len(skipped)} skipped)"
        )
        return BisectInterval(
            commits=commits,
            reference=ref,
            bad=bad,
            good=good,
            skipped=skipped,
            graph=graph,
        )
