"""Suggest already-evaluated commits to test next in a git bisection."""

import logging
import os
import sys
from typing import List, Optional

from .bisect import BisectRangeResolver
from .colors import Colors
from .config import Settings
from .errors import HydrasectError, NoCandidateFoundError, NotBisectingError
from .git import Git
from .models import BisectInterval, EvaluationRecord
from .ranker import Ranker
from .store import EvaluationStore

EXIT_FOUND = 0
EXIT_ERROR = 1
EXIT_NO_CANDIDATE = 3
EXIT_NOT_BISECTING = 4


class SearchRunner:
    """Print the evaluated commits closest to the current bisect commit.

    Output is one commit hash per line on stdout, closest first, so a
    bisect script can ``git checkout $(hydrasect search | head -n1)``. When
    no evaluated commit is left the output is empty and the exit code is
    ``EXIT_NO_CANDIDATE``, so the script can keep git's own choice.
    """

    def __init__(
        self,
        settings: Settings,
        repo_path: str = ".",
        reference: Optional[str] = None,
        limit: Optional[int] = None,
        store: Optional[EvaluationStore] = None,
        git: Optional[Git] = None,
        out=None,
        logger: Optional[logging.Logger] = None,
    ):
        self.settings = settings
        self.repo_path = os.path.abspath(repo_path)
        self.reference = reference
        self.limit = limit
        self.logger = logger or logging.getLogger("hydrasect")
        self.store = store or EvaluationStore(settings.history_path, self.logger)
        self.git = git or Git(self.repo_path, self.logger)
        self.out = out if out is not None else sys.stdout

    def find(self) -> List[str]:
        """Rank the evaluated commits of the current bisection.

        Raises:
            NotBisectingError: If no bisect session is active.
            CorruptHistoryError: If the snapshot cannot be parsed.
            HistoryAccessError: If the snapshot cannot be read.
            NoCandidateFoundError: If no evaluated commit is in range.
        """
        records = self.store.records()
        evaluated = {record.commit for record in records}
        if not evaluated:
            self.logger.warning(
                f"No evaluation history at {self.store.path}; run 'hydrasect scrape'"
            )

        interval = BisectRangeResolver(self.git, self.logger).resolve(self.reference)
        self.check_freshness(interval, self.store.latest(records))

        ranked = Ranker(interval.graph).rank(interval.commits, interval.reference, evaluated)
        if not ranked:
            raise NoCandidateFoundError(
                f"None of the {len(interval)} remaining commits has been evaluated"
            )
        self.logger.debug(
            f"{len(ranked)} of {len(interval)} remaining commits are evaluated; "
            f"closest is {Colors.short(ranked[0])}"
        )
        if self.limit is not None:
            ranked = ranked[:self.limit]
        return ranked

    def check_freshness(
        self, interval: BisectInterval, latest: Optional[EvaluationRecord]
    ):
        """Warn when the snapshot is old and predates the bad commit.

        If the bad commit is not an ancestor of ``latest``, the most recent
        evaluation in the snapshot, Hydra may have evaluated commits in range
        since the last scrape.
        """
        age = self.store.age()
        if age is None or age <= self.settings.stale_after:
            return
        if latest is not None and self.git.is_ancestor(interval.bad, latest.commit):
            return
        self.logger.warning(
            f"Evaluation history is {int(age // 60)} minutes old and may miss "
            f"recent evaluations; run 'hydrasect scrape' to refresh it"
        )

    def run(self) -> int:
        """Main entry point.

        Returns:
            Exit code: 0 when commits were printed, 3 when none was found,
            4 when not bisecting, 1 for other failures.
        """
        try:
            commits = self.find()
        except NotBisectingError as e:
            self.logger.error(str(e))
            return EXIT_NOT_BISECTING
        except NoCandidateFoundError as e:
            self.logger.info(f"{e}; keep the commit git bisect chose")
            return EXIT_NO_CANDIDATE
        except HydrasectError as e:
            self.logger.error(f"Search failed: {e}")
            return EXIT_ERROR

        for commit in commits:
            print(commit, file=self.out)
        self.out.flush()
        return EXIT_FOUND
