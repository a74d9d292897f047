"""Git command wrapper with logging."""

import logging
import os
import subprocess
from typing import Dict, List, Optional, Tuple

from .errors import HydrasectError

BISECT_REF_PREFIX = "refs/bisect/"
DEFAULT_BISECT_TERMS = ("bad", "good")


class GitError(HydrasectError):
    """Exception for git command failures."""
    pass


class Git:
    """Git command wrapper with logging."""

    def __init__(self, repo_path: str, logger: Optional[logging.Logger] = None):
        """Initialize Git wrapper.

        Args:
            repo_path: Path to the git repository.
            logger: Optional logger instance. If not provided, uses module logger.
        """
        self.repo_path = repo_path
        self.logger = logger or logging.getLogger("hydrasect")

    def run(
        self,
        *args,
        check: bool = True,
    ) -> subprocess.CompletedProcess:
        """Run a git command and capture its output.

        Args:
            *args: Git command arguments.
            check: Whether to raise exception on non-zero exit.

        Returns:
            CompletedProcess instance with command results.

        Raises:
            GitError: If git cannot be spawned, or the command fails and
                check=True.
        """
        cmd = ["git", "-C", self.repo_path] + list(args)
        self.logger.debug(f"Running: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=check
            )
        except subprocess.CalledProcessError as e:
            self.logger.debug(f"Git command failed: {e.stderr}")
            raise GitError(f"Git command failed: {' '.join(cmd)}\n{e.stderr}")
        except OSError as e:
            raise GitError(f"Could not run git: {e}")
        return result

    def rev_parse(self, ref: str) -> str:
        """Get the full commit hash for a ref."""
        result = self.run("rev-parse", "--verify", f"{ref}^{{commit}}")
        return result.stdout.strip()

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        """Check if one commit is an ancestor of another.

        Unknown commits are reported as not being ancestors.
        """
        result = self.run(
            "merge-base", "--is-ancestor", ancestor, descendant,
            check=False
        )
        return result.returncode == 0

    def bisect_terms(self) -> Tuple[str, str]:
        """Return the (bad, good) terms of the current bisection.

        ``git bisect start --term-new``/``--term-old`` and ``git bisect
        new``/``old`` store their terms in BISECT_TERMS; without that file
        git uses ``bad`` and ``good``.
        """
        result = self.run("rev-parse", "--git-path", "BISECT_TERMS")
        path = os.path.join(self.repo_path, result.stdout.strip())
        try:
            with open(path, "r") as f:
                terms = [line.strip() for line in f if line.strip()]
        except FileNotFoundError:
            return DEFAULT_BISECT_TERMS
        except OSError as e:
            raise GitError(f"Could not read bisect terms from {path}: {e}")
        if len(terms) < 2:
            return DEFAULT_BISECT_TERMS
        return terms[0], terms[1]

    def bisect_refs(self) -> Dict[str, str]:
        """Return the refs git bisect keeps under refs/bisect/.

        Returns:
            Mapping of ref name relative to refs/bisect/ (e.g. ``bad``,
            ``good-<hash>``, ``skip-<hash>``) to the commit it points at.
        """
        result = self.run(
            "for-each-ref", "--format=%(refname) %(objectname)",
            BISECT_REF_PREFIX
        )
        refs = {}
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            name, _, oid = line.partition(" ")
            refs[name[len(BISECT_REF_PREFIX):]] = oid.strip()
        return refs

    def bisect_graph_lines(self) -> List[str]:
        """List the commits git bisect still considers, with their parents.

        Each line is ``<commit> <parent>...``. The bad commit comes first.
        """
        result = self.run("log", "--format=%H %P", "--bisect")
        return [line for line in result.stdout.splitlines() if line.strip()]
