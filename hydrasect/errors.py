"""Exception hierarchy for hydrasect."""


class HydrasectError(Exception):
    """Base class for all errors raised by hydrasect."""
    pass


class ConfigError(HydrasectError):
    """Configuration could not be resolved (bad environment or flags)."""
    pass


class NotBisectingError(HydrasectError):
    """No git bisect session is active in the repository."""

    def __init__(self, repo_path: str, missing: str):
        self.repo_path = repo_path
        self.missing = missing
        super().__init__(
            f"Not bisecting in {repo_path}: {missing} is not set "
            f"(start one with 'git bisect start <bad> <good>')"
        )


class TransportError(HydrasectError):
    """Fetching the evaluation listing failed; the snapshot was not touched."""
    pass


class CorruptHistoryError(HydrasectError):
    """The persisted evaluation history cannot be parsed."""

    def __init__(self, path: str, line_number: int, line: str):
        self.path = path
        self.line_number = line_number
        self.line = line
        super().__init__(
            f"{path}:{line_number}: cannot parse history line {line!r}; "
            f"run 'hydrasect scrape' to rebuild it"
        )


class HistoryAccessError(HydrasectError):
    """The evaluation history exists but cannot be read."""

    def __init__(self, path: str, error: OSError):
        self.path = path
        self.error = error
        super().__init__(f"Cannot read evaluation history {path}: {error.strerror or error}")


class NoCandidateFoundError(HydrasectError):
    """No evaluated commit is left in the bisection range.

    This is a legitimate outcome rather than a failure: the caller should
    fall back to the commit git bisect itself proposed.
    """
    pass
