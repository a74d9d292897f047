"""Runtime configuration for hydrasect.

Values come from built-in defaults, then ``HYDRASECT_*`` environment
variables, then command line flags (see ``Settings.with_overrides``).
"""

import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from .errors import ConfigError

DEFAULT_HYDRA_URL = "https://hydra.nixos.org"
DEFAULT_PROJECT = "nixos"
DEFAULT_JOBSET = "unstable-small"
DEFAULT_INPUT = "nixpkgs"
DEFAULT_TIMEOUT = 30.0
DEFAULT_STALE_AFTER = 15 * 60

HISTORY_RELPATH = os.path.join("hydrasect", "hydra-eval-history")


def default_history_path(environ: Optional[Mapping[str, str]] = None) -> str:
    """Return the history file location under the XDG cache directory.

    Args:
        environ: Environment mapping (default: ``os.environ``).

    Raises:
        ConfigError: If both XDG_CACHE_HOME and HOME are unset or empty.
    """
    environ = os.environ if environ is None else environ
    cache_home = environ.get("XDG_CACHE_HOME")
    if not cache_home:
        home = environ.get("HOME")
        if not home:
            raise ConfigError("XDG_CACHE_HOME and HOME are both unset or empty")
        cache_home = os.path.join(home, ".cache")
    return os.path.join(cache_home, HISTORY_RELPATH)


def _number(environ: Mapping[str, str], name: str, default: float, kind=float):
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = kind(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    """Resolved configuration.

    Attributes:
        history_path: Location of the persisted evaluation snapshot.
        hydra_url: Base URL of the Hydra instance to scrape.
        project: Hydra project name.
        jobset: Hydra jobset name.
        input_name: Jobset input whose revision identifies the commit.
        timeout: HTTP timeout in seconds for each page request.
        stale_after: Age in seconds after which the snapshot may be stale.
    """

    history_path: str
    hydra_url: str = DEFAULT_HYDRA_URL
    project: str = DEFAULT_PROJECT
    jobset: str = DEFAULT_JOBSET
    input_name: str = DEFAULT_INPUT
    timeout: float = DEFAULT_TIMEOUT
    stale_after: int = DEFAULT_STALE_AFTER

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        environ = os.environ if environ is None else environ
        history_path = environ.get("HYDRASECT_HISTORY") or default_history_path(environ)
        return cls(
            history_path=history_path,
            hydra_url=environ.get("HYDRASECT_HYDRA_URL") or DEFAULT_HYDRA_URL,
            project=environ.get("HYDRASECT_PROJECT") or DEFAULT_PROJECT,
            jobset=environ.get("HYDRASECT_JOBSET") or DEFAULT_JOBSET,
            input_name=environ.get("HYDRASECT_INPUT") or DEFAULT_INPUT,
            timeout=_number(environ, "HYDRASECT_TIMEOUT", DEFAULT_TIMEOUT),
            stale_after=_number(
                environ, "HYDRASECT_STALE_AFTER", DEFAULT_STALE_AFTER, kind=int
            ),
        )

    def with_overrides(self, **overrides) -> 'Settings':
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    @property
    def evals_url(self) -> str:
        return f"{self.hydra_url.rstrip('/')}/jobset/{self.project}/{self.jobset}/evals"
