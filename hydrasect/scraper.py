"""Scrape the list of evaluated commits from a Hydra jobset.

Hydra serves ``/jobset/<project>/<jobset>/evals`` as paginated JSON::

    {"evals": [{"id": 1808014,
                "jobsetevalinputs": {"nixpkgs": {"revision": "<hex>"}}}],
     "next": "?page=2", "last": "?page=588"}

The last page has no ``next`` key.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

import httpx

from . import __version__
from .config import Settings
from .errors import TransportError
from .models import EvaluationRecord, normalize_commit
from .store import EvaluationStore

_PAGE_RE = re.compile(r"^[^=]*=(\d+)$")


def parse_page_number(suffix: str) -> Optional[int]:
    """Extract the page number from a suffix such as ``?page=588``."""
    match = _PAGE_RE.match(suffix or "")
    return int(match.group(1)) if match else None


@dataclass
class EvaluationPage:
    """One page of the evaluation listing."""
    records: List[EvaluationRecord] = field(default_factory=list)
    next: Optional[str] = None
    last: Optional[str] = None

    @classmethod
    def from_json(cls, payload, input_name: str,
                  logger: Optional[logging.Logger] = None) -> 'EvaluationPage':
        """Parse a decoded page.

        Raises:
            ValueError: If the payload does not have the expected shape.
        """
        logger = logger or logging.getLogger("hydrasect")
        if not isinstance(payload, dict):
            raise ValueError("expected a JSON object")
        evals = payload.get("evals")
        if not isinstance(evals, list):
            raise ValueError("expected an 'evals' array")

        records = []
        for entry in evals:
            if not isinstance(entry, dict):
                raise ValueError("expected each eval to be an object")
            eval_id = entry.get("id")
            if not isinstance(eval_id, int) or isinstance(eval_id, bool):
                raise ValueError(f"expected an integer eval id, got {eval_id!r}")
            inputs = entry.get("jobsetevalinputs")
            if not isinstance(inputs, dict):
                raise ValueError(f"eval {eval_id} has no 'jobsetevalinputs' object")
            source = inputs.get(input_name)
            if source is None:
                logger.debug(f"Eval {eval_id} has no input {input_name!r}, skipping")
                continue
            revision = source.get("revision") if isinstance(source, dict) else None
            if not isinstance(revision, str):
                raise ValueError(f"eval {eval_id} input {input_name!r} has no revision")
            records.append(EvaluationRecord(normalize_commit(revision), eval_id))

        next_page = payload.get("next")
        last_page = payload.get("last")
        for name, value in (("next", next_page), ("last", last_page)):
            if value is not None and not isinstance(value, str):
                raise ValueError(f"expected '{name}' to be a string")
        return cls(records=records, next=next_page, last=last_page)


class HydraClient:
    """Fetch a jobset's evaluation listing one page at a time."""

    def __init__(
        self,
        base_url: str,
        project: str,
        jobset: str,
        input_name: str = "nixpkgs",
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.evals_url = f"{base_url.rstrip('/')}/jobset/{project}/{jobset}/evals"
        self.input_name = input_name
        self.logger = logger or logging.getLogger("hydrasect")
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> 'HydraClient':
        return cls(
            settings.hydra_url,
            settings.project,
            settings.jobset,
            input_name=settings.input_name,
            timeout=settings.timeout,
            **kwargs,
        )

    def close(self):
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> 'HydraClient':
        return self

    def __exit__(self, *exc_info):
        self.close()

    def fetch_page(self, suffix: str = "") -> EvaluationPage:
        """Fetch and parse one page.

        Args:
            suffix: Query suffix from the previous page's ``next`` link;
                empty for the first page.

        Raises:
            TransportError: On network errors, error statuses or a payload
                that cannot be parsed.
        """
        url = f"{self.evals_url}{suffix}"
        headers = {
            "Accept": "application/json",
            "User-Agent": f"hydrasect/{__version__}",
        }
        try:
            response = self._client.get(url, headers=headers)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"{url} returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"fetching {url} failed: {e}") from e
        except ValueError as e:
            raise TransportError(f"{url} did not return JSON: {e}") from e

        try:
            return EvaluationPage.from_json(payload, self.input_name, self.logger)
        except ValueError as e:
            raise TransportError(f"unexpected evaluation listing at {url}: {e}") from e

    def iter_pages(self) -> Iterator[EvaluationPage]:
        """Yield every page, starting from the first.

        Each call starts over; a page is requested only once the previous
        one has been parsed.
        """
        suffix = ""
        seen = set()
        while True:
            page = self.fetch_page(suffix)
            yield page
            if not page.next:
                return
            if page.next in seen:
                raise TransportError(f"pagination loops back to {page.next!r}")
            seen.add(page.next)
            suffix = page.next


class Scraper:
    """Rebuild the evaluation snapshot from the complete upstream listing."""

    def __init__(
        self,
        client: HydraClient,
        store: EvaluationStore,
        logger: Optional[logging.Logger] = None,
    ):
        self.client = client
        self.store = store
        self.logger = logger or logging.getLogger("hydrasect")

    def scrape(self) -> int:
        """Fetch every page and publish the result.

        The store is replaced only after the last page has been fetched;
        any failure before that leaves the previous snapshot in place.

        Returns:
            Number of distinct commits published.

        Raises:
            TransportError: If any page could not be fetched or parsed.
        """
        self.logger.info(f"Scraping evaluations from {self.client.evals_url}...")
        records: List[EvaluationRecord] = []
        last_page = None
        for number, page in enumerate(self.client.iter_pages(), start=1):
            if last_page is None and page.last:
                last_page = parse_page_number(page.last)
            total = f"/{last_page}" if last_page else ""
            self.logger.debug(
                f"Page {number}{total}: {len(page.records)} evaluations"
            )
            if number % 50 == 0:
                self.logger.info(f"  fetched page {number}{total}")
            records.extend(page.records)

        self.logger.info("Replacing old history file with new data.")
        count = self.store.replace(records)
        self.logger.info(f"Recorded {count} evaluated commits in {self.store.path}")
        return count
