"""Command line interface for hydrasect."""

import argparse
import sys

from . import __version__
from .colors import Colors
from .config import Settings
from .errors import ConfigError, HydrasectError
from .logging_setup import setup_logging
from .scraper import HydraClient, Scraper
from .search import EXIT_ERROR, SearchRunner
from .store import EvaluationStore


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="hydrasect",
        description="Steer git bisect towards commits Hydra has already built",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Refresh the list of evaluated commits (run periodically)
  hydrasect scrape

  # During a bisection, check out the closest evaluated commit
  git checkout "$(hydrasect search | head -n1)"

Exit Codes:
  0 - Success
  1 - Failure (network, corrupt history, git)
  2 - Invalid arguments
  3 - No evaluated commit left in the bisection range
  4 - Not bisecting
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--history",
        metavar="PATH",
        help="Evaluation history file (default: $XDG_CACHE_HOME/hydrasect/hydra-eval-history)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    scrape = subparsers.add_parser(
        "scrape",
        help="Download the evaluation list and replace the history file"
    )
    scrape.add_argument("--hydra-url", metavar="URL", help="Hydra base URL")
    scrape.add_argument("--project", metavar="NAME", help="Hydra project")
    scrape.add_argument("--jobset", metavar="NAME", help="Hydra jobset")
    scrape.add_argument(
        "--input",
        dest="input_name",
        metavar="NAME",
        help="Jobset input holding the evaluated revision"
    )
    scrape.add_argument(
        "--timeout",
        metavar="SECONDS",
        type=float,
        help="HTTP timeout per page"
    )

    search = subparsers.add_parser(
        "search",
        help="Print evaluated commits closest to the current bisect commit"
    )
    search.add_argument(
        "--repo", "-r",
        metavar="PATH",
        default=".",
        help="Path to git repository (default: current directory)"
    )
    search.add_argument(
        "--reference",
        metavar="REV",
        help="Measure distances from this revision (default: HEAD)"
    )
    search.add_argument(
        "--limit", "-n",
        metavar="N",
        type=_positive_int,
        help="Print at most N commits"
    )

    return parser


def run_scrape(settings: Settings, logger) -> int:
    store = EvaluationStore(settings.history_path, logger)
    try:
        with HydraClient.from_settings(settings, logger=logger) as client:
            Scraper(client, store, logger).scrape()
    except HydrasectError as e:
        logger.error(f"Scrape failed, keeping the previous history: {e}")
        return EXIT_ERROR
    except OSError as e:
        logger.error(f"Could not write {settings.history_path}: {e}")
        return EXIT_ERROR
    return 0


def main(argv=None) -> int:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (default: sys.argv[1:]).

    Returns:
        Exit code.
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    Colors.init()
    logger = setup_logging(args.verbose)

    try:
        settings = Settings.from_env().with_overrides(history_path=args.history)
    except ConfigError as e:
        logger.error(str(e))
        return EXIT_ERROR

    if args.command == "scrape":
        settings = settings.with_overrides(
            hydra_url=args.hydra_url,
            project=args.project,
            jobset=args.jobset,
            input_name=args.input_name,
            timeout=args.timeout,
        )
        return run_scrape(settings, logger)

    runner = SearchRunner(
        settings,
        repo_path=args.repo,
        reference=args.reference,
        limit=args.limit,
        logger=logger,
    )
    return runner.run()


if __name__ == "__main__":
    sys.exit(main())
