"""ANSI color codes for diagnostics on stderr."""

import sys


class Colors:
    """ANSI color codes used by the log formatter.

    Colors are enabled by default. Call ``Colors.init()`` once from the CLI
    entry point to turn them off when the diagnostic stream is not a
    terminal; stdout carries plain commit hashes and is never colored.
    """

    _COLOR_ATTRS = ("RESET", "BOLD", "DIM", "RED", "GREEN", "YELLOW", "CYAN", "BG_RED", "WHITE")

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"

    BG_RED = "\033[41m"

    @classmethod
    def disable(cls):
        """Disable colors (set all codes to empty strings)."""
        for attr in cls._COLOR_ATTRS:
            setattr(cls, attr, "")

    @classmethod
    def init(cls, stream=None):
        """Disable colors unless ``stream`` (default stderr) is a TTY."""
        stream = stream if stream is not None else sys.stderr
        isatty = getattr(stream, "isatty", None)
        if isatty is None or not isatty():
            cls.disable()

    @classmethod
    def short(cls, commit: str) -> str:
        """Render a commit as a highlighted 12 character abbreviation."""
        return f"{cls.YELLOW}{commit[:12]}{cls.RESET}"
