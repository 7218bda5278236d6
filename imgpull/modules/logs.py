# logs.py - process-level logging and --log-file support

import logging

from rich.console import Console
from rich.logging import RichHandler

VERBOSITY_LEVELS = {0: logging.WARNING, 1: logging.INFO}


# split output to file and stdout
class Tee:
    """Duplicate stdout/stderr to a file and the console."""
    def __init__(self, *files):
        self.files = files
    def write(self, data):
        for f in self.files:
            f.write(data)
    def flush(self):
        for f in self.files:
            f.flush()


def configure_logging(verbosity: int = 0) -> None:
    """-v 0 shows warnings, -v 1 adds fetch progress, -v 2+ adds auth and manifest details."""
    level = VERBOSITY_LEVELS.get(verbosity, logging.DEBUG) if verbosity >= 0 else logging.WARNING
    # Console() resolves sys.stderr on every write, so a Tee installed later is honored
    handler = RichHandler(console=Console(stderr=True), show_path=False, markup=False)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    # httpx logs every request at INFO; keep it to the most verbose level
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbosity >= 2 else logging.WARNING)
