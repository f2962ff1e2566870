"""
Logging setup for the portfolio CLI and web server.

The level comes from a verbosity flag when one is given on the command line
and from the ``[logging]`` section of portfolio.toml otherwise::

    [logging]
    level = "INFO"
    log_file = "logs/portfolio.log"

Console output goes to stderr. When ``log_file`` is set, every record is
also written to that file with timestamps and logger names, which is where
the ``[SAVE]``, ``[DELETE]`` and ``[INVALIDATE]`` lines end up on a server.
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from .config import LoggingConfig

PACKAGE_LOGGER = "portfolio_content"
CONSOLE_FORMAT = "%(message)s"
DETAILED_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def resolve_level(
    settings: Optional[LoggingConfig] = None,
    verbose: bool = False,
    debug: bool = False,
    quiet: bool = False,
) -> int:
    """
    Effective log level for one run.

    --debug beats --quiet, which beats --verbose. Without a flag the
    configured level name is used; unknown names fall back to WARNING.
    """
    if debug:
        return logging.DEBUG
    if quiet:
        return logging.ERROR
    if verbose:
        return logging.INFO
    if settings is not None and settings.level:
        level = logging.getLevelName(settings.level.upper())
        if isinstance(level, int):
            return level
    return logging.WARNING


def _open_log_file(path: Path) -> Tuple[Optional[logging.Handler], Optional[str]]:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
    except OSError as e:
        return None, f"File logging disabled, cannot open {path}: {e}"
    handler.setFormatter(logging.Formatter(DETAILED_FORMAT))
    return handler, None


def setup_logging(
    settings: Optional[LoggingConfig] = None,
    verbose: bool = False,
    debug: bool = False,
    quiet: bool = False,
) -> int:
    """
    Configure the root logger. Replaces handlers from any earlier call.

    Args:
        settings: The ``[logging]`` section of the loaded config, if any.
        verbose: --verbose flag.
        debug: --debug flag.
        quiet: --quiet flag.

    Returns:
        The effective level.
    """
    level = resolve_level(settings, verbose=verbose, debug=debug, quiet=quiet)

    console = logging.StreamHandler()
    console.setFormatter(
        logging.Formatter(DETAILED_FORMAT if level <= logging.DEBUG else CONSOLE_FORMAT)
    )
    handlers: List[logging.Handler] = [console]

    problem = None
    if settings is not None and settings.log_file:
        file_handler, problem = _open_log_file(Path(settings.log_file))
        if file_handler is not None:
            handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)
    if problem:
        logging.getLogger(__name__).warning(problem)
    return level
