"""
Logging setup for the command-line runners.

Library modules only call ``logging.getLogger(__name__)``; the CLI calls
``setup_logging`` once before any suite runs.
"""

import sys
import logging
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
VERBOSE_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'

# Third-party loggers that drown out check output at DEBUG
NOISY_LOGGERS = ('urllib3', 'httpx', 'httpcore', 'hpack', 'openai', 'asyncio')


def setup_logging(level: Union[str, int] = "INFO", log_file: Optional[Path] = None,
                  verbose: bool = False) -> logging.Logger:
    """Configure the root logger with a stdout handler and an optional file handler.

    Args:
        level: Log level name or number
        log_file: Optional path of a log file; parent directories are created
        verbose: Include source file and line number in each record

    Returns:
        The root logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format=VERBOSE_LOG_FORMAT if verbose else LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return logging.getLogger()
