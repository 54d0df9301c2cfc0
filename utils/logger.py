"""
Logging setup for Map Inspector.

All modules log under the ``mapinspect`` logger. The console gets short
progress messages; the log file keeps DEBUG records such as skipped features,
inferred layer types and click state transitions.

Functions:
    setup_logging: Attach console and file handlers, return the log file path
    get_logger: Module logger nested under ``mapinspect``
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = 'mapinspect'
DEFAULT_LOG_DIR = Path(__file__).parent.parent / 'logs'

FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
FILE_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter('%(message)s'))
    return handler


def _file_handler(log_file: Path) -> logging.Handler:
    handler = logging.FileHandler(log_file, encoding='utf-8')
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
    return handler


def setup_logging(log_dir: Optional[Path] = None, console_level: int = logging.INFO) -> Path:
    """
    Route ``mapinspect`` records to the console and a timestamped log file.

    Calling it again replaces the handlers of the previous call.

    Parameters:
    -----------
    log_dir : Optional[Path]
        Directory for log files. Defaults to PROJECT_ROOT/logs
    console_level : int
        Minimum level shown on the console (the file always records DEBUG)

    Returns:
    --------
    Path
        Path to the created log file
    """
    log_dir = Path(log_dir) if log_dir is not None else DEFAULT_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"mapinspect_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    root.addHandler(_console_handler(console_level))
    root.addHandler(_file_handler(log_file))
    root.debug(f"Logging to {log_file}")

    return log_file


def get_logger(name: str) -> logging.Logger:
    """Return the logger for module ``name`` under the ``mapinspect`` root."""
    return logging.getLogger(f'{ROOT_LOGGER_NAME}.{name}')
