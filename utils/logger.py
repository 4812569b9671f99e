import logging
import os
from datetime import datetime

# Global flag for verbose output (set by pipeline.py)
VERBOSE = False

LOGGER_NAME = "exif_harvester"
_log = logging.getLogger(LOGGER_NAME)
_log.addHandler(logging.NullHandler())


def setup_logging(verbose: bool = False, log_dir: str = "logs") -> str:
    """Route harvester log records to a timestamped file; console echo stays with the log* helpers.

    Returns the path of the log file.
    """
    global VERBOSE
    VERBOSE = verbose

    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, f"harvester_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log")

    _log.setLevel(logging.DEBUG if verbose else logging.INFO)
    _log.propagate = False
    for handler in list(_log.handlers):
        _log.removeHandler(handler)
        handler.close()

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(threadName)s %(message)s"))
    _log.addHandler(file_handler)
    return log_file


def logInfo(message):
    if VERBOSE:
        print(message)
    _log.info(message)

def logError(message):
    print(f"❌ {message}")  # Always show errors
    _log.error(message)

def logWarn(message):
    print(f"⚠️ {message}")  # Always show warnings
    _log.warning(message)

def logDebug(message):
    if VERBOSE and _log.isEnabledFor(logging.DEBUG):
        print(f"[DEBUG] {message}")
    _log.debug(message)

def logProgress(message):
    """Always show progress messages even without --verbose"""
    print(message)
    _log.info(message)
