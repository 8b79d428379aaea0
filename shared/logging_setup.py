import logging
import sys
from pathlib import Path
from typing import Optional, Union

from shared.paths import ROOT_DIR

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def setup_logging(
    app_name: str,
    root_dir: Optional[Path] = ROOT_DIR,
    level: Union[int, str] = logging.INFO,
):
    """
    Setup logging with file and console output

    Args:
        app_name: Name of the application/component
        root_dir: Root directory for log file storage (None = console only)
        level: Logging level, as int or name ("DEBUG", "INFO", ...)
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    # Setup handlers
    handlers = [logging.StreamHandler(sys.stdout)]

    if root_dir is not None:
        log_file = root_dir / "logs" / f"{app_name}.log"
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError as e:
            print(f"Warning: Could not create log file {log_file}: {e}")

    # Configure logging
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    logging.getLogger(app_name).info("Logging initialized for %s", app_name)
