import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


def setup_error_logger(logs_dir: Optional[str] = None) -> logging.Logger:
    """
    Configure the package-wide error logger.
    Writes WARN+ to stderr, and ERROR+ to a rotating file when `logs_dir` is set.
    """
    logger = logging.getLogger("wppa")
    if logger.handlers:
        return logger

    logger.setLevel(logging.WARNING)

    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(logging.WARNING)
    sh.setFormatter(
        logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    logger.addHandler(sh)

    if logs_dir:
        errors_dir = Path(logs_dir)
        errors_dir.mkdir(parents=True, exist_ok=True)

        fh = RotatingFileHandler(
            errors_dir / "wppa_errors.log",
            maxBytes=5_000_000,
            backupCount=3,
            encoding="utf-8",
        )
        fh.setLevel(logging.ERROR)
        fh.setFormatter(
            logging.Formatter(
                "%(asctime)s\t%(levelname)s\t%(name)s\t%(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(fh)

    logger.propagate = False
    return logger


def get_error_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"wppa.{name}")
