"""Logging configuration for the import pipeline."""

import logging
import os
import sys

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


class GitHubActionsFormatter(logging.Formatter):
    """Formats log messages as GitHub Actions commands for annotations."""

    LEVEL_MAP = {
        logging.DEBUG: "::debug::",
        logging.INFO: "",
        logging.WARNING: "::warning::",
        logging.ERROR: "::error::",
        logging.CRITICAL: "::error::",
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with GitHub Actions prefix."""
        prefix = self.LEVEL_MAP.get(record.levelno, "")
        return f"{prefix}{super().format(record)}"


def setup_logging(debug: bool = False) -> logging.Logger:
    """
    Set up the `ioc_import` logger hierarchy.

    Uses annotation-style output when running under GitHub Actions and a
    plain format otherwise. Calling it again only adjusts the level.

    Args:
        debug: Enable debug-level logging

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("ioc_import")
    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        if os.environ.get("GITHUB_ACTIONS") == "true":
            handler.setFormatter(GitHubActionsFormatter(fmt=LOG_FORMAT))
        else:
            handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
        logger.addHandler(handler)

    return logger
