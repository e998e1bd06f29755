from __future__ import annotations

import logging

from skillgraph.settings import SkillGraphSettings

PIPELINE_LOGGER_NAME = "skillgraph.pipeline"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_LEVELS: dict[str, int] = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def resolve_log_level(value: str | None = None) -> int:
    name = (value or SkillGraphSettings().log_level).strip().upper()
    return _LEVELS.get(name, logging.INFO)


def setup_logging(level: str | None = None) -> None:
    """Configure root logging for command line runs."""
    logging.basicConfig(level=resolve_log_level(level), format=LOG_FORMAT)


def get_pipeline_logger() -> logging.Logger:
    return logging.getLogger(PIPELINE_LOGGER_NAME)
