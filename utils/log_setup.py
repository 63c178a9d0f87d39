"""
Component-routed logging for MilestoneBot.

Every component logger writes to exactly one rotating file under the logs
directory, picked from LOG_ROUTES by the component name passed to get_logger().
Unknown components land in system.log.
"""

import os
import logging
import logging.handlers

LOGGER_NAMESPACE = "milestone_bot"

LOG_FORMAT = "%(asctime)s - [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

# log file -> components routed into it
LOG_ROUTES = {
    "main.log": ("main", "config", "app"),
    "interactions.log": ("interactions", "interaction_handler"),
    "sweeps.log": ("notification", "celebration"),
    "slack.log": ("slack", "blocks"),
    "storage.log": ("storage", "responses", "employees", "gifts", "idempotency"),
    "hr.log": ("hr",),
    "system.log": ("date", "action_tokens"),
    "scheduler.log": ("scheduler",),
}

FALLBACK_LOG_FILE = "system.log"

_file_handlers = {}
_level = logging.INFO


def _component_file(component):
    for log_file, components in LOG_ROUTES.items():
        if component in components:
            return log_file
    return FALLBACK_LOG_FILE


def _rotating_handler(path, formatter):
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(formatter)
    return handler


def setup_logging(logs_dir, level=None):
    """
    Open one rotating handler per log file. Safe to call more than once.

    Args:
        logs_dir: Directory for the log files, created if missing
        level: Level name or number; defaults to LOG_LEVEL from the environment, then INFO
    """
    global _level

    if _file_handlers:
        return

    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    _level = level

    os.makedirs(logs_dir, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    for log_file in LOG_ROUTES:
        _file_handlers[log_file] = _rotating_handler(
            os.path.join(logs_dir, log_file), formatter
        )

    logging.getLogger(LOGGER_NAMESPACE).setLevel(_level)


def get_logger(name):
    """
    Return the logger for a component, attached to its routed file.

    Args:
        name: Component name such as 'interactions' or 'hr'; a
            'milestone_bot.' prefix is accepted and stripped for routing

    Returns:
        Logger that does not propagate, so each line is written once
    """
    if not _file_handlers:
        raise RuntimeError("Logging system not initialized. Call setup_logging() first.")

    component = name.split(".", 1)[1] if name.startswith(f"{LOGGER_NAMESPACE}.") else name
    logger = logging.getLogger(f"{LOGGER_NAMESPACE}.{component}")

    if logger.handlers:
        return logger

    logger.addHandler(_file_handlers[_component_file(component)])
    logger.setLevel(_level)
    logger.propagate = False
    return logger
