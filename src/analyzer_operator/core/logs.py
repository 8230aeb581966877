"""
Logging helpers.

Modules log through logging.getLogger(__name__).
A pass logs through a LoggerAdapter so every record carries the instance key.
"""

from __future__ import annotations

import logging
from typing import Any, MutableMapping

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class InstanceLogAdapter(logging.LoggerAdapter):
    """Prefix messages with the instance the pass is working on."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        instance = (self.extra or {}).get("instance", "-")
        return f"[{instance}] {msg}", kwargs


def instance_logger(name: str, instance: str) -> InstanceLogAdapter:
    return InstanceLogAdapter(logging.getLogger(name), {"instance": instance})


def configure_logging(level: str = "INFO") -> logging.Logger:
    """
    Install one stream handler on the package logger.

    Safe to call more than once. Handlers are replaced, not stacked.
    """
    logger = logging.getLogger("analyzer_operator")
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
