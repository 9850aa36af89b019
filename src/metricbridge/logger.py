"""Logging setup for the metricbridge logger tree.

Every component logs below ``metricbridge``::

    metricbridge.reporter              mailbox loop, start/stop
    metricbridge.reporter.connection   connects, failures, reconnects
    metricbridge.reporter.pipeline     dropped values, collector replies
    metricbridge.reporter.scheduler    refresh arming and discards
    metricbridge.sampling              host sampler

``LoggingConfig.components`` overrides the level of any of them, e.g.
``{"scheduler": "DEBUG"}`` to trace refreshes without the rest.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, List

from .config import LoggingConfig
from .errors import ConfigError

LOGGER_NAME = "metricbridge"

COMPONENTS: Dict[str, str] = {
  "reporter": "reporter",
  "connection": "reporter.connection",
  "pipeline": "reporter.pipeline",
  "scheduler": "reporter.scheduler",
  "sampling": "sampling",
}

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_level(name: str) -> int:
  level = logging.getLevelName(str(name).upper())
  if not isinstance(level, int):
    raise ConfigError(f"unknown log level '{name}'")
  return level


def component_logger(component: str) -> logging.Logger:
  try:
    suffix = COMPONENTS[component]
  except KeyError:
    raise ConfigError(
      f"unknown logging component '{component}', expected one of {', '.join(COMPONENTS)}"
    ) from None
  return logging.getLogger(f"{LOGGER_NAME}.{suffix}")


def _build_handlers(config: LoggingConfig, root_dir: Path) -> List[logging.Handler]:
  handlers: List[logging.Handler] = [logging.StreamHandler()]
  if config.file:
    log_path = (root_dir / config.file).expanduser().resolve()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handlers.append(
      RotatingFileHandler(
        log_path,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8",
      )
    )
  formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)
  for handler in handlers:
    handler.setFormatter(formatter)
  return handlers


def configure_logging(config: LoggingConfig, root_dir: Path) -> logging.Logger:
  """Attach handlers to the ``metricbridge`` logger and apply component levels.

  Calling it again replaces the handlers and resets component levels that
  are no longer configured.
  """
  # validate everything before touching the live loggers
  root_level = parse_level(config.level)
  overrides = {
    component_logger(component): parse_level(level)
    for component, level in config.components.items()
  }

  logger = logging.getLogger(LOGGER_NAME)
  for handler in list(logger.handlers):
    logger.removeHandler(handler)
    handler.close()
  for handler in _build_handlers(config, root_dir):
    logger.addHandler(handler)
  logger.setLevel(root_level)
  logger.propagate = False

  for component in COMPONENTS:
    component_logger(component).setLevel(logging.NOTSET)
  for child, level in overrides.items():
    child.setLevel(level)

  return logger
