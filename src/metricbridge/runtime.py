"""Async runtime for the metricbridge reporter."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Optional, Set

from .codec import MetricKey
from .config import SamplingConfig, load_config
from .logger import configure_logging
from .reporter import Reporter, build_reporter
from .telemetry import collect_samples, validate_probes


async def sampling_loop(config: SamplingConfig, reporter: Reporter, logger: logging.Logger) -> None:
  interval = max(config.interval_seconds, 1.0)
  subscribed: Set[MetricKey] = set()
  failure_count = 0

  try:
    while True:
      started = time.perf_counter()
      try:
        samples = collect_samples(config.probes)
        for key, value in samples:
          if key not in subscribed:
            reporter.subscribe(key)
            subscribed.add(key)
          reporter.report(key, value)
        logger.debug("Reported %s samples", len(samples))
        failure_count = 0
      except Exception as error:
        failure_count += 1
        logger.error("Sampling failed (attempt %s): %s", failure_count, error)

      elapsed = time.perf_counter() - started
      await asyncio.sleep(max(0.0, interval - elapsed))
  finally:
    for key in subscribed:
      reporter.unsubscribe(key)


async def run_bridge(config_path: Optional[str] = None, interval_override: Optional[float] = None) -> None:
  config = load_config(config_path)
  if interval_override is not None and interval_override > 0:
    config.sampling.interval_seconds = interval_override
  validate_probes(config.sampling.probes)

  root_dir = Path(__file__).resolve().parents[2]
  logger = configure_logging(config.logging, root_dir)
  logger.info(
    "Starting metricbridge (%s profile, sampling every %.1fs, refresh %.1fs)",
    config.profile,
    config.sampling.interval_seconds,
    config.timing.refresh_interval_seconds,
  )

  reporter = build_reporter(config, logger.getChild("reporter"))
  await reporter.start()
  try:
    await sampling_loop(config.sampling, reporter, logger.getChild("sampling"))
  finally:
    await reporter.stop()
