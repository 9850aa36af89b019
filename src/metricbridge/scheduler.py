"""Per-metric refresh timers.

Collectors such as collectd drop a value that has not been seen for a few
intervals, so every value that was delivered is re-sent after
``refresh_interval`` until a newer value or an unsubscribe replaces it.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from .codec import MetricKey
from .events import Defer, ReportEvent, TimerHandle
from .pipeline import Outcome, ReportPipeline

DEFAULT_REFRESH_INTERVAL = 10.0


@dataclass(slots=True)
class TimerEntry:
  handle: TimerHandle
  value: Any
  token: int


class RefreshScheduler:
  """Keeps at most one live refresh timer per metric key."""

  def __init__(
    self,
    pipeline: ReportPipeline,
    defer: Defer,
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
    logger: Optional[logging.Logger] = None,
  ) -> None:
    self.pipeline = pipeline
    self.refresh_interval = refresh_interval
    self.logger = logger or logging.getLogger("metricbridge.scheduler")
    self._defer = defer
    self._entries: Dict[MetricKey, TimerEntry] = {}
    self._tokens = itertools.count(1)

  def __contains__(self, key: object) -> bool:
    return key in self._entries

  def __len__(self) -> int:
    return len(self._entries)

  def __iter__(self) -> Iterator[MetricKey]:
    return iter(list(self._entries))

  def entry(self, key: MetricKey) -> Optional[TimerEntry]:
    return self._entries.get(key)

  async def report(self, key: MetricKey, value: Any) -> Outcome:
    entry = self._entries.get(key)
    if entry is not None:
      entry.handle.cancel()

    try:
      outcome = await self.pipeline.handle_report(key, value)
    except Exception:
      self._entries.pop(key, None)
      raise
    if outcome is Outcome.SENT:
      self._arm(key, value)
    else:
      self._entries.pop(key, None)
    return outcome

  async def on_timer_fire(self, event: ReportEvent) -> Optional[Outcome]:
    entry = self._entries.get(event.key)
    if entry is None or entry.token != event.token:
      self.logger.debug("Refresh of %s discarded, no longer scheduled", event.key)
      return None
    self.logger.debug("Refreshing %s = %r", event.key, event.value)
    return await self.report(event.key, event.value)

  def unsubscribe(self, key: MetricKey) -> bool:
    entry = self._entries.pop(key, None)
    if entry is None:
      return False
    entry.handle.cancel()
    self.logger.debug("Canceled refresh of %s", key)
    return True

  def clear(self) -> None:
    for entry in self._entries.values():
      entry.handle.cancel()
    self._entries.clear()

  def _arm(self, key: MetricKey, value: Any) -> None:
    token = next(self._tokens)
    handle = self._defer(
      self.refresh_interval,
      ReportEvent(key=key, value=value, is_refresh=True, token=token),
    )
    self._entries[key] = TimerEntry(handle=handle, value=value, token=token)
