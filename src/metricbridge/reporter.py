"""The reporter: a single asyncio task that owns the connection and timers."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional

from .codec import MetricKey
from .config import BridgeConfig
from .connection import CollectorConnection, Connector
from .events import ReconnectEvent, ReportEvent, TimerHandle, UnsubscribeEvent
from .pipeline import ReportPipeline
from .profiles import Profile
from .scheduler import RefreshScheduler

CallLater = Callable[..., TimerHandle]


class Reporter:
  """Serializes reports, refreshes and reconnects through one mailbox.

  ``report``/``subscribe``/``unsubscribe`` must be called from the event
  loop the reporter was started on.
  """

  def __init__(
    self,
    profile: Profile,
    *,
    connector: Optional[Connector] = None,
    connect_timeout: float = 5.0,
    read_timeout: float = 5.0,
    reconnect_interval: float = 30.0,
    refresh_interval: float = 10.0,
    call_later: Optional[CallLater] = None,
    clock: Callable[[], float] = time.time,
    logger: Optional[logging.Logger] = None,
  ) -> None:
    self.profile = profile
    self.logger = logger or logging.getLogger("metricbridge.reporter")
    self._call_later = call_later
    self._mailbox: asyncio.Queue = asyncio.Queue()
    self._task: Optional[asyncio.Task] = None

    self.connection = CollectorConnection(
      connector or profile.connector(),
      self._defer,
      expects_reply=profile.expects_reply,
      connect_timeout=connect_timeout,
      read_timeout=read_timeout,
      reconnect_interval=reconnect_interval,
      logger=self.logger.getChild("connection"),
    )
    self.pipeline = ReportPipeline(profile, self.connection, clock, self.logger.getChild("pipeline"))
    self.scheduler = RefreshScheduler(
      self.pipeline,
      self._defer,
      refresh_interval,
      self.logger.getChild("scheduler"),
    )

  @property
  def running(self) -> bool:
    return self._task is not None and not self._task.done()

  async def start(self) -> None:
    if self.running:
      return
    if self._call_later is None:
      self._call_later = asyncio.get_running_loop().call_later
    await self.connection.open()
    self._task = asyncio.create_task(self._run(), name="metricbridge-reporter")

  async def stop(self) -> None:
    if self._task is not None:
      self._task.cancel()
      try:
        await self._task
      except asyncio.CancelledError:
        pass
      self._task = None
    self._drain()
    self.scheduler.clear()
    self.connection.cancel_reconnect()
    await self.connection.close()
    self.logger.info("Reporter stopped")

  async def flush(self) -> None:
    """Wait until every queued event has been handled.

    Once stopped nothing handles events any more, so whatever is queued
    is discarded instead.
    """
    if not self.running:
      self._drain()
      return
    await self._mailbox.join()

  def _drain(self) -> int:
    dropped = 0
    while True:
      try:
        self._mailbox.get_nowait()
      except asyncio.QueueEmpty:
        return dropped
      self._mailbox.task_done()
      dropped += 1

  def report(self, key: MetricKey, value: Any) -> None:
    self._post(ReportEvent(key=key, value=value))

  def subscribe(self, key: MetricKey) -> None:
    self.logger.debug("Subscribed %s", key)

  def unsubscribe(self, key: MetricKey) -> None:
    # cancel now so a fire already queued is discarded, and again behind
    # any report for this key that arrived before the unsubscribe
    self.scheduler.unsubscribe(key)
    self._post(UnsubscribeEvent(key=key))

  def _post(self, event: object) -> None:
    self._mailbox.put_nowait(event)

  def _defer(self, delay: float, event: object) -> TimerHandle:
    if self._call_later is None:
      self._call_later = asyncio.get_running_loop().call_later
    return self._call_later(delay, self._post, event)

  async def _run(self) -> None:
    while True:
      event = await self._mailbox.get()
      try:
        await self._dispatch(event)
      except Exception:
        self.logger.exception("Error while handling %r", event)
      finally:
        self._mailbox.task_done()

  async def _dispatch(self, event: object) -> None:
    if isinstance(event, ReportEvent):
      if event.is_refresh:
        await self.scheduler.on_timer_fire(event)
      else:
        await self.scheduler.report(event.key, event.value)
    elif isinstance(event, UnsubscribeEvent):
      self.scheduler.unsubscribe(event.key)
    elif isinstance(event, ReconnectEvent):
      await self.connection.reconnect()
    else:
      self.logger.debug("Ignoring unknown event %r", event)


def build_reporter(config: BridgeConfig, logger: Optional[logging.Logger] = None) -> Reporter:
  timing = config.timing
  return Reporter(
    config.build_profile(),
    connect_timeout=timing.connect_timeout_ms / 1000.0,
    read_timeout=timing.read_timeout_ms / 1000.0,
    reconnect_interval=timing.reconnect_interval_seconds,
    refresh_interval=timing.refresh_interval_seconds,
    logger=logger,
  )
