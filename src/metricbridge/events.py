"""Messages processed by the reporter mailbox."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from .codec import MetricKey


@dataclass(frozen=True, slots=True)
class ReportEvent:
  key: MetricKey
  value: Any
  is_refresh: bool = False
  # identifies the refresh timer that produced this event
  token: Optional[int] = None


@dataclass(frozen=True, slots=True)
class UnsubscribeEvent:
  key: MetricKey


@dataclass(frozen=True, slots=True)
class ReconnectEvent:
  pass


class TimerHandle(Protocol):
  def cancel(self) -> None:
    ...


# Schedules an event to be posted to the mailbox after a delay in seconds.
Defer = Callable[[float, object], TimerHandle]
