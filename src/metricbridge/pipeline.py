"""Turns a reported value into a wire line and classifies the result."""

from __future__ import annotations

import enum
import logging
import re
import time
from typing import Any, Callable, Optional, Tuple

from .codec import MetricKey, unix_timestamp
from .connection import CollectorConnection
from .errors import ProtocolError, ReplyRejected, ReplyUnsupported, TransportError
from .profiles import Profile

_REPLY = re.compile(r"(-?\d+) (.*?)\r?\n?\Z", re.DOTALL)


class Outcome(enum.Enum):
  SENT = "sent"
  # delivered, but the reply asks for no refresh
  ACCEPTED = "accepted"
  FAILED = "failed"


def parse_reply(reply: str) -> Tuple[int, str]:
  """Split ``"<status> <message>\\n"`` into its parts."""
  match = _REPLY.match(reply)
  if match is None:
    raise ProtocolError(f"malformed reply {reply!r}")
  return int(match.group(1)), match.group(2)


def check_reply(status: int, message: str) -> None:
  if status == 0:
    return
  if status < 0:
    raise ReplyRejected(status, message)
  raise ReplyUnsupported(status, message)


class ReportPipeline:
  def __init__(
    self,
    profile: Profile,
    connection: CollectorConnection,
    clock: Callable[[], float] = time.time,
    logger: Optional[logging.Logger] = None,
  ) -> None:
    self.profile = profile
    self.connection = connection
    self.clock = clock
    self.logger = logger or logging.getLogger("metricbridge.pipeline")

  async def handle_report(self, key: MetricKey, value: Any) -> Outcome:
    if not self.connection.connected:
      self.logger.warning("Dropped value for %s: no connection", key)
      return Outcome.FAILED

    line = self.profile.encode_line(key, value, unix_timestamp(self.clock))
    self.logger.debug("Sending %r", line)
    try:
      reply = await self.connection.send(line)
    except TransportError as error:
      self.logger.warning("Dropped value for %s: %s", key, error)
      return Outcome.FAILED

    if reply is None:
      return Outcome.SENT

    try:
      check_reply(*parse_reply(reply))
    except ProtocolError as error:
      await self.connection.fail(error)
      self.logger.warning("Dropped value for %s: %s", key, error)
      return Outcome.FAILED
    except ReplyRejected as error:
      self.logger.error("Failed to log %r: %s", line, error)
      return Outcome.FAILED
    except ReplyUnsupported as error:
      self.logger.info("Unexpected (and ignored) reply for %r: %s", line, error)
      return Outcome.ACCEPTED
    return Outcome.SENT
