"""Error taxonomy for the metricbridge reporter."""

from __future__ import annotations


class BridgeError(Exception):
  """Base class for every error raised inside the bridge."""


class ConfigError(BridgeError):
  pass


class TransportError(BridgeError):
  """A failure of the collector connection. Always handled by reconnecting."""


class ConnectFailed(TransportError):
  pass


class SendFailed(TransportError):
  pass


class ReceiveFailed(TransportError):
  pass


class ReceiveTimeout(ReceiveFailed):
  pass


class ProtocolError(TransportError):
  """The collector answered with something that is not a status reply."""


class ReplyError(BridgeError):
  def __init__(self, status: int, message: str) -> None:
    super().__init__(f"collector replied {status}: {message}")
    self.status = status
    self.message = message


class ReplyRejected(ReplyError):
  """Negative status: the collector refused the value."""


class ReplyUnsupported(ReplyError):
  """Positive status: accepted, but not a plain success."""
