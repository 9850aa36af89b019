"""Collector connection: connect, send, optional status reply, reconnect."""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Optional, Protocol, Tuple

from .errors import ConnectFailed, ReceiveFailed, ReceiveTimeout, SendFailed, TransportError
from .events import Defer, ReconnectEvent, TimerHandle

DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_READ_TIMEOUT = 5.0
DEFAULT_RECONNECT_INTERVAL = 30.0

Streams = Tuple[asyncio.StreamReader, asyncio.StreamWriter]


class ConnectionState(enum.Enum):
  DISCONNECTED = "disconnected"
  CONNECTED = "connected"


class Connector(Protocol):
  async def open(self) -> Streams:
    ...

  def describe(self) -> str:
    ...


class UnixSocketConnector:
  def __init__(self, path: str) -> None:
    self.path = path

  async def open(self) -> Streams:
    return await asyncio.open_unix_connection(self.path)

  def describe(self) -> str:
    return f"unix:{self.path}"


class TcpConnector:
  def __init__(self, host: str, port: int) -> None:
    self.host = host
    self.port = port

  async def open(self) -> Streams:
    return await asyncio.open_connection(self.host, self.port)

  def describe(self) -> str:
    return f"tcp:{self.host}:{self.port}"


class CollectorConnection:
  """Single outbound connection to the collector.

  Every failure closes the transport and arms one reconnect timer. While a
  reconnect is pending further failures do not arm another one.
  """

  def __init__(
    self,
    connector: Connector,
    defer: Defer,
    *,
    expects_reply: bool,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    read_timeout: float = DEFAULT_READ_TIMEOUT,
    reconnect_interval: float = DEFAULT_RECONNECT_INTERVAL,
    logger: Optional[logging.Logger] = None,
  ) -> None:
    self.connector = connector
    self.expects_reply = expects_reply
    self.connect_timeout = connect_timeout
    self.read_timeout = read_timeout
    self.reconnect_interval = reconnect_interval
    self.logger = logger or logging.getLogger("metricbridge.connection")
    self._defer = defer
    self._reader: Optional[asyncio.StreamReader] = None
    self._writer: Optional[asyncio.StreamWriter] = None
    self._reconnect_handle: Optional[TimerHandle] = None

  @property
  def state(self) -> ConnectionState:
    if self._writer is None:
      return ConnectionState.DISCONNECTED
    return ConnectionState.CONNECTED

  @property
  def connected(self) -> bool:
    return self.state is ConnectionState.CONNECTED

  @property
  def reconnect_pending(self) -> bool:
    return self._reconnect_handle is not None

  async def connect(self) -> None:
    try:
      reader, writer = await asyncio.wait_for(self.connector.open(), timeout=self.connect_timeout)
    except asyncio.TimeoutError as error:
      raise ConnectFailed(f"connect to {self.connector.describe()} timed out") from error
    except OSError as error:
      raise ConnectFailed(f"connect to {self.connector.describe()} failed: {error}") from error
    self._reader, self._writer = reader, writer
    self.logger.info("Connected to %s", self.connector.describe())

  async def open(self) -> bool:
    """Connect, arming a reconnect on failure. Never raises."""
    if self.connected:
      return True
    try:
      await self.connect()
    except ConnectFailed as error:
      self.logger.warning("%s. Retry in %.0fs", error, self.reconnect_interval)
      self._schedule_reconnect()
      return False
    return True

  async def reconnect(self) -> bool:
    """Handle a fired reconnect timer."""
    self._reconnect_handle = None
    self.logger.info("Reconnecting to %s", self.connector.describe())
    return await self.open()

  async def send(self, line: str) -> Optional[str]:
    """Write one line and return the collector's reply line, if it sends one."""
    if self._writer is None or self._reader is None:
      raise SendFailed("not connected")

    try:
      self._writer.write(line.encode("utf-8"))
      await self._writer.drain()
    except OSError as error:
      failure = SendFailed(f"send failed: {error}")
      await self.fail(failure)
      raise failure from error

    if not self.expects_reply:
      return None

    try:
      raw = await asyncio.wait_for(self._reader.readline(), timeout=self.read_timeout)
    except asyncio.TimeoutError as error:
      failure = ReceiveTimeout(f"no reply within {self.read_timeout:.1f}s")
      await self.fail(failure)
      raise failure from error
    except (OSError, ValueError) as error:
      failure = ReceiveFailed(f"receive failed: {error}")
      await self.fail(failure)
      raise failure from error

    if not raw:
      failure = ReceiveFailed("connection closed by collector")
      await self.fail(failure)
      raise failure
    return raw.decode("utf-8", errors="replace")

  async def fail(self, error: TransportError) -> None:
    """Tear down after a failure, including one detected outside send()."""
    self.logger.warning("%s. Will reconnect in %.0fs", error, self.reconnect_interval)
    await self.close()
    self._schedule_reconnect()

  async def close(self) -> None:
    writer = self._writer
    self._reader = None
    self._writer = None
    if writer is None:
      return
    writer.close()
    try:
      await writer.wait_closed()
    except OSError as error:
      self.logger.debug("Error while closing %s: %s", self.connector.describe(), error)

  def cancel_reconnect(self) -> None:
    if self._reconnect_handle is not None:
      self._reconnect_handle.cancel()
      self._reconnect_handle = None

  def _schedule_reconnect(self) -> None:
    if self._reconnect_handle is not None:
      return
    self._reconnect_handle = self._defer(self.reconnect_interval, ReconnectEvent())
