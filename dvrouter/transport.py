"""
TCP channel between a router and the relay.

The relay forwards every packet on behalf of the routers, so a router only
ever holds one connection.  Packets are framed with a 4-byte big-endian length
prefix followed by the JSON envelope produced by :mod:`dvrouter.message`.
"""

from __future__ import annotations

import logging
import socket
import struct
import threading
from typing import Optional

from . import message

LOGGER = logging.getLogger(__name__)

_HEADER = struct.Struct("!I")
MAX_FRAME_SIZE = 1 << 20


class TransportError(OSError):
  """Any failure of the relay channel; the session cannot continue."""


class ConnectError(TransportError):
  """The relay could not be reached."""


class RelayChannel:
  """
  Ordered, message-oriented channel over a single TCP connection.
  """

  def __init__(self, sock: Optional[socket.socket] = None) -> None:
    self._sock = sock
    self._send_lock = threading.Lock()
    self._closed = False

  @classmethod
  def connect(cls, host: str, port: int, *, timeout: Optional[float] = None) -> "RelayChannel":
    try:
      sock = socket.create_connection((host, port), timeout=timeout)
    except OSError as exc:
      raise ConnectError(f"cannot connect to relay {host}:{port}: {exc}") from exc
    # Receives block until the relay speaks; there is no protocol timeout.
    sock.settimeout(None)
    LOGGER.info("connected to relay %s:%s", host, port)
    return cls(sock)

  @property
  def closed(self) -> bool:
    return self._closed or self._sock is None

  def send_message(self, msg: message.Message) -> None:
    data = msg.dumps()
    frame = _HEADER.pack(len(data)) + data
    with self._send_lock:
      sock = self._require_socket()
      try:
        sock.sendall(frame)
      except OSError as exc:
        raise TransportError(f"send failed: {exc}") from exc

  def receive_message(self) -> message.Message:
    """
    Block until the next packet arrives.
    """
    header = self._recv_exact(_HEADER.size)
    (length,) = _HEADER.unpack(header)
    if length > MAX_FRAME_SIZE:
      raise TransportError(f"frame of {length} bytes exceeds limit")
    data = self._recv_exact(length)
    try:
      return message.Message.loads(data)
    except message.MessageError as exc:
      # Framing can no longer be trusted once a frame fails to decode.
      raise TransportError(f"undecodable packet from relay: {exc}") from exc

  def close(self) -> None:
    if self._closed:
      return
    self._closed = True
    if self._sock is None:
      return
    try:
      self._sock.shutdown(socket.SHUT_RDWR)
    except OSError:
      pass
    try:
      self._sock.close()
    except OSError:
      LOGGER.exception("failed to close relay socket")

  # ---------------------------------------------------------------- internals
  def _require_socket(self) -> socket.socket:
    if self.closed:
      raise TransportError("channel is closed")
    return self._sock  # type: ignore[return-value]

  def _recv_exact(self, size: int) -> bytes:
    sock = self._require_socket()
    chunks = []
    remaining = size
    while remaining:
      try:
        chunk = sock.recv(remaining)
      except OSError as exc:
        raise TransportError(f"receive failed: {exc}") from exc
      if not chunk:
        raise TransportError("connection closed by relay")
      chunks.append(chunk)
      remaining -= len(chunk)
    return b"".join(chunks)
