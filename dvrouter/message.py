"""
Packet codec for the distance-vector relay protocol.

Every packet exchanged with the relay is a small JSON envelope guarded by a
CRC32 checksum.  The relay channel is a TCP stream, so :mod:`dvrouter.transport`
prefixes each encoded envelope with its length; this module only deals with a
single envelope.
"""

from __future__ import annotations

import json
import zlib
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

# Router id reserved for the relay acting as topology source.
SERVER = 100
# Link cost announced for destinations without a direct link.
INFINITY = 999


class MessageType(str, Enum):
  HELLO = "hello"
  ROUTE = "route"
  QUIT = "quit"


class MessageError(ValueError):
  """Base class for packet related errors."""


class MessageValidationError(MessageError):
  """Raised when a packet violates format constraints before encoding."""


class MessageDecodeError(MessageError):
  """Raised when external bytes cannot be turned into a :class:`Message`."""


@dataclass
class Message:
  source_id: int
  dest_id: int
  msg_type: MessageType
  cost_vector: Optional[List[int]] = None

  PROTOCOL_VERSION = 1

  @property
  def from_server(self) -> bool:
    return self.source_id == SERVER

  def dumps(self) -> bytes:
    """
    Encode the packet as compact UTF-8 JSON.
    """
    _ensure_int("source_id", self.source_id)
    _ensure_int("dest_id", self.dest_id)
    if not isinstance(self.msg_type, MessageType):
      raise MessageValidationError(f"invalid message type: {self.msg_type!r}")
    _validate_payload(self.msg_type, self.cost_vector)

    envelope: Dict[str, Any] = {
        "version": self.PROTOCOL_VERSION,
        "type": self.msg_type.value,
        "source_id": self.source_id,
        "dest_id": self.dest_id,
    }
    if self.cost_vector is not None:
      envelope["cost_vector"] = list(self.cost_vector)
    envelope["checksum"] = _compute_checksum(envelope)

    try:
      return json.dumps(envelope, sort_keys=True, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as exc:  # pragma: no cover
      raise MessageValidationError(f"failed to encode message: {exc}") from exc

  @classmethod
  def loads(cls, data: bytes) -> "Message":
    """
    Rebuild a packet from its encoded form, checking structure and checksum.
    """
    if not isinstance(data, (bytes, bytearray, memoryview)):
      raise MessageDecodeError("data must be bytes-like")
    try:
      text = bytes(data).decode("utf-8")
    except UnicodeDecodeError as exc:
      raise MessageDecodeError("payload is not valid UTF-8") from exc

    try:
      envelope = json.loads(text)
    except json.JSONDecodeError as exc:
      raise MessageDecodeError("payload is not valid JSON") from exc
    if not isinstance(envelope, dict):
      raise MessageDecodeError("message must decode into a JSON object")

    version = envelope.get("version", cls.PROTOCOL_VERSION)
    if not isinstance(version, int):
      raise MessageDecodeError("version field must be an integer")
    if version != cls.PROTOCOL_VERSION:
      raise MessageDecodeError(f"unsupported protocol version: {version}")

    try:
      msg_type = MessageType(envelope["type"])
    except KeyError as exc:
      raise MessageDecodeError("message missing type field") from exc
    except ValueError as exc:
      raise MessageDecodeError(f"unknown message type: {envelope.get('type')!r}") from exc

    source_id = envelope.get("source_id")
    _ensure_int("source_id", source_id, error_cls=MessageDecodeError)
    dest_id = envelope.get("dest_id")
    _ensure_int("dest_id", dest_id, error_cls=MessageDecodeError)

    checksum = envelope.get("checksum")
    if checksum is not None and not isinstance(checksum, int):
      raise MessageDecodeError("checksum must be an integer")
    expected = _compute_checksum(
        {key: value for key, value in envelope.items() if key != "checksum"}
    )
    if checksum is not None and checksum != expected:
      raise MessageDecodeError("checksum mismatch")

    cost_vector = envelope.get("cost_vector")
    try:
      _validate_payload(msg_type, cost_vector)
    except MessageValidationError as exc:
      raise MessageDecodeError(str(exc)) from exc

    return cls(
        source_id=source_id,
        dest_id=dest_id,
        msg_type=msg_type,
        cost_vector=list(cost_vector) if cost_vector is not None else None,
    )

  def __str__(self) -> str:
    text = f"{self.msg_type.name} {_format_id(self.source_id)} -> {_format_id(self.dest_id)}"
    if self.cost_vector is not None:
      text += f" {self.cost_vector}"
    return text


def build_hello(router_id: int) -> Message:
  """
  Presence announcement sent by a router to the relay.
  """
  return Message(source_id=router_id, dest_id=SERVER, msg_type=MessageType.HELLO)


def build_route(router_id: int, dest_id: int, cost_vector: Iterable[int]) -> Message:
  return Message(
      source_id=router_id,
      dest_id=dest_id,
      msg_type=MessageType.ROUTE,
      cost_vector=list(cost_vector),
  )


# ------------------------------------------------------------------ helpers

def _format_id(node_id: int) -> str:
  return "server" if node_id == SERVER else str(node_id)


def _ensure_int(field: str, value: Any, *, error_cls: type[MessageError] = MessageValidationError) -> None:
  # bool is an int subclass but never a valid router id.
  if not isinstance(value, int) or isinstance(value, bool):
    raise error_cls(f"{field} must be an integer")


def _compute_checksum(envelope: Dict[str, Any]) -> int:
  encoded = json.dumps(envelope, sort_keys=True, separators=(",", ":")).encode("utf-8")
  return zlib.crc32(encoded) & 0xFFFFFFFF


def _ensure_cost_vector(value: Any) -> None:
  if not isinstance(value, list):
    raise MessageValidationError("cost_vector must be a list")
  for idx, item in enumerate(value):
    if not isinstance(item, int) or isinstance(item, bool):
      raise MessageValidationError(f"cost_vector[{idx}] must be int")
    if item < 0:
      raise MessageValidationError(f"cost_vector[{idx}] must be non-negative")


def _validate_payload(msg_type: MessageType, cost_vector: Any) -> None:
  if msg_type == MessageType.ROUTE:
    _ensure_cost_vector(cost_vector)
  elif msg_type == MessageType.QUIT:
    if cost_vector is not None:
      raise MessageValidationError("quit message cannot carry a cost vector")
  elif cost_vector is not None:
    # The relay answers a HELLO with the router's link costs.
    _ensure_cost_vector(cost_vector)
