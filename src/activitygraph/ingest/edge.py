"""
Activity edge decoding.

Turns one wire record of the activity map response into an ActivityEdge.
Wire field names are dictated by the platform:

    {src, dst, proto, l7proto?, bytes, packets, time}

Peers are kept exactly as given (string or numeric device id). Unknown
protocols are retained verbatim rather than rejected.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from ..errors import InvalidEdgeField, InvalidQueryTime, MissingPeerIdentity, RecordError
from ..query.time import QueryTime, SECONDS_THRESHOLD

Peer = Union[str, int]

UINT64_MAX = 2**64 - 1

OTHER = "OTHER"

# IANA protocol numbers the platform may send instead of names
_IANA = {6: "TCP", 17: "UDP"}
_IANA_TEXT = {str(number): name for number, name in _IANA.items()}


@dataclass(frozen=True, order=True)
class ProtocolTag:
    """Transport protocol of an edge: TCP, UDP or Other(raw)."""
    name: str

    @classmethod
    def parse(cls, value: Any) -> "ProtocolTag":
        if value is None or value == "":
            return cls(OTHER)
        if isinstance(value, int) and not isinstance(value, bool):
            known = _IANA.get(value)
            return cls(known) if known else cls(str(value))
        text = str(value)
        if text in _IANA_TEXT:
            return cls(_IANA_TEXT[text])
        if text.upper() in ("TCP", "UDP"):
            return cls(text.upper())
        return cls(text)

    @property
    def is_other(self) -> bool:
        return self.name not in ("TCP", "UDP")

    def __str__(self) -> str:
        return self.name


TCP = ProtocolTag("TCP")
UDP = ProtocolTag("UDP")


def protocol_stack_name(stack: list) -> str:
    """
    Display name for a protocol stack such as ["IPv4", "TCP", "HTTP"].

    The last entry wins, unless it is OTHER, in which case the layer below
    it is used. An empty stack is OTHER.
    """
    if not stack:
        return OTHER
    if len(stack) > 1 and stack[-1] == OTHER:
        return str(stack[-2])
    return str(stack[-1])


@dataclass(frozen=True)
class ActivityEdge:
    """One decoded traffic observation between two peers."""
    src: Peer
    dst: Peer
    protocol: ProtocolTag
    bytes: int
    packets: int
    observed_at: QueryTime
    l7_protocol: Optional[str] = None


def _peer(fields: Mapping, name: str) -> Peer:
    value = fields.get(name)
    if value is None or value == "":
        raise MissingPeerIdentity(name)
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise InvalidEdgeField(name, value, "peer must be a string or device id")
    return value


def _counter(fields: Mapping, name: str) -> int:
    value = fields.get(name, 0)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidEdgeField(name, value, "expected an unsigned integer")
    if not 0 <= value <= UINT64_MAX:
        raise InvalidEdgeField(name, value, "out of unsigned 64-bit range")
    return value


def _l7(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, (list, tuple)):
        return protocol_stack_name(list(value))
    return str(value)


def decode_edge(fields: Mapping, threshold: int = SECONDS_THRESHOLD) -> ActivityEdge:
    """Decode a raw field mapping. Raises a RecordError subclass on bad input."""
    src = _peer(fields, "src")
    dst = _peer(fields, "dst")

    observed_at = QueryTime.parse(fields.get("time"), threshold)
    if not observed_at.is_absolute:
        raise InvalidQueryTime(fields.get("time"), "edge timestamps must be absolute")

    return ActivityEdge(
        src=src,
        dst=dst,
        protocol=ProtocolTag.parse(fields.get("proto")),
        l7_protocol=_l7(fields.get("l7proto")),
        bytes=_counter(fields, "bytes"),
        packets=_counter(fields, "packets"),
        observed_at=observed_at,
    )


def try_decode_edge(
    fields: Mapping, threshold: int = SECONDS_THRESHOLD
) -> Union[ActivityEdge, RecordError]:
    """Like decode_edge, but returns the record error instead of raising it."""
    if not isinstance(fields, Mapping):
        return InvalidEdgeField("record", fields, "expected a mapping of fields")
    try:
        return decode_edge(fields, threshold)
    except RecordError as e:
        return e
