"""
Activity map response page decoding.

A page body looks like:

    {
      "warnings": [{"message": ..., "type": ..., "properties": {...}}],
      "from": 1577836800000,
      "until": 1577838600000,
      "edges": [{src, dst, proto, l7proto, bytes, packets, time}, ...]
    }

Warnings are non-fatal platform messages meaning the topology may be
incomplete. Record decoding is deferred to decode() so that one bad row
never hides the others.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Iterator, Mapping, Optional, Union

from ..errors import PageFormatError, RecordError
from ..query.time import QueryTime, SECONDS_THRESHOLD
from .edge import ActivityEdge, Peer, try_decode_edge

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlatformWarning:
    """A warning returned by the platform alongside a topology."""
    message: str
    type: str
    properties: Optional[dict] = None

    @classmethod
    def from_dict(cls, data: Mapping) -> "PlatformWarning":
        return cls(
            message=str(data.get("message", "")),
            type=str(data.get("type", "")),
            properties=data.get("properties"),
        )


@dataclass
class ActivityPage:
    """One page of an activity map response."""
    records: list
    warnings: list[PlatformWarning] = field(default_factory=list)
    from_: Optional[QueryTime] = None
    until: Optional[QueryTime] = None
    threshold: int = SECONDS_THRESHOLD

    @classmethod
    def from_body(
        cls, body: Union[Mapping, str, bytes], threshold: int = SECONDS_THRESHOLD
    ) -> "ActivityPage":
        """Build a page from a decoded JSON mapping or raw JSON text."""
        if isinstance(body, (str, bytes)):
            try:
                body = json.loads(body)
            except ValueError as e:
                raise PageFormatError(f"response body is not JSON: {e}") from e

        if not isinstance(body, Mapping):
            raise PageFormatError(
                f"response body must be an object, got {type(body).__name__}"
            )

        records = body.get("edges", [])
        if not isinstance(records, list):
            raise PageFormatError("'edges' must be a list")

        warnings = [
            PlatformWarning.from_dict(w)
            for w in body.get("warnings") or []
            if isinstance(w, Mapping)
        ]
        for w in warnings:
            logger.warning("Platform warning (%s): %s", w.type, w.message)

        return cls(
            records=records,
            warnings=warnings,
            from_=_bound(body, "from", threshold),
            until=_bound(body, "until", threshold),
            threshold=threshold,
        )

    @property
    def is_complete(self) -> bool:
        """True when the platform reported no warnings for this page."""
        return not self.warnings

    def peers(self) -> set:
        """Endpoints named by the raw records, valid or not."""
        found: set[Peer] = set()
        for rec in self.records:
            if not isinstance(rec, Mapping):
                continue
            for name in ("src", "dst"):
                value = rec.get(name)
                if isinstance(value, (str, int)) and not isinstance(value, bool) and value != "":
                    found.add(value)
        return found

    def decode(self) -> Iterator[Union[ActivityEdge, RecordError]]:
        """Yield one ActivityEdge or RecordError per record, in order."""
        for index, rec in enumerate(self.records):
            result = try_decode_edge(rec, self.threshold)
            if isinstance(result, RecordError):
                result.record_index = index
                result.add_context(f"record {index}")
            yield result

    def __len__(self) -> int:
        return len(self.records)


def _bound(body: Mapping, name: str, threshold: int) -> Optional[QueryTime]:
    value = body.get(name)
    if value is None:
        return None
    try:
        return QueryTime.parse(value, threshold)
    except RecordError as e:
        raise PageFormatError(f"page '{name}' bound is not a valid time: {e}") from e
