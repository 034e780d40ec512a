"""
Activity map query envelope.

Builds the JSON parameters posted to the activity map query endpoint.
Only fields that differ from the platform defaults are emitted, and all
times are rendered through QueryTime.to_wire().
"""

import enum
from dataclasses import dataclass, field
from typing import Optional, Union

from .time import NOW, QueryTime, SECONDS_THRESHOLD


class Weighting(enum.Enum):
    """Metric that drives the weight of an edge."""
    BYTES = "bytes"
    CONNECTIONS = "connections"
    TURNS = "turns"


class EdgeAnnotation(enum.Enum):
    """Extra per-edge data to request from the platform."""
    APPEARANCES = "appearances"
    PROTOCOLS = "protocols"


@dataclass(frozen=True)
class Source:
    """A walk origin or peer filter: a device or a group of devices."""
    object_type: str
    object_id: int

    @classmethod
    def device(cls, object_id: int) -> "Source":
        return cls("device", object_id)

    @classmethod
    def device_group(cls, object_id: int) -> "Source":
        return cls("device_group", object_id)

    def to_params(self) -> dict:
        return {"object_type": self.object_type, "object_id": self.object_id}


@dataclass
class Step:
    """One hop of a walk, optionally restricted by protocol/role and peers."""
    relationships: list[dict] = field(default_factory=list)
    peer_in: list[Source] = field(default_factory=list)
    peer_not_in: list[Source] = field(default_factory=list)

    def to_params(self) -> dict:
        params: dict = {}
        if self.relationships:
            params["relationships"] = list(self.relationships)
        if self.peer_in:
            params["peer_in"] = [s.to_params() for s in self.peer_in]
        if self.peer_not_in:
            params["peer_not_in"] = [s.to_params() for s in self.peer_not_in]
        return params


@dataclass
class Walk:
    """Traversal from a set of origins. No origins means all devices."""
    origins: list[Source] = field(default_factory=list)
    steps: list[Step] = field(default_factory=lambda: [Step()])

    def to_params(self) -> dict:
        if self.origins:
            origins = [s.to_params() for s in self.origins]
        else:
            origins = [{"object_type": "all_devices"}]
        return {"origins": origins, "steps": [s.to_params() for s in self.steps]}


@dataclass
class ActivityMapQuery:
    """Parameters for a single activity map query."""
    from_: Union[QueryTime, int, str] = "-30m"
    until: Optional[Union[QueryTime, int, str]] = None
    walks: list[Walk] = field(default_factory=lambda: [Walk()])
    weighting: Weighting = Weighting.BYTES
    edge_annotations: list[EdgeAnnotation] = field(default_factory=list)

    def to_params(self, threshold: int = SECONDS_THRESHOLD) -> dict:
        params = {
            "from": QueryTime.coerce(self.from_, threshold).to_wire(threshold),
            "walks": [w.to_params() for w in self.walks],
        }
        if self.until is not None:
            until = QueryTime.coerce(self.until, threshold)
            if until != NOW:
                params["until"] = until.to_wire(threshold)
        if self.weighting is not Weighting.BYTES:
            params["weighting"] = self.weighting.value
        if self.edge_annotations:
            params["edge_annotations"] = [a.value for a in self.edge_annotations]
        return params
