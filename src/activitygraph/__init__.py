"""
ActivityGraph — activity map topology toolkit.

Normalizes the unit-ambiguous time values used by activity map queries and
aggregates the peer-to-peer traffic edges returned by the activity map
endpoint into a directed topology graph backed by NetworkX.
"""

__version__ = "0.1.0"

from .errors import (
    ActivityGraphError,
    BuilderAlreadyFinalized,
    InvalidEdgeField,
    InvalidQueryTime,
    MissingPeerIdentity,
    RecordError,
    UsageError,
)
from .query.time import NOW, QueryTime, TimeKind
from .ingest.edge import ActivityEdge, ProtocolTag, decode_edge, try_decode_edge
from .ingest.page import ActivityPage
from .graph.builder import GraphBuilder
from .graph.topology import EdgeAggregate, EdgeKey, TopologyGraph
from .graph.pipeline import TopologyResult, collect_pages
from .auth.credential import ApiKey
