"""
Topology graph.

The finalized, read-only result of aggregating activity edges. Storage
goes through a narrow backing facade so the aggregation core does not
depend on one graph library:

  - NetworkXBacking: networkx MultiDiGraph keyed by protocol (default)
  - DictBacking:     plain dicts, no third-party structures

Edges are directed and keyed by (src, dst, protocol). Consumers that need
traversal or export get copies through to_networkx() / adjacency_matrix().
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, NamedTuple, Optional, Protocol, Union

import networkx as nx
import numpy as np

from ..errors import UsageError
from ..ingest.edge import ActivityEdge, Peer, ProtocolTag
from ..query.time import QueryTime


class EdgeKey(NamedTuple):
    src: Peer
    dst: Peer
    protocol: ProtocolTag


@dataclass(frozen=True)
class EdgeAggregate:
    """Accumulated state of all records sharing one EdgeKey."""
    bytes_total: int
    packets_total: int
    last_seen: QueryTime
    record_count: int = 1

    @classmethod
    def from_edge(cls, edge: ActivityEdge) -> "EdgeAggregate":
        return cls(edge.bytes, edge.packets, edge.observed_at)

    def merged(self, edge: ActivityEdge) -> "EdgeAggregate":
        last_seen = self.last_seen
        if edge.observed_at.value > last_seen.value:
            last_seen = edge.observed_at
        return EdgeAggregate(
            bytes_total=self.bytes_total + edge.bytes,
            packets_total=self.packets_total + edge.packets,
            last_seen=last_seen,
            record_count=self.record_count + 1,
        )


def peer_sort_key(peer: Peer) -> tuple:
    """Numeric device ids sort before names; mixed types never compare."""
    if isinstance(peer, int):
        return (0, peer, "")
    return (1, 0, peer)


def edge_sort_key(key: EdgeKey) -> tuple:
    return (peer_sort_key(key.src), peer_sort_key(key.dst), key.protocol.name)


class GraphBacking(Protocol):
    """Storage facade a TopologyGraph is materialized into."""

    def add_node(self, peer: Peer) -> None: ...

    def upsert_edge(self, key: EdgeKey, aggregate: EdgeAggregate) -> None: ...

    def nodes(self) -> Iterable[Peer]: ...

    def edges(self) -> Iterable[tuple[EdgeKey, EdgeAggregate]]: ...

    def get_edge(self, key: EdgeKey) -> Optional[EdgeAggregate]: ...

    def incident_edges(self, peer: Peer) -> Iterable[tuple[EdgeKey, EdgeAggregate]]: ...

    def freeze(self) -> None: ...


class DictBacking:
    """Backing built from plain dictionaries."""

    def __init__(self):
        self._nodes: dict[Peer, None] = {}
        self._edges: dict[EdgeKey, EdgeAggregate] = {}
        self._frozen = False

    def add_node(self, peer: Peer) -> None:
        self._check()
        self._nodes.setdefault(peer, None)

    def upsert_edge(self, key: EdgeKey, aggregate: EdgeAggregate) -> None:
        self._check()
        self._edges[key] = aggregate

    def nodes(self) -> Iterable[Peer]:
        return iter(self._nodes)

    def edges(self) -> Iterable[tuple[EdgeKey, EdgeAggregate]]:
        return iter(self._edges.items())

    def get_edge(self, key: EdgeKey) -> Optional[EdgeAggregate]:
        return self._edges.get(key)

    def incident_edges(self, peer: Peer) -> Iterable[tuple[EdgeKey, EdgeAggregate]]:
        return [
            (key, agg) for key, agg in self._edges.items()
            if _same_peer(key.src, peer) or _same_peer(key.dst, peer)
        ]

    def freeze(self) -> None:
        self._frozen = True

    def _check(self):
        if self._frozen:
            raise UsageError("topology backing is frozen")


class NetworkXBacking:
    """Backing stored in a networkx MultiDiGraph, one parallel edge per protocol."""

    def __init__(self):
        self.graph = nx.MultiDiGraph()

    def add_node(self, peer: Peer) -> None:
        self.graph.add_node(peer)

    def upsert_edge(self, key: EdgeKey, aggregate: EdgeAggregate) -> None:
        self.graph.add_edge(
            key.src,
            key.dst,
            key=key.protocol.name,
            protocol=key.protocol.name,
            bytes_total=aggregate.bytes_total,
            packets_total=aggregate.packets_total,
            last_seen=aggregate.last_seen.value,
            record_count=aggregate.record_count,
        )

    def nodes(self) -> Iterable[Peer]:
        return self.graph.nodes()

    def edges(self) -> Iterator[tuple[EdgeKey, EdgeAggregate]]:
        for u, v, k, data in self.graph.edges(keys=True, data=True):
            yield EdgeKey(u, v, ProtocolTag(k)), _aggregate(data)

    def get_edge(self, key: EdgeKey) -> Optional[EdgeAggregate]:
        data = self.graph.get_edge_data(key.src, key.dst, key=key.protocol.name)
        if data is None:
            return None
        return _aggregate(data)

    def incident_edges(self, peer: Peer) -> Iterator[tuple[EdgeKey, EdgeAggregate]]:
        if peer not in self.graph:
            return
        for u, v, k, data in self.graph.out_edges(peer, keys=True, data=True):
            yield EdgeKey(u, v, ProtocolTag(k)), _aggregate(data)
        for u, v, k, data in self.graph.in_edges(peer, keys=True, data=True):
            if u != v:  # self-loops were already yielded as out-edges
                yield EdgeKey(u, v, ProtocolTag(k)), _aggregate(data)

    def freeze(self) -> None:
        nx.freeze(self.graph)


def _same_peer(a: Peer, b: object) -> bool:
    return a == b and type(a) is type(b)


def _aggregate(data: dict) -> EdgeAggregate:
    return EdgeAggregate(
        bytes_total=data["bytes_total"],
        packets_total=data["packets_total"],
        last_seen=QueryTime.instant(data["last_seen"]),
        record_count=data["record_count"],
    )


class TopologyGraph:
    """
    Immutable topology snapshot.

    Provides:
      - Node and edge enumeration in a deterministic order
      - Lookup of a single (src, dst, protocol) edge
      - Incident edges of one peer
      - Copies for consumers: networkx graph, weighted adjacency matrix
      - Strongly connected components of the traffic graph
    """

    def __init__(self, backing: GraphBacking):
        backing.freeze()
        self._backing = backing

    def nodes(self) -> list[Peer]:
        return sorted(self._backing.nodes(), key=peer_sort_key)

    def edges(self) -> list[tuple[EdgeKey, EdgeAggregate]]:
        return sorted(self._backing.edges(), key=lambda item: edge_sort_key(item[0]))

    def get_edge(
        self, src: Peer, dst: Peer, protocol: Union[ProtocolTag, str, int]
    ) -> Optional[EdgeAggregate]:
        if not isinstance(protocol, ProtocolTag):
            protocol = ProtocolTag.parse(protocol)
        return self._backing.get_edge(EdgeKey(src, dst, protocol))

    def edges_of(self, peer: Peer) -> list[tuple[EdgeKey, EdgeAggregate]]:
        """Edges into or out of peer, in edge order. Unknown peers have none."""
        if peer not in self:
            return []
        return sorted(
            self._backing.incident_edges(peer),
            key=lambda item: edge_sort_key(item[0]),
        )

    @property
    def number_of_nodes(self) -> int:
        return sum(1 for _ in self._backing.nodes())

    @property
    def number_of_edges(self) -> int:
        return sum(1 for _ in self._backing.edges())

    def __contains__(self, peer: object) -> bool:
        return any(_same_peer(n, peer) for n in self._backing.nodes())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TopologyGraph):
            return NotImplemented
        return self.nodes() == other.nodes() and self.edges() == other.edges()

    __hash__ = None

    def __repr__(self) -> str:
        return f"TopologyGraph(nodes={self.number_of_nodes}, edges={self.number_of_edges})"

    # -- consumer copies ------------------------------------------------

    def to_networkx(self) -> nx.MultiDiGraph:
        """Frozen MultiDiGraph copy; edge keys are protocol names."""
        G = nx.MultiDiGraph()
        G.add_nodes_from(self.nodes())
        for key, agg in self.edges():
            G.add_edge(
                key.src,
                key.dst,
                key=key.protocol.name,
                protocol=key.protocol.name,
                bytes_total=agg.bytes_total,
                packets_total=agg.packets_total,
                last_seen=agg.last_seen.value,
                record_count=agg.record_count,
            )
        return nx.freeze(G)

    def strongly_connected_components(self) -> list[set]:
        """Components ordered largest first."""
        sccs = nx.strongly_connected_components(self.to_networkx())
        return sorted(
            sccs,
            key=lambda c: (-len(c), sorted(peer_sort_key(p) for p in c)),
        )

    def adjacency_matrix(self, weight: str = "bytes_total") -> tuple[np.ndarray, list[Peer]]:
        """
        Build a directed N x N weight matrix summed across protocols.

        Returns:
          - matrix: (N, N) float64 array, row = src, column = dst
          - node_list: peer for each row/column index
        """
        node_list = self.nodes()
        if not node_list:
            return np.zeros((0, 0)), []
        matrix = nx.to_numpy_array(
            self.to_networkx(), nodelist=node_list, weight=weight, dtype=np.float64
        )
        return matrix, node_list
