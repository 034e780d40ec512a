"""
Incremental topology builder.

Aggregates decoded activity edges into a TopologyGraph. Same-key records
collapse: byte and packet counts are summed and last_seen keeps the
latest observation, so the result does not depend on the order records
arrive in. Record errors are collected, never raised.

A builder has one owner. Concurrent fetchers must hand records to a
single consumer (see pipeline.collect_pages) instead of sharing it.
"""

import logging
from typing import Callable, Iterable, Mapping, Optional, Union

from ..errors import BuilderAlreadyFinalized, RecordError
from ..ingest.edge import ActivityEdge, Peer, try_decode_edge
from ..ingest.page import ActivityPage
from ..query.time import SECONDS_THRESHOLD
from .topology import EdgeAggregate, EdgeKey, GraphBacking, NetworkXBacking, TopologyGraph

logger = logging.getLogger(__name__)

Record = Union[ActivityEdge, RecordError]


class GraphBuilder:
    """
    Single-owner aggregator producing a TopologyGraph.

    Usage:
        builder = GraphBuilder()
        for record in page.decode():
            builder.add(record)
        graph, errors = builder.finalize()
    """

    def __init__(
        self,
        backing_factory: Callable[[], GraphBacking] = NetworkXBacking,
        threshold: int = SECONDS_THRESHOLD,
    ):
        self.backing_factory = backing_factory
        self.threshold = threshold
        self._nodes: dict[Peer, None] = {}
        self._edges: dict[EdgeKey, EdgeAggregate] = {}
        self._errors: list[RecordError] = []
        self._records = 0
        self._finalized = False

    @property
    def record_count(self) -> int:
        """Number of records accepted into the aggregation."""
        return self._records

    @property
    def error_count(self) -> int:
        return len(self._errors)

    @property
    def finalized(self) -> bool:
        return self._finalized

    def add(self, record: Record) -> None:
        """Aggregate an edge, or file a record error without touching the graph."""
        if self._finalized:
            raise BuilderAlreadyFinalized("add")

        if isinstance(record, RecordError):
            logger.debug("Skipping bad record: %s", record)
            self._errors.append(record)
            return
        if not isinstance(record, ActivityEdge):
            raise TypeError(
                f"expected ActivityEdge or RecordError, got {type(record).__name__}"
            )

        key = EdgeKey(record.src, record.dst, record.protocol)
        current = self._edges.get(key)
        if current is None:
            self._edges[key] = EdgeAggregate.from_edge(record)
        else:
            self._edges[key] = current.merged(record)

        self._nodes.setdefault(record.src, None)
        self._nodes.setdefault(record.dst, None)
        self._records += 1

    def add_fields(self, fields: Mapping) -> None:
        """Decode a raw wire record and add the result."""
        self.add(try_decode_edge(fields, self.threshold))

    def extend(self, records: Iterable[Record]) -> None:
        for record in records:
            self.add(record)

    def add_page(self, page: ActivityPage, context: Optional[str] = None) -> None:
        """Add every record of a page; errors get the optional context line."""
        if self._finalized:
            raise BuilderAlreadyFinalized("add_page")
        for record in page.decode():
            if context and isinstance(record, RecordError):
                record.add_context(context)
            self.add(record)

    def finalize(self) -> tuple[TopologyGraph, tuple[RecordError, ...]]:
        """
        Materialize the aggregation and consume the builder.

        Returns the graph and the record errors in the order they were added.
        """
        if self._finalized:
            raise BuilderAlreadyFinalized("finalize")
        self._finalized = True

        backing = self.backing_factory()
        for peer in self._nodes:
            backing.add_node(peer)
        for key, aggregate in self._edges.items():
            backing.upsert_edge(key, aggregate)

        graph = TopologyGraph(backing)
        errors = tuple(self._errors)
        logger.info(
            "Built topology: %d nodes, %d edges from %d records (%d errors)",
            len(self._nodes), len(self._edges), self._records, len(errors),
        )

        # release aggregation state; the graph owns its own copy
        self._nodes = {}
        self._edges = {}
        self._errors = []
        return graph, errors
