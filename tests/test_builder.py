"""Tests for the incremental topology builder."""

import itertools

import pytest

from activitygraph.errors import (
    BuilderAlreadyFinalized,
    MissingPeerIdentity,
    RecordError,
    UsageError,
)
from activitygraph.graph.builder import GraphBuilder
from activitygraph.graph.topology import DictBacking, EdgeAggregate
from activitygraph.ingest.edge import TCP, UDP, ActivityEdge, ProtocolTag
from activitygraph.ingest.page import ActivityPage
from activitygraph.query.time import QueryTime


def _edge(src, dst, protocol=TCP, nbytes=100, packets=10, t=1000):
    return ActivityEdge(
        src=src,
        dst=dst,
        protocol=protocol,
        bytes=nbytes,
        packets=packets,
        observed_at=QueryTime.instant(t),
    )


def _build(records, **kwargs):
    builder = GraphBuilder(**kwargs)
    builder.extend(records)
    return builder.finalize()


class TestAggregation:
    def test_same_key_collapses(self):
        e1 = _edge("A", "B", TCP, 100, 100, t=1000)
        e2 = _edge("A", "B", TCP, 50, 20, t=2000)
        for order in ([e1, e2], [e2, e1]):
            graph, errors = _build(order)
            assert errors == ()
            assert graph.number_of_edges == 1
            agg = graph.get_edge("A", "B", TCP)
            assert agg.bytes_total == 150
            assert agg.packets_total == 120
            assert agg.last_seen == QueryTime.instant(2000)
            assert agg.record_count == 2

    def test_new_key_starts_fresh(self):
        graph, _ = _build([_edge("A", "B", nbytes=7, packets=3, t=55)])
        assert graph.get_edge("A", "B", "TCP") == EdgeAggregate(7, 3, QueryTime.instant(55), 1)

    def test_directed(self):
        graph, _ = _build([_edge("A", "B"), _edge("B", "A")])
        assert graph.number_of_edges == 2
        assert graph.get_edge("A", "B", TCP) is not None
        assert graph.get_edge("B", "A", TCP) is not None

    def test_protocols_are_distinct_edges(self):
        graph, _ = _build([
            _edge("A", "B", TCP),
            _edge("A", "B", UDP),
            _edge("A", "B", ProtocolTag("SCTP")),
        ])
        assert graph.number_of_edges == 3

    def test_last_seen_is_maximum(self):
        graph, _ = _build([_edge("A", "B", t=t) for t in (300, 900, 100)])
        assert graph.get_edge("A", "B", TCP).last_seen.value == 900

    def test_order_independent(self):
        records = [
            _edge("A", "B", TCP, 1, 1, 10),
            _edge("A", "B", TCP, 2, 2, 40),
            _edge("B", "C", UDP, 3, 3, 20),
            _edge("C", "A", TCP, 4, 4, 30),
        ]
        graphs = [_build(list(p))[0] for p in itertools.permutations(records)]
        assert all(g == graphs[0] for g in graphs)

    def test_batches_order_independent(self):
        batch1 = [_edge("A", "B", nbytes=1), _edge("B", "C", nbytes=2)]
        batch2 = [_edge("A", "B", nbytes=3, t=5000)]
        g1, _ = _build(batch1 + batch2)
        g2, _ = _build(batch2 + batch1)
        assert g1 == g2


class TestNodes:
    def test_each_peer_once(self):
        graph, _ = _build([
            _edge("A", "B"),
            _edge("A", "C"),
            _edge("B", "C"),
            _edge("C", "A", UDP),
        ])
        assert graph.nodes() == ["A", "B", "C"]
        assert graph.number_of_nodes == 3

    def test_exact_identity(self):
        graph, _ = _build([_edge(15, "15")])
        assert graph.number_of_nodes == 2
        assert 15 in graph
        assert "15" in graph

    def test_self_loop(self):
        graph, _ = _build([_edge("A", "A")])
        assert graph.nodes() == ["A"]
        assert graph.number_of_edges == 1


class TestPartialSuccess:
    def test_bad_record_is_accumulated(self):
        builder = GraphBuilder()
        builder.add_fields({"src": "A", "dst": "B", "proto": "TCP", "bytes": 1, "packets": 1, "time": 1577836800})
        builder.add_fields({"dst": "C", "proto": "TCP", "bytes": 1, "packets": 1, "time": 1577836800})
        builder.add_fields({"src": "C", "dst": "D", "proto": "UDP", "bytes": 1, "packets": 1, "time": 1577836800})
        graph, errors = builder.finalize()

        assert graph.number_of_edges == 2
        assert graph.get_edge("A", "B", TCP) is not None
        assert graph.get_edge("C", "D", UDP) is not None
        assert len(errors) == 1
        assert isinstance(errors[0], MissingPeerIdentity)

    def test_error_does_not_touch_graph(self):
        builder = GraphBuilder()
        builder.add(MissingPeerIdentity("src"))
        graph, errors = builder.finalize()
        assert graph.number_of_nodes == 0
        assert graph.number_of_edges == 0
        assert len(errors) == 1

    def test_errors_in_order(self):
        builder = GraphBuilder()
        first = MissingPeerIdentity("src")
        second = MissingPeerIdentity("dst")
        builder.add(first)
        builder.add(_edge("A", "B"))
        builder.add(second)
        _, errors = builder.finalize()
        assert errors == (first, second)

    def test_counters(self):
        builder = GraphBuilder()
        builder.extend([_edge("A", "B"), _edge("A", "B"), MissingPeerIdentity("src")])
        assert builder.record_count == 2
        assert builder.error_count == 1

    def test_add_page_context(self):
        page = ActivityPage.from_body({"edges": [
            {"src": "A", "dst": "B", "proto": "TCP", "time": 1577836800},
            {"src": "", "dst": "B", "proto": "TCP", "time": 1577836800},
        ]})
        builder = GraphBuilder()
        builder.add_page(page, context="page 7")
        graph, errors = builder.finalize()
        assert graph.number_of_edges == 1
        assert str(errors[0]).startswith("page 7: record 1: ")
        assert errors[0].kind == "MissingPeerIdentity"

    def test_add_page_keeps_going_past_huge_time(self):
        page = ActivityPage.from_body({"edges": [
            {"src": "A", "dst": "B", "proto": "TCP", "time": 1577836800},
            {"src": "A", "dst": "C", "proto": "TCP", "time": "9" * 5000},
            {"src": "B", "dst": "C", "proto": "TCP", "time": 1577836800},
        ]})
        builder = GraphBuilder()
        builder.add_page(page)
        graph, errors = builder.finalize()
        assert graph.number_of_edges == 2
        assert len(errors) == 1
        assert errors[0].kind == "InvalidQueryTime"
        assert errors[0].record_index == 1

    def test_rejects_other_types(self):
        with pytest.raises(TypeError):
            GraphBuilder().add({"src": "A"})


class TestFinalize:
    def test_add_after_finalize(self):
        builder = GraphBuilder()
        builder.add(_edge("A", "B"))
        graph, _ = builder.finalize()

        with pytest.raises(BuilderAlreadyFinalized):
            builder.add(_edge("A", "B", nbytes=999))
        assert graph.get_edge("A", "B", TCP).bytes_total == 100
        assert graph.number_of_edges == 1

    def test_add_error_after_finalize(self):
        builder = GraphBuilder()
        builder.finalize()
        with pytest.raises(BuilderAlreadyFinalized):
            builder.add(MissingPeerIdentity("src"))

    def test_misuse_is_not_a_record_error(self):
        builder = GraphBuilder()
        builder.finalize()
        with pytest.raises(UsageError) as exc:
            builder.add(_edge("A", "B"))
        assert not isinstance(exc.value, RecordError)

    def test_finalize_twice(self):
        builder = GraphBuilder()
        builder.finalize()
        assert builder.finalized
        with pytest.raises(BuilderAlreadyFinalized):
            builder.finalize()

    def test_empty(self):
        graph, errors = GraphBuilder().finalize()
        assert graph.nodes() == []
        assert graph.edges() == []
        assert errors == ()

    def test_dict_backing_matches_networkx(self):
        records = [_edge("A", "B"), _edge("B", "C", UDP), _edge("A", "B", t=5)]
        g_nx, _ = _build(records)
        g_dict, _ = _build(records, backing_factory=DictBacking)
        assert g_nx == g_dict
