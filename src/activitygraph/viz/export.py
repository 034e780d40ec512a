"""
Export of finished topologies.

Renders a TopologyGraph as tab-separated edge lists, D3.js force-directed
JSON, or Mermaid flowchart syntax. Exporters only read the graph.
"""

import json
from typing import Optional, TextIO

from ..graph.topology import TopologyGraph


class TSVExporter:
    """Export edges as tab-separated rows: src, dst, protocol, bytes, packets, last_seen."""

    HEADER = ("src", "dst", "protocol", "bytes", "packets", "last_seen")

    @staticmethod
    def to_rows(graph: TopologyGraph, header: bool = True) -> list[str]:
        rows = ["\t".join(TSVExporter.HEADER)] if header else []
        for key, agg in graph.edges():
            rows.append("\t".join(str(v) for v in (
                key.src,
                key.dst,
                key.protocol,
                agg.bytes_total,
                agg.packets_total,
                agg.last_seen.value,
            )))
        return rows

    @staticmethod
    def write(out: TextIO, graph: TopologyGraph, header: bool = True):
        for row in TSVExporter.to_rows(graph, header):
            out.write(row + "\n")

    @staticmethod
    def save(filepath: str, graph: TopologyGraph, **kwargs):
        with open(filepath, "w") as f:
            TSVExporter.write(f, graph, **kwargs)


class D3Exporter:
    """Export topologies to D3.js force-directed JSON format."""

    @staticmethod
    def to_d3_json(
        graph: TopologyGraph,
        node_scores: Optional[dict] = None,
    ) -> dict:
        """
        Convert graph to D3.js force-directed layout JSON.

        Returns dict with 'nodes' and 'links' arrays. Links reference nodes
        by index and carry the aggregated traffic counters.
        """
        node_list = graph.nodes()
        node_map = {n: i for i, n in enumerate(node_list)}

        nodes = []
        for peer in node_list:
            d = {"id": peer, "index": node_map[peer]}
            if node_scores and peer in node_scores:
                d["score"] = node_scores[peer]
            nodes.append(d)

        links = []
        for key, agg in graph.edges():
            links.append({
                "source": node_map[key.src],
                "target": node_map[key.dst],
                "protocol": key.protocol.name,
                "bytes": agg.bytes_total,
                "packets": agg.packets_total,
                "last_seen": agg.last_seen.value,
                "records": agg.record_count,
            })

        return {"nodes": nodes, "links": links}

    @staticmethod
    def save(filepath: str, graph: TopologyGraph, **kwargs):
        """Save D3.js JSON to file."""
        data = D3Exporter.to_d3_json(graph, **kwargs)
        with open(filepath, "w") as f:
            json.dump(data, f, indent=2, default=str)


class MermaidExporter:
    """Export topologies to Mermaid flowchart syntax."""

    @staticmethod
    def to_mermaid(
        graph: TopologyGraph,
        direction: str = "LR",
        title: str = "",
    ) -> str:
        lines = [f"graph {direction}"]
        if title:
            lines.insert(0, f"---\ntitle: {title}\n---")

        safe: dict = {}
        used: set = set()
        for peer in graph.nodes():
            base = name = _mermaid_safe(peer)
            # sanitizing is lossy, "a-b" and "a_b" must stay separate nodes
            n = 2
            while name in used:
                name = f"{base}_{n}"
                n += 1
            used.add(name)
            safe[peer] = name

        for peer, name in safe.items():
            lines.append(f"    {name}({peer})")

        for key, agg in graph.edges():
            label = f"{key.protocol} {agg.bytes_total}B"
            lines.append(f"    {safe[key.src]} -- \"{label}\" --> {safe[key.dst]}")

        return "\n".join(lines)

    @staticmethod
    def save(filepath: str, graph: TopologyGraph, **kwargs):
        content = MermaidExporter.to_mermaid(graph, **kwargs)
        with open(filepath, "w") as f:
            f.write(content)


def _mermaid_safe(peer) -> str:
    """Make a peer identifier safe for Mermaid node ids."""
    name = str(peer)
    safe = name.replace("-", "_").replace(".", "_").replace("/", "_")
    safe = safe.replace(" ", "_").replace(":", "_")
    if not safe or safe[0].isdigit():
        safe = "n" + safe
    # ints and their string form must not share an id
    if isinstance(peer, int):
        safe = "id_" + safe
    return safe
