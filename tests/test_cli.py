"""Tests for the command-line interface."""

import json

from click.testing import CliRunner

from activitygraph.cli import cli


def _write_pages(tmp_path):
    p1 = tmp_path / "page1.json"
    p1.write_text(json.dumps({"edges": [
        {"src": "A", "dst": "B", "proto": "TCP", "bytes": 10, "packets": 1, "time": 1577836800},
        {"dst": "B", "proto": "TCP", "bytes": 10, "packets": 1, "time": 1577836800},
    ]}))
    p2 = tmp_path / "page2.json"
    p2.write_text(json.dumps({"edges": [
        {"src": "A", "dst": "B", "proto": "TCP", "bytes": 5, "packets": 1, "time": 1577836900},
    ]}))
    return [str(p1), str(p2)]


class TestCLI:
    def test_time_seconds(self):
        result = CliRunner().invoke(cli, ["time", "1577836800"])
        assert result.exit_code == 0
        assert "kind: instant" in result.output
        assert "formatted: 1577836800000" in result.output

    def test_time_relative_resolved(self):
        result = CliRunner().invoke(cli, ["time", "--now", "1000000", "--", "-30m"])
        assert result.exit_code == 0
        assert "formatted: -30m" in result.output
        assert "resolved: -800000" in result.output

    def test_time_invalid(self):
        result = CliRunner().invoke(cli, ["time", "banana"])
        assert result.exit_code != 0

    def test_query(self):
        result = CliRunner().invoke(cli, ["query", "--from=-1h", "--device", "15", "--annotate", "protocols"])
        assert result.exit_code == 0
        params = json.loads(result.output)
        assert params["from"] == "-1h"
        assert params["walks"][0]["origins"] == [{"object_type": "device", "object_id": 15}]
        assert params["edge_annotations"] == ["protocols"]

    def test_ingest_summary(self, tmp_path):
        result = CliRunner().invoke(cli, ["ingest", *_write_pages(tmp_path)])
        assert result.exit_code == 0
        assert "Nodes: 2" in result.output
        assert "Edges: 1" in result.output
        assert "MissingPeerIdentity" in result.output

    def test_ingest_tsv_export(self, tmp_path):
        out = tmp_path / "edges.tsv"
        result = CliRunner().invoke(cli, ["ingest", *_write_pages(tmp_path), "-f", "tsv", "-o", str(out)])
        assert result.exit_code == 0
        lines = out.read_text().splitlines()
        assert lines[1] == "A\tB\tTCP\t15\t2\t1577836900000"

    def test_ingest_fail_fast(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("not json")
        result = CliRunner().invoke(cli, ["ingest", str(bad), "--fail-fast"])
        assert result.exit_code != 0
        assert "while processing page" in result.output
