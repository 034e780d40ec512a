"""
activitygraph CLI.

Commands:
  ingest — Build a topology from saved activity map response pages
  time   — Normalize a query time value
  query  — Render activity map query parameters
"""

import json

import click

from . import __version__


def _load_settings(config):
    from .config import Settings

    try:
        return Settings.load(config)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"cannot load settings: {e}")


@click.group()
@click.version_option(version=__version__, prog_name="activitygraph")
def cli():
    """Activity map topology tools."""
    pass


@cli.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--format", "-f", "fmt", type=click.Choice(["summary", "tsv", "d3", "mermaid"]), default="summary")
@click.option("--output", "-o", default=None, help="Write the export to this file")
@click.option("--config", "-c", default=None, type=click.Path(exists=True), help="YAML settings file")
@click.option("--fail-fast", is_flag=True, default=False, help="Abort on the first bad page")
def ingest(files, fmt, output, config, fail_fast):
    """Build a topology from response page FILES (one JSON body per file)."""
    from .graph.pipeline import collect_pages
    from .logging_setup import setup_logging
    from .viz.export import D3Exporter, MermaidExporter, TSVExporter
    from .errors import ActivityGraphError

    settings = _load_settings(config)
    setup_logging(settings.log_level, settings.log_format)

    def read_page(path):
        with open(path) as f:
            return f.read()

    try:
        result = collect_pages(
            read_page,
            files,
            max_workers=settings.max_workers,
            queue_size=settings.queue_size,
            fail_fast=settings.fail_fast or fail_fast,
            threshold=settings.seconds_threshold,
        )
    except ActivityGraphError as e:
        raise click.ClickException(str(e))

    graph = result.graph
    click.echo(f"Pages: {result.pages}/{len(files)}", err=True)
    click.echo(f"  Nodes: {graph.number_of_nodes}", err=True)
    click.echo(f"  Edges: {graph.number_of_edges}", err=True)
    if not result.is_complete:
        click.echo("  Warning: topology may be incomplete", err=True)
    for w in result.warnings:
        click.echo(f"  platform warning [{w.type}]: {w.message}", err=True)
    for err in [*result.page_errors, *result.errors]:
        click.echo(f"  {err.kind}: {err}", err=True)

    if fmt == "summary":
        return
    if fmt == "tsv":
        content = "\n".join(TSVExporter.to_rows(graph)) + "\n"
    elif fmt == "d3":
        content = json.dumps(D3Exporter.to_d3_json(graph), indent=2, default=str) + "\n"
    else:
        content = MermaidExporter.to_mermaid(graph) + "\n"

    if output:
        with open(output, "w") as f:
            f.write(content)
        click.echo(f"Exported to {output}", err=True)
    else:
        click.echo(content, nl=False)


@cli.command("time")
@click.argument("value")
@click.option("--now", "now_ms", type=int, default=None, help="Resolve relative values against this epoch ms")
@click.option("--threshold", type=int, default=None, help="Seconds/milliseconds cut-over")
def time_cmd(value, now_ms, threshold):
    """Normalize a query time VALUE (epoch s/ms, -30m, now)."""
    from .errors import InvalidQueryTime
    from .query.time import QueryTime, SECONDS_THRESHOLD

    threshold = SECONDS_THRESHOLD if threshold is None else threshold
    try:
        qt = QueryTime.parse(value, threshold)
    except InvalidQueryTime as e:
        raise click.BadParameter(str(e), param_hint="VALUE")

    click.echo(f"kind: {qt.kind.value}")
    click.echo(f"formatted: {qt.format(threshold)}")
    click.echo(f"wire: {json.dumps(qt.to_wire(threshold))}")
    if now_ms is not None:
        click.echo(f"resolved: {qt.resolve(now_ms).value}")


@cli.command()
@click.option("--from", "from_", default="-30m", help="Start of the window")
@click.option("--until", default=None, help="End of the window")
@click.option("--device", "devices", multiple=True, type=int, help="Walk origin device id")
@click.option("--weighting", type=click.Choice(["bytes", "connections", "turns"]), default="bytes")
@click.option("--annotate", multiple=True, type=click.Choice(["appearances", "protocols"]))
def query(from_, until, devices, weighting, annotate):
    """Print activity map query parameters as JSON."""
    from .errors import InvalidQueryTime
    from .query.request import ActivityMapQuery, EdgeAnnotation, Source, Walk, Weighting

    q = ActivityMapQuery(
        from_=from_,
        until=until,
        walks=[Walk(origins=[Source.device(d) for d in devices])],
        weighting=Weighting(weighting),
        edge_annotations=[EdgeAnnotation(a) for a in annotate],
    )
    try:
        params = q.to_params()
    except InvalidQueryTime as e:
        raise click.BadParameter(str(e))
    click.echo(json.dumps(params, indent=2))


if __name__ == "__main__":
    cli()
