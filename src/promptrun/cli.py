import csv
import json
import logging
import sys
from pathlib import Path

import click
import yaml
from tabulate import tabulate

from .cache import cache_stats, clear_cache
from .db import get_run_results, get_run_summary, init_db, latest_run_id, list_run_ids
from .pack_loader import list_packs, load_pack
from .providers.alephalpha import AlephAlphaCompletionOptions
from .providers.base import Failure
from .providers.registry import load_provider, load_providers
from .runner import run_eval

_STRING_OPTIONS = frozenset(
    key for key, kind in AlephAlphaCompletionOptions.__annotations__.items() if kind is str
)


def _parse_options(values: tuple[str, ...]) -> dict:
    """Turn repeated ``key=value`` flags into a config mapping.

    Values are read as YAML scalars so ``0.2`` becomes a float and
    ``[a, b]`` a list. String-typed options such as ``apikey`` are kept
    exactly as given.
    """
    options: dict = {}
    for item in values:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"Invalid option '{item}'. Expected key=value")
        if key in _STRING_OPTIONS or not raw:
            options[key] = raw
            continue
        try:
            options[key] = yaml.safe_load(raw)
        except yaml.YAMLError:
            options[key] = raw
    return options


def _build_provider(spec: str, provider_id: str | None = None, options: dict | None = None):
    try:
        return load_provider(spec, provider_id=provider_id, config=options)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc


@click.group()
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging")
def cli(verbose: bool):
    """promptrun - run evaluation packs against completion providers"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command("list-packs")
@click.option("--dir", "packs_dir", default="packs", help="Packs directory")
def list_packs_cmd(packs_dir: str):
    """List available evaluation packs."""
    packs = list_packs(packs_dir)
    if not packs:
        click.echo("No packs found.")
        return
    for name in packs:
        pack = load_pack(name, packs_dir)
        click.echo(f"  {pack.id:20s}  {pack.name} ({len(pack.cases)} cases)")


@cli.command("complete")
@click.option("--provider", "spec", required=True, help="Provider spec, e.g. alephalpha:completion:luminous-base")
@click.option("--id", "provider_id", default=None, help="Override the provider identity")
@click.option("--option", "option_values", multiple=True, help="Provider option as key=value (repeatable)")
@click.argument("prompt")
def complete_cmd(spec: str, provider_id: str | None, option_values: tuple[str, ...], prompt: str):
    """Send a single prompt to a provider and print the completion."""
    provider = _build_provider(spec, provider_id, _parse_options(option_values))
    result = provider.invoke(prompt)
    if isinstance(result, Failure):
        click.echo(result.error, err=True)
        sys.exit(1)
    click.echo(result.output)


@cli.command("run")
@click.option("--pack", "pack_name", required=True, help="Pack name to run")
@click.option(
    "--provider",
    "specs",
    multiple=True,
    help="Provider spec (repeatable); defaults to the providers listed in pack.yaml",
)
@click.option("--option", "option_values", multiple=True, help="Provider option as key=value (repeatable)")
@click.option("--n", "n_reps", default=1, type=int, help="Repetitions per case")
@click.option("--out", "db_path", default="results.sqlite", help="Output database path")
@click.option("--dir", "packs_dir", default="packs", help="Packs directory")
def run_cmd(
    pack_name: str,
    specs: tuple[str, ...],
    option_values: tuple[str, ...],
    n_reps: int,
    db_path: str,
    packs_dir: str,
):
    """Run an evaluation pack against one or more providers."""
    try:
        pack = load_pack(pack_name, packs_dir)
    except FileNotFoundError as exc:
        raise click.ClickException(str(exc)) from exc

    options = _parse_options(option_values)
    if specs:
        providers = [_build_provider(spec, options=options) for spec in specs]
    else:
        if not pack.providers:
            raise click.UsageError("No --provider given and pack.yaml lists no providers")
        try:
            providers = load_providers(pack.providers)
        except ValueError as exc:
            raise click.ClickException(str(exc)) from exc

    click.echo(f"Running pack '{pack.name}' with {len(pack.cases)} cases, n={n_reps}")
    run_ids = run_eval(pack, providers, n=n_reps, db_path=db_path)

    click.echo("\nCompleted. Run IDs:")
    for rid in run_ids:
        click.echo(f"  {rid}")
    click.echo(f"Results saved to {db_path}")


@cli.command("summary")
@click.option("--db", "db_path", default="results.sqlite", help="Database path")
@click.option("--run", "run_id", default=None, help="Specific run ID (default: all runs)")
def summary_cmd(db_path: str, run_id: str | None):
    """Print a per-run table of outputs, errors, scores and latency."""
    if not Path(db_path).exists():
        click.echo(f"Database not found: {db_path}")
        return

    conn = init_db(db_path)
    try:
        run_ids = [run_id] if run_id else list_run_ids(conn)
        summaries = [s for s in (get_run_summary(conn, rid) for rid in run_ids) if s]
    finally:
        conn.close()

    if not summaries:
        click.echo("No runs found in database.")
        return

    rows = [
        {
            "Run": s["run_id"][:8],
            "Pack": s["pack_id"],
            "Provider": s["provider_id"],
            "Outputs": s["outputs"],
            "Errors": s["errors"] or 0,
            "Mean score": s["mean_score"] if s["mean_score"] is not None else 0.0,
            "Mean latency ms": s["mean_latency_ms"] if s["mean_latency_ms"] is not None else 0.0,
        }
        for s in summaries
    ]
    click.echo(tabulate(rows, headers="keys", tablefmt="pipe", floatfmt=".2f"))


@cli.command("export")
@click.option("--db", "db_path", default="results.sqlite", help="Database path")
@click.option("--run", "run_id", default=None, help="Specific run ID (default: latest)")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["csv", "json"]),
    default="csv",
    help="Export format",
)
@click.option("--out", "out_path", default=None, help="Output file path")
def export_cmd(db_path: str, run_id: str | None, fmt: str, out_path: str | None):
    """Export evaluation results to CSV or JSON."""
    conn = init_db(db_path)
    try:
        if run_id is None:
            run_id = latest_run_id(conn)
            if run_id is None:
                click.echo("No runs found in database.")
                return

        results = get_run_results(conn, run_id)
    finally:
        conn.close()

    if not results:
        click.echo(f"No results found for run {run_id}.")
        return

    if out_path is None:
        out_path = f"results.{fmt}"

    if fmt == "csv":
        fieldnames = list(results[0].keys())
        with open(out_path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()
            writer.writerows(results)
    elif fmt == "json":
        with open(out_path, "w") as f:
            json.dump(results, f, indent=2, default=str)

    click.echo(f"Exported {len(results)} rows to {out_path}")


@cli.group("cache")
def cache_group():
    """Inspect or clear the HTTP response cache."""


@cache_group.command("clear")
def cache_clear_cmd():
    """Delete every cached provider response."""
    removed = clear_cache()
    click.echo(f"Removed {removed} cached responses.")


@cache_group.command("stats")
def cache_stats_cmd():
    """Show cache location and entry counts."""
    stats = cache_stats()
    click.echo(f"Cache: {stats['path']}")
    click.echo(f"Entries: {stats['entries']} ({stats['expired']} expired)")
