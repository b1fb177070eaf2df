"""CLI entry point: aql-sentinel.

Usage:
    export rt_token='your_bearer_token'
    aql-sentinel https://your-artifactory-url.com
    aql-sentinel https://your-artifactory-url.com --feed-file feed.csv -o report.csv
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from aqlsentinel.core.config import ScanConfig
from aqlsentinel.core.logging import setup_logging
from aqlsentinel.engines.report_aggregator import ScanReport, found_rows
from aqlsentinel.exceptions import SetupError
from aqlsentinel.progress import ProgressTracker, format_phase
from aqlsentinel.runner import ScanRunner


@click.command()
@click.argument("base_url")
@click.option("--feed-url", default=None, help="Threat-intel CSV URL (default: JFrog research feed)")
@click.option(
    "--feed-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Read the feed from a local CSV instead of downloading it",
)
@click.option("-c", "--concurrency", type=int, default=None, help="Max in-flight AQL queries")
@click.option("--timeout", type=float, default=None, help="Upper bound per AQL request attempt, in seconds")
@click.option("--max-retries", type=int, default=None, help="Attempts per query on transport errors")
@click.option("-o", "--output", "report_path", default=None, help="Report CSV path")
@click.option("--sort/--no-sort", "sort_candidates", default=None, help="Sort candidates by package/version")
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(
    base_url: str,
    feed_url: str | None,
    feed_file: Path | None,
    concurrency: int | None,
    timeout: float | None,
    max_retries: int | None,
    report_path: str | None,
    sort_candidates: bool | None,
    verbose: bool,
) -> None:
    """Search an Artifactory instance (BASE_URL) for compromised npm tarballs.

    The bearer token is read from the ``rt_token`` environment variable.
    """
    setup_logging("DEBUG" if verbose else None)

    try:
        config = ScanConfig.from_env(
            base_url,
            feed_url=feed_url,
            concurrency=concurrency,
            timeout=timeout,
            max_retries=max_retries,
            report_path=report_path,
            sort_candidates=sort_candidates,
        )
    except SetupError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    feed_text = None
    if feed_file:
        try:
            feed_text = feed_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            click.echo(f"Error: cannot read feed file {feed_file}: {e}", err=True)
            sys.exit(1)

    click.echo(f"Artifactory: {config.base_url}")
    click.echo(f"Feed: {feed_file or config.feed_url}")

    progress = ProgressTracker()
    progress.callbacks.append(lambda p: click.echo(format_phase(p)))
    runner = ScanRunner(config, progress=progress)
    try:
        report = asyncio.run(runner.run(feed_text))
    except SetupError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    _print_summary(report, runner.report_path)


def _print_summary(report: ScanReport, report_path: Path | None) -> None:
    hits = found_rows(report)
    click.echo("-" * 52)
    if hits:
        for row in hits:
            click.echo(f"  [!] FOUND {row.filename}  {row.repo}:{row.path}  ({row.package}@{row.version})")
    else:
        click.echo("  No compromised artifacts found.")
    click.echo("-" * 52)
    click.echo(
        f"Found {report.found_candidates} of {report.total_candidates} candidates "
        f"({len(hits)} artifacts, {report.error_candidates} errors)"
    )
    if report.partial:
        click.echo(
            f"PARTIAL: {report.processed_candidates}/{report.total_candidates} candidates "
            f"reported ({report.partial_reason})"
        )
    click.echo(f"Report saved to: {report_path}")


if __name__ == "__main__":
    main()
