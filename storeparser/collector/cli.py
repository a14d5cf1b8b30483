"""CLI entry point: run the HTML pipeline, then the API pipeline."""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv

from storeparser.antibot import ProxyPool
from storeparser.collector.pipeline import run_all
from storeparser.config import BASE_DIR, load_settings
from storeparser.errors import ConfigError

LOGGER = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )


@click.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Settings file (defaults to $STOREPARSER_CONFIG or config/app.yaml)",
)
@click.option(
    "--proxies",
    "proxies_path",
    type=click.Path(dir_okay=False),
    help="Proxy list file, one host:port per line (overrides proxies.file)",
)
@click.option(
    "--output-dir",
    default=".",
    type=click.Path(file_okay=False),
    help="Directory for the <name>.json result files",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging verbosity",
)
def main(
    config_path: Optional[str],
    proxies_path: Optional[str],
    output_dir: str,
    log_level: str,
) -> None:
    """Scrape the storefront listing page and product-search API."""
    load_dotenv(BASE_DIR / ".env")
    _configure_logging(log_level)

    try:
        settings = load_settings(config_path)
        proxy_pool = ProxyPool.from_file(proxies_path or settings.proxies.file)
    except ConfigError as exc:
        click.echo(f"❌ Configuration error: {exc}", err=True)
        sys.exit(2)

    reports = run_all(settings, proxy_pool, Path(output_dir))

    click.echo("\n📊 Run summary\n" + "=" * 40)
    for report in reports:
        stats = report.stats
        status = f"aborted ({report.error})" if report.aborted else f"→ {report.output_path}"
        click.echo(
            f"{stats.name}: {stats.processed} product(s), {stats.requests} request(s), "
            f"{len(stats.skipped)} skipped {status}"
        )

    if any(report.aborted for report in reports):
        sys.exit(1)


if __name__ == "__main__":
    main()
