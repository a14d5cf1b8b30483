"""HTML and API pipelines: fetch, extract, normalize, write."""
from __future__ import annotations

import logging
import random
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from storeparser.antibot import ProxyPool, RetryPolicy, UserAgentPool, browser_headers
from storeparser.collector.fetcher import ClientFactory, ResilientFetcher
from storeparser.collector.html_parser import ProductTileRef, extract_listing, extract_product
from storeparser.collector.mapper import extract_all, parse_document
from storeparser.collector.stats import RunStats
from storeparser.config import HtmlSettings, HttpSettings, Settings, SourceSettings
from storeparser.errors import (
    EmptyPoolError,
    ExtractionError,
    FetchError,
    FetchFailedError,
    MalformedDocumentError,
)
from storeparser.models import Product
from storeparser.sink import write_products

LOGGER = logging.getLogger(__name__)

# Failures that make a whole pipeline run pointless.
_ABORTING_ERRORS = (FetchError, MalformedDocumentError, EmptyPoolError)


@dataclass
class PipelineReport:
    """Outcome of one pipeline run."""

    stats: RunStats
    products: List[Product] = field(default_factory=list)
    output_path: Optional[Path] = None
    error: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self.error is not None


def build_fetcher(
    source: SourceSettings,
    http: HttpSettings,
    proxy_pool: Optional[ProxyPool] = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
    client_factory: Optional[ClientFactory] = None,
    user_agents: Optional[UserAgentPool] = None,
) -> ResilientFetcher:
    """Create the fetcher of one pipeline with its own user-agent."""
    agent = (user_agents or UserAgentPool()).resolve(source.http_agent)
    headers = browser_headers(
        agent,
        origin=http.origin,
        referer=http.referer,
        accept_language=http.accept_language,
    )
    policy = RetryPolicy(max_attempts=source.max_attempts, delay=http.retry_delay, sleep=sleep)
    return ResilientFetcher(
        policy,
        headers,
        proxy_pool=proxy_pool,
        timeout=http.timeout,
        client_factory=client_factory,
    )


def _log_summary(stats: RunStats) -> None:
    LOGGER.info("[%s] Products processed: %d", stats.name, stats.processed)
    LOGGER.info("[%s] Requests triggered: %d", stats.name, stats.requests)
    if stats.skipped:
        LOGGER.info("[%s] Items skipped: %d", stats.name, len(stats.skipped))
    LOGGER.info("[%s] Finished in %.1fs", stats.name, stats.elapsed)


def _abort(stats: RunStats, exc: Exception) -> PipelineReport:
    LOGGER.error("[%s] Pipeline aborted: %s", stats.name, exc)
    stats.finish(0)
    _log_summary(stats)
    return PipelineReport(stats=stats, error=str(exc))


def _dedupe(products: List[Product], stats: RunStats) -> List[Product]:
    unique: List[Product] = []
    seen = set()
    for product in products:
        if product.id in seen:
            LOGGER.warning("[%s] Dropping duplicate product id %d", stats.name, product.id)
            stats.record_skip(f"product {product.id}", "duplicate id")
            continue
        seen.add(product.id)
        unique.append(product)
    return unique


def _finish(
    stats: RunStats,
    products: List[Product],
    base_name: str,
    output_dir: str | Path,
) -> PipelineReport:
    products = _dedupe(products, stats)
    try:
        path = write_products(products, base_name, output_dir)
    except OSError as exc:
        return _abort(stats, exc)
    stats.finish(len(products))
    _log_summary(stats)
    return PipelineReport(stats=stats, products=products, output_path=path)


def run_html_pipeline(
    settings: HtmlSettings,
    fetcher: ResilientFetcher,
    output_dir: str | Path = ".",
    rng: Optional[random.Random] = None,
) -> PipelineReport:
    """Fetch the listing page and every product detail page it links to.

    Tiles that fail are skipped and logged; a listing that cannot be fetched
    or parsed aborts the run without writing output.
    """
    stats = RunStats(name="html")
    LOGGER.info("[html] Starting html parsing of %s", settings.url)
    if settings.workers == 1:
        LOGGER.info("[html] Requests are paced, this could take a few minutes")

    try:
        listing = fetcher.fetch(settings.url, settings.max_attempts, settings.use_proxy)
        stats.record_fetch(listing)
        response = listing.require()
        refs = extract_listing(response.text, str(response.url), rng)
    except _ABORTING_ERRORS as exc:
        return _abort(stats, exc)

    LOGGER.info("[html] Found %d product tiles", len(refs))

    def process(ref: ProductTileRef) -> Optional[Product]:
        try:
            return extract_product(
                ref,
                fetcher,
                max_attempts=settings.detail_max_attempts,
                on_fetch=stats.record_fetch,
            )
        except (ExtractionError, FetchFailedError) as exc:
            LOGGER.warning("[html] Skipping %s: %s", ref, exc)
            stats.record_skip(str(ref), str(exc))
            return None

    if settings.workers > 1:
        # map() keeps the shuffled tile order in the results
        with ThreadPoolExecutor(max_workers=settings.workers) as pool:
            results = list(pool.map(process, refs))
    else:
        results = [process(ref) for ref in refs]

    products = [product for product in results if product is not None]
    return _finish(stats, products, settings.output_filename, output_dir)


def run_api_pipeline(
    settings: SourceSettings,
    fetcher: ResilientFetcher,
    output_dir: str | Path = ".",
) -> PipelineReport:
    """Fetch the search-results document and map its entities."""
    stats = RunStats(name="api")
    LOGGER.info("[api] Starting API parsing of %s", settings.url)

    try:
        result = fetcher.fetch(settings.url, settings.max_attempts, settings.use_proxy)
        stats.record_fetch(result)
        document = parse_document(result.require().content)
        products, skipped = extract_all(document)
    except _ABORTING_ERRORS as exc:
        return _abort(stats, exc)

    stats.skipped.extend(skipped)
    return _finish(stats, products, settings.output_filename, output_dir)


def run_all(
    settings: Settings,
    proxy_pool: ProxyPool,
    output_dir: str | Path = ".",
    *,
    sleep: Callable[[float], None] = time.sleep,
    client_factory: Optional[ClientFactory] = None,
    rng: Optional[random.Random] = None,
) -> List[PipelineReport]:
    """Run the HTML pipeline, then the API pipeline, regardless of outcome."""
    html_fetcher = build_fetcher(
        settings.html, settings.http, proxy_pool, sleep=sleep, client_factory=client_factory
    )
    api_fetcher = build_fetcher(
        settings.api, settings.http, proxy_pool, sleep=sleep, client_factory=client_factory
    )
    return [
        _isolated("html", lambda: run_html_pipeline(settings.html, html_fetcher, output_dir, rng)),
        _isolated("api", lambda: run_api_pipeline(settings.api, api_fetcher, output_dir)),
    ]


def _isolated(name: str, run: Callable[[], PipelineReport]) -> PipelineReport:
    """Run one pipeline; an unexpected failure becomes an aborted report."""
    try:
        return run()
    except Exception as exc:
        LOGGER.error("[%s] Pipeline crashed: %s", name, exc, exc_info=True)
        stats = RunStats(name=name)
        stats.finish(0)
        return PipelineReport(stats=stats, error=f"{type(exc).__name__}: {exc}")
