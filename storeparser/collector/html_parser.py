"""Helpers that extract products from server-rendered listing and detail pages."""
from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass
from typing import Callable, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from storeparser.collector.fetcher import FetchResult, ResilientFetcher
from storeparser.errors import (
    MalformedDocumentError,
    MalformedFieldError,
    MissingFieldError,
    MissingRegionError,
    NoActiveColorError,
)
from storeparser.models import Price, Product, colors_from_names
from storeparser.normalize import parse_price_text, split_color_names

LOGGER = logging.getLogger(__name__)

HTML_PARSER = "html.parser"
DETAIL_MAX_ATTEMPTS = 5

TILE_SELECTOR = "[data-test-id='ProductTile']"
BRAND_SELECTOR = "[data-test-id='BrandName']"
BUY_BOX_SELECTOR = "[data-test-id='BuyBox']"
PRODUCT_NAME_SELECTOR = "[data-test-id='ProductName']"
COLOR_INFO_SELECTOR = "[data-test-id='ColorVariantColorInfo']"

# Base price and sale price displays; the sale price wins when both are shown.
_PRICE_TEST_ID_RE = re.compile(r"ProductPriceFormattedBasePrice|FormattedSalePrice")
_ACTIVE_CLASS_RE = re.compile(r"\bactive\b")


@dataclass(frozen=True)
class ProductTileRef:
    """Listing tile pointing at one detail page."""

    tile_id: str
    url: Optional[str]
    brand_name: str

    def __str__(self) -> str:
        return f"tile {self.tile_id or '?'} ({self.url or 'no url'})"


def _text(element: Optional[Tag]) -> str:
    """Element text with whitespace collapsed, like a browser renders it."""
    if element is None:
        return ""
    return " ".join(element.get_text(" ").split())


def _tile_href(tile: Tag) -> Optional[str]:
    href = tile.get("href")
    if not href:
        link = tile.select_one("a[href]")
        href = link.get("href") if link else None
    return href.strip() if href else None


def extract_listing(
    html: str,
    base_url: str,
    rng: Optional[random.Random] = None,
) -> List[ProductTileRef]:
    """Return the product tiles of a listing page in random order.

    The shuffle keeps the crawl order from being identical on every run.

    Raises
    ------
    MalformedDocumentError
        If the page holds no product tiles
    """
    soup = BeautifulSoup(html, HTML_PARSER)
    tiles = soup.select(TILE_SELECTOR)
    if not tiles:
        raise MalformedDocumentError(f"no product tiles found on {base_url}")

    refs = []
    for tile in tiles:
        tile_id = (tile.get("id") or "").strip()
        url = None
        href = _tile_href(tile)
        if href:
            try:
                url = urljoin(base_url, href)
            except ValueError as exc:
                LOGGER.warning("Tile %s has an unusable link %r: %s", tile_id, href, exc)
        refs.append(
            ProductTileRef(
                tile_id=tile_id,
                url=url,
                brand_name=_text(tile.select_one(BRAND_SELECTOR)),
            )
        )

    (rng or random).shuffle(refs)
    LOGGER.debug("Found %d product tiles on %s", len(refs), base_url)
    return refs


def _tile_id(ref: ProductTileRef) -> int:
    if not ref.tile_id:
        raise MissingFieldError("id", str(ref))
    try:
        return int(ref.tile_id)
    except ValueError:
        raise MalformedFieldError(f"tile id is not numeric: {ref.tile_id!r}") from None


def _price_text(buy_box: Tag, ref: ProductTileRef) -> str:
    candidates = buy_box.find_all(attrs={"data-test-id": _PRICE_TEST_ID_RE})
    if not candidates:
        raise MissingFieldError("price", str(ref))
    for element in candidates:
        if "SalePrice" in element.get("data-test-id", ""):
            return _text(element)
    return _text(candidates[0])


def _active_color_names(buy_box: Tag, ref: ProductTileRef) -> List[str]:
    # Only the first active element with color info is read; later variants
    # matching the same markup are ignored.
    for element in buy_box.find_all("div", class_=_ACTIVE_CLASS_RE):
        info = element.select_one(COLOR_INFO_SELECTOR)
        if info is not None:
            return split_color_names(_text(info))
    raise NoActiveColorError(f"no active color variant on {ref}")


def parse_product_page(html: str, ref: ProductTileRef) -> Product:
    """Build a product from a fetched detail page and its listing tile.

    Raises
    ------
    MissingRegionError
        If the page has no buy box
    NoActiveColorError
        If no active variant carries color info
    MissingFieldError, MalformedFieldError
        If id, brand, name or price are absent or unparseable
    """
    product_id = _tile_id(ref)
    soup = BeautifulSoup(html, HTML_PARSER)
    buy_box = soup.select_one(BUY_BOX_SELECTOR)
    if buy_box is None:
        raise MissingRegionError(f"no buy box on detail page of {ref}")

    value, currency = parse_price_text(_price_text(buy_box, ref))
    colors = colors_from_names(_active_color_names(buy_box, ref))

    product_name = _text(buy_box.select_one(PRODUCT_NAME_SELECTOR))
    if not product_name:
        raise MissingFieldError("productName", str(ref))
    if not ref.brand_name:
        raise MissingFieldError("brandName", str(ref))

    return Product(
        id=product_id,
        brand_name=ref.brand_name,
        product_name=product_name,
        colors=colors,
        price=Price(value=value, currency_code=currency),
    )


def extract_product(
    ref: ProductTileRef,
    fetcher: ResilientFetcher,
    *,
    max_attempts: int = DETAIL_MAX_ATTEMPTS,
    use_proxy: bool = False,
    on_fetch: Optional[Callable[[FetchResult], None]] = None,
) -> Product:
    """Fetch the detail page of ``ref`` and extract its product.

    ``on_fetch`` receives the fetch result before parsing, so request counts
    are reported even when the page turns out to be unusable.

    Raises
    ------
    FetchFailedError
        If the detail page could not be fetched with a 200 response
    """
    _tile_id(ref)
    if not ref.url:
        raise MissingFieldError("href", str(ref))

    result = fetcher.fetch(ref.url, max_attempts=max_attempts, use_proxy=use_proxy)
    if on_fetch is not None:
        on_fetch(result)
    response = result.require()
    return parse_product_page(response.text, ref)
