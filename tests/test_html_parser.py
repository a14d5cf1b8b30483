import random
from decimal import Decimal

import httpx
import pytest

from storeparser.antibot import RetryPolicy, browser_headers
from storeparser.collector.fetcher import ResilientFetcher
from storeparser.collector.html_parser import (
    ProductTileRef,
    extract_listing,
    extract_product,
    parse_product_page,
)
from storeparser.errors import (
    FetchFailedError,
    MalformedDocumentError,
    MalformedFieldError,
    MissingFieldError,
    MissingRegionError,
    NoActiveColorError,
)
from storeparser.models import Color

BASE_URL = "https://www.aboutyou.de/c/maenner/bekleidung-20290"

LISTING_HTML = """
<html><body>
  <div class="grid">
    <a data-test-id="ProductTile" id="101" href="/p/tommy-jeans/shirt-101">
      <p data-test-id="BrandName">Tommy Jeans</p>
    </a>
    <a data-test-id="ProductTile" id="102" href="https://www.aboutyou.de/p/levis/jeans-102">
      <p data-test-id="BrandName"> Levi's </p>
    </a>
    <div data-test-id="ProductTile" id="103">
      <a href="/p/nike/cap-103"><p data-test-id="BrandName">Nike</p></a>
    </div>
  </div>
</body></html>
"""

DETAIL_HTML = """
<html><body>
  <div data-test-id="BuyBox">
    <h1 data-test-id="ProductName">Slim Fit   Shirt</h1>
    <div class="price"><span data-test-id="ProductPriceFormattedBasePrice">1.234,56 €</span></div>
    <div class="variant inactive">
      <div data-test-id="ColorVariantColorInfo">Red</div>
    </div>
    <div class="variant active">
      <span>Selected</span>
    </div>
    <div class="variant active">
      <div data-test-id="ColorVariantColorInfo">Navy / White /  Navy</div>
    </div>
    <div class="variant active">
      <div data-test-id="ColorVariantColorInfo">Black</div>
    </div>
  </div>
</body></html>
"""

SALE_HTML = """
<div data-test-id="BuyBox">
  <h1 data-test-id="ProductName">Cap</h1>
  <span data-test-id="ProductPriceFormattedBasePrice">39,95 €</span>
  <span data-test-id="ProductPriceFormattedSalePrice">29,95 €</span>
  <div class="is-active"><div data-test-id="ColorVariantColorInfo">Black</div></div>
</div>
"""

REF = ProductTileRef(tile_id="101", url="https://www.aboutyou.de/p/tommy-jeans/shirt-101", brand_name="Tommy Jeans")


class ReversingRandom:
    def shuffle(self, items):
        items.reverse()


def test_extract_listing_resolves_tiles():
    refs = extract_listing(LISTING_HTML, BASE_URL, random.Random(3))
    by_id = {ref.tile_id: ref for ref in refs}

    assert set(by_id) == {"101", "102", "103"}
    assert by_id["101"].url == "https://www.aboutyou.de/p/tommy-jeans/shirt-101"
    assert by_id["102"].url == "https://www.aboutyou.de/p/levis/jeans-102"
    assert by_id["103"].url == "https://www.aboutyou.de/p/nike/cap-103"
    assert by_id["102"].brand_name == "Levi's"


def test_extract_listing_shuffles_tile_order():
    refs = extract_listing(LISTING_HTML, BASE_URL, ReversingRandom())
    assert [ref.tile_id for ref in refs] == ["103", "102", "101"]


def test_extract_listing_keeps_tile_with_unparseable_link():
    html = LISTING_HTML.replace('href="/p/tommy-jeans/shirt-101"', 'href="http://[broken/p/101"')

    refs = extract_listing(html, BASE_URL, random.Random(3))
    by_id = {ref.tile_id: ref for ref in refs}

    assert by_id["101"].url is None
    assert by_id["102"].url == "https://www.aboutyou.de/p/levis/jeans-102"


def test_extract_listing_without_tiles_is_a_document_error():
    with pytest.raises(MalformedDocumentError):
        extract_listing("<html><body><p>Access denied</p></body></html>", BASE_URL)


def test_parse_product_page_builds_product():
    product = parse_product_page(DETAIL_HTML, REF)

    assert product.id == 101
    assert product.brand_name == "Tommy Jeans"
    assert product.product_name == "Slim Fit Shirt"
    assert product.price.value == Decimal("1234.56")
    assert product.price.currency_code == "€"
    # first active element with color info only
    assert product.colors == frozenset({Color(name="Navy"), Color(name="White")})


def test_sale_price_wins_over_base_price():
    product = parse_product_page(SALE_HTML, REF)

    assert product.price.value == Decimal("29.95")
    assert product.colors == frozenset({Color(name="Black")})


def test_missing_buy_box():
    with pytest.raises(MissingRegionError):
        parse_product_page("<html><body><h1>Sold out</h1></body></html>", REF)


def test_no_active_color_variant():
    html = DETAIL_HTML.replace("variant active", "variant")
    with pytest.raises(NoActiveColorError):
        parse_product_page(html, REF)


def test_missing_price():
    html = DETAIL_HTML.replace("ProductPriceFormattedBasePrice", "Rating")
    with pytest.raises(MissingFieldError):
        parse_product_page(html, REF)


def test_non_numeric_tile_id():
    ref = ProductTileRef(tile_id="abc", url=REF.url, brand_name="Tommy Jeans")
    with pytest.raises(MalformedFieldError):
        parse_product_page(DETAIL_HTML, ref)


def _fetcher(handler):
    return ResilientFetcher(
        RetryPolicy(delay=0),
        browser_headers("test-agent/1.0"),
        client_factory=lambda proxy: httpx.Client(transport=httpx.MockTransport(handler)),
    )


def test_extract_product_fetches_detail_page():
    requested = []
    results = []

    def handler(request):
        requested.append(str(request.url))
        return httpx.Response(200, text=DETAIL_HTML)

    product = extract_product(REF, _fetcher(handler), on_fetch=results.append)

    assert requested == [REF.url]
    assert product.id == 101
    assert results[0].requests == 1


def test_extract_product_reports_requests_of_failed_fetch():
    results = []
    fetcher = _fetcher(lambda request: httpx.Response(404, text="gone"))

    with pytest.raises(FetchFailedError):
        extract_product(REF, fetcher, max_attempts=2, on_fetch=results.append)

    assert results[0].requests == 2


def test_extract_product_without_url_does_not_fetch():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, text=DETAIL_HTML)

    ref = ProductTileRef(tile_id="101", url=None, brand_name="Tommy Jeans")
    with pytest.raises(MissingFieldError):
        extract_product(ref, _fetcher(handler))
    assert calls == []
