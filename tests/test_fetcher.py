import httpx
import pytest

from storeparser.antibot import ProxyPool, RetryPolicy, browser_headers
from storeparser.collector.fetcher import ResilientFetcher
from storeparser.errors import EmptyPoolError, FetchFailedError

URL = "https://shop.test/c/men"


def make_fetcher(handler, *, max_attempts=5, sleeps=None, pool=None, proxies_seen=None):
    def factory(proxy):
        if proxies_seen is not None:
            proxies_seen.append(proxy)
        return httpx.Client(transport=httpx.MockTransport(handler))

    sleep = sleeps.append if sleeps is not None else (lambda seconds: None)
    policy = RetryPolicy(max_attempts=max_attempts, delay=10.0, sleep=sleep)
    return ResilientFetcher(
        policy,
        browser_headers("test-agent/1.0", origin="https://shop.test"),
        proxy_pool=pool,
        client_factory=factory,
    )


def test_fetch_succeeds_on_fifth_attempt():
    statuses = iter([500, 503, 403, 429, 200])
    sleeps = []

    def handler(request):
        status = next(statuses)
        return httpx.Response(status, text=f"status {status}")

    result = make_fetcher(handler, sleeps=sleeps).fetch(URL, max_attempts=5)

    assert result.success
    assert result.requests == 5
    assert result.response.text == "status 200"
    assert result.require() is result.response
    # flat pause before every attempt, the first one included
    assert sleeps == [10.0] * 5


def test_exhausted_fetch_returns_last_response():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503, text=f"busy {len(calls)}")

    result = make_fetcher(handler).fetch(URL, max_attempts=3)

    assert not result.success
    assert result.requests == 3
    assert result.status_code == 503
    assert result.response.text == "busy 3"
    assert "503" in result.error
    with pytest.raises(FetchFailedError):
        result.require()


def test_connection_failures_are_retried_but_not_counted_as_sent():
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) < 3:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, text="ok")

    result = make_fetcher(handler).fetch(URL, max_attempts=5)

    assert result.success
    assert len(attempts) == 3
    assert result.requests == 1


def test_timeouts_after_sending_are_counted():
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    result = make_fetcher(handler).fetch(URL, max_attempts=2)

    assert not result.success
    assert result.response is None
    assert result.requests == 2
    assert "ReadTimeout" in result.error


def test_unsupported_scheme_fails_at_once_without_counting():
    attempts = []
    sleeps = []

    def handler(request):
        attempts.append(request)
        raise httpx.UnsupportedProtocol("Request URL has an unsupported protocol 'mailto://'.")

    result = make_fetcher(handler, sleeps=sleeps).fetch("mailto:shop@shop.test", max_attempts=5)

    assert not result.success
    assert len(attempts) == 1
    assert sleeps == [10.0]
    assert result.requests == 0
    assert "UnsupportedProtocol" in result.error
    with pytest.raises(FetchFailedError):
        result.require()


def test_overlong_url_is_not_requested():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200)

    result = make_fetcher(handler).fetch("https://shop.test/p/" + "a" * 70000)

    assert not result.success
    assert calls == []
    assert result.requests == 0
    assert "InvalidURL" in result.error


def test_default_attempts_come_from_policy():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(404)

    result = make_fetcher(handler, max_attempts=4).fetch(URL)

    assert len(calls) == 4
    assert result.requests == 4


def test_browser_headers_are_sent_on_every_attempt():
    seen = []

    def handler(request):
        seen.append(request.headers)
        return httpx.Response(500 if len(seen) == 1 else 200)

    make_fetcher(handler).fetch(URL)

    assert len(seen) == 2
    for headers in seen:
        assert headers["user-agent"] == "test-agent/1.0"
        assert headers["origin"] == "https://shop.test"
        assert headers["referer"] == "https://shop.test"
        assert headers["accept"] == "application/json, text/plain, */*"
        assert headers["accept-encoding"] == "gzip, deflate, br"
        assert headers["accept-language"].startswith("uk-UA")


def test_one_proxy_per_fetch_call():
    pool = ProxyPool.load(["10.0.0.1:8080", "10.0.0.2:8080"])
    proxies_seen = []

    def handler(request):
        return httpx.Response(500)

    fetcher = make_fetcher(handler, pool=pool, proxies_seen=proxies_seen)
    result = fetcher.fetch(URL, max_attempts=3, use_proxy=True)

    assert len(proxies_seen) == 1
    assert proxies_seen[0] in pool
    assert result.proxy_used == str(proxies_seen[0])
    assert result.requests == 3


def test_direct_fetch_uses_no_proxy():
    proxies_seen = []
    fetcher = make_fetcher(lambda request: httpx.Response(200), proxies_seen=proxies_seen)

    result = fetcher.fetch(URL)

    assert proxies_seen == [None]
    assert result.proxy_used is None


def test_proxy_requested_with_empty_pool():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200)

    with pytest.raises(EmptyPoolError):
        make_fetcher(handler).fetch(URL, use_proxy=True)
    assert calls == []


def test_zero_delay_policy_never_sleeps():
    sleeps = []
    policy = RetryPolicy(max_attempts=3, delay=0, sleep=sleeps.append)
    fetcher = ResilientFetcher(
        policy,
        browser_headers("test-agent/1.0"),
        client_factory=lambda proxy: httpx.Client(
            transport=httpx.MockTransport(lambda request: httpx.Response(500))
        ),
    )

    result = fetcher.fetch(URL)

    assert result.requests == 3
    assert sleeps == []


def test_retry_policy_rejects_empty_budget():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
