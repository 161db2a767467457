"""Tests for upstream URL construction, endpoint validation and error mapping."""

from __future__ import annotations

import json

import httpx
import pytest

from app.services.archive_cache import ArchiveCache, MemoryCacheBackend
from app.services.archive_proxy import (
    ArchiveProxy,
    build_upstream_url,
    normalize_endpoint,
    requires_subscription,
)
from app.services.errors import ArchiveError
from tests.helpers import ARCHIVE_BASE_URL, FakeClock


class TestBuildUpstreamUrl:
    def test_structured_endpoint_gets_format_json(self) -> None:
        url = build_upstream_url(ARCHIVE_BASE_URL, "newspapers", [])
        assert url == f"{ARCHIVE_BASE_URL}/newspapers?format=json"

    def test_pass_through_params_are_kept_in_order(self) -> None:
        url = build_upstream_url(
            ARCHIVE_BASE_URL,
            "search/pages/results",
            [("andtext", "titanic"), ("page", "2")],
        )
        assert url == (
            f"{ARCHIVE_BASE_URL}/search/pages/results?andtext=titanic&page=2&format=json"
        )

    @pytest.mark.parametrize("suffix", ["ocr.txt", "seq-1.pdf", "seq-1.jp2"])
    def test_raw_suffixes_skip_format(self, suffix: str) -> None:
        endpoint = f"lccn/sn84026749/1912-04-15/ed-1/{suffix}"
        assert build_upstream_url(f"{ARCHIVE_BASE_URL}/", endpoint, []) == (
            f"{ARCHIVE_BASE_URL}/{endpoint}"
        )


class TestNormalizeEndpoint:
    @pytest.mark.parametrize("raw", [None, "", "   ", "/"])
    def test_missing_values(self, raw: str | None) -> None:
        assert normalize_endpoint(raw) is None

    @pytest.mark.parametrize(
        "raw", ["https://evil.test/x", "lccn/../../etc/passwd", "lccn\\sn1"]
    )
    def test_rejects_paths_leaving_the_archive(self, raw: str) -> None:
        assert normalize_endpoint(raw) is None

    def test_strips_leading_slash(self) -> None:
        assert normalize_endpoint("/newspapers") == "newspapers"


def test_only_ocr_text_requires_subscription() -> None:
    assert requires_subscription("lccn/sn84026749/1912-04-15/ed-1/seq-1/ocr.txt")
    assert not requires_subscription("lccn/sn84026749/1912-04-15/ed-1/seq-1/ocr")
    assert not requires_subscription("newspapers")


def _proxy(handler, clock: FakeClock | None = None) -> ArchiveProxy:
    clock = clock or FakeClock()
    cache = ArchiveCache(MemoryCacheBackend(clock, maxsize=10), clock=clock)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ArchiveProxy(cache, client, ARCHIVE_BASE_URL)


@pytest.mark.asyncio
async def test_miss_then_hit_without_second_upstream_call() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(200, json={"totalItems": 1})

    proxy = _proxy(handler)
    first = await proxy.fetch("search/pages/results", [("andtext", "lincoln")])
    second = await proxy.fetch("search/pages/results", [("andtext", "lincoln")])

    assert first.cache_status == "MISS"
    assert second.cache_status == "HIT"
    assert second.body == first.body
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_expired_entry_is_refetched() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(200, json={"items": []})

    clock = FakeClock()
    proxy = _proxy(handler, clock)
    await proxy.fetch("search/pages/results", [])
    clock.advance(15 * 60)
    result = await proxy.fetch("search/pages/results", [])

    assert result.cache_status == "MISS"
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_ocr_text_is_returned_as_plain_text() -> None:
    proxy = _proxy(lambda request: httpx.Response(200, text="EXTRA EXTRA"))
    result = await proxy.fetch("lccn/sn1/1900-01-01/ed-1/seq-1/ocr.txt", [])

    assert result.body == b"EXTRA EXTRA"
    assert result.content_type.startswith("text/plain")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("upstream_status", "expected_status", "message"),
    [
        (404, 404, "Resource not found at Chronicling America"),
        (429, 429, "Rate limit exceeded when contacting Chronicling America"),
        (503, 503, "Failed to fetch data from Chronicling America"),
    ],
)
async def test_upstream_status_mapping(
    upstream_status: int, expected_status: int, message: str
) -> None:
    proxy = _proxy(lambda request: httpx.Response(upstream_status, json={}))
    with pytest.raises(ArchiveError) as exc_info:
        await proxy.fetch("newspapers", [])

    assert exc_info.value.status_code == expected_status
    assert exc_info.value.message == message


@pytest.mark.asyncio
async def test_timeout_maps_to_504() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(ArchiveError) as exc_info:
        await _proxy(handler).fetch("newspapers", [])

    assert exc_info.value.status_code == 504
    assert "timed out" in exc_info.value.message


@pytest.mark.asyncio
async def test_connection_error_maps_to_502() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ArchiveError) as exc_info:
        await _proxy(handler).fetch("newspapers", [])

    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_invalid_json_is_not_cached() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(200, text="<html>maintenance</html>")

    proxy = _proxy(handler)
    for _ in range(2):
        with pytest.raises(ArchiveError):
            await proxy.fetch("newspapers", [])

    assert len(calls) == 2


@pytest.mark.asyncio
async def test_failures_are_not_cached() -> None:
    responses = iter([httpx.Response(429, json={}), httpx.Response(200, json={"ok": True})])
    proxy = _proxy(lambda request: next(responses))

    with pytest.raises(ArchiveError):
        await proxy.fetch("newspapers", [])
    result = await proxy.fetch("newspapers", [])

    assert result.cache_status == "MISS"
    assert json.loads(result.body) == {"ok": True}
