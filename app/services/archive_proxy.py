"""Forwarding of archive requests to Chronicling America, behind the cache."""
from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx

from app.metrics import ARCHIVE_UPSTREAM_ERRORS
from app.services.archive_cache import ArchiveCache
from app.services.errors import ArchiveError

logger = logging.getLogger(__name__)

RAW_SUFFIXES = (".txt", ".pdf", ".jp2")
_BINARY_SUFFIXES = (".pdf", ".jp2")
_TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"
_JSON_CONTENT_TYPE = "application/json"


def _is_ocr_text(endpoint: str) -> bool:
    return endpoint.endswith("/ocr.txt")


# Each predicate marks endpoints that only entitled subscribers may read.
GATED_ENDPOINT_RULES: tuple[Callable[[str], bool], ...] = (_is_ocr_text,)


def requires_subscription(endpoint: str) -> bool:
    return any(rule(endpoint) for rule in GATED_ENDPOINT_RULES)


def normalize_endpoint(raw: str | None) -> str | None:
    """Return a relative archive path, or ``None`` when unusable."""
    if raw is None:
        return None
    endpoint = raw.strip().lstrip("/")
    if not endpoint:
        return None
    if "://" in endpoint or "\\" in endpoint:
        return None
    if any(segment == ".." for segment in endpoint.split("/")):
        return None
    return endpoint


def build_upstream_url(
    base_url: str, endpoint: str, params: Iterable[tuple[str, str]]
) -> str:
    """Resolve the upstream URL; this is also the cache key."""
    pairs = list(params)
    if not endpoint.endswith(RAW_SUFFIXES):
        pairs.append(("format", "json"))
    url = f"{base_url.rstrip('/')}/{endpoint}"
    query = urlencode(pairs)
    return f"{url}?{query}" if query else url


@dataclass(frozen=True)
class ArchiveResponse:
    body: bytes
    content_type: str
    cache_status: str  # "HIT" or "MISS"
    status_code: int = 200


class ArchiveProxy:
    def __init__(
        self,
        cache: ArchiveCache,
        http_client: httpx.AsyncClient,
        base_url: str,
        timeout: float = 15.0,
    ) -> None:
        self.cache = cache
        self._http = http_client
        self._base_url = base_url
        self._timeout = timeout

    def upstream_url(self, endpoint: str, params: Iterable[tuple[str, str]]) -> str:
        return build_upstream_url(self._base_url, endpoint, params)

    async def fetch(
        self, endpoint: str, params: Iterable[tuple[str, str]]
    ) -> ArchiveResponse:
        url = self.upstream_url(endpoint, params)
        cached = await self.cache.lookup(url, endpoint)
        if cached is not None:
            logger.info(
                "Archive cache HIT for %s", url, extra={"cache_status": "HIT", "endpoint": endpoint}
            )
            return ArchiveResponse(cached.body, cached.content_type, "HIT")

        logger.info(
            "Archive cache MISS for %s", url, extra={"cache_status": "MISS", "endpoint": endpoint}
        )
        response = await self._get(url)
        body, content_type = self._read_body(endpoint, response)
        await self.cache.store(url, endpoint, body, content_type)
        return ArchiveResponse(body, content_type, "MISS", response.status_code)

    async def _get(self, url: str) -> httpx.Response:
        try:
            response = await self._http.get(url, timeout=self._timeout)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            self._log_failure(url, "timeout", exc)
            raise ArchiveError(
                "Request to Chronicling America timed out", status_code=504
            ) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            self._log_failure(url, str(status), exc)
            if status == 404:
                message = "Resource not found at Chronicling America"
            elif status == 429:
                message = "Rate limit exceeded when contacting Chronicling America"
            else:
                message = "Failed to fetch data from Chronicling America"
            raise ArchiveError(message, status_code=status) from exc
        except httpx.HTTPError as exc:
            self._log_failure(url, "unreachable", exc)
            raise ArchiveError(
                "Failed to fetch data from Chronicling America", status_code=502
            ) from exc
        return response

    @staticmethod
    def _read_body(endpoint: str, response: httpx.Response) -> tuple[bytes, str]:
        upstream_type = response.headers.get("content-type")
        if endpoint.endswith(".txt"):
            return response.text.encode("utf-8"), _TEXT_CONTENT_TYPE
        if endpoint.endswith(_BINARY_SUFFIXES):
            return response.content, upstream_type or "application/octet-stream"
        try:
            json.loads(response.content)
        except ValueError as exc:
            logger.warning("Archive returned non-JSON body for %s", response.url)
            ARCHIVE_UPSTREAM_ERRORS.labels("invalid_json").inc()
            raise ArchiveError(
                "Failed to fetch data from Chronicling America", status_code=502
            ) from exc
        return response.content, upstream_type or _JSON_CONTENT_TYPE

    @staticmethod
    def _log_failure(url: str, status: str, exc: Exception) -> None:
        ARCHIVE_UPSTREAM_ERRORS.labels(status).inc()
        logger.error(
            "Error fetching from Chronicling America (%s): %s %s",
            url,
            status,
            exc.__class__.__name__,
        )
