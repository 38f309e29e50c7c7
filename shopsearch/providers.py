"""SearchProvider adapters: Google Custom Search, SerpAPI shopping and a local sample catalog."""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Protocol
from urllib.parse import urlsplit

import httpx

from .attributes import tokenize
from .config import Settings
from .entities import RawProviderResult
from .errors import ProviderError, ProviderErrorKind
from .taxonomy import SHOPPING_INTENT_TERMS, STOPWORDS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchOptions:
    max_results: int = 10
    region: str = "in"
    language: str = "en"


class SearchProvider(Protocol):
    name: str

    async def search(self, query: str, options: SearchOptions) -> List[RawProviderResult]: ...

    async def aclose(self) -> None: ...


def _error_text(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error or payload)[:200]


def check_response(response: httpx.Response, provider: str) -> None:
    """Translate an HTTP failure status into a :class:`ProviderError`."""
    status = response.status_code
    if status < 400:
        return
    message = _error_text(response)
    lowered = message.lower()
    if status == 429 or (status == 403 and ("quota" in lowered or "limit" in lowered)):
        kind = ProviderErrorKind.RATE_LIMITED
    elif status in (401, 403) or "api key" in lowered:
        kind = ProviderErrorKind.INVALID_CREDENTIALS
    else:
        kind = ProviderErrorKind.UNKNOWN
    raise ProviderError(kind, provider, f"HTTP {status}: {message}")


class _HttpProvider:
    name = "http"
    endpoint = ""

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 10.0) -> None:
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def _get(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._client.get(self.endpoint, params=dict(params))
        except httpx.TimeoutException as exc:
            raise ProviderError(ProviderErrorKind.TIMEOUT, self.name, str(exc) or "request timed out") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(ProviderErrorKind.UNKNOWN, self.name, str(exc)) from exc
        check_response(response, self.name)
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(ProviderErrorKind.UNKNOWN, self.name, "invalid JSON payload") from exc

    async def aclose(self) -> None:
        await self._client.aclose()


class GoogleCustomSearchProvider(_HttpProvider):
    """Google Custom Search JSON API; ``items`` already carry title/link/snippet/pagemap."""

    name = "google_cse"
    endpoint = "https://www.googleapis.com/customsearch/v1"

    def __init__(
        self,
        api_key: str,
        engine_id: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        super().__init__(client, timeout)
        self.api_key = api_key
        self.engine_id = engine_id

    async def search(self, query: str, options: SearchOptions) -> List[RawProviderResult]:
        payload = await self._get(
            {
                "key": self.api_key,
                "cx": self.engine_id,
                "q": query,
                "num": max(1, min(10, options.max_results)),
                "gl": options.region,
                "hl": options.language,
                "safe": "active",
            }
        )
        items = payload.get("items") or []
        return [
            RawProviderResult(
                title=item.get("title") or "",
                link=item.get("link") or "",
                snippet=item.get("snippet") or "",
                pagemap=item.get("pagemap") or {},
            )
            for item in items
            if item.get("link")
        ]


class SerpApiShoppingProvider(_HttpProvider):
    """SerpAPI ``google_shopping`` engine mapped onto pagemap-like metadata."""

    name = "serpapi"
    endpoint = "https://serpapi.com/search.json"

    def __init__(self, api_key: str, client: httpx.AsyncClient | None = None, timeout: float = 10.0) -> None:
        super().__init__(client, timeout)
        self.api_key = api_key

    async def search(self, query: str, options: SearchOptions) -> List[RawProviderResult]:
        payload = await self._get(
            {
                "engine": "google_shopping",
                "q": query,
                "api_key": self.api_key,
                "gl": options.region,
                "hl": options.language,
                "num": options.max_results,
            }
        )
        error = payload.get("error")
        if error:
            lowered = str(error).lower()
            if "hasn't returned any results" in lowered:
                return []
            if "run out of searches" in lowered or "limit" in lowered:
                raise ProviderError(ProviderErrorKind.RATE_LIMITED, self.name, str(error))
            if "api key" in lowered:
                raise ProviderError(ProviderErrorKind.INVALID_CREDENTIALS, self.name, str(error))
            raise ProviderError(ProviderErrorKind.UNKNOWN, self.name, str(error))
        results = payload.get("shopping_results") or []
        return [self._to_raw(item) for item in results[: options.max_results] if self._link(item)]

    @staticmethod
    def _link(item: Mapping[str, Any]) -> str:
        return item.get("link") or item.get("product_link") or ""

    def _to_raw(self, item: Mapping[str, Any]) -> RawProviderResult:
        pagemap: Dict[str, Any] = {}
        if item.get("price") or item.get("extracted_price"):
            pagemap["offer"] = [{"price": item.get("price") or item.get("extracted_price")}]
        if item.get("rating") is not None:
            pagemap["aggregaterating"] = [{"ratingvalue": item.get("rating"), "reviewcount": item.get("reviews")}]
        if item.get("thumbnail"):
            pagemap["cse_image"] = [{"src": item["thumbnail"]}]
        if item.get("source"):
            pagemap["metatags"] = [{"og:site_name": item["source"]}]
        snippet = item.get("snippet") or item.get("delivery") or ""
        return RawProviderResult(
            title=item.get("title") or "",
            link=self._link(item),
            snippet=snippet,
            pagemap=pagemap,
        )


_SITE_RE = re.compile(r"site:([a-z0-9.\-]+)")
_QUOTED_EXCLUSION_RE = re.compile(r'-"[^"]*"')


class SampleCatalogProvider:
    """Offline listings from a JSON file, matched by token overlap and ``site:`` filters."""

    name = "sample"

    def __init__(self, records: List[Dict[str, Any]]) -> None:
        self.records = records

    @classmethod
    def from_path(cls, path: str | Path) -> "SampleCatalogProvider":
        with Path(path).open("r", encoding="utf-8") as fh:
            records = json.load(fh)
        logger.info("Loaded %s sample catalog records from %s", len(records), path)
        return cls(records)

    async def search(self, query: str, options: SearchOptions) -> List[RawProviderResult]:
        lowered = query.lower()
        sites = _SITE_RE.findall(lowered)
        stripped = _QUOTED_EXCLUSION_RE.sub(" ", _SITE_RE.sub(" ", lowered))
        terms = {
            token
            for word in stripped.split()
            if not word.startswith("-")
            for token in tokenize(word)
            if token not in STOPWORDS and token not in SHOPPING_INTENT_TERMS and token != "or"
        }
        ranked = []
        for index, record in enumerate(self.records):
            url = record.get("url") or ""
            host = (urlsplit(url).hostname or "").lower()
            if sites and not any(host == site or host.endswith("." + site) for site in sites):
                continue
            haystack = set(tokenize(f"{record.get('title', '')} {record.get('description', '')}"))
            overlap = len(terms & haystack)
            if overlap:
                ranked.append((-overlap, index, record))
        ranked.sort(key=lambda item: (item[0], item[1]))
        return [self._to_raw(record) for _, _, record in ranked[: options.max_results]]

    @staticmethod
    def _to_raw(record: Mapping[str, Any]) -> RawProviderResult:
        pagemap: Dict[str, Any] = {}
        if record.get("price"):
            pagemap["offer"] = [
                {"price": record["price"], "pricecurrency": record.get("currency"), "availability": record.get("availability")}
            ]
        if record.get("rating") is not None:
            pagemap["aggregaterating"] = [{"ratingvalue": record["rating"], "reviewcount": record.get("reviews")}]
        if record.get("image"):
            pagemap["cse_image"] = [{"src": record["image"]}]
        if record.get("gtin"):
            pagemap["product"] = [{"name": record.get("title"), "gtin13": record["gtin"]}]
        if record.get("seller"):
            pagemap["metatags"] = [{"og:site_name": record["seller"]}]
        return RawProviderResult(
            title=record.get("title") or "",
            link=record.get("url") or "",
            snippet=record.get("description") or "",
            pagemap=pagemap,
        )

    async def aclose(self) -> None:
        return None


def build_providers(settings: Settings) -> Dict[str, SearchProvider]:
    """Instantiate every provider whose credentials or data are configured."""
    providers: Dict[str, SearchProvider] = {}
    if settings.sample_catalog_enabled:
        providers["sample"] = SampleCatalogProvider.from_path(settings.sample_catalog_path)
        return providers
    if settings.serpapi_key:
        providers["serpapi"] = SerpApiShoppingProvider(settings.serpapi_key, timeout=settings.provider_timeout_seconds)
    if settings.google_api_key and settings.google_cse_id:
        providers["google_cse"] = GoogleCustomSearchProvider(
            settings.google_api_key,
            settings.google_cse_id,
            timeout=settings.provider_timeout_seconds,
        )
    if settings.sample_catalog_fallback:
        try:
            providers["sample"] = SampleCatalogProvider.from_path(settings.sample_catalog_path)
        except (OSError, ValueError) as exc:
            logger.warning("Sample catalog unavailable at %s: %s", settings.sample_catalog_path, exc)
    if not providers:
        logger.warning("No search providers configured; every search will fail")
    return providers
