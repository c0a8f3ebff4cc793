"""
Client for the Openverse search API.

One search is one GET against the per-media-type endpoint. Responses are decoded
through OpenverseEnvelope / OpenverseItem and mapped to MediaResult. There is no
retry: a failed call surfaces to the caller as an UpstreamError.
"""

import logging
from typing import Dict, Optional, Tuple

import httpx
from pydantic import ValidationError as SchemaError

from media_search.core.config import settings
from media_search.core.errors import (
    UpstreamDecodeError,
    UpstreamError,
    UpstreamTimeoutError,
    ValidationError,
)
from media_search.schemas.media import (
    OpenverseEnvelope,
    OpenverseItem,
    SearchPage,
    SearchParams,
    to_media_result,
)
from media_search.services.search_cache import SearchCache, search_cache, stable_hash

logger = logging.getLogger(__name__)

# Openverse has no video index; video is accepted as a media type but not searchable
ENDPOINTS = {"image": "images", "audio": "audio"}

MIN_PAGE_SIZE = 1
MAX_PAGE_SIZE = 50


def normalize_params(params: SearchParams) -> Tuple[str, Dict[str, object]]:
    """
    Validate and clamp search params.

    Returns the media type and the query-string dict sent upstream.
    Raises ValidationError for an empty query or an unsearchable media type;
    out-of-range page and page_size are clamped rather than rejected.
    """
    query = (params.query or "").strip()
    if not query:
        raise ValidationError.for_field("q", "Search query is required")

    if params.media_type not in ENDPOINTS:
        raise ValidationError.for_field(
            "media_type", f"Media type '{params.media_type}' is not supported by Openverse")

    upstream_params: Dict[str, object] = {
        "q": query,
        "page": max(1, params.page),
        "page_size": min(MAX_PAGE_SIZE, max(MIN_PAGE_SIZE, params.page_size)),
    }
    if params.license and params.license.strip():
        upstream_params["license"] = params.license.strip()
    if params.extension and params.extension.strip():
        upstream_params["extension"] = params.extension.strip()

    return params.media_type, upstream_params


class OpenverseService:
    def __init__(
        self,
        base_url: str,
        timeout: float,
        placeholder_thumbnail: str,
        cache: Optional[SearchCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.placeholder_thumbnail = placeholder_thumbnail
        self.cache = cache
        # Tests pass an httpx.MockTransport here
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Shared client; its connection pool is reused across searches"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the shared client; called on app shutdown"""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def search(self, params: SearchParams) -> SearchPage:
        """Search Openverse and return one normalized page of results"""
        media_type, upstream_params = normalize_params(params)

        cache_key = stable_hash({"media_type": media_type, **upstream_params})
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Openverse cache hit for {media_type} query '{upstream_params['q']}'")
                return cached

        envelope = await self._fetch(media_type, upstream_params)

        results = []
        for raw in envelope.results:
            if not isinstance(raw, dict):
                logger.warning(f"Skipping non-object Openverse result: {type(raw).__name__}")
                continue
            item = OpenverseItem.model_validate(raw)
            results.append(to_media_result(item, media_type, self.placeholder_thumbnail))

        page = SearchPage(
            count=envelope.result_count or 0,
            page=upstream_params["page"],
            page_size=upstream_params["page_size"],
            page_count=envelope.page_count or 0,
            results=results,
        )

        if self.cache is not None:
            self.cache.set(cache_key, page)
        return page

    async def _fetch(self, media_type: str, upstream_params: Dict[str, object]) -> OpenverseEnvelope:
        url = f"{self.base_url}/{ENDPOINTS[media_type]}/"
        query = upstream_params["q"]

        try:
            response = await self.client.get(url, params=upstream_params)
        except httpx.TimeoutException as e:
            logger.error(f"Openverse request timed out after {self.timeout}s: query='{query}' url={url} error={e!r}")
            raise UpstreamTimeoutError()
        except httpx.RequestError as e:
            logger.error(f"Openverse request failed: query='{query}' url={url} error={e!r}")
            raise UpstreamError()

        if not response.is_success:
            logger.error(
                f"Openverse API error: query='{query}' status={response.status_code} url={response.request.url}")
            raise UpstreamError(upstream_status=response.status_code)

        try:
            return OpenverseEnvelope.model_validate(response.json())
        except (ValueError, SchemaError) as e:
            # json decoding errors are ValueErrors
            logger.error(f"Malformed Openverse response: query='{query}' url={url} error={e}")
            raise UpstreamDecodeError()


openverse_service = OpenverseService(
    base_url=settings.OPENVERSE_BASE_URL,
    timeout=settings.OPENVERSE_TIMEOUT_SECONDS,
    placeholder_thumbnail=settings.PLACEHOLDER_THUMBNAIL_URL,
    cache=search_cache,
)
