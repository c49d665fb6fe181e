"""
TCG Vault — Card Image Resolution

Two concerns:
- find_best_image: pick the best candidate from the image-search API for a
  card name (exact name 100, substring 50, matching set +25). Misses are
  cached too so an unknown card does not hit the API on every render.
- resolve_image: confirm an image URL actually serves an image, retrying a
  few times, and fall back to the placeholder when it does not.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

from tcgvault.cache.ttl_cache import TTLCache
from tcgvault.config import CacheType, settings
from tcgvault.pipeline.images import ImageCandidate, ImageSearchClient

logger = structlog.get_logger(__name__)

EXACT_NAME_SCORE = 100
PARTIAL_NAME_SCORE = 50
SET_MATCH_BONUS = 25

# Set name the catalog uses when an expansion is not known
UNKNOWN_SET = "Unknown Set"


def score_candidate(candidate: ImageCandidate, card_name: str, set_name: str | None = None) -> int:
    name = candidate.name.lower().strip()
    wanted = card_name.lower().strip()
    score = 0
    if name == wanted:
        score += EXACT_NAME_SCORE
    elif wanted and (wanted in name or name and name in wanted):
        score += PARTIAL_NAME_SCORE
    if set_name and set_name != UNKNOWN_SET and set_name.lower() in name:
        score += SET_MATCH_BONUS
    return score


def search_query(card_name: str, set_name: str | None = None) -> str:
    """Card name, followed by the set name when one is known."""
    if set_name and set_name != UNKNOWN_SET:
        return f"{card_name} {set_name}"
    return card_name


class ImageService:
    """
    Usage:
        async with ImageSearchClient() as client:
            images = ImageService(client, cache)
            url = await images.find_best_image("Pikachu", "Base Set")
    """

    def __init__(
        self,
        client: ImageSearchClient | None,
        cache: TTLCache,
        http_client: httpx.AsyncClient | None = None,
        placeholder_url: str | None = None,
        timeout: float | None = None,
        max_attempts: int | None = None,
        retry_backoff: float = 0.5,
    ):
        self._client = client
        self._cache = cache
        self._http = http_client
        self._placeholder = placeholder_url or settings.PLACEHOLDER_IMAGE_URL
        self._timeout = timeout or settings.IMAGE_FETCH_TIMEOUT_SECONDS
        self._max_attempts = max_attempts or settings.IMAGE_FETCH_MAX_ATTEMPTS
        self._retry_backoff = retry_backoff

    @property
    def placeholder_url(self) -> str:
        return self._placeholder

    async def find_best_image(
        self,
        card_name: str,
        set_name: str | None = None,
        game: str = "pokemon",
    ) -> str | None:
        """
        Best-scoring image URL for a card name, or None.

        Prefers the large image of the winning candidate. A candidate with a
        score of zero is never chosen.
        """
        if self._client is None or not card_name.strip():
            return None

        params: dict[str, Any] = {"name": card_name.lower().strip(), "set": set_name, "game": game}
        cached = self._cache.get_cached_api_response("/images", params, CacheType.IMAGE)
        if cached is not None:
            return cached or None

        try:
            candidates = await self._client.search_card_images(search_query(card_name, set_name), game)
        except Exception as e:
            logger.error(
                "image_search_failed",
                card_name=card_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        best_url: str | None = None
        best_score = 0
        for candidate in candidates:
            url = candidate.image_url_large or candidate.image_url
            if not url:
                continue
            score = score_candidate(candidate, card_name, set_name)
            if score > best_score:
                best_score, best_url = score, url

        # "" marks a cached miss
        self._cache.cache_api_response("/images", params, best_url or "", CacheType.IMAGE)
        logger.debug("image_search_best", card_name=card_name, score=best_score, found=best_url is not None)
        return best_url

    async def resolve_image(self, url: str | None) -> str:
        """
        Return `url` when it serves an image/* response, else the placeholder.

        Successful checks are cached under the image TTL.
        """
        if not url:
            return self._placeholder

        params = {"url": url}
        if self._cache.get_cached_api_response("/resolve", params, CacheType.IMAGE) is not None:
            return url

        owns_client = self._http is None
        http = self._http or httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        try:
            for attempt in range(self._max_attempts):
                try:
                    response = await http.get(url, timeout=self._timeout)
                    content_type = response.headers.get("content-type", "")
                    if response.status_code == 200 and content_type.startswith("image/"):
                        self._cache.cache_api_response("/resolve", params, True, CacheType.IMAGE)
                        return url
                    logger.warning(
                        "image_resolve_not_an_image",
                        url=url,
                        status_code=response.status_code,
                        content_type=content_type,
                        attempt=attempt + 1,
                    )
                    if response.status_code < 500:
                        break
                except httpx.HTTPError as e:
                    logger.warning(
                        "image_resolve_error",
                        url=url,
                        error=str(e),
                        error_type=type(e).__name__,
                        attempt=attempt + 1,
                    )
                if attempt + 1 < self._max_attempts:
                    await asyncio.sleep(self._retry_backoff * (2 ** attempt))
        finally:
            if owns_client:
                await http.aclose()

        return self._placeholder
