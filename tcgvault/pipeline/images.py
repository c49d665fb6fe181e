"""
TCG Vault — Image-Search API Client

Free-text card-name search returning candidate card images. Selection of
the best candidate lives in search/images.py; this module only fetches.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import BaseModel, Field, field_validator

from tcgvault.config import settings
from tcgvault.pipeline.base import BaseAPIClient

logger = structlog.get_logger(__name__)


class ImageCandidate(BaseModel):
    """One candidate image for a card name search."""
    id: str | None = None
    name: str = ""
    image_url: str | None = None
    image_url_large: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def id_to_str(cls, v: Any) -> str | None:
        return None if v is None else str(v)


class ImageSearchClient(BaseAPIClient):
    """
    Async client for the image-search API.

    Usage:
        async with ImageSearchClient() as client:
            candidates = await client.search_card_images("Pikachu")
    """

    provider = "image_search"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        max_retries: int = 2,
        base_backoff: float = 0.5,
    ):
        self._api_key = api_key if api_key is not None else settings.IMAGE_SEARCH_API_KEY
        super().__init__(
            base_url=base_url or settings.IMAGE_SEARCH_BASE_URL,
            headers={"Authorization": f"Bearer {self._api_key}"} if self._api_key else None,
            max_retries=max_retries,
            base_backoff=base_backoff,
            timeout=settings.IMAGE_FETCH_TIMEOUT_SECONDS,
        )

    async def search_card_images(self, query: str, game: str = "pokemon") -> list[ImageCandidate]:
        data = await self._request("/cards", params={"cardName": query, "game": game})
        raw = data.get("data", []) if isinstance(data, dict) else data
        candidates = [ImageCandidate.model_validate(item) for item in raw or []]
        logger.debug("image_search_results", query=query, count=len(candidates))
        return candidates
