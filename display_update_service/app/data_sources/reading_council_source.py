# display_update_service/app/data_sources/reading_council_source.py
import logging
from typing import List, Dict, Any, Optional

import httpx
from pydantic import ValidationError

from ..models import RawCollectionEntry
from .interface import ICollectionScheduleSource

logger = logging.getLogger(__name__)

USER_AGENT = "BinDisplayUpdater/1.0"


class CollectionSourceError(Exception):
    pass


class ReadingCouncilSource(ICollectionScheduleSource):
    def __init__(
        self,
        base_url: str,
        property_id: str,
        timeout: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        if not property_id:
            raise CollectionSourceError("A property id (UPRN) is required.")
        self.url = f"{base_url.rstrip('/')}/{property_id}"
        headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
        self.http_client = http_client or httpx.AsyncClient(
            headers=headers, timeout=timeout
        )

    async def _fetch_data_from_api(self) -> Dict[str, Any]:
        """Fetches the raw schedule document from the council API."""
        logger.info(f"Fetching collection schedule from council API: {self.url}")
        try:
            response = await self.http_client.get(self.url)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"HTTP error fetching schedule from {e.request.url}: {e.response.status_code}"
            )
            raise CollectionSourceError(
                f"API request failed: {e.response.status_code} - {e.response.text[:200]}"
            )
        except httpx.RequestError as e:
            logger.error(f"Request error fetching schedule from {e.request.url}: {e}")
            raise CollectionSourceError(f"API request failed: {str(e)}")
        except ValueError as e:  # Body was not JSON
            logger.error(f"Council API returned a non-JSON body: {e}")
            raise CollectionSourceError(f"Unparseable response: {str(e)}")

    def _transform_collection(self, api_item: Dict[str, Any]) -> Optional[RawCollectionEntry]:
        """Validates one item of the API `collections` array."""
        if not isinstance(api_item, dict) or not api_item.get("service") or not api_item.get("date"):
            logger.warning(f"Skipping collection item missing service/date: {api_item}")
            return None
        try:
            return RawCollectionEntry(**api_item)
        except ValidationError as e:
            logger.warning(f"Skipping invalid collection item {api_item}: {e}")
            return None

    async def get_collections(self) -> List[RawCollectionEntry]:
        api_response_data = await self._fetch_data_from_api()

        if not isinstance(api_response_data, dict) or not api_response_data.get("success"):
            description = (
                api_response_data.get("error_description")
                if isinstance(api_response_data, dict)
                else None
            )
            raise CollectionSourceError(
                f"API returned unsuccessful response: {description or 'no description'}"
            )

        raw_items = api_response_data.get("collections")
        if not isinstance(raw_items, list):
            raise CollectionSourceError("No 'collections' array found in API response.")

        collections: List[RawCollectionEntry] = []
        for api_item in raw_items:
            entry = self._transform_collection(api_item)
            if entry:
                collections.append(entry)

        logger.info(f"Council API: Fetched {len(collections)} collections.")
        return collections

    async def close(self):
        if self.http_client:
            await self.http_client.aclose()
            logger.info("ReadingCouncilSource HTTP client closed.")
