"""Virtuals Protocol public API client."""

import asyncio
import logging

import httpx
from pydantic import ValidationError as PydanticValidationError

from launch_scanner.config import settings
from launch_scanner.errors import DataShapeError, NotFoundError, TransientFetchError
from launch_scanner.ingestion.base import LaunchpadSource
from launch_scanner.launchpads.virtuals.models import (
    VirtualsDetailResponse,
    VirtualsLaunchDetail,
    VirtualsListItem,
    VirtualsListResponse,
)

logger = logging.getLogger(__name__)

LAUNCHPAD_NAME = "Virtuals Protocol"

_DETAIL_POPULATE = ("image", "tokenomics", "creator.userSocials", "socials", "genesis")


class VirtualsClient(LaunchpadSource):
    launchpad_name = LAUNCHPAD_NAME

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str | None = None,
        max_retries: int = 3,
    ) -> None:
        self._client = client
        self._base_url = (base_url or settings.virtuals_api_base).rstrip("/")
        self._max_retries = max_retries

    async def _get(self, url: str, params: dict, what: str) -> dict:
        """GET with retry on 429/5xx and transport errors; 404 is NotFoundError."""
        last_error = ""
        for attempt in range(self._max_retries + 1):
            try:
                resp = await self._client.get(
                    url, params=params, timeout=settings.virtuals_request_timeout_seconds,
                )
                if resp.status_code == 404:
                    raise NotFoundError("Virtuals launch", what)
                if resp.status_code == 429 or resp.status_code >= 500:
                    last_error = f"HTTP {resp.status_code}"
                    if attempt < self._max_retries:
                        wait = 2 * (2 ** attempt)
                        logger.debug("Virtuals API %d, retry in %ds", resp.status_code, wait)
                        await asyncio.sleep(wait)
                        continue
                    break
                resp.raise_for_status()
                return resp.json()
            except (httpx.TransportError, httpx.HTTPStatusError) as exc:
                last_error = str(exc) or exc.__class__.__name__
                if attempt < self._max_retries:
                    await asyncio.sleep(2 * (2 ** attempt))
                    continue
            except ValueError as exc:
                raise DataShapeError(f"Virtuals {what}: response is not JSON") from exc
        raise TransientFetchError(f"Virtuals {what}: {last_error or 'exhausted retries'}")

    async def list_recent(self, page: int = 1) -> list[VirtualsListItem]:
        params = {
            "filters[status]": 3,
            "sort[0]": "createdAt:desc",
            "populate[0]": "image",
            "pagination[page]": page,
            "pagination[pageSize]": settings.virtuals_page_size,
            "isGrouped": 1,
        }
        payload = await self._get(self._base_url, params, "list")
        try:
            return VirtualsListResponse.model_validate(payload).data
        except PydanticValidationError as exc:
            raise DataShapeError("Virtuals list: unexpected shape", payload) from exc

    def is_valid_id(self, external_id: str) -> bool:
        return external_id.strip().isdigit()

    async def list_recent_ids(self) -> list[str]:
        return [str(item.id) for item in await self.list_recent()]

    async def fetch_detail(self, external_id: str) -> VirtualsLaunchDetail:
        params = {f"populate[{i}]": field for i, field in enumerate(_DETAIL_POPULATE)}
        payload = await self._get(f"{self._base_url}/{external_id}", params, external_id)
        if not isinstance(payload, dict) or payload.get("data") is None:
            # Strapi answers unknown ids with {"data": null}
            raise NotFoundError("Virtuals launch", external_id)
        try:
            return VirtualsDetailResponse.model_validate(payload).data
        except PydanticValidationError as exc:
            raise DataShapeError(f"Virtuals detail {external_id}: unexpected shape", payload) from exc
