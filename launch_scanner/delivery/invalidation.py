"""Read-view invalidation after launch writes.

Ingestion usually runs with no request in flight, so the signal is
best-effort. Inside a request the local cache is cleared directly. Outside a
request it is POSTed to a configured revalidate URL, or the local cache is
cleared when the web app lives in this process. Otherwise it is skipped.
Never raises.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar

import httpx

from launch_scanner.config import settings
from launch_scanner.delivery.web import views

logger = logging.getLogger(__name__)

_in_request: ContextVar[bool] = ContextVar("launch_scanner_in_request", default=False)


@contextmanager
def request_scope():
    token = _in_request.set(True)
    try:
        yield
    finally:
        _in_request.reset(token)


def in_request_context() -> bool:
    return _in_request.get()


class ViewInvalidator:
    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        revalidate_url: str | None = None,
        local_views: bool = False,
    ) -> None:
        self._client = client
        self._url = revalidate_url if revalidate_url is not None else settings.revalidate_url
        self._local_views = local_views

    async def invalidate(self) -> bool:
        """Returns True when some cache was actually invalidated."""
        if in_request_context() or (self._local_views and not self._url):
            views.clear_cache()
            return True

        if self._url and self._client is not None:
            try:
                resp = await self._client.post(self._url, timeout=10)
                resp.raise_for_status()
                logger.debug("Revalidated read views via %s", self._url)
                return True
            except httpx.HTTPError as exc:
                logger.warning("View revalidation failed: %s", exc)
                return False

        logger.debug("No request context and no revalidate URL, skipping view invalidation")
        return False
