"""Launchpad polling listener.

Each listener owns its timer task. The timer fires every interval regardless
of how long a pass takes; a tick that finds the previous pass still running
is skipped. Items within a pass are processed one at a time.
"""

import asyncio
import logging
from contextlib import suppress

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from launch_scanner.errors import DataShapeError, NotFoundError, TransientFetchError
from launch_scanner.ingestion.base import LaunchNormalizer, LaunchpadSource
from launch_scanner.ingestion.gateway import UpsertGateway
from launch_scanner.ingestion.models import DebugResult, SkipResult, UpsertAction
from launch_scanner.storage.repository import delete_launches_by_specific_id, get_known_specific_ids

logger = logging.getLogger(__name__)


class LaunchpadListener:
    def __init__(
        self,
        source: LaunchpadSource,
        normalizer: LaunchNormalizer,
        gateway: UpsertGateway,
        session_factory: async_sessionmaker[AsyncSession],
        interval_seconds: int,
        gone_capacity: int = 1000,
    ) -> None:
        self._source = source
        self._normalizer = normalizer
        self._gateway = gateway
        self._session_factory = session_factory
        self._interval = interval_seconds
        self._pass_lock = asyncio.Lock()
        self._timer: asyncio.Task | None = None
        self._pass: asyncio.Task | None = None
        # ids the API answered 404 for, oldest first; never fetched again by this listener
        self._gone: dict[str, None] = {}
        self._gone_capacity = gone_capacity

    @property
    def name(self) -> str:
        return self._source.launchpad_name

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> asyncio.Task:
        if self.running:
            return self._timer
        logger.info("%s listener started (interval=%ds)", self.name, self._interval)
        self._timer = asyncio.create_task(self._run(), name=f"listener:{self.name}")
        return self._timer

    async def wait(self) -> None:
        """Block until the timer task ends (cancelled by stop or shutdown)."""
        if self._timer is not None:
            with suppress(asyncio.CancelledError):
                await self._timer

    async def stop(self) -> None:
        for task in (self._timer, self._pass):
            if task is not None and not task.done():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
        self._timer = self._pass = None
        logger.info("%s listener stopped", self.name)

    async def _run(self) -> None:
        while True:
            if self._pass_lock.locked():
                logger.info("%s: previous pass still running, skipping this tick", self.name)
            else:
                self._pass = asyncio.create_task(self._guarded_pass())
            await asyncio.sleep(self._interval)

    async def _guarded_pass(self) -> None:
        try:
            await self.poll_once()
        except Exception:
            logger.exception("Error in %s polling pass", self.name)

    async def poll_once(self) -> int:
        """One polling pass. Returns the number of launches written."""
        if self._pass_lock.locked():
            logger.info("%s: pass already in progress, skipped", self.name)
            return 0

        async with self._pass_lock:
            ids = [i for i in await self._source.list_recent_ids() if i not in self._gone]
            async with self._session_factory() as session:
                known = await get_known_specific_ids(session, self.name, ids)
            new_ids = [i for i in ids if i not in known]
            if not new_ids:
                logger.debug("%s: no new launches", self.name)
                return 0

            logger.info("%s: %d new launches to process", self.name, len(new_ids))
            written = 0
            for external_id in new_ids:
                try:
                    outcome = await self.process_item(external_id)
                except NotFoundError:
                    logger.info("%s: launch %s no longer exists", self.name, external_id)
                    self._mark_gone(external_id)
                    continue
                except (TransientFetchError, DataShapeError) as exc:
                    logger.warning("%s: launch %s fetch failed: %s", self.name, external_id, exc)
                    continue
                except Exception:
                    logger.exception("%s: failed processing launch %s", self.name, external_id)
                    continue
                if isinstance(outcome, UpsertAction) and outcome is not UpsertAction.SKIPPED:
                    written += 1

            logger.info("%s pass complete: %d/%d launches written", self.name, written, len(new_ids))
            return written

    def _mark_gone(self, external_id: str) -> None:
        self._gone[external_id] = None
        while len(self._gone) > self._gone_capacity:
            del self._gone[next(iter(self._gone))]

    async def process_item(self, external_id: str) -> UpsertAction | SkipResult:
        """Fetch, normalize and upsert one launch.

        Raises NotFoundError / TransientFetchError from the detail fetch.
        """
        detail = await self._source.fetch_detail(external_id)
        result = await self._normalizer.normalize(detail)
        if isinstance(result, SkipResult):
            return result
        return await self._gateway.upsert(result)

    async def debug_launch(self, external_id: str, delete_existing: bool = False) -> DebugResult:
        """Process one launch by id outside the timer, optionally deleting it first."""
        external_id = (external_id or "").strip()
        if not self._source.is_valid_id(external_id):
            return DebugResult(success=False, message="Invalid Launch API ID.")

        try:
            if delete_existing:
                async with self._session_factory() as session:
                    deleted = await delete_launches_by_specific_id(session, self.name, external_id)
                logger.info("%s debug: deleted %d existing record(s) for %s", self.name, deleted, external_id)
            outcome = await self.process_item(external_id)
        except NotFoundError:
            return DebugResult(success=False, message=f"Launch {external_id} not found on {self.name}.")
        except (TransientFetchError, DataShapeError) as exc:
            return DebugResult(success=False, message=f"Failed to fetch launch {external_id}: {exc}")
        except Exception as exc:
            logger.exception("%s debug: failed processing launch %s", self.name, external_id)
            return DebugResult(success=False, message=f"Error processing launch {external_id}: {exc}")

        if isinstance(outcome, SkipResult):
            return DebugResult(success=True, message=f"Launch {external_id} skipped: {outcome.reason}")
        return DebugResult(success=True, message=f"Launch {external_id} processed ({outcome.value}).")
