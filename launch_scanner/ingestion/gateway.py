"""Upsert / dedup gateway for normalized launches.

Natural key is (title, launchpad), backed by a unique constraint. Work on one
key is serialized in-process with an asyncio.Lock; a concurrent insert from
another process surfaces as IntegrityError and is retried as an update.

Decision table:
  no record                       -> insert placeholders, score, write LLM fields
  record, overwrite on            -> update all fields (unset tokenomics keep the
                                     stored value), rescore when stale or forced
  record, overwrite off, stale    -> rewrite LLM fields only
  record, overwrite off, fresh    -> skip
"""

import asyncio
import logging
from collections import Counter
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Awaitable, Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from launch_scanner.chains.base import ChainClient, ChainFamily, default_decimals
from launch_scanner.config import settings
from launch_scanner.delivery.base import LaunchNotifier
from launch_scanner.delivery.invalidation import ViewInvalidator
from launch_scanner.errors import ChainQueryError, DataShapeError, NotFoundError
from launch_scanner.ingestion.models import TOKENOMICS_FIELDS, NormalizedLaunch, UpsertAction
from launch_scanner.scoring.llm import score_launch
from launch_scanner.scoring.models import LaunchScore
from launch_scanner.storage.models import PLACEHOLDER, UNRATED, Launch
from launch_scanner.storage.repository import get_launch, get_launch_by_natural_key
from launch_scanner.tokenomics.stats import collect_creator_stats, lock_addresses_for

logger = logging.getLogger(__name__)

Scorer = Callable[[str, str], Awaitable[LaunchScore | None]]

_AMOUNT_FIELDS = (
    "creator_tokens_held",
    "creator_initial_tokens_held",
    "tokens_for_sale",
    "total_token_supply",
)


def _record_fields(launch: NormalizedLaunch) -> dict:
    """NormalizedLaunch -> column values (amounts as decimal strings), LLM fields excluded."""
    data = launch.model_dump(exclude={"summary", "analysis", "rating"})
    for name in _AMOUNT_FIELDS:
        if data[name] is not None:
            data[name] = str(data[name])
    if data["sent_to_zero_address"] is None:
        # non-nullable column; unknown means "leave as is" (default False on insert)
        del data["sent_to_zero_address"]
    return data


def needs_scoring(record: Launch, force: bool = False) -> bool:
    return (
        force
        or record.summary == PLACEHOLDER
        or record.analysis == PLACEHOLDER
        or record.rating == UNRATED
    )


def _apply_score(record: Launch, score: LaunchScore, now: datetime) -> None:
    record.summary = score.summary
    record.analysis = score.analysis
    record.rating = score.rating
    record.llm_analysis_updated_at = now


class UpsertGateway:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scorer: Scorer = score_launch,
        notifier: LaunchNotifier | None = None,
        invalidator: ViewInvalidator | None = None,
        chains: dict[ChainFamily, ChainClient] | None = None,
        overwrite_existing: bool | None = None,
        force_rescoring: bool | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._scorer = scorer
        self._notifier = notifier
        self._invalidator = invalidator
        self._chains = chains or {}
        self._overwrite = (
            settings.overwrite_existing_launches if overwrite_existing is None else overwrite_existing
        )
        self._force = settings.force_llm_rescoring if force_rescoring is None else force_rescoring
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._lock_users: Counter[tuple[str, str]] = Counter()

    async def upsert(self, launch: NormalizedLaunch) -> UpsertAction:
        key = (launch.title, launch.launchpad)
        async with self._key_lock(key):
            try:
                action, record = await self._upsert_locked(launch)
            except IntegrityError:
                logger.info("Concurrent insert for %s, retrying as update", launch.title)
                action, record = await self._upsert_locked(launch)

        if action is not UpsertAction.SKIPPED:
            await self._invalidate()
        if action is UpsertAction.INSERTED:
            await self._notify(record)
        return action

    @asynccontextmanager
    async def _key_lock(self, key: tuple[str, str]):
        """Serialize work on one natural key; the lock is dropped once unused."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    async def _upsert_locked(self, launch: NormalizedLaunch) -> tuple[UpsertAction, Launch | None]:
        async with self._session_factory() as session:
            existing = await get_launch_by_natural_key(session, launch.title, launch.launchpad)
            now = datetime.utcnow()

            if existing is None:
                record = Launch(
                    **_record_fields(launch),
                    summary=PLACEHOLDER,
                    analysis=PLACEHOLDER,
                    rating=UNRATED,
                    basic_info_updated_at=now,
                    token_stats_updated_at=now if launch.has_token_stats else None,
                )
                session.add(record)
                # persisted before scoring so a scoring failure never loses the launch
                await session.commit()
                logger.info("Inserted launch %s (id=%d)", record.title, record.id)

                score = await self._scorer(launch.description, launch.launchpad)
                if score is not None:
                    _apply_score(record, score, datetime.utcnow())
                    await session.commit()
                else:
                    logger.warning("Scoring unavailable for %s, keeping placeholders", record.title)
                return UpsertAction.INSERTED, record

            if self._overwrite:
                rescore = needs_scoring(existing, self._force)
                for name, value in _record_fields(launch).items():
                    if value is None and name in TOKENOMICS_FIELDS:
                        continue
                    setattr(existing, name, value)
                existing.basic_info_updated_at = now
                if launch.has_token_stats:
                    existing.token_stats_updated_at = now

                if rescore:
                    score = await self._scorer(launch.description, launch.launchpad)
                    if score is not None:
                        _apply_score(existing, score, datetime.utcnow())
                    else:
                        logger.warning("Rescoring failed for %s, previous LLM fields kept", existing.title)
                await session.commit()
                logger.info("Updated launch %s (id=%d)", existing.title, existing.id)
                return UpsertAction.UPDATED, existing

            if needs_scoring(existing, self._force):
                score = await self._scorer(existing.description, existing.launchpad)
                if score is None:
                    logger.warning("Rescoring failed for %s, nothing written", existing.title)
                    return UpsertAction.SKIPPED, existing
                _apply_score(existing, score, datetime.utcnow())
                await session.commit()
                logger.info("Rescored launch %s (id=%d)", existing.title, existing.id)
                return UpsertAction.SCORED, existing

            logger.info("Launch %s already stored and overwrite disabled, skipping", existing.title)
            return UpsertAction.SKIPPED, existing

    async def reanalyze(self, launch_id: int) -> UpsertAction:
        """Rescore a stored launch, writing only the LLM fields."""
        async with self._session_factory() as session:
            record = await get_launch(session, launch_id)
            if record is None:
                raise NotFoundError("Launch", str(launch_id))
            score = await self._scorer(record.description, record.launchpad)
            if score is None:
                logger.warning("Re-analysis of %s produced no score", record.title)
                return UpsertAction.SKIPPED
            _apply_score(record, score, datetime.utcnow())
            await session.commit()
        await self._invalidate()
        return UpsertAction.SCORED

    async def refresh_token_stats(self, launch_id: int) -> bool:
        """Recompute creator holdings for a stored launch, writing only tokenomics fields."""
        async with self._session_factory() as session:
            record = await get_launch(session, launch_id)
            if record is None:
                raise NotFoundError("Launch", str(launch_id))
            family = ChainFamily.from_tag(record.chain)
            chain = self._chains.get(family) if family else None
            if chain is None or not (record.token_address and record.creator_address):
                logger.info("Launch %s has no on-chain token to refresh", record.title)
                return False

            decimals = default_decimals(family)
            total = int(record.total_token_supply) if record.total_token_supply else None
            try:
                supply, decimals = await chain.get_total_supply(record.token_address)
            except (ChainQueryError, DataShapeError) as exc:
                if total is None:
                    logger.warning("Token stats refresh failed for %s: %s", record.title, exc)
                    return False
                logger.warning("Token decimals unavailable for %s, assuming %d (%s)", record.title, decimals, exc)
            else:
                if total is None:
                    total = supply

            try:
                stats = await collect_creator_stats(
                    chain, record.token_address, record.creator_address,
                    decimals=decimals,
                    total_supply=total,
                    pool_address=record.main_selling_address,
                    lock_addresses=lock_addresses_for(family),
                    threshold=settings.movement_threshold,
                )
            except (ChainQueryError, DataShapeError) as exc:
                logger.warning("Token stats refresh failed for %s: %s", record.title, exc)
                return False

            record.creator_tokens_held = str(stats.tokens_held)
            record.total_token_supply = str(total)
            record.creator_token_holding_percentage = (
                stats.holding_percentage.percent if stats.holding_percentage else None
            )
            record.creator_token_movement_details = stats.movement_details
            record.sent_to_zero_address = stats.sent_to_zero
            record.token_stats_updated_at = datetime.utcnow()
            await session.commit()
        await self._invalidate()
        return True

    async def _invalidate(self) -> None:
        if self._invalidator is not None:
            await self._invalidator.invalidate()

    async def _notify(self, record: Launch | None) -> None:
        if self._notifier is None or record is None:
            return
        try:
            await self._notifier.send_launch(record)
        except Exception:
            logger.exception("Notification failed for %s", record.title)
