from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from launch_scanner.storage.models import Launch


async def get_launch(session: AsyncSession, launch_id: int) -> Launch | None:
    return await session.get(Launch, launch_id)


async def get_launch_by_natural_key(
    session: AsyncSession, title: str, launchpad: str
) -> Launch | None:
    stmt = (
        select(Launch)
        .where(Launch.title == title, Launch.launchpad == launchpad)
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_launch_by_specific_id(
    session: AsyncSession, launchpad: str, specific_id: str
) -> Launch | None:
    stmt = (
        select(Launch)
        .where(Launch.launchpad == launchpad, Launch.launchpad_specific_id == specific_id)
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_known_specific_ids(
    session: AsyncSession, launchpad: str, candidate_ids: list[str]
) -> set[str]:
    """Subset of candidate external ids already persisted for a launchpad."""
    if not candidate_ids:
        return set()
    stmt = select(Launch.launchpad_specific_id).where(
        Launch.launchpad == launchpad,
        Launch.launchpad_specific_id.in_(candidate_ids),
    )
    result = await session.execute(stmt)
    return {row for row in result.scalars().all() if row is not None}


async def delete_launches_by_specific_id(
    session: AsyncSession, launchpad: str, specific_id: str
) -> int:
    stmt = delete(Launch).where(
        Launch.launchpad == launchpad,
        Launch.launchpad_specific_id == specific_id,
    )
    result = await session.execute(stmt)
    await session.commit()
    return result.rowcount or 0


async def list_launches(
    session: AsyncSession,
    launchpad: str | None = None,
    chain: str | None = None,
    status: str | None = None,
    min_rating: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Launch]:
    stmt = select(Launch).order_by(Launch.launched_at.desc(), Launch.id.desc())
    if launchpad:
        stmt = stmt.where(Launch.launchpad == launchpad)
    if chain:
        stmt = stmt.where(Launch.chain == chain.upper())
    if status:
        stmt = stmt.where(Launch.status == status.upper())
    if min_rating is not None:
        stmt = stmt.where(Launch.rating >= min_rating)
    result = await session.execute(stmt.limit(limit).offset(offset))
    return list(result.scalars().all())


async def get_distinct_launchpads(session: AsyncSession) -> list[str]:
    stmt = select(Launch.launchpad).distinct().order_by(Launch.launchpad)
    result = await session.execute(stmt)
    return list(result.scalars().all())
