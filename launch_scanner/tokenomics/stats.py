"""Creator token statistics, shared by ingestion and the stats refresh path."""

import logging
from dataclasses import dataclass

from launch_scanner.chains.base import ChainClient, ChainFamily
from launch_scanner.config import settings
from launch_scanner.tokenomics.calculator import (
    Percentage,
    classify_outgoing_transfers,
    format_large_amount,
    percentage_of,
)

logger = logging.getLogger(__name__)


def lock_addresses_for(family: ChainFamily) -> tuple[str, ...]:
    if family is ChainFamily.SOLANA:
        return tuple(settings.solana_lock_addresses)
    return tuple(settings.evm_lock_addresses)


@dataclass
class CreatorTokenStats:
    tokens_held: int
    holding_percentage: Percentage | None
    movement_details: str
    sent_to_zero: bool


async def collect_creator_stats(
    chain: ChainClient,
    token: str,
    creator: str,
    *,
    decimals: int,
    total_supply: int,
    pool_address: str | None = None,
    lock_addresses: tuple[str, ...] = (),
    threshold: float = 0.05,
    since_block: int | None = None,
) -> CreatorTokenStats:
    """Current creator balance, share of supply and outgoing movements.

    Raises ChainQueryError; callers decide whether to degrade.
    """
    held = await chain.get_token_balance(creator, token)
    transfers = await chain.get_outgoing_transfers(token, creator, since_block)

    # destinations that are neither burn/lock/pool: check for deployed code
    known = {a.lower() for a in chain.burn_addresses} | {a.lower() for a in lock_addresses}
    if pool_address:
        known.add(pool_address.lower())
    contracts: set[str] = set()
    for dest in {t.to for t in transfers if t.to and t.to.lower() not in known}:
        if await chain.is_contract(dest):
            contracts.add(dest)

    movements = classify_outgoing_transfers(
        transfers,
        holder_balance=held + sum(t.amount for t in transfers),
        burn_addresses=chain.burn_addresses,
        lock_addresses=lock_addresses,
        sale_addresses=(pool_address,) if pool_address else (),
        contract_addresses=contracts,
        threshold=threshold,
        decimals=decimals,
    )
    details = movements.details or "No outgoing creator transfers detected"

    logger.info(
        "Creator %s holds %s of %s (%d outgoing transfers)",
        creator, format_large_amount(held, decimals), token, len(transfers),
    )
    return CreatorTokenStats(
        tokens_held=held,
        holding_percentage=percentage_of(held, total_supply),
        movement_details=details,
        sent_to_zero=movements.sent_to_zero,
    )
