"""Virtuals launch -> NormalizedLaunch.

Steps per item: skip decision, variant/strategy selection, address
canonicalization, creator holdings (tokenomics breakdown for genesis sales,
on-chain balance once a token exists), description assembly with fetched
enrichment, and the storage-shaped result. On-chain failures only null the
affected tokenomics fields.
"""

import json
import logging
from datetime import datetime, timezone

import httpx

from launch_scanner.chains.base import ChainClient, ChainFamily, default_decimals
from launch_scanner.config import settings
from launch_scanner.content.fetcher import fetch_additional_content
from launch_scanner.errors import ChainQueryError, DataShapeError, ValidationError
from launch_scanner.ingestion.base import LaunchNormalizer
from launch_scanner.ingestion.models import NormalizedLaunch, SkipResult
from launch_scanner.launchpads.base import LaunchpadStrategy, LaunchStatus, LaunchVariant, LinkParams
from launch_scanner.launchpads.virtuals.client import LAUNCHPAD_NAME
from launch_scanner.launchpads.virtuals.links import strategy_for
from launch_scanner.launchpads.virtuals.models import VirtualsLaunchDetail
from launch_scanner.tokenomics.calculator import (
    format_large_amount,
    percentage_of,
    sum_allocations,
    to_raw_units,
)
from launch_scanner.tokenomics.stats import collect_creator_stats, lock_addresses_for

logger = logging.getLogger(__name__)

VIRTUALS_STATUSES = {
    "GENESIS": LaunchStatus.PRESALE,
    "UNDERGRAD": LaunchStatus.BONDING,
    "AVAILABLE": LaunchStatus.AVAILABLE,
}

DEVELOPER_ALLOCATION_NAMES = ("developer", "team")


class _Holdings:
    """Tokenomics computed for one launch; None means unknown."""

    def __init__(self, total_supply: int | None, decimals: int) -> None:
        self.total_supply = total_supply
        self.decimals = decimals
        self.initial: int | None = None
        self.held: int | None = None
        self.percentage = None
        self.movement_details: str | None = None
        self.sent_to_zero: bool | None = None

    @property
    def for_sale(self) -> int | None:
        if self.initial is None or self.total_supply is None:
            return None
        return max(self.total_supply - self.initial, 0)


def _naive_utc(dt: datetime | None) -> datetime | None:
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _utc_string(dt: datetime | None) -> str:
    return dt.strftime("%a, %d %b %Y %H:%M UTC") if dt else "unknown"


class VirtualsNormalizer(LaunchNormalizer):
    def __init__(
        self,
        chains: dict[ChainFamily, ChainClient],
        client: httpx.AsyncClient,
        allowed_genesis_states: list[str] | None = None,
    ) -> None:
        self._chains = chains
        self._client = client
        states = allowed_genesis_states if allowed_genesis_states is not None else settings.genesis_allowed_states
        self._allowed_states = {s.upper() for s in states}

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def classify(self, detail: VirtualsLaunchDetail) -> LaunchVariant | SkipResult:
        tag = (detail.status or "").upper()
        status = VIRTUALS_STATUSES.get(tag)
        if status is None:
            return SkipResult(reason=f"Unsupported status {tag or 'missing'!r}")

        family = ChainFamily.from_tag(detail.chain)
        if family is None or family not in self._chains:
            return SkipResult(reason=f"Unsupported chain {detail.chain!r}")

        if status is LaunchStatus.PRESALE and detail.genesis is not None:
            state = (detail.genesis.status or "").upper()
            if state not in self._allowed_states:
                return SkipResult(
                    reason=f"Genesis sale state {state or 'missing'!r} is not one of "
                    f"{', '.join(sorted(self._allowed_states))}"
                )
        return LaunchVariant(family=family, status=status)

    def _canonical(self, chain: ChainClient, address: str | None, label: str) -> str | None:
        if not address:
            return None
        try:
            return chain.canonical_address(address)
        except ValidationError as exc:
            logger.warning("Dropping %s address: %s", label, exc)
            return None

    # ------------------------------------------------------------------
    # Holdings
    # ------------------------------------------------------------------

    async def _compute_holdings(
        self,
        detail: VirtualsLaunchDetail,
        variant: LaunchVariant,
        strategy: LaunchpadStrategy,
        chain: ChainClient,
        creator: str | None,
        token: str | None,
        pool: str | None,
    ) -> _Holdings:
        decimals = default_decimals(variant.family)
        fixed_supply = strategy.fixed_total_supply
        holdings = _Holdings(to_raw_units(fixed_supply, decimals) if fixed_supply else None, decimals)

        if not variant.on_chain:
            entries = [t.model_dump(by_alias=True) for t in detail.tokenomics or []]
            has_developer = any(
                (e.get("name") or "").lower() in DEVELOPER_ALLOCATION_NAMES or e.get("isDefault")
                for e in entries
            )
            if has_developer:
                holdings.initial = sum_allocations(entries, DEVELOPER_ALLOCATION_NAMES)
                if holdings.total_supply:
                    holdings.percentage = percentage_of(holdings.initial, holdings.total_supply)
            return holdings

        if not (token and creator):
            logger.info("%s: no token/creator address yet, skipping on-chain holdings", detail.name)
            return holdings

        # The mint's own decimals scale the fixed whole-token supply
        try:
            supply, holdings.decimals = await chain.get_total_supply(token)
            holdings.total_supply = to_raw_units(fixed_supply, holdings.decimals) if fixed_supply else supply
        except (ChainQueryError, DataShapeError) as exc:
            logger.warning("%s: token decimals unavailable, assuming %d (%s)", detail.name, decimals, exc)
            if holdings.total_supply is None:
                return holdings

        try:
            stats = await collect_creator_stats(
                chain, token, creator,
                decimals=holdings.decimals,
                total_supply=holdings.total_supply,
                pool_address=pool,
                lock_addresses=lock_addresses_for(variant.family),
                threshold=settings.movement_threshold,
            )
        except (ChainQueryError, DataShapeError) as exc:
            logger.warning("%s: on-chain holdings unavailable (%s)", detail.name, exc)
            return holdings

        # The current balance is the best available estimate of the initial allocation
        holdings.held = stats.tokens_held
        holdings.initial = stats.tokens_held
        holdings.percentage = stats.holding_percentage
        holdings.movement_details = stats.movement_details
        holdings.sent_to_zero = stats.sent_to_zero
        return holdings

    # ------------------------------------------------------------------
    # Description
    # ------------------------------------------------------------------

    def _build_description(
        self,
        detail: VirtualsLaunchDetail,
        strategy: LaunchpadStrategy,
        launch_url: str,
        creator: str | None,
        token: str | None,
        pool: str | None,
        holdings: _Holdings,
        fetched: str,
    ) -> str:
        lines = [
            f"# {detail.name}",
            f"URL on launchpad: {launch_url}",
            f"Launched at: {_utc_string(detail.created_at)}",
            f"Launched through the launchpad: {LAUNCHPAD_NAME}",
            f"Launch status: {(detail.status or '').upper()}",
        ]
        if detail.lp_create_tx:
            lines.append(f"Launched in transaction: {strategy.transaction_url(detail.lp_create_tx)}")

        lines += ["", "## Token details and tokenomics"]
        lines.append(f"Token address: {token or 'not deployed yet'}")
        lines.append(f"Token symbol: ${detail.symbol or 'N/A'}")
        if holdings.total_supply is not None:
            lines.append(f"Token supply: {format_large_amount(holdings.total_supply, holdings.decimals)}")
        if token:
            lines.append(f"Top holders: {strategy.holders_url(token)}")
        if pool:
            lines.append(f"Liquidity contract: {strategy.pool_url(pool)}")
        if holdings.initial is not None:
            share = f" ({holdings.percentage.formatted} of token supply)" if holdings.percentage else ""
            lines.append(
                f"Creator initial number of tokens: "
                f"{format_large_amount(holdings.initial, holdings.decimals)}{share}"
            )
        if holdings.movement_details:
            lines += ["", "### Creator token movements", holdings.movement_details]

        if creator:
            lines += ["", "## Creator info", f"Creator address: {creator}"]
            lines += [f"{label}: {url}" for label, url in strategy.creator_links(creator)]

        platform_text = detail.description or ""
        if detail.overview:
            platform_text += f"\n\n## Overview\n{detail.overview}"
        if platform_text.strip():
            lines += ["", "## Description from the launchpad", platform_text.strip()]

        lines += [
            "",
            "<socials_info>",
            json.dumps(detail.socials or {}, indent=2),
            "</socials_info>",
            "",
            "<creator_info>",
            json.dumps(detail.creator.model_dump(by_alias=True, mode="json") if detail.creator else {}, indent=2),
            "</creator_info>",
        ]
        if fetched:
            lines += ["", "## Additional information extracted from relevant pages", fetched]

        lines += [
            "",
            "<full_details>",
            json.dumps(detail.model_dump(by_alias=True, mode="json"), indent=2),
            "</full_details>",
        ]
        return "\n".join(lines).strip()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def normalize(self, detail: VirtualsLaunchDetail) -> NormalizedLaunch | SkipResult:
        variant = self.classify(detail)
        if isinstance(variant, SkipResult):
            logger.info("Skipping %s (%s): %s", detail.name, detail.id, variant.reason)
            return variant

        strategy = strategy_for(variant.family)
        chain = self._chains[variant.family]

        creator = self._canonical(chain, detail.wallet_address, "creator")
        token = None
        if variant.on_chain:
            token = self._canonical(chain, detail.token_address or detail.pre_token, "token")
        pool = self._canonical(chain, detail.lp_address or detail.pre_token_pair, "pool")

        params = LinkParams(
            creator_address=creator,
            token_address=token,
            uid=detail.uid,
            launchpad_specific_id=str(detail.id),
        )
        launch_url = strategy.launch_url(params)

        holdings = await self._compute_holdings(detail, variant, strategy, chain, creator, token, pool)

        platform_text = "\n\n".join(t for t in (detail.description, detail.overview) if t)
        fetched = await fetch_additional_content(platform_text, strategy.custom_links(params), self._client)

        description = self._build_description(
            detail, strategy, launch_url, creator, token, pool, holdings, fetched,
        )

        return NormalizedLaunch(
            launchpad=LAUNCHPAD_NAME,
            launchpad_specific_id=str(detail.id),
            title=f"{detail.name} (${detail.symbol or 'N/A'})",
            url=launch_url,
            description=description,
            image_url=detail.image.best_url() if detail.image else None,
            chain=(detail.chain or "").upper(),
            status=(detail.status or "").upper(),
            launched_at=_naive_utc(detail.created_at),
            creator_address=creator,
            token_address=token,
            creator_tokens_held=holdings.held,
            creator_initial_tokens_held=holdings.initial,
            tokens_for_sale=holdings.for_sale,
            total_token_supply=holdings.total_supply,
            creator_token_holding_percentage=holdings.percentage.percent if holdings.percentage else None,
            creator_token_movement_details=holdings.movement_details,
            main_selling_address=pool,
            sent_to_zero_address=holdings.sent_to_zero,
        )
