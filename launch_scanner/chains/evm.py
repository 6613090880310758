"""EVM (Base) chain adapter: plain JSON-RPC over httpx.

Balances and supply come from eth_call against the ERC-20 selectors,
transfer history from eth_getLogs on the Transfer topic, chunked so public
RPCs accept the block range.
"""

import logging
from datetime import datetime, timezone

from eth_utils import is_address, to_checksum_address

from launch_scanner.chains.base import ChainClient, ChainFamily, EVM_DECIMALS, Transfer
from launch_scanner.config import settings
from launch_scanner.errors import DataShapeError, ValidationError

logger = logging.getLogger(__name__)

# ERC-20 function selectors
BALANCE_OF_SELECTOR = "0x70a08231"
TOTAL_SUPPLY_SELECTOR = "0x18160ddd"
DECIMALS_SELECTOR = "0x313ce567"

# ERC-20 Transfer(address,address,uint256) event topic
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
DEAD_ADDRESS = "0x000000000000000000000000000000000000dEaD"

EVM_BURN_ADDRESSES = frozenset({ZERO_ADDRESS.lower(), DEAD_ADDRESS.lower()})


def _pad_address(address: str) -> str:
    """Left-pad a 20-byte address to a 32-byte word (no 0x prefix)."""
    return address.lower().removeprefix("0x").rjust(64, "0")


def _parse_address_from_topic(topic: str) -> str:
    """Extract 20-byte address from 32-byte log topic."""
    if not topic or len(topic) < 66:
        return ""
    return "0x" + topic[-40:]


def _hex_to_int(value: str | None) -> int:
    if not value or value in ("0x", "0x0"):
        return 0
    try:
        return int(value, 16)
    except (TypeError, ValueError):
        raise DataShapeError("Expected a hex quantity", value) from None


def _block_tag(at_block: int | None) -> str:
    return hex(at_block) if at_block is not None else "latest"


class EvmChainClient(ChainClient):
    family = ChainFamily.EVM

    @property
    def burn_addresses(self) -> frozenset[str]:
        return EVM_BURN_ADDRESSES

    def canonical_address(self, address: str) -> str:
        if not is_address(address):
            raise ValidationError(f"Not an EVM address: {address!r}")
        return to_checksum_address(address)

    async def _eth_call(self, token: str, data: str, at_block: int | None = None) -> str | None:
        return await self._rpc_call(
            "eth_call", [{"to": token, "data": data}, _block_tag(at_block)],
        )

    async def get_token_balance(
        self, owner: str, token: str, at_block: int | None = None,
    ) -> int:
        result = await self._eth_call(
            token, BALANCE_OF_SELECTOR + _pad_address(owner), at_block,
        )
        # "0x" means no code at the token address, treat as never held
        return _hex_to_int(result)

    async def get_total_supply(self, token: str) -> tuple[int, int]:
        supply = _hex_to_int(await self._eth_call(token, TOTAL_SUPPLY_SELECTOR))
        raw_decimals = await self._eth_call(token, DECIMALS_SELECTOR)
        decimals = _hex_to_int(raw_decimals) if raw_decimals not in (None, "0x") else EVM_DECIMALS
        return supply, decimals

    async def is_contract(self, address: str) -> bool:
        code = await self._rpc_call("eth_getCode", [address, "latest"])
        return code not in (None, "0x", "0x0")

    async def _latest_block(self) -> int:
        return _hex_to_int(await self._rpc_call("eth_blockNumber", []))

    async def _block_timestamp(self, block: int) -> datetime | None:
        header = await self._rpc_call("eth_getBlockByNumber", [hex(block), False])
        if not header or not header.get("timestamp"):
            return None
        return datetime.fromtimestamp(_hex_to_int(header["timestamp"]), tz=timezone.utc).replace(tzinfo=None)

    async def get_outgoing_transfers(
        self, token: str, from_address: str, since_block: int | None = None,
    ) -> list[Transfer]:
        latest = await self._latest_block()
        start = since_block if since_block is not None else max(
            0, latest - settings.transfer_lookback_blocks,
        )
        chunk = max(1, settings.transfer_log_chunk_blocks)
        from_topic = "0x" + _pad_address(from_address)

        transfers: list[Transfer] = []
        block = start
        while block <= latest:
            end = min(block + chunk - 1, latest)
            logs = await self._rpc_call("eth_getLogs", [{
                "address": token,
                "fromBlock": hex(block),
                "toBlock": hex(end),
                "topics": [TRANSFER_TOPIC, from_topic],
            }]) or []
            for log in logs:
                topics = log.get("topics") or []
                if len(topics) < 3:
                    continue
                transfers.append(Transfer(
                    to=_parse_address_from_topic(topics[2]) or None,
                    amount=_hex_to_int(log.get("data")),
                    tx_hash=log.get("transactionHash", ""),
                    block=_hex_to_int(log.get("blockNumber")),
                ))
            block = end + 1

        timestamps: dict[int, datetime | None] = {}
        for t in transfers:
            if t.block is None:
                continue
            if t.block not in timestamps:
                timestamps[t.block] = await self._block_timestamp(t.block)
            t.timestamp = timestamps[t.block]

        logger.debug("EVM: %d outgoing transfers of %s from %s", len(transfers), token, from_address)
        return transfers
