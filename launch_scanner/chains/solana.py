"""Solana chain adapter: JSON-RPC (public endpoint or Helius).

SPL balances are read through the owner's token accounts. Transfer history
is rebuilt from pre/post token balances of each transaction touching those
accounts, since SPL transfers move between token accounts, not owners.
"""

import logging
from datetime import datetime, timezone

from launch_scanner.chains.base import ChainClient, ChainFamily, SVM_DECIMALS, Transfer
from launch_scanner.config import settings
from launch_scanner.errors import ChainQueryError

logger = logging.getLogger(__name__)

SYSTEM_PROGRAM = "11111111111111111111111111111111"
INCINERATOR = "1nc1nerator11111111111111111111111111111111"

SOLANA_BURN_ADDRESSES = frozenset({SYSTEM_PROGRAM, INCINERATOR})

_BURN_INSTRUCTIONS = ("burn", "burnChecked")


def _is_missing_account(exc: ChainQueryError) -> bool:
    detail = exc.detail.lower()
    return "could not find" in detail or "invalid param" in detail


def _owner_amounts(balances: list[dict], mint: str) -> dict[str, int]:
    """Sum raw token amounts per owner for one mint."""
    out: dict[str, int] = {}
    for b in balances or []:
        if b.get("mint") != mint:
            continue
        owner = b.get("owner") or ""
        amount = int((b.get("uiTokenAmount") or {}).get("amount") or 0)
        out[owner] = out.get(owner, 0) + amount
    return out


def _has_burn_instruction(tx: dict) -> bool:
    message = (tx.get("transaction") or {}).get("message") or {}
    instructions = list(message.get("instructions") or [])
    for inner in (tx.get("meta") or {}).get("innerInstructions") or []:
        instructions.extend(inner.get("instructions") or [])
    for ix in instructions:
        parsed = ix.get("parsed")
        if isinstance(parsed, dict) and parsed.get("type") in _BURN_INSTRUCTIONS:
            return True
    return False


class SolanaChainClient(ChainClient):
    family = ChainFamily.SOLANA

    @property
    def burn_addresses(self) -> frozenset[str]:
        return SOLANA_BURN_ADDRESSES

    def canonical_address(self, address: str) -> str:
        # base58 is case-sensitive; no canonical re-casing
        return address.strip()

    async def _token_accounts(self, owner: str, mint: str) -> list[dict]:
        try:
            result = await self._rpc_call(
                "getTokenAccountsByOwner",
                [owner, {"mint": mint}, {"encoding": "jsonParsed"}],
            )
        except ChainQueryError as exc:
            if _is_missing_account(exc):
                return []
            raise
        return (result or {}).get("value") or []

    async def get_token_balance(
        self, owner: str, mint: str, at_block: int | None = None,
    ) -> int:
        accounts = await self._token_accounts(owner, mint)
        if not accounts:
            return 0

        if at_block is None:
            total = 0
            for acc in accounts:
                info = (((acc.get("account") or {}).get("data") or {}).get("parsed") or {}).get("info") or {}
                total += int((info.get("tokenAmount") or {}).get("amount") or 0)
            return total

        # Historical: last post-balance at or before the requested slot
        total = 0
        for acc in accounts:
            sigs = await self._rpc_call(
                "getSignaturesForAddress",
                [acc["pubkey"], {"limit": settings.solana_signature_limit}],
            ) or []
            for sig in sigs:
                if sig.get("slot", 0) > at_block or sig.get("err"):
                    continue
                tx = await self._get_transaction(sig["signature"])
                if tx:
                    post = _owner_amounts((tx.get("meta") or {}).get("postTokenBalances"), mint)
                    total += post.get(owner, 0)
                break
        return total

    async def get_total_supply(self, mint: str) -> tuple[int, int]:
        result = await self._rpc_call("getTokenSupply", [mint]) or {}
        value = result.get("value") or {}
        return int(value.get("amount") or 0), int(value.get("decimals", SVM_DECIMALS))

    async def is_contract(self, address: str) -> bool:
        result = await self._rpc_call(
            "getAccountInfo", [address, {"encoding": "base64"}],
        ) or {}
        value = result.get("value")
        return bool(value and value.get("executable"))

    async def _get_transaction(self, signature: str) -> dict | None:
        return await self._rpc_call(
            "getTransaction",
            [signature, {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0}],
        )

    async def get_outgoing_transfers(
        self, mint: str, from_address: str, since_block: int | None = None,
    ) -> list[Transfer]:
        accounts = await self._token_accounts(from_address, mint)
        seen: set[str] = set()
        transfers: list[Transfer] = []

        for acc in accounts:
            sigs = await self._rpc_call(
                "getSignaturesForAddress",
                [acc["pubkey"], {"limit": settings.solana_signature_limit}],
            ) or []
            for sig in sigs:
                signature = sig.get("signature")
                if not signature or signature in seen or sig.get("err"):
                    continue
                if since_block is not None and sig.get("slot", 0) < since_block:
                    continue
                seen.add(signature)

                tx = await self._get_transaction(signature)
                if not tx:
                    continue
                transfer = self._outgoing_from_tx(tx, mint, from_address, signature)
                if transfer:
                    transfers.append(transfer)

        transfers.sort(key=lambda t: t.block or 0)
        logger.debug("Solana: %d outgoing transfers of %s from %s", len(transfers), mint, from_address)
        return transfers

    @staticmethod
    def _outgoing_from_tx(tx: dict, mint: str, owner: str, signature: str) -> Transfer | None:
        meta = tx.get("meta") or {}
        pre = _owner_amounts(meta.get("preTokenBalances"), mint)
        post = _owner_amounts(meta.get("postTokenBalances"), mint)

        sent = pre.get(owner, 0) - post.get(owner, 0)
        if sent <= 0:
            return None

        receiver = None
        best = 0
        for other, after in post.items():
            if other == owner:
                continue
            gained = after - pre.get(other, 0)
            if gained > best:
                best, receiver = gained, other
        if receiver is None and _has_burn_instruction(tx):
            # SPL burn has no recipient account
            receiver = INCINERATOR

        block_time = tx.get("blockTime")
        return Transfer(
            to=receiver,
            amount=sent,
            timestamp=datetime.fromtimestamp(block_time, tz=timezone.utc).replace(tzinfo=None) if block_time else None,
            tx_hash=signature,
            block=tx.get("slot"),
        )
