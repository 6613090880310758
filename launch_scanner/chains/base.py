"""Chain client contract shared by the EVM and Solana adapters.

All amounts crossing this boundary are raw base-unit integers. Scaling by
decimals happens once, in the caller, using the per-family constants below.
"""

import asyncio
import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

import httpx

from launch_scanner.errors import ChainQueryError

logger = logging.getLogger(__name__)

EVM_DECIMALS = 18
SVM_DECIMALS = 9

_RETRY_STATUS = (429, 502, 503, 504)


class ChainFamily(str, enum.Enum):
    EVM = "EVM"
    SOLANA = "SOLANA"

    @classmethod
    def from_tag(cls, tag: str | None) -> "ChainFamily | None":
        """Map a platform chain tag (BASE, SOLANA, ...) to a family."""
        if not tag:
            return None
        tag = tag.upper()
        if tag == "SOLANA":
            return cls.SOLANA
        if tag in ("BASE", "ETH", "ETHEREUM"):
            return cls.EVM
        return None


def default_decimals(family: ChainFamily) -> int:
    return SVM_DECIMALS if family is ChainFamily.SOLANA else EVM_DECIMALS


@dataclass
class Transfer:
    to: str | None
    amount: int
    timestamp: datetime | None = None
    tx_hash: str = ""
    block: int | None = None


class ChainClient(ABC):
    """JSON-RPC backed reader for one chain family."""

    family: ChainFamily

    def __init__(
        self,
        rpc_url: str,
        client: httpx.AsyncClient,
        max_retries: int = 3,
        timeout: float = 20.0,
    ) -> None:
        self._rpc_url = rpc_url
        self._client = client
        self._max_retries = max_retries
        self._timeout = timeout

    async def _rpc_call(self, method: str, params: list):
        """Make a JSON-RPC call with retry on 429/5xx and timeouts.

        Returns the ``result`` member (possibly None). Raises ChainQueryError
        once retries are exhausted or the node returns an error object.
        """
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        last_error = ""
        for attempt in range(self._max_retries + 1):
            try:
                resp = await self._client.post(
                    self._rpc_url, json=payload, timeout=self._timeout,
                )
                if resp.status_code in _RETRY_STATUS:
                    last_error = f"HTTP {resp.status_code}"
                    if attempt < self._max_retries:
                        wait = 2 * (2 ** attempt)  # 2s, 4s, 8s
                        logger.debug("%s RPC %d, retry in %ds", self.family.value, resp.status_code, wait)
                        await asyncio.sleep(wait)
                        continue
                    break
                resp.raise_for_status()
                try:
                    data = resp.json()
                except ValueError:
                    raise ChainQueryError(method, f"non-JSON response: {resp.text[:120]!r}") from None
                if not isinstance(data, dict):
                    raise ChainQueryError(method, f"unexpected response type {type(data).__name__}")
                if "error" in data:
                    raise ChainQueryError(method, str(data["error"]))
                return data.get("result")
            except httpx.HTTPError as exc:
                last_error = str(exc) or exc.__class__.__name__
                if attempt < self._max_retries:
                    await asyncio.sleep(2 * (2 ** attempt))
                    continue
        logger.warning("%s RPC exhausted retries for %s: %s", self.family.value, method, last_error)
        raise ChainQueryError(method, last_error or "exhausted retries")

    @property
    @abstractmethod
    def burn_addresses(self) -> frozenset[str]:
        """Addresses whose receipt of tokens counts as a burn."""
        ...

    @abstractmethod
    def canonical_address(self, address: str) -> str:
        """Apply the chain's canonical address casing."""
        ...

    @abstractmethod
    async def get_token_balance(
        self, owner: str, token: str, at_block: int | None = None,
    ) -> int:
        """Raw balance; 0 when the owner never held the token."""
        ...

    @abstractmethod
    async def get_total_supply(self, token: str) -> tuple[int, int]:
        """Return (raw total supply, decimals)."""
        ...

    @abstractmethod
    async def is_contract(self, address: str) -> bool:
        ...

    @abstractmethod
    async def get_outgoing_transfers(
        self, token: str, from_address: str, since_block: int | None = None,
    ) -> list[Transfer]:
        ...


def create_chain_client(family: ChainFamily, client: httpx.AsyncClient) -> ChainClient:
    """Build the configured adapter for a chain family."""
    from launch_scanner.chains.evm import EvmChainClient
    from launch_scanner.chains.solana import SolanaChainClient
    from launch_scanner.config import settings

    if family is ChainFamily.SOLANA:
        url = settings.solana_rpc_url
        if settings.helius_api_key:
            url = f"https://mainnet.helius-rpc.com/?api-key={settings.helius_api_key}"
        return SolanaChainClient(
            url, client,
            max_retries=settings.chain_max_retries,
            timeout=settings.chain_request_timeout_seconds,
        )

    url = settings.base_rpc_url
    if settings.base_rpc_api_key:
        url = f"{url.rstrip('/')}/{settings.base_rpc_api_key}"
    return EvmChainClient(
        url, client,
        max_retries=settings.chain_max_retries,
        timeout=settings.chain_request_timeout_seconds,
    )
