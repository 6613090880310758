"""Tests for the EVM and Solana JSON-RPC chain adapters."""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from launch_scanner.chains.base import ChainFamily, default_decimals
from launch_scanner.chains.evm import TRANSFER_TOPIC, EvmChainClient
from launch_scanner.chains.solana import INCINERATOR, SolanaChainClient
from launch_scanner.config import settings
from launch_scanner.errors import ChainQueryError, DataShapeError, ValidationError

TOKEN = "0x2222222222222222222222222222222222222222"
CREATOR = "0x1111111111111111111111111111111111111111"
RECEIVER = "0x9999999999999999999999999999999999999999"


def _rpc_client(results: dict, calls: list | None = None) -> httpx.AsyncClient:
    """Answer JSON-RPC by method name; a callable result gets the params."""

    def handler(request):
        body = json.loads(request.content)
        if calls is not None:
            calls.append(body)
        result = results[body["method"]]
        if callable(result):
            result = result(body["params"])
        if isinstance(result, httpx.Response):
            return result
        if isinstance(result, dict) and "error" in result:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": result["error"]})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_family_from_tag():
    assert ChainFamily.from_tag("base") is ChainFamily.EVM
    assert ChainFamily.from_tag("SOLANA") is ChainFamily.SOLANA
    assert ChainFamily.from_tag("TON") is None
    assert ChainFamily.from_tag(None) is None
    assert default_decimals(ChainFamily.SOLANA) == 9
    assert default_decimals(ChainFamily.EVM) == 18


class TestEvmChainClient:
    def test_canonical_address_checksums(self):
        chain = EvmChainClient("http://rpc", httpx.AsyncClient())
        lower = "0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed"
        assert chain.canonical_address(lower) == "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"

    def test_canonical_address_rejects_garbage(self):
        chain = EvmChainClient("http://rpc", httpx.AsyncClient())
        with pytest.raises(ValidationError):
            chain.canonical_address("not-an-address")

    @pytest.mark.asyncio
    async def test_balance_and_supply(self):
        supply = 1_000_000_000 * 10**18

        def eth_call(params):
            data = params[0]["data"]
            if data.startswith("0x70a08231"):
                assert data.endswith(CREATOR[2:])
                return hex(150_000_000 * 10**18)
            if data == "0x18160ddd":
                return hex(supply)
            return hex(18)

        async with _rpc_client({"eth_call": eth_call}) as client:
            chain = EvmChainClient("http://rpc", client)
            assert await chain.get_token_balance(CREATOR, TOKEN) == 150_000_000 * 10**18
            assert await chain.get_total_supply(TOKEN) == (supply, 18)

    @pytest.mark.asyncio
    async def test_balance_of_missing_contract_is_zero(self):
        async with _rpc_client({"eth_call": "0x"}) as client:
            chain = EvmChainClient("http://rpc", client)
            assert await chain.get_token_balance(CREATOR, TOKEN) == 0

    @pytest.mark.asyncio
    async def test_is_contract(self):
        async with _rpc_client({"eth_getCode": lambda p: "0x6080" if p[0] == TOKEN else "0x"}) as client:
            chain = EvmChainClient("http://rpc", client)
            assert await chain.is_contract(TOKEN) is True
            assert await chain.is_contract(CREATOR) is False

    @pytest.mark.asyncio
    async def test_outgoing_transfers_chunked(self, monkeypatch):
        monkeypatch.setattr(settings, "transfer_lookback_blocks", 25_000)
        monkeypatch.setattr(settings, "transfer_log_chunk_blocks", 10_000)
        ranges = []

        def get_logs(params):
            flt = params[0]
            assert flt["topics"][0] == TRANSFER_TOPIC
            assert flt["topics"][1] == "0x" + CREATOR[2:].rjust(64, "0")
            ranges.append((int(flt["fromBlock"], 16), int(flt["toBlock"], 16)))
            if len(ranges) > 1:
                return []
            return [{
                "topics": [TRANSFER_TOPIC, flt["topics"][1], "0x" + RECEIVER[2:].rjust(64, "0")],
                "data": hex(5 * 10**18),
                "transactionHash": "0xabc",
                "blockNumber": hex(6000),
            }]

        async with _rpc_client({
            "eth_blockNumber": hex(30_000),
            "eth_getLogs": get_logs,
            "eth_getBlockByNumber": {"timestamp": hex(1_700_000_000)},
        }) as client:
            chain = EvmChainClient("http://rpc", client)
            transfers = await chain.get_outgoing_transfers(TOKEN, CREATOR)

        assert ranges == [(5000, 14_999), (15_000, 24_999), (25_000, 30_000)]
        assert len(transfers) == 1
        assert transfers[0].to == RECEIVER
        assert transfers[0].amount == 5 * 10**18
        assert transfers[0].tx_hash == "0xabc"
        assert transfers[0].timestamp.year == 2023

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        attempts = {"n": 0}

        def block_number(params):
            attempts["n"] += 1
            if attempts["n"] < 3:
                return httpx.Response(503)
            return hex(42)

        with patch("launch_scanner.chains.base.asyncio.sleep", new_callable=AsyncMock) as sleep:
            async with _rpc_client({"eth_blockNumber": block_number}) as client:
                chain = EvmChainClient("http://rpc", client, max_retries=3)
                assert await chain._latest_block() == 42
        assert [c.args[0] for c in sleep.await_args_list] == [2, 4]

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise(self):
        with patch("launch_scanner.chains.base.asyncio.sleep", new_callable=AsyncMock):
            async with _rpc_client({"eth_blockNumber": lambda p: httpx.Response(429)}) as client:
                chain = EvmChainClient("http://rpc", client, max_retries=2)
                with pytest.raises(ChainQueryError):
                    await chain._latest_block()

    @pytest.mark.asyncio
    async def test_node_error_raises(self):
        async with _rpc_client({"eth_call": {"error": {"code": -32000, "message": "execution reverted"}}}) as client:
            chain = EvmChainClient("http://rpc", client)
            with pytest.raises(ChainQueryError, match="execution reverted"):
                await chain.get_token_balance(CREATOR, TOKEN)

    @pytest.mark.asyncio
    async def test_html_gateway_page_raises_chain_error(self):
        page = httpx.Response(200, text="<html>Bad gateway</html>")
        async with _rpc_client({"eth_call": lambda p: page}) as client:
            chain = EvmChainClient("http://rpc", client)
            with pytest.raises(ChainQueryError, match="non-JSON"):
                await chain.get_token_balance(CREATOR, TOKEN)

    @pytest.mark.asyncio
    async def test_non_object_reply_raises_chain_error(self):
        async with _rpc_client({"eth_call": lambda p: httpx.Response(200, json=["unexpected"])}) as client:
            chain = EvmChainClient("http://rpc", client)
            with pytest.raises(ChainQueryError, match="list"):
                await chain.get_token_balance(CREATOR, TOKEN)

    @pytest.mark.asyncio
    async def test_garbage_quantity_raises_shape_error(self):
        async with _rpc_client({"eth_blockNumber": "latest-ish"}) as client:
            chain = EvmChainClient("http://rpc", client)
            with pytest.raises(DataShapeError):
                await chain._latest_block()


MINT = "So1anaMint111111111111111111111111111111111"
OWNER = "Creator1111111111111111111111111111111111111"
BUYER = "Buyer111111111111111111111111111111111111111"


def _token_account(amount: int) -> dict:
    return {
        "pubkey": "TokenAcct1111111111111111111111111111111111",
        "account": {"data": {"parsed": {"info": {"tokenAmount": {"amount": str(amount)}}}}},
    }


def _balance(owner: str, amount: int) -> dict:
    return {"mint": MINT, "owner": owner, "uiTokenAmount": {"amount": str(amount)}}


class TestSolanaChainClient:
    @pytest.mark.asyncio
    async def test_balance_sums_token_accounts(self):
        async with _rpc_client({
            "getTokenAccountsByOwner": {"value": [_token_account(700), _token_account(300)]},
        }) as client:
            chain = SolanaChainClient("http://rpc", client)
            assert await chain.get_token_balance(OWNER, MINT) == 1000

    @pytest.mark.asyncio
    async def test_missing_account_means_zero(self):
        async with _rpc_client({
            "getTokenAccountsByOwner": {"error": {"code": -32602, "message": "Invalid param: could not find mint"}},
        }) as client:
            chain = SolanaChainClient("http://rpc", client)
            assert await chain.get_token_balance(OWNER, MINT) == 0

    @pytest.mark.asyncio
    async def test_total_supply(self):
        async with _rpc_client({"getTokenSupply": {"value": {"amount": "1000000000000000000", "decimals": 9}}}) as client:
            chain = SolanaChainClient("http://rpc", client)
            assert await chain.get_total_supply(MINT) == (10**18, 9)

    @pytest.mark.asyncio
    async def test_is_contract_checks_executable(self):
        async with _rpc_client({"getAccountInfo": {"value": {"executable": True}}}) as client:
            chain = SolanaChainClient("http://rpc", client)
            assert await chain.is_contract("Prog111") is True

    @pytest.mark.asyncio
    async def test_outgoing_transfers_from_balance_diffs(self):
        txs = {
            "sig-sale": {
                "slot": 20,
                "blockTime": 1_700_000_000,
                "meta": {
                    "preTokenBalances": [_balance(OWNER, 1000), _balance(BUYER, 0)],
                    "postTokenBalances": [_balance(OWNER, 600), _balance(BUYER, 400)],
                },
            },
            "sig-burn": {
                "slot": 30,
                "meta": {
                    "preTokenBalances": [_balance(OWNER, 600)],
                    "postTokenBalances": [_balance(OWNER, 500)],
                },
                "transaction": {"message": {"instructions": [{"parsed": {"type": "burnChecked"}}]}},
            },
            "sig-receive": {
                "slot": 10,
                "meta": {
                    "preTokenBalances": [_balance(OWNER, 0)],
                    "postTokenBalances": [_balance(OWNER, 1000)],
                },
            },
        }
        async with _rpc_client({
            "getTokenAccountsByOwner": {"value": [_token_account(500)]},
            "getSignaturesForAddress": [
                {"signature": "sig-burn", "slot": 30},
                {"signature": "sig-sale", "slot": 20},
                {"signature": "sig-receive", "slot": 10},
                {"signature": "sig-failed", "slot": 5, "err": {"InstructionError": []}},
            ],
            "getTransaction": lambda p: txs[p[0]],
        }) as client:
            chain = SolanaChainClient("http://rpc", client)
            transfers = await chain.get_outgoing_transfers(MINT, OWNER)

        assert [(t.to, t.amount, t.tx_hash) for t in transfers] == [
            (BUYER, 400, "sig-sale"),
            (INCINERATOR, 100, "sig-burn"),
        ]
        assert transfers[0].timestamp is not None
        assert INCINERATOR in chain.burn_addresses
