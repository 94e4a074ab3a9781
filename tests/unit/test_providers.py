"""Unit tests for provider clients — payload parsing and error handling."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from aegis.config import (
    DexScreenerConfig,
    HeliusConfig,
    JupiterConfig,
    RiskConfig,
    USDC_MINT,
)
from aegis.errors import DataUnavailableError, ExecutionError, ProviderValidationError
from aegis.models import TokenBalance
from aegis.providers import DexScreenerAnalyst, HeliusClient, JupiterClient
from aegis.providers.dexscreener import best_pair, score_token
from aegis.providers.helius import parse_assets_by_owner
from aegis.providers.http import request_json
from aegis.providers.jupiter import parse_quote
from aegis.risk import PositionLedger

from conftest import JUP, SOL, WALLET, mock_http_session


# ---------------------------------------------------------------------------
# request_json
# ---------------------------------------------------------------------------


class TestRequestJson:
    @pytest.mark.asyncio
    async def test_returns_decoded_body(self) -> None:
        session, _ = mock_http_session(data={"ok": True})
        with patch("aegis.providers.http.aiohttp.ClientSession", return_value=session):
            with patch("aegis.providers.http.aiohttp.TCPConnector"):
                data = await request_json("GET", "https://x.test/a", params={"k": "v"})

        assert data == {"ok": True}
        args, kwargs = session.request.call_args
        assert args == ("GET", "https://x.test/a")
        assert kwargs["params"] == {"k": "v"}

    @pytest.mark.asyncio
    async def test_http_error_raises_unavailable(self) -> None:
        session, _ = mock_http_session(status=503, text="busy")
        with patch("aegis.providers.http.aiohttp.ClientSession", return_value=session):
            with patch("aegis.providers.http.aiohttp.TCPConnector"):
                with pytest.raises(DataUnavailableError, match="HTTP 503"):
                    await request_json("GET", "https://x.test/a")

    @pytest.mark.asyncio
    async def test_network_error_raises_unavailable(self) -> None:
        session = AsyncMock()
        session.request = MagicMock(side_effect=aiohttp.ClientConnectionError("refused"))
        session.__aenter__ = AsyncMock(return_value=session)
        session.__aexit__ = AsyncMock(return_value=None)
        with patch("aegis.providers.http.aiohttp.ClientSession", return_value=session):
            with patch("aegis.providers.http.aiohttp.TCPConnector"):
                with pytest.raises(DataUnavailableError, match="refused"):
                    await request_json("GET", "https://x.test/a")

    @pytest.mark.asyncio
    async def test_invalid_json_raises_unavailable(self) -> None:
        session, response = mock_http_session()
        response.json = AsyncMock(side_effect=ValueError("not json"))
        with patch("aegis.providers.http.aiohttp.ClientSession", return_value=session):
            with patch("aegis.providers.http.aiohttp.TCPConnector"):
                with pytest.raises(DataUnavailableError):
                    await request_json("GET", "https://x.test/a")


# ---------------------------------------------------------------------------
# Helius
# ---------------------------------------------------------------------------


def _das_result() -> dict:
    return {
        "total": 2,
        "items": [
            {
                "id": JUP,
                "interface": "FungibleToken",
                "token_info": {
                    "symbol": "JUP",
                    "balance": 2500000,
                    "decimals": 6,
                    "price_info": {"price_per_token": 1.5, "total_price": 3.75},
                },
            },
            {"id": "nft1", "interface": "V1_NFT"},
        ],
        "nativeBalance": {"lamports": 1500000000, "price_per_sol": 150.0, "total_price": 225.0},
    }


class TestHeliusParser:
    def test_parses_tokens_and_native_sol(self) -> None:
        balances = parse_assets_by_owner(_das_result())
        sol, jup = balances
        assert sol.asset_id == SOL
        assert sol.ui_amount == pytest.approx(1.5)
        assert sol.price_usd == 150.0
        assert jup == TokenBalance(
            asset_id=JUP, ui_amount=2.5, price_usd=1.5, value_usd=3.75, symbol="JUP", decimals=6
        )

    def test_unpriced_token(self) -> None:
        result = {"items": [{"id": "m", "token_info": {"balance": "7", "decimals": 0}}]}
        (balance,) = parse_assets_by_owner(result)
        assert balance.ui_amount == 7.0
        assert balance.price_usd is None

    @pytest.mark.parametrize(
        "result",
        [None, {}, {"items": "nope"}, {"items": [{"id": "m", "token_info": {"balance": "x"}}]}],
    )
    def test_malformed_raises(self, result: object) -> None:
        with pytest.raises(ProviderValidationError):
            parse_assets_by_owner(result)


class TestHeliusClient:
    @pytest.fixture()
    def client(self) -> HeliusClient:
        return HeliusClient(HeliusConfig(api_key="hk"), webhook_url="https://me.test/hook")

    @pytest.mark.asyncio
    async def test_get_balances(self, client: HeliusClient) -> None:
        mock = AsyncMock(return_value={"jsonrpc": "2.0", "result": _das_result()})
        with patch("aegis.providers.helius.request_json", mock):
            balances = await client.get_balances(WALLET)

        assert {b.asset_id for b in balances} == {SOL, JUP}
        kwargs = mock.call_args.kwargs
        assert kwargs["params"] == {"api-key": "hk"}
        assert kwargs["json"]["method"] == "getAssetsByOwner"
        assert kwargs["json"]["params"]["ownerAddress"] == WALLET
        assert kwargs["json"]["params"]["displayOptions"]["showNativeBalance"] is True

    @pytest.mark.asyncio
    async def test_rpc_error_raises(self, client: HeliusClient) -> None:
        mock = AsyncMock(return_value={"error": {"code": -32602, "message": "bad"}})
        with patch("aegis.providers.helius.request_json", mock):
            with pytest.raises(DataUnavailableError):
                await client.get_balances(WALLET)

    @pytest.mark.asyncio
    async def test_create_webhook(self, client: HeliusClient) -> None:
        mock = AsyncMock(return_value={"webhookID": "wh-1"})
        with patch("aegis.providers.helius.request_json", mock):
            assert await client.create_webhook(WALLET) == "wh-1"
        body = mock.call_args.kwargs["json"]
        assert body["accountAddresses"] == [WALLET]
        assert body["webhookURL"] == "https://me.test/hook"

    @pytest.mark.asyncio
    async def test_create_webhook_without_url(self) -> None:
        client = HeliusClient(HeliusConfig(api_key="hk"))
        with pytest.raises(DataUnavailableError):
            await client.create_webhook(WALLET)

    @pytest.mark.asyncio
    async def test_delete_webhook(self, client: HeliusClient) -> None:
        mock = AsyncMock(return_value=None)
        with patch("aegis.providers.helius.request_json", mock):
            await client.delete_webhook("wh-1")
        method, url = mock.call_args.args
        assert method == "DELETE"
        assert url == f"{client.webhook_api_url}/wh-1"
        assert mock.call_args.kwargs["params"] == {"api-key": "hk"}


# ---------------------------------------------------------------------------
# Jupiter
# ---------------------------------------------------------------------------


class TestJupiter:
    def test_parse_quote_keeps_integer_amounts(self, jupiter_quote: dict) -> None:
        jupiter_quote["outAmount"] = "340282366920938463463374607431768211455"
        quote = parse_quote(jupiter_quote, "ExactIn", 50)
        assert quote.input_amount == 1000000000
        assert quote.output_amount == 2**128 - 1
        assert quote.price_impact == pytest.approx(0.12)
        assert quote.route[0].protocol == "Whirlpool"
        assert quote.raw is jupiter_quote

    def test_parse_quote_malformed(self) -> None:
        with pytest.raises(ExecutionError):
            parse_quote({"inputMint": SOL}, "ExactIn", 50)

    @pytest.mark.asyncio
    async def test_quote_request(self, jupiter_quote: dict) -> None:
        client = JupiterClient(JupiterConfig(endpoint="https://jup.test/v1/", slippage_bps=75))
        mock = AsyncMock(return_value=jupiter_quote)
        with patch("aegis.providers.jupiter.request_json", mock):
            quote = await client.quote(SOL, USDC_MINT, 10**9, "ExactIn")

        args, kwargs = mock.call_args
        assert args == ("GET", "https://jup.test/v1/quote")
        assert kwargs["params"]["amount"] == "1000000000"
        assert kwargs["params"]["slippageBps"] == "75"
        assert kwargs["headers"] is None
        assert quote.output_amount == 150123456

    @pytest.mark.asyncio
    async def test_quote_failure_is_execution_error(self) -> None:
        client = JupiterClient(JupiterConfig())
        with patch(
            "aegis.providers.jupiter.request_json",
            AsyncMock(side_effect=DataUnavailableError("HTTP 400")),
        ):
            with pytest.raises(ExecutionError, match="Quote failed"):
                await client.quote(SOL, USDC_MINT, 1, "ExactIn")

    @pytest.mark.asyncio
    async def test_build(self, jupiter_quote: dict) -> None:
        client = JupiterClient(JupiterConfig(api_key="jk"))
        quote = parse_quote(jupiter_quote, "ExactIn", 50)
        mock = AsyncMock(
            return_value={"swapTransaction": "AQAAAbase64tx", "prioritizationFeeLamports": 1000}
        )
        with patch("aegis.providers.jupiter.request_json", mock):
            tx = await client.build(quote, WALLET)

        assert tx.serialized_transaction == "AQAAAbase64tx"
        assert tx.estimated_fee == 6000
        body = mock.call_args.kwargs["json"]
        assert body["quoteResponse"] is jupiter_quote
        assert body["userPublicKey"] == WALLET
        assert mock.call_args.kwargs["headers"] == {"x-api-key": "jk"}

    @pytest.mark.asyncio
    async def test_build_without_transaction(self, jupiter_quote: dict) -> None:
        client = JupiterClient(JupiterConfig())
        quote = parse_quote(jupiter_quote, "ExactIn", 50)
        with patch("aegis.providers.jupiter.request_json", AsyncMock(return_value={})):
            with pytest.raises(ExecutionError):
                await client.build(quote, WALLET)


# ---------------------------------------------------------------------------
# DexScreener
# ---------------------------------------------------------------------------


class TestDexScreenerHeuristics:
    def test_momentum_with_volume_is_buy(self, dexscreener_pair: dict) -> None:
        analysis = score_token(JUP, dexscreener_pair)
        assert analysis.symbol == "JUP"
        assert analysis.price == 1.5
        assert analysis.recommendation == "buy"
        assert analysis.confidence == 0.7
        assert analysis.risk_score == 2.0

    def test_thin_liquidity_is_risky(self, dexscreener_pair: dict) -> None:
        dexscreener_pair["liquidity"] = {"usd": 5000}
        dexscreener_pair["volume"] = {"h24": 1000}
        dexscreener_pair["priceChange"] = {"h24": -60}
        analysis = score_token(JUP, dexscreener_pair)
        assert analysis.risk_score == 10.0
        assert analysis.recommendation == "strong_sell"

    def test_best_pair_prefers_liquidity(self) -> None:
        pairs = [
            {"chainId": "solana", "liquidity": {"usd": 10}},
            {"chainId": "solana", "liquidity": {"usd": 1000}},
            {"chainId": "ethereum", "liquidity": {"usd": 10**9}},
        ]
        assert best_pair(pairs)["liquidity"]["usd"] == 1000
        assert best_pair([]) is None


class TestDexScreenerAnalyst:
    @pytest.fixture()
    def ledger(self) -> PositionLedger:
        provider = AsyncMock()
        provider.get_balances = AsyncMock(
            return_value=[
                TokenBalance(asset_id=SOL, ui_amount=5.0, price_usd=100.0, symbol="SOL"),
                TokenBalance(asset_id=USDC_MINT, ui_amount=500.0, price_usd=1.0, symbol="USDC"),
            ]
        )
        return PositionLedger(provider, RiskConfig())

    @pytest.fixture()
    def analyst(self, ledger: PositionLedger) -> DexScreenerAnalyst:
        return DexScreenerAnalyst(DexScreenerConfig(), ledger, RiskConfig(), watchlist=(JUP, SOL))

    @pytest.mark.asyncio
    async def test_analyze_token(self, analyst: DexScreenerAnalyst, dexscreener_pair: dict) -> None:
        mock = AsyncMock(return_value={"pairs": [dexscreener_pair]})
        with patch("aegis.providers.dexscreener.request_json", mock):
            analysis = await analyst.analyze_token(JUP)
        assert analysis is not None and analysis.recommendation == "buy"
        assert mock.call_args.args[1].endswith(f"/latest/dex/tokens/{JUP}")

    @pytest.mark.asyncio
    async def test_analyze_token_without_pairs(self, analyst: DexScreenerAnalyst) -> None:
        with patch("aegis.providers.dexscreener.request_json", AsyncMock(return_value={"pairs": None})):
            assert await analyst.analyze_token("unknown") is None

    @pytest.mark.asyncio
    async def test_analyze_token_unavailable(self, analyst: DexScreenerAnalyst) -> None:
        with patch(
            "aegis.providers.dexscreener.request_json",
            AsyncMock(side_effect=DataUnavailableError("HTTP 500")),
        ):
            assert await analyst.analyze_token(JUP) is None

    @pytest.mark.asyncio
    async def test_analyze_portfolio(self, analyst: DexScreenerAnalyst) -> None:
        analysis = await analyst.analyze_portfolio(WALLET)
        assert analysis is not None
        assert analysis.total_value == pytest.approx(1000.0)
        assert [h.symbol for h in analysis.holdings] == ["SOL", "USDC"]
        assert analysis.diversification_score == pytest.approx(50.0)
        assert analysis.risk_score == 50.0
        assert any("SOL" in s for s in analysis.suggestions)

    @pytest.mark.asyncio
    async def test_scan_opportunities(self, analyst: DexScreenerAnalyst, dexscreener_pair: dict) -> None:
        flat = dict(dexscreener_pair, priceChange={"h24": 0.5})
        mock = AsyncMock(side_effect=[{"pairs": [dexscreener_pair]}, {"pairs": [flat]}])
        with patch("aegis.providers.dexscreener.request_json", mock):
            opportunities = await analyst.scan_opportunities()
        assert len(opportunities) == 1
        assert opportunities[0].type == "trend"
        assert opportunities[0].asset == "JUP"
        assert opportunities[0].risk_level == "low"
