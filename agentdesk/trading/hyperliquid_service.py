"""
Hyperliquid Service
===================
Market data and (simulated) order execution against Hyperliquid.

Info API : POST https://api.hyperliquid.xyz/info

Request types used
------------------
- ``allMids``          – mid price per coin
- ``meta``             – perpetual universe (max leverage, delisted flag)
- ``metaAndAssetCtxs`` – universe plus 24h context (prevDayPx, volume, funding, OI)
- ``clearinghouseState`` – open positions for a wallet

Orders are not signed or sent.  ``place_order`` fills at the current mid
(nudged 0.1% against the taker) and charges a 0.02% fee so the rest of
the trading stack can run end-to-end.
"""

from __future__ import annotations

import logging
import random
import string
from typing import Any, Dict, List, Optional

import httpx

from cache import market_cache

from agentdesk.analyzers.models import AgentConfig

from .models import (
    ExchangePosition,
    Execution,
    MarketData,
    OrderRequest,
    OrderResult,
    TradingPair,
    now_ms,
)
from .trading_history import TradingHistoryService, timeframe_ms

logger = logging.getLogger(__name__)

INFO_URL = "https://api.hyperliquid.xyz/info"
POPULAR_PAIRS = ["BTC-USD", "ETH-USD", "SOL-USD", "AVAX-USD"]
FALLBACK_PAIRS = [
    TradingPair("BTC-USD", "BTC", 50),
    TradingPair("ETH-USD", "ETH", 50),
    TradingPair("SOL-USD", "SOL", 20),
    TradingPair("AVAX-USD", "AVAX", 20),
]
PAIRS_TTL = 300

SLIPPAGE = 0.001
FEE_RATE = 0.0002

_BASE36 = string.digits + string.ascii_lowercase


def coin_of(symbol: str) -> str:
    """``"BTC-USD"`` -> ``"BTC"``."""
    return symbol.replace("-USD", "")


def _pair_rank(pair: TradingPair):
    if pair.symbol in POPULAR_PAIRS:
        return (0, POPULAR_PAIRS.index(pair.symbol), "")
    return (1, 0, pair.symbol)


class HyperliquidService:

    def __init__(
        self,
        history: Optional[TradingHistoryService] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rng: Optional[random.Random] = None,
        agent_store: Optional[Any] = None,
    ):
        self.history = history or TradingHistoryService()
        self.agent_store = agent_store
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._rng = rng or random.Random()

    # ── transport ───────────────────────────────────────────────

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=10, transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _info(self, payload: Dict[str, Any]) -> Any:
        resp = await self._get_client().post(INFO_URL, json=payload)
        resp.raise_for_status()
        return resp.json()

    # ── market data ─────────────────────────────────────────────

    async def get_mids(self) -> Dict[str, float]:
        """Mid price per coin.  Raises on transport / HTTP errors."""
        data = await self._info({"type": "allMids"})
        return {coin: float(px) for coin, px in (data or {}).items()}

    async def get_market_data(self, symbols: List[str]) -> List[MarketData]:
        try:
            mids = await self.get_mids()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Hyperliquid allMids failed, using mock market data: %s", exc)
            return [self._mock_market_data(s) for s in symbols]

        contexts = await self._asset_contexts()
        out: List[MarketData] = []
        for symbol in symbols:
            coin = coin_of(symbol)
            price = mids.get(coin, 0.0)
            ctx = contexts.get(coin, {})
            prev = float(ctx.get("prevDayPx") or 0)
            out.append(MarketData(
                symbol=symbol,
                price=price,
                change_24h=(price - prev) / prev * 100 if prev and price else 0.0,
                volume_24h=float(ctx.get("dayNtlVlm") or 0),
                funding=float(ctx.get("funding") or 0),
                open_interest=float(ctx.get("openInterest") or 0),
            ))
        return out

    async def get_current_price(self, symbol: str) -> float:
        data = await self.get_market_data([symbol])
        return data[0].price if data else 0.0

    async def _asset_contexts(self) -> Dict[str, Dict[str, Any]]:
        """24h context per coin; empty when the call fails."""
        try:
            meta, ctxs = await self._info({"type": "metaAndAssetCtxs"})
        except (httpx.HTTPError, ValueError, TypeError) as exc:
            logger.warning("Hyperliquid metaAndAssetCtxs failed: %s", exc)
            return {}
        universe = meta.get("universe") or []
        return {asset["name"]: ctx for asset, ctx in zip(universe, ctxs)}

    def _mock_market_data(self, symbol: str) -> MarketData:
        r = self._rng.random
        return MarketData(
            symbol=symbol,
            price=r() * 50000 + 20000,
            change_24h=(r() - 0.5) * 10,
            volume_24h=r() * 1_000_000,
            funding=(r() - 0.5) * 0.01,
            open_interest=r() * 10_000_000,
        )

    @market_cache.cached(ttl=PAIRS_TTL, key_prefix="hyperliquid:pairs")
    async def get_trading_pairs(self) -> List[TradingPair]:
        """Listed perpetuals, majors first, then alphabetical."""
        try:
            meta = await self._info({"type": "meta"})
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Failed to get trading pairs: %s", exc)
            return list(FALLBACK_PAIRS)

        pairs = [
            TradingPair(
                symbol=f"{asset['name']}-USD",
                name=asset["name"],
                max_leverage=asset.get("maxLeverage", 1),
                is_isolated_only=bool(asset.get("onlyIsolated", False)),
            )
            for asset in meta.get("universe", [])
            if not asset.get("isDelisted")
        ]
        return sorted(pairs, key=_pair_rank)

    async def get_positions(self, wallet_address: str) -> List[ExchangePosition]:
        user = wallet_address if wallet_address.startswith("0x") else f"0x{wallet_address}"
        try:
            state = await self._info({"type": "clearinghouseState", "user": user})
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Error fetching positions for %s: %s", user, exc)
            return []

        positions: List[ExchangePosition] = []
        for item in state.get("assetPositions") or []:
            pos = item.get("position") or {}
            size = float(pos.get("szi") or 0)
            if size == 0:
                continue
            leverage = (pos.get("leverage") or {}).get("value", 1)
            positions.append(ExchangePosition(
                symbol=f"{pos.get('coin')}-USD",
                size=abs(size),
                entry_price=float(pos.get("entryPx") or 0),
                unrealized_pnl=float(pos.get("unrealizedPnl") or 0),
                side="long" if size > 0 else "short",
                leverage=float(leverage),
            ))
        return positions

    # ── orders ──────────────────────────────────────────────────

    def _order_id(self) -> str:
        suffix = "".join(self._rng.choice(_BASE36) for _ in range(9))
        return f"order_{now_ms()}_{suffix}"

    async def place_order(self, wallet_address: str, order: OrderRequest) -> OrderResult:
        try:
            if order.size <= 0:
                raise ValueError("Order size must be positive")
            price = order.price
            if not price:
                mid = await self.get_current_price(order.symbol)
                if mid <= 0:
                    raise ValueError(f"No price available for {order.symbol}")
                price = mid * (1 + SLIPPAGE) if order.side == "buy" else mid * (1 - SLIPPAGE)
        except ValueError as exc:
            logger.error("Error placing order for %s: %s", wallet_address, exc)
            return OrderResult(success=False, error=str(exc))

        logger.info(
            "Simulated %s %s %s %.6f @ %.4f (reduce_only=%s)",
            order.order_type, order.side, order.symbol, order.size, price, order.reduce_only,
        )
        return OrderResult(
            success=True,
            order_id=self._order_id(),
            executions=[Execution(
                price=price,
                size=order.size,
                fee=order.size * price * FEE_RATE,
                timestamp=now_ms(),
            )],
        )

    async def execute_agent_trade(
        self,
        agent: AgentConfig,
        wallet_address: str,
        symbol: str,
        side: str,
        size: float,
        price: Optional[float] = None,
    ) -> OrderResult:
        max_size = (agent.risk_tolerance or 50) * 100
        if size > max_size:
            msg = f"Trade size exceeds maximum position size of ${max_size:g}"
            logger.warning("Agent %s: %s", agent.id, msg)
            return OrderResult(success=False, error=msg)

        order = OrderRequest(
            symbol=symbol,
            side=side,
            size=size,
            order_type="Limit" if price else "Market",
            price=price,
        )
        result = await self.place_order(wallet_address, order)
        if result.success:
            execution = result.executions[0]
            self.history.record_trade({
                "agent_id": agent.id,
                "wallet_address": wallet_address,
                "order_id": result.order_id,
                "symbol": symbol,
                "side": side,
                "size": size,
                "price": price or execution.price,
                "execution_price": execution.price,
                "fee": execution.fee,
                "timestamp": execution.timestamp,
                "status": "open",
            })
        return result

    # ── agent analytics ─────────────────────────────────────────

    def get_agent_performance(self, agent_id: str, timeframe: str = "1d") -> Dict[str, Any]:
        timeframe_ms(timeframe)
        try:
            pnl = self.history.calculate_agent_pnl(agent_id, timeframe)
        except Exception as exc:
            logger.error("Error getting agent performance for %s: %s", agent_id, exc)
            return {
                "total_pnl": 0, "win_rate": 0, "total_trades": 0, "avg_trade_size": 0,
                "sharpe_ratio": 0, "max_drawdown": 0, "trades": [], "daily_pnl": [],
            }

        trades = pnl["trades"]
        notional = [float(t.get("size") or 0) * float(t.get("price") or 0) for t in trades]
        return {
            "total_pnl": pnl["total_pnl"],
            "win_rate": pnl["win_rate"],
            "total_trades": pnl["total_trades"],
            "avg_trade_size": sum(notional) / len(notional) if notional else 0,
            "sharpe_ratio": 1.2,
            "max_drawdown": 0.15,
            "trades": trades,
            "daily_pnl": pnl["daily_pnl"],
        }

    def get_agent_analytics(self, agent_id: str, timeframe: str = "1d") -> Dict[str, Any]:
        performance = self.get_agent_performance(agent_id, timeframe)
        return {
            "performance": performance,
            "recent_trades": performance["trades"][:10],
            "risk_metrics": {
                "avg_leverage": 1.5,
                "max_position_size": 10000,
                "risk_score": 0.3,
            },
            "signals": {
                "total": performance["total_trades"],
                "accuracy": performance["win_rate"],
                "avg_confidence": 0.75,
            },
        }

    def train_agent(self, agent: AgentConfig, training_data: Optional[List[Any]] = None) -> Dict[str, Any]:
        """Mock training run; the new accuracy is stored on the agent when a store is attached."""
        r = self._rng.random
        accuracy = 0.75 + r() * 0.2
        result = {
            "training_accuracy": accuracy,
            "samples": len(training_data or []),
            "backtest_results": {
                "total_return": r() * 0.5,
                "sharpe_ratio": r() * 2,
                "max_drawdown": r() * 0.3,
            },
            "optimized_parameters": {
                "risk_tolerance": agent.risk_tolerance,
                "indicators": list(agent.indicators),
            },
        }
        if self.agent_store is not None:
            self.agent_store.update_performance(agent.id, {"accuracy": round(accuracy * 100, 2)})
        return result
