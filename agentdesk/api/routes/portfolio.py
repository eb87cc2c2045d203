"""
Portfolio Routes
==============================
POST /api/v1/portfolio  – Value holdings at CoinGecko prices and summarise.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, model_validator

from agentdesk.market_format import build_portfolio, calculate_portfolio_stats

from ..dependencies import get_coingecko

router = APIRouter()

SYMBOL_LOOKUP_PAGE = 100


class Holding(BaseModel):
    """A position in one coin, identified by CoinGecko id or ticker."""
    coin_id: Optional[str] = None
    symbol: Optional[str] = None
    amount: float = Field(..., ge=0)

    @model_validator(mode="after")
    def _needs_identifier(self) -> "Holding":
        if not self.coin_id and not self.symbol:
            raise ValueError("coin_id or symbol is required")
        return self


class PortfolioRequest(BaseModel):
    holdings: List[Holding] = Field(default_factory=list)


class PortfolioResponse(BaseModel):
    assets: List[Dict[str, Any]] = Field(default_factory=list)
    stats: Dict[str, Any] = Field(default_factory=dict)


@router.post(
    "/portfolio",
    response_model=PortfolioResponse,
    summary="Portfolio valuation",
    description="Values each holding at the live price; unknown coins are skipped.",
)
async def portfolio(body: PortfolioRequest, coingecko=Depends(get_coingecko)):
    holdings = [h.model_dump() for h in body.holdings]
    ids = sorted({h["coin_id"] for h in holdings if h["coin_id"]})

    coins = await coingecko.get_coins_by_ids(ids) if ids else []
    if any(not h["coin_id"] for h in holdings):
        coins += await coingecko.get_markets(per_page=SYMBOL_LOOKUP_PAGE)

    assets = build_portfolio(holdings, coins)
    return PortfolioResponse(assets=assets, stats=calculate_portfolio_stats(assets))
