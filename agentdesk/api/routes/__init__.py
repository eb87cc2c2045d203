"""
AgentDesk – API Route Modules
=============================
All FastAPI routers are registered from here.
"""

from .agents import router as agents_router
from .alerts import router as alerts_router
from .automation import router as automation_router
from .beta_access import router as beta_access_router
from .community import router as community_router
from .copy_trading import router as copy_trading_router
from .health import router as health_router
from .market import router as market_router
from .portfolio import router as portfolio_router
from .positions import router as positions_router
from .settings import router as settings_router
from .signals import router as signals_router
from .trading_history import router as trading_history_router

__all__ = [
    "agents_router",
    "alerts_router",
    "automation_router",
    "beta_access_router",
    "community_router",
    "copy_trading_router",
    "health_router",
    "market_router",
    "portfolio_router",
    "positions_router",
    "settings_router",
    "signals_router",
    "trading_history_router",
]
