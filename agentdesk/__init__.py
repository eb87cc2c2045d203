"""
AgentDesk
=========
Backend for the AI-agent crypto trading dashboard.

Sub-packages:
    - api              – FastAPI application and routers
    - data_collectors  – CoinGecko / DexScreener / Binance clients
    - analyzers        – technical, on-chain and macro signal generation
    - trading          – Hyperliquid service, positions, automation, history
    - storage          – Supabase table wrappers
    - monitors         – price and alert monitors
"""

__version__ = "1.0.0"
