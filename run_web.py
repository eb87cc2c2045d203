"""
AgentDesk – Launch the API server.

Usage:
    python run_web.py

Local:   http://localhost:8000/docs
"""

import logging
import os
import sys

import uvicorn
from dotenv import load_dotenv

if __name__ == "__main__":
    load_dotenv()
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print("\n" + "=" * 50)
    print("  AgentDesk – AI Agent Trading Backend")
    print("  Local: http://localhost:8000/docs")
    print("=" * 50 + "\n")

    # Reload spawns worker processes that fail with permission errors on Windows
    is_windows = sys.platform.startswith("win")

    uvicorn.run(
        "agentdesk.api.app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=not is_windows,
        reload_dirs=["agentdesk"] if not is_windows else None,
        log_level=log_level.lower(),
    )
