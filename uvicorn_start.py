"""
Visualization Pipeline API Server
Uvicorn start script - serves the FastAPI app from api.main
"""

import os
import sys

if sys.platform == "win32":
    import asyncio

    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from dotenv import load_dotenv

load_dotenv()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
        reload=os.environ.get("UVICORN_RELOAD", "0") == "1",
        reload_dirs=["api", "viz_agent", "admission", "storage"],
        reload_delay=0.25,
        log_level="info",
        access_log=True,
    )
