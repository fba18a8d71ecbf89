#!/usr/bin/env python3
"""
Server startup script.

This script:
1. Loads the environment from .env
2. Logs the effective configuration
3. Starts the FastAPI server (and, when enabled, the run worker)
"""

import os

import structlog
import uvicorn
from dotenv import load_dotenv

from assistant_runs.utils.setup_logging import get_logging_config, setup_logging

setup_logging()
logger = structlog.get_logger()


def log_environment():
    """Log the settings that decide how the server behaves"""
    logger.info(f"🗄️  Database: {os.getenv('DATABASE_URL')}")
    logger.info(f"⚙️  Run worker enabled: {os.getenv('RUN_WORKER_ENABLED', 'false')}")
    if os.getenv("RUN_EXECUTOR"):
        logger.info(f"🧩 Run executor: {os.getenv('RUN_EXECUTOR')}")


def main():
    """Start the server"""
    log_environment()

    port = int(os.getenv("PORT", "8000"))

    logger.info("🚀 Starting Assistant Runs...")
    logger.info(f"📍 Server will be available at: http://localhost:{port}")
    logger.info(f"📊 API docs will be available at: http://localhost:{port}/docs")

    uvicorn.run(
        "assistant_runs.main:app",
        host=os.getenv("HOST", "0.0.0.0"),  # nosec B104 - required for Docker
        port=port,
        reload=os.getenv("ENV_MODE", "LOCAL").upper() == "LOCAL",
        access_log=False,
        log_config=get_logging_config(),
    )


if __name__ == "__main__":
    load_dotenv()
    main()
