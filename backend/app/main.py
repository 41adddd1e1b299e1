"""
WTMM Backend API
FastAPI application that turns forwarded bank alerts into purchase records.
"""

import logging
import os

from fastapi import FastAPI, HTTPException

from app.config import get_settings
from app.routers import postmark
from app.db import supabase_admin

# Configure logging to output to console
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="WTMM API",
    description="Purchase tracking from forwarded bank alert emails",
    version="0.1.0",
)

# Include routers
app.include_router(postmark.router, prefix="/api/postmark", tags=["postmark"])


@app.on_event("startup")
async def log_startup_info() -> None:
    """
    Log where the API listens and which address bank alerts must be sent to.

    The port shown is taken from the ``HOST_PORT`` environment variable so
    that Docker-mapped ports are reported correctly. Defaults to 8000.
    """
    host_port = os.getenv("HOST_PORT", "8000")
    settings = get_settings()
    logger.info(
        "WTMM API running at http://localhost:%s\n"
        "  Bank alert address: %s",
        host_port,
        settings.bank_alert_address,
    )


@app.get("/")
async def root():
    return {"message": "WTMM API", "version": "0.1.0"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/health/db")
async def health_db():
    """
    Test the Supabase database connection.

    Executes a lightweight query (SELECT 1 row from users) to verify that
    the Supabase admin client can reach the database.  Returns 503 on failure.
    """
    try:
        supabase_admin.table("users").select("id").limit(1).execute()
        return {"status": "ok", "database": "reachable"}
    except Exception as exc:
        logger.error(f"Database health check failed: {exc}")
        raise HTTPException(
            status_code=503,
            detail=f"Database connection failed: {str(exc)}",
        )
