"""
============================================================================
Paycore v1.0.0
FastAPI Application Entry Point - Payment Gateway Boundary
============================================================================

Input Constraints: Checkout requests from the storefront, notify callbacks
                   from Ozow and PayGate
Side Effects: Outbound processor calls, order status updates

Run with:
    uvicorn paycore.main:app --host 0.0.0.0 --port 8000

============================================================================
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from dotenv import load_dotenv
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from paycore import __version__
from paycore.api.ozow import router as ozow_router
from paycore.api.paygate import router as paygate_router
from paycore.config import get_payment_config
from paycore.database.session import check_database_connection

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load configuration once at startup; PAYCORE_STRICT_CONFIG fails fast."""
    strict = os.getenv("PAYCORE_STRICT_CONFIG", "false").lower() == "true"
    config = get_payment_config()
    if strict:
        config.ozow.validate()
        config.paygate.validate()
    logger.info(f"[PAY-START] Paycore v{__version__} online | strict_config={strict}")
    yield
    logger.info("[PAY-STOP] Paycore shutting down")


app = FastAPI(
    title="Paycore",
    description=(
        "Payment gateway boundary for Ozow (SHA-512 hash redirect) and "
        "PayGate PayWeb3 (MD5 checksum initiate)."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# ============================================================================
# MIDDLEWARE
# ============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Unhandled errors are logged and answered with a generic 500."""
    error_code = "SYS-500"
    logger.error(f"[{error_code}] Unhandled exception | path={request.url.path} | error={exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error_code": error_code,
            "message": "Internal server error. This incident has been logged.",
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    )


# ============================================================================
# ROUTERS
# ============================================================================

app.include_router(ozow_router, prefix="/ozow", tags=["Ozow"])
app.include_router(paygate_router, prefix="/paygate", tags=["PayGate"])


# ============================================================================
# SYSTEM ENDPOINTS
# ============================================================================

@app.get("/health", summary="Health Check", tags=["System"])
def health_check():
    if check_database_connection():
        return {"status": "healthy", "database": "connected", "version": __version__}
    return JSONResponse(
        status_code=503,
        content={"status": "unhealthy", "database": "disconnected", "version": __version__}
    )


@app.get("/metrics", summary="Prometheus Metrics", tags=["Observability"])
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
