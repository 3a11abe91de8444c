"""
============================================================================
Paycore v1.0.0
API Dependencies - Shared FastAPI Dependency Providers
============================================================================

Every collaborator a route needs is provided here so tests can swap it
through ``app.dependency_overrides``.

============================================================================
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
from urllib.parse import parse_qsl

from fastapi import Depends, HTTPException, Request

from paycore.config import PaymentConfig, get_payment_config
from paycore.database.session import get_engine, get_session_factory
from paycore.database.stores import (
    SqlOrderStatusStore,
    SqlWebhookFailureLog,
    ensure_webhook_failure_table,
)
from paycore.gateways.transport import ProcessorTransport
from paycore.logic.dispatcher import CallbackDispatcher

logger = logging.getLogger(__name__)


# ============================================================================
# Request context
# ============================================================================

def get_correlation_id() -> str:
    """UUID4 that follows one request through logs and metrics."""
    return str(uuid.uuid4())


def get_config() -> PaymentConfig:
    return get_payment_config()


# ============================================================================
# Collaborators
# ============================================================================

_dispatcher: Optional[CallbackDispatcher] = None


def get_dispatcher() -> CallbackDispatcher:
    """
    Process-wide dispatcher backed by the SQL stores.

    Creates the webhook_failures table on first use.
    """
    global _dispatcher
    if _dispatcher is None:
        ensure_webhook_failure_table(get_engine())
        session_factory = get_session_factory()
        _dispatcher = CallbackDispatcher(
            SqlOrderStatusStore(session_factory),
            SqlWebhookFailureLog(session_factory),
        )
        logger.info("[PAY-API] Callback dispatcher initialized with SQL stores")
    return _dispatcher


DispatcherProvider = Callable[[], CallbackDispatcher]


def get_dispatcher_provider() -> DispatcherProvider:
    """
    Hand notify routes the dispatcher factory instead of the dispatcher.

    Building the dispatcher touches the database. Routes call the provider
    inside their own error handling so a storage outage is still
    acknowledged with 200.
    """
    return get_dispatcher


def reset_dispatcher() -> None:
    global _dispatcher
    _dispatcher = None


def get_paygate_transport(
    correlation_id: str = Depends(get_correlation_id)
) -> ProcessorTransport:
    return ProcessorTransport("paygate", correlation_id=correlation_id)


def get_ozow_transport(
    correlation_id: str = Depends(get_correlation_id)
) -> ProcessorTransport:
    return ProcessorTransport("ozow", correlation_id=correlation_id)


# ============================================================================
# Helpers
# ============================================================================

async def read_form(request: Request) -> Dict[str, str]:
    """
    Parse a form-encoded body into a flat dict.

    Repeated keys keep the last value, matching how processors post
    notifies (one value per field).
    """
    body = await request.body()
    return dict(parse_qsl(body.decode("utf-8", errors="replace"), keep_blank_values=True))


def http_error(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None
) -> HTTPException:
    """Build an HTTPException with the standard error body."""
    detail: Dict[str, Any] = {
        "error_code": error_code,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if details:
        detail["details"] = details
    return HTTPException(status_code=status_code, detail=detail)
