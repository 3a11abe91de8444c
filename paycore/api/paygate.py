"""
============================================================================
Paycore v1.0.0
PayGate API - PayWeb3 Initiation, Legacy Paypage Signing & Notify
============================================================================

Input Constraints:
    - JSON checkout bodies for /initiate and /create
    - Form-encoded notify bodies from PayGate
Side Effects:
    - Outbound POSTs to initiate.trans (one per payload variant tried)
    - Order status updates and webhook failure records (notify)

ERROR MAPPING (/initiate):
    400 PAY-FLD-001 / PAY-FMT-001  request incomplete or amount invalid
    502 PAY-AMB-001                every payload variant rejected; attempts attached
    503 PAY-CFG-001                PayGate credentials or variants misconfigured
    504 PAY-NET-001                PayGate unreachable; no further variants tried

============================================================================
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse

from paycore.api.dependencies import (
    DispatcherProvider,
    get_config,
    get_correlation_id,
    get_dispatcher_provider,
    get_paygate_transport,
    http_error,
    read_form,
)
from paycore.config import PaymentConfig
from paycore.errors import (
    MissingRequiredField,
    PaymentConfigurationError,
    PaymentErrorCode,
    RemoteProtocolAmbiguity,
    TransportError,
)
from paycore.gateways.paygate import PayGateInitiator, build_paypage_request
from paycore.gateways.transport import ProcessorTransport
from paycore.schemas.payment import (
    PayGateCreateRequest,
    PayGateInitiateRequest,
    PayGateInitiateResponse,
    PaypageResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", summary="PayGate route health")
def paygate_health() -> Dict[str, Any]:
    return {"success": True, "message": "PayGate route healthy"}


@router.get("/return", summary="Customer return after the PayGate payment page")
def paygate_return(request: Request) -> Dict[str, Any]:
    return {
        "success": True,
        "message": "Payment return received",
        "query": dict(request.query_params),
    }


@router.post(
    "/initiate",
    summary="Initiate a PayWeb3 transaction",
    response_model=PayGateInitiateResponse,
    responses={
        400: {"description": "Missing reference/email or invalid amount"},
        502: {"description": "All payload variants rejected (PAY-AMB-001)"},
        503: {"description": "PayGate not configured (PAY-CFG-001)"},
        504: {"description": "PayGate unreachable (PAY-NET-001)"},
    }
)
def initiate_paygate_payment(
    body: PayGateInitiateRequest,
    config: PaymentConfig = Depends(get_config),
    transport: ProcessorTransport = Depends(get_paygate_transport),
    correlation_id: str = Depends(get_correlation_id)
) -> Dict[str, Any]:
    """
    Run the initiate protocol and return the verified result.

    The client POSTs ``process_fields`` to ``process_url`` to show the
    PayGate payment page.
    """
    try:
        initiator = PayGateInitiator(config.paygate, transport=transport, correlation_id=correlation_id)
        result = initiator.initiate(body.order_id, body.amount_rands, body.email, currency=body.currency)
    except MissingRequiredField as e:
        raise http_error(400, e.error_code, e.message)
    except PaymentConfigurationError as e:
        raise http_error(503, e.error_code, e.message)
    except RemoteProtocolAmbiguity as e:
        raise http_error(
            502,
            e.error_code,
            e.message,
            details={"attempts": [attempt.to_dict() for attempt in e.attempts]},
        )
    except TransportError as e:
        details = {"attempts": [attempt.to_dict() for attempt in e.attempts]} if e.attempts else None
        raise http_error(504, e.error_code, e.message, details=details)
    except ValueError as e:
        raise http_error(400, PaymentErrorCode.FORMAT_INVALID, str(e))

    return result.to_dict()


@router.post(
    "/create",
    summary="Sign a legacy paypage redirect",
    response_model=PaypageResponse,
)
def create_paypage_request(
    body: PayGateCreateRequest,
    config: PaymentConfig = Depends(get_config),
    correlation_id: str = Depends(get_correlation_id)
) -> Dict[str, Any]:
    if body.amount_rands is None:
        raise http_error(400, PaymentErrorCode.FIELD_MISSING, "orderId and amountRands are required")
    try:
        request = build_paypage_request(
            config.paygate,
            body.order_id,
            body.amount_rands,
            currency=body.currency,
            description=body.description,
            correlation_id=correlation_id,
        )
    except MissingRequiredField as e:
        raise http_error(400, e.error_code, "orderId and amountRands are required")
    except PaymentConfigurationError as e:
        raise http_error(503, e.error_code, e.message)
    except ValueError as e:
        raise http_error(400, PaymentErrorCode.FORMAT_INVALID, str(e))

    return request.to_dict()


@router.post(
    "/notify",
    summary="Receive a PayGate notify callback",
    response_class=PlainTextResponse,
)
async def receive_paygate_notify(
    request: Request,
    dispatcher_provider: DispatcherProvider = Depends(get_dispatcher_provider),
    correlation_id: str = Depends(get_correlation_id)
) -> PlainTextResponse:
    payload = await read_form(request)
    try:
        dispatcher = await run_in_threadpool(dispatcher_provider)
        outcome = await run_in_threadpool(dispatcher.handle_paygate_notify, payload, correlation_id)
        logger.info(
            f"[PAY-API] PayGate notify handled | reference={outcome.reference} | "
            f"updated={outcome.updated} | reason={outcome.reason} | "
            f"correlation_id={correlation_id}"
        )
    except Exception as e:
        logger.error(
            f"[PAY-API] PayGate notify handling failed | error={e} | correlation_id={correlation_id}"
        )
    return PlainTextResponse("OK", status_code=200)
