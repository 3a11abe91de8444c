"""
============================================================================
Paycore v1.0.0
Ozow API - Pay Page Initiation, Notify Ingestion & Status Lookup
============================================================================

Input Constraints:
    - JSON checkout bodies for /initiate
    - Form-encoded notify bodies signed with Hash/HashCheck
Side Effects:
    - Order status updates and webhook failure records (notify)
    - Outbound GET to the Ozow API (status lookup)

NOTIFY CONTRACT:
Ozow retries any notify that is not acknowledged with 200, so /notify
answers "OK" for every outcome, including hash mismatches and storage
failures. Outcomes are logged and persisted, never surfaced.

============================================================================
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, PlainTextResponse

from paycore.api.dependencies import (
    DispatcherProvider,
    get_config,
    get_correlation_id,
    get_dispatcher_provider,
    get_ozow_transport,
    http_error,
    read_form,
)
from paycore.config import PaymentConfig
from paycore.errors import (
    MissingRequiredField,
    PaymentConfigurationError,
    PaymentErrorCode,
    TransportError,
)
from paycore.gateways.ozow import OzowClient, build_payment_request, render_forward_form
from paycore.gateways.transport import ProcessorTransport
from paycore.schemas.payment import OzowInitiateRequest, OzowInitiateResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/initiate",
    summary="Sign an Ozow pay page request",
    response_model=OzowInitiateResponse,
    responses={
        400: {"description": "Missing order id or invalid amount (PAY-FLD-001, PAY-FMT-001)"},
        503: {"description": "Ozow credentials not configured (PAY-CFG-001)"},
    }
)
def initiate_ozow_payment(
    body: OzowInitiateRequest,
    config: PaymentConfig = Depends(get_config),
    correlation_id: str = Depends(get_correlation_id)
) -> Dict[str, Any]:
    """Return the pay page URL and signed fields for the browser to POST."""
    try:
        request = build_payment_request(
            config.ozow,
            body.order_id,
            body.amount_rands,
            bank_reference=body.bank_ref,
            customer=body.customer,
            optionals=body.optionals(),
            correlation_id=correlation_id,
        )
    except MissingRequiredField as e:
        raise http_error(400, e.error_code, f"{e.field_name} & amountRands required")
    except PaymentConfigurationError as e:
        raise http_error(503, e.error_code, e.message)
    except ValueError as e:
        raise http_error(400, PaymentErrorCode.FORMAT_INVALID, str(e))

    return request.to_dict()


@router.post(
    "/notify",
    summary="Receive an Ozow notify callback",
    response_class=PlainTextResponse,
)
async def receive_ozow_notify(
    request: Request,
    config: PaymentConfig = Depends(get_config),
    dispatcher_provider: DispatcherProvider = Depends(get_dispatcher_provider),
    correlation_id: str = Depends(get_correlation_id)
) -> PlainTextResponse:
    payload = await read_form(request)
    try:
        dispatcher = await run_in_threadpool(dispatcher_provider)
        outcome = await run_in_threadpool(
            dispatcher.handle_ozow_notify, payload, config.ozow.private_key, correlation_id
        )
        logger.info(
            f"[PAY-API] Ozow notify handled | reference={outcome.reference} | "
            f"verified={outcome.verified} | reason={outcome.reason} | "
            f"correlation_id={correlation_id}"
        )
    except Exception as e:
        logger.error(
            f"[PAY-API] Ozow notify handling failed | error={e} | correlation_id={correlation_id}"
        )
    return PlainTextResponse("OK", status_code=200)


@router.get(
    "/forward",
    summary="Auto-submit query parameters to the Ozow pay page",
    response_class=HTMLResponse,
)
def forward_ozow_get(request: Request, config: PaymentConfig = Depends(get_config)) -> HTMLResponse:
    return HTMLResponse(render_forward_form(dict(request.query_params), config.ozow.pay_url))


@router.post(
    "/forward",
    summary="Auto-submit form fields to the Ozow pay page",
    response_class=HTMLResponse,
)
async def forward_ozow_post(
    request: Request,
    config: PaymentConfig = Depends(get_config)
) -> HTMLResponse:
    fields = await read_form(request)
    return HTMLResponse(render_forward_form(fields, config.ozow.pay_url))


@router.get(
    "/status/by-ref/{reference}",
    summary="Look up Ozow transactions by merchant reference",
    responses={504: {"description": "Ozow API unreachable or failed (PAY-NET-001)"}},
)
def ozow_status_by_reference(
    reference: str,
    config: PaymentConfig = Depends(get_config),
    transport: ProcessorTransport = Depends(get_ozow_transport),
    correlation_id: str = Depends(get_correlation_id)
) -> Dict[str, Any]:
    client = OzowClient(config.ozow, transport=transport, correlation_id=correlation_id)
    try:
        data = client.get_transaction_by_reference(reference)
    except MissingRequiredField as e:
        raise http_error(400, e.error_code, "ref required")
    except TransportError as e:
        raise http_error(504, e.error_code, e.message)
    return {"success": True, "data": data}
