"""
============================================================================
Paycore v1.0.0
Prometheus Metrics - Payment Gateway Observability
============================================================================

Side Effects: Updates Prometheus metrics registry

METRICS EXPOSED
---------------
- paycore_signatures_built_total: Outgoing requests signed, per gateway
- paycore_notify_received_total: Processor callbacks, per gateway and outcome
- paycore_paygate_attempts_total: PayGate initiate attempts, per variant and outcome
- paycore_transport_errors_total: Failed HTTP round trips, per gateway

Recording helpers never raise; a metrics failure must not fail a payment.

============================================================================
"""

import logging
from typing import Optional

from prometheus_client import Counter

# Configure module logger
logger = logging.getLogger(__name__)


# ============================================================================
# PROMETHEUS METRICS DEFINITIONS
# ============================================================================

SIGNATURES_BUILT = Counter(
    "paycore_signatures_built_total",
    "Total number of outgoing payment requests signed",
    ["gateway"]
)

NOTIFY_RECEIVED = Counter(
    "paycore_notify_received_total",
    "Total number of processor notify callbacks received",
    ["gateway", "outcome"]
)

PAYGATE_ATTEMPTS = Counter(
    "paycore_paygate_attempts_total",
    "Total number of PayGate initiate attempts by payload variant",
    ["variant", "outcome"]
)

TRANSPORT_ERRORS = Counter(
    "paycore_transport_errors_total",
    "Total number of failed HTTP round trips to a processor",
    ["gateway"]
)


# ============================================================================
# METRIC UPDATE FUNCTIONS
# ============================================================================

def record_signature_built(gateway: str, correlation_id: Optional[str] = None) -> None:
    """Count one signed outgoing request."""
    try:
        SIGNATURES_BUILT.labels(gateway=gateway).inc()
        logger.debug(
            "Metric: signature_built | gateway=%s | correlation_id=%s",
            gateway, correlation_id
        )
    except Exception as e:
        logger.error("[OBS-001] Failed to record signature_built metric | error=%s", str(e))


def record_notify(gateway: str, outcome: str, correlation_id: Optional[str] = None) -> None:
    """
    Count one processor callback.

    Args:
        gateway: "ozow" or "paygate"
        outcome: e.g. "verified", "hash_mismatch", "paid", "ignored"
        correlation_id: Optional tracking ID
    """
    try:
        NOTIFY_RECEIVED.labels(gateway=gateway, outcome=outcome).inc()
        logger.debug(
            "Metric: notify_received | gateway=%s | outcome=%s | correlation_id=%s",
            gateway, outcome, correlation_id
        )
    except Exception as e:
        logger.error("[OBS-002] Failed to record notify metric | error=%s", str(e))


def record_paygate_attempt(variant: str, outcome: str, correlation_id: Optional[str] = None) -> None:
    """Count one PayGate initiate attempt ("VERIFIED" or "REJECTED")."""
    try:
        PAYGATE_ATTEMPTS.labels(variant=variant, outcome=outcome).inc()
        logger.debug(
            "Metric: paygate_attempt | variant=%s | outcome=%s | correlation_id=%s",
            variant, outcome, correlation_id
        )
    except Exception as e:
        logger.error("[OBS-003] Failed to record paygate_attempt metric | error=%s", str(e))


def record_transport_error(gateway: str, correlation_id: Optional[str] = None) -> None:
    try:
        TRANSPORT_ERRORS.labels(gateway=gateway).inc()
    except Exception as e:
        logger.error("[OBS-004] Failed to record transport_error metric | error=%s", str(e))
