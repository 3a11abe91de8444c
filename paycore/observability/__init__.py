"""
============================================================================
Paycore v1.0.0
Observability Module - Prometheus Metrics
============================================================================

Side Effects: Exposes Prometheus metrics

============================================================================
"""

from paycore.observability.metrics import (
    SIGNATURES_BUILT,
    NOTIFY_RECEIVED,
    PAYGATE_ATTEMPTS,
    TRANSPORT_ERRORS,
    record_signature_built,
    record_notify,
    record_paygate_attempt,
    record_transport_error,
)

__all__ = [
    "SIGNATURES_BUILT",
    "NOTIFY_RECEIVED",
    "PAYGATE_ATTEMPTS",
    "TRANSPORT_ERRORS",
    "record_signature_built",
    "record_notify",
    "record_paygate_attempt",
    "record_transport_error",
]
