"""
============================================================================
Paycore v1.0.0
Callback Dispatcher - Processor Notify Handling
============================================================================

Input Constraints: Parsed notify payload (flat mapping of strings)
Side Effects: Order status updates and webhook failure records via the
              injected collaborators

PURPOSE
-------
Receives processor notify payloads, runs them through the gateway
verifiers and forwards the outcome to order storage. The dispatcher knows
nothing about how orders or failures are persisted; it only calls the
OrderStatusStore and WebhookFailureLog protocols.

ACKNOWLEDGEMENT
---------------
Every handler returns a NotifyOutcome and never raises for expected
outcomes. The HTTP layer always acknowledges processors with 200 so a
verification failure does not trigger the processor's retry storm.

FAILURE REASONS
---------------
- hash_mismatch / missing_hash: Ozow digest did not verify
- invoice_not_found: verified, but no order matched the reference
- missing_reference: verified, but the payload carried no reference
- update_error:<message>: the order store raised

============================================================================
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Protocol

from paycore.gateways.ozow import verify_notify
from paycore.gateways.paygate import is_paid_notify
from paycore.observability.metrics import record_notify

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

PROVIDER_OZOW = "ozow"
PROVIDER_PAYGATE = "paygate"

STATUS_COMPLETED = "completed"

# Failure reasons are truncated to keep failure rows bounded
MAX_REASON_LENGTH = 200

PAYGATE_REFERENCE_FIELDS = ("ORDER_ID", "order_id", "ORDER_NUMBER", "REFERENCE")
OZOW_REFERENCE_FIELDS = ("TransactionReference", "transactionReference")
OZOW_STATUS_FIELDS = ("Status", "status")


# =============================================================================
# Collaborator Protocols
# =============================================================================

@dataclass(frozen=True)
class OrderUpdate:
    """Fields a notify may change on an order; None means unchanged."""
    transaction_status: str
    status: Optional[str] = None
    paid_at: Optional[datetime] = None
    transaction_amount: Optional[Decimal] = None


class OrderStatusStore(Protocol):
    def update_status(self, reference: str, update: OrderUpdate) -> bool:
        """Apply ``update`` to the order; return False if no order matched."""
        ...


class WebhookFailureLog(Protocol):
    def record(self, provider: str, payload: Mapping[str, Any], reason: str) -> None:
        ...


@dataclass
class NotifyOutcome:
    """
    Result of handling one notify callback.

    ``verified`` reflects digest verification (always True for PayGate
    notifies, which carry no verified digest here).
    """
    provider: str
    verified: bool
    reason: Optional[str] = None
    reference: Optional[str] = None
    updated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"verified": self.verified}
        if self.reason is not None:
            result["reason"] = self.reason
        return result


# =============================================================================
# In-memory collaborators
# =============================================================================

class InMemoryOrderStatusStore:
    """Thread-safe dict-backed order store for tests and local development."""

    def __init__(self, references: Optional[List[str]] = None):
        self._lock = threading.Lock()
        self.orders: Dict[str, Dict[str, Any]] = {ref: {} for ref in (references or [])}

    def add_order(self, reference: str) -> None:
        with self._lock:
            self.orders.setdefault(reference, {})

    def update_status(self, reference: str, update: OrderUpdate) -> bool:
        with self._lock:
            order = self.orders.get(reference)
            if order is None:
                return False
            order["transaction_status"] = update.transaction_status
            if update.status is not None:
                order["status"] = update.status
            if update.paid_at is not None:
                order["paid_at"] = update.paid_at
            if update.transaction_amount is not None:
                order["transaction_amount"] = update.transaction_amount
            return True


class InMemoryWebhookFailureLog:
    """Thread-safe list-backed failure log."""

    def __init__(self):
        self._lock = threading.Lock()
        self.failures: List[Dict[str, Any]] = []

    def record(self, provider: str, payload: Mapping[str, Any], reason: str) -> None:
        with self._lock:
            self.failures.append({
                "provider": provider,
                "payload": dict(payload),
                "reason": reason,
                "retries": 0,
            })


# =============================================================================
# Dispatcher
# =============================================================================

def _first_present(payload: Mapping[str, Any], names) -> Optional[str]:
    for name in names:
        value = payload.get(name)
        if value is not None and str(value) != "":
            return str(value)
    return None


def _to_amount(value: Any) -> Optional[Decimal]:
    if value is None or str(value).strip() == "":
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return amount if amount.is_finite() else None


class CallbackDispatcher:
    """
    Routes verified notify payloads to order storage.

    Example Usage:
        dispatcher = CallbackDispatcher(order_store, failure_log)
        outcome = dispatcher.handle_ozow_notify(payload, config.ozow.private_key)
    """

    def __init__(
        self,
        order_store: OrderStatusStore,
        failure_log: WebhookFailureLog,
        clock=None
    ):
        self.order_store = order_store
        self.failure_log = failure_log
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def handle_ozow_notify(
        self,
        payload: Mapping[str, Any],
        private_key: str,
        correlation_id: Optional[str] = None
    ) -> NotifyOutcome:
        """Verify an Ozow notify and mark the order paid on a successful status."""
        reference = _first_present(payload, OZOW_REFERENCE_FIELDS)
        verification = verify_notify(payload, private_key, correlation_id)

        if not verification.verified:
            self._record_failure(PROVIDER_OZOW, payload, verification.reason or "hash_mismatch", correlation_id)
            record_notify(PROVIDER_OZOW, verification.reason or "hash_mismatch", correlation_id)
            return NotifyOutcome(PROVIDER_OZOW, False, verification.reason, reference)

        status = _first_present(payload, OZOW_STATUS_FIELDS) or ""
        paid = "success" in status.lower()
        update = OrderUpdate(
            transaction_status=status,
            status=STATUS_COMPLETED if paid else None,
            paid_at=self._clock() if paid else None,
        )

        logger.info(
            f"[PAY-NOTIFY] Ozow notify verified | reference={reference} | "
            f"status={status} | paid={paid} | correlation_id={correlation_id}"
        )
        return self._apply(PROVIDER_OZOW, payload, reference, update, True, correlation_id)

    def handle_paygate_notify(
        self,
        payload: Mapping[str, Any],
        correlation_id: Optional[str] = None
    ) -> NotifyOutcome:
        """Mark the order paid when PayGate reports TRANSACTION_STATUS 1."""
        reference = _first_present(payload, PAYGATE_REFERENCE_FIELDS)
        status = str(payload.get("TRANSACTION_STATUS", ""))

        if not is_paid_notify(payload):
            logger.info(
                f"[PAY-NOTIFY] PayGate notify not paid | reference={reference} | "
                f"status={status} | correlation_id={correlation_id}"
            )
            record_notify(PROVIDER_PAYGATE, "not_paid", correlation_id)
            return NotifyOutcome(PROVIDER_PAYGATE, True, "not_paid", reference)

        update = OrderUpdate(
            transaction_status=status,
            status=STATUS_COMPLETED,
            paid_at=self._clock(),
            transaction_amount=_to_amount(payload.get("AMOUNT", payload.get("amount"))),
        )
        logger.info(
            f"[PAY-NOTIFY] PayGate notify paid | reference={reference} | "
            f"amount={update.transaction_amount} | correlation_id={correlation_id}"
        )
        return self._apply(PROVIDER_PAYGATE, payload, reference, update, True, correlation_id)

    def _apply(
        self,
        provider: str,
        payload: Mapping[str, Any],
        reference: Optional[str],
        update: OrderUpdate,
        verified: bool,
        correlation_id: Optional[str]
    ) -> NotifyOutcome:
        if not reference:
            self._record_failure(provider, payload, "missing_reference", correlation_id)
            record_notify(provider, "missing_reference", correlation_id)
            return NotifyOutcome(provider, verified, "missing_reference", None)

        try:
            matched = self.order_store.update_status(reference, update)
        except Exception as e:
            reason = f"update_error:{str(e)[:MAX_REASON_LENGTH]}"
            logger.error(
                f"[PAY-NOTIFY] Order update failed | provider={provider} | "
                f"reference={reference} | error={e} | correlation_id={correlation_id}"
            )
            self._record_failure(provider, payload, reason, correlation_id)
            record_notify(provider, "update_error", correlation_id)
            return NotifyOutcome(provider, verified, reason, reference)

        if not matched:
            logger.warning(
                f"[PAY-NOTIFY] No order matched notify | provider={provider} | "
                f"reference={reference} | correlation_id={correlation_id}"
            )
            self._record_failure(provider, payload, "invoice_not_found", correlation_id)
            record_notify(provider, "invoice_not_found", correlation_id)
            return NotifyOutcome(provider, verified, "invoice_not_found", reference)

        record_notify(provider, "updated", correlation_id)
        return NotifyOutcome(provider, verified, None, reference, updated=True)

    def _record_failure(
        self,
        provider: str,
        payload: Mapping[str, Any],
        reason: str,
        correlation_id: Optional[str]
    ) -> None:
        # A broken failure log must not turn into a processor-visible error
        try:
            self.failure_log.record(provider, payload, reason)
        except Exception as e:
            logger.error(
                f"[PAY-NOTIFY] Failed to record webhook failure | provider={provider} | "
                f"reason={reason} | error={e} | correlation_id={correlation_id}"
            )
