# ============================================================================
# Paycore v1.0.0
# Logic Module - Notify Callback Dispatch
# ============================================================================

from paycore.logic.dispatcher import (
    CallbackDispatcher,
    InMemoryOrderStatusStore,
    InMemoryWebhookFailureLog,
    NotifyOutcome,
    OrderStatusStore,
    OrderUpdate,
    WebhookFailureLog,
)

__all__ = [
    "CallbackDispatcher",
    "InMemoryOrderStatusStore",
    "InMemoryWebhookFailureLog",
    "NotifyOutcome",
    "OrderStatusStore",
    "OrderUpdate",
    "WebhookFailureLog",
]
