# ============================================================================
# Paycore v1.0.0
# Database Module - Sessions & SQL-backed Stores
# ============================================================================

from paycore.database.session import (
    check_database_connection,
    create_engine_from_url,
    get_db,
    get_engine,
    get_session_factory,
    reset_engine,
)
from paycore.database.stores import (
    SqlOrderStatusStore,
    SqlWebhookFailureLog,
    ensure_webhook_failure_table,
)

__all__ = [
    "check_database_connection",
    "create_engine_from_url",
    "get_db",
    "get_engine",
    "get_session_factory",
    "reset_engine",
    "SqlOrderStatusStore",
    "SqlWebhookFailureLog",
    "ensure_webhook_failure_table",
]
