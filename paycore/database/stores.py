"""
============================================================================
Paycore v1.0.0
SQL Stores - Order Status & Webhook Failure Persistence
============================================================================

Input Constraints: SQLAlchemy sessionmaker
Side Effects: UPDATE on the invoices table, INSERT into webhook_failures

The invoices table belongs to the storefront's order management; paycore
only updates payment columns on rows that already exist. The
webhook_failures table is owned here.

============================================================================
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Mapping

from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, Text, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from paycore.logic.dispatcher import OrderUpdate

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

metadata = MetaData()

webhook_failures = Table(
    "webhook_failures",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("provider", String(32), nullable=False),
    Column("payload", Text, nullable=False),
    Column("reason", String(255), nullable=False),
    Column("retries", Integer, nullable=False, default=0),
    Column("created_at", DateTime(timezone=True), nullable=False),
)


def ensure_webhook_failure_table(engine: Engine) -> None:
    """Create webhook_failures if it does not exist."""
    metadata.create_all(engine, tables=[webhook_failures])


class SqlOrderStatusStore:
    """
    Updates payment columns on an existing invoice row.

    Columns touched: transaction_status, status, paid_at, transaction_amount
    (only those the update sets), matched on invoice_number.
    """

    def __init__(self, session_factory: sessionmaker, table: str = "invoices"):
        if not _IDENTIFIER.match(table):
            raise ValueError(f"Invalid table name: {table!r}")
        self._session_factory = session_factory
        self._table = table

    def update_status(self, reference: str, update: OrderUpdate) -> bool:
        assignments = ["transaction_status = :transaction_status"]
        params: Dict[str, Any] = {
            "reference": reference,
            "transaction_status": update.transaction_status,
        }
        if update.status is not None:
            assignments.append("status = :status")
            params["status"] = update.status
        if update.paid_at is not None:
            assignments.append("paid_at = :paid_at")
            params["paid_at"] = update.paid_at.isoformat()
        if update.transaction_amount is not None:
            assignments.append("transaction_amount = :transaction_amount")
            params["transaction_amount"] = str(update.transaction_amount)

        statement = text(
            f"UPDATE {self._table} SET {', '.join(assignments)} "
            f"WHERE invoice_number = :reference"
        )
        with self._session_factory() as session:
            try:
                result = session.execute(statement, params)
                session.commit()
            except Exception:
                session.rollback()
                raise

        matched = (result.rowcount or 0) > 0
        logger.debug(
            f"[PAY-DB] Invoice update | reference={reference} | matched={matched}"
        )
        return matched


class SqlWebhookFailureLog:
    """Appends failed notify callbacks to webhook_failures for investigation."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def record(self, provider: str, payload: Mapping[str, Any], reason: str) -> None:
        values = {
            "provider": provider,
            "payload": json.dumps(dict(payload), default=str, sort_keys=True),
            "reason": reason[:255],
            "retries": 0,
            "created_at": datetime.now(timezone.utc),
        }
        with self._session_factory() as session:
            try:
                session.execute(webhook_failures.insert().values(**values))
                session.commit()
            except Exception:
                session.rollback()
                raise
        logger.info(f"[PAY-DB] Webhook failure recorded | provider={provider} | reason={reason}")
