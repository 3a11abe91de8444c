"""
============================================================================
Paycore v1.0.0
Payment Schemas - Pydantic Models for the Gateway HTTP Boundary
============================================================================

Input Constraints: JSON bodies from the storefront checkout
Side Effects: None (pure validation)

Request models are deliberately lenient: required values are enforced by
the gateway builders so a missing order id or amount surfaces as a
PAY-FLD-001 / PAY-FMT-001 400 response rather than a framework 422.

============================================================================
"""

from typing import Any, Dict, List, Optional, Union
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from paycore.config import OPTIONAL_FIELD_NAMES


# ============================================================================
# CONSTANTS
# ============================================================================

AmountInput = Union[str, int, float, Decimal]

_OPTIONAL_KEYS = {name.lower() for name in OPTIONAL_FIELD_NAMES}


# ============================================================================
# OZOW
# ============================================================================

class OzowInitiateRequest(BaseModel):
    """
    Body of POST /ozow/initiate.

    Optional1..Optional5 (or their lowercase spellings) are accepted as
    extra keys and forwarded only when present.
    """

    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "orderId": "INV-1001",
                "amountRands": "249.90",
                "bankRef": "INV-1001",
                "customer": "Jane Doe",
                "Optional1": "web",
            }
        }
    )

    order_id: Optional[Union[str, int]] = Field(None, alias="orderId")
    amount_rands: Optional[AmountInput] = Field(None, alias="amountRands")
    bank_ref: Optional[str] = Field(None, alias="bankRef")
    customer: Optional[str] = None

    def optionals(self) -> Dict[str, Any]:
        extras = self.model_extra or {}
        return {key: value for key, value in extras.items() if key.lower() in _OPTIONAL_KEYS}


class OzowInitiateResponse(BaseModel):
    action: str
    method: str = "POST"
    fields: Dict[str, str]


# ============================================================================
# PAYGATE
# ============================================================================

class PayGateInitiateRequest(BaseModel):
    """Body of POST /paygate/initiate."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "orderId": "INV-1001",
                "amountRands": "32.99",
                "email": "customer@example.com",
                "currency": "ZAR",
            }
        }
    )

    order_id: Optional[Union[str, int]] = Field(None, alias="orderId")
    amount_rands: Optional[AmountInput] = Field(None, alias="amountRands")
    email: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)


class PayGateCreateRequest(BaseModel):
    """Body of POST /paygate/create (legacy paypage signature)."""

    model_config = ConfigDict(populate_by_name=True)

    order_id: Optional[Union[str, int]] = Field(None, alias="orderId")
    amount_rands: Optional[AmountInput] = Field(None, alias="amountRands")
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    description: str = ""


class InitiateAttemptOut(BaseModel):
    variant: str
    state: str
    reason: Optional[str] = None
    fields: Dict[str, str] = Field(default_factory=dict)
    checksum: Optional[str] = None
    reply: Dict[str, str] = Field(default_factory=dict)


class PayGateInitiateResponse(BaseModel):
    """A verified initiate: POST process_fields to process_url."""
    state: str
    reference: str
    variant: str
    fields: Dict[str, str]
    checksum: str
    pay_request_id: str
    process_url: str
    process_fields: Dict[str, str]
    attempts: List[InitiateAttemptOut] = Field(default_factory=list)


class PaypageResponse(BaseModel):
    success: bool = True
    endpoint: str
    fields: Dict[str, str]
    signature: str
    signature_method: str
