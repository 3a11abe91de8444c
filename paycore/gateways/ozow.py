# ============================================================================
# Paycore v1.0.0
# Ozow Signer/Verifier - Hash-Redirect Gateway
# ============================================================================
#
# Purpose: Sign outgoing Ozow payment requests and verify notify callbacks
#
# Ozow HashCheck Format:
#   source = concat(fields present, in OZOW_ORDER) + private_key
#   HashCheck = SHA512(lowercase(source))
#
# MANDATE:
#   - A field absent from the map is skipped; a field present with ""
#     contributes an empty segment. Ozow hashes exactly what was posted.
#   - The whole concatenation (key included) is lowercased, never per field
#   - Private key NEVER appears in logs
#
# ============================================================================

import html
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from paycore.config import OPTIONAL_FIELD_NAMES, OzowConfig, redact_secret
from paycore.errors import MissingRequiredField, PaymentErrorCode
from paycore.gateways.formatting import Amount, format_major
from paycore.gateways.results import VerificationResult
from paycore.gateways.transport import ProcessorTransport
from paycore.gateways.url_normalizer import prepare_callback_url
from paycore.observability.metrics import record_signature_built
from paycore.signing.canonical import (
    CanonicalOrder,
    FieldMap,
    InclusionPolicy,
    SigningContext,
)
from paycore.signing.digest import DigestAlgorithm, digests_equal

logger = logging.getLogger(__name__)


OZOW_ORDER = CanonicalOrder(
    label="ozow",
    names=(
        "SiteCode", "CountryCode", "CurrencyCode", "Amount",
        "TransactionReference", "BankReference",
        "Optional1", "Optional2", "Optional3", "Optional4", "Optional5",
        "Customer", "CancelUrl", "ErrorUrl", "SuccessUrl", "NotifyUrl",
        "IsTest",
    ),
)

# Notify callbacks carry the digest under either name
HASH_FIELD_NAMES = ("Hash", "HashCheck")

BANK_REFERENCE_MAX_LENGTH = 20

DEFAULT_CUSTOMER = "customer"


# ============================================================================
# Signing & Verification
# ============================================================================

def build_hash(fields: FieldMap, private_key: str) -> str:
    """
    Compute the Ozow HashCheck for a field map.

    Args:
        fields: Ozow fields; only names in OZOW_ORDER that are present are hashed
        private_key: Merchant private key, appended before lowercasing

    Returns:
        Lowercase SHA-512 hex digest
    """
    context = SigningContext(
        field_map=fields,
        canonical_order=OZOW_ORDER,
        secret_key=private_key or "",
        algorithm=DigestAlgorithm.SHA512,
        inclusion_policy=InclusionPolicy.SKIP_ABSENT,
        case_fold=True,
    )
    return context.sign()


def verify_hash(received_fields: FieldMap, received_hash: Optional[str], private_key: str) -> bool:
    """
    Recompute the HashCheck and compare it to the received one.

    Comparison is case-insensitive and timing-safe. A missing hash never
    verifies.
    """
    computed = build_hash(received_fields, private_key)
    return digests_equal(computed, received_hash)


def extract_received_hash(payload: Mapping[str, Any]) -> str:
    """Return the digest from a callback, accepting "Hash" or "HashCheck"."""
    for name in HASH_FIELD_NAMES:
        value = payload.get(name)
        if value:
            return str(value)
    return ""


def verify_notify(
    payload: Mapping[str, Any],
    private_key: str,
    correlation_id: Optional[str] = None
) -> VerificationResult:
    """
    Verify an Ozow notify callback.

    Returns:
        VerificationResult with reason "missing_hash" or "hash_mismatch" on failure
    """
    received_hash = extract_received_hash(payload)
    if not received_hash:
        logger.warning(
            f"[{PaymentErrorCode.CHECKSUM_MISMATCH}] Ozow notify without hash | "
            f"reference={payload.get('TransactionReference')} | correlation_id={correlation_id}"
        )
        return VerificationResult.failed("missing_hash")

    if not verify_hash(payload, received_hash, private_key):
        logger.warning(
            f"[{PaymentErrorCode.CHECKSUM_MISMATCH}] Ozow notify hash mismatch | "
            f"reference={payload.get('TransactionReference')} | "
            f"fields={','.join(sorted(payload.keys()))} | correlation_id={correlation_id}"
        )
        return VerificationResult.failed("hash_mismatch")

    return VerificationResult.ok()


# ============================================================================
# Request Building
# ============================================================================

@dataclass
class OzowPaymentRequest:
    """Signed fields plus where the browser should POST them."""
    action: str
    fields: Dict[str, str]
    method: str = "POST"

    def to_dict(self) -> Dict[str, Any]:
        return {"action": self.action, "method": self.method, "fields": dict(self.fields)}


def _explicit_optionals(
    config: OzowConfig,
    optionals: Optional[Mapping[str, Any]]
) -> Dict[str, str]:
    # Request values win over configured ones; blank values are never sent
    provided = dict(optionals or {})
    selected: Dict[str, str] = {}
    for name in OPTIONAL_FIELD_NAMES:
        value = provided.get(name)
        if value is None or str(value).strip() == "":
            value = provided.get(name.lower())
        if value is None or str(value).strip() == "":
            value = config.optionals.get(name)
        if value is not None and str(value).strip() != "":
            selected[name] = str(value)
    return selected


def build_payment_request(
    config: OzowConfig,
    order_id: Any,
    amount: Amount,
    bank_reference: Optional[str] = None,
    customer: Optional[str] = None,
    optionals: Optional[Mapping[str, Any]] = None,
    correlation_id: Optional[str] = None
) -> OzowPaymentRequest:
    """
    Assemble and sign the fields for an Ozow pay page redirect.

    Optional1..Optional5 are attached only when explicitly provided, so an
    unset optional is absent from the hash rather than hashed as "".

    Raises:
        MissingRequiredField: No order id (PAY-FLD-001)
        PaymentConfigurationError: Site code or private key missing
        ValueError: Amount cannot be formatted (PAY-FMT-001)
    """
    if order_id is None or str(order_id).strip() == "":
        raise MissingRequiredField("orderId")
    config.validate()

    reference = str(order_id)
    if isinstance(customer, str):
        customer_name = customer.replace("<", "").replace(">", "")
    else:
        customer_name = str(customer or DEFAULT_CUSTOMER)

    fields: Dict[str, str] = {
        "SiteCode": config.site_code,
        "CountryCode": config.country_code,
        "CurrencyCode": config.currency_code,
        "Amount": format_major(amount, correlation_id),
        "TransactionReference": reference,
        "BankReference": str(bank_reference or reference)[:BANK_REFERENCE_MAX_LENGTH],
        "Customer": customer_name,
        "CancelUrl": prepare_callback_url(config.cancel_url, "OZOW_CANCEL_URL") or "",
        "ErrorUrl": prepare_callback_url(config.error_url, "OZOW_ERROR_URL") or "",
        "SuccessUrl": prepare_callback_url(config.success_url, "OZOW_SUCCESS_URL") or "",
        "NotifyUrl": prepare_callback_url(config.notify_url, "OZOW_NOTIFY_URL") or "",
        "IsTest": "true" if config.is_test else "false",
    }
    fields.update(_explicit_optionals(config, optionals))

    fields["HashCheck"] = build_hash(fields, config.private_key)
    record_signature_built("ozow", correlation_id)

    logger.info(
        f"[PAY-OZOW] Payment request signed | "
        f"reference={reference} | amount={fields['Amount']} | "
        f"site_code={config.site_code} | private_key={redact_secret(config.private_key)} | "
        f"fields={','.join(fields.keys())} | hash=[REDACTED] | correlation_id={correlation_id}"
    )
    return OzowPaymentRequest(action=config.pay_url, fields=fields)


def render_forward_form(fields: Mapping[str, Any], endpoint: str) -> str:
    """
    Render an auto-submitting HTML form that POSTs ``fields`` to ``endpoint``.

    Values are posted as given; the caller is responsible for having signed them.
    """
    inputs = "\n".join(
        f'<input type="hidden" name="{html.escape(str(name), quote=True)}" '
        f'value="{html.escape("" if value is None else str(value), quote=True)}"/>'
        for name, value in fields.items()
    )
    action = html.escape(endpoint, quote=True)
    return (
        '<!doctype html><html><head><meta charset="utf-8"><title>Ozow Forward</title></head>'
        f'<body><form id="f" method="POST" action="{action}">\n{inputs}\n</form>'
        "<script>document.getElementById('f').submit();</script></body></html>"
    )


# ============================================================================
# Transaction Status
# ============================================================================

class OzowClient:
    """
    Ozow REST API client for transaction lookups.

    Example Usage:
        client = OzowClient(config)
        transactions = client.get_transaction_by_reference("INV-1001")
    """

    STATUS_PATH = "/Transaction/GetTransactionByReference"

    def __init__(
        self,
        config: OzowConfig,
        transport: Optional[ProcessorTransport] = None,
        correlation_id: Optional[str] = None
    ):
        self.config = config
        self.correlation_id = correlation_id
        self.transport = transport or ProcessorTransport("ozow", correlation_id=correlation_id)

    def get_transaction_by_reference(self, reference: str) -> Any:
        """
        Look up transactions by merchant reference.

        Raises:
            MissingRequiredField: Empty reference
            TransportError: Network or HTTP failure (PAY-NET-001)
        """
        if not reference or not str(reference).strip():
            raise MissingRequiredField("TransactionReference")

        url = f"{self.config.api_url}{self.STATUS_PATH}"
        params = {"siteCode": self.config.site_code, "transactionReference": str(reference)}
        logger.info(
            f"[PAY-OZOW] Transaction lookup | reference={reference} | "
            f"api_key={redact_secret(self.config.api_key)} | correlation_id={self.correlation_id}"
        )
        return self.transport.get_json(
            url,
            timeout=self.config.timeout_seconds,
            params=params,
            headers={"ApiKey": self.config.api_key, "Accept": "application/json"},
        )
