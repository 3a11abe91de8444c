# ============================================================================
# Paycore v1.0.0
# PayGate PayWeb3 Signer/Verifier - Checksum-Initiate Gateway
# ============================================================================
#
# Purpose: Sign PayWeb3 initiate requests, authenticate initiate replies and
#          drive the initiate protocol across payload variants.
#
# PayWeb3 Checksum Formats:
#   initiate = MD5(concat(PAYGATE_INITIATE_ORDER, missing as "") + key)
#   reply    = MD5(PAYGATE_ID + PAY_REQUEST_ID + REFERENCE + key)
#
# Initiate Protocol:
#   BUILDING -> SUBMITTED -> VERIFIED | REJECTED
#
# MANDATE:
#   - Variants are tried strictly one after another, never in parallel
#   - A transport failure aborts the transaction; it is not a rejection
#   - Encryption key NEVER appears in logs
#
# Error Codes:
#   - PAY-AMB-001: Every variant rejected
#   - PAY-STM-001: Illegal state transition
#
# ============================================================================

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional
from urllib.parse import parse_qsl

from paycore.config import PayGateConfig, redact_secret
from paycore.errors import (
    ChecksumMismatch,
    DigestConfigError,
    InvalidStateTransition,
    MissingRequiredField,
    PaymentErrorCode,
    RemoteProtocolAmbiguity,
    TransportError,
)
from paycore.gateways.formatting import Amount, format_transaction_date, to_minor_units
from paycore.gateways.results import VerificationResult
from paycore.gateways.transport import ProcessorTransport
from paycore.gateways.url_normalizer import prepare_callback_url
from paycore.gateways.variants import PayloadVariant, resolve_variants
from paycore.observability.metrics import record_paygate_attempt, record_signature_built
from paycore.signing.canonical import (
    CanonicalOrder,
    FieldMap,
    InclusionPolicy,
    SigningContext,
)
from paycore.signing.digest import DigestAlgorithm, digest_hex, digests_equal, resolve_algorithm

logger = logging.getLogger(__name__)


PAYGATE_INITIATE_ORDER = CanonicalOrder(
    label="paygate-initiate",
    names=(
        "PAYGATE_ID", "REFERENCE", "AMOUNT", "CURRENCY", "RETURN_URL",
        "TRANSACTION_DATE", "LOCALE", "COUNTRY", "EMAIL", "NOTIFY_URL",
    ),
)

PAYGATE_REPLY_ORDER = CanonicalOrder(
    label="paygate-reply",
    names=("PAYGATE_ID", "PAY_REQUEST_ID", "REFERENCE"),
)

REPLY_CHECKSUM_MISMATCH = "reply checksum mismatch"
REPLY_REFERENCE_MISMATCH = "reply reference mismatch"

# TRANSACTION_STATUS value PayGate posts for an approved payment
TRANSACTION_APPROVED = "1"


# ============================================================================
# Checksums
# ============================================================================

def build_initiate_checksum(fields: FieldMap, key: str) -> str:
    """
    Checksum for an initiate request.

    Every name in PAYGATE_INITIATE_ORDER is included; missing values count
    as empty strings.
    """
    return SigningContext(
        field_map=fields,
        canonical_order=PAYGATE_INITIATE_ORDER,
        secret_key=key or "",
        algorithm=DigestAlgorithm.MD5,
        inclusion_policy=InclusionPolicy.INCLUDE_ALL,
    ).sign()


def build_initiate_reply_checksum(reply: FieldMap, key: str) -> str:
    """Checksum PayGate attaches to an initiate reply (and expects on process)."""
    return SigningContext(
        field_map=reply,
        canonical_order=PAYGATE_REPLY_ORDER,
        secret_key=key or "",
        algorithm=DigestAlgorithm.MD5,
        inclusion_policy=InclusionPolicy.INCLUDE_ALL,
    ).sign()


def build_paypage_signature(params: Mapping[str, Any], key: str, method: str = "hmac-sha256") -> str:
    """
    Signature for the legacy paypage redirect.

    Keys are sorted and joined as "k=v" pairs with "&". ``hmac-sha256`` uses
    the key as HMAC key; ``md5`` hashes the canonical string + key.
    """
    canonical = "&".join(
        f"{name}={'' if params[name] is None else params[name]}" for name in sorted(params)
    )
    algorithm = resolve_algorithm(method)
    if algorithm is DigestAlgorithm.MD5:
        return digest_hex(algorithm, canonical + (key or ""))
    if not algorithm.keyed:
        raise DigestConfigError(f"Paypage signatures support md5 or hmac-sha256, got {method!r}")
    return digest_hex(algorithm, canonical, key=key or "")


@dataclass
class PaypageRequest:
    """Signed legacy paypage fields for the browser to POST."""
    endpoint: str
    fields: Dict[str, str]
    signature: str
    signature_method: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "endpoint": self.endpoint,
            "fields": dict(self.fields),
            "signature": self.signature,
            "signature_method": self.signature_method,
        }


def build_paypage_request(
    config: PayGateConfig,
    reference: Any,
    amount: Amount,
    currency: Optional[str] = None,
    description: str = "",
    timestamp_ms: Optional[int] = None,
    correlation_id: Optional[str] = None
) -> PaypageRequest:
    """
    Sign a legacy paypage redirect with the configured signature type.

    TIMESTAMP is epoch milliseconds and part of the signed parameters.

    Raises:
        MissingRequiredField: No reference (PAY-FLD-001)
        PaymentConfigurationError: Credentials or signature type invalid
        ValueError: Amount cannot be formatted (PAY-FMT-001)
    """
    if reference is None or str(reference).strip() == "":
        raise MissingRequiredField("REFERENCE")
    config.validate()

    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    fields = {
        "PAYGATE_ID": config.paygate_id,
        "REFERENCE": str(reference),
        "AMOUNT": to_minor_units(amount, correlation_id),
        "CURRENCY": currency or config.currency,
        "RETURN_URL": prepare_callback_url(config.return_url, "PAYGATE_RETURN_URL") or "",
        "NOTIFY_URL": prepare_callback_url(config.notify_url, "PAYGATE_NOTIFY_URL") or "",
        "DESCRIPTION": description or "",
        "TIMESTAMP": str(timestamp_ms),
    }
    signature = build_paypage_signature(fields, config.encryption_key, config.signature_type)
    record_signature_built("paygate", correlation_id)

    logger.info(
        f"[PAY-PAYGATE] Paypage request signed | reference={fields['REFERENCE']} | "
        f"amount={fields['AMOUNT']} | method={config.signature_type} | "
        f"key={redact_secret(config.encryption_key)} | correlation_id={correlation_id}"
    )
    return PaypageRequest(
        endpoint=config.paypage_url,
        fields=fields,
        signature=signature,
        signature_method=config.signature_type.upper(),
    )


# ============================================================================
# Fields & Replies
# ============================================================================

def build_initiate_fields(
    config: PayGateConfig,
    reference: Any,
    amount: Amount,
    email: Optional[str],
    transaction_date: Optional[datetime] = None,
    currency: Optional[str] = None,
    correlation_id: Optional[str] = None
) -> Dict[str, str]:
    """
    Assemble the ten initiate fields (no CHECKSUM).

    Raises:
        MissingRequiredField: No reference or email (PAY-FLD-001)
        ValueError: Amount cannot be formatted (PAY-FMT-001)
    """
    if reference is None or str(reference).strip() == "":
        raise MissingRequiredField("REFERENCE")
    if not email or not str(email).strip():
        raise MissingRequiredField("EMAIL")

    moment = transaction_date or datetime.now()
    return {
        "PAYGATE_ID": config.paygate_id,
        "REFERENCE": str(reference),
        "AMOUNT": to_minor_units(amount, correlation_id),
        "CURRENCY": currency or config.currency,
        "RETURN_URL": prepare_callback_url(config.return_url, "PAYGATE_RETURN_URL") or "",
        "TRANSACTION_DATE": format_transaction_date(moment),
        "LOCALE": config.locale,
        "COUNTRY": config.country,
        "EMAIL": str(email).strip(),
        "NOTIFY_URL": prepare_callback_url(config.notify_url, "PAYGATE_NOTIFY_URL") or "",
    }


def parse_reply(body: str) -> Dict[str, str]:
    """Parse a flat form-encoded "KEY=value&KEY=value" reply body."""
    return dict(parse_qsl((body or "").strip(), keep_blank_values=True))


def verify_initiate_reply(reply: Mapping[str, Any], key: str) -> VerificationResult:
    """
    Authenticate an initiate reply.

    An explicit ERROR is a rejection with that reason. Otherwise the
    reply CHECKSUM must match the 3-field reply checksum.
    """
    error = reply.get("ERROR")
    if error:
        return VerificationResult.failed(str(error))

    expected = build_initiate_reply_checksum(reply, key)
    received = str(reply.get("CHECKSUM") or "")
    if not digests_equal(expected, received):
        mismatch = ChecksumMismatch(expected, received, REPLY_CHECKSUM_MISMATCH)
        logger.warning(
            f"{mismatch} | reference={reply.get('REFERENCE')} | "
            f"pay_request_id={reply.get('PAY_REQUEST_ID')} | received_present={bool(received)}"
        )
        return VerificationResult.failed(mismatch.reason)
    return VerificationResult.ok()


def build_process_fields(reply: Mapping[str, Any], key: str) -> Dict[str, str]:
    """Fields the browser POSTs to process.trans after a verified initiate."""
    return {
        "PAY_REQUEST_ID": str(reply.get("PAY_REQUEST_ID", "")),
        "CHECKSUM": build_initiate_reply_checksum(reply, key),
    }


def is_paid_notify(payload: Mapping[str, Any]) -> bool:
    """True when a PayGate notify reports an approved transaction."""
    return str(payload.get("TRANSACTION_STATUS", "")).strip() == TRANSACTION_APPROVED


# ============================================================================
# Initiate State Machine
# ============================================================================

class InitiateState(str, Enum):
    """Lifecycle of one initiate attempt."""
    BUILDING = "BUILDING"
    SUBMITTED = "SUBMITTED"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


_TRANSITIONS = {
    InitiateState.BUILDING: {InitiateState.SUBMITTED},
    InitiateState.SUBMITTED: {InitiateState.VERIFIED, InitiateState.REJECTED},
    InitiateState.VERIFIED: set(),
    InitiateState.REJECTED: set(),
}


@dataclass
class InitiateAttempt:
    """
    Diagnostics for one variant's round trip.

    ``fields`` is what was posted (without CHECKSUM); the key is never stored.
    """
    variant: str
    state: InitiateState = InitiateState.BUILDING
    reason: Optional[str] = None
    fields: Dict[str, str] = field(default_factory=dict)
    checksum: Optional[str] = None
    reply: Dict[str, str] = field(default_factory=dict)

    def transition(self, new_state: InitiateState, reason: Optional[str] = None) -> None:
        """
        Raises:
            InvalidStateTransition: Move not allowed from the current state (PAY-STM-001)
        """
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidStateTransition(
                f"Cannot move initiate attempt '{self.variant}' "
                f"from {self.state.value} to {new_state.value}"
            )
        self.state = new_state
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variant": self.variant,
            "state": self.state.value,
            "reason": self.reason,
            "fields": dict(self.fields),
            "checksum": self.checksum,
            "reply": dict(self.reply),
        }


@dataclass
class InitiateResult:
    """A verified initiate, ready for the process.trans redirect."""
    state: InitiateState
    reference: str
    variant: str
    fields: Dict[str, str]
    checksum: str
    pay_request_id: str
    process_url: str
    process_fields: Dict[str, str]
    attempts: List[InitiateAttempt] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "reference": self.reference,
            "variant": self.variant,
            "fields": dict(self.fields),
            "checksum": self.checksum,
            "pay_request_id": self.pay_request_id,
            "process_url": self.process_url,
            "process_fields": dict(self.process_fields),
            "attempts": [attempt.to_dict() for attempt in self.attempts],
        }


class PayGateInitiator:
    """
    Runs the PayWeb3 initiate protocol over the configured payload variants.

    Example Usage:
        initiator = PayGateInitiator(config)
        result = initiator.initiate("INV-1001", "32.99", "customer@example.com")
        redirect_to(result.process_url, result.process_fields)

    Raises (from initiate):
        RemoteProtocolAmbiguity: Every variant was rejected (PAY-AMB-001)
        TransportError: A round trip failed (PAY-NET-001); no further variants run
    """

    def __init__(
        self,
        config: PayGateConfig,
        transport: Optional[ProcessorTransport] = None,
        variants: Optional[Iterable[str]] = None,
        correlation_id: Optional[str] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        config.validate()
        self.config = config
        self.correlation_id = correlation_id
        self.transport = transport or ProcessorTransport("paygate", correlation_id=correlation_id)
        self.variants = resolve_variants(variants if variants is not None else config.variants)
        self._clock = clock

    def initiate(
        self,
        reference: Any,
        amount: Amount,
        email: Optional[str],
        transaction_date: Optional[datetime] = None,
        currency: Optional[str] = None
    ) -> InitiateResult:
        # One timestamp for every variant so attempts differ only by variant
        base_fields = build_initiate_fields(
            self.config,
            reference,
            amount,
            email,
            transaction_date=transaction_date or self._clock(),
            currency=currency,
            correlation_id=self.correlation_id,
        )
        reference_value = base_fields["REFERENCE"]
        attempts: List[InitiateAttempt] = []

        logger.info(
            f"[PAY-PAYGATE] Initiate started | reference={reference_value} | "
            f"amount={base_fields['AMOUNT']} | paygate_id={self.config.paygate_id} | "
            f"key={redact_secret(self.config.encryption_key)} | "
            f"variants={','.join(v.name for v in self.variants)} | "
            f"correlation_id={self.correlation_id}"
        )

        for index, variant in enumerate(self.variants, start=1):
            try:
                attempt = self._attempt(variant, base_fields)
            except TransportError as e:
                e.attempts = list(attempts)
                logger.error(
                    f"[{PaymentErrorCode.TRANSPORT_FAILURE}] Initiate aborted | "
                    f"variant={variant.name} | reference={reference_value} | "
                    f"rejected={'; '.join(f'{a.variant}: {a.reason}' for a in attempts) or '(none)'} | "
                    f"correlation_id={self.correlation_id}"
                )
                raise
            attempts.append(attempt)

            logger.info(
                f"[PAY-PAYGATE] Attempt {index}/{len(self.variants)} | "
                f"variant={variant.name} | state={attempt.state.value} | "
                f"reason={attempt.reason} | reference={reference_value} | "
                f"correlation_id={self.correlation_id}"
            )

            if attempt.state is InitiateState.VERIFIED:
                return InitiateResult(
                    state=InitiateState.VERIFIED,
                    reference=reference_value,
                    variant=variant.name,
                    fields=dict(attempt.fields),
                    checksum=attempt.checksum or "",
                    pay_request_id=attempt.reply.get("PAY_REQUEST_ID", ""),
                    process_url=self.config.process_url,
                    process_fields=build_process_fields(attempt.reply, self.config.encryption_key),
                    attempts=attempts,
                )

        logger.error(
            f"[{PaymentErrorCode.PROTOCOL_AMBIGUITY}] All payload variants rejected | "
            f"reference={reference_value} | "
            f"reasons={'; '.join(f'{a.variant}: {a.reason}' for a in attempts)} | "
            f"correlation_id={self.correlation_id}"
        )
        raise RemoteProtocolAmbiguity(reference_value, attempts)

    def _attempt(self, variant: PayloadVariant, base_fields: Mapping[str, str]) -> InitiateAttempt:
        key = self.config.encryption_key
        attempt = InitiateAttempt(variant=variant.name)

        payload = variant.apply(base_fields)
        attempt.fields = payload
        attempt.checksum = build_initiate_checksum(variant.checksum_fields(payload), key)
        record_signature_built("paygate", self.correlation_id)

        attempt.transition(InitiateState.SUBMITTED)
        body = self.transport.post_form(
            self.config.initiate_url,
            {**payload, "CHECKSUM": attempt.checksum},
            timeout=self.config.timeout_seconds,
        )
        attempt.reply = parse_reply(body)

        verification = verify_initiate_reply(attempt.reply, key)
        if verification.verified and attempt.reply.get("REFERENCE") != payload.get("REFERENCE"):
            verification = VerificationResult.failed(REPLY_REFERENCE_MISMATCH)

        if verification.verified:
            attempt.transition(InitiateState.VERIFIED)
        else:
            attempt.transition(InitiateState.REJECTED, verification.reason)
        record_paygate_attempt(variant.name, attempt.state.value, self.correlation_id)
        return attempt
