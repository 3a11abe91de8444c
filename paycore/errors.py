# ============================================================================
# Paycore v1.0.0
# Payment Error Taxonomy
# ============================================================================
#
# Purpose: Exceptions and value objects shared by the signing core and the
#          gateway adapters.
#
# Error Codes:
#   - PAY-DIG-001: Unsupported digest algorithm
#   - PAY-DIG-002: Keyed digest requested without a key
#   - PAY-CHK-001: Checksum mismatch (reported, never raised)
#   - PAY-FLD-001: Required field missing at signing time
#   - PAY-AMB-001: Every PayGate payload variant was rejected
#   - PAY-NET-001: Transport failure talking to a processor
#   - PAY-STM-001: Illegal initiate state transition
#   - PAY-CFG-001: Required configuration missing or invalid
#   - PAY-FMT-001: Amount or date cannot be formatted
#
# Expected outcomes (a checksum that does not match) are carried as values.
# Exceptions are reserved for programmer errors, caller validation errors
# and failures that abort a single transaction.
#
# ============================================================================

from dataclasses import dataclass
from typing import List, Optional, Any


class PaymentErrorCode:
    """Error codes for audit logging."""
    DIGEST_UNSUPPORTED = "PAY-DIG-001"
    DIGEST_KEY_MISSING = "PAY-DIG-002"
    CHECKSUM_MISMATCH = "PAY-CHK-001"
    FIELD_MISSING = "PAY-FLD-001"
    PROTOCOL_AMBIGUITY = "PAY-AMB-001"
    TRANSPORT_FAILURE = "PAY-NET-001"
    STATE_TRANSITION = "PAY-STM-001"
    CONFIG_MISSING = "PAY-CFG-001"
    FORMAT_INVALID = "PAY-FMT-001"


class PaymentError(Exception):
    """
    Base exception for payment gateway errors.

    Every subclass carries an ``error_code`` so handlers can log and map
    failures without string matching.
    """

    error_code = "PAY-000"

    def __init__(self, message: str, error_code: Optional[str] = None):
        if error_code is not None:
            self.error_code = error_code
        self.message = message
        super().__init__(f"[{self.error_code}] {message}")


class DigestConfigError(PaymentError):
    """Unsupported digest algorithm or missing HMAC key (programmer error)."""

    error_code = PaymentErrorCode.DIGEST_UNSUPPORTED


class MissingRequiredField(PaymentError):
    """
    A field the processor requires was not supplied.

    Raised by the request builders before anything is signed. The HTTP
    layer maps it to a 400 validation response.
    """

    error_code = PaymentErrorCode.FIELD_MISSING

    def __init__(self, field_name: str, message: Optional[str] = None):
        self.field_name = field_name
        super().__init__(message or f"Required field '{field_name}' is missing")


class TransportError(PaymentError):
    """
    Network or HTTP failure while talking to a processor.

    Kept separate from verification failures: a transport error says
    nothing about whether the processor accepted the checksum.
    ``attempts`` holds PayGate variants already rejected before the failure.
    """

    error_code = PaymentErrorCode.TRANSPORT_FAILURE

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        self.attempts: List[Any] = []
        super().__init__(message)


class InvalidStateTransition(PaymentError):
    """Illegal move in the PayGate initiate state machine."""

    error_code = PaymentErrorCode.STATE_TRANSITION


class PaymentConfigurationError(PaymentError):
    """Required gateway configuration is missing or invalid."""

    error_code = PaymentErrorCode.CONFIG_MISSING


class RemoteProtocolAmbiguity(PaymentError):
    """
    Every configured PayGate payload variant was rejected.

    Fails the one transaction it belongs to. ``attempts`` holds the full
    diagnostics of each variant tried, in the order they were tried.
    """

    error_code = PaymentErrorCode.PROTOCOL_AMBIGUITY

    def __init__(self, reference: str, attempts: List[Any]):
        self.reference = reference
        self.attempts = list(attempts)
        names = ", ".join(getattr(a, "variant", "?") for a in self.attempts)
        super().__init__(
            f"No payload variant produced a verified reply for reference "
            f"'{reference}' after {len(self.attempts)} attempt(s): [{names}]"
        )


@dataclass(frozen=True)
class ChecksumMismatch:
    """
    Description of a digest that did not match.

    A value, not an exception: mismatches are an expected outcome and are
    surfaced to callers as a reason string.
    """
    expected: str
    received: str
    reason: str = "checksum mismatch"
    error_code: str = PaymentErrorCode.CHECKSUM_MISMATCH

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.reason}"
