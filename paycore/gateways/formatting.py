# ============================================================================
# Paycore v1.0.0
# Amount & Date Formatting - Signing-Safe Stringification
# ============================================================================
#
# Purpose: Explicit formatting for the values that end up inside a signing
#          string. Default stringification of floats and datetimes is not
#          stable enough to sign.
#
# Formats:
#   - Ozow Amount: major units, exactly 2 decimal places ("1234.50")
#   - PayGate AMOUNT: integer minor units ("123450")
#   - PayGate TRANSACTION_DATE: "YYYY-MM-DD HH:MM:SS"
#
# Rounding: ROUND_HALF_UP, matching the processors' own rounding of cents.
#
# Error Codes:
#   - PAY-FMT-001: Value cannot be formatted
#
# ============================================================================

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional, Union
import logging

from paycore.errors import PaymentErrorCode

logger = logging.getLogger(__name__)

Amount = Union[Decimal, str, int, float]

TRANSACTION_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class AmountFormatter:
    """
    Converts amounts to Decimal and renders them for signing.

    Example Usage:
        formatter = AmountFormatter()
        formatter.format_major("32.99")     # "32.99"
        formatter.to_minor_units("32.99")   # "3299"
    """

    MAJOR_PRECISION = Decimal("0.01")
    MINOR_PRECISION = Decimal("1")
    MINOR_PER_MAJOR = Decimal("100")

    def to_decimal(self, value: Amount, correlation_id: Optional[str] = None) -> Decimal:
        """
        Convert via str() so floats never leak binary precision errors.

        Raises:
            ValueError: Non-numeric, non-finite or non-positive amount (PAY-FMT-001)
        """
        if value is None or isinstance(value, bool):
            raise ValueError(f"{PaymentErrorCode.FORMAT_INVALID}: amount is required")
        try:
            decimal_value = Decimal(str(value).strip())
        except (InvalidOperation, ValueError, TypeError) as e:
            logger.error(
                f"[{PaymentErrorCode.FORMAT_INVALID}] Amount conversion failed | "
                f"value={value!r} | type={type(value).__name__} | "
                f"correlation_id={correlation_id}"
            )
            raise ValueError(
                f"{PaymentErrorCode.FORMAT_INVALID}: cannot convert {value!r} to an amount"
            ) from e

        if not decimal_value.is_finite() or decimal_value <= 0:
            raise ValueError(
                f"{PaymentErrorCode.FORMAT_INVALID}: amount must be a positive number, "
                f"received {value!r}"
            )
        return decimal_value

    def format_major(self, value: Amount, correlation_id: Optional[str] = None) -> str:
        """Render in major units with exactly two decimals ("10" -> "10.00")."""
        amount = self.to_decimal(value, correlation_id)
        try:
            return str(amount.quantize(self.MAJOR_PRECISION, rounding=ROUND_HALF_UP))
        except InvalidOperation as e:
            raise self._out_of_range(value, correlation_id) from e

    def to_minor_units(self, value: Amount, correlation_id: Optional[str] = None) -> str:
        """Render as an integer count of cents ("32.99" -> "3299")."""
        amount = self.to_decimal(value, correlation_id)
        try:
            cents = (amount * self.MINOR_PER_MAJOR).quantize(
                self.MINOR_PRECISION,
                rounding=ROUND_HALF_UP
            )
        except InvalidOperation as e:
            raise self._out_of_range(value, correlation_id) from e
        return str(int(cents))

    def _out_of_range(self, value: Amount, correlation_id: Optional[str]) -> ValueError:
        # quantize fails once the result needs more digits than the context precision
        logger.error(
            f"[{PaymentErrorCode.FORMAT_INVALID}] Amount out of range | "
            f"value={value!r} | correlation_id={correlation_id}"
        )
        return ValueError(
            f"{PaymentErrorCode.FORMAT_INVALID}: amount {value!r} is too large to format"
        )


def format_transaction_date(moment: datetime) -> str:
    """
    Render a PayGate TRANSACTION_DATE.

    Timezone information is dropped; PayGate expects local wall-clock time.
    """
    if not isinstance(moment, datetime):
        raise ValueError(
            f"{PaymentErrorCode.FORMAT_INVALID}: transaction date must be a datetime, "
            f"received {type(moment).__name__}"
        )
    return moment.strftime(TRANSACTION_DATE_FORMAT)


# ============================================================================
# Module-level convenience functions
# ============================================================================

_formatter = AmountFormatter()


def format_major(value: Amount, correlation_id: Optional[str] = None) -> str:
    """Module-level convenience function for 2-decimal amounts."""
    return _formatter.format_major(value, correlation_id)


def to_minor_units(value: Amount, correlation_id: Optional[str] = None) -> str:
    """Module-level convenience function for cent amounts."""
    return _formatter.to_minor_units(value, correlation_id)
