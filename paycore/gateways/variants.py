# ============================================================================
# Paycore v1.0.0
# PayGate Payload Variants
# ============================================================================
#
# Purpose: Ordered, explicit list of initiate payload variations tried when
#          PayGate rejects the standard payload.
#
# PayGate's published field rules leave room for interpretation (whether an
# empty NOTIFY_URL is posted, locale spelling, date precision, whether
# RETURN_URL is covered by the checksum). The initiator tries each variant
# in priority order, sequentially, until one yields a verified reply.
#
# The list is small and fixed so behaviour is reproducible. Which variants
# run, and in what order, is chosen by name through PAYGATE_VARIANTS.
#
# ============================================================================

from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from paycore.errors import PaymentConfigurationError

Fields = Dict[str, str]


def _unchanged(fields: Fields) -> Fields:
    return fields


def _without_notify_url(fields: Fields) -> Fields:
    fields.pop("NOTIFY_URL", None)
    return fields


def _alternate_locale(fields: Fields) -> Fields:
    fields["LOCALE"] = "en"
    fields["COUNTRY"] = "ZAF"
    return fields


def _truncated_date(fields: Fields) -> Fields:
    value = fields.get("TRANSACTION_DATE", "")
    if len(value) >= 16:
        fields["TRANSACTION_DATE"] = value[:16] + ":00"
    return fields


@dataclass(frozen=True)
class PayloadVariant:
    """
    One candidate initiate payload convention.

    ``transform`` rewrites a copy of the base fields into what is posted;
    ``checksum_exclusions`` names posted fields left out of the checksum.
    """
    name: str
    description: str
    transform: Callable[[Fields], Fields] = _unchanged
    checksum_exclusions: FrozenSet[str] = field(default_factory=frozenset)

    def apply(self, base_fields: Mapping[str, str]) -> Fields:
        return self.transform(dict(base_fields))

    def checksum_fields(self, payload: Mapping[str, str]) -> Fields:
        return {name: value for name, value in payload.items() if name not in self.checksum_exclusions}


STANDARD = PayloadVariant(
    name="standard",
    description="All ten initiate fields as built",
)

WITHOUT_NOTIFY_URL = PayloadVariant(
    name="without_notify_url",
    description="NOTIFY_URL not posted",
    transform=_without_notify_url,
)

ALTERNATE_LOCALE = PayloadVariant(
    name="alternate_locale",
    description="LOCALE 'en' with COUNTRY 'ZAF'",
    transform=_alternate_locale,
)

TRUNCATED_DATE = PayloadVariant(
    name="truncated_date",
    description="TRANSACTION_DATE with seconds zeroed",
    transform=_truncated_date,
)

RETURN_URL_UNSIGNED = PayloadVariant(
    name="return_url_unsigned",
    description="RETURN_URL posted but excluded from the checksum",
    checksum_exclusions=frozenset({"RETURN_URL"}),
)

VARIANT_REGISTRY: Dict[str, PayloadVariant] = {
    variant.name: variant
    for variant in (
        STANDARD,
        WITHOUT_NOTIFY_URL,
        ALTERNATE_LOCALE,
        TRUNCATED_DATE,
        RETURN_URL_UNSIGNED,
    )
}

DEFAULT_VARIANT_ORDER: Tuple[str, ...] = (
    "standard",
    "without_notify_url",
    "alternate_locale",
    "truncated_date",
    "return_url_unsigned",
)


def resolve_variants(names: Optional[Iterable[str]] = None) -> Tuple[PayloadVariant, ...]:
    """
    Look up variants by name, preserving the given order.

    An empty or missing selection means DEFAULT_VARIANT_ORDER.

    Raises:
        PaymentConfigurationError: Unknown or repeated variant name (PAY-CFG-001)
    """
    selected = tuple(names or ()) or DEFAULT_VARIANT_ORDER

    unknown = [name for name in selected if name not in VARIANT_REGISTRY]
    if unknown:
        raise PaymentConfigurationError(
            f"Unknown PayGate payload variant(s): {', '.join(unknown)}. "
            f"Known: {', '.join(VARIANT_REGISTRY)}"
        )
    if len(set(selected)) != len(selected):
        raise PaymentConfigurationError(
            f"PayGate payload variants must not repeat: {', '.join(selected)}"
        )
    return tuple(VARIANT_REGISTRY[name] for name in selected)
