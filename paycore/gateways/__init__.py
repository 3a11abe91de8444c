# ============================================================================
# Paycore v1.0.0
# Gateway Adapters - Ozow & PayGate PayWeb3
# ============================================================================
#
# Components:
#   - ozow: HashCheck signing, notify verification, pay page request builder
#   - paygate: initiate/reply checksums, initiate state machine, variants
#   - formatting: amount and date rendering for signing strings
#   - url_normalizer: callback URL repair
#   - transport: the only network I/O in paycore
#
# ============================================================================

from paycore.gateways.results import VerificationResult
from paycore.gateways.formatting import (
    AmountFormatter,
    format_major,
    format_transaction_date,
    to_minor_units,
)
from paycore.gateways.url_normalizer import (
    normalize_url,
    prepare_callback_url,
    sanitize_outgoing_url,
)
from paycore.gateways.transport import ProcessorTransport
from paycore.gateways.ozow import (
    OZOW_ORDER,
    OzowClient,
    OzowPaymentRequest,
    build_hash,
    build_payment_request,
    extract_received_hash,
    render_forward_form,
    verify_hash,
    verify_notify,
)
from paycore.gateways.variants import (
    DEFAULT_VARIANT_ORDER,
    VARIANT_REGISTRY,
    PayloadVariant,
    resolve_variants,
)
from paycore.gateways.paygate import (
    PAYGATE_INITIATE_ORDER,
    PAYGATE_REPLY_ORDER,
    InitiateAttempt,
    InitiateResult,
    InitiateState,
    PaypageRequest,
    PayGateInitiator,
    build_initiate_checksum,
    build_initiate_fields,
    build_initiate_reply_checksum,
    build_paypage_request,
    build_paypage_signature,
    build_process_fields,
    is_paid_notify,
    parse_reply,
    verify_initiate_reply,
)

__all__ = [
    'VerificationResult',
    # Formatting
    'AmountFormatter',
    'format_major',
    'format_transaction_date',
    'to_minor_units',
    # URL normalization
    'normalize_url',
    'prepare_callback_url',
    'sanitize_outgoing_url',
    # Transport
    'ProcessorTransport',
    # Ozow
    'OZOW_ORDER',
    'OzowClient',
    'OzowPaymentRequest',
    'build_hash',
    'build_payment_request',
    'extract_received_hash',
    'render_forward_form',
    'verify_hash',
    'verify_notify',
    # PayGate variants
    'DEFAULT_VARIANT_ORDER',
    'VARIANT_REGISTRY',
    'PayloadVariant',
    'resolve_variants',
    # PayGate
    'PAYGATE_INITIATE_ORDER',
    'PAYGATE_REPLY_ORDER',
    'InitiateAttempt',
    'InitiateResult',
    'InitiateState',
    'PaypageRequest',
    'PayGateInitiator',
    'build_initiate_checksum',
    'build_initiate_fields',
    'build_initiate_reply_checksum',
    'build_paypage_request',
    'build_paypage_signature',
    'build_process_fields',
    'is_paid_notify',
    'parse_reply',
    'verify_initiate_reply',
]
