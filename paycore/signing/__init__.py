# ============================================================================
# Paycore v1.0.0
# Signing Module - Digest Primitives & Canonical Field Ordering
# ============================================================================

from paycore.signing.digest import (
    DigestAlgorithm,
    digest_hex,
    digests_equal,
    resolve_algorithm,
)
from paycore.signing.canonical import (
    CanonicalOrder,
    FieldMap,
    InclusionPolicy,
    SigningContext,
    build_canonical_string,
    stringify,
)

__all__ = [
    "DigestAlgorithm",
    "digest_hex",
    "digests_equal",
    "resolve_algorithm",
    "CanonicalOrder",
    "FieldMap",
    "InclusionPolicy",
    "SigningContext",
    "build_canonical_string",
    "stringify",
]
