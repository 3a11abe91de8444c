"""
============================================================================
Paycore v1.0.0
Digest Primitives - SHA-512, MD5 and HMAC-SHA256
============================================================================

Input Constraints: Text input (UTF-8 encoded before hashing)
Side Effects: None (pure functions)

All digests are returned as lowercase hexadecimal. Algorithm names are
resolved once; an unknown name is a programmer error and fails fast with
PAY-DIG-001.

============================================================================
"""

import hashlib
import hmac
from enum import Enum
from typing import Optional, Union

from paycore.errors import DigestConfigError, PaymentErrorCode


class DigestAlgorithm(str, Enum):
    """
    Supported digest algorithms.

    HMAC_SHA256 is keyed; the others hash the message as-is.
    """
    SHA512 = "sha512"
    MD5 = "md5"
    HMAC_SHA256 = "hmac-sha256"

    @property
    def keyed(self) -> bool:
        return self is DigestAlgorithm.HMAC_SHA256


# Accepted spellings for string lookups
_ALIASES = {
    "sha512": DigestAlgorithm.SHA512,
    "sha-512": DigestAlgorithm.SHA512,
    "md5": DigestAlgorithm.MD5,
    "hmac-sha256": DigestAlgorithm.HMAC_SHA256,
    "hmac_sha256": DigestAlgorithm.HMAC_SHA256,
    "hmacsha256": DigestAlgorithm.HMAC_SHA256,
}


def resolve_algorithm(algorithm: Union[DigestAlgorithm, str]) -> DigestAlgorithm:
    """
    Resolve an algorithm enum or name.

    Raises:
        DigestConfigError: If the name is not a supported algorithm (PAY-DIG-001)
    """
    if isinstance(algorithm, DigestAlgorithm):
        return algorithm
    if isinstance(algorithm, str):
        resolved = _ALIASES.get(algorithm.strip().lower())
        if resolved is not None:
            return resolved
    raise DigestConfigError(
        f"Unsupported digest algorithm: {algorithm!r}. "
        f"Supported: {', '.join(a.value for a in DigestAlgorithm)}",
        error_code=PaymentErrorCode.DIGEST_UNSUPPORTED,
    )


def digest_hex(
    algorithm: Union[DigestAlgorithm, str],
    data: str,
    key: Optional[str] = None
) -> str:
    """
    Compute a lowercase hex digest of ``data``.

    Args:
        algorithm: DigestAlgorithm or its name ("sha512", "md5", "hmac-sha256")
        data: Message to hash
        key: HMAC key (required for keyed algorithms, ignored otherwise)

    Returns:
        Lowercase hexadecimal digest

    Raises:
        DigestConfigError: Unsupported algorithm (PAY-DIG-001) or keyed
            algorithm without a key (PAY-DIG-002)
    """
    resolved = resolve_algorithm(algorithm)
    message = data.encode("utf-8")

    if resolved is DigestAlgorithm.SHA512:
        return hashlib.sha512(message).hexdigest()
    if resolved is DigestAlgorithm.MD5:
        return hashlib.md5(message).hexdigest()

    if key is None:
        raise DigestConfigError(
            f"{resolved.value} requires a key",
            error_code=PaymentErrorCode.DIGEST_KEY_MISSING,
        )
    return hmac.new(
        key=key.encode("utf-8"),
        msg=message,
        digestmod=hashlib.sha256
    ).hexdigest()


def digests_equal(expected: Optional[str], received: Optional[str]) -> bool:
    """
    Case-insensitive, timing-safe digest comparison.

    Empty or missing values never match.
    """
    if not expected or not received:
        return False
    return hmac.compare_digest(
        expected.strip().lower().encode("utf-8"),
        received.strip().lower().encode("utf-8")
    )
