"""
============================================================================
Paycore v1.0.0
Canonical Field Orderer - Deterministic Signing Strings
============================================================================

Input Constraints: Fixed CanonicalOrder, sparse field map, secret key
Side Effects: None (pure functions)

Both processors sign the same way:

    canonical order -> concatenation (no separators) -> + key -> digest

Presence in the field map is decided by key membership, never by
truthiness. A field present with value "" contributes an empty segment;
a field that is absent contributes nothing under SKIP_ABSENT.

============================================================================
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Mapping, Optional, Tuple, Union

from paycore.signing.digest import DigestAlgorithm, digest_hex, resolve_algorithm


Scalar = Union[str, int, float, Decimal, bool, None]
FieldMap = Mapping[str, Scalar]


class InclusionPolicy(str, Enum):
    """How fields missing from the map are treated during concatenation."""
    SKIP_ABSENT = "SKIP_ABSENT"  # absent keys contribute nothing
    INCLUDE_ALL = "INCLUDE_ALL"  # absent keys contribute ""


@dataclass(frozen=True)
class CanonicalOrder:
    """
    Immutable, ordered sequence of field names for one processor operation.
    """
    label: str
    names: Tuple[str, ...]

    def __post_init__(self) -> None:
        names = tuple(self.names)
        if len(set(names)) != len(names):
            raise ValueError(f"Canonical order '{self.label}' has duplicate names")
        object.__setattr__(self, "names", names)

    def __iter__(self):
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)

    def __contains__(self, name: object) -> bool:
        return name in self.names


def stringify(value: Scalar) -> str:
    """
    Render a scalar exactly as the processors expect it in a signing string.

    None -> "", booleans -> "true"/"false", integral floats without ".0".
    Amounts and dates should be pre-formatted with the helpers in
    paycore.gateways.formatting rather than passed as floats.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_canonical_string(
    order: CanonicalOrder,
    field_map: FieldMap,
    inclusion_policy: InclusionPolicy,
    secret_key: str = ""
) -> str:
    """
    Concatenate fields in canonical order and append the secret key.

    Args:
        order: Fixed field-name sequence
        field_map: Sparse mapping of field name to value
        inclusion_policy: SKIP_ABSENT or INCLUDE_ALL
        secret_key: Appended as the final segment

    Returns:
        The signing string (fields + key, no separators)
    """
    if inclusion_policy is InclusionPolicy.SKIP_ABSENT:
        segments = [stringify(field_map[name]) for name in order if name in field_map]
    else:
        segments = [stringify(field_map.get(name)) for name in order]
    return "".join(segments) + (secret_key or "")


@dataclass(frozen=True)
class SigningContext:
    """
    Everything needed to sign one request or reply.

    Built fresh for each call and never reused. For keyed algorithms the
    secret is the HMAC key and is not appended to the message.
    """
    field_map: FieldMap
    canonical_order: CanonicalOrder
    secret_key: str
    algorithm: DigestAlgorithm = DigestAlgorithm.MD5
    inclusion_policy: InclusionPolicy = InclusionPolicy.INCLUDE_ALL
    case_fold: bool = False

    def canonical_string(self) -> str:
        algorithm = resolve_algorithm(self.algorithm)
        appended = "" if algorithm.keyed else self.secret_key
        source = build_canonical_string(
            self.canonical_order,
            self.field_map,
            self.inclusion_policy,
            appended,
        )
        # Lowercase after concatenation so the key and every field fold together
        return source.lower() if self.case_fold else source

    def sign(self) -> str:
        algorithm = resolve_algorithm(self.algorithm)
        key: Optional[str] = self.secret_key if algorithm.keyed else None
        return digest_hex(algorithm, self.canonical_string(), key=key)
