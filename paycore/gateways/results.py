# ============================================================================
# Paycore v1.0.0
# Verification Results
# ============================================================================

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class VerificationResult:
    """
    Outcome of checking a processor-supplied digest.

    ``reason`` is None when verified, otherwise a short machine-friendly
    string such as "hash_mismatch" or "reply checksum mismatch".
    """
    verified: bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "VerificationResult":
        return cls(verified=True)

    @classmethod
    def failed(cls, reason: str) -> "VerificationResult":
        return cls(verified=False, reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"verified": self.verified}
        if self.reason is not None:
            result["reason"] = self.reason
        return result
