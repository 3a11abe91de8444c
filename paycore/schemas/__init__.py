# ============================================================================
# Paycore v1.0.0
# Pydantic Schemas - Request/Response Validation Layer
# ============================================================================

from paycore.schemas.payment import (
    InitiateAttemptOut,
    OzowInitiateRequest,
    OzowInitiateResponse,
    PayGateCreateRequest,
    PayGateInitiateRequest,
    PayGateInitiateResponse,
    PaypageResponse,
)

__all__ = [
    "InitiateAttemptOut",
    "OzowInitiateRequest",
    "OzowInitiateResponse",
    "PayGateCreateRequest",
    "PayGateInitiateRequest",
    "PayGateInitiateResponse",
    "PaypageResponse",
]
