# ============================================================================
# Paycore v1.0.0
# API Routes Module
# ============================================================================

from paycore.api.ozow import router as ozow_router
from paycore.api.paygate import router as paygate_router

__all__ = ["ozow_router", "paygate_router"]
