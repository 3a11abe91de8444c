# ============================================================================
# Paycore v1.0.0
# Payment gateway adapters for Ozow and PayGate PayWeb3
# ============================================================================

__version__ = "1.0.0"
