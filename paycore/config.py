"""
============================================================================
Paycore v1.0.0
Payment Gateway Configuration
============================================================================

Input Constraints: Environment variables (optionally from a .env file)
Side Effects: Reads the environment once, logs configuration (secrets redacted)

Processor IDs, secret keys and callback URLs are loaded into frozen
dataclasses that callers pass explicitly into the signers. Nothing in
paycore.signing reads the environment.

ENVIRONMENT VARIABLES:
    Ozow:
    - OZOW_SITE_CODE, OZOW_PRIVATE_KEY: required to sign requests
    - OZOW_COUNTRY_CODE (default: ZA), OZOW_CURRENCY_CODE (default: ZAR)
    - OZOW_CANCEL_URL, OZOW_ERROR_URL, OZOW_SUCCESS_URL, OZOW_NOTIFY_URL
    - OZOW_IS_TEST (default: false)
    - OZOW_API_KEY: transaction status lookups
    - OZOW_OPTIONAL1..OZOW_OPTIONAL5
    - OZOW_TIMEOUT_SECONDS (default: 30)

    PayGate:
    - PAYGATE_ID, PAYGATE_ENCRYPTION_KEY: required to sign requests
    - PAYGATE_RETURN_URL, PAYGATE_NOTIFY_URL
    - PAYGATE_CURRENCY (default: ZAR), PAYGATE_LOCALE (default: en-za),
      PAYGATE_COUNTRY (default: ZAF)
    - PAYGATE_TIMEOUT_SECONDS (default: 30)
    - PAYGATE_VARIANTS: comma-separated payload variant names (default order if unset)
    - PAYGATE_SIGNATURE_TYPE: hmac-sha256 | md5 (default: hmac-sha256)

    Storage:
    - DATABASE_URL (default: sqlite:///./paycore.db)

ERROR CODES:
    - PAY-CFG-001: Required configuration missing or invalid

============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import logging
import os

from dotenv import load_dotenv

from paycore.errors import PaymentConfigurationError, PaymentErrorCode

logger = logging.getLogger(__name__)

load_dotenv()


# =============================================================================
# Default Values
# =============================================================================

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_DATABASE_URL = "sqlite:///./paycore.db"

OZOW_PAY_URL = "https://pay.ozow.com"
OZOW_API_URL = "https://api.ozow.com"

PAYGATE_INITIATE_URL = "https://secure.paygate.co.za/payweb3/initiate.trans"
PAYGATE_PROCESS_URL = "https://secure.paygate.co.za/payweb3/process.trans"
PAYGATE_PAYPAGE_URL = "https://secure.paygate.co.za/paypage"

OPTIONAL_FIELD_NAMES = ("Optional1", "Optional2", "Optional3", "Optional4", "Optional5")

SIGNATURE_TYPES = ("hmac-sha256", "md5")


def redact_secret(value: Optional[str]) -> str:
    """
    Redacted form of a secret for logs: first and last 4 characters only.
    """
    if not value:
        return "(none)"
    if len(value) > 8:
        return f"{value[:4]}...{value[-4:]}"
    return "[REDACTED]"


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("true", "1", "yes", "on")


def _env_timeout(name: str) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return DEFAULT_TIMEOUT_SECONDS
    try:
        value = float(raw.strip())
    except ValueError:
        logger.warning(
            f"[PAY-CONFIG] Invalid {name} value: {raw}, "
            f"using default: {DEFAULT_TIMEOUT_SECONDS}"
        )
        return DEFAULT_TIMEOUT_SECONDS
    return value


def _raise_if_errors(section: str, errors: List[str]) -> None:
    if errors:
        error_msg = f"{section} configuration validation failed: " + "; ".join(errors)
        logger.error(f"[{PaymentErrorCode.CONFIG_MISSING}] {error_msg}")
        raise PaymentConfigurationError(error_msg)


# =============================================================================
# Ozow
# =============================================================================

@dataclass(frozen=True)
class OzowConfig:
    """
    Ozow (hash-redirect gateway) settings.

    Callback URLs are stored as configured; they are repaired by
    paycore.gateways.url_normalizer when a request is built.
    """
    site_code: str = ""
    private_key: str = field(default="", repr=False)
    country_code: str = "ZA"
    currency_code: str = "ZAR"
    cancel_url: str = ""
    error_url: str = ""
    success_url: str = ""
    notify_url: str = ""
    is_test: bool = False
    api_key: str = field(default="", repr=False)
    optionals: Dict[str, str] = field(default_factory=dict)
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    pay_url: str = OZOW_PAY_URL
    api_url: str = OZOW_API_URL

    def validate(self) -> None:
        """
        Raises:
            PaymentConfigurationError: If signing credentials are missing (PAY-CFG-001)
        """
        errors: List[str] = []
        if not self.site_code:
            errors.append("OZOW_SITE_CODE must be set")
        if not self.private_key:
            errors.append("OZOW_PRIVATE_KEY must be set")
        if self.timeout_seconds <= 0:
            errors.append(f"OZOW_TIMEOUT_SECONDS must be positive, got: {self.timeout_seconds}")
        _raise_if_errors("Ozow", errors)

    @classmethod
    def from_environment(cls) -> "OzowConfig":
        optionals: Dict[str, str] = {}
        for name in OPTIONAL_FIELD_NAMES:
            value = _env(f"OZOW_{name.upper()}")
            if value:
                optionals[name] = value

        return cls(
            site_code=_env("OZOW_SITE_CODE"),
            private_key=_env("OZOW_PRIVATE_KEY"),
            country_code=_env("OZOW_COUNTRY_CODE", "ZA") or "ZA",
            currency_code=_env("OZOW_CURRENCY_CODE", "ZAR") or "ZAR",
            cancel_url=_env("OZOW_CANCEL_URL"),
            error_url=_env("OZOW_ERROR_URL"),
            success_url=_env("OZOW_SUCCESS_URL"),
            notify_url=_env("OZOW_NOTIFY_URL"),
            is_test=_env_bool("OZOW_IS_TEST", False),
            api_key=_env("OZOW_API_KEY"),
            optionals=optionals,
            timeout_seconds=_env_timeout("OZOW_TIMEOUT_SECONDS"),
        )


# =============================================================================
# PayGate
# =============================================================================

@dataclass(frozen=True)
class PayGateConfig:
    """
    PayGate PayWeb3 (checksum-initiate gateway) settings.

    ``variants`` lists payload variant names in the order they are tried;
    an empty tuple means the built-in default order.
    """
    paygate_id: str = ""
    encryption_key: str = field(default="", repr=False)
    return_url: str = ""
    notify_url: str = ""
    currency: str = "ZAR"
    locale: str = "en-za"
    country: str = "ZAF"
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    variants: Tuple[str, ...] = ()
    signature_type: str = "hmac-sha256"
    initiate_url: str = PAYGATE_INITIATE_URL
    process_url: str = PAYGATE_PROCESS_URL
    paypage_url: str = PAYGATE_PAYPAGE_URL

    def validate(self) -> None:
        """
        Raises:
            PaymentConfigurationError: If signing credentials are missing (PAY-CFG-001)
        """
        errors: List[str] = []
        if not self.paygate_id:
            errors.append("PAYGATE_ID must be set")
        if not self.encryption_key:
            errors.append("PAYGATE_ENCRYPTION_KEY must be set")
        if self.timeout_seconds <= 0:
            errors.append(f"PAYGATE_TIMEOUT_SECONDS must be positive, got: {self.timeout_seconds}")
        if self.signature_type not in SIGNATURE_TYPES:
            errors.append(
                f"PAYGATE_SIGNATURE_TYPE must be one of {', '.join(SIGNATURE_TYPES)}, "
                f"got: {self.signature_type}"
            )
        _raise_if_errors("PayGate", errors)

    @classmethod
    def from_environment(cls) -> "PayGateConfig":
        variants = tuple(
            name.strip() for name in _env("PAYGATE_VARIANTS").split(",") if name.strip()
        )
        return cls(
            paygate_id=_env("PAYGATE_ID"),
            encryption_key=_env("PAYGATE_ENCRYPTION_KEY"),
            return_url=_env("PAYGATE_RETURN_URL"),
            notify_url=_env("PAYGATE_NOTIFY_URL"),
            currency=_env("PAYGATE_CURRENCY", "ZAR") or "ZAR",
            locale=_env("PAYGATE_LOCALE", "en-za") or "en-za",
            country=_env("PAYGATE_COUNTRY", "ZAF") or "ZAF",
            timeout_seconds=_env_timeout("PAYGATE_TIMEOUT_SECONDS"),
            variants=variants,
            signature_type=(_env("PAYGATE_SIGNATURE_TYPE", "hmac-sha256") or "hmac-sha256").lower(),
        )


# =============================================================================
# Aggregate
# =============================================================================

@dataclass(frozen=True)
class PaymentConfig:
    """All gateway settings plus the storage URL."""
    ozow: OzowConfig = field(default_factory=OzowConfig)
    paygate: PayGateConfig = field(default_factory=PayGateConfig)
    database_url: str = DEFAULT_DATABASE_URL

    @classmethod
    def from_environment(cls, strict: bool = False) -> "PaymentConfig":
        """
        Load configuration from environment variables.

        Args:
            strict: Validate both gateways immediately (fail fast at startup)

        Raises:
            PaymentConfigurationError: If strict and a gateway is misconfigured
        """
        config = cls(
            ozow=OzowConfig.from_environment(),
            paygate=PayGateConfig.from_environment(),
            database_url=_env("DATABASE_URL", DEFAULT_DATABASE_URL) or DEFAULT_DATABASE_URL,
        )

        logger.info(
            f"[PAY-CONFIG] Loading configuration from environment | "
            f"OZOW_SITE_CODE={config.ozow.site_code or '(none)'} | "
            f"OZOW_PRIVATE_KEY={redact_secret(config.ozow.private_key)} | "
            f"OZOW_IS_TEST={config.ozow.is_test} | "
            f"PAYGATE_ID={config.paygate.paygate_id or '(none)'} | "
            f"PAYGATE_ENCRYPTION_KEY={redact_secret(config.paygate.encryption_key)} | "
            f"PAYGATE_VARIANTS={','.join(config.paygate.variants) or '(default)'}"
        )

        if strict:
            config.ozow.validate()
            config.paygate.validate()
        return config


# =============================================================================
# Module-Level Configuration Instance
# =============================================================================

_config_instance: Optional[PaymentConfig] = None


def get_payment_config() -> PaymentConfig:
    """
    Get the process-wide configuration, loading it on first access.

    Gateways validate their own section when first used, so a deployment
    that only uses one processor does not need the other's credentials.
    """
    global _config_instance

    if _config_instance is None:
        _config_instance = PaymentConfig.from_environment()

    return _config_instance


def reset_payment_config() -> None:
    """Clear the cached configuration (tests)."""
    global _config_instance
    _config_instance = None
    logger.debug("[PAY-CONFIG] Configuration instance reset")
