# ============================================================================
# Paycore v1.0.0
# Callback URL Normalization
# ============================================================================
#
# Purpose: Repair callback URLs taken from configuration before they enter
#          a signed field map. Values like "://shop.example/ok",
#          "shop.example/ok" or "https://://shop.example/ok" are common
#          copy/paste mistakes in environment files.
#
# Kept separate from signing: the signers hash whatever they are given.
#
# ============================================================================

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

_HAS_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")
_LEADING_SCHEME = re.compile(r"^(https?:)?://", re.IGNORECASE)
_LEADING_DOUBLE_SLASH = re.compile(r"^//")
_LEADING_JUNK = re.compile(r"^[:/]+")
_SCHEME_THEN_EMPTY_SCHEME = re.compile(r"https?://://", re.IGNORECASE)
_FIRST_SCHEME = re.compile(r"https?://", re.IGNORECASE)
_REPEATED_SCHEMES = re.compile(r"^(https?://)+", re.IGNORECASE)


def normalize_url(url: Optional[str]) -> Optional[str]:
    """
    Ensure a URL carries an explicit scheme.

    A value that already declares a scheme ("http:", "https:", "mailto:")
    is returned stripped. Anything else has leading "http(s)://", "://",
    "//" and stray colons or slashes removed and "https://" prefixed.
    Blank values pass through unchanged.
    """
    if not url:
        return url
    value = str(url).strip()
    if _HAS_SCHEME.match(value):
        return value

    value = _LEADING_SCHEME.sub("", value, count=1)
    value = _LEADING_DOUBLE_SLASH.sub("", value, count=1)
    value = _LEADING_JUNK.sub("", value, count=1)
    return f"https://{value}"


def sanitize_outgoing_url(url: Optional[str]) -> Optional[str]:
    """
    Collapse duplicated scheme fragments in an outgoing URL.

    "https://://x" -> "https://x", "HTTPS://x" -> "https://x",
    "https://https://x" -> "https://x". A leading run of schemes always
    collapses to a single "https://".
    """
    if not url:
        return url
    value = str(url)
    value = _SCHEME_THEN_EMPTY_SCHEME.sub("https://", value, count=1)
    value = _FIRST_SCHEME.sub(lambda m: m.group(0).lower(), value, count=1)
    value = value.replace("://://", "://")
    value = _SCHEME_THEN_EMPTY_SCHEME.sub("https://", value, count=1)
    value = _REPEATED_SCHEMES.sub("https://", value, count=1)
    return value


def prepare_callback_url(url: Optional[str], name: str = "url") -> Optional[str]:
    """
    Normalize then sanitize a configured callback URL.

    Logs a warning when the value had to be repaired so the environment
    can be corrected at the source.
    """
    prepared = sanitize_outgoing_url(normalize_url(url))
    if prepared != url:
        logger.warning(
            f"[PAY-URL] Callback URL normalized | "
            f"name={name} | raw={url!r} | normalized={prepared!r}"
        )
    return prepared
