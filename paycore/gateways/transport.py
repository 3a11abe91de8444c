# ============================================================================
# Paycore v1.0.0
# Processor HTTP Transport
# ============================================================================
#
# Purpose: The only code in paycore that performs network I/O.
#
# MANDATE:
#   - Every call takes an explicit timeout from the caller's configuration
#   - POSTs to a processor are never retried here; a repeated initiate can
#     create a duplicate transaction at the processor
#   - Network failures surface as TransportError (PAY-NET-001), never as a
#     verification failure
#
# ============================================================================

import logging
from typing import Any, Dict, Mapping, NoReturn, Optional

import requests
from requests.exceptions import (
    ConnectionError as RequestsConnectionError,
    RequestException,
    Timeout,
)

from paycore.errors import PaymentErrorCode, TransportError
from paycore.observability.metrics import record_transport_error

logger = logging.getLogger(__name__)


class ProcessorTransport:
    """
    Thin requests.Session wrapper for processor round trips.

    Example Usage:
        transport = ProcessorTransport(gateway="paygate")
        body = transport.post_form(url, fields, timeout=30.0)
    """

    def __init__(
        self,
        gateway: str,
        session: Optional[requests.Session] = None,
        correlation_id: Optional[str] = None
    ):
        self.gateway = gateway
        self.correlation_id = correlation_id
        self._session = session or requests.Session()

    def post_form(
        self,
        url: str,
        fields: Mapping[str, Any],
        timeout: float
    ) -> str:
        """
        POST form-encoded fields and return the response body.

        Raises:
            TransportError: Timeout, connection failure or HTTP error status
        """
        data = {name: "" if value is None else str(value) for name, value in fields.items()}
        response = self._send("POST", url, timeout, data=data)
        return response.text

    def get_json(
        self,
        url: str,
        timeout: float,
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        """
        GET a JSON document.

        Raises:
            TransportError: Network failure, HTTP error status or invalid JSON
        """
        response = self._send("GET", url, timeout, params=params, headers=headers)
        try:
            return response.json()
        except ValueError as e:
            self._fail(url, f"invalid JSON response: {e}", response.status_code)

    def _send(self, method: str, url: str, timeout: float, **kwargs: Any) -> requests.Response:
        try:
            response = self._session.request(method, url, timeout=timeout, **kwargs)
        except Timeout as e:
            self._fail(url, f"timeout after {timeout}s: {e}")
        except RequestsConnectionError as e:
            self._fail(url, f"connection failed: {e}")
        except RequestException as e:
            self._fail(url, f"request failed: {e}")

        if response.status_code >= 400:
            self._fail(url, f"HTTP {response.status_code}", response.status_code)

        logger.debug(
            f"[PAY-NET] {method} ok | gateway={self.gateway} | url={url} | "
            f"status={response.status_code} | correlation_id={self.correlation_id}"
        )
        return response

    def _fail(self, url: str, reason: str, status_code: Optional[int] = None) -> NoReturn:
        logger.error(
            f"[{PaymentErrorCode.TRANSPORT_FAILURE}] Processor request failed | "
            f"gateway={self.gateway} | url={url} | reason={reason} | "
            f"correlation_id={self.correlation_id}"
        )
        record_transport_error(self.gateway, self.correlation_id)
        raise TransportError(f"{self.gateway} request to {url} failed: {reason}", status_code)
