"""
Facilitator Client for x402 Payment Protocol

This client calls a remote facilitator service that verifies payment
signatures and settles them on-chain on behalf of the resource server.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import requests

from paygate.x402.exceptions import (
    FacilitatorAuthError,
    FacilitatorDecodeError,
    FacilitatorProtocolError,
    FacilitatorTransportError,
)
from paygate.x402.types import (
    X402_VERSION,
    PaymentPayload,
    PaymentRequirements,
    SettleResponse,
    VerifyResponse,
)

logger = logging.getLogger(__name__)

# Public facilitator operated for the x402 protocol
DEFAULT_FACILITATOR_URL = "https://x402.org/facilitator"
DEFAULT_FACILITATOR_TIMEOUT = 30.0

# operation ("verify" / "settle") -> header name -> header value
AuthHeaders = Dict[str, Dict[str, str]]
CreateAuthHeaders = Callable[[], AuthHeaders]


def get_default_facilitator_url() -> str:
    """Get default facilitator URL, honouring the FACILITATOR_URL env var."""
    return os.getenv("FACILITATOR_URL") or DEFAULT_FACILITATOR_URL


@dataclass
class FacilitatorConfig:
    """How to reach the facilitator.

    Attributes:
        url: Base URL; ``/verify`` and ``/settle`` are appended to it.
        create_auth_headers: Optional callback returning per-operation headers,
            e.g. ``{"verify": {"Authorization": "Bearer ..."}, "settle": {...}}``.
        timeout: Seconds passed to ``requests`` for each call.
    """

    url: str = field(default_factory=get_default_facilitator_url)
    create_auth_headers: Optional[CreateAuthHeaders] = None
    timeout: float = DEFAULT_FACILITATOR_TIMEOUT


class FacilitatorClient:
    """Client for the facilitator ``/verify`` and ``/settle`` endpoints.

    Each call is a single HTTP exchange: no retries and no caching.
    """

    def __init__(self, config: Optional[FacilitatorConfig] = None):
        """Initialize the facilitator client.

        Args:
            config: Facilitator configuration (defaults to the public facilitator)
        """
        self.config = config or FacilitatorConfig()
        self.facilitator_url = self.config.url.rstrip("/")

    def verify(
        self, payload: PaymentPayload, requirements: PaymentRequirements
    ) -> VerifyResponse:
        """Ask the facilitator whether a payment is valid for the requirements.

        Raises:
            FacilitatorTransportError: The facilitator could not be reached.
            FacilitatorProtocolError: The facilitator answered with a non-200 status.
            FacilitatorDecodeError: The response body is not a VerifyResponse.
            FacilitatorAuthError: The auth header callback failed.
        """
        result = self._post("verify", payload, requirements)
        try:
            return VerifyResponse.from_dict(result)
        except (KeyError, TypeError, ValueError) as e:
            raise FacilitatorDecodeError(f"failed to decode verify response: {e}") from e

    def settle(
        self, payload: PaymentPayload, requirements: PaymentRequirements
    ) -> SettleResponse:
        """Ask the facilitator to settle a verified payment on-chain.

        Raises the same errors as :meth:`verify`.
        """
        result = self._post("settle", payload, requirements)
        try:
            return SettleResponse.from_dict(result)
        except (KeyError, TypeError, ValueError) as e:
            raise FacilitatorDecodeError(f"failed to decode settle response: {e}") from e

    def _auth_headers(self, operation: str) -> Dict[str, str]:
        if self.config.create_auth_headers is None:
            return {}
        try:
            headers = self.config.create_auth_headers()
        except Exception as e:
            raise FacilitatorAuthError(f"failed to create auth headers: {e}") from e
        try:
            operation_headers = dict((headers or {}).get(operation) or {})
        except (AttributeError, TypeError, ValueError) as e:
            raise FacilitatorAuthError(f"malformed auth headers for {operation}: {e}") from e
        if not all(
            isinstance(name, str) and isinstance(value, str)
            for name, value in operation_headers.items()
        ):
            raise FacilitatorAuthError(f"malformed auth headers for {operation}: expected strings")
        return operation_headers

    def _post(
        self,
        operation: str,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> Any:
        url = f"{self.facilitator_url}/{operation}"
        request_body = {
            "x402Version": X402_VERSION,
            "paymentPayload": payload.to_dict(),
            "paymentRequirements": requirements.to_dict(),
        }
        headers = {"Content-Type": "application/json"}
        headers.update(self._auth_headers(operation))

        logger.info(f"[facilitator] Calling remote facilitator: {url}")
        try:
            response = requests.post(
                url,
                json=request_body,
                headers=headers,
                timeout=self.config.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise FacilitatorTransportError(
                f"failed to send {operation} request: {e}"
            ) from e

        logger.info(f"[facilitator] Response status: {response.status_code}")

        if response.status_code != 200:
            logger.debug(f"[facilitator] Response body: {response.text[:500]}")
            raise FacilitatorProtocolError(
                f"failed to {operation} payment: {response.status_code} {response.reason}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise FacilitatorDecodeError(
                f"failed to decode {operation} response: {e}"
            ) from e
