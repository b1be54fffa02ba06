"""
Exception hierarchy for the x402 payment protocol.
"""

from typing import Optional


class X402Error(Exception):
    """Base class for x402 protocol errors."""


class ConfigurationError(X402Error):
    """Raised when the middleware or a route is configured incorrectly."""


class DecodeError(X402Error):
    """Raised when a base64/JSON document cannot be decoded."""


class PayloadDecodeError(DecodeError):
    """Raised when the X-PAYMENT header is not a valid payment payload."""


class EncodeError(X402Error):
    """Raised when a protocol document cannot be serialized."""


class FacilitatorError(X402Error):
    """Base class for failures talking to the remote facilitator."""


class FacilitatorTransportError(FacilitatorError):
    """Raised when the facilitator cannot be reached."""


class FacilitatorProtocolError(FacilitatorError):
    """Raised when the facilitator answers with a non-200 status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class FacilitatorDecodeError(FacilitatorError, DecodeError):
    """Raised when the facilitator response body cannot be parsed."""


class FacilitatorAuthError(FacilitatorError):
    """Raised when the auth header callback fails."""


class VerificationRejected(X402Error):
    """Raised when the facilitator reports the payment as invalid."""


class SettlementRejected(X402Error):
    """Raised when the facilitator reports that settlement failed."""
