"""
x402 Payment Protocol Package

Protocol model, codecs and the response buffer used by the payment
middleware. The middleware itself lives in ``paygate.x402.middleware``.
"""

from paygate.x402.buffer import ResponseBuffer
from paygate.x402.exceptions import (
    ConfigurationError,
    DecodeError,
    EncodeError,
    FacilitatorError,
    PayloadDecodeError,
    SettlementRejected,
    VerificationRejected,
    X402Error,
)
from paygate.x402.types import (
    X402_VERSION,
    PaymentPayload,
    PaymentRequirements,
    SettleResponse,
    VerifyResponse,
    decode_payment_payload,
    encode_settle_response,
)

__all__ = [
    "ResponseBuffer",
    "ConfigurationError",
    "DecodeError",
    "EncodeError",
    "FacilitatorError",
    "PayloadDecodeError",
    "SettlementRejected",
    "VerificationRejected",
    "X402Error",
    "X402_VERSION",
    "PaymentPayload",
    "PaymentRequirements",
    "SettleResponse",
    "VerifyResponse",
    "decode_payment_payload",
    "encode_settle_response",
]
