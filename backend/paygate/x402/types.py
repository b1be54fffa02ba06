"""
Type definitions and codecs for the x402 payment protocol.

Every document that crosses the wire (requirements, payment payloads,
facilitator responses) is modelled as a dataclass with ``to_dict`` and
``from_dict`` helpers that use the protocol's camelCase keys.
"""

import base64
import binascii
import json
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple, Type, Union

from paygate.x402.exceptions import ConfigurationError, EncodeError, PayloadDecodeError

# Protocol version spoken by this server
X402_VERSION = 1

SCHEME_EXACT = "exact"

# USDC has 6 decimal places
USDC_DECIMALS = 6

NETWORK_BASE = "base"
NETWORK_BASE_SEPOLIA = "base-sepolia"

USDC_ADDRESSES = {
    NETWORK_BASE: "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
    NETWORK_BASE_SEPOLIA: "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
}

X_PAYMENT_HEADER = "X-PAYMENT"
X_PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"


def _require_str(data: Dict[str, Any], key: str) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise TypeError(f"'{key}' must be a string, got {type(value).__name__}")
    return value


def _require_dict(data: Any, name: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise TypeError(f"'{name}' must be an object, got {type(data).__name__}")
    return data


@dataclass
class PaymentRequirements:
    """Payment requirements for a protected resource."""

    scheme: str
    network: str
    max_amount_required: str
    resource: str
    description: str
    mime_type: str
    pay_to: str
    max_timeout_seconds: int
    asset: str
    output_schema: Optional[Dict[str, Any]] = None
    extra: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            "scheme": self.scheme,
            "network": self.network,
            "maxAmountRequired": self.max_amount_required,
            "resource": self.resource,
            "description": self.description,
            "mimeType": self.mime_type,
            "payTo": self.pay_to,
            "maxTimeoutSeconds": self.max_timeout_seconds,
            "asset": self.asset,
        }
        if self.output_schema is not None:
            result["outputSchema"] = self.output_schema
        if self.extra is not None:
            result["extra"] = self.extra
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaymentRequirements":
        data = _require_dict(data, "paymentRequirements")
        return cls(
            scheme=_require_str(data, "scheme"),
            network=_require_str(data, "network"),
            max_amount_required=_require_str(data, "maxAmountRequired"),
            resource=data.get("resource", ""),
            description=data.get("description", ""),
            mime_type=data.get("mimeType", ""),
            pay_to=_require_str(data, "payTo"),
            max_timeout_seconds=int(data.get("maxTimeoutSeconds", 0)),
            asset=_require_str(data, "asset"),
            output_schema=data.get("outputSchema"),
            extra=data.get("extra"),
        )


@dataclass
class ExactEvmAuthorization:
    """ERC-3009 transferWithAuthorization message signed by the payer.

    Numeric fields are kept as decimal strings so that no precision is lost
    between languages.
    """

    from_: str
    to: str
    value: str
    valid_after: str
    valid_before: str
    nonce: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_,
            "to": self.to,
            "value": self.value,
            "validAfter": self.valid_after,
            "validBefore": self.valid_before,
            "nonce": self.nonce,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExactEvmAuthorization":
        data = _require_dict(data, "authorization")
        return cls(
            from_=_require_str(data, "from"),
            to=_require_str(data, "to"),
            value=_require_str(data, "value"),
            valid_after=_require_str(data, "validAfter"),
            valid_before=_require_str(data, "validBefore"),
            nonce=_require_str(data, "nonce"),
        )


@dataclass
class ExactEvmPayload:
    """Scheme payload for ``exact``: a signature over an authorization."""

    signature: str
    authorization: ExactEvmAuthorization

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signature": self.signature,
            "authorization": self.authorization.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExactEvmPayload":
        data = _require_dict(data, "payload")
        return cls(
            signature=_require_str(data, "signature"),
            authorization=ExactEvmAuthorization.from_dict(data["authorization"]),
        )


# Scheme name -> payload type. New schemes register here.
SchemePayload = Union[ExactEvmPayload]
SCHEME_PAYLOADS: Dict[str, Type[ExactEvmPayload]] = {
    SCHEME_EXACT: ExactEvmPayload,
}


@dataclass
class PaymentPayload:
    """Payment presented by the client in the X-PAYMENT header."""

    x402_version: int
    scheme: str
    network: str
    payload: SchemePayload

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x402Version": self.x402_version,
            "scheme": self.scheme,
            "network": self.network,
            "payload": self.payload.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaymentPayload":
        data = _require_dict(data, "paymentPayload")
        version = data.get("x402Version", X402_VERSION)
        if isinstance(version, bool) or not isinstance(version, int):
            raise TypeError("'x402Version' must be an integer")
        scheme = _require_str(data, "scheme")
        payload_type = SCHEME_PAYLOADS.get(scheme)
        if payload_type is None:
            raise ValueError(f"Unsupported payment scheme: {scheme}")
        return cls(
            x402_version=version,
            scheme=scheme,
            network=_require_str(data, "network"),
            payload=payload_type.from_dict(data["payload"]),
        )


@dataclass
class VerifyResponse:
    """Facilitator answer to /verify."""

    is_valid: bool
    invalid_reason: Optional[str] = None
    payer: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"isValid": self.is_valid}
        if self.invalid_reason is not None:
            result["invalidReason"] = self.invalid_reason
        if self.payer is not None:
            result["payer"] = self.payer
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VerifyResponse":
        data = _require_dict(data, "verifyResponse")
        is_valid = data["isValid"]
        if not isinstance(is_valid, bool):
            raise TypeError("'isValid' must be a boolean")
        return cls(
            is_valid=is_valid,
            invalid_reason=data.get("invalidReason"),
            payer=data.get("payer"),
        )


@dataclass
class SettleResponse:
    """Facilitator answer to /settle, also sent back as the payment receipt."""

    success: bool
    transaction: str = ""
    network: str = ""
    error_reason: Optional[str] = None
    payer: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success}
        if self.error_reason is not None:
            result["errorReason"] = self.error_reason
        result["transaction"] = self.transaction
        result["network"] = self.network
        if self.payer is not None:
            result["payer"] = self.payer
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SettleResponse":
        data = _require_dict(data, "settleResponse")
        success = data["success"]
        if not isinstance(success, bool):
            raise TypeError("'success' must be a boolean")
        return cls(
            success=success,
            transaction=data.get("transaction") or "",
            network=data.get("network") or "",
            error_reason=data.get("errorReason"),
            payer=data.get("payer"),
        )


@dataclass
class PaymentContext:
    """Per-request payment state exposed to the protected handler."""

    payload: PaymentPayload
    requirements: PaymentRequirements
    verification: VerifyResponse
    skip_settlement: bool = False


def _b64_json(document: Dict[str, Any]) -> str:
    return base64.b64encode(json.dumps(document).encode("utf-8")).decode("ascii")


def decode_payment_payload(header_value: str) -> PaymentPayload:
    """Decode a base64-encoded X-PAYMENT header.

    The client-declared ``x402Version`` is replaced with the version this
    server speaks.

    Raises:
        PayloadDecodeError: If the header is not base64, not JSON or not a
            well-formed payment payload.
    """
    try:
        decoded_bytes = base64.b64decode(header_value, validate=True)
        document = json.loads(decoded_bytes.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise PayloadDecodeError(f"Failed to decode payment header: {e}") from e

    try:
        payload = PaymentPayload.from_dict(document)
    except (KeyError, TypeError, ValueError, OverflowError) as e:
        raise PayloadDecodeError(f"Malformed payment payload: {e}") from e

    payload.x402_version = X402_VERSION
    return payload


def encode_payment_payload(payload: PaymentPayload) -> str:
    """Encode a payment payload for the X-PAYMENT request header."""
    try:
        return _b64_json(payload.to_dict())
    except (TypeError, ValueError) as e:
        raise EncodeError(f"Failed to encode payment payload: {e}") from e


def encode_settle_response(settle: SettleResponse) -> str:
    """Encode a settlement receipt for the X-PAYMENT-RESPONSE header."""
    try:
        return _b64_json(settle.to_dict())
    except (TypeError, ValueError) as e:
        raise EncodeError(f"Failed to base64 encode the settle response: {e}") from e


def decode_settle_response(header_value: str) -> SettleResponse:
    """Decode an X-PAYMENT-RESPONSE header back into a SettleResponse."""
    try:
        document = json.loads(base64.b64decode(header_value, validate=True).decode("utf-8"))
        return SettleResponse.from_dict(document)
    except (binascii.Error, UnicodeDecodeError, KeyError, TypeError, ValueError) as e:
        raise PayloadDecodeError(f"Failed to decode settle response: {e}") from e


def derive_asset_extra(testnet: bool) -> Dict[str, str]:
    """EIP-712 domain metadata of the USDC contract on the selected network.

    These values must match what the payer's signer used, otherwise the
    facilitator rejects the signature.
    """
    if testnet:
        return {"name": "USDC", "version": "2"}
    return {"name": "USD Coin", "version": "2"}


def network_asset(testnet: bool) -> Tuple[str, str]:
    """Return the (network, USDC contract address) pair."""
    network = NETWORK_BASE_SEPOLIA if testnet else NETWORK_BASE
    return network, USDC_ADDRESSES[network]


Money = Union[int, float, str, Decimal]


def parse_money(amount: Money) -> Decimal:
    """Parse a USD amount such as ``0.10``, ``"0.001"`` or ``"$3.10"``.

    Raises:
        ConfigurationError: If the amount is not a non-negative number.
    """
    if isinstance(amount, bool):
        raise ConfigurationError(f"Invalid amount: {amount!r}")
    text = amount.strip().lstrip("$") if isinstance(amount, str) else str(amount)
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise ConfigurationError(
            f'Invalid amount ({amount!r}). Must be in the form "$3.10", 0.10, "0.001"'
        ) from None
    if not value.is_finite() or value < 0:
        raise ConfigurationError(f"Invalid amount ({amount!r}). Must be a non-negative number")
    return value


def to_atomic_amount(amount: Money, decimals: int = USDC_DECIMALS) -> str:
    """Convert a USD amount to the asset's smallest unit as an integer string."""
    value = parse_money(amount) * (Decimal(10) ** decimals)
    return str(int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP)))
