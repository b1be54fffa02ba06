"""
Unit tests for the x402 protocol model and codecs.
"""

import base64
import json
from decimal import Decimal

import pytest

from paygate.x402.exceptions import ConfigurationError, DecodeError, PayloadDecodeError
from paygate.x402.types import (
    USDC_ADDRESSES,
    X402_VERSION,
    PaymentRequirements,
    SettleResponse,
    VerifyResponse,
    decode_payment_payload,
    decode_settle_response,
    derive_asset_extra,
    encode_payment_payload,
    encode_settle_response,
    network_asset,
    parse_money,
    to_atomic_amount,
)

from conftest import encode_header, header_with_version, make_payload


class TestDecodePaymentPayload:
    def test_round_trip(self, payload):
        assert decode_payment_payload(encode_payment_payload(payload)) == payload

    def test_wire_keys(self, payload):
        document = json.loads(base64.b64decode(encode_payment_payload(payload)))
        assert document["x402Version"] == 1
        assert document["payload"]["authorization"]["from"] == "0xvalidFrom"
        assert document["payload"]["authorization"]["validBefore"] == "1745323985"

    def test_client_version_is_overwritten(self):
        document = make_payload().to_dict()
        document["x402Version"] = 99
        decoded = decode_payment_payload(encode_header(document))
        assert decoded.x402_version == X402_VERSION

    def test_missing_version_defaults(self):
        document = make_payload().to_dict()
        del document["x402Version"]
        assert decode_payment_payload(encode_header(document)).x402_version == X402_VERSION

    @pytest.mark.parametrize(
        "header",
        [
            "",
            "not base64!!",
            base64.b64encode(b"not json").decode(),
            base64.b64encode(b"[1, 2, 3]").decode(),
            base64.b64encode(b"\xff\xfe").decode(),
            "é",
            header_with_version("1e400"),
            header_with_version("1.5"),
            header_with_version("\"1\""),
            header_with_version("true"),
        ],
    )
    def test_invalid_header_raises_decode_error(self, header):
        with pytest.raises(PayloadDecodeError):
            decode_payment_payload(header)

    def test_decode_error_is_a_decode_error(self):
        with pytest.raises(DecodeError):
            decode_payment_payload("%%%")

    def test_unknown_scheme_rejected(self):
        document = make_payload().to_dict()
        document["scheme"] = "streaming"
        with pytest.raises(PayloadDecodeError, match="Unsupported payment scheme"):
            decode_payment_payload(encode_header(document))

    def test_missing_authorization_rejected(self):
        document = make_payload().to_dict()
        del document["payload"]["authorization"]
        with pytest.raises(PayloadDecodeError):
            decode_payment_payload(encode_header(document))

    def test_numeric_authorization_fields_rejected(self):
        document = make_payload().to_dict()
        document["payload"]["authorization"]["value"] = 1000000
        with pytest.raises(PayloadDecodeError):
            decode_payment_payload(encode_header(document))


class TestSettleResponseCodec:
    def test_encode(self):
        header = encode_settle_response(
            SettleResponse(success=True, transaction="0xabc", network="base-sepolia")
        )
        document = json.loads(base64.b64decode(header))
        assert document == {"success": True, "transaction": "0xabc", "network": "base-sepolia"}

    def test_optional_fields_encoded_when_set(self):
        settle = SettleResponse(
            success=False,
            transaction="",
            network="base",
            error_reason="insufficient_funds",
            payer="0xpayer",
        )
        assert decode_settle_response(encode_settle_response(settle)) == settle

    def test_decode_invalid(self):
        with pytest.raises(PayloadDecodeError):
            decode_settle_response("garbage")


class TestFacilitatorResponses:
    def test_verify_response_from_dict(self):
        response = VerifyResponse.from_dict(
            {"isValid": False, "invalidReason": "invalid_signature"}
        )
        assert response == VerifyResponse(is_valid=False, invalid_reason="invalid_signature")

    def test_verify_response_requires_bool(self):
        with pytest.raises(TypeError):
            VerifyResponse.from_dict({"isValid": "yes"})

    def test_settle_response_requires_success(self):
        with pytest.raises(KeyError):
            SettleResponse.from_dict({"transaction": "0xabc"})


class TestAssetSelection:
    @pytest.mark.parametrize(
        "testnet, network, name",
        [
            (True, "base-sepolia", "USDC"),
            (False, "base", "USD Coin"),
        ],
    )
    def test_network_and_extra(self, testnet, network, name):
        assert network_asset(testnet) == (network, USDC_ADDRESSES[network])
        assert derive_asset_extra(testnet) == {"name": name, "version": "2"}

    def test_addresses(self):
        assert network_asset(True)[1] == "0x036CbD53842c5426634e7929541eC2318f3dCF7e"
        assert network_asset(False)[1] == "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"


class TestAmounts:
    @pytest.mark.parametrize(
        "amount, expected",
        [
            (1.0, "1000000"),
            (1, "1000000"),
            (0.01, "10000"),
            ("0.001", "1000"),
            ("$3.10", "3100000"),
            (Decimal("0.0001"), "100"),
            ("0.0000005", "1"),
            (0, "0"),
        ],
    )
    def test_to_atomic_amount(self, amount, expected):
        assert to_atomic_amount(amount) == expected

    @pytest.mark.parametrize("amount", ["-1", -0.5, "abc", "", "NaN", True])
    def test_invalid_amounts(self, amount):
        with pytest.raises(ConfigurationError):
            parse_money(amount)


class TestPaymentRequirements:
    def test_optional_fields_omitted(self):
        requirements = PaymentRequirements(
            scheme="exact",
            network="base",
            max_amount_required="1000",
            resource="http://localhost/joke",
            description="",
            mime_type="",
            pay_to="0xpay",
            max_timeout_seconds=60,
            asset=USDC_ADDRESSES["base"],
        )
        document = requirements.to_dict()
        assert "outputSchema" not in document
        assert "extra" not in document
        assert PaymentRequirements.from_dict(document) == requirements
