import base64
import json
from typing import Any, Dict, Optional
from unittest.mock import MagicMock

import pytest

from paygate.x402.types import (
    ExactEvmAuthorization,
    ExactEvmPayload,
    PaymentPayload,
    SettleResponse,
    VerifyResponse,
)

PAY_TO = "0x209693Bc6afc0C5328bA36FaF03C514EF312287C"
FACILITATOR_URL = "http://facilitator.test"


def make_payload(**overrides) -> PaymentPayload:
    defaults = {
        "x402_version": 1,
        "scheme": "exact",
        "network": "base-sepolia",
        "payload": ExactEvmPayload(
            signature="0xvalidSignature",
            authorization=ExactEvmAuthorization(
                from_="0xvalidFrom",
                to="0xvalidTo",
                value="1000000",
                valid_after="1745323800",
                valid_before="1745323985",
                nonce="0xvalidNonce",
            ),
        ),
    }
    defaults.update(overrides)
    return PaymentPayload(**defaults)


def encode_header(document: Dict[str, Any]) -> str:
    return base64.b64encode(json.dumps(document).encode("utf-8")).decode("ascii")


def header_with_version(raw_version: str) -> str:
    """Encode a payload whose x402Version is the given raw JSON literal."""
    document = make_payload().to_dict()
    document["x402Version"] = 0
    text = json.dumps(document).replace('"x402Version": 0', f'"x402Version": {raw_version}')
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def http_response(
    status_code: int = 200, body: Optional[Any] = None, reason: str = "OK"
) -> MagicMock:
    """Stand-in for a requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.reason = reason
    response.text = json.dumps(body) if body is not None else ""
    if body is None:
        response.json.side_effect = ValueError("Expecting value")
    else:
        response.json.return_value = body
    return response


class StubFacilitator:
    """In-process facilitator recording every call."""

    def __init__(
        self,
        verification: Optional[VerifyResponse] = None,
        settlement: Optional[SettleResponse] = None,
        verify_error: Optional[Exception] = None,
        settle_error: Optional[Exception] = None,
    ):
        self.verification = verification or VerifyResponse(is_valid=True, payer="0xvalidPayer")
        self.settlement = settlement or SettleResponse(
            success=True, transaction="0xtesthash", network="base-sepolia", payer="0xvalidPayer"
        )
        self.verify_error = verify_error
        self.settle_error = settle_error
        self.verify_calls = []
        self.settle_calls = []

    def verify(self, payload, requirements):
        self.verify_calls.append((payload, requirements))
        if self.verify_error:
            raise self.verify_error
        return self.verification

    def settle(self, payload, requirements):
        self.settle_calls.append((payload, requirements))
        if self.settle_error:
            raise self.settle_error
        return self.settlement


@pytest.fixture
def payload() -> PaymentPayload:
    return make_payload()


@pytest.fixture
def payment_header(payload) -> str:
    return encode_header(payload.to_dict())


@pytest.fixture
def stub_facilitator() -> StubFacilitator:
    return StubFacilitator()
