"""
Environment configuration for the demo resource server.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from paygate.facilitator.client import (
    DEFAULT_FACILITATOR_TIMEOUT,
    FacilitatorConfig,
    get_default_facilitator_url,
)

# Load environment variables from .env file
load_dotenv()

# Environment variable keys
ENV_FACILITATOR_TIMEOUT = "FACILITATOR_TIMEOUT"
ENV_PAY_TO_ADDRESS = "X402_PAY_TO_ADDRESS"
ENV_TESTNET = "X402_TESTNET"
ENV_RESOURCE_ROOT_URL = "X402_RESOURCE_ROOT_URL"
ENV_PRICE = "X402_PRICE"
ENV_PORT = "PORT"

DEFAULT_PORT = 4021
DEFAULT_PRICE = "$0.0001"
# Demo recipient from the x402 examples
DEFAULT_PAY_TO_ADDRESS = "0x209693Bc6afc0C5328bA36FaF03C514EF312287C"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Settings of the demo resource server."""

    pay_to: str = DEFAULT_PAY_TO_ADDRESS
    price: str = DEFAULT_PRICE
    testnet: bool = True
    resource_root_url: str = ""
    facilitator_url: str = ""
    facilitator_timeout: float = DEFAULT_FACILITATOR_TIMEOUT
    port: int = DEFAULT_PORT

    @classmethod
    def from_env(cls) -> "Settings":
        port = int(os.getenv(ENV_PORT, str(DEFAULT_PORT)))
        return cls(
            pay_to=os.getenv(ENV_PAY_TO_ADDRESS) or DEFAULT_PAY_TO_ADDRESS,
            price=os.getenv(ENV_PRICE) or DEFAULT_PRICE,
            testnet=_env_bool(ENV_TESTNET, True),
            resource_root_url=os.getenv(ENV_RESOURCE_ROOT_URL)
            or f"http://localhost:{port}",
            facilitator_url=get_default_facilitator_url(),
            facilitator_timeout=float(
                os.getenv(ENV_FACILITATOR_TIMEOUT, str(DEFAULT_FACILITATOR_TIMEOUT))
            ),
            port=port,
        )

    def facilitator_config(self) -> FacilitatorConfig:
        return FacilitatorConfig(
            url=self.facilitator_url or get_default_facilitator_url(),
            timeout=self.facilitator_timeout,
        )


def get_settings(env_file: Optional[str] = None) -> Settings:
    """Load settings, optionally reading an extra .env file first."""
    if env_file:
        load_dotenv(env_file, override=True)
    return Settings.from_env()
