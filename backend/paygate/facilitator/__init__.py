"""
Remote facilitator client for the x402 payment protocol.
"""

from paygate.facilitator.client import (
    DEFAULT_FACILITATOR_URL,
    FacilitatorClient,
    FacilitatorConfig,
)

__all__ = [
    "DEFAULT_FACILITATOR_URL",
    "FacilitatorClient",
    "FacilitatorConfig",
]
