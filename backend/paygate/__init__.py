"""
paygate: x402 payment enforcement for FastAPI/Starlette

This package provides x402Paywall middleware for protecting API routes with
USDC micropayments on Base, verified and settled through a remote facilitator.
"""

from paygate.facilitator.client import FacilitatorClient, FacilitatorConfig
from paygate.x402.middleware import (
    RouteConfig,
    RoutesMap,
    X402PaywallMiddleware,
    get_payment_context,
    skip_settlement,
    x402Paywall,
)

__version__ = "0.1.0"

__all__ = [
    "FacilitatorClient",
    "FacilitatorConfig",
    "RouteConfig",
    "RoutesMap",
    "X402PaywallMiddleware",
    "get_payment_context",
    "skip_settlement",
    "x402Paywall",
]
