"""
x402Paywall Middleware for FastAPI/Starlette

This middleware implements the x402 payment protocol for protecting API routes
with USDC micropayments on Base. Verification and settlement are delegated to
a remote facilitator.

A protected request goes through these steps:

1. Build the payment requirements for the matched route.
2. Decode the X-PAYMENT header (402 if missing or malformed).
3. Verify the payment with the facilitator (500 on facilitator failure,
   402 if the payment is invalid).
4. Run the handler, capturing its response in a ResponseBuffer.
5. Settle the payment (402 on any settlement failure, the buffered
   response is discarded).
6. Release the buffered response with the X-PAYMENT-RESPONSE receipt.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from fastapi import Request
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from paygate.facilitator.client import FacilitatorClient, FacilitatorConfig
from paygate.x402.buffer import ResponseBuffer
from paygate.x402.exceptions import (
    ConfigurationError,
    EncodeError,
    FacilitatorError,
    PayloadDecodeError,
    SettlementRejected,
    VerificationRejected,
)
from paygate.x402.paywall import get_paywall_html
from paygate.x402.types import (
    SCHEME_EXACT,
    X402_VERSION,
    X_PAYMENT_HEADER,
    X_PAYMENT_RESPONSE_HEADER,
    Money,
    PaymentContext,
    PaymentPayload,
    PaymentRequirements,
    SettleResponse,
    VerifyResponse,
    decode_payment_payload,
    derive_asset_extra,
    encode_settle_response,
    network_asset,
    parse_money,
    to_atomic_amount,
)

logger = logging.getLogger(__name__)

# Request scope key holding the PaymentContext of a verified request
PAYMENT_SCOPE_KEY = "x402.payment"


@dataclass
class RouteConfig:
    """Configuration for a protected route.

    Attributes:
        amount: Price in USD, e.g. ``0.01`` or ``"$0.01"``
        description: Human readable description of the resource
        mime_type: MIME type of the paid response
        max_timeout_seconds: How long a signed authorization stays valid
        output_schema: Optional JSON schema of the response
        testnet: Use base-sepolia instead of base
        custom_paywall_html: Page served to browsers instead of the default one
        resource: Explicit resource URL; otherwise resource_root_url + path
        resource_root_url: Prefix for the request path when resource is unset
    """

    amount: Money
    description: str = ""
    mime_type: str = ""
    max_timeout_seconds: int = 60
    output_schema: Optional[Dict[str, Any]] = None
    testnet: bool = True
    custom_paywall_html: str = ""
    resource: str = ""
    resource_root_url: str = ""


# Type alias for routes map, e.g. {"GET /weather": RouteConfig(amount="$0.001")}
RoutesMap = Dict[str, RouteConfig]


def build_payment_requirements(
    route: RouteConfig, pay_to: str, path: str
) -> PaymentRequirements:
    """Build the payment requirements for one request.

    Args:
        route: Route configuration
        pay_to: Payment recipient address
        path: Request path, used when the route has no explicit resource

    Returns:
        PaymentRequirements object

    Raises:
        ConfigurationError: If the route amount is invalid
    """
    network, asset = network_asset(route.testnet)
    resource = route.resource or f"{route.resource_root_url}{path}"
    return PaymentRequirements(
        scheme=SCHEME_EXACT,
        network=network,
        max_amount_required=to_atomic_amount(route.amount),
        resource=resource,
        description=route.description,
        mime_type=route.mime_type,
        pay_to=pay_to,
        max_timeout_seconds=route.max_timeout_seconds,
        asset=asset,
        output_schema=route.output_schema,
        extra=derive_asset_extra(route.testnet),
    )


def is_web_browser(request: Request) -> bool:
    """Whether the request comes from a browser that should see the paywall page."""
    accept = request.headers.get("accept", "")
    user_agent = request.headers.get("user-agent", "")
    return "text/html" in accept and "Mozilla" in user_agent


def get_payment_context(request: Request) -> Optional[PaymentContext]:
    """Payment state of the current request, available once payment is verified."""
    return request.scope.get(PAYMENT_SCOPE_KEY)


def skip_settlement(request: Request) -> None:
    """Abort the payment pipeline from inside a protected handler.

    The handler's own response is returned as-is, the payment is not settled
    and no X-PAYMENT-RESPONSE header is attached.
    """
    context = get_payment_context(request)
    if context is None:
        raise RuntimeError("skip_settlement() called outside a paid request")
    context.skip_settlement = True


class X402PaywallMiddleware(BaseHTTPMiddleware):
    """Middleware for x402 payment protocol protection.

    This middleware protects routes by requiring payment before allowing access.
    Payments are verified before the handler runs and settled after it ran; the
    handler's response is only released once settlement succeeded.
    """

    def __init__(
        self,
        app: Any,
        pay_to: str,
        routes: RoutesMap,
        facilitator: Optional[FacilitatorClient] = None,
        facilitator_config: Optional[FacilitatorConfig] = None,
    ):
        """Initialize x402Paywall middleware.

        Args:
            app: The ASGI application
            pay_to: Payment recipient address
            routes: Map of route keys to RouteConfig (e.g., {"GET /joke": RouteConfig(...)})
            facilitator: Optional facilitator client instance
            facilitator_config: Optional facilitator config (if not using a client instance)

        Raises:
            ConfigurationError: If pay_to is empty or a route amount is invalid
        """
        super().__init__(app)
        if not pay_to:
            raise ConfigurationError("pay_to address is required")
        for route_key, route in routes.items():
            try:
                parse_money(route.amount)
            except ConfigurationError as e:
                raise ConfigurationError(f"Route '{route_key}': {e}") from e
        self.pay_to = pay_to
        self.routes = dict(routes)
        self.facilitator = facilitator or FacilitatorClient(facilitator_config)

    def _get_route_config(self, method: str, path: str) -> Optional[RouteConfig]:
        """Get route configuration for the given method and path.

        Keys are "METHOD /path" or "/path" (any method); a trailing "/*"
        matches every path below the prefix.

        Args:
            method: HTTP method
            path: Request path

        Returns:
            RouteConfig if route is protected, None otherwise
        """
        # Normalize path (remove trailing slash, ensure leading slash)
        normalized_path = path.rstrip("/") or "/"
        if not normalized_path.startswith("/"):
            normalized_path = "/" + normalized_path

        # Try exact match first
        for route_key in (f"{method.upper()} {normalized_path}", normalized_path):
            if route_key in self.routes:
                return self.routes[route_key]

        for route_key, route in self.routes.items():
            route_method, _, pattern = route_key.rpartition(" ")
            if route_method and route_method.upper() != method.upper():
                continue
            if pattern.endswith("/*") and (
                normalized_path == pattern[:-2] or normalized_path.startswith(pattern[:-1])
            ):
                return route
        return None

    def _payment_required(
        self,
        requirements: PaymentRequirements,
        route: RouteConfig,
        browser: bool,
        error: str,
    ) -> Response:
        """Create 402 Payment Required response.

        Args:
            requirements: Payment requirements
            route: Route configuration (for the paywall page)
            browser: Serve the HTML paywall instead of JSON
            error: Error message

        Returns:
            HTMLResponse or JSONResponse with 402 status
        """
        if browser:
            html = route.custom_paywall_html or get_paywall_html(
                f"{parse_money(route.amount):f}", requirements
            )
            return HTMLResponse(content=html, status_code=402)
        return JSONResponse(
            status_code=402,
            content={
                "error": error,
                "accepts": [requirements.to_dict()],
                "x402Version": X402_VERSION,
            },
        )

    @staticmethod
    def _internal_error(error: str) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content={"error": error, "x402Version": X402_VERSION},
        )

    async def _verify(
        self, payload: PaymentPayload, requirements: PaymentRequirements
    ) -> VerifyResponse:
        verification = await run_in_threadpool(self.facilitator.verify, payload, requirements)
        if not verification.is_valid:
            raise VerificationRejected(verification.invalid_reason or "Invalid payment")
        return verification

    async def _settle(
        self, payload: PaymentPayload, requirements: PaymentRequirements
    ) -> SettleResponse:
        settlement = await run_in_threadpool(self.facilitator.settle, payload, requirements)
        if not settlement.success:
            raise SettlementRejected(settlement.error_reason or "Settlement failed")
        return settlement

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request through x402 payment middleware.

        Args:
            request: FastAPI/Starlette request
            call_next: Next middleware/handler in chain

        Returns:
            Response (402/500 on payment problems, otherwise the handler's response)
        """
        path = request.url.path
        method = request.method

        route = self._get_route_config(method, path)
        if route is None:
            return await call_next(request)

        logger.info(f"[x402] Route protected: {method} {path}")

        try:
            requirements = build_payment_requirements(route, self.pay_to, path)
        except ConfigurationError as e:
            logger.error(f"[x402] Failed to build payment requirements: {e}", exc_info=True)
            return self._internal_error(str(e))

        # Decided once so every rejection of this request has the same shape
        browser = is_web_browser(request)

        payment_header = request.headers.get(X_PAYMENT_HEADER)
        if not payment_header:
            logger.warning(f"[x402] No payment header found, returning 402 for {method} {path}")
            return self._payment_required(
                requirements, route, browser, f"{X_PAYMENT_HEADER} header is required"
            )

        try:
            payload = decode_payment_payload(payment_header)
        except PayloadDecodeError as e:
            logger.warning(f"[x402] Payment header decode error: {e}")
            return self._payment_required(requirements, route, browser, str(e))

        try:
            verification = await self._verify(payload, requirements)
        except FacilitatorError as e:
            logger.error(f"[x402] Payment verification error: {e}", exc_info=True)
            return self._internal_error(str(e))
        except VerificationRejected as e:
            logger.warning(f"[x402] Payment verification FAILED: {e}")
            return self._payment_required(requirements, route, browser, str(e))

        logger.info(f"[x402] Payment verified, payer: {verification.payer}")

        context = PaymentContext(
            payload=payload, requirements=requirements, verification=verification
        )
        request.scope[PAYMENT_SCOPE_KEY] = context

        buffer = await ResponseBuffer().capture(await call_next(request))

        if context.skip_settlement:
            logger.info(f"[x402] Handler skipped settlement for {method} {path}")
            return buffer.flush()

        try:
            settlement = await self._settle(payload, requirements)
        except (FacilitatorError, SettlementRejected) as e:
            logger.error(f"[x402] Payment settlement FAILED: {e}")
            return self._payment_required(requirements, route, browser, str(e))

        try:
            receipt = encode_settle_response(settlement)
        except EncodeError as e:
            logger.error(f"[x402] Settle header encoding failed: {e}", exc_info=True)
            return self._internal_error(str(e))

        logger.info(
            f"[x402] Payment settled, transaction: {settlement.transaction} "
            f"network: {settlement.network}"
        )
        return buffer.flush({X_PAYMENT_RESPONSE_HEADER: receipt})


def x402Paywall(
    pay_to: str,
    routes: RoutesMap,
    facilitator: Optional[FacilitatorClient] = None,
    facilitator_config: Optional[FacilitatorConfig] = None,
) -> type[BaseHTTPMiddleware]:
    """Create x402Paywall middleware factory.

    This is a convenience function that returns a middleware class that can be
    added to FastAPI/Starlette applications.

    Args:
        pay_to: Payment recipient address
        routes: Map of route keys to RouteConfig
        facilitator: Optional facilitator client instance
        facilitator_config: Optional facilitator config

    Returns:
        Middleware class that can be used with app.add_middleware()

    Example:
        ```python
        from paygate import x402Paywall, RouteConfig

        routes = {
            "GET /joke": RouteConfig(
                amount="$0.0001",
                description="A programming joke",
                mime_type="application/json",
            )
        }

        app.add_middleware(
            x402Paywall(pay_to="0x...", routes=routes),
        )
        ```
    """
    _pay_to = pay_to
    _routes = routes
    _facilitator = facilitator
    _facilitator_config = facilitator_config

    class PaywallMiddleware(X402PaywallMiddleware):
        def __init__(self, app: Any, **kwargs):
            super().__init__(
                app=app,
                pay_to=_pay_to,
                routes=_routes,
                facilitator=_facilitator,
                facilitator_config=_facilitator_config,
            )

    return PaywallMiddleware
