"""
Demo resource server.

Creates a FastAPI application with a free health check and a paid joke
endpoint protected by the x402Paywall middleware.

Run with:
    uvicorn paygate.main:app --host 0.0.0.0 --port 4021
"""

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from paygate.config import Settings, get_settings
from paygate.facilitator.client import FacilitatorClient
from paygate.x402.middleware import RouteConfig, x402Paywall

# Configuration constants
API_VERSION = "0.1.0"
SERVICE_NAME = "paygate-demo"

JOKE = "Why do programmers prefer dark mode? Because light attracts bugs!"


def create_app(
    settings: Optional[Settings] = None,
    facilitator: Optional[FacilitatorClient] = None,
) -> FastAPI:
    """Create and configure the demo FastAPI application.

    Args:
        settings: Settings (loaded from the environment when omitted)
        facilitator: Facilitator client (built from settings when omitted)

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()
    facilitator = facilitator or FacilitatorClient(settings.facilitator_config())

    app = FastAPI(
        title="paygate demo",
        description="Resource server protected by x402 payments",
        version=API_VERSION,
    )

    routes = {
        "GET /joke": RouteConfig(
            amount=settings.price,
            description="A programming joke",
            mime_type="application/json",
            testnet=settings.testnet,
            resource_root_url=settings.resource_root_url,
        ),
    }
    app.add_middleware(
        x402Paywall(pay_to=settings.pay_to, routes=routes, facilitator=facilitator)
    )

    @app.get("/health")
    async def health_check() -> JSONResponse:
        """Health check endpoint for monitoring and load balancers."""
        return JSONResponse(
            content={
                "status": "healthy",
                "service": SERVICE_NAME,
                "version": API_VERSION,
            }
        )

    @app.get("/joke")
    async def joke() -> JSONResponse:
        return JSONResponse(content={"joke": JOKE})

    return app


# Create the application instance
app = create_app()


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
