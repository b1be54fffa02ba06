"""
Default paywall page served to web browsers that hit a paid route.
"""

from html import escape

from paygate.x402.types import NETWORK_BASE, NETWORK_BASE_SEPOLIA, PaymentRequirements

_NETWORK_LABELS = {
    NETWORK_BASE: "Base",
    NETWORK_BASE_SEPOLIA: "Base Sepolia",
}

_PAYWALL_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Payment Required - ${amount}</title>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1 class="title">Payment Required</h1>
            <p class="subtitle">To access this content, please pay ${amount}</p>
        </div>
        <div class="payment-details">
            <div class="payment-row">
                <span class="payment-label">Amount:</span>
                <span class="payment-value">${amount} USDC</span>
            </div>
            <div class="payment-row">
                <span class="payment-label">Network:</span>
                <span class="payment-value">{network}</span>
            </div>
            <div class="payment-row">
                <span class="payment-label">Resource:</span>
                <span class="payment-value">{resource}</span>
            </div>
            <div class="payment-row">
                <span class="payment-label">Pay to:</span>
                <span class="payment-value">{pay_to}</span>
            </div>
        </div>
        <p class="description">{description}</p>
    </div>
</body>
</html>
"""


def get_paywall_html(amount: str, requirements: PaymentRequirements) -> str:
    """Render the paywall page.

    Args:
        amount: Human readable USD amount (e.g. "0.01")
        requirements: Requirements the payer must satisfy

    Returns:
        HTML document
    """
    network = _NETWORK_LABELS.get(requirements.network, requirements.network)
    return _PAYWALL_TEMPLATE.format(
        amount=escape(amount),
        network=escape(network),
        resource=escape(requirements.resource),
        pay_to=escape(requirements.pay_to),
        description=escape(requirements.description),
    )
