import logging
import os
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

from x402_gate import x402ResourceServer
from x402_gate.fastapi import payment_middleware
from x402_gate.http import DEFAULT_FACILITATOR_URL, HTTPFacilitatorClient, PaywallConfig
from x402_gate.schemas import AssetAmount, Network, PaymentRequirements, SupportedKind

# You can run this with: export PAY_TO_ADDRESS=0x... && uv run python main.py

load_dotenv()
logging.basicConfig(level=logging.INFO)

PAY_TO_ADDRESS = os.getenv("PAY_TO_ADDRESS")
FACILITATOR_URL = os.getenv("FACILITATOR_URL", DEFAULT_FACILITATOR_URL)
NETWORK = os.getenv("NETWORK", "eip155:84532")  # Base Sepolia

if not PAY_TO_ADDRESS:
    raise ValueError("Missing required environment variables")

# USDC per network
USDC = {
    "eip155:84532": ("0x036CbD53842c5426634e7929541eC2318f3dCF7e", "USDC"),
    "eip155:8453": ("0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913", "USD Coin"),
}


class UsdcExactScheme:
    """Minimal "exact" scheme server: dollar prices become atomic USDC."""

    scheme = "exact"

    def parse_price(self, price: Any, network: Network) -> AssetAmount:
        if isinstance(price, AssetAmount):
            return price

        match = re.search(r"[\d.]+", str(price))
        try:
            dollars = Decimal(match.group()) if match else None
        except InvalidOperation:
            dollars = None
        if dollars is None:
            raise ValueError(f"Invalid money format: {price}")

        address, name = USDC[network]
        return AssetAmount(
            amount=str(int(dollars * 10**6)),
            asset=address,
            extra={"name": name, "version": "2"},
        )

    def enhance_payment_requirements(
        self,
        requirements: PaymentRequirements,
        supported_kind: SupportedKind,
        extensions: list[str],
    ) -> PaymentRequirements:
        return requirements


server = x402ResourceServer(HTTPFacilitatorClient({"url": FACILITATOR_URL}))
server.register(NETWORK, UsdcExactScheme())

routes = {
    "GET /weather": {
        "accepts": {
            "scheme": "exact",
            "payTo": PAY_TO_ADDRESS,
            "price": "$0.01",
            "network": NETWORK,
        },
        "description": "Weather data",
        "mimeType": "application/json",
    },
    "GET /premium/*": {
        "accepts": {
            "scheme": "exact",
            "payTo": PAY_TO_ADDRESS,
            "price": "$0.10",
            "network": NETWORK,
        },
        "description": "Premium content",
        "mimeType": "application/json",
    },
}

app = FastAPI()
app.middleware("http")(
    payment_middleware(routes, server, paywall_config=PaywallConfig(app_name="Weather API"))
)


@app.get("/health")
async def health() -> Dict[str, Any]:
    return {"status": "ok"}


@app.get("/weather")
async def get_weather() -> Dict[str, Any]:
    return {"report": {"weather": "sunny", "temperature": 72}}


@app.get("/premium/content")
async def get_premium_content() -> Dict[str, Any]:
    return {"content": "This is premium content"}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=4021)
