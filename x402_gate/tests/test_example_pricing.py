"""Price parsing of the bundled FastAPI example server."""

import importlib.util
from pathlib import Path

import pytest

EXAMPLE = Path(__file__).resolve().parents[2] / "examples" / "fastapi" / "main.py"


@pytest.fixture
def example(monkeypatch):
    monkeypatch.setenv("PAY_TO_ADDRESS", "0x0000000000000000000000000000000000000001")
    monkeypatch.setenv("NETWORK", "eip155:84532")
    spec = importlib.util.spec_from_file_location("fastapi_example_main", EXAMPLE)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestUsdcExactScheme:
    def test_fractional_cents_are_exact(self, example):
        amount = example.UsdcExactScheme().parse_price("$1.005", "eip155:84532")

        assert amount.amount == "1005000"
        assert amount.extra["name"] == "USDC"

    def test_whole_dollars(self, example):
        assert example.UsdcExactScheme().parse_price("$0.10", "eip155:84532").amount == "100000"

    def test_invalid_price(self, example):
        with pytest.raises(ValueError):
            example.UsdcExactScheme().parse_price("free", "eip155:84532")
