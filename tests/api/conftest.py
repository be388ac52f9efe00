"""Shared fixtures for API tests."""

import time
from collections.abc import Callable, Generator

import pytest
from fastapi.testclient import TestClient

from catalog_engine.main import app

SELLER_ID = "seller-1"


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Create test client without a seller identity.

    Entering the client runs the lifespan, so job queues and workers exist.
    """
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def seller_headers() -> dict[str, str]:
    """Get seller identity headers."""
    return {"X-Seller-ID": SELLER_ID}


@pytest.fixture
def seller_client(client: TestClient, seller_headers: dict[str, str]) -> TestClient:
    """Create test client acting as a seller."""
    client.headers.update(seller_headers)
    return client


@pytest.fixture
def wait_for_job(seller_client: TestClient) -> Callable[[str], dict]:
    """Poll a job resource until it reaches a terminal status."""

    def _wait(path: str, timeout: float = 5.0) -> dict:
        deadline = time.monotonic() + timeout
        while True:
            data = seller_client.get(path).json()
            if data["status"] in ("completed", "failed"):
                return data
            if time.monotonic() > deadline:
                raise AssertionError(f"Job at {path} still {data['status']}")
            time.sleep(0.05)

    return _wait
