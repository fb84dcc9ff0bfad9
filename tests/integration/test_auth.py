"""Integration tests for bearer-token authentication."""

import pytest
from libs.auth.dependencies import get_current_user, issue_token
from services.gateway_service.app.main import app


@pytest.fixture
def real_auth(client):
    """Drop the test user override so requests go through JWT validation."""
    app.dependency_overrides.pop(get_current_user, None)
    return client


@pytest.mark.asyncio
@pytest.mark.integration
async def test_missing_token(real_auth):
    response = await real_auth.get("/orders")

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_invalid_token(real_auth):
    response = await real_auth.get(
        "/orders", headers={"Authorization": "Bearer not-a-jwt"}
    )

    assert response.status_code == 401


@pytest.mark.asyncio
@pytest.mark.integration
async def test_valid_token(real_auth):
    token = issue_token("buyer-42", "buyer", email="buyer42@example.com")

    response = await real_auth.get(
        "/orders", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 200
    assert response.json()["total"] == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_seller_route_rejects_buyer_token(real_auth):
    token = issue_token("buyer-42", "buyer")

    response = await real_auth.get(
        "/seller/payouts", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_service_token_reaches_internal_routes(real_auth):
    token = issue_token("payments-worker", "service_role")

    response = await real_auth.patch(
        "/internal/payouts/00000000-0000-0000-0000-000000000000",
        json={"status": "processing"},
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 404
