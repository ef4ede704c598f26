import pytest
from httpx import AsyncClient

from talesy.tests.helpers import auth_headers, make_token

@pytest.mark.asyncio
async def test_protected_endpoint(test_client: AsyncClient, create_user):
    """Test accessing protected endpoint"""
    user = await create_user(username="reader", email="Reader@Example.com")

    response = await test_client.get("/api/v1/users/me", headers=auth_headers(user))

    assert response.status_code == 200
    data = response.json()
    assert data["username"] == "reader"
    assert data["email"] == "reader@example.com"
    assert "hashed_password" not in data

@pytest.mark.asyncio
async def test_missing_token(test_client: AsyncClient):
    response = await test_client.get("/api/v1/users/me")

    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"
    assert response.headers["WWW-Authenticate"] == "Bearer"

@pytest.mark.asyncio
async def test_invalid_tokens(test_client: AsyncClient, create_user):
    user = await create_user()

    bad_tokens = [
        "not-a-jwt",
        make_token(user, secret="some-other-secret"),
        make_token(user, token_type="refresh"),
    ]
    for token in bad_tokens:
        response = await test_client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

@pytest.mark.asyncio
async def test_logout_all_revokes_tokens(test_client: AsyncClient, create_user):
    user = await create_user()
    headers = auth_headers(user)

    response = await test_client.post("/api/v1/users/me/logout-all", headers=headers)
    assert response.status_code == 200

    response = await test_client.get("/api/v1/users/me", headers=headers)
    assert response.status_code == 401

    response = await test_client.get("/api/v1/users/me", headers={
        "Authorization": f"Bearer {make_token(user, token_version=1)}"
    })
    assert response.status_code == 200

@pytest.mark.asyncio
async def test_deactivated_user_is_locked_out(test_client: AsyncClient, create_user):
    user = await create_user()
    headers = auth_headers(user)

    response = await test_client.post("/api/v1/users/me/deactivate", headers=headers)
    assert response.status_code == 200

    response = await test_client.get("/api/v1/users/me", headers={
        "Authorization": f"Bearer {make_token(user, token_version=1)}"
    })
    assert response.status_code == 401

    response = await test_client.get(f"/api/v1/users/{user.id}")
    assert response.status_code == 404

@pytest.mark.asyncio
async def test_optional_auth_ignores_bad_token(test_client: AsyncClient, create_user, create_post):
    author = await create_user()
    post = await create_post(author)

    response = await test_client.get(
        f"/api/v1/posts/{post.id}",
        headers={"Authorization": "Bearer garbage"}
    )

    assert response.status_code == 200
    assert response.json()["liked"] is False
