import pytest
from httpx import AsyncClient

from talesy.tests.helpers import auth_headers

@pytest.mark.asyncio
async def test_follow_user(test_client: AsyncClient, create_user, email_task):
    """Test following and unfollowing through the API"""
    reader = await create_user(name="Reader")
    writer = await create_user(name="Writer")

    response = await test_client.post(f"/api/v1/users/{writer.id}/follow", headers=auth_headers(reader))
    assert response.status_code == 200
    assert response.json() == {"active": True, "count": 1}
    email_task.delay.assert_called_once_with(writer.email, "newFollower", ["Writer", "Reader"])

    response = await test_client.get(f"/api/v1/users/{writer.id}/follow", headers=auth_headers(reader))
    assert response.json()["is_following"] is True
    assert response.json()["followers"] == 1

    response = await test_client.get(f"/api/v1/users/{reader.id}")
    assert response.json()["following_count"] == 1

    response = await test_client.post(f"/api/v1/users/{writer.id}/follow", headers=auth_headers(reader))
    assert response.json() == {"active": False, "count": 0}

    response = await test_client.get(f"/api/v1/users/{writer.id}/follow")
    assert response.json()["is_following"] is False
    assert response.json()["followers"] == 0

@pytest.mark.asyncio
async def test_cannot_follow_self(test_client: AsyncClient, create_user):
    user = await create_user()

    response = await test_client.post(f"/api/v1/users/{user.id}/follow", headers=auth_headers(user))

    assert response.status_code == 400
    assert response.json()["error"] == "InvalidOperation"

@pytest.mark.asyncio
async def test_follow_missing_or_inactive_user(test_client: AsyncClient, create_user):
    reader = await create_user()
    gone = await create_user(is_active=False)

    response = await test_client.post(f"/api/v1/users/{gone.id}/follow", headers=auth_headers(reader))
    assert response.status_code == 404

    response = await test_client.post(
        "/api/v1/users/00000000-0000-0000-0000-000000000000/follow",
        headers=auth_headers(reader)
    )
    assert response.status_code == 404

@pytest.mark.asyncio
async def test_followers_and_following_lists(test_client: AsyncClient, create_user):
    writer = await create_user()
    fans = [await create_user() for _ in range(3)]
    for fan in fans:
        response = await test_client.post(f"/api/v1/users/{writer.id}/follow", headers=auth_headers(fan))
        assert response.status_code == 200

    response = await test_client.get(f"/api/v1/users/{writer.id}/followers", params={"limit": 2})
    data = response.json()
    assert data["total"] == 3
    assert len(data["users"]) == 2
    assert data["user_id"] == str(writer.id)

    response = await test_client.get(f"/api/v1/users/{fans[0].id}/following")
    data = response.json()
    assert data["total"] == 1
    assert data["users"][0]["id"] == str(writer.id)

@pytest.mark.asyncio
async def test_settings_merge_preferences(test_client: AsyncClient, create_user):
    user = await create_user(notification_preferences={"likes": False})
    headers = auth_headers(user)

    response = await test_client.get("/api/v1/users/me/settings", headers=headers)
    assert response.status_code == 200
    prefs = response.json()["notification_preferences"]
    assert prefs["likes"] is False
    assert prefs["comments"] is True

    response = await test_client.patch(
        "/api/v1/users/me/settings",
        json={"bio": "Writes about the sea", "notification_preferences": {"weekly_digest": False}},
        headers=headers
    )
    assert response.status_code == 200
    data = response.json()
    assert data["bio"] == "Writes about the sea"
    assert data["notification_preferences"]["weekly_digest"] is False
    assert data["notification_preferences"]["likes"] is False
    assert data["notification_preferences"]["follows"] is True

    response = await test_client.get("/api/v1/users/me/settings", headers=headers)
    assert response.json()["notification_preferences"]["weekly_digest"] is False

@pytest.mark.asyncio
async def test_public_profile_hides_email(test_client: AsyncClient, create_user):
    user = await create_user(bio="Hello")

    response = await test_client.get(f"/api/v1/users/{user.id}")

    assert response.status_code == 200
    assert response.json()["bio"] == "Hello"
    assert "email" not in response.json()

    response = await test_client.get("/api/v1/users/not-a-uuid")
    assert response.status_code == 400

@pytest.mark.asyncio
async def test_search_users(test_client: AsyncClient, create_user):
    await create_user(name="Mary Shelley", username="mshelley", bio="Gothic tales")
    await create_user(name="Percy", username="percy", bio="Poems about Mary")
    await create_user(name="Bram", username="bram_s", bio="Night owl")
    await create_user(name="Mary Gone", username="gone", is_active=False)

    response = await test_client.get("/api/v1/users/search", params={"q": "mary"})
    assert response.status_code == 200
    assert {u["username"] for u in response.json()} == {"mshelley", "percy"}
    assert all("email" not in u for u in response.json())

    response = await test_client.get("/api/v1/users/search", params={"q": "_s"})
    assert [u["username"] for u in response.json()] == ["bram_s"]

    response = await test_client.get("/api/v1/users/search")
    assert response.json() == []

@pytest.mark.asyncio
async def test_featured_users(test_client: AsyncClient, create_user):
    popular = await create_user(name="Popular")
    rising = await create_user(name="Rising")
    await create_user(name="Nobody")
    fans = [await create_user() for _ in range(3)]

    for fan in fans:
        await test_client.post(f"/api/v1/users/{popular.id}/follow", headers=auth_headers(fan))
    await test_client.post(f"/api/v1/users/{rising.id}/follow", headers=auth_headers(fans[0]))

    response = await test_client.get("/api/v1/users/featured")

    assert response.status_code == 200
    featured = response.json()
    assert [u["id"] for u in featured][:2] == [str(popular.id), str(rising.id)]
    assert featured[0]["followers_count"] == 3
    assert "Nobody" not in [u["name"] for u in featured]

@pytest.mark.asyncio
async def test_update_profile(test_client: AsyncClient, create_user):
    user = await create_user(name="Old Name", bio="Old bio")
    headers = auth_headers(user)

    response = await test_client.patch(
        "/api/v1/users/me/profile",
        json={"name": "  New Name ", "avatar_url": "https://cdn.example.com/a.png"},
        headers=headers
    )
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "New Name"
    assert data["bio"] == "Old bio"
    assert data["avatar_url"] == "https://cdn.example.com/a.png"

    response = await test_client.get(f"/api/v1/users/{user.id}")
    assert response.json()["avatar_url"] == "https://cdn.example.com/a.png"

    for body in ({"name": ""}, {"name": "   "}, {"name": None}):
        response = await test_client.patch("/api/v1/users/me/profile", json=body, headers=headers)
        assert response.status_code == 422

    response = await test_client.patch("/api/v1/users/me/profile", json={"bio": "x"})
    assert response.status_code == 401
