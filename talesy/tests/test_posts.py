import pytest
from httpx import AsyncClient
from sqlalchemy import select, func

from talesy.models.comment import Comment
from talesy.models.like import CommentLike, Like
from talesy.models.post import Post
from talesy.schemas.reaction_schema import ReactionTarget
from talesy.services.comment_service import CommentService
from talesy.services.post_service import PostService
from talesy.services.reaction_service import ReactionService
from talesy.tests.helpers import auth_headers

@pytest.mark.asyncio
async def test_create_post(test_client: AsyncClient, create_user):
    """Test creating a post"""
    user = await create_user()

    post_data = {
        "title": "  The Lighthouse  ",
        "content": "It was a dark and stormy night.",
        "status": "published",
        "tags": ["fiction", "sea"]
    }

    response = await test_client.post("/api/v1/posts", json=post_data, headers=auth_headers(user))

    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "The Lighthouse"
    assert data["author_id"] == str(user.id)
    assert data["status"] == "published"
    assert data["tags"] == ["fiction", "sea"]
    assert data["likes_count"] == 0
    assert data["comments_count"] == 0

@pytest.mark.asyncio
async def test_create_post_validation(test_client: AsyncClient, create_user):
    user = await create_user()

    response = await test_client.post("/api/v1/posts", json={"title": "", "content": "x"}, headers=auth_headers(user))
    assert response.status_code == 422

    response = await test_client.post("/api/v1/posts", json={"title": "   ", "content": "x"}, headers=auth_headers(user))
    assert response.status_code == 422

    response = await test_client.post("/api/v1/posts", json={"title": "t", "content": " \n "}, headers=auth_headers(user))
    assert response.status_code == 422

    response = await test_client.post("/api/v1/posts", json={"title": "t", "content": "x"})
    assert response.status_code == 401

@pytest.mark.asyncio
async def test_update_post_rejects_null_and_blank_fields(test_client: AsyncClient, create_user, create_post):
    author = await create_user()
    post = await create_post(author, title="Keep me")

    for body in ({"title": None}, {"content": None}, {"status": None}, {"tags": None}, {"title": "  "}):
        response = await test_client.patch(f"/api/v1/posts/{post.id}", json=body, headers=auth_headers(author))
        assert response.status_code == 422

    response = await test_client.patch(
        f"/api/v1/posts/{post.id}",
        json={"image_url": None, "tags": ["kept"]},
        headers=auth_headers(author)
    )
    assert response.status_code == 200
    assert response.json()["title"] == "Keep me"
    assert response.json()["tags"] == ["kept"]

@pytest.mark.asyncio
async def test_get_posts(test_client: AsyncClient, create_user, create_post):
    """Test getting posts"""
    user = await create_user()
    for i in range(3):
        await create_post(user, title=f"Test post {i}", tags=["weekly"] if i == 0 else [])
    await create_post(user, status="draft")

    response = await test_client.get("/api/v1/posts")

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert len(data["posts"]) == 3
    assert data["posts"][0]["author"]["username"] == user.username

    response = await test_client.get("/api/v1/posts", params={"tag": "weekly"})
    assert [p["title"] for p in response.json()["posts"]] == ["Test post 0"]

@pytest.mark.asyncio
async def test_drafts_are_private(test_client: AsyncClient, create_user, create_post):
    author = await create_user()
    reader = await create_user()
    draft = await create_post(author, status="draft")
    await create_post(author)

    response = await test_client.get(f"/api/v1/posts/{draft.id}", headers=auth_headers(reader))
    assert response.status_code == 404

    response = await test_client.get(f"/api/v1/posts/{draft.id}", headers=auth_headers(author))
    assert response.status_code == 200

    response = await test_client.get(f"/api/v1/posts/user/{author.id}")
    assert response.json()["total"] == 1

    response = await test_client.get(f"/api/v1/posts/user/{author.id}", headers=auth_headers(author))
    assert response.json()["total"] == 2

@pytest.mark.asyncio
async def test_update_post(test_client: AsyncClient, create_user, create_post):
    author = await create_user()
    other = await create_user()
    post = await create_post(author, status="draft")

    response = await test_client.patch(
        f"/api/v1/posts/{post.id}",
        json={"status": "published", "title": "Final title"},
        headers=auth_headers(author)
    )
    assert response.status_code == 200
    assert response.json()["status"] == "published"
    assert response.json()["title"] == "Final title"

    response = await test_client.patch(
        f"/api/v1/posts/{post.id}",
        json={"title": "Stolen"},
        headers=auth_headers(other)
    )
    assert response.status_code == 403

@pytest.mark.asyncio
async def test_like_post_route(test_client: AsyncClient, create_user, create_post, email_task):
    author = await create_user()
    fan = await create_user()
    post = await create_post(author)

    response = await test_client.post(f"/api/v1/posts/{post.id}/like", headers=auth_headers(fan))
    assert response.status_code == 200
    assert response.json() == {"active": True, "count": 1}
    email_task.delay.assert_called_once()

    response = await test_client.get(f"/api/v1/posts/{post.id}", headers=auth_headers(fan))
    assert response.json()["liked"] is True
    assert response.json()["likes_count"] == 1

    response = await test_client.post(f"/api/v1/posts/{post.id}/like", headers=auth_headers(fan))
    assert response.json() == {"active": False, "count": 0}

    response = await test_client.post("/api/v1/posts/1234/like", headers=auth_headers(fan))
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidIdentifier"

@pytest.mark.asyncio
async def test_delete_post_cascades(test_db, create_user, create_post):
    author = await create_user()
    fan = await create_user()
    post = await create_post(author)
    kept = await create_post(author)

    comments = CommentService(test_db)
    reactions = ReactionService(test_db)
    root = await comments.create_comment(fan.id, post.id, "root")
    reply = await comments.create_comment(author.id, post.id, "reply", parent_id=root.id)
    other = await comments.create_comment(fan.id, kept.id, "elsewhere")
    await reactions.toggle_reaction(fan.id, ReactionTarget.POST, post.id)
    await reactions.toggle_reaction(fan.id, ReactionTarget.POST, kept.id)
    await reactions.toggle_reaction(author.id, ReactionTarget.COMMENT, root.id)
    await reactions.toggle_reaction(fan.id, ReactionTarget.COMMENT, reply.id)
    await reactions.toggle_reaction(author.id, ReactionTarget.COMMENT, other.id)

    removed = await PostService(test_db).delete_post(author.id, post.id)

    assert removed == 2
    assert (await test_db.execute(select(Post.id))).scalars().all() == [kept.id]
    assert (await test_db.execute(select(Comment.id))).scalars().all() == [other.id]
    assert (await test_db.execute(select(Like.post_id))).scalars().all() == [kept.id]
    assert (await test_db.execute(select(CommentLike.target_id))).scalars().all() == [other.id]

@pytest.mark.asyncio
async def test_delete_post_route(test_client: AsyncClient, test_db, create_user, create_post):
    author = await create_user()
    other = await create_user()
    post = await create_post(author)

    response = await test_client.delete(f"/api/v1/posts/{post.id}", headers=auth_headers(other))
    assert response.status_code == 403

    response = await test_client.delete(f"/api/v1/posts/{post.id}", headers=auth_headers(author))
    assert response.status_code == 200
    assert response.json()["deleted_comments"] == 0

    response = await test_client.get(f"/api/v1/posts/{post.id}")
    assert response.status_code == 404
    assert (await test_db.execute(select(func.count(Post.id)))).scalar() == 0

@pytest.mark.asyncio
async def test_trending_posts(test_client: AsyncClient, create_user, create_post):
    author = await create_user()
    quiet = await create_post(author, title="Quiet")
    discussed = await create_post(author, title="Discussed", likes_count=3, comments_count=9)
    loved = await create_post(author, title="Loved", likes_count=7, comments_count=1)
    tied = await create_post(author, title="Tied", likes_count=3, comments_count=2)
    await create_post(author, title="Hidden draft", status="draft", likes_count=50)

    response = await test_client.get("/api/v1/posts/trending", params={"limit": 3})

    assert response.status_code == 200
    assert [p["id"] for p in response.json()] == [str(loved.id), str(discussed.id), str(tied.id)]

    response = await test_client.get("/api/v1/posts/trending")
    assert str(quiet.id) in [p["id"] for p in response.json()]
    assert "Hidden draft" not in [p["title"] for p in response.json()]

@pytest.mark.asyncio
async def test_search_posts(test_client: AsyncClient, create_user, create_post):
    author = await create_user()
    await create_post(author, title="Harbor Lights", content="Boats at dusk.")
    await create_post(author, title="Inland", content="Far from any harbor.")
    await create_post(author, title="Mountains", content="Snow. 100% true.")
    await create_post(author, title="Harbor draft", status="draft")

    response = await test_client.get("/api/v1/posts/search", params={"q": "HARBOR"})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert {p["title"] for p in data["posts"]} == {"Harbor Lights", "Inland"}

    response = await test_client.get("/api/v1/posts/search", params={"q": "0% t"})
    assert [p["title"] for p in response.json()["posts"]] == ["Mountains"]

    response = await test_client.get("/api/v1/posts/search", params={"q": "%"})
    assert [p["title"] for p in response.json()["posts"]] == ["Mountains"]

    response = await test_client.get("/api/v1/posts/search", params={"q": "  "})
    assert response.json()["total"] == 0

@pytest.mark.asyncio
async def test_popular_tags(test_client: AsyncClient, create_user, create_post):
    author = await create_user()
    await create_post(author, tags=["fiction", "sea"])
    await create_post(author, tags=["fiction"])
    await create_post(author, tags=["poetry", "fiction", "fiction"])
    await create_post(author, tags=["secret", "fiction"], status="draft")

    response = await test_client.get("/api/v1/tags/popular")

    assert response.status_code == 200
    assert response.json() == [
        {"name": "fiction", "count": 3},
        {"name": "poetry", "count": 1},
        {"name": "sea", "count": 1},
    ]

    response = await test_client.get("/api/v1/tags/popular", params={"limit": 1})
    assert response.json() == [{"name": "fiction", "count": 3}]
