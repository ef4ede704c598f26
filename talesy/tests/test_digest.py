from datetime import timedelta
from unittest.mock import AsyncMock, patch

from talesy.config import settings
from talesy.db.base import utcnow
from talesy.models.comment import Comment
from talesy.models.follow import Follow
from talesy.models.like import Like
from talesy.services.digest_service import DigestService

async def seed_activity(test_db, create_user, create_post):
    """Writer gets fresh activity; quiet has only stale activity"""
    writer = await create_user(name="Writer")
    quiet = await create_user(name="Quiet")
    reader = await create_user(name="Reader", notification_preferences={"weekly_digest": False})
    post = await create_post(writer)
    quiet_post = await create_post(quiet)

    stale = utcnow() - timedelta(days=settings.DIGEST_LOOKBACK_DAYS + 3)
    test_db.add_all([
        Follow(follower_id=reader.id, following_id=writer.id),
        Like(user_id=reader.id, post_id=post.id),
        Like(user_id=quiet.id, post_id=post.id),
        Comment(post_id=post.id, author_id=reader.id, content="Loved it"),
        Follow(follower_id=reader.id, following_id=quiet.id, created_at=stale),
        Like(user_id=reader.id, post_id=quiet_post.id, created_at=stale),
    ])
    await test_db.commit()
    return writer, quiet, reader

async def test_user_stats_count_only_the_window(test_db, create_user, create_post):
    writer, quiet, _ = await seed_activity(test_db, create_user, create_post)
    service = DigestService(test_db)
    since = utcnow() - timedelta(days=settings.DIGEST_LOOKBACK_DAYS)

    stats = await service.get_user_stats(writer.id, since)
    assert (stats.new_followers, stats.new_likes, stats.new_comments) == (1, 2, 1)

    quiet_stats = await service.get_user_stats(quiet.id, since)
    assert not quiet_stats.has_activity

async def test_digest_sends_only_with_activity_and_consent(test_db, create_user, create_post):
    writer, _, _ = await seed_activity(test_db, create_user, create_post)
    sender = AsyncMock(return_value=True)

    report = await DigestService(test_db, sender=sender).run_weekly_digest()

    # the reader opted out, the quiet user had nothing new
    assert report.recipients == 2
    assert report.sent == 1
    assert report.skipped == 1
    assert report.failed == 0
    sender.assert_awaited_once_with(writer.email, "weeklyDigest", ["Writer", 1, 2, 1])

async def test_digest_collects_every_failure(test_db, create_user, create_post):
    first = await create_user(name="First")
    second = await create_user(name="Second")
    fan = await create_user()
    for author in (first, second):
        post = await create_post(author)
        test_db.add(Like(user_id=fan.id, post_id=post.id))
    await test_db.commit()

    async def flaky_sender(to_email, template_name, template_args):
        if to_email == first.email:
            raise RuntimeError("smtp timeout")
        return False

    report = await DigestService(test_db, sender=flaky_sender).run_weekly_digest()

    assert report.sent == 0
    assert report.failed == 2
    errors = {f.user_id: f.error for f in report.failures}
    assert errors[first.id] == "smtp timeout"
    assert second.id in errors

async def test_weekly_digest_route(test_client, create_user):
    await create_user()

    with patch.object(settings, "CRON_SECRET", "s3cret"):
        response = await test_client.get("/api/v1/cron/weekly-digest", params={"secret": "wrong"})
        assert response.status_code == 401

        response = await test_client.get("/api/v1/cron/weekly-digest")
        assert response.status_code == 401

        response = await test_client.get("/api/v1/cron/weekly-digest", params={"secret": "s3cret"})
        assert response.status_code == 200
        assert response.json()["recipients"] == 1
        assert response.json()["sent"] == 0

async def test_weekly_digest_route_disabled_without_secret(test_client):
    with patch.object(settings, "CRON_SECRET", None):
        response = await test_client.get("/api/v1/cron/weekly-digest", params={"secret": "anything"})
    assert response.status_code == 401
