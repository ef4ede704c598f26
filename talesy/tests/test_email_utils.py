from unittest.mock import patch

import httpx
import pytest

from talesy.config import settings
from talesy.tasks.email_tasks import send_template_email_task
from talesy.utils.email_utils import render_email_template, send_email, send_template_email

def test_render_weekly_digest():
    subject, text, html = render_email_template("weeklyDigest", ["Ada", 3, 5, 2])

    assert subject == "Your Weekly Talesy Digest"
    assert "3 new followers" in text
    assert "5 new likes" in text
    assert "<strong>2</strong>" in html

def test_render_escapes_html_only_in_html_body():
    subject, text, html = render_email_template(
        "newComment",
        ["Ada", "<b>Bob</b>", "Tides", "https://talesy.app/posts/1", "nice & short"]
    )

    assert "<b>Bob</b>" in subject
    assert "nice & short" in text
    assert "&lt;b&gt;Bob&lt;/b&gt;" in html
    assert "nice &amp; short" in html

def test_render_rejects_unknown_template_and_bad_args():
    with pytest.raises(ValueError):
        render_email_template("passwordReset", ["Ada"])
    with pytest.raises(ValueError):
        render_email_template("newFollower", ["Ada"])

async def test_send_without_api_key_is_a_noop():
    with patch.object(settings, "RESEND_API_KEY", None):
        assert await send_template_email("ada@example.com", "newFollower", ["Ada", "Bob"]) is True

async def test_send_posts_to_resend():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "email_123"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with patch.object(settings, "RESEND_API_KEY", "re_test"):
            sent = await send_email("ada@example.com", "Hi", "text", "<p>html</p>", client=client)

    assert sent is True
    assert seen[0].headers["Authorization"] == "Bearer re_test"
    assert str(seen[0].url) == settings.RESEND_API_URL

async def test_send_reports_provider_errors():
    transport = httpx.MockTransport(lambda request: httpx.Response(422, json={"message": "invalid from"}))

    async with httpx.AsyncClient(transport=transport) as client:
        with patch.object(settings, "RESEND_API_KEY", "re_test"):
            assert await send_email("ada@example.com", "Hi", "text", "<p>html</p>", client=client) is False

def test_celery_task_runs_the_sender():
    with patch("talesy.tasks.email_tasks.send_template_email", return_value=True) as sender:
        assert send_template_email_task("ada@example.com", "newFollower", ["Ada", "Bob"]) is True
    sender.assert_called_once_with("ada@example.com", "newFollower", ["Ada", "Bob"])

def test_celery_task_logs_failures():
    with patch("talesy.tasks.email_tasks.send_template_email", side_effect=RuntimeError("boom")):
        assert send_template_email_task("ada@example.com", "newFollower", ["Ada", "Bob"]) is False
