"""
Email utility functions

Messages are rendered from the plain-text/HTML templates below and posted to
the Resend HTTP API. Without ``RESEND_API_KEY`` sending is a logged no-op so
development flows keep working.
"""
import html
import logging
from typing import Any, Dict, Optional, Sequence, Tuple

import httpx

from talesy.config import settings

logger = logging.getLogger(__name__)

_WRAPPER = '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">{body}</div>'

# name -> (argument names, subject, text body, html body)
EMAIL_TEMPLATES: Dict[str, Tuple[Tuple[str, ...], str, str, str]] = {
    "newFollower": (
        ("user_name", "follower_name"),
        "{follower_name} started following you on Talesy",
        "Hi {user_name},\n\n{follower_name} started following you on Talesy. Check out their profile!",
        "<h2>New Follower on Talesy</h2>"
        "<p>Hi {user_name},</p>"
        "<p><strong>{follower_name}</strong> started following you on Talesy.</p>",
    ),
    "newComment": (
        ("user_name", "commenter_name", "post_title", "post_url", "comment"),
        "{commenter_name} commented on your story",
        'Hi {user_name},\n\n{commenter_name} commented on your story "{post_title}": "{comment}"\n\n{post_url}',
        "<h2>New Comment on Your Story</h2>"
        "<p>Hi {user_name},</p>"
        '<p><strong>{commenter_name}</strong> commented on your story <a href="{post_url}"><strong>"{post_title}"</strong></a>:</p>'
        '<div style="background-color: #f3f4f6; padding: 15px; border-radius: 5px; margin: 15px 0;">"{comment}"</div>',
    ),
    "newReply": (
        ("user_name", "replier_name", "post_title", "post_url", "comment"),
        "{replier_name} replied to your comment",
        'Hi {user_name},\n\n{replier_name} replied to your comment on "{post_title}": "{comment}"\n\n{post_url}',
        "<h2>New Reply to Your Comment</h2>"
        "<p>Hi {user_name},</p>"
        '<p><strong>{replier_name}</strong> replied to your comment on <a href="{post_url}"><strong>"{post_title}"</strong></a>:</p>'
        '<div style="background-color: #f3f4f6; padding: 15px; border-radius: 5px; margin: 15px 0;">"{comment}"</div>',
    ),
    "newLike": (
        ("user_name", "liker_name", "post_title", "post_url"),
        "{liker_name} liked your story",
        'Hi {user_name},\n\n{liker_name} liked your story "{post_title}".\n\n{post_url}',
        "<h2>Someone Liked Your Story</h2>"
        "<p>Hi {user_name},</p>"
        '<p><strong>{liker_name}</strong> liked your story <a href="{post_url}"><strong>"{post_title}"</strong></a>.</p>',
    ),
    "newCommentLike": (
        ("user_name", "liker_name", "post_title", "post_url"),
        "{liker_name} liked your comment",
        'Hi {user_name},\n\n{liker_name} liked your comment on "{post_title}".\n\n{post_url}',
        "<h2>Someone Liked Your Comment</h2>"
        "<p>Hi {user_name},</p>"
        '<p><strong>{liker_name}</strong> liked your comment on <a href="{post_url}"><strong>"{post_title}"</strong></a>.</p>',
    ),
    "weeklyDigest": (
        ("user_name", "new_followers", "new_likes", "new_comments"),
        "Your Weekly Talesy Digest",
        "Hi {user_name},\n\nHere's your weekly activity digest from Talesy:\n"
        "- {new_followers} new followers\n- {new_likes} new likes on your stories\n- {new_comments} new comments",
        "<h2>Your Weekly Digest</h2>"
        "<p>Hi {user_name},</p>"
        "<p>Here's a summary of your activity this week on Talesy:</p>"
        '<table style="width: 100%; border-collapse: collapse; margin-top: 15px;">'
        '<tr><td style="padding: 10px; border: 1px solid #ddd;">New Followers</td>'
        '<td style="padding: 10px; border: 1px solid #ddd; text-align: center;"><strong>{new_followers}</strong></td></tr>'
        '<tr><td style="padding: 10px; border: 1px solid #ddd;">New Likes</td>'
        '<td style="padding: 10px; border: 1px solid #ddd; text-align: center;"><strong>{new_likes}</strong></td></tr>'
        '<tr><td style="padding: 10px; border: 1px solid #ddd;">New Comments</td>'
        '<td style="padding: 10px; border: 1px solid #ddd; text-align: center;"><strong>{new_comments}</strong></td></tr>'
        "</table>",
    ),
}


def render_email_template(template_name: str, template_args: Sequence[Any]) -> Tuple[str, str, str]:
    """Render ``(subject, text, html)`` for a template and its positional args"""
    if template_name not in EMAIL_TEMPLATES:
        raise ValueError(f"Unknown email template: {template_name}")

    arg_names, subject, text, html_body = EMAIL_TEMPLATES[template_name]
    if len(template_args) != len(arg_names):
        raise ValueError(
            f"Template {template_name} expects {len(arg_names)} arguments, got {len(template_args)}"
        )

    context = {name: str(value) for name, value in zip(arg_names, template_args)}
    escaped = {name: html.escape(value) for name, value in context.items()}

    return (
        subject.format(**context),
        text.format(**context),
        _WRAPPER.format(body=html_body.format(**escaped)),
    )


async def send_email(
    to_email: str,
    subject: str,
    text: str,
    html_body: str,
    from_email: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> bool:
    """Send one email through the Resend API. Returns False on failure."""
    if not settings.RESEND_API_KEY:
        logger.warning("Email sending is not configured. Skipping email.")
        logger.info(f"Would send email to: {to_email} subject: {subject}")
        return True

    payload = {
        "from": from_email or settings.EMAIL_FROM,
        "to": [to_email],
        "subject": subject,
        "text": text,
        "html": html_body,
    }
    headers = {"Authorization": f"Bearer {settings.RESEND_API_KEY}"}

    try:
        if client is not None:
            response = await client.post(settings.RESEND_API_URL, json=payload, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=httpx.Timeout(settings.EMAIL_TIMEOUT_SECONDS)) as own_client:
                response = await own_client.post(settings.RESEND_API_URL, json=payload, headers=headers)
        response.raise_for_status()
        logger.info(f"Email sent to {to_email}: {subject}")
        return True
    except httpx.HTTPError as e:
        logger.error(f"Error sending email to {to_email}: {e}")
        return False


async def send_template_email(
    to_email: str,
    template_name: str,
    template_args: Sequence[Any],
    client: Optional[httpx.AsyncClient] = None,
) -> bool:
    """Render a named template and send it"""
    subject, text, html_body = render_email_template(template_name, template_args)
    return await send_email(to_email, subject, text, html_body, client=client)
