from celery import Celery
from talesy.config import settings
from talesy.utils.email_utils import send_template_email
import asyncio
import logging
from typing import Any, List

logger = logging.getLogger(__name__)

celery_app = Celery(
    "talesy",
    broker=settings.redis_url,
    backend=settings.redis_url
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_ignore_result=True,
)

@celery_app.task(name="talesy.send_template_email")
def send_template_email_task(
    to_email: str,
    template_name: str,
    template_args: List[Any]
) -> bool:
    """Send a templated email from a worker. Failures are logged, not retried."""
    try:
        return asyncio.run(send_template_email(to_email, template_name, template_args))
    except Exception as e:
        logger.error(f"Error sending {template_name} email to {to_email}: {e}")
        return False
