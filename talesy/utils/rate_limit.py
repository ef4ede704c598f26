from slowapi import Limiter
from slowapi.util import get_remote_address

from talesy.config import settings

# Endpoints decorated with ``limiter.limit`` must accept a ``request: Request`` argument
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

WRITE_LIMIT = f"{settings.RATE_LIMIT_PER_MINUTE}/minute"
