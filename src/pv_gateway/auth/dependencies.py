"""FastAPI dependency: require_service_key.

Every engine endpoint is called by a trusted trigger adapter (cron, database
webhook, admin tooling) or by the payment subsystem, never by end users, so
the only credential is the shared service key sent as `X-API-Key`.

Usage in any protected router:
    router = APIRouter(dependencies=[Depends(require_service_key)])
"""

import hmac

from fastapi import Header

from config.settings import settings
from src.pv_common.errors import UnauthorizedError


async def require_service_key(
    x_api_key: str | None = Header(None, alias="X-API-Key"),
) -> None:
    """Raises HTTP 401 (UnauthorizedError) unless X-API-Key matches the configured key."""
    if x_api_key is None or not hmac.compare_digest(
        x_api_key.encode(), settings.QUEUE_PROCESSOR_API_KEY.encode()
    ):
        raise UnauthorizedError()
