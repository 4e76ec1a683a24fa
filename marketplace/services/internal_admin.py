import secrets

from fastapi import HTTPException, Security
from fastapi.security.api_key import APIKeyHeader

from marketplace.core.config import settings

admin_key_header = APIKeyHeader(name="X-Internal-Admin-Key", auto_error=False)


async def require_internal_admin(key: str | None = Security(admin_key_header)) -> None:
    """Guards service-to-service endpoints (payment hook, expiry sweep, outbox flush)."""
    if not key or not secrets.compare_digest(key.encode(), settings.internal_admin_key.encode()):
        raise HTTPException(status_code=403, detail="Internal admin key required")
