from dataclasses import dataclass

from fastapi import HTTPException, Security
from fastapi.security.api_key import APIKeyHeader

# Authentication happens upstream; the gateway forwards the resolved identity.
user_id_header = APIKeyHeader(name="X-User-Id", auto_error=False)
user_role_header = APIKeyHeader(name="X-User-Role", auto_error=False)


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: str  # e.g. "PARENT" | "CHILD"


async def get_actor(
    user_id: str | None = Security(user_id_header),
    role: str | None = Security(user_role_header),
) -> Actor:
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id")
    if not role:
        raise HTTPException(status_code=401, detail="Missing X-User-Role")
    return Actor(user_id=user_id, role=role)
