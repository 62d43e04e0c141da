import uuid
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel
from lms_media.core.config import settings
from lms_media.core.errors import LoginRequired, Unauthorized

http_bearer = HTTPBearer(auto_error=False)

class Principal(BaseModel):
    user_id: uuid.UUID
    org_id: uuid.UUID
    roles: list[str] = []
    scopes: list[str] = []

def _decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG], audience=settings.REQUIRED_AUDIENCE)
    except JWTError as e:
        raise Unauthorized(f"Invalid token: {e}")

def create_token(user_id: uuid.UUID, org_id: uuid.UUID | None = None, **claims) -> str:
    payload = {"sub": str(user_id), "org_id": str(org_id or settings.DEFAULT_ORG_ID), **claims}
    if settings.REQUIRED_AUDIENCE:
        payload.setdefault("aud", settings.REQUIRED_AUDIENCE)
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)

def default_org_id() -> uuid.UUID:
    return uuid.UUID(settings.DEFAULT_ORG_ID)

async def get_optional_principal(creds: HTTPAuthorizationCredentials | None = Depends(http_bearer)) -> Principal | None:
    # Anonymous requests are allowed through for public media views
    if creds is None:
        return None
    data = _decode_token(creds.credentials)
    try:
        user_id = uuid.UUID(str(data.get("sub") or data.get("user_id")))
        org_id = uuid.UUID(str(data.get("org_id") or settings.DEFAULT_ORG_ID))
    except ValueError:
        raise Unauthorized("Invalid token subject")
    return Principal(user_id=user_id, org_id=org_id, roles=data.get("roles", []), scopes=data.get("scopes", []))

async def require_principal(principal: Principal | None = Depends(get_optional_principal)) -> Principal:
    if principal is None:
        raise LoginRequired()
    return principal
