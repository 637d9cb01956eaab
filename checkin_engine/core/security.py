from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTError

from checkin_engine.core.config import settings

logger = logging.getLogger(__name__)
bearer = HTTPBearer(auto_error=False)

DEV_USER_ID = uuid.UUID("123e4567-e89b-12d3-a456-426614174000")
DEV_BYPASS_TOKENS = {"dev-bypass", "test", "dev"}


def verify_token(token: str) -> Dict[str, Any]:
    """
    Verify an HS256 bearer JWT with the shared secret and return the caller.
    The `sub` claim must be a UUID.
    """
    if not settings.AUTH_JWT_SECRET:
        raise HTTPException(status_code=401, detail="Token verification is not configured")
    try:
        payload = jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=["HS256"],
            options={"verify_aud": False, "verify_iss": False},
        )
    except ExpiredSignatureError as exc:
        raise HTTPException(status_code=401, detail="Token has expired") from exc
    except JWTError as e:
        raise HTTPException(status_code=401, detail=f"Invalid token: {str(e)}") from e

    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Token missing user ID")
    try:
        user_id = uuid.UUID(str(sub))
    except ValueError as e:
        raise HTTPException(status_code=401, detail="Token user ID is not a UUID") from e

    return {
        "user_id": user_id,
        "role": payload.get("role", "authenticated"),
        "email": payload.get("email"),
    }


async def get_current_user(creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> Dict[str, Any]:
    """
    Resolve the caller from the bearer token. In the dev environment a
    missing token or a bypass token maps to a fixed test user.
    """
    if settings.APP_ENV == "dev":
        if not creds:
            logger.info("No credentials in dev mode, using test user")
            return {"user_id": DEV_USER_ID}
        if creds.credentials in DEV_BYPASS_TOKENS:
            logger.info("Dev bypass token used")
            return {"user_id": DEV_USER_ID}

    if not creds or creds.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Missing Authorization header")

    return verify_token(creds.credentials)
