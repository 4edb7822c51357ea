# app/core/security.py
# Tokens are issued by the identity service; this side only verifies them.
from datetime import datetime, timedelta
from typing import Optional

from jose import jwt, JWTError

from app.core.config import settings
from app.schemas.auth import TokenData


# Create Access Token (used by tests and internal tooling)
def create_access_token(data: dict, expires_minutes: int = 60):
    to_encode = dict(data)
    to_encode.update({"exp": datetime.utcnow() + timedelta(minutes=expires_minutes)})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


# Base decode
def _decode_raw(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


# Decode Access Token
def decode_access_token(token: str) -> TokenData:
    payload = _decode_raw(token)
    if not payload:
        return TokenData()
    return TokenData(username=payload.get("sub"), role=payload.get("role"))
