from datetime import datetime, timedelta
from typing import Optional
import hashlib
import hmac
from jose import JWTError, jwt
from newport.core.config import settings

INVITE_SIGNATURE_LENGTH = 16


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire, "type": "access"})
    encoded_jwt = jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )
    return encoded_jwt

def decode_access_token(token: str) -> Optional[dict]:
    """Return the token claims, or None when the token is invalid or expired."""
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        return None
    if payload.get("sub") is None or payload.get("type") != "access":
        return None
    return payload

def sign_invite(invite_id: str, expires_at: int, secret: Optional[str] = None) -> str:
    """Short HMAC-SHA256 signature over ``"{invite_id}:{expires_at}"`` for invite URLs."""
    key = (secret or settings.INVITE_SECRET).encode("utf-8")
    message = f"{invite_id}:{expires_at}".encode("utf-8")
    return hmac.new(key, message, hashlib.sha256).hexdigest()[:INVITE_SIGNATURE_LENGTH]

def verify_invite_signature(invite_id: str, expires_at: int, signature: str, secret: Optional[str] = None) -> bool:
    if not signature:
        return False
    return sign_invite(invite_id, expires_at, secret) == signature
