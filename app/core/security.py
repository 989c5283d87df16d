from datetime import datetime, timedelta, timezone
from typing import Optional
from pydantic import ValidationError
from jose import JWTError, jwt

from app.core.config import settings
from app.schemas.token import TokenPayload


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def decode_access_token(token_data: str) -> Optional[TokenPayload]:
    """
    Decodes the JWT access token issued by the auth provider.
    Returns the validated payload if valid, None otherwise.
    """
    try:
        payload = jwt.decode(
            token_data, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
        return TokenPayload(**payload)
    except JWTError: # Catches expired signature, invalid signature, etc.
        return None
    except ValidationError: # Payload without a usable "sub"
        return None
