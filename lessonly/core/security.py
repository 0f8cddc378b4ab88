"""
security.py
------------
JWT utilities for the Lessonly backend.

Notes:
- Sign-in happens against the hosted auth provider; this service only
  verifies the bearer token it issues and reads the owner id from "sub".
- create_access_token mints compatible tokens for operators and tests.
"""

from datetime import datetime, timedelta, timezone
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError

# Load constants from app configuration
from lessonly.core.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES


# -------------------------
# JWT Token Handling
# -------------------------
def create_access_token(data: dict, expires_delta: timedelta = None) -> str:
    """
    Creates a signed JWT access token.

    Args:
        data (dict): Data to encode into the token (e.g. {"sub": owner_id}).
        expires_delta (timedelta, optional): Custom expiration time.
                                             Defaults to ACCESS_TOKEN_EXPIRE_MINUTES.

    Returns:
        str: Encoded JWT token as a string.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


# -------------------------
# JWT Token Verification
# -------------------------
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=True)


def _credentials_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(token: str = Depends(oauth2_scheme)) -> str:
    """
    Decodes and verifies a JWT token, extracting the owner id.

    Args:
        token (str): JWT token provided in the request Authorization header.

    Returns:
        str: The owner id (subject) extracted from the token.

    Raises:
        HTTPException: If the token is invalid or expired.
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise _credentials_error()

    owner_id = payload.get("sub")
    if not owner_id:
        raise _credentials_error()
    return str(owner_id)
