import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from fastapi import Depends, Header, HTTPException, Request
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database

from config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, JWT_SECRET
from database import find_by_id, get_db

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

GRAVATAR_URL = "https://www.gravatar.com/avatar/"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        # not a hash passlib recognises
        return False


def gravatar_url(email: str, size: int = 200, rating: str = "pg", default: str = "mm") -> str:
    digest = hashlib.md5(email.strip().lower().encode()).hexdigest()
    return GRAVATAR_URL + digest + "?" + urlencode({"s": size, "r": rating, "d": default})


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.warning("Rejected token: %s", e)
        raise HTTPException(status_code=401, detail="Unauthorized!, its an invalid token")


# Dependencies

def get_token_claims(
    request: Request,
    x_auth_token: Optional[str] = Header(default=None),
    authorization: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    """Verify the request's token and attach its claims to `request.state`."""
    token = x_auth_token
    if not token and authorization and authorization.startswith("Bearer "):
        token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise HTTPException(status_code=401, detail="No Token Provided!")
    claims = decode_token(token)
    request.state.claims = claims
    return claims


def get_current_user(claims: Dict[str, Any] = Depends(get_token_claims), db: Database = Depends(get_db)) -> Dict[str, Any]:
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid User Request")
    user = find_by_id(db, "user", user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User is not found")
    return user
