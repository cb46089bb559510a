from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from jose import jwt

from orderflow.core.config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, SECRET_KEY

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class CurrentCustomer:
    """Identity taken from a verified bearer token; customers live in the identity service."""
    id: int
    email: str
    name: Optional[str] = None
    is_admin: bool = False


def create_access_token(
    *,
    customer_id: int,
    email: str,
    name: Optional[str] = None,
    roles: Optional[List[str]] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Issue a token in the identity service's format. Used by tests and local tooling.
    """
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode: Dict[str, Any] = {
        "sub": email,
        "uid": customer_id,
        "name": name,
        "roles": roles or [],
        "exp": expire,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> CurrentCustomer:
    """
    Raises jose.JWTError for bad signatures or expired tokens, ValueError for missing claims.
    """
    payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    email = payload.get("sub")
    customer_id = payload.get("uid")
    if email is None or customer_id is None:
        raise ValueError("Token is missing sub or uid")
    roles = payload.get("roles") or []
    return CurrentCustomer(
        id=int(customer_id),
        email=email,
        name=payload.get("name"),
        is_admin=ADMIN_ROLE in roles,
    )
