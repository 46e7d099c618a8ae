from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt

from ..config import settings


@dataclass
class AuthIdentity:
    """Identity asserted by the external auth provider."""

    user_id: str
    email: str
    metadata: dict = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return (
            self.metadata.get("name")
            or self.metadata.get("full_name")
            or self.email
        )

    @property
    def avatar_url(self) -> Optional[str]:
        return self.metadata.get("avatar_url") or self.metadata.get("picture")

    @property
    def requested_role(self) -> Optional[str]:
        role = self.metadata.get("role")
        return role.upper() if isinstance(role, str) else None


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(
            minutes=settings.access_token_expire_minutes
        )
    to_encode.update({"exp": expire})
    if settings.jwt_audience and "aud" not in to_encode:
        to_encode["aud"] = settings.jwt_audience
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[AuthIdentity]:
    """Return the identity carried by ``token`` or None if it is not valid."""
    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError:
        return None

    sub = payload.get("sub")
    email = payload.get("email")
    if not sub or not email:
        return None
    return AuthIdentity(
        user_id=str(sub),
        email=email,
        metadata=payload.get("user_metadata") or {},
    )


FILE_TOKEN_SCOPE = "file"


def create_file_token(path: str, ttl: int) -> str:
    """Short-lived token granting read access to one stored object."""
    expire = datetime.utcnow() + timedelta(seconds=ttl)
    return jwt.encode(
        {"scope": FILE_TOKEN_SCOPE, "path": path, "exp": expire},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def verify_file_token(token: str, path: str) -> bool:
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_aud": False},
        )
    except JWTError:
        return False
    return payload.get("scope") == FILE_TOKEN_SCOPE and payload.get("path") == path
