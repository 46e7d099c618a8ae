from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db
from .errors import Forbidden, Unauthorized
from .models import User, UserRole
from .services.grading import GradingBackend, create_grading_backend
from .services.users import sync_user
from .utils.security import AuthIdentity, decode_access_token
from .utils.storage import StorageProvider, create_storage

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthIdentity:
    """Identity asserted by the auth provider's bearer token"""
    if credentials is None:
        raise Unauthorized("Not authenticated")
    identity = decode_access_token(credentials.credentials)
    if identity is None:
        raise Unauthorized("Invalid or expired token")
    return identity


def get_current_user(
    identity: AuthIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> User:
    """Local user row for the caller, created on first authentication"""
    return sync_user(db, identity)


def require_role(*roles: UserRole):
    def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            names = " or ".join(role.value.capitalize() for role in roles)
            raise Forbidden(f"Forbidden - {names} access required")
        return current_user

    return checker


@lru_cache()
def get_storage() -> StorageProvider:
    return create_storage()


@lru_cache()
def get_grading_backend() -> GradingBackend:
    return create_grading_backend()
