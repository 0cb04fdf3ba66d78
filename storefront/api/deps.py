from typing import Optional

import structlog
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from storefront.core.security import ACCESS_TOKEN_TYPE, decode_token
from storefront.db.session import get_db
from storefront.models.user import User, UserRole

logger = structlog.get_logger()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _bearer_or_cookie(request: Request) -> Optional[str]:
    """The httpOnly cookie set at login wins over an Authorization header."""
    cookie_token = request.cookies.get("access_token")
    if cookie_token:
        return cookie_token
    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return None


def _resolve_user(db: Session, token: str) -> User:
    claims = decode_token(token)
    subject = claims.get("sub")
    if claims.get("type") != ACCESS_TOKEN_TYPE or not str(subject or "").isdigit():
        raise _unauthorized("Invalid authentication credentials")

    user = db.get(User, int(subject))
    if user is None:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is inactive")
    return user


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    token = _bearer_or_cookie(request)
    if token is None:
        raise _unauthorized("Not authenticated")
    return _resolve_user(db, token)


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """Guests get None; a present but bad token is still rejected."""
    token = _bearer_or_cookie(request)
    return _resolve_user(db, token) if token else None


def require_admin(request: Request, current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")

    logger.info(
        "admin_action",
        admin_user_id=current_user.id,
        method=request.method,
        path=request.url.path,
    )
    return current_user
