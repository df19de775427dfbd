import structlog
from fastapi import Depends, Query, Request
from sqlalchemy.orm import Session

from storefront.core.config import settings
from storefront.core.exceptions import Forbidden, Unauthorized
from storefront.core.security import decode_token
from storefront.db.session import get_db
from storefront.models.user import User, UserRole

logger = structlog.get_logger()


class PageParams:
    """Shared `page` / `limit` query parameters."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    ):
        self.page = page
        self.limit = limit


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    """Get current authenticated user from the bearer token."""
    auth_header = request.headers.get("Authorization") or ""
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized("Not authenticated")

    payload = decode_token(token.strip())
    user_id = payload.get("sub")

    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        raise Unauthorized("Invalid authentication credentials")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise Unauthorized("Invalid authentication credentials")

    if not user.is_active:
        raise Forbidden("Account is inactive")

    return user


def require_admin(
    request: Request,
    current_user: User = Depends(get_current_user),
) -> User:
    if current_user.role != UserRole.ADMIN:
        logger.warning(
            "admin_access_denied",
            action=f"{request.method} {request.url.path}",
            user_id=current_user.id,
        )
        raise Forbidden("Admin access required")

    logger.info(
        "admin_action",
        action=f"{request.method} {request.url.path}",
        admin_user_id=current_user.id,
    )
    return current_user
