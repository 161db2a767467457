from fastapi import HTTPException, Request, status

from app.db import SessionLocal
from app.services.archive_proxy import ArchiveProxy
from app.services.identity import AuthUser, SupabaseAuth
from app.services.stripe_gateway import StripeGateway, stripe_gateway


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_stripe_gateway() -> StripeGateway:
    return stripe_gateway


def get_identity(request: Request) -> SupabaseAuth:
    return request.app.state.identity


def get_archive_proxy(request: Request) -> ArchiveProxy:
    return request.app.state.archive_proxy


def get_current_user(request: Request) -> AuthUser | None:
    """The user resolved by AuthGateMiddleware, if any."""
    return getattr(request.state, "user", None)


def require_user(request: Request) -> AuthUser:
    user = get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unauthorized", "message": "Unauthorized"},
        )
    return user
