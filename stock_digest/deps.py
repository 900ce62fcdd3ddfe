"""FastAPI dependency injection: app.state holds singletons; Depends() resolves them.

The lifespan (main.py) builds ``Settings`` and the ``DigestService`` once
and attaches them to app.state; these getters are used by Depends().
"""
from typing import Annotated, Optional

from fastapi import Depends, Header, Request

from stock_digest.auth import extract_bearer_token, is_authorized_cron
from stock_digest.config import Settings
from stock_digest.digest import DigestService
from stock_digest.errors import AuthorizationError
from stock_digest.models import AuthenticatedUser


def get_settings(request: Request) -> Settings:
    """Resolve the validated settings from app.state."""
    return request.app.state.settings


def get_digest_service(request: Request) -> DigestService:
    """Resolve the shared DigestService from app.state."""
    return request.app.state.digest_service


SettingsDep = Annotated[Settings, Depends(get_settings)]
DigestServiceDep = Annotated[DigestService, Depends(get_digest_service)]


def require_cron_secret(
    settings: SettingsDep,
    authorization: Annotated[Optional[str], Header()] = None,
) -> None:
    """Reject the request unless it carries ``Bearer <CRON_SECRET>``."""
    if not is_authorized_cron(authorization, settings.cron_secret):
        raise AuthorizationError("Invalid cron secret")


def get_current_user(
    service: DigestServiceDep,
    authorization: Annotated[Optional[str], Header()] = None,
) -> AuthenticatedUser:
    """Resolve the Supabase session token in the Authorization header."""
    token = extract_bearer_token(authorization)
    if token is None:
        raise AuthorizationError("Missing session token")
    user = service.store.get_user_for_token(token)
    if user is None:
        raise AuthorizationError("Invalid session token")
    return user


CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
