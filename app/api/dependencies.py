from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Response, status

from app.core.config import Settings
from app.core.errors import SessionError
from app.middleware.request_context import user_id_var
from app.models.user_identity import UserIdentity
from app.services.login_flow import LoginFlow

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"


def get_login_flow(request: Request) -> LoginFlow:
    return request.app.state.login_flow


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def session_id_from(request: Request) -> str | None:
    return request.cookies.get(SESSION_COOKIE) or None


def require_session_id(request: Request) -> str:
    session_id = session_id_from(request)
    if session_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Not signed in"
        )
    return session_id


async def require_user(
    session_id: Annotated[str, Depends(require_session_id)],
    flow: Annotated[LoginFlow, Depends(get_login_flow)],
) -> UserIdentity:
    """Resolve the signed-in user from the session cookie, or 401."""
    try:
        identity = await flow.current_user(session_id)
    except SessionError as exc:
        logger.debug("Session rejected: %s", type(exc).__name__)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Not signed in"
        ) from None
    user_id_var.set(str(identity.id))
    return identity


def set_session_cookie(response: Response, session_id: str, settings: Settings) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session_id,
        max_age=settings.session_max_ttl_sec,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
