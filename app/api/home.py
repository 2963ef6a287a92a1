from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from app.api.dependencies import (
    clear_session_cookie,
    get_login_flow,
    get_settings,
    require_session_id,
    require_user,
    session_id_from,
)
from app.api.pages import home_page
from app.core.config import Settings
from app.core.errors import (
    ExchangeNetworkError,
    ProviderRejectedError,
    ReauthRequired,
    SessionError,
)
from app.middleware.request_context import user_id_var
from app.models.user_identity import UserIdentity
from app.services.login_flow import LoginFlow

logger = logging.getLogger(__name__)

router = APIRouter(tags=["home"])


@router.get("/", response_model=None)
async def home(
    request: Request,
    flow: Annotated[LoginFlow, Depends(get_login_flow)],
) -> HTMLResponse | RedirectResponse:
    """Greeting for signed-in users; everybody else is sent to /login."""
    session_id = session_id_from(request)
    if session_id is None:
        return RedirectResponse("/login", status_code=302)
    try:
        identity = await flow.current_user(session_id)
    except SessionError:
        return RedirectResponse("/login", status_code=302)
    user_id_var.set(str(identity.id))
    return home_page(
        identity.name or identity.subject, identity.email, identity.picture
    )


@router.get("/me")
async def me(user: Annotated[UserIdentity, Depends(require_user)]) -> dict[str, Any]:
    return {
        "id": str(user.id),
        "provider": user.provider,
        "subject": user.subject,
        "email": user.email,
        "name": user.name,
        "picture": user.picture,
    }


@router.get("/me/userinfo", response_model=None)
async def me_userinfo(
    session_id: Annotated[str, Depends(require_session_id)],
    flow: Annotated[LoginFlow, Depends(get_login_flow)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> dict[str, Any] | JSONResponse:
    """Provider profile, fetched with a valid (possibly just refreshed) token."""
    if not flow.exchange.supports_userinfo:
        raise HTTPException(status_code=404, detail="Userinfo not available")
    try:
        return await flow.fetch_userinfo(session_id)
    except SessionError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Not signed in"
        ) from None
    except ReauthRequired:
        # The flow already revoked the session; drop the cookie too
        response = JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": "Re-authentication required"},
        )
        clear_session_cookie(response, settings)
        return response
    except (ExchangeNetworkError, ProviderRejectedError) as exc:
        logger.warning("Userinfo unavailable: %s", type(exc).__name__)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Identity provider unavailable",
        ) from None
