"""POST /logout: end the local session and clear the cookie.

Idempotent: a missing, unknown or expired session still gets a 302 to
"/" and a cleared cookie.  POST only, so a cross-site <img src=/logout>
cannot sign anyone out.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from app.api.dependencies import (
    clear_session_cookie,
    get_login_flow,
    get_settings,
    session_id_from,
)
from app.core.config import Settings
from app.services.login_flow import LoginFlow

router = APIRouter(tags=["login"])


@router.post("/logout")
async def logout(
    request: Request,
    flow: Annotated[LoginFlow, Depends(get_login_flow)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> RedirectResponse:
    await flow.logout(session_id_from(request))
    response = RedirectResponse("/", status_code=302)
    clear_session_cookie(response, settings)
    return response
