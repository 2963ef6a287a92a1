"""GET /login: start a sign-in at the identity provider.

Creates a pending login (state token, PKCE verifier, return path) and
302s the browser to the provider's authorize URL.  A browser that is
already signed in goes straight to the home page instead.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse

from app.api.dependencies import get_login_flow, session_id_from
from app.core.errors import SessionError
from app.services.login_flow import LoginFlow

logger = logging.getLogger(__name__)

router = APIRouter(tags=["login"])


@router.get("/login")
async def login(
    request: Request,
    flow: Annotated[LoginFlow, Depends(get_login_flow)],
    next_path: str | None = Query(None, alias="next"),
) -> RedirectResponse:
    session_id = session_id_from(request)
    if session_id is not None:
        try:
            await flow.sessions.validate(session_id)
        except SessionError:
            pass
        else:
            return RedirectResponse("/", status_code=302)

    redirect = await flow.begin_login(return_to=next_path)
    response = RedirectResponse(redirect.url, status_code=302)
    # The Location header carries a live state token
    response.headers["Cache-Control"] = "no-store"
    return response
