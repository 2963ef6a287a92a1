"""GET /callback: the provider redirects the browser back here.

Success sets the session cookie and sends the browser on to the path it
originally asked for.  Failure renders an error page and sets nothing:

  invalid / expired / replayed state   400
  provider denied or refused the code  400
  provider unreachable or timed out    502
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.api.dependencies import (
    get_login_flow,
    get_settings,
    session_id_from,
    set_session_cookie,
)
from app.api.pages import error_page
from app.core.config import Settings
from app.core.errors import ExchangeNetworkError, InvalidState, ProviderRejectedError
from app.middleware.request_context import user_id_var
from app.services.login_flow import LoginFlow

logger = logging.getLogger(__name__)

router = APIRouter(tags=["login"])


@router.get("/callback", response_model=None)
async def callback(
    request: Request,
    flow: Annotated[LoginFlow, Depends(get_login_flow)],
    settings: Annotated[Settings, Depends(get_settings)],
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
    error_description: str | None = Query(None),
) -> RedirectResponse | HTMLResponse:
    try:
        result = await flow.handle_callback(
            code,
            state,
            error=error,
            error_description=error_description,
            previous_session_id=session_id_from(request),
        )
    except InvalidState:
        return error_page(
            "Your sign-in link has expired or was already used. Please try again.",
            status_code=400,
        )
    except ProviderRejectedError as exc:
        if exc.error_code == "access_denied":
            message = "Sign-in was cancelled."
        else:
            message = "The identity provider did not accept the sign-in."
        return error_page(message, status_code=400)
    except ExchangeNetworkError:
        return error_page(
            "The identity provider could not be reached. Please try again.",
            status_code=502,
        )

    user_id_var.set(result.user_id)
    response = RedirectResponse(result.return_to, status_code=302)
    set_session_cookie(response, result.session_id, settings)
    response.headers["Cache-Control"] = "no-store"
    return response
