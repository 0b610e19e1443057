"""OAuth callback routes."""

import logging
from urllib.parse import urlencode

from dishka.integrations.fastapi import DishkaRoute
from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from fedauth.config import CookieConfig
from fedauth.domain.auth.command.oauth_callback import (
    HandleOAuthCallback,
    OAuthCallbackHandler,
    RedirectResult,
)
from fedauth.domain.auth.command.set_client_cookie import (
    SetClientCookie,
    SetClientCookieHandler,
)
from fedauth.domain.auth.service.client import (
    CSRF_TOKEN,
    FINAL_REDIRECT_URL,
    SET_COOKIE_CLIENT_ID,
    SET_COOKIE_SUBDOMAIN,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["OAuth"], route_class=DishkaRoute)


def to_response(result: RedirectResult) -> RedirectResponse:
    """Render a handler's redirect, setting the cookies it asked for."""
    response = RedirectResponse(url=result.redirect_url, status_code=result.status_code)
    for cookie in result.cookies:
        response.set_cookie(
            key=cookie.name,
            value=cookie.value,
            domain=cookie.domain,
            httponly=cookie.http_only,
            secure=cookie.secure,
            samesite="lax",
            path="/",
        )
    return response


@router.get("/oauth_callback", name="oauth_callback")
async def oauth_callback(request: Request) -> RedirectResponse:
    """Handle the provider callback, or the development cookie hop it redirects through."""
    container = request.state.dishka_container
    params = request.query_params

    if SET_COOKIE_CLIENT_ID in params:
        cookies = await container.get(CookieConfig)
        cookie_handler = await container.get(SetClientCookieHandler)
        result = await cookie_handler.run(
            SetClientCookie(
                client_id=params[SET_COOKIE_CLIENT_ID],
                subdomain=params.get(SET_COOKIE_SUBDOMAIN),
                csrf_token=params.get(CSRF_TOKEN),
                final_redirect_url=params.get(FINAL_REDIRECT_URL, ""),
                csrf_cookie=request.cookies.get(cookies.csrf),
            )
        )
        return to_response(result)

    handler = await container.get(OAuthCallbackHandler)
    result = await handler.run(HandleOAuthCallback.model_validate(dict(params)))
    return to_response(result)


@router.post("/oauth_callback")
async def oauth_callback_form_post(request: Request) -> RedirectResponse:
    """Providers using ``response_mode=form_post`` POST the callback.

    The form is folded into the query string and the browser is sent to the
    GET endpoint, so the callback runs with the client's cookies attached.
    """
    form = await request.form()
    params = dict(request.query_params)
    params.update({key: str(value) for key, value in form.items()})
    url = f"{request.url_for('oauth_callback')}?{urlencode(params)}"
    return RedirectResponse(url=url, status_code=303)
