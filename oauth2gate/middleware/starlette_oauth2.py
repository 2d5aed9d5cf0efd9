# Copyright (c) 2025 Beijing Volcano Engine Technology Co., Ltd. and/or its affiliates.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""OAuth2 interceptor middleware for Starlette/FastAPI.

Quick start:

    from fastapi import FastAPI, Request
    from oauth2gate import OAuth2Params, setup_oauth2
    from oauth2gate.middleware.starlette_oauth2 import get_oauth2

    app = FastAPI()

    setup_oauth2(
        app,
        OAuth2Params(
            client_id="your-client-id",
            client_secret="your-client-secret",
            scope=["openid", "profile"],
            authorization_uri="https://provider.com/oauth2/authorize",
            access_token_uri="https://provider.com/oauth2/token",
            token_info_uri="https://provider.com/oauth2/tokeninfo",
            redirect_uri="https://myapp.com/oauth2/callback",
        ),
        session_secret="change-me",
    )

    @app.get("/me")
    async def me(request: Request):
        return get_oauth2(request) or {}

The session lives in Starlette's `SessionMiddleware`, which `setup_oauth2`
installs outside the OAuth2 middleware.
"""

from typing import Any, Awaitable, Callable, NamedTuple, Optional

from starlette.applications import Starlette
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.sessions import SessionMiddleware
from starlette.requests import Request
from starlette.responses import Response

from oauth2gate.auth.client import AuthorizationServerClient
from oauth2gate.exceptions import ConfigurationError
from oauth2gate.params import OAuth2Params
from oauth2gate.pipeline import OAuth2Pipeline, wrap_redirect_unauthenticated
from oauth2gate.types import OAuth2Request, OAuth2Response
from oauth2gate.utils.logger import get_logger

logger = get_logger(__name__)

OAUTH2_SCOPE_KEY = "oauth2"

CallNext = Callable[[Request], Awaitable[Response]]


class _Exchange(NamedTuple):
    request: Request
    call_next: CallNext


def get_oauth2(request: Request) -> Optional[dict[str, Any]]:
    """Return the token data the middleware attached to `request`, if any."""
    return request.scope.get(OAUTH2_SCOPE_KEY)


def to_oauth2_request(request: Request, call_next: CallNext) -> OAuth2Request:
    """Snapshot a Starlette request for the pipeline."""
    url = request.url
    return OAuth2Request(
        uri=url.path,
        scheme=url.scheme,
        server_name=url.hostname or "",
        server_port=url.port or (443 if url.scheme == "https" else 80),
        method=request.method,
        query_string=url.query or None,
        headers=dict(request.headers),
        params=dict(request.query_params),
        session=dict(request.session),
        raw=_Exchange(request, call_next),
    )


def to_starlette_response(response: OAuth2Response) -> Response:
    if isinstance(response.raw, Response):
        return response.raw
    return Response(
        content=response.body,
        status_code=response.status,
        headers=dict(response.headers),
    )


async def call_downstream(oauth2_request: OAuth2Request) -> OAuth2Response:
    """Hand the request to the wrapped ASGI app with token data attached.

    Session writes made by the endpoint come back as the response session, so
    the stages above merge token data on top of them instead of replaying the
    snapshot taken before the endpoint ran.
    """
    request, call_next = oauth2_request.raw
    request.scope[OAUTH2_SCOPE_KEY] = oauth2_request.oauth2
    request.state.oauth2 = oauth2_request.oauth2

    response = await call_next(request)

    session = dict(request.session)
    return OAuth2Response(
        status=response.status_code,
        headers=dict(response.headers),
        session=session if session != dict(oauth2_request.session) else None,
        raw=response,
    )


class OAuth2Middleware(BaseHTTPMiddleware):
    """Runs every request through the OAuth2 pipeline.

    Requires `SessionMiddleware` to be installed outside this middleware.
    Session writes made by the pipeline replace the content of
    `request.session`, which `SessionMiddleware` persists.
    """

    def __init__(
        self,
        app,
        params: OAuth2Params,
        client: Optional[AuthorizationServerClient] = None,
        redirect_unauthenticated: bool = False,
    ):
        super().__init__(app)
        self.params = params
        self.client = client or AuthorizationServerClient(params)

        downstream = call_downstream
        if redirect_unauthenticated:
            downstream = wrap_redirect_unauthenticated(downstream, params, self.client)
        self.pipeline = OAuth2Pipeline(downstream, params, self.client)

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        if "session" not in request.scope:
            raise ConfigurationError(
                "OAuth2Middleware requires SessionMiddleware to be installed before it"
            )

        response = await self.pipeline(to_oauth2_request(request, call_next))

        if response.session is not None:
            request.session.clear()
            request.session.update(response.session)

        return to_starlette_response(response)


def setup_oauth2(
    app: Starlette,
    params: OAuth2Params,
    *,
    session_secret: str,
    client: Optional[AuthorizationServerClient] = None,
    redirect_unauthenticated: bool = False,
    **session_options: Any,
) -> AuthorizationServerClient:
    """Install the OAuth2 middleware, the session middleware and a shutdown hook.

    Works with both Starlette and FastAPI applications.

    Args:
        app: The Starlette or FastAPI application instance.
        params: OAuth2 configuration.
        session_secret: Secret used to sign the session cookie.
        client: Custom authorization server client (defaults to one built from `params`).
        redirect_unauthenticated: Send requests without token data to the login page.
        **session_options: Extra `SessionMiddleware` options (e.g. `https_only=True`).

    Returns:
        The AuthorizationServerClient, also available at app.state.oauth2_client.
    """
    if not session_secret:
        raise ConfigurationError("session_secret must not be empty")
    params.require_pipeline_config()

    client = client or AuthorizationServerClient(params)

    app.add_middleware(
        OAuth2Middleware,
        params=params,
        client=client,
        redirect_unauthenticated=redirect_unauthenticated,
    )
    # Added last so it wraps the OAuth2 middleware.
    app.add_middleware(SessionMiddleware, secret_key=session_secret, **session_options)

    if hasattr(app, "add_event_handler"):
        app.add_event_handler("shutdown", client.close)
    if hasattr(app, "state"):
        app.state.oauth2_client = client

    logger.info(f"OAuth2 middleware installed, callback path {params.redirect_path}")
    return client
