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

"""Composes the OAuth2 stages in front of a downstream handler.

Stages run outermost first:

    logout -> logout-callback -> auth-callback -> inject-oauth2-data
        -> validate-and-refresh -> handler

The first stage whose trigger matches owns the request; it may hand the
request on to the stages below it through `call_next`. Excluded URIs always
reach the handler untouched.

Example:
    async def handler(request: OAuth2Request) -> OAuth2Response:
        return OAuth2Response(body=f"hello {request.oauth2['userinfo']['name']}")

    app = wrap_oauth2(handler, params)
    response = await app(OAuth2Request(uri="/"))
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional

from oauth2gate.auth.callback import handle_auth_callback, is_callback
from oauth2gate.auth.client import AuthorizationServerClient
from oauth2gate.auth.exclusion import is_excluded
from oauth2gate.auth.logout import (
    handle_logout_callback,
    is_logout,
    is_logout_callback,
    logout_client,
)
from oauth2gate.auth.redirect import redirect_to_authorization_server
from oauth2gate.auth.validation import Handler, validate_and_refresh
from oauth2gate.params import OAuth2Params
from oauth2gate.types import OAuth2Request, OAuth2Response
from oauth2gate.utils.logger import get_logger

logger = get_logger(__name__)

StageAction = Callable[
    [OAuth2Request, OAuth2Params, AuthorizationServerClient, Handler],
    Awaitable[Optional[OAuth2Response]],
]


@dataclass(frozen=True)
class Stage:
    """A named pipeline stage: a trigger predicate and the action it runs."""

    name: str
    predicate: Callable[[OAuth2Request, OAuth2Params], bool]
    action: StageAction

    def matches(self, request: OAuth2Request, params: OAuth2Params) -> bool:
        if is_excluded(request.uri, params.exclude):
            return False
        return self.predicate(request, params)


async def _logout(request, params, client, call_next):
    return logout_client(request, params)


async def _logout_callback(request, params, client, call_next):
    return await handle_logout_callback(request, params)


async def _auth_callback(request, params, client, call_next):
    return await handle_auth_callback(request, params, client)


def _has_stored_oauth2_data(request: OAuth2Request, params: OAuth2Params) -> bool:
    return params.store.get_oauth2_data(request) is not None


async def inject_oauth2_data(
    request: OAuth2Request,
    params: OAuth2Params,
    client: AuthorizationServerClient,
    call_next: Handler,
) -> Optional[OAuth2Response]:
    """Expose stored token data as `request.oauth2` and persist it on the way out."""
    oauth2_data = params.store.get_oauth2_data(request)
    response = await call_next(request.with_oauth2(oauth2_data))
    if response is None:
        return None
    return params.store.put_oauth2_data(request, response, oauth2_data)


def _should_validate(request: OAuth2Request, params: OAuth2Params) -> bool:
    return request.oauth2 is not None and params.token_info_uri is not None


def default_stages() -> list[Stage]:
    return [
        Stage("logout", is_logout, _logout),
        Stage("logout-callback", is_logout_callback, _logout_callback),
        Stage("auth-callback", is_callback, _auth_callback),
        Stage("inject-oauth2-data", _has_stored_oauth2_data, inject_oauth2_data),
        Stage("validate-and-refresh", _should_validate, validate_and_refresh),
    ]


class OAuth2Pipeline:
    """Callable wrapping `handler` with the OAuth2 stages."""

    def __init__(
        self,
        handler: Handler,
        params: OAuth2Params,
        client: Optional[AuthorizationServerClient] = None,
        stages: Optional[Iterable[Stage]] = None,
    ):
        params.require_pipeline_config()
        self.handler = handler
        self.params = params
        self.client = client or AuthorizationServerClient(params)
        self.stages: tuple[Stage, ...] = tuple(
            stages if stages is not None else default_stages()
        )

    async def __call__(self, request: OAuth2Request) -> Optional[OAuth2Response]:
        if is_excluded(request.uri, self.params.exclude):
            logger.debug(f"{request.uri} is excluded from OAuth2 processing")
            return await self.handler(request)
        return await self._dispatch(0, request)

    async def close(self) -> None:
        await self.client.close()

    async def _dispatch(
        self, start: int, request: OAuth2Request
    ) -> Optional[OAuth2Response]:
        for position in range(start, len(self.stages)):
            stage = self.stages[position]
            if not stage.matches(request, self.params):
                continue

            logger.debug(f"Stage `{stage.name}` handles {request.uri}")

            async def call_next(
                next_request: OAuth2Request, _after: int = position + 1
            ) -> Optional[OAuth2Response]:
                return await self._dispatch(_after, next_request)

            return await stage.action(request, self.params, self.client, call_next)

        return await self.handler(request)


def wrap_oauth2(
    handler: Handler,
    params: OAuth2Params,
    client: Optional[AuthorizationServerClient] = None,
) -> OAuth2Pipeline:
    """Wrap `handler` with logout, callback, token injection and validation."""
    return OAuth2Pipeline(handler, params, client)


def wrap_redirect_unauthenticated(
    handler: Handler,
    params: OAuth2Params,
    client: Optional[AuthorizationServerClient] = None,
) -> Handler:
    """Redirect requests without token data to the authorization server.

    Only meaningful for user-initiated navigation, not XHR. Place it inside
    `wrap_oauth2`, which is what populates `request.oauth2`.
    """
    params.require_pipeline_config()
    client = client or AuthorizationServerClient(params)

    async def redirect_unauthenticated(
        request: OAuth2Request,
    ) -> Optional[OAuth2Response]:
        if not is_excluded(request.uri, params.exclude) and request.oauth2 is None:
            return redirect_to_authorization_server(request, params, client)
        return await handler(request)

    return redirect_unauthenticated
