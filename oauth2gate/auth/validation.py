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

"""Validates the current access token and refreshes it when it went stale.

Every request carrying token data is introspected; there is no local expiry
cache, so revocations take effect on the next request.
"""

from __future__ import annotations

import dataclasses
import json
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping, Optional

from oauth2gate.auth.redirect import redirect_to_authorization_server
from oauth2gate.consts import REFRESH_FAILED_BODY, REFRESH_FAILED_CONTENT_TYPE
from oauth2gate.exceptions import RefreshFailure
from oauth2gate.types import OAuth2Request, OAuth2Response
from oauth2gate.utils.logger import get_logger

if TYPE_CHECKING:
    from oauth2gate.auth.client import AuthorizationServerClient
    from oauth2gate.params import OAuth2Params

logger = get_logger(__name__)

Handler = Callable[[OAuth2Request], Awaitable[Optional[OAuth2Response]]]


def merge_refreshed_token(
    oauth2_data: Mapping[str, Any], token_response: Mapping[str, Any]
) -> dict[str, Any]:
    """Fold a refresh token response into the existing token data.

    `access_token` and `refresh_token` replace the stored ones; every returned
    field except `access_token` is kept under `params`.
    """
    refreshed = dict(oauth2_data)
    refreshed["access_token"] = token_response["access_token"]
    if token_response.get("refresh_token"):
        refreshed["refresh_token"] = token_response["refresh_token"]
    refreshed["params"] = {
        k: v for k, v in token_response.items() if k != "access_token"
    }
    return refreshed


def accepts_html(request: OAuth2Request) -> bool:
    return "text/html" in (request.header("accept") or "")


def refresh_failed_response() -> OAuth2Response:
    return OAuth2Response(
        status=400,
        headers={"Content-Type": REFRESH_FAILED_CONTENT_TYPE},
        body=json.dumps(REFRESH_FAILED_BODY, separators=(",", ":")),
    )


async def refresh(
    oauth2_data: Mapping[str, Any], client: AuthorizationServerClient
) -> dict[str, Any]:
    """Refresh `oauth2_data`, raising `RefreshFailure` when the server refuses."""
    ok, result = await client.refresh_access_token(oauth2_data.get("refresh_token"))
    if not ok:
        raise RefreshFailure(result.get("error"))
    return merge_refreshed_token(oauth2_data, result)


async def validate_and_refresh(
    request: OAuth2Request,
    params: OAuth2Params,
    client: AuthorizationServerClient,
    call_next: Handler,
) -> Optional[OAuth2Response]:
    """Pass valid tokens through, refresh stale ones, or send the user back to login."""
    oauth2_data = request.oauth2
    if oauth2_data is None:
        return await call_next(request)

    access_token = oauth2_data.get("access_token")
    if access_token and await client.introspect_token(access_token):
        return await call_next(request)

    logger.debug("Access token rejected by token info endpoint, refreshing")
    try:
        refreshed = await refresh(oauth2_data, client)
    except RefreshFailure as e:
        logger.info(f"Refresh failed ({e.error}) for {request.uri}")
        if accepts_html(request):
            return redirect_to_authorization_server(request, params, client)
        return refresh_failed_response()

    response = await call_next(request.with_oauth2(refreshed))
    if response is None:
        return None
    return dataclasses.replace(response, oauth2=refreshed)
