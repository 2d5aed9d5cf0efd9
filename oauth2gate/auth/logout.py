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

"""Client logout and the authorization server's post-logout callback."""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING

from oauth2gate.consts import DEFAULT_LOGOUT_REDIRECT
from oauth2gate.types import OAuth2Request, OAuth2Response, redirect, uri_path
from oauth2gate.utils.logger import get_logger

if TYPE_CHECKING:
    from oauth2gate.params import OAuth2Params

logger = get_logger(__name__)


def is_logout(request: OAuth2Request, params: OAuth2Params) -> bool:
    """True if the request targets the client logout URI."""
    return (
        params.logout_uri_client is not None
        and request.path == uri_path(params.logout_uri_client)
    )


def logout_client(request: OAuth2Request, params: OAuth2Params) -> OAuth2Response:
    """Send the user agent to the authorization server's logout URI.

    The session is left alone; the post-logout callback clears it.
    """
    params.require("logout_uri")
    logger.info("Logging out client, redirecting to authorization server")
    return redirect(params.logout_uri)


def is_logout_callback(request: OAuth2Request, params: OAuth2Params) -> bool:
    """True if the request targets the post-logout callback URI."""
    return (
        params.logout_callback_uri is not None
        and request.path == uri_path(params.logout_callback_uri)
    )


def oauth2_logout_callback_handler(
    request: OAuth2Request, params: OAuth2Params
) -> OAuth2Response:
    """Default logout callback: drop the token data and redirect to `/`."""
    return params.store.clear_oauth2_data(request, redirect(DEFAULT_LOGOUT_REDIRECT))


async def handle_logout_callback(
    request: OAuth2Request, params: OAuth2Params
) -> OAuth2Response:
    """Run `params.logout_callback_fn(request, params)`, or the default handler."""
    callback = params.logout_callback_fn or oauth2_logout_callback_handler
    response = callback(request, params)
    if inspect.isawaitable(response):
        response = await response
    logger.info("Post-logout callback handled")
    return response
