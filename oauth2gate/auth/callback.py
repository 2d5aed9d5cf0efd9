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

"""Completes the authorization code grant on the redirect URI."""

from __future__ import annotations

from typing import TYPE_CHECKING

from oauth2gate.consts import DEFAULT_TARGET
from oauth2gate.types import OAuth2Request, OAuth2Response, redirect
from oauth2gate.utils.logger import get_logger

if TYPE_CHECKING:
    from oauth2gate.auth.client import AuthorizationServerClient
    from oauth2gate.params import OAuth2Params

logger = get_logger(__name__)


def is_callback(request: OAuth2Request, params: OAuth2Params) -> bool:
    """True if the request path is the path of `redirect_uri`.

    Scheme, host and port are ignored so the check works behind proxies.
    """
    return request.path == params.redirect_path


async def handle_auth_callback(
    request: OAuth2Request,
    params: OAuth2Params,
    client: AuthorizationServerClient,
) -> OAuth2Response:
    """Run the configured grant, merge userinfo and redirect to the stored target.

    Raises:
        ProtocolError: the authorization server sent `error` instead of a code.
        StateMismatchError: the returned `state` differs from the stored one.
        NetworkError: the authorization server could not be reached.
    """
    auth_request = client.build_auth_request(params.store.get_state(request))
    oauth2_data = await client.get_access_token(request.params, auth_request)
    oauth2_data = await client.fetch_userinfo(oauth2_data)

    target = params.store.get_target(request) or DEFAULT_TARGET
    logger.info(f"Access token obtained, redirecting to {target}")

    return params.store.put_oauth2_data(
        request, redirect(target), oauth2_data.to_session()
    )
