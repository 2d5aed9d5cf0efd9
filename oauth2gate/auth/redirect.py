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

"""Redirects the user agent to the authorization server."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

from oauth2gate.consts import DEFAULT_STATE_LENGTH, STATE_ALPHABET
from oauth2gate.types import OAuth2Request, OAuth2Response, redirect
from oauth2gate.utils.logger import get_logger

if TYPE_CHECKING:
    from oauth2gate.auth.client import AuthorizationServerClient
    from oauth2gate.params import OAuth2Params

logger = get_logger(__name__)


def generate_state(length: int = DEFAULT_STATE_LENGTH) -> str:
    """Random mixed case alphanumeric string used as CSRF state."""
    return "".join(secrets.choice(STATE_ALPHABET) for _ in range(length))


def request_target(request: OAuth2Request) -> str:
    """The URI (and query string) the user was trying to reach."""
    if request.query_string:
        return f"{request.uri}?{request.query_string}"
    return request.uri


def redirect_to_authorization_server(
    request: OAuth2Request,
    params: OAuth2Params,
    client: AuthorizationServerClient,
) -> OAuth2Response:
    """Return a 302 to the authorization server.

    The CSRF state already held in the session is reused; otherwise a fresh
    one is generated. State and target are written to the response session,
    which starts from the request session so sibling slots are kept.
    """
    state = params.store.get_state(request) or params.state_generator()
    auth_request = client.build_auth_request(state)
    target = request_target(request)

    response = redirect(auth_request.uri).with_session(dict(request.session))
    response = params.store.put_state(response, state)
    response = params.store.put_target(response, target)

    logger.info(f"Redirecting {target} to the authorization server")
    return response
