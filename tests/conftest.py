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

"""Shared fixtures: a stub authorization server behind `httpx.MockTransport`."""

import httpx
import pytest

from oauth2gate.auth.client import AuthorizationServerClient
from oauth2gate.params import OAuth2Params
from stub_server import (
    CLIENT_ID,
    CLIENT_SECRET,
    REDIRECT_URI,
    SERVER_URI,
    stub_authorization_server,
)


@pytest.fixture
def http_client():
    """An httpx client whose requests are answered by the stub server."""
    return httpx.AsyncClient(transport=httpx.MockTransport(stub_authorization_server))


@pytest.fixture
def unreachable_http_client():
    """An httpx client whose every request fails to connect."""

    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return httpx.AsyncClient(transport=httpx.MockTransport(refuse))


@pytest.fixture
def make_params():
    """Factory for OAuth2Params pointing at the stub server."""

    def factory(**overrides) -> OAuth2Params:
        values = {
            "client_id": CLIENT_ID,
            "client_secret": CLIENT_SECRET,
            "scope": ["foo", "bar"],
            "authorization_uri": f"{SERVER_URI}/auth",
            "access_token_uri": f"{SERVER_URI}/token-auth-code",
            "token_info_uri": f"{SERVER_URI}/tokeninfo",
            "redirect_uri": REDIRECT_URI,
        }
        values.update(overrides)
        return OAuth2Params(**values)

    return factory


@pytest.fixture
def make_client(http_client):
    """Factory for AuthorizationServerClient bound to the stub server."""

    def factory(params: OAuth2Params) -> AuthorizationServerClient:
        return AuthorizationServerClient(params, http_client=http_client)

    return factory
