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

import urllib.parse

import httpx
import pytest

from oauth2gate.auth.client import AuthorizationServerClient
from oauth2gate.exceptions import (
    ConfigurationError,
    NetworkError,
    ProtocolError,
    StateMismatchError,
)
from oauth2gate.types import AuthRequest
from stub_server import (
    ACCESS_TOKEN_INVALID,
    ACCESS_TOKEN_VALID,
    REDIRECT_URI,
    REFRESH_RESPONSE,
    SERVER_URI,
    TOKEN_RESPONSE,
    USERINFO,
    stub_authorization_server,
)


def query_of(uri: str) -> dict:
    return dict(urllib.parse.parse_qsl(urllib.parse.urlparse(uri).query))


class TestBuildAuthRequest:
    """Authorization URL construction."""

    def test_query_carries_client_and_state(self, make_params, make_client):
        client = make_client(make_params())

        auth_request = client.build_auth_request("abc")

        assert auth_request.uri.startswith(f"{SERVER_URI}/auth?")
        assert query_of(auth_request.uri) == {
            "response_type": "code",
            "client_id": "foo",
            "redirect_uri": REDIRECT_URI,
            "scope": "foo bar",
            "state": "abc",
        }
        assert auth_request.scope == ["foo", "bar"]
        assert auth_request.state == "abc"

    def test_existing_query_is_kept(self, make_params, make_client):
        client = make_client(
            make_params(authorization_uri=f"{SERVER_URI}/auth?prompt=login")
        )

        auth_request = client.build_auth_request("abc")

        assert query_of(auth_request.uri)["prompt"] == "login"
        assert query_of(auth_request.uri)["state"] == "abc"

    def test_state_is_optional(self, make_params, make_client):
        client = make_client(make_params())

        auth_request = client.build_auth_request(None)

        assert "state" not in query_of(auth_request.uri)

    def test_missing_authorization_uri(self, make_params, make_client):
        client = make_client(make_params(authorization_uri=None))

        with pytest.raises(ConfigurationError, match="authorization_uri"):
            client.build_auth_request("abc")


class TestAuthorizationCodeGrant:
    """Exchanging the callback code for a token."""

    @pytest.mark.asyncio
    async def test_exchange_with_matching_state(self, make_params, make_client):
        client = make_client(make_params())
        auth_request = client.build_auth_request("abc")

        data = await client.exchange_code_for_token(
            {"code": "abracadabra", "state": "abc"}, auth_request
        )

        assert data.access_token == "sesame"
        assert data.token_type == "bearer"
        assert data.expires_in == 120
        assert data.refresh_token == "new-foo"
        assert data.params == {
            k: v for k, v in TOKEN_RESPONSE.items() if k != "access_token"
        }

    @pytest.mark.asyncio
    async def test_exchange_without_auth_request_skips_state(
        self, make_params, make_client
    ):
        client = make_client(make_params())

        data = await client.exchange_code_for_token({"code": "abracadabra"})

        assert data.access_token == "sesame"

    @pytest.mark.asyncio
    async def test_form_urlencoded_token_response(self, make_params, make_client):
        client = make_client(
            make_params(access_token_uri=f"{SERVER_URI}/token-auth-code?formurlenc")
        )

        data = await client.exchange_code_for_token({"code": "abracadabra"})

        assert data.access_token == "sesame"
        assert data.expires_in == 120
        assert data.params["token_type"] == "bearer"

    @pytest.mark.asyncio
    async def test_client_credentials_in_basic_header(self, make_params):
        seen = []

        def recording(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return stub_authorization_server(request)

        client = AuthorizationServerClient(
            make_params(authorization_header=True),
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(recording)),
        )

        data = await client.exchange_code_for_token({"code": "abracadabra"})

        assert data.access_token == "sesame"
        assert seen[0].headers["authorization"].startswith("Basic ")
        assert b"client_secret" not in seen[0].content

    @pytest.mark.asyncio
    async def test_client_credentials_in_form_by_default(self, make_params):
        seen = []

        def recording(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return stub_authorization_server(request)

        client = AuthorizationServerClient(
            make_params(),
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(recording)),
        )

        await client.exchange_code_for_token({"code": "abracadabra"})

        form = dict(urllib.parse.parse_qsl(seen[0].content.decode()))
        assert form["client_id"] == "foo"
        assert form["client_secret"] == "bar"
        assert "authorization" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_state_mismatch(self, make_params, make_client):
        client = make_client(make_params())

        with pytest.raises(StateMismatchError) as exc_info:
            await client.exchange_code_for_token(
                {"code": "abracadabra", "state": "evil"},
                AuthRequest(uri="ignored", state="abc"),
            )

        assert exc_info.value.expected == "abc"
        assert exc_info.value.actual == "evil"

    @pytest.mark.asyncio
    async def test_state_missing_from_callback(self, make_params, make_client):
        client = make_client(make_params())

        with pytest.raises(StateMismatchError):
            await client.exchange_code_for_token(
                {"code": "abracadabra"}, AuthRequest(uri="ignored", state="abc")
            )

    @pytest.mark.asyncio
    async def test_error_params_raise_without_calling_server(
        self, make_params, unreachable_http_client
    ):
        client = AuthorizationServerClient(
            make_params(), http_client=unreachable_http_client
        )

        with pytest.raises(ProtocolError) as exc_info:
            await client.exchange_code_for_token(
                {"error": "access_denied", "error_description": "user said no"}
            )

        assert exc_info.value.error == "access_denied"
        assert exc_info.value.error_description == "user said no"

    @pytest.mark.asyncio
    async def test_missing_code(self, make_params, make_client):
        client = make_client(make_params())

        with pytest.raises(ProtocolError) as exc_info:
            await client.exchange_code_for_token({})

        assert exc_info.value.error == "invalid_request"

    @pytest.mark.asyncio
    async def test_rejected_code(self, make_params, make_client):
        client = make_client(make_params())

        with pytest.raises(ProtocolError) as exc_info:
            await client.exchange_code_for_token({"code": "wrong"})

        assert exc_info.value.error == "fail"
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_token_endpoint_error(self, make_params, make_client):
        client = make_client(make_params(access_token_uri=f"{SERVER_URI}/token-error"))

        with pytest.raises(ProtocolError) as exc_info:
            await client.exchange_code_for_token({"code": "abracadabra"})

        assert exc_info.value.error == "unauthorized_client"
        assert exc_info.value.error_description == "not good"


class TestPasswordGrant:
    """Resource owner password credentials."""

    @pytest.mark.asyncio
    async def test_get_access_token_dispatches_on_grant_type(
        self, make_params, make_client
    ):
        client = make_client(
            make_params(
                grant_type="password",
                access_token_uri=f"{SERVER_URI}/token-password",
            )
        )

        data = await client.get_access_token({"username": "foo", "password": "bar"})

        assert data.access_token == "sesame"
        assert data.refresh_token == "new-foo"

    @pytest.mark.asyncio
    async def test_wrong_password(self, make_params, make_client):
        client = make_client(
            make_params(access_token_uri=f"{SERVER_URI}/token-password")
        )

        with pytest.raises(ProtocolError):
            await client.exchange_password_for_token("foo", "wrong")

    @pytest.mark.asyncio
    async def test_authorization_code_is_the_default_grant(
        self, make_params, make_client
    ):
        client = make_client(make_params())

        data = await client.get_access_token({"code": "abracadabra"})

        assert data.access_token == "sesame"


class TestRefresh:
    """Refresh token grant."""

    @pytest.mark.asyncio
    async def test_refresh_success(self, make_params, make_client):
        client = make_client(make_params(access_token_uri=f"{SERVER_URI}/token-refresh"))

        ok, body = await client.refresh_access_token("foo")

        assert ok is True
        assert body == REFRESH_RESPONSE

    @pytest.mark.asyncio
    async def test_refresh_rejected(self, make_params, make_client):
        client = make_client(
            make_params(access_token_uri=f"{SERVER_URI}/token-refresh-always-fails")
        )

        ok, body = await client.refresh_access_token("foo")

        assert ok is False
        assert body == {"error": "fail", "error_description": "Refresh token expired"}

    @pytest.mark.asyncio
    async def test_missing_refresh_token(self, make_params, unreachable_http_client):
        client = AuthorizationServerClient(
            make_params(), http_client=unreachable_http_client
        )

        ok, body = await client.refresh_access_token(None)

        assert ok is False
        assert body == {"error": "missing_refresh_token"}

    @pytest.mark.asyncio
    async def test_unreachable_server_is_not_a_refresh_failure(
        self, make_params, unreachable_http_client
    ):
        client = AuthorizationServerClient(
            make_params(), http_client=unreachable_http_client
        )

        with pytest.raises(NetworkError):
            await client.refresh_access_token("foo")


class TestIntrospection:
    """Token info endpoint."""

    @pytest.mark.asyncio
    async def test_valid_and_invalid_tokens(self, make_params, make_client):
        client = make_client(make_params())

        assert await client.introspect_token(ACCESS_TOKEN_VALID) is True
        assert await client.introspect_token(ACCESS_TOKEN_INVALID) is False

    @pytest.mark.asyncio
    async def test_repeated_introspection_agrees(self, make_params, make_client):
        client = make_client(make_params())

        for token in (ACCESS_TOKEN_VALID, ACCESS_TOKEN_INVALID):
            first = await client.introspect_token(token)
            second = await client.introspect_token(token)

            assert first == second

    @pytest.mark.asyncio
    async def test_explicit_token_info_uri(self, make_params, make_client):
        client = make_client(make_params(token_info_uri=None))

        valid = await client.introspect_token(
            ACCESS_TOKEN_VALID, token_info_uri=f"{SERVER_URI}/tokeninfo"
        )

        assert valid is True

    @pytest.mark.asyncio
    async def test_missing_token_info_uri(self, make_params, make_client):
        client = make_client(make_params(token_info_uri=None))

        with pytest.raises(ConfigurationError):
            await client.introspect_token(ACCESS_TOKEN_VALID)

    @pytest.mark.asyncio
    async def test_server_error_raises(self, make_params, make_client):
        client = make_client(make_params(token_info_uri=f"{SERVER_URI}/unavailable"))

        with pytest.raises(NetworkError) as exc_info:
            await client.introspect_token(ACCESS_TOKEN_VALID)

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_unreachable_server_raises(
        self, make_params, unreachable_http_client
    ):
        client = AuthorizationServerClient(
            make_params(), http_client=unreachable_http_client
        )

        with pytest.raises(NetworkError):
            await client.introspect_token(ACCESS_TOKEN_VALID)


class TestUserinfo:
    """Userinfo merge after the code exchange."""

    @pytest.mark.asyncio
    async def test_userinfo_is_merged(self, make_params, make_client):
        client = make_client(make_params(userinfo_uri=f"{SERVER_URI}/userinfo"))
        data = await client.exchange_code_for_token({"code": "abracadabra"})

        data = await client.fetch_userinfo(data)

        assert data.userinfo == USERINFO
        assert data.access_token == "sesame"

    @pytest.mark.asyncio
    async def test_no_userinfo_uri_is_a_no_op(self, make_params, make_client):
        client = make_client(make_params())
        data = await client.exchange_code_for_token({"code": "abracadabra"})

        assert await client.fetch_userinfo(data) is data

    @pytest.mark.asyncio
    async def test_rejected_token(self, make_params, make_client):
        client = make_client(make_params(userinfo_uri=f"{SERVER_URI}/userinfo"))
        data = await client.exchange_code_for_token({"code": "abracadabra"})

        with pytest.raises(ProtocolError) as exc_info:
            await client.fetch_userinfo(data.model_copy(update={"access_token": "x"}))

        assert exc_info.value.error == "invalid_token"
        assert exc_info.value.status_code == 401


class TestProtectedResourceRequest:
    """Calling resource servers with the access token."""

    @pytest.mark.asyncio
    async def test_bearer_header(self, make_params, make_client):
        client = make_client(make_params())

        response = await client.request(
            "GET", f"{SERVER_URI}/some-resource", {"access_token": "sesame"}
        )

        assert response.status_code == 200
        assert response.text == "that's gold jerry!"

    @pytest.mark.asyncio
    async def test_invalid_token(self, make_params, make_client):
        client = make_client(make_params())

        response = await client.request(
            "GET", f"{SERVER_URI}/some-resource", {"access_token": "nope"}
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_query_param_keeps_existing_params(self, make_params, make_client):
        client = make_client(make_params(access_query_param="access_token"))

        response = await client.request(
            "GET",
            f"{SERVER_URI}/query-echo",
            {"access_token": "sesame"},
            params={"foo": "bar"},
        )

        assert response.status_code == 200
        assert dict(urllib.parse.parse_qsl(response.text)) == {
            "foo": "bar",
            "access_token": "sesame",
        }

    @pytest.mark.asyncio
    async def test_unreachable_resource(self, make_params, unreachable_http_client):
        client = AuthorizationServerClient(
            make_params(), http_client=unreachable_http_client
        )

        with pytest.raises(NetworkError):
            await client.request(
                "GET", f"{SERVER_URI}/some-resource", {"access_token": "sesame"}
            )


class TestClose:
    """Lifecycle of the underlying httpx client."""

    @pytest.mark.asyncio
    async def test_shared_http_client_is_left_open(self, make_params, http_client):
        client = AuthorizationServerClient(make_params(), http_client=http_client)

        await client.close()

        assert not http_client.is_closed

    @pytest.mark.asyncio
    async def test_owned_http_client_is_closed(self, make_params):
        client = AuthorizationServerClient(make_params())

        await client.close()

        assert client._http_client.is_closed
