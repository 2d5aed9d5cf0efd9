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

"""HTTP client for the authorization server.

Covers the authorization request, the authorization code and resource owner
password grants, token refresh, token introspection, the userinfo endpoint and
calls to protected resources with an access token.

Transport failures and 5xx answers raise `NetworkError`; they are never folded
into "invalid token" or "refresh failed".
"""

import base64
import json
import secrets
import urllib.parse
from typing import Any, Mapping, Optional

import httpx

from oauth2gate.consts import DEFAULT_HTTP_TIMEOUT_SECONDS
from oauth2gate.exceptions import (
    ConfigurationError,
    NetworkError,
    ProtocolError,
    StateMismatchError,
)
from oauth2gate.params import OAuth2Params
from oauth2gate.types import AuthRequest, OAuth2Data
from oauth2gate.utils.logger import get_logger

logger = get_logger(__name__)


def _append_query(uri: str, query: Mapping[str, str]) -> str:
    parsed = urllib.parse.urlparse(uri)
    existing = urllib.parse.parse_qsl(parsed.query)
    merged = urllib.parse.urlencode(existing + list(query.items()))
    return urllib.parse.urlunparse(parsed._replace(query=merged))


def _states_match(expected: Optional[str], actual: Optional[str]) -> bool:
    if expected is None or actual is None:
        return expected is actual
    return secrets.compare_digest(expected.encode("utf-8"), actual.encode("utf-8"))


class AuthorizationServerClient:
    """Talks to the OAuth2 authorization server on behalf of the pipeline."""

    def __init__(
        self,
        params: OAuth2Params,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
    ):
        self.params = params
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http_client:
            await self._http_client.aclose()

    def build_auth_request(self, state: Optional[str]) -> AuthRequest:
        """Build the authorization redirect for the authorization code grant."""
        self.params.require("authorization_uri", "client_id")
        query = {
            "response_type": "code",
            "client_id": self.params.client_id,
            "redirect_uri": self.params.redirect_uri,
            "scope": " ".join(self.params.scope),
        }
        if state is not None:
            query["state"] = state
        return AuthRequest(
            uri=_append_query(self.params.authorization_uri, query),
            scope=list(self.params.scope),
            state=state,
        )

    async def exchange_code_for_token(
        self,
        callback_params: Mapping[str, Any],
        auth_request: Optional[AuthRequest] = None,
    ) -> OAuth2Data:
        """Exchange the authorization code from the callback for a token.

        When `auth_request` is given, the `state` echoed by the authorization
        server must equal the one sent in the authorization request.
        """
        error = callback_params.get("error")
        if error:
            raise ProtocolError(error, callback_params.get("error_description"))

        if auth_request is not None and not _states_match(
            auth_request.state, callback_params.get("state")
        ):
            logger.warning("Authorization callback state does not match stored state")
            raise StateMismatchError(auth_request.state, callback_params.get("state"))

        code = callback_params.get("code")
        if not code:
            raise ProtocolError("invalid_request", "Missing authorization code")

        body = await self._post_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.params.redirect_uri,
            }
        )
        return OAuth2Data.from_token_response(body)

    async def exchange_password_for_token(
        self, username: str, password: str
    ) -> OAuth2Data:
        """Resource owner password credentials grant."""
        body = await self._post_token(
            {
                "grant_type": "password",
                "username": username,
                "password": password,
                "scope": " ".join(self.params.scope),
            }
        )
        return OAuth2Data.from_token_response(body)

    async def get_access_token(
        self,
        credentials: Mapping[str, Any],
        auth_request: Optional[AuthRequest] = None,
    ) -> OAuth2Data:
        """Obtain a token with the grant configured in `params.grant_type`."""
        if self.params.grant_type == "password":
            username = credentials.get("username")
            password = credentials.get("password")
            if not username or password is None:
                raise ProtocolError("invalid_request", "Missing username or password")
            return await self.exchange_password_for_token(username, password)
        return await self.exchange_code_for_token(credentials, auth_request)

    async def refresh_access_token(
        self, refresh_token: Optional[str]
    ) -> tuple[bool, dict[str, Any]]:
        """Refresh an access token.

        Returns `(True, token_response)` on success and `(False, error)` when
        the authorization server rejects the refresh token.
        """
        if not refresh_token:
            return False, {"error": "missing_refresh_token"}

        try:
            body = await self._post_token(
                {"grant_type": "refresh_token", "refresh_token": refresh_token}
            )
        except ProtocolError as e:
            logger.warning(f"Token refresh rejected: {e}")
            return False, {
                "error": e.error,
                "error_description": e.error_description,
            }

        logger.info("Successfully refreshed access token")
        return True, body

    async def introspect_token(
        self, access_token: str, token_info_uri: Optional[str] = None
    ) -> bool:
        """Ask the token info endpoint whether `access_token` is still valid."""
        uri = token_info_uri or self.params.token_info_uri
        if not uri:
            raise ConfigurationError("Missing required OAuth2 configuration: token_info_uri")

        response = await self._send(
            "GET", uri, params={"access_token": access_token}
        )
        valid = response.is_success
        logger.debug(f"Token introspection answered {response.status_code}")
        return valid

    async def fetch_userinfo(self, data: OAuth2Data) -> OAuth2Data:
        """Merge the userinfo endpoint's answer into `data`."""
        if not self.params.userinfo_uri:
            return data

        response = await self._send(
            "GET",
            self.params.userinfo_uri,
            headers={
                "Authorization": f"Bearer {data.access_token}",
                "Accept": "application/json",
            },
        )
        body = self._parse_body(response)
        if response.is_error:
            raise ProtocolError(
                body.get("error", "userinfo_failed"),
                body.get("error_description"),
                status_code=response.status_code,
            )
        return data.model_copy(update={"userinfo": body})

    async def request(
        self, method: str, url: str, oauth2: Mapping[str, Any], **kwargs: Any
    ) -> httpx.Response:
        """Call a protected resource with the access token from `oauth2`.

        The token travels as a Bearer header, or as the query parameter named
        by `params.access_query_param`. Existing query parameters are kept.
        """
        token = oauth2["access_token"]
        if self.params.access_query_param:
            query = dict(kwargs.pop("params", None) or {})
            query[self.params.access_query_param] = token
            kwargs["params"] = query
        else:
            headers = dict(kwargs.pop("headers", None) or {})
            headers["Authorization"] = f"Bearer {token}"
            kwargs["headers"] = headers

        try:
            return await self._http_client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise NetworkError(f"Request to {url} failed: {e}") from e

    async def _post_token(self, form: dict[str, str]) -> dict[str, Any]:
        self.params.require("access_token_uri")
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }

        if self.params.authorization_header and self.params.client_secret:
            credentials = f"{self.params.client_id}:{self.params.client_secret}"
            encoded_credentials = base64.b64encode(credentials.encode()).decode()
            headers["Authorization"] = f"Basic {encoded_credentials}"
        else:
            if self.params.client_id:
                form["client_id"] = self.params.client_id
            if self.params.client_secret:
                form["client_secret"] = self.params.client_secret

        response = await self._send(
            "POST", self.params.access_token_uri, data=form, headers=headers
        )
        body = self._parse_body(response)

        if response.is_error or "error" in body:
            logger.warning(
                f"Token endpoint returned {response.status_code}: {body.get('error')}"
            )
            raise ProtocolError(
                body.get("error", f"http_{response.status_code}"),
                body.get("error_description"),
                status_code=response.status_code,
            )
        if "access_token" not in body:
            raise ProtocolError(
                "invalid_token_response", "Token response missing access_token"
            )
        return body

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._http_client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"Authorization server unreachable: {e}")
            raise NetworkError(f"{method} {url} failed: {e}") from e

        if response.status_code >= 500:
            raise NetworkError(
                f"{method} {url} answered HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _parse_body(response: httpx.Response) -> dict[str, Any]:
        """Decode a JSON or form-urlencoded response body."""
        text = response.text
        if not text:
            return {}
        try:
            body = json.loads(text)
        except ValueError:
            # Some providers (e.g. Facebook) answer with form encoding.
            return dict(urllib.parse.parse_qsl(text))
        return body if isinstance(body, dict) else {}
