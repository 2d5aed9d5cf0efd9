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

"""Framework-neutral request, response and token types.

The pipeline never mutates these objects; every stage returns a new value
built with `dataclasses.replace`.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional
from urllib.parse import parse_qsl, urlparse

from pydantic import BaseModel, Field


def uri_path(uri: Optional[str]) -> Optional[str]:
    """Return the path component of an absolute or relative URI."""
    if uri is None:
        return None
    return urlparse(uri).path


@dataclass(frozen=True)
class OAuth2Request:
    """Inbound request as seen by the pipeline."""

    uri: str
    scheme: str = "http"
    server_name: str = "localhost"
    server_port: int = 80
    method: str = "GET"
    query_string: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    params: Mapping[str, Any] = field(default_factory=dict)
    session: Mapping[str, Any] = field(default_factory=dict)
    oauth2: Optional[dict[str, Any]] = None
    raw: Any = None

    def __post_init__(self) -> None:
        # Header names are compared case-insensitively.
        object.__setattr__(
            self, "headers", {k.lower(): v for k, v in self.headers.items()}
        )
        if not self.params and self.query_string:
            object.__setattr__(self, "params", dict(parse_qsl(self.query_string)))

    @property
    def path(self) -> str:
        return uri_path(self.uri) or ""

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    def with_oauth2(self, oauth2: Optional[dict[str, Any]]) -> "OAuth2Request":
        return dataclasses.replace(self, oauth2=oauth2)


@dataclass(frozen=True)
class OAuth2Response:
    """Outbound response plus the session the host framework must persist.

    `session` is `None` when the response leaves the session untouched;
    otherwise it is the complete session to store. `oauth2` carries token
    data refreshed while handling the request.
    """

    status: int = 200
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = ""
    session: Optional[dict[str, Any]] = None
    oauth2: Optional[dict[str, Any]] = None
    raw: Any = None

    @property
    def location(self) -> Optional[str]:
        return self.headers.get("Location")

    def with_session(self, session: dict[str, Any]) -> "OAuth2Response":
        return dataclasses.replace(self, session=session)


def redirect(location: str, status: int = 302) -> OAuth2Response:
    return OAuth2Response(status=status, headers={"Location": location}, body="")


class AuthRequest(BaseModel):
    """Authorization request sent to the authorization server."""

    uri: str
    scope: list[str] = Field(default_factory=list)
    state: Optional[str] = None


class OAuth2Data(BaseModel):
    """Token data obtained from the token endpoint.

    Every field returned by the provider except `access_token` is kept in
    `params`; `userinfo` is filled in after the authorization code exchange.
    """

    access_token: str
    token_type: Optional[str] = None
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = None
    params: dict[str, Any] = Field(default_factory=dict)
    userinfo: Optional[dict[str, Any]] = None

    @classmethod
    def from_token_response(cls, body: Mapping[str, Any]) -> "OAuth2Data":
        expires_in = body.get("expires_in")
        try:
            expires_in = int(expires_in) if expires_in is not None else None
        except (TypeError, ValueError):
            expires_in = None
        return cls(
            access_token=body["access_token"],
            token_type=body.get("token_type"),
            expires_in=expires_in,
            refresh_token=body.get("refresh_token"),
            params={k: v for k, v in body.items() if k != "access_token"},
        )

    def to_session(self) -> dict[str, Any]:
        """Return the JSON-serialisable dict stored in the session."""
        return self.model_dump(exclude_none=True)

