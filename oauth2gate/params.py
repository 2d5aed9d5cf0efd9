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

"""Immutable configuration of the OAuth2 interceptor pipeline."""

from typing import Any, Awaitable, Callable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from oauth2gate.auth.exclusion import Exclusion, build_exclusion
from oauth2gate.auth.redirect import generate_state
from oauth2gate.auth.session_store import InSessionStore, SessionStore
from oauth2gate.exceptions import ConfigurationError
from oauth2gate.types import OAuth2Request, OAuth2Response, uri_path

LogoutCallback = Callable[
    [OAuth2Request, "OAuth2Params"],
    Union[OAuth2Response, Awaitable[OAuth2Response]],
]
"""Custom post-logout handler, called as `fn(request, params)`.

It receives the pipeline configuration as well as the request so it can reach
`params.store`, e.g. `params.store.clear_oauth2_data(request, response)`. It
may return the response directly or as an awaitable.
"""


class OAuth2Params(BaseModel):
    """OAuth2 client configuration shared by every pipeline stage.

    Example:
        params = OAuth2Params(
            client_id="my-app",
            client_secret="secret",
            scope=["openid", "profile"],
            authorization_uri="https://idp.example.com/oauth2/authorize",
            access_token_uri="https://idp.example.com/oauth2/token",
            token_info_uri="https://idp.example.com/oauth2/tokeninfo",
            redirect_uri="https://myapp.example.com/oauth2/callback",
            logout_uri="https://idp.example.com/logout",
            logout_uri_client="/logout",
            logout_callback_uri="/oauth2/post-logout",
            exclude={"/health", "/metrics"},
        )
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    # Client credentials
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    scope: tuple[str, ...] = ()
    grant_type: Literal["authorization_code", "password"] = "authorization_code"
    authorization_header: bool = False
    """Send client credentials with HTTP Basic instead of form fields."""

    # Authorization server endpoints
    authorization_uri: Optional[str] = None
    access_token_uri: Optional[str] = None
    token_info_uri: Optional[str] = None
    userinfo_uri: Optional[str] = None
    redirect_uri: str

    # Token presentation to resource servers, `None` means Bearer header.
    access_query_param: Optional[str] = None

    # Routing
    exclude: Any = Field(default=None, validate_default=True)
    logout_uri: Optional[str] = None
    logout_uri_client: Optional[str] = None
    logout_callback_uri: Optional[str] = None
    logout_callback_fn: Optional[LogoutCallback] = None

    # Pluggable session accessors and CSRF randomness
    store: Any = Field(default_factory=InSessionStore)
    state_generator: Callable[[], str] = generate_state

    @field_validator("scope", mode="before")
    @classmethod
    def _split_scope(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            return tuple(value.split())
        return value

    @field_validator("exclude", mode="before")
    @classmethod
    def _build_exclusion(cls, value: Any) -> Exclusion:
        return build_exclusion(value)

    @field_validator("store")
    @classmethod
    def _check_store(cls, value: Any) -> Any:
        if not isinstance(value, SessionStore):
            raise ConfigurationError(
                f"store must implement the SessionStore protocol, got {type(value).__name__}"
            )
        return value

    @model_validator(mode="after")
    def _check_routes(self) -> "OAuth2Params":
        callback_path = self.redirect_path
        for name in ("logout_uri_client", "logout_callback_uri"):
            other = getattr(self, name)
            if other is not None and uri_path(other) == callback_path:
                raise ConfigurationError(
                    f"redirect_uri path {callback_path!r} collides with {name}"
                )
        if (
            self.logout_uri_client is not None
            and self.logout_uri_client == self.logout_callback_uri
        ):
            raise ConfigurationError(
                "logout_uri_client and logout_callback_uri must differ"
            )
        if self.logout_uri_client is not None and not self.logout_uri:
            raise ConfigurationError(
                "logout_uri_client is set but logout_uri is missing"
            )
        return self

    @property
    def redirect_path(self) -> str:
        return uri_path(self.redirect_uri) or "/"

    def require(self, *names: str) -> None:
        """Raise `ConfigurationError` if any of the named options is unset."""
        missing = [name for name in names if not getattr(self, name)]
        if missing:
            raise ConfigurationError(
                f"Missing required OAuth2 configuration: {', '.join(missing)}"
            )

    def require_pipeline_config(self) -> None:
        """Raise `ConfigurationError` unless the options the pipeline needs are set.

        Every grant needs `access_token_uri`; the authorization code grant also
        needs `client_id` and `authorization_uri` to build the login redirect.
        """
        names = ["access_token_uri"]
        if self.grant_type == "authorization_code":
            names = ["client_id", "authorization_uri", *names]
        self.require(*names)
