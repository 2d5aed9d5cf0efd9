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

from typing import Any, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from oauth2gate.consts import DEFAULT_HTTP_TIMEOUT_SECONDS
from oauth2gate.params import OAuth2Params


class OAuth2Settings(BaseSettings):
    """OAuth2 client settings read from `OAUTH2_*` environment variables.

    Only plain values live here. Callables (exclusion predicates, logout
    callbacks, state generators) and session stores are passed to
    `to_params()` as overrides.
    """

    model_config = SettingsConfigDict(env_prefix="OAUTH2_")

    client_id: Optional[str] = None
    client_secret: Optional[str] = None

    scope: str = ""
    """Space separated scopes, e.g. `openid profile email`."""

    grant_type: str = "authorization_code"
    authorization_header: bool = False

    authorization_uri: Optional[str] = None
    access_token_uri: Optional[str] = None
    token_info_uri: Optional[str] = None
    userinfo_uri: Optional[str] = None
    redirect_uri: str = "/oauth2/callback"
    access_query_param: Optional[str] = None

    logout_uri: Optional[str] = None
    logout_uri_client: Optional[str] = None
    logout_callback_uri: Optional[str] = None

    session_secret: str = ""
    """Secret used to sign the session cookie."""

    http_timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS

    def to_params(self, **overrides: Any) -> OAuth2Params:
        """Build `OAuth2Params` from these settings plus `overrides`."""
        values = self.model_dump(
            exclude={"session_secret", "http_timeout_seconds"}
        )
        values.update(overrides)
        return OAuth2Params(**values)
