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

"""OAuth2 authorization code login for any request handler."""

from oauth2gate.auth.client import AuthorizationServerClient
from oauth2gate.auth.exclusion import is_excluded
from oauth2gate.auth.session_store import (
    InSessionStore,
    ServerSideTokenStore,
    SessionStore,
)
from oauth2gate.exceptions import (
    ConfigurationError,
    NetworkError,
    OAuth2GateError,
    ProtocolError,
    RefreshFailure,
    StateMismatchError,
)
from oauth2gate.middleware.starlette_oauth2 import OAuth2Middleware, setup_oauth2
from oauth2gate.params import OAuth2Params
from oauth2gate.pipeline import (
    OAuth2Pipeline,
    Stage,
    wrap_oauth2,
    wrap_redirect_unauthenticated,
)
from oauth2gate.types import OAuth2Data, OAuth2Request, OAuth2Response
from oauth2gate.version import VERSION

__version__ = VERSION

__all__ = [
    "AuthorizationServerClient",
    "ConfigurationError",
    "InSessionStore",
    "NetworkError",
    "OAuth2Data",
    "OAuth2GateError",
    "OAuth2Middleware",
    "OAuth2Params",
    "OAuth2Pipeline",
    "OAuth2Request",
    "OAuth2Response",
    "ProtocolError",
    "RefreshFailure",
    "ServerSideTokenStore",
    "SessionStore",
    "Stage",
    "StateMismatchError",
    "is_excluded",
    "setup_oauth2",
    "wrap_oauth2",
    "wrap_redirect_unauthenticated",
]
