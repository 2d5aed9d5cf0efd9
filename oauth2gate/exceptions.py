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

"""Errors raised by the OAuth2 interceptor pipeline.

Only `RefreshFailure` is recovered inside the pipeline (by redirecting to the
authorization server or answering with a structured 400). Everything else
propagates to the host application.
"""

from typing import Any, Optional


class OAuth2GateError(Exception):
    """Base class for all oauth2gate errors."""


class ConfigurationError(OAuth2GateError):
    """Malformed or incomplete pipeline configuration."""


class StateMismatchError(OAuth2GateError):
    """The `state` returned by the authorization server does not match the stored one."""

    def __init__(self, expected: Optional[str], actual: Optional[str]):
        super().__init__("OAuth2 state mismatch on authorization callback")
        self.expected = expected
        self.actual = actual


class ProtocolError(OAuth2GateError):
    """The authorization server answered with an `error` instead of a token."""

    def __init__(
        self,
        error: str,
        error_description: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        message = f"OAuth2 error: {error}"
        if error_description:
            message = f"{message} ({error_description})"
        super().__init__(message)
        self.error = error
        self.error_description = error_description
        self.status_code = status_code


class RefreshFailure(OAuth2GateError):
    """The authorization server rejected a refresh token."""

    def __init__(self, error: Any = None):
        super().__init__(f"Refresh token rejected: {error}")
        self.error = error


class NetworkError(OAuth2GateError):
    """A call to the authorization server failed at the transport level or with a 5xx."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
