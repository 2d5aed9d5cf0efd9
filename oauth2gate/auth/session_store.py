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

"""Reads and writes CSRF state, post-login target and token data.

The pipeline only ever talks to the session through a `SessionStore`, so the
storage backend can be swapped without touching the pipeline. Every write
returns a new response whose `session` holds the complete session to persist.
"""

import random
import secrets
import time
from typing import Any, Optional, Protocol, runtime_checkable

from oauth2gate.consts import (
    SESSION_OAUTH2_KEY,
    SESSION_OAUTH2_REF_KEY,
    SESSION_STATE_KEY,
    SESSION_TARGET_KEY,
)
from oauth2gate.types import OAuth2Request, OAuth2Response
from oauth2gate.utils.logger import get_logger

logger = get_logger(__name__)


def _base_session(request: OAuth2Request, response: OAuth2Response) -> dict[str, Any]:
    if response.session is not None:
        return dict(response.session)
    return dict(request.session)


@runtime_checkable
class SessionStore(Protocol):
    """Protocol for session accessors.

    Implement this protocol to keep token data somewhere other than the
    session blob (e.g. Redis). Example:

        class RedisTokenStore(InSessionStore):
            def __init__(self, redis_client):
                self._redis = redis_client

            def get_oauth2_data(self, request):
                key = request.session.get("oauth2_key")
                data = key and self._redis.get(f"oauth2:{key}")
                return json.loads(data) if data else None
    """

    def get_state(self, request: OAuth2Request) -> Optional[str]: ...

    def put_state(self, response: OAuth2Response, state: str) -> OAuth2Response: ...

    def get_target(self, request: OAuth2Request) -> Optional[str]: ...

    def put_target(self, response: OAuth2Response, target: str) -> OAuth2Response: ...

    def get_oauth2_data(self, request: OAuth2Request) -> Optional[dict[str, Any]]: ...

    def put_oauth2_data(
        self,
        request: OAuth2Request,
        response: OAuth2Response,
        oauth2_data: dict[str, Any],
    ) -> OAuth2Response: ...

    def clear_oauth2_data(
        self, request: OAuth2Request, response: OAuth2Response
    ) -> OAuth2Response: ...


class InSessionStore:
    """Keeps state, target and token data directly in the session.

    Token data lands in the `oauth2` slot. When the response already carries
    refreshed token data (`response.oauth2`), that wins over `oauth2_data`.
    """

    def get_state(self, request: OAuth2Request) -> Optional[str]:
        return request.session.get(SESSION_STATE_KEY)

    def put_state(self, response: OAuth2Response, state: str) -> OAuth2Response:
        return response.with_session(
            {**(response.session or {}), SESSION_STATE_KEY: state}
        )

    def get_target(self, request: OAuth2Request) -> Optional[str]:
        return request.session.get(SESSION_TARGET_KEY)

    def put_target(self, response: OAuth2Response, target: str) -> OAuth2Response:
        return response.with_session(
            {**(response.session or {}), SESSION_TARGET_KEY: target}
        )

    def get_oauth2_data(self, request: OAuth2Request) -> Optional[dict[str, Any]]:
        return request.session.get(SESSION_OAUTH2_KEY)

    def put_oauth2_data(
        self,
        request: OAuth2Request,
        response: OAuth2Response,
        oauth2_data: dict[str, Any],
    ) -> OAuth2Response:
        session = _base_session(request, response)
        session[SESSION_OAUTH2_KEY] = (
            response.oauth2 if response.oauth2 is not None else oauth2_data
        )
        return response.with_session(session)

    def clear_oauth2_data(
        self, request: OAuth2Request, response: OAuth2Response
    ) -> OAuth2Response:
        session = _base_session(request, response)
        session.pop(SESSION_OAUTH2_KEY, None)
        return response.with_session(session)


class ServerSideTokenStore(InSessionStore):
    """Keeps token data in a server-side cache, bound to an opaque session key.

    Only the cache key (`oauth2_key`) travels in the session, which keeps
    cookie-backed sessions small and tokens out of the browser. Suitable for
    single-process deployments; state and target stay in the session.
    """

    def __init__(
        self,
        ttl_seconds: int = 3600,
        max_entries: int = 10000,
        prune_probability: float = 0.01,
    ) -> None:
        self._tokens: dict[str, dict[str, Any]] = {}
        self._ttl_seconds = ttl_seconds
        self._max_entries = max_entries
        self._prune_probability = prune_probability

    def get_oauth2_data(self, request: OAuth2Request) -> Optional[dict[str, Any]]:
        key = request.session.get(SESSION_OAUTH2_REF_KEY)
        if not key:
            return None

        entry = self._tokens.get(key)
        if entry is None:
            return None
        if time.time() - entry["stored_at"] > self._ttl_seconds:
            self._tokens.pop(key, None)
            return None
        return entry["data"]

    def put_oauth2_data(
        self,
        request: OAuth2Request,
        response: OAuth2Response,
        oauth2_data: dict[str, Any],
    ) -> OAuth2Response:
        # Probabilistic pruning to avoid a full scan on every write.
        if random.random() < self._prune_probability:
            self._prune_expired()

        session = _base_session(request, response)
        key = session.get(SESSION_OAUTH2_REF_KEY) or secrets.token_urlsafe(32)
        if key not in self._tokens and len(self._tokens) >= self._max_entries:
            self._prune_oldest()

        self._tokens[key] = {
            "stored_at": time.time(),
            "data": response.oauth2 if response.oauth2 is not None else oauth2_data,
        }
        session[SESSION_OAUTH2_REF_KEY] = key
        return response.with_session(session)

    def clear_oauth2_data(
        self, request: OAuth2Request, response: OAuth2Response
    ) -> OAuth2Response:
        session = _base_session(request, response)
        key = session.pop(SESSION_OAUTH2_REF_KEY, None)
        if key:
            self._tokens.pop(key, None)
        return response.with_session(session)

    def __len__(self) -> int:
        return len(self._tokens)

    def _prune_expired(self) -> None:
        now = time.time()
        expired_keys = [
            key
            for key, value in self._tokens.items()
            if now - value["stored_at"] > self._ttl_seconds
        ]
        for key in expired_keys:
            self._tokens.pop(key, None)
        if expired_keys:
            logger.debug(f"Pruned {len(expired_keys)} expired token entries")

    def _prune_oldest(self) -> None:
        """Drop the oldest entries so one more fits under `max_entries`."""
        items = sorted(self._tokens.items(), key=lambda item: item[1]["stored_at"])
        to_remove = len(self._tokens) - self._max_entries + 1
        for key, _ in items[:to_remove]:
            self._tokens.pop(key, None)


def store_data_in_session() -> InSessionStore:
    """Return the default session-backed store."""
    return InSessionStore()
