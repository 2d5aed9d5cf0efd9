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

"""Decides whether a URI bypasses all OAuth2 processing.

An exclusion spec is one of:

    "/health"                      exact match
    {"/health", "/metrics"}        membership
    re.compile(r"/static/.*")      full match
    lambda uri: uri.startswith(…)  predicate

`None` never excludes anything. Any other shape is a configuration error.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Union

from oauth2gate.exceptions import ConfigurationError


@dataclass(frozen=True)
class NoExclusion:
    def matches(self, uri: str) -> bool:
        return False


@dataclass(frozen=True)
class Exact:
    value: str

    def matches(self, uri: str) -> bool:
        return uri == self.value


@dataclass(frozen=True)
class Members:
    values: frozenset[str]

    def matches(self, uri: str) -> bool:
        return uri in self.values


@dataclass(frozen=True)
class Pattern:
    regex: re.Pattern

    def matches(self, uri: str) -> bool:
        return self.regex.fullmatch(uri) is not None


@dataclass(frozen=True)
class Predicate:
    fn: Callable[[str], Any]

    def matches(self, uri: str) -> bool:
        return bool(self.fn(uri))


Exclusion = Union[NoExclusion, Exact, Members, Pattern, Predicate]

_VARIANTS = (NoExclusion, Exact, Members, Pattern, Predicate)


def build_exclusion(spec: Any) -> Exclusion:
    """Normalise a raw exclusion spec into one of the `Exclusion` variants."""
    if spec is None:
        return NoExclusion()
    if isinstance(spec, _VARIANTS):
        return spec
    if isinstance(spec, str):
        return Exact(spec)
    if isinstance(spec, re.Pattern):
        return Pattern(spec)
    if isinstance(spec, (set, frozenset, list, tuple)):
        values = list(spec)
        if not all(isinstance(value, str) for value in values):
            raise ConfigurationError(
                f"Exclusion collections must only contain strings, got {values!r}"
            )
        return Members(frozenset(values))
    if callable(spec):
        return Predicate(spec)
    raise ConfigurationError(
        f"Unsupported exclusion spec of type {type(spec).__name__}: {spec!r}"
    )


def is_excluded(uri: str, spec: Union[Exclusion, str, Iterable[str], Any]) -> bool:
    """Return True when `uri` is exempt from OAuth2 processing."""
    return build_exclusion(spec).matches(uri)
