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

# Session slots used by `InSessionStore`.
SESSION_STATE_KEY = "state"
SESSION_TARGET_KEY = "target"
SESSION_OAUTH2_KEY = "oauth2"
SESSION_OAUTH2_REF_KEY = "oauth2_key"

DEFAULT_STATE_LENGTH = 20
STATE_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"

DEFAULT_TARGET = "/"
DEFAULT_LOGOUT_REDIRECT = "/"
DEFAULT_HTTP_TIMEOUT_SECONDS = 10.0

REFRESH_FAILED_CONTENT_TYPE = "application/json; charset=utf-8"
REFRESH_FAILED_BODY = {
    "error": "Refresh token failed",
    "errorcode": "refresh-token-failed",
}

