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
import logging
import sys

from loguru import logger

from oauth2gate.utils.misc import getenv


def quiet_http_client_logs():
    # httpx logs every request URL at INFO; tokeninfo URLs carry the access token.
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logger():
    logger.remove()
    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level}</level> | <cyan>{extra[name]}</cyan> <cyan>{file}:{line}</cyan> - {message}",
        colorize=True,
        level=getenv("LOGGING_LEVEL", "INFO"),
    )
    logger.configure(extra={"name": "oauth2gate"})
    return logger


quiet_http_client_logs()
setup_logger()


def get_logger(name: str):
    return logger.bind(name=name)
