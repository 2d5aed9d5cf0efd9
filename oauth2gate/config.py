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

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field

from oauth2gate.configs.oauth2_configs import OAuth2Settings
from oauth2gate.utils.logger import get_logger
from oauth2gate.utils.misc import set_envs

logger = get_logger(__name__)

if load_dotenv(find_dotenv(usecwd=True)):
    logger.info(f"Find `.env` file in {find_dotenv(usecwd=True)}, load envs.")
else:
    logger.debug("No env file found.")


config_yaml_path = find_dotenv(filename="config.yaml", usecwd=True)

oauth2gate_environments = {}

if config_yaml_path:
    logger.info(f"Find `config.yaml` file in {config_yaml_path}")
    _, _environments = set_envs(config_yaml_path=config_yaml_path)
    oauth2gate_environments.update(_environments)
else:
    logger.debug("No `config.yaml` file found.")


class OAuth2GateConfig(BaseModel):
    oauth2: OAuth2Settings = Field(default_factory=OAuth2Settings)
    """OAuth2 client and session settings."""


settings = OAuth2GateConfig()
