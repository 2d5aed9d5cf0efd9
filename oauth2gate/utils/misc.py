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

import os
from typing import Any, Dict, List, MutableMapping, Tuple

from yaml import safe_load


def flatten_dict(
    d: MutableMapping[str, Any], parent_key: str = "", sep: str = "_"
) -> Dict[str, Any]:
    """Flatten a nested dictionary.

    Input:
        {"oauth2": {"client_id": "foo"}}
    Output:
        {"oauth2_client_id": "foo"}
    """
    items: List[Tuple[str, Any]] = []
    for k, v in d.items():
        new_key = f"{parent_key}{sep}{k}" if parent_key else k
        if isinstance(v, MutableMapping):
            items.extend(flatten_dict(v, new_key, sep=sep).items())
        else:
            items.append((new_key, v))
    return dict(items)


def getenv(env_name: str, default_value: Any = "") -> str:
    """Return an environment variable, falling back to `default_value`."""
    return os.getenv(env_name, default_value) or default_value


def set_envs(config_yaml_path: str) -> tuple[dict, dict]:
    """Export the flattened contents of a yaml file as environment variables.

    Keys are upper-cased, so `oauth2: {client_id: foo}` becomes
    `OAUTH2_CLIENT_ID=foo`. Variables already present in the environment win.

    Returns:
        The raw yaml dict and the resulting `{name: value}` mapping.
    """
    from oauth2gate.utils.logger import get_logger

    logger = get_logger(__name__)

    with open(config_yaml_path, "r", encoding="utf-8") as yaml_file:
        config_dict = safe_load(yaml_file) or {}

    exported = {}
    for k, v in flatten_dict(config_dict).items():
        k = k.upper()

        if k in os.environ:
            logger.info(
                f"Environment variable {k} has been set, value in `config.yaml` will be ignored."
            )
            exported[k] = os.environ[k]
            continue
        if isinstance(v, (list, tuple)):
            v = " ".join(str(item) for item in v)
        exported[k] = str(v)
        os.environ[k] = str(v)

    return config_dict, exported
