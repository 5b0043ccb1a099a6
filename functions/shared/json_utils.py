# Copyright 2025 The TrashTag Authors
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
# ==============================================================================

"""
Key-case conversion between Python dataclasses and stored documents.
"""

import re
from typing import Any, Literal

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def snake_to_camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def camel_to_snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def convert_keys(
    value: Any, direction: Literal["snake_to_camel", "camel_to_snake"]
) -> Any:
    """Recursively renames dict keys. Non-container values are returned as is."""
    convert = snake_to_camel if direction == "snake_to_camel" else camel_to_snake
    if isinstance(value, dict):
        return {
            (convert(k) if isinstance(k, str) else k): convert_keys(v, direction)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [convert_keys(item, direction) for item in value]
    return value
