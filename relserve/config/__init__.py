# Copyright 2025 Roger Cibrian
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

"""Configuration loading for relserve.

Configuration is layered: built-in defaults, then an optional YAML file,
then RELSERVE_* environment variables (a ``.env`` file is honoured). Dicts
are merged recursively; lists and scalars are replaced (last wins).

Public API:

- load_config: Build the effective ServiceConfig
- ServiceConfig: Frozen result consumed by build_service and the CLI

Example:
    Basic usage:

        from pathlib import Path
        from relserve.config import load_config

        config = load_config(Path("relserve.yaml"))
        print(config.database_url)

"""

from .loader import DEFAULTS, ServiceConfig, load_config

__all__ = ["DEFAULTS", "ServiceConfig", "load_config"]
