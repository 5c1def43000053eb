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

"""
Configuration loading and merging for relserve.

Configuration Layers
--------------------
1. **Built-in defaults** (DEFAULTS below)
   - Channels, platforms, installer URL templates, product name
   - Local SQLite store, 5 second store timeout

2. **YAML file** (``--config`` or ``RELSERVE_CONFIG``)
   - Optional; overrides the defaults

3. **Environment** (``.env`` loaded through python-dotenv)
   - RELSERVE_DATABASE_URL (falls back to DATABASE_URL)
   - RELSERVE_BASE_URL
   - RELSERVE_API_TOKEN
   - RELSERVE_STORE_TIMEOUT

Merge Behavior
--------------
Deep merge with "last wins" semantics:
  - **Dicts**: Recursively merged (keys from overlay override base)
  - **Lists**: Completely replaced (NOT appended/extended)
  - **Scalars**: Overwritten

Example YAML
------------
    product_name: Brave
    channels: [dev, beta, stable]
    downloads:
      base_url: https://downloads.example.com/releases
      installers:
        osx: /CHANNEL/VERSION/osx/Brave-VERSION.dmg
    store:
      url: postgresql+psycopg://relserve@db/relserve
      timeout: 3
    server:
      port: 8080

Examples
--------
    >>> from pathlib import Path
    >>> from relserve.config import load_config
    >>> config = load_config(Path("relserve.yaml"))
    >>> config.installer_url("dev", "osx", "0.6.0")
    'https://downloads.example.com/releases/dev/0.6.0/osx/Brave-0.6.0.dmg'
"""

from __future__ import annotations

from collections.abc import Mapping
import copy
from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
import yaml

from relserve.exceptions import ConfigError
from relserve.logging import Logger, get_global_logger

CHANNEL_PLACEHOLDER = "CHANNEL"
VERSION_PLACEHOLDER = "VERSION"

DEFAULTS: dict[str, Any] = {
    "product_name": "Brave",
    "channels": ["dev", "beta", "stable"],
    "platforms": [
        "osx",
        "winx64",
        "winia32",
        "linux64",
        "debian64",
        "ubuntu64",
        "fedora64",
        "openSUSE64",
        "redhat64",
        "mint64",
    ],
    "downloads": {
        "base_url": "https://brave-download.global.ssl.fastly.net/multi-channel/releases",
        "installers": {
            "osx": "/CHANNEL/VERSION/osx/Brave-VERSION.dmg",
            "winx64": "/CHANNEL/VERSION/winx64/BraveSetup-x64.exe",
            "winia32": "/CHANNEL/VERSION/winia32/BraveSetup-ia32.exe",
            "linux64": "/CHANNEL/VERSION/linux64/Brave.tar.bz2",
            "debian64": "/CHANNEL/VERSION/debian64/brave_VERSION_amd64.deb",
            "ubuntu64": "/CHANNEL/VERSION/debian64/brave_VERSION_amd64.deb",
            "mint64": "/CHANNEL/VERSION/debian64/brave_VERSION_amd64.deb",
            "fedora64": "/CHANNEL/VERSION/fedora64/brave-VERSION.x86_64.rpm",
            "openSUSE64": "/CHANNEL/VERSION/fedora64/brave-VERSION.x86_64.rpm",
            "redhat64": "/CHANNEL/VERSION/fedora64/brave-VERSION.x86_64.rpm",
        },
    },
    "store": {
        "url": "sqlite:///relserve.db",
        "timeout": 5,
    },
    "server": {
        "host": "127.0.0.1",
        "port": 8000,
        "api_token": None,
    },
}


@dataclass(frozen=True)
class ServiceConfig:
    """Effective relserve configuration.

    Attributes:
        product_name: Used to build release names ("Brave 0.6.0").
        channels: Known channels. Update checks on other channels are
            rejected by the HTTP layer.
        platforms: Known platforms.
        base_url: Prefix for installer URL templates.
        installers: Platform to installer path template, with CHANNEL and
            VERSION placeholders.
        database_url: Store URL (SQLAlchemy URL, ``memory://`` or
            ``json://<path>``).
        store_timeout: Upper bound in seconds for each store call.
        host: Address the HTTP server binds to.
        port: Port the HTTP server listens on.
        api_token: Bearer token for admin routes. None disables them.
        source: YAML file the config was loaded from, if any.

    """

    product_name: str
    channels: tuple[str, ...]
    platforms: tuple[str, ...]
    base_url: str
    installers: Mapping[str, str]
    database_url: str
    store_timeout: float
    host: str
    port: int
    api_token: str | None = None
    source: Path | None = field(default=None, compare=False)

    def installer_url(self, channel: str, platform: str, version: str) -> str | None:
        """Expand the installer URL template for a platform.

        Returns:
            The download URL, or None if the platform has no template.
        """
        template = self.installers.get(platform)
        if template is None:
            return None
        path = template.replace(CHANNEL_PLACEHOLDER, channel).replace(
            VERSION_PLACEHOLDER, version
        )
        return self.base_url.rstrip("/") + path


def _load_yaml_file(p: Path) -> dict[str, Any]:
    """
    Load a YAML config file and return the parsed mapping.

    Raises:
      ConfigError - when the file is missing, is not valid YAML, or does
                    not contain a mapping
    """
    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")
    try:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as err:
        raise ConfigError(f"Error parsing YAML: {p}: {err}") from err
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping at top level: {p}")
    return data


def _deep_merge_dicts(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """
    Deep-merge two dicts with "overlay wins".

    Rules:
      - dict + dict -> deep merge
      - list + list -> overlay REPLACES base (not concatenated)
      - everything else -> overlay overwrites base

    This function does not mutate inputs; returns a new dict.
    """
    result: dict[str, Any] = dict(base)
    for k, v in overlay.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge_dicts(result[k], v)
        else:
            result[k] = v
    return result


def _env_overlay(environ: Mapping[str, str]) -> dict[str, Any]:
    """Translate RELSERVE_* environment variables into a config overlay."""
    overlay: dict[str, Any] = {}

    database_url = environ.get("RELSERVE_DATABASE_URL") or environ.get("DATABASE_URL")
    if database_url:
        overlay.setdefault("store", {})["url"] = database_url
    timeout = environ.get("RELSERVE_STORE_TIMEOUT")
    if timeout:
        overlay.setdefault("store", {})["timeout"] = timeout
    base_url = environ.get("RELSERVE_BASE_URL")
    if base_url:
        overlay.setdefault("downloads", {})["base_url"] = base_url
    token = environ.get("RELSERVE_API_TOKEN")
    if token:
        overlay.setdefault("server", {})["api_token"] = token

    return overlay


def _positive_number(value: Any, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as err:
        raise ConfigError(f"{name} must be a number, got {value!r}") from err
    if number <= 0:
        raise ConfigError(f"{name} must be positive, got {value!r}")
    return number


def _string_list(value: Any, name: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{name} must be a list of strings")
    return tuple(value)


def _build_config(cfg: dict[str, Any], source: Path | None) -> ServiceConfig:
    downloads = cfg.get("downloads") or {}
    store = cfg.get("store") or {}
    server = cfg.get("server") or {}
    installers = downloads.get("installers") or {}
    if not isinstance(installers, dict):
        raise ConfigError("downloads.installers must be a mapping of platform to path")

    port = server.get("port")
    try:
        port = int(port)
    except (TypeError, ValueError) as err:
        raise ConfigError(f"server.port must be an integer, got {port!r}") from err

    return ServiceConfig(
        product_name=str(cfg.get("product_name") or ""),
        channels=_string_list(cfg.get("channels"), "channels"),
        platforms=_string_list(cfg.get("platforms"), "platforms"),
        base_url=str(downloads.get("base_url") or ""),
        installers={str(k): str(v) for k, v in installers.items()},
        database_url=str(store.get("url") or ""),
        store_timeout=_positive_number(store.get("timeout"), "store.timeout"),
        host=str(server.get("host") or "127.0.0.1"),
        port=port,
        api_token=server.get("api_token") or None,
        source=source,
    )


def load_config(
    config_path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    load_env_file: bool = True,
    logger: Logger | None = None,
) -> ServiceConfig:
    """
    Load the effective relserve configuration.

    Steps
      1) Start from DEFAULTS.
      2) Merge the YAML file (config_path, else RELSERVE_CONFIG if set).
      3) Merge RELSERVE_* environment variables (after loading .env).
      4) Validate and freeze into a ServiceConfig.

    Args:
      config_path: Optional YAML file.
      environ: Environment to read; defaults to os.environ.
      load_env_file: Load a .env file into the process environment first.
      logger: Optional logger for CONFIG messages.

    Raises
      ConfigError on a missing or invalid file, or invalid values.
    """
    logger = logger or get_global_logger()
    if load_env_file:
        load_dotenv()
    env = os.environ if environ is None else environ

    cfg = copy.deepcopy(DEFAULTS)

    if config_path is None and env.get("RELSERVE_CONFIG"):
        config_path = Path(env["RELSERVE_CONFIG"])
    if config_path is not None:
        logger.verbose("CONFIG", f"Loading config file: {config_path}")
        cfg = _deep_merge_dicts(cfg, _load_yaml_file(config_path))

    overlay = _env_overlay(env)
    if overlay:
        logger.verbose("CONFIG", f"Applying environment overrides: {', '.join(sorted(overlay))}")
        cfg = _deep_merge_dicts(cfg, overlay)

    config = _build_config(cfg, config_path)
    logger.debug("CONFIG", f"Store: {config.database_url} (timeout {config.store_timeout}s)")
    return config
