"""
relserve - Release Update Server

A software-update metadata service. For a client on a given channel and
platform, relserve answers "is there a newer release, and what changed?",
and lets operators promote preview releases to general availability.

relserve provides:
  - Strict semantic-version ordering of releases per channel and platform
  - Update checks with aggregated release notes for skipped versions
  - Preview releases offered only to clients that opt in
  - One-way, all-or-nothing promotion of previews
  - Monotonic release ingestion (no version regressions)
  - SQLAlchemy-backed store with a JSON/in-memory alternative
  - FastAPI HTTP service, admin client and CLI

Quick Start
-----------
Create the releases table:

    $ relserve init-db

Publish a preview and promote it:

    $ relserve publish dev osx 0.6.0 --notes "New tab page" --preview
    $ relserve promote dev 0.6.0 --platform osx --notes "foo the bar"

Run the HTTP service:

    $ relserve serve --port 8000

Package Structure
-----------------
cli : module
    Command-line interface with argparse.
service : module
    UpdateService facade used by the CLI and the HTTP layer.
config : package
    Layered YAML/environment configuration.
releases : package
    Cache, resolver, promotion engine and ingestion guard.
store : package
    SQLAlchemy and in-memory release stores.
versioning : package
    Semantic-version parsing and precedence.
server : package
    FastAPI application.
client : module
    requests-based admin client.

Public API
----------
    from relserve.config import load_config
    from relserve.service import UpdateService, build_service
    from relserve.versioning import compare_versions, parse_version
    from relserve.results import NoUpdate

Project Information
-------------------
Author: Roger Cibrian
License: Apache-2.0
"""

__version__ = "0.3.0"
__author__ = "Roger Cibrian"
__license__ = "Apache-2.0"
__description__ = "Release update server with preview promotion"

from relserve.config import ServiceConfig, load_config
from relserve.results import NoUpdate, PromotionResult, RefreshResult
from relserve.service import UpdateService, build_service
from relserve.versioning import compare_versions, is_newer, parse_version

__all__ = [
    "__version__",
    "__author__",
    "__license__",
    "__description__",
    "NoUpdate",
    "PromotionResult",
    "RefreshResult",
    "ServiceConfig",
    "UpdateService",
    "build_service",
    "compare_versions",
    "is_newer",
    "load_config",
    "parse_version",
]
