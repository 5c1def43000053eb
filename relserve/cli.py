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

"""Command-line interface for relserve.

Commands:

    serve: Refresh the cache and run the HTTP service
    init-db: Create the releases table
    check: Run an update check against the store
    list: List releases of a channel (optionally one platform)
    publish: Insert a new release
    promote: Promote a preview release (one platform or all)
    refresh: Ask a running server to reload its cache

Example:
    Create the table and publish a preview:
        ```bash
        $ relserve init-db
        $ relserve publish dev osx 0.6.0 --notes "New tab page" --preview
        ```

    Promote it on every platform:
        ```bash
        $ relserve promote dev 0.6.0 --notes "foo the bar"
        ```

    Tell the running server:
        ```bash
        $ relserve refresh --server http://localhost:8000 --token s3cret
        ```

Exit Codes:

- 0: Success (including "no update available" for check)
- 1: Error (configuration, store, validation or promotion failure)

Note:
    Each command has its own handler function (cmd_<command>).
    Verbose mode shows full tracebacks on errors for debugging.
    Debug mode implies verbose mode.

"""

from __future__ import annotations

import argparse
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
import sys
import traceback

from relserve import __version__
from relserve.client import AdminClient
from relserve.config import ServiceConfig, load_config
from relserve.exceptions import RelServeError
from relserve.logging import get_global_logger, get_logger, set_global_logger
from relserve.releases import Release
from relserve.results import NoUpdate
from relserve.service import UpdateService, build_service


def _configure(args: argparse.Namespace, total_steps: int | None = None) -> ServiceConfig:
    logger = get_logger(verbose=args.verbose, debug=args.debug)
    set_global_logger(logger)
    if total_steps:
        logger.step(1, total_steps, "Loading configuration...")
    return load_config(Path(args.config) if args.config else None)


def _report_error(err: Exception, args: argparse.Namespace) -> int:
    print(f"Error: {err}")
    if args.verbose or args.debug:
        traceback.print_exc()
    return 1


def _load_service(args: argparse.Namespace, total_steps: int | None = None) -> UpdateService:
    """Build the service from config and load its cache.

    With total_steps set, steps 1 and 2 of the command are reported.
    """
    service = build_service(_configure(args, total_steps))
    if total_steps:
        get_global_logger().step(2, total_steps, "Loading releases from the store...")
    service.refresh()
    return service


def _print_release(release: Release, indent: str = "") -> None:
    flag = "preview" if release.preview else "live"
    print(f"{indent}{release.version:<16} {flag:<8} {release.pub_date:%Y-%m-%d}  {release.name}")


def cmd_serve(args: argparse.Namespace) -> int:
    """Handler for 'relserve serve' command.

    Loads the cache from the store, then serves the FastAPI app with
    uvicorn until interrupted.
    """
    import uvicorn

    from relserve.server import create_app

    try:
        service = _load_service(args, total_steps=3)
    except RelServeError as err:
        return _report_error(err, args)

    config = service.config
    host = args.host or config.host
    port = args.port or config.port
    print(f"Serving relserve {__version__} on http://{host}:{port}")
    print(f"Store: {config.database_url}")
    if not config.api_token:
        print("[WARNING] RELSERVE_API_TOKEN is not set; admin routes are disabled")

    get_global_logger().step(3, 3, "Starting HTTP server...")
    uvicorn.run(
        create_app(service),
        host=host,
        port=port,
        log_level="debug" if args.debug else "info",
    )
    return 0


def cmd_init_db(args: argparse.Namespace) -> int:
    """Handler for 'relserve init-db' command."""
    try:
        service = build_service(_configure(args))
        service.store.create_schema()
    except RelServeError as err:
        return _report_error(err, args)

    print(f"[SUCCESS] Release store ready: {service.config.database_url}")
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Handler for 'relserve check' command.

    Runs the same resolution the HTTP update check does and prints the
    offered release with its aggregated notes.
    """
    try:
        service = _load_service(args)
        result = service.check_for_update(
            args.channel, args.platform, args.version, args.accept_preview
        )
    except RelServeError as err:
        return _report_error(err, args)

    if isinstance(result, NoUpdate):
        print(f"No update for {args.channel}:{args.platform} {args.version}")
        return 0

    print("=" * 70)
    print("UPDATE AVAILABLE")
    print("=" * 70)
    print(f"Version:     {result.version}")
    print(f"Name:        {result.name}")
    print(f"Published:   {result.pub_date.isoformat()}")
    print(f"Preview:     {result.preview}")
    if result.url:
        print(f"URL:         {result.url}")
    print("=" * 70)
    print(result.notes)
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    """Handler for 'relserve list' command."""
    try:
        service = _load_service(args)
    except RelServeError as err:
        return _report_error(err, args)

    if args.platform:
        partitions = {args.platform: service.releases_for(args.channel, args.platform)}
    else:
        partitions = service.all_for_channel(args.channel)

    if not any(partitions.values()):
        print(f"No releases for {args.channel}")
        return 0

    for platform in sorted(partitions):
        print(f"{args.channel}:{platform}")
        for release in partitions[platform]:
            _print_release(release, indent="  ")
    return 0


def cmd_publish(args: argparse.Namespace) -> int:
    """Handler for 'relserve publish' command.

    Inserts the release into the store. A running server picks it up on its
    next refresh.
    """
    try:
        service = _load_service(args, total_steps=3)
        get_global_logger().step(
            3, 3, f"Publishing {args.channel}:{args.platform} {args.version}..."
        )
        release = service.publish(
            args.channel,
            args.platform,
            args.version,
            args.notes,
            preview=args.preview,
            url=args.url,
        )
    except RelServeError as err:
        return _report_error(err, args)

    print(f"[SUCCESS] Published {release.name} to {args.channel}:{args.platform}")
    if release.preview:
        print("Release is a preview; promote it to make it generally available.")
    return 0


def cmd_promote(args: argparse.Namespace) -> int:
    """Handler for 'relserve promote' command.

    Promotes one platform when --platform is given, otherwise every platform
    of the version (all or nothing).
    """
    try:
        service = build_service(_configure(args, total_steps=2))
        get_global_logger().step(2, 2, f"Promoting {args.channel} {args.version}...")
        if args.platform:
            result = service.promote(args.channel, args.platform, args.version, args.notes)
        else:
            result = service.promote_all_platforms(args.channel, args.version, args.notes)
    except RelServeError as err:
        return _report_error(err, args)

    print("=" * 70)
    print("PROMOTION RESULTS")
    print("=" * 70)
    print(f"Channel:     {result.channel}")
    print(f"Version:     {result.version}")
    print(f"Platforms:   {', '.join(result.platforms)}")
    print(f"Notes:       {'replaced' if result.notes_replaced else 'unchanged'}")
    print(f"Status:      {result.status}")
    print("=" * 70)
    print()
    print("[SUCCESS] Promotion stored; refresh running servers to publish it.")
    return 0


def cmd_refresh(args: argparse.Namespace) -> int:
    """Handler for 'relserve refresh' command."""
    try:
        config = _configure(args)
        client = AdminClient(args.server, token=args.token or config.api_token)
        result = client.refresh()
    except RelServeError as err:
        return _report_error(err, args)

    print(
        f"[SUCCESS] {args.server} reloaded {result.get('release_count', 0)} release(s) "
        f"in {result.get('partition_count', 0)} partition(s)"
    )
    return 0


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default=None,
        help="YAML config file (default: $RELSERVE_CONFIG or built-in defaults)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show progress and high-level status updates",
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Show detailed debugging output (implies --verbose)",
    )


def _package_version() -> str:
    try:
        return version("relserve")
    except PackageNotFoundError:
        return __version__


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="relserve",
        description="relserve - release update server with preview promotion",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"relserve {_package_version()}",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
        required=True,
    )

    # 'serve' command
    parser_serve = subparsers.add_parser(
        "serve",
        help="Run the HTTP service",
        description="Load the release cache from the store and serve the HTTP API.",
    )
    parser_serve.add_argument("--host", default=None, help="Bind address (default: from config)")
    parser_serve.add_argument(
        "--port", type=int, default=None, help="Port (default: from config)"
    )
    _add_common_arguments(parser_serve)
    parser_serve.set_defaults(func=cmd_serve)

    # 'init-db' command
    parser_init = subparsers.add_parser(
        "init-db",
        help="Create the releases table",
        description="Create the releases table in the configured store if missing.",
    )
    _add_common_arguments(parser_init)
    parser_init.set_defaults(func=cmd_init_db)

    # 'check' command
    parser_check = subparsers.add_parser(
        "check",
        help="Run an update check",
        description="Show which release a client on CHANNEL/PLATFORM/VERSION would be offered.",
    )
    parser_check.add_argument("channel", help="Release channel (e.g. dev)")
    parser_check.add_argument("platform", help="Platform (e.g. osx)")
    parser_check.add_argument("version", help="Client's current version")
    parser_check.add_argument(
        "--accept-preview",
        action="store_true",
        help="Consider preview releases too",
    )
    _add_common_arguments(parser_check)
    parser_check.set_defaults(func=cmd_check)

    # 'list' command
    parser_list = subparsers.add_parser(
        "list",
        help="List releases",
        description="List releases of a channel, newest first per platform.",
    )
    parser_list.add_argument("channel", help="Release channel")
    parser_list.add_argument("platform", nargs="?", default=None, help="Only this platform")
    _add_common_arguments(parser_list)
    parser_list.set_defaults(func=cmd_list)

    # 'publish' command
    parser_publish = subparsers.add_parser(
        "publish",
        help="Publish a new release",
        description="Insert a release; its version must be newer than every release "
        "already published for the channel and platform.",
    )
    parser_publish.add_argument("channel", help="Release channel")
    parser_publish.add_argument("platform", help="Platform")
    parser_publish.add_argument("version", help="Semantic version of the release")
    parser_publish.add_argument("--notes", required=True, help="Release notes")
    parser_publish.add_argument(
        "--preview",
        action="store_true",
        help="Publish as a preview (only offered to clients that accept previews)",
    )
    parser_publish.add_argument("--url", default=None, help="Download URL")
    _add_common_arguments(parser_publish)
    parser_publish.set_defaults(func=cmd_publish)

    # 'promote' command
    parser_promote = subparsers.add_parser(
        "promote",
        help="Promote a preview release",
        description="Make a preview release generally available.",
    )
    parser_promote.add_argument("channel", help="Release channel")
    parser_promote.add_argument("version", help="Version to promote")
    parser_promote.add_argument(
        "--platform",
        default=None,
        help="Promote only this platform (default: every platform, all or nothing)",
    )
    parser_promote.add_argument(
        "--notes", default=None, help="Replace the stored release notes"
    )
    _add_common_arguments(parser_promote)
    parser_promote.set_defaults(func=cmd_promote)

    # 'refresh' command
    parser_refresh = subparsers.add_parser(
        "refresh",
        help="Reload a running server's cache",
        description="Call PUT /api/1/releases/refresh on a running server.",
    )
    parser_refresh.add_argument("--server", required=True, help="Server base URL")
    parser_refresh.add_argument(
        "--token", default=None, help="Admin token (default: $RELSERVE_API_TOKEN)"
    )
    _add_common_arguments(parser_refresh)
    parser_refresh.set_defaults(func=cmd_refresh)

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the relserve CLI.

    This function is registered as the 'relserve' console script in
    pyproject.toml.
    """
    args = build_parser().parse_args(argv)
    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
