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

"""FastAPI application for relserve.

Public routes (browsers and download pages):

    GET /1/releases/{channel}/{version}/{platform}   update check
    GET /1/releases/{platform}/{version}             legacy, redirects to dev
    GET /latest/{channel}/{platform}                 newest live installer
    GET /latest/{platform}                           legacy, redirects to dev

Admin routes (under /api/1/releases). Mutations require
``Authorization: Bearer <RELSERVE_API_TOKEN>``; listings are public.

    PUT  /refresh
    POST /{channel}/{platform}
    PUT  /{channel}/{platform}/{version}/promote
    PUT  /{channel}/{version}/promote
    GET  /{channel}
    GET  /{channel}/latest
    GET  /{channel}/{platform}

Route handlers are plain ``def`` functions: FastAPI runs them in its thread
pool, so blocking store calls never stall the event loop.

Errors raised by the core are turned into responses by the exception
handlers registered in create_app():

    InvalidVersionError, VersionRegressionError,
    ReleaseNotFoundError, AlreadyPromotedError    -> 400
    StoreUnavailableError                         -> 503
    MalformedReleaseError, other RelServeError    -> 500
    request validation failures                   -> 400
"""

from __future__ import annotations

import secrets
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from relserve import __version__
from relserve.config import ServiceConfig
from relserve.exceptions import (
    AlreadyPromotedError,
    InvalidVersionError,
    RelServeError,
    ReleaseNotFoundError,
    StoreUnavailableError,
    VersionRegressionError,
)
from relserve.logging import Logger, get_global_logger
from relserve.results import NoUpdate
from relserve.server.models import (
    PromoteRequest,
    PromotionResponse,
    RefreshResponse,
    ReleaseCreate,
)
from relserve.server.usage import LoggingUsageRecorder, UsageRecorder, build_usage
from relserve.service import UpdateService
from relserve.versioning import is_valid_version

_BAD_REQUEST_ERRORS = (
    InvalidVersionError,
    VersionRegressionError,
    ReleaseNotFoundError,
    AlreadyPromotedError,
)

_bearer = HTTPBearer(auto_error=False)

# Reported by clients that cannot name their platform; always accepted
UNKNOWN_PLATFORM = "unknown"


def get_service(request: Request) -> UpdateService:
    return request.app.state.service


def get_config(request: Request) -> ServiceConfig:
    return request.app.state.config


def get_request_logger(request: Request) -> Logger:
    return request.app.state.logger or get_global_logger()


def require_admin_token(
    config: ServiceConfig = Depends(get_config),
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> None:
    """Reject the request unless it carries the configured bearer token."""
    if not config.api_token:
        raise HTTPException(
            status_code=403, detail="Admin API disabled (RELSERVE_API_TOKEN is not set)"
        )
    if credentials is None or not secrets.compare_digest(
        credentials.credentials, config.api_token
    ):
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def _status_for(err: RelServeError) -> int:
    if isinstance(err, _BAD_REQUEST_ERRORS):
        return 400
    if isinstance(err, StoreUnavailableError):
        return 503
    return 500


def _require_known_channel(config: ServiceConfig, channel: str) -> None:
    if channel not in config.channels:
        raise HTTPException(status_code=400, detail=f"Invalid channel {channel}")


def _require_known_platform(config: ServiceConfig, platform: str) -> None:
    if platform not in config.platforms:
        raise HTTPException(status_code=400, detail=f"Invalid platform {platform}")


def _require_valid_version(version: str) -> None:
    if not is_valid_version(version):
        raise HTTPException(status_code=400, detail=f"Invalid version {version}")


# ----------------------------------------------------------------------------
# Public routes
# ----------------------------------------------------------------------------

public_router = APIRouter(tags=["updates"])


@public_router.get("/1/releases/{channel}/{version}/{platform}")
def check_for_update(
    channel: str,
    version: str,
    platform: str,
    request: Request,
    accept_preview: bool = False,
    service: UpdateService = Depends(get_service),
    logger: Logger = Depends(get_request_logger),
) -> Response:
    if platform == "undefined":
        platform = UNKNOWN_PLATFORM

    _require_valid_version(version)
    _require_known_channel(service.config, channel)
    if platform != UNKNOWN_PLATFORM:
        _require_known_platform(service.config, platform)

    usage = build_usage(request.query_params, channel, platform, version)
    if usage is not None:
        request.app.state.usage_recorder.record(usage)

    result = service.check_for_update(channel, platform, version, accept_preview)
    if isinstance(result, NoUpdate):
        return Response(status_code=204)

    logger.verbose("HTTP", f"{channel}:{platform} {version} -> {result.version}")
    return JSONResponse(result.to_payload())


@public_router.get("/1/releases/{platform}/{version}")
def legacy_check_for_update(platform: str, version: str, request: Request) -> Response:
    # /1/releases/osx/0.7.11 -> /1/releases/dev/0.7.11/osx
    url = f"/1/releases/dev/{version}/{platform}"
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return RedirectResponse(url, status_code=302)


@public_router.get("/latest/{platform}")
def legacy_latest(platform: str) -> Response:
    return RedirectResponse(f"/latest/dev/{platform}", status_code=302)


@public_router.get("/latest/{channel}/{platform}")
def latest(
    channel: str,
    platform: str,
    service: UpdateService = Depends(get_service),
    logger: Logger = Depends(get_request_logger),
) -> Response:
    config = service.config
    if channel not in config.channels or platform not in config.installers:
        logger.verbose("HTTP", f"Invalid request for latest build {channel} {platform}")
        return Response(status_code=204)

    url = service.latest_download_url(channel, platform)
    if url is None:
        return PlainTextResponse(f"No current version for {channel} / {platform}")

    logger.verbose("HTTP", f"Redirect: {url}")
    return RedirectResponse(url, status_code=302)


# ----------------------------------------------------------------------------
# Admin routes
# ----------------------------------------------------------------------------

admin_router = APIRouter(prefix="/api/1/releases", tags=["admin"])


@admin_router.put("/refresh", dependencies=[Depends(require_admin_token)])
def refresh(service: UpdateService = Depends(get_service)) -> RefreshResponse:
    return RefreshResponse.from_result(service.refresh())


@admin_router.post("/{channel}/{platform}", dependencies=[Depends(require_admin_token)])
def publish(
    channel: str,
    platform: str,
    body: ReleaseCreate,
    service: UpdateService = Depends(get_service),
) -> dict[str, Any]:
    release = service.publish(
        channel,
        platform,
        body.version,
        body.notes,
        preview=body.preview,
        url=body.url,
    )
    return release.to_payload()


@admin_router.put(
    "/{channel}/{platform}/{version}/promote",
    dependencies=[Depends(require_admin_token)],
)
def promote(
    channel: str,
    platform: str,
    version: str,
    body: PromoteRequest | None = None,
    service: UpdateService = Depends(get_service),
) -> PromotionResponse:
    _require_known_channel(service.config, channel)
    _require_known_platform(service.config, platform)
    _require_valid_version(version)
    notes = body.notes if body is not None else None
    return PromotionResponse.from_result(service.promote(channel, platform, version, notes))


@admin_router.put("/{channel}/{version}/promote", dependencies=[Depends(require_admin_token)])
def promote_all_platforms(
    channel: str,
    version: str,
    body: PromoteRequest | None = None,
    service: UpdateService = Depends(get_service),
) -> PromotionResponse:
    _require_known_channel(service.config, channel)
    _require_valid_version(version)
    notes = body.notes if body is not None else None
    return PromotionResponse.from_result(
        service.promote_all_platforms(channel, version, notes)
    )


@admin_router.get("/{channel}")
def list_channel(
    channel: str, service: UpdateService = Depends(get_service)
) -> dict[str, list[dict[str, Any]]]:
    return {
        platform: [release.to_payload() for release in releases]
        for platform, releases in service.all_for_channel(channel).items()
    }


# Registered before /{channel}/{platform} so "latest" is not taken as a platform
@admin_router.get("/{channel}/latest")
def latest_for_channel(
    channel: str, service: UpdateService = Depends(get_service)
) -> dict[str, dict[str, Any]]:
    return {
        platform: release.to_payload()
        for platform, release in service.latest_for_channel(channel).items()
    }


@admin_router.get("/{channel}/{platform}")
def list_partition(
    channel: str, platform: str, service: UpdateService = Depends(get_service)
) -> list[dict[str, Any]]:
    return [release.to_payload() for release in service.releases_for(channel, platform)]


# ----------------------------------------------------------------------------
# Application factory
# ----------------------------------------------------------------------------


def create_app(
    service: UpdateService,
    config: ServiceConfig | None = None,
    *,
    usage_recorder: UsageRecorder | None = None,
    logger: Logger | None = None,
) -> FastAPI:
    """Build the FastAPI application around an UpdateService.

    Args:
        service: The service every route delegates to. Its cache should
            already be refreshed.
        config: Configuration; defaults to service.config.
        usage_recorder: Receives usage records from update checks.
        logger: Logger for HTTP messages; falls back to the global logger.

    Returns:
        The configured FastAPI app.

    """
    app = FastAPI(title="relserve", version=__version__)
    app.state.service = service
    app.state.config = config or service.config
    app.state.logger = logger
    app.state.usage_recorder = usage_recorder or LoggingUsageRecorder(logger)

    @app.exception_handler(RelServeError)
    async def _relserve_error(request: Request, err: RelServeError) -> JSONResponse:
        status = _status_for(err)
        if status >= 500:
            (logger or get_global_logger()).warn(
                "HTTP", f"{request.method} {request.url.path} failed: {err}"
            )
        return JSONResponse(status_code=status, content={"detail": str(err)})

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, err: RequestValidationError) -> JSONResponse:
        messages = [str(e.get("msg", "")) for e in err.errors()]
        return JSONResponse(status_code=400, content={"detail": "; ".join(messages)})

    app.include_router(public_router)
    app.include_router(admin_router)
    return app


__all__ = [
    "admin_router",
    "create_app",
    "public_router",
]
