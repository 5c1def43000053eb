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

"""HTTP client for a running relserve server.

Used by release tooling (and ``relserve refresh``) to publish, promote and
reload without direct database access.

Example:
    ```python
    from relserve.client import AdminClient

    client = AdminClient("https://updates.example.com", token="s3cret")
    client.publish("dev", "osx", "0.6.0", notes="New tab page", preview=True)
    client.promote("dev", "osx", "0.6.0", notes="foo the bar")
    client.refresh()

    offer = client.check("dev", "osx", "0.5.0")
    if offer is None:
        print("client is current")
    ```
"""

from __future__ import annotations

from typing import Any

import requests

from relserve.exceptions import NetworkError
from relserve.logging import Logger, get_global_logger


class AdminClient:
    """Thin wrapper over the relserve HTTP API.

    Attributes:
        base_url: Server root, e.g. "https://updates.example.com".
        token: Bearer token for admin routes.
        timeout: Per-request timeout in seconds.

    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        timeout: float = 30,
        logger: Logger | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._logger = logger
        self._session = requests.Session()

    @property
    def logger(self) -> Logger:
        return self._logger or get_global_logger()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        self.logger.verbose("HTTP", f"{method} {url}")
        try:
            response = self._session.request(
                method,
                url,
                headers=self._headers(),
                json=json,
                params=params,
                timeout=self.timeout,
                allow_redirects=False,
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as err:
            raise NetworkError(
                f"{method} {path} failed: {response.status_code} "
                f"{_error_detail(response)}",
                status_code=response.status_code,
            ) from err
        except requests.exceptions.RequestException as err:
            raise NetworkError(f"Failed to reach relserve at {self.base_url}: {err}") from err
        return response

    def refresh(self) -> dict[str, Any]:
        """Ask the server to reload its cache from the store."""
        return self._request("PUT", "/api/1/releases/refresh").json()

    def publish(
        self,
        channel: str,
        platform: str,
        version: str,
        notes: str,
        *,
        preview: bool = False,
        url: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"version": version, "notes": notes, "preview": preview}
        if url is not None:
            body["url"] = url
        return self._request("POST", f"/api/1/releases/{channel}/{platform}", json=body).json()

    def promote(
        self, channel: str, platform: str, version: str, notes: str | None = None
    ) -> dict[str, Any]:
        return self._request(
            "PUT",
            f"/api/1/releases/{channel}/{platform}/{version}/promote",
            json={"notes": notes},
        ).json()

    def promote_all_platforms(
        self, channel: str, version: str, notes: str | None = None
    ) -> dict[str, Any]:
        return self._request(
            "PUT",
            f"/api/1/releases/{channel}/{version}/promote",
            json={"notes": notes},
        ).json()

    def check(
        self, channel: str, platform: str, version: str, accept_preview: bool = False
    ) -> dict[str, Any] | None:
        """Run an update check.

        Returns:
            The offered release payload, or None when the server answers
            204 No Content.
        """
        params = {"accept_preview": "true"} if accept_preview else None
        response = self._request(
            "GET", f"/1/releases/{channel}/{version}/{platform}", params=params
        )
        if response.status_code == 204:
            return None
        return response.json()


def _error_detail(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason or ""
    if isinstance(payload, dict) and "detail" in payload:
        return str(payload["detail"])
    return str(payload)
