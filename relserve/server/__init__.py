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

"""HTTP layer for relserve (FastAPI).

Example:
    Serve with uvicorn:

        import uvicorn
        from relserve.config import load_config
        from relserve.server import create_app
        from relserve.service import build_service

        config = load_config()
        service = build_service(config)
        service.refresh()
        uvicorn.run(create_app(service), host=config.host, port=config.port)

"""

from .app import create_app
from .usage import LoggingUsageRecorder, UsageRecord, UsageRecorder, build_usage

__all__ = [
    "LoggingUsageRecorder",
    "UsageRecord",
    "UsageRecorder",
    "build_usage",
    "create_app",
]
