#
# Copyright 2025 The NetatmoExporter contributors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#

"""FastAPI route handlers for the Netatmo exporter."""

import logging
import os
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.responses import Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from prometheus_client import CONTENT_TYPE_LATEST

from .__version__ import __version__

logger = logging.getLogger(__name__)

# Security
security = HTTPBearer(auto_error=False)


def load_api_keys() -> set:
    """Read the accepted bearer tokens from NETATMO_EXPORTER_API_KEYS (space separated)."""
    raw = os.environ.get('NETATMO_EXPORTER_API_KEYS', '').strip()
    return set(key.strip() for key in raw.split() if key.strip())


def create_app(api_keys: Optional[set] = None):
    """Create and configure the FastAPI application.

    Args:
        api_keys: Accepted bearer tokens; read from the environment when None
    """
    app = FastAPI(
        title="Netatmo Exporter",
        description="Prometheus exporter for Netatmo Energy homes",
        version=__version__
    )
    app.state.api_keys = load_api_keys() if api_keys is None else set(api_keys)

    if app.state.api_keys:
        logger.info(f"API authentication enabled ({len(app.state.api_keys)} key(s) configured)")
    else:
        logger.info("API authentication disabled (no NETATMO_EXPORTER_API_KEYS configured)")

    return app


def register_routes(app: FastAPI, get_exporter):
    """Register all routes.

    Args:
        app: FastAPI application instance
        get_exporter: Callable that returns the current NetatmoExporter instance
    """

    def get_api_key(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> Optional[str]:
        """
        Validate the bearer token when API keys are configured.

        Raises:
            HTTPException 401 if authentication fails
        """
        api_keys = app.state.api_keys
        if not api_keys:
            return None

        if not credentials:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing authentication credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if credentials.credentials not in api_keys:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )

        return credentials.credentials

    @app.get("/")
    async def root():
        """Service information."""
        return {
            "service": "Netatmo Exporter",
            "description": "Prometheus exporter for Netatmo Energy homes",
            "version": __version__,
            "metrics": "/metrics",
            "status": "/status",
        }

    @app.get("/metrics")
    async def metrics(api_key: Optional[str] = Depends(get_api_key)):
        """Run a scrape pass and return the Prometheus exposition."""
        exporter = get_exporter()
        if exporter is None:
            raise HTTPException(status_code=503, detail="Exporter not initialized")

        content = await exporter.scrape_and_render()
        return Response(content=content, media_type=CONTENT_TYPE_LATEST)

    @app.get("/status")
    async def get_status(api_key: Optional[str] = Depends(get_api_key)):
        """Exporter health, watermark and cache summary."""
        exporter = get_exporter()
        if exporter is None:
            raise HTTPException(status_code=503, detail="Exporter not initialized")

        return dict(exporter.get_status(), version=__version__)
