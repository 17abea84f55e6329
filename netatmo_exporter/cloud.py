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

"""Netatmo Cloud API client.

Token Management:
-----------------
- Access tokens: valid for ~3 hours (``expires_in`` from the token response)
- Refresh tokens: rotate on each use, persisted in the state database
- Strategy: lazy refresh - only when making API calls (via get_headers)
- Grants: ``refresh_token`` when a refresh token is known, otherwise
  ``password`` when username and password are configured

Endpoints:
----------
- homesdata: static home list with nested rooms and modules
- homestatus: live status of one home
- getmeasure: boiler and temperature series of one module

Every response is wrapped as ``{"body": ..., "status": "ok"}``; the body is
unwrapped before it is handed to the caller.
"""

import asyncio
import logging
import sqlite3
import time
from typing import Any, Dict, List, Optional

import aiohttp

from .database import CLOUD_SCHEMA
from .measure import MEASURE_TYPES

logger = logging.getLogger(__name__)


class NetatmoAPIError(Exception):
    """The Netatmo API could not be reached or returned an unusable response."""


class NetatmoAuthError(NetatmoAPIError):
    """No valid access token could be obtained."""


def unwrap_body(payload: Any, endpoint: str) -> Any:
    """Return the ``body`` member of a Netatmo response.

    Raises:
        NetatmoAPIError: If the payload is not an object or has no body
    """
    if not isinstance(payload, dict):
        raise NetatmoAPIError(f"Unexpected response from '{endpoint}': {payload!r}")
    if "body" not in payload:
        error = payload.get("error")
        if error:
            raise NetatmoAPIError(f"'{endpoint}' returned an error: {error}")
        raise NetatmoAPIError(f"Could not find body in response from '{endpoint}': {payload!r}")
    return payload["body"]


class NetatmoCloudAPI:
    """
    Netatmo Cloud API client using OAuth 2.0 bearer tokens.

    Only read scopes are requested; the exporter never changes thermostat
    settings.
    """

    AUTH_URL = "https://api.netatmo.com/oauth2/token"
    API_BASE_URL = "https://api.netatmo.com/api"
    SCOPES = "read_thermostat read_station"

    # Refresh a little early to absorb network latency
    EXPIRY_MARGIN = 30

    def __init__(
        self,
        db_path: str,
        client_id: str,
        client_secret: str,
        refresh_token: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        request_timeout: float = 10.0,
    ):
        """Initialize Netatmo Cloud API client.

        Args:
            db_path: Path to SQLite database for token storage
            client_id: Netatmo app client id
            client_secret: Netatmo app client secret
            refresh_token: Initial refresh token (a stored, rotated one wins)
            username: Account user for the password grant
            password: Account password for the password grant
            request_timeout: Per-request timeout in seconds
        """
        self.db_path = db_path
        self.client_id = client_id
        self.client_secret = client_secret
        self.username = username
        self.password = password
        self.request_timeout = request_timeout

        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = refresh_token
        self.token_expires_at: Optional[float] = None

        self._ensure_schema()
        self._load_tokens()

    def _ensure_schema(self):
        """Ensure the token table exists."""
        conn = sqlite3.connect(self.db_path)
        conn.executescript(CLOUD_SCHEMA)
        conn.commit()
        conn.close()

    def _load_tokens(self):
        """Load stored tokens from database."""
        conn = sqlite3.connect(self.db_path)
        cursor = conn.execute("""
            SELECT client_id, access_token, refresh_token, expires_at
            FROM netatmo_cloud_tokens
            WHERE id = 1
        """)
        row = cursor.fetchone()
        conn.close()

        if not row:
            return

        client_id, access_token, refresh_token, expires_at = row
        if client_id != self.client_id:
            logger.info("Ignoring stored Netatmo tokens issued to a different client id")
            return

        if refresh_token:
            self.refresh_token = refresh_token

        if access_token and expires_at and time.time() < expires_at:
            self.access_token = access_token
            self.token_expires_at = expires_at
            logger.info(f"Loaded valid Netatmo access token (expires in {int(expires_at - time.time())}s)")
        else:
            logger.info("Stored Netatmo access token is expired, will refresh on first API call")

    def _save_tokens(self, token_data: Dict[str, Any]):
        """Save tokens to database.

        Args:
            token_data: Token response from the OAuth endpoint
        """
        self.access_token = token_data.get('access_token')

        # Refresh tokens rotate; keep the old one when none is returned
        if token_data.get('refresh_token'):
            self.refresh_token = token_data['refresh_token']

        expires_in = token_data.get('expires_in', 10800)
        self.token_expires_at = time.time() + expires_in - self.EXPIRY_MARGIN

        scope = token_data.get('scope', '')
        if isinstance(scope, list):
            scope = ' '.join(scope)

        conn = sqlite3.connect(self.db_path)
        conn.execute("""
            INSERT OR REPLACE INTO netatmo_cloud_tokens
            (id, client_id, access_token, refresh_token, token_type, expires_at, scope, updated_at)
            VALUES (1, ?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
        """, (
            self.client_id,
            self.access_token,
            self.refresh_token,
            token_data.get('token_type', 'Bearer'),
            self.token_expires_at,
            scope,
        ))
        conn.commit()
        conn.close()

        logger.info(f"Saved Netatmo tokens (access token expires in {expires_in}s)")

    async def _request_token(self, form: Dict[str, str]) -> Dict[str, Any]:
        """POST a token grant and return the decoded response.

        Raises:
            NetatmoAuthError: If the grant is rejected or the endpoint is unreachable
        """
        data = dict(form, client_id=self.client_id, client_secret=self.client_secret)
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.AUTH_URL, data=data) as resp:
                    if resp.status != 200:
                        error_text = await resp.text()
                        raise NetatmoAuthError(
                            f"Token request ({form['grant_type']}) failed: HTTP {resp.status} - {error_text}"
                        )
                    return await resp.json(content_type=None)
        except aiohttp.ClientError as e:
            raise NetatmoAuthError(f"Token request ({form['grant_type']}) failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise NetatmoAuthError(f"Token request ({form['grant_type']}) timed out") from e
        except ValueError as e:
            raise NetatmoAuthError(f"Token endpoint returned invalid JSON: {e}") from e

    async def refresh_access_token(self):
        """Exchange the refresh token for a new access token."""
        token_data = await self._request_token({
            'grant_type': 'refresh_token',
            'refresh_token': self.refresh_token,
        })
        self._save_tokens(token_data)
        logger.info("Refreshed Netatmo access token")

    async def authenticate(self):
        """Obtain a token with the resource owner password grant."""
        token_data = await self._request_token({
            'grant_type': 'password',
            'username': self.username,
            'password': self.password,
            'scope': self.SCOPES,
        })
        self._save_tokens(token_data)
        logger.info(f"Authenticated with Netatmo as {self.username}")

    def can_authenticate(self) -> bool:
        """Check if any grant is possible with the configured credentials."""
        return bool(self.refresh_token or (self.username and self.password))

    def has_valid_access_token(self) -> bool:
        """Check if we have a valid access token right now."""
        return (
            self.access_token is not None
            and self.token_expires_at is not None
            and time.time() < self.token_expires_at
        )

    async def ensure_authenticated(self):
        """
        Ensure we have a valid access token.

        Token lifetime strategy:
        - Use the access token until it expires
        - Refresh it with the refresh token when one is known
        - Fall back to the password grant if the refresh is rejected

        Raises:
            NetatmoAuthError: If no grant succeeds
        """
        if self.has_valid_access_token():
            return

        if self.refresh_token:
            try:
                await self.refresh_access_token()
                return
            except NetatmoAuthError as e:
                if not (self.username and self.password):
                    raise
                logger.warning(f"Token refresh failed, trying password grant: {e}")

        if self.username and self.password:
            await self.authenticate()
            return

        raise NetatmoAuthError("No Netatmo refresh token or username/password configured")

    async def get_headers(self) -> Dict[str, str]:
        """
        Get authenticated request headers.

        Returns:
            Headers dict with Authorization bearer token
        """
        await self.ensure_authenticated()
        return {'Authorization': f'Bearer {self.access_token}'}

    def invalidate_access_token(self):
        """Forget the access token so the next call refreshes it."""
        self.access_token = None
        self.token_expires_at = None

    async def _get(self, endpoint: str, params: Optional[Dict[str, str]] = None) -> Any:
        """GET an API endpoint and return its unwrapped body.

        Raises:
            NetatmoAuthError: On 401/403 or when no token can be obtained
            NetatmoAPIError: On transport errors, other HTTP errors or a missing body
        """
        headers = await self.get_headers()
        url = f"{self.API_BASE_URL}/{endpoint}"
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                logger.debug(f"Fetching {url} {params or ''}")
                async with session.get(url, params=params, headers=headers) as resp:
                    if resp.status in (401, 403):
                        error_text = await resp.text()
                        self.invalidate_access_token()
                        raise NetatmoAuthError(f"'{endpoint}' rejected the access token: HTTP {resp.status} - {error_text}")
                    if resp.status != 200:
                        error_text = await resp.text()
                        raise NetatmoAPIError(f"Failed to fetch '{endpoint}': HTTP {resp.status} - {error_text}")
                    payload = await resp.json(content_type=None)
        except aiohttp.ClientError as e:
            raise NetatmoAPIError(f"Error fetching '{endpoint}': {e}") from e
        except asyncio.TimeoutError as e:
            raise NetatmoAPIError(f"Timeout fetching '{endpoint}'") from e
        except ValueError as e:
            raise NetatmoAPIError(f"Could not decode JSON from '{endpoint}': {e}") from e

        return unwrap_body(payload, endpoint)

    # ========================================================================
    # Netatmo Energy API Methods
    # ========================================================================

    async def get_homes_data(self) -> List[Dict[str, Any]]:
        """
        Get the home list with nested rooms and modules.

        Returns:
            List of raw home dicts
        """
        body = await self._get('homesdata')
        if not isinstance(body, dict):
            raise NetatmoAPIError(f"Unexpected homesdata body: {body!r}")
        homes = body.get('homes') or []
        if not isinstance(homes, list):
            raise NetatmoAPIError(f"Unexpected homesdata homes: {homes!r}")
        return homes

    async def get_home_status(self, home_id: str) -> Dict[str, Any]:
        """
        Get the live status of one home.

        Args:
            home_id: Netatmo home id

        Returns:
            Raw home dict (rooms and modules carry live fields)
        """
        body = await self._get('homestatus', {'home_id': home_id})
        if not isinstance(body, dict) or not isinstance(body.get('home'), dict):
            raise NetatmoAPIError(f"Unexpected homestatus body for {home_id}: {body!r}")
        return body['home']

    async def get_measure(self, device_id: str, module_id: str, date_begin: int, date_end: int) -> List[Any]:
        """
        Get the 5 minute boiler/temperature series of a module.

        Args:
            device_id: Id of the relay the module is attached to
            module_id: Id of the module
            date_begin: Window start (epoch seconds)
            date_end: Window end (epoch seconds)

        Returns:
            Raw list of columnar records, see measure.parse_measure_points
        """
        body = await self._get('getmeasure', {
            'device_id': device_id,
            'module_id': module_id,
            'type': ','.join(MEASURE_TYPES),
            'scale': '5min',
            'real_time': 'true',
            'date_begin': str(date_begin),
            'date_end': str(date_end),
        })
        if body is None:
            return []
        if not isinstance(body, list):
            raise NetatmoAPIError(f"Unexpected getmeasure body for {module_id}: {body!r}")
        return body
