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

"""Netatmo Exporter - owns the snapshot cache and runs scrape passes."""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Info, generate_latest

from .__version__ import __version__
from .metrics import SnapshotCollector
from .state import DEFAULT_INITIAL_WINDOW, SnapshotCache
from .sync import NetatmoCloudSync

logger = logging.getLogger(__name__)

DEFAULT_SCRAPE_TIMEOUT = 30.0


class NetatmoExporter:
    """Pull-driven exporter: every scrape runs one collect pass, then renders the cache."""

    def __init__(
        self,
        cloud_api,
        cache: Optional[SnapshotCache] = None,
        scrape_timeout: float = DEFAULT_SCRAPE_TIMEOUT,
        initial_window: int = DEFAULT_INITIAL_WINDOW,
    ):
        self.cloud_api = cloud_api
        self.sync = NetatmoCloudSync(cloud_api)
        self.cache = cache if cache is not None else SnapshotCache(initial_window)
        self.scrape_timeout = scrape_timeout

        # Serializes passes; the cache has a single writer
        self.scrape_lock = asyncio.Lock()

        self.up = False
        self.last_scrape: Optional[float] = None
        self.last_success: Optional[float] = None
        self.last_duration: Optional[float] = None
        self.last_error: Optional[str] = None

        self.registry = CollectorRegistry()
        self.registry.register(SnapshotCollector(self))
        self.build_info = Info("netatmo_exporter_build", "Build information of the netatmo exporter", registry=self.registry)
        self.build_info.info({"version": __version__})

    async def scrape(self) -> bool:
        """
        Run one collect pass and fold it into the cache.

        Never raises: any failure marks the exporter down and leaves the
        cache untouched.

        Returns:
            True if the pass succeeded
        """
        async with self.scrape_lock:
            return await self._scrape_locked()

    async def scrape_and_render(self) -> bytes:
        """Run one pass and render its exposition before another pass can start."""
        async with self.scrape_lock:
            await self._scrape_locked()
            return self.exposition()

    async def _scrape_locked(self) -> bool:
        started = time.time()
        now = int(started)
        since = self.cache.window_start(now)

        try:
            homes, records = await asyncio.wait_for(self.sync.collect(since, now), self.scrape_timeout)
        except asyncio.TimeoutError:
            self._mark_failed(started, f"Scrape timed out after {self.scrape_timeout}s")
            return False
        except Exception as e:
            self._mark_failed(started, str(e) or type(e).__name__)
            return False

        self.cache.update_homes(homes)
        measured = self.cache.update(records, now)
        self.up = True
        self.last_error = None
        self.last_scrape = started
        self.last_success = started
        self.last_duration = time.time() - started
        logger.debug(
            f"Scrape finished in {self.last_duration:.2f}s: window [{since}, {now}), "
            f"{measured} new measure points"
        )
        return True

    def _mark_failed(self, started: float, error: str):
        logger.error(f"Scrape failed: {error}")
        self.up = False
        self.last_error = error
        self.last_scrape = started
        self.last_duration = time.time() - started

    def exposition(self) -> bytes:
        """Prometheus text exposition of the current snapshot."""
        return generate_latest(self.registry)

    def get_status(self) -> Dict[str, Any]:
        """Status summary for the /status endpoint."""
        return {
            'up': self.up,
            'last_scrape': self.last_scrape,
            'last_success': self.last_success,
            'last_duration': round(self.last_duration, 3) if self.last_duration is not None else None,
            'last_error': self.last_error,
            'watermark': self.cache.last_measure,
            'homes': len(self.cache.entries),
            'modules': self.cache.module_count(),
            'authenticated': self.cloud_api.has_valid_access_token(),
        }
