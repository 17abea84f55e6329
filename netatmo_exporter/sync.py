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

"""Collect merged homes and module measurements from the Netatmo Cloud API."""

import logging
from typing import List, Tuple

from .cloud import NetatmoAPIError
from .measure import parse_measure_points
from .merge import merge_homes
from .models import Home, MeasurePoint, Module, ModuleRecord

logger = logging.getLogger(__name__)


class NetatmoCloudSync:
    """Runs one sequential fetch cycle against the Netatmo Cloud API."""

    def __init__(self, cloud_api):
        """
        Initialize sync manager.

        Args:
            cloud_api: NetatmoCloudAPI (or any object with the same coroutines)
        """
        self.cloud_api = cloud_api

    async def fetch_homes(self) -> List[Home]:
        """
        Fetch the home list and merge each home with its live status.

        The homesdata entry is primary, the homestatus entry fills its gaps.
        A home whose status cannot be fetched is skipped for this cycle.

        Raises:
            NetatmoAPIError: If the home list cannot be fetched or decoded
        """
        raw_homes = await self.cloud_api.get_homes_data()

        homes = []
        for raw_home in raw_homes:
            try:
                home = Home.from_dict(raw_home)
            except (ValueError, AttributeError) as e:
                raise NetatmoAPIError(f"Could not decode homesdata home: {e}") from e

            try:
                raw_status = await self.cloud_api.get_home_status(home.id)
                status = Home.from_dict(raw_status)
            except NetatmoAPIError as e:
                logger.error(f"Error during get home status for {home.id}: {e}")
                continue
            except (ValueError, AttributeError) as e:
                logger.error(f"Could not decode home status for {home.id}: {e}")
                continue

            homes.append(merge_homes(home, status))

        return homes

    async def fetch_measures(self, module: Module, since: int, until: int) -> List[MeasurePoint]:
        """
        Fetch and decode the measurements of one module.

        Failures are logged and yield no points.
        """
        # A relay has no bridge; it is its own device
        device_id = module.bridge or module.id
        try:
            records = await self.cloud_api.get_measure(device_id, module.id, since, until)
        except NetatmoAPIError as e:
            logger.error(f"Error during get measure for module {module.id}: {e}")
            return []

        points = parse_measure_points(records)
        logger.debug(f"Decoded {len(points)} measure points for module {module.id}")
        return points

    async def collect(self, since: int, until: int) -> Tuple[List[Home], List[ModuleRecord]]:
        """
        Collect every module of every home with its measurements in [since, until).

        Args:
            since: Window start (epoch seconds)
            until: Window end (epoch seconds)

        Returns:
            The merged homes and one ModuleRecord per module

        Raises:
            NetatmoAPIError: If the home list cannot be fetched
        """
        homes = await self.fetch_homes()

        records = []
        for home in homes:
            for module in home.modules:
                measures = await self.fetch_measures(module, since, until)
                records.append(ModuleRecord(home=home, module=module, measures=measures))

        logger.info(
            f"Collected {len(records)} modules in {len(homes)} homes, "
            f"{sum(1 for r in records if r.measures)} with measurements"
        )
        return homes, records
