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

"""Render the snapshot cache as Prometheus metric families.

Metric families:
- netatmo_up: 1 if the last scrape pass succeeded; alone when it failed
- netatmo_module_*: current module state, no timestamp
- netatmo_module_temperature / sp_temperature / sum_boiler_*: the module's
  latest measure point, exposed with the sample's own timestamp
- netatmo_room_*: current room state, no timestamp
"""

import logging
from typing import List

from prometheus_client.core import GaugeMetricFamily

from .models import Home, Module
from .state import SnapshotCache

logger = logging.getLogger(__name__)

NAMESPACE = "netatmo"

HOME_LABELS = [
    "home_id",
    "home_name",
    "home_country",
    "home_altitude",
    "home_lat",
    "home_long",
]

ROOM_LABELS = HOME_LABELS + ["room_id"]

MODULE_LABELS = ROOM_LABELS + ["bridge", "module", "type"]


def _name(subsystem: str, name: str) -> str:
    return f"{NAMESPACE}_{subsystem}_{name}" if subsystem else f"{NAMESPACE}_{name}"


def _format_coordinate(value) -> str:
    return f"{value:.8f}" if value is not None else ""


def home_label_values(home: Home) -> List[str]:
    return [
        home.id,
        home.name,
        home.country,
        str(home.altitude),
        _format_coordinate(home.latitude),
        _format_coordinate(home.longitude),
    ]


def module_label_values(home: Home, module: Module) -> List[str]:
    return home_label_values(home) + [module.room_id, module.bridge, module.id, module.type]


def render(cache: SnapshotCache, up: bool) -> List[GaugeMetricFamily]:
    """
    Build the metric families for one exposition.

    Args:
        cache: Snapshot to render (read only)
        up: Whether the last scrape pass succeeded

    Returns:
        Metric families, ``netatmo_up`` first
    """
    up_family = GaugeMetricFamily(_name("", "up"), "Status of netatmo exporter")
    up_family.add_metric([], 1.0 if up else 0.0)
    if not up:
        return [up_family]

    def module_gauge(name, documentation):
        return GaugeMetricFamily(_name("module", name), documentation, labels=MODULE_LABELS)

    def room_gauge(name, documentation):
        return GaugeMetricFamily(_name("room", name), documentation, labels=ROOM_LABELS)

    battery_level = module_gauge("battery_level", "Level of the battery")
    wifi_strength = module_gauge("wifi_strength", "WiFi signal strength")
    rf_strength = module_gauge("rf_strength", "Radio signal strength")
    boiler_status = module_gauge("boiler_status", "Status of the boiler")
    reachable_module = module_gauge("reachable", "Tells if the module is currently reachable")
    fw_revision = module_gauge("firmware_revision", "Firmware revision of module")

    temperature = module_gauge("temperature", "Measured temperature of the latest measure point")
    sp_temperature = module_gauge("sp_temperature", "Set point temperature of the latest measure point")
    sum_boiler_on = module_gauge("sum_boiler_on", "Seconds the boiler was on in the latest measure interval")
    sum_boiler_off = module_gauge("sum_boiler_off", "Seconds the boiler was off in the latest measure interval")

    reachable_room = room_gauge("reachable", "Tells if the room is currently reachable")
    open_window = room_gauge("open_window", "Tells if the window is open")
    room_temperature = room_gauge("temperature", "Measured temperature in a room")
    room_sp_temperature = room_gauge("sp_temperature", "Set point temperature of a room")

    for home_id in sorted(cache.entries):
        entry = cache.entries[home_id]
        home = entry.home

        for module_id in sorted(entry.modules):
            module_entry = entry.modules[module_id]
            module = module_entry.module
            labels = module_label_values(home, module)

            battery_level.add_metric(labels, module.battery_level)
            wifi_strength.add_metric(labels, module.wifi_strength)
            rf_strength.add_metric(labels, module.rf_strength)
            boiler_status.add_metric(labels, 1.0 if module.boiler_status else 0.0)
            reachable_module.add_metric(labels, 1.0 if module.reachable else 0.0)
            fw_revision.add_metric(labels, module.firmware_revision)

            point = module_entry.last_measure_point
            if point is not None:
                temperature.add_metric(labels, point.measured_temperature, timestamp=point.time)
                sp_temperature.add_metric(labels, point.setpoint_temperature, timestamp=point.time)
                sum_boiler_on.add_metric(labels, point.sum_boiler_on, timestamp=point.time)
                sum_boiler_off.add_metric(labels, point.sum_boiler_off, timestamp=point.time)

        for room in home.rooms:
            labels = home_label_values(home) + [room.id]
            reachable_room.add_metric(labels, 1.0 if room.reachable else 0.0)
            open_window.add_metric(labels, 1.0 if room.open_window else 0.0)
            room_temperature.add_metric(labels, room.therm_measured_temperature)
            room_sp_temperature.add_metric(labels, room.therm_setpoint_temperature)

    return [
        up_family,
        battery_level,
        wifi_strength,
        rf_strength,
        boiler_status,
        reachable_module,
        fw_revision,
        temperature,
        sp_temperature,
        sum_boiler_on,
        sum_boiler_off,
        reachable_room,
        open_window,
        room_temperature,
        room_sp_temperature,
    ]


class SnapshotCollector:
    """prometheus_client collector exposing an exporter's snapshot."""

    def __init__(self, exporter):
        self.exporter = exporter

    def collect(self):
        return iter(render(self.exporter.cache, self.exporter.up))
