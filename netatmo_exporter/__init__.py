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
"""Netatmo Exporter - Prometheus metrics for Netatmo Energy homes."""

from .__version__ import __version__

__author__ = "Netatmo Exporter Contributors"
__description__ = "Prometheus exporter for Netatmo Energy homes"

from .models import Home, Room, Module, MeasurePoint, ModuleRecord
from .merge import merge_homes, merge_rooms, merge_modules
from .measure import parse_measure_points
from .cloud import NetatmoCloudAPI, NetatmoAPIError, NetatmoAuthError
from .sync import NetatmoCloudSync
from .state import SnapshotCache
from .metrics import render, SnapshotCollector
from .api import NetatmoExporter

__all__ = [
    "__version__",
    "Home",
    "Room",
    "Module",
    "MeasurePoint",
    "ModuleRecord",
    "merge_homes",
    "merge_rooms",
    "merge_modules",
    "parse_measure_points",
    "NetatmoCloudAPI",
    "NetatmoAPIError",
    "NetatmoAuthError",
    "NetatmoCloudSync",
    "SnapshotCache",
    "render",
    "SnapshotCollector",
    "NetatmoExporter",
]
