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

"""Snapshot of the last known home/module state and the measurement watermark."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

from .models import Home, MeasurePoint, Module, ModuleRecord

logger = logging.getLogger(__name__)

# How far back the very first getmeasure call looks
DEFAULT_INITIAL_WINDOW = 300


@dataclass
class ModuleEntry:
    module: Module
    last_measure_point: Optional[MeasurePoint] = None


@dataclass
class HomeEntry:
    home: Home
    modules: Dict[str, ModuleEntry] = field(default_factory=dict)


class SnapshotCache:
    """Durable per-home state bridging successive scrape passes.

    Single-writer: only one scrape pass may call ``update`` at a time; the
    owner serializes passes. Readers (the metric emitter) never mutate it.
    Entries live for the lifetime of the process.
    """

    def __init__(self, initial_window: int = DEFAULT_INITIAL_WINDOW):
        self.initial_window = initial_window
        self.entries: Dict[str, HomeEntry] = {}
        self.last_measure: Optional[int] = None  # watermark, epoch seconds

    def window_start(self, now: int) -> int:
        """Start of the next measurement window, initializing the watermark on first use."""
        if self.last_measure is None:
            self.last_measure = now - self.initial_window
            logger.debug(f"Initialized measurement watermark to {self.last_measure}")
        return self.last_measure

    def update_homes(self, homes: Iterable[Home]):
        """Create or replace the entry of every polled home, with or without modules."""
        for home in homes:
            self._home_entry(home)

    def _home_entry(self, home: Home) -> HomeEntry:
        entry = self.entries.get(home.id)
        if entry is None:
            entry = HomeEntry(home=home)
            self.entries[home.id] = entry
            logger.info(f"Tracking new home {home.id} ({home.name})")
        else:
            entry.home = home
        return entry

    def update(self, records: Iterable[ModuleRecord], poll_time: int) -> int:
        """
        Store the records of one successful poll.

        Home and module records are replaced with the fresh ones. A module's
        last measure point is replaced only when the poll returned points for
        it. The watermark advances to ``poll_time`` when at least one module
        had points and never moves backwards.

        Args:
            records: Records returned by NetatmoCloudSync.collect
            poll_time: End of the polled window (epoch seconds)

        Returns:
            Number of modules that received a new measure point
        """
        measured = 0
        for record in records:
            entry = self._home_entry(record.home)

            module_entry = entry.modules.get(record.module.id)
            if module_entry is None:
                module_entry = ModuleEntry(module=record.module)
                entry.modules[record.module.id] = module_entry
            else:
                module_entry.module = record.module

            latest = record.latest
            if latest is not None:
                module_entry.last_measure_point = latest
                measured += 1

        if measured:
            if self.last_measure is None or poll_time > self.last_measure:
                self.last_measure = poll_time
        else:
            logger.debug(f"No new measurements, watermark stays at {self.last_measure}")

        return measured

    def module_count(self) -> int:
        return sum(len(entry.modules) for entry in self.entries.values())
