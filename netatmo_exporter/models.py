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

"""Netatmo Energy entities as returned by homesdata/homestatus/getmeasure."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def _as_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string, got {type(value).__name__}")
    return value


def _as_bool(data: Dict[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValueError(f"'{key}' must be a boolean, got {type(value).__name__}")
    return value


def _as_float(data: Dict[str, Any], key: str) -> float:
    value = data.get(key)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' must be a number, got {type(value).__name__}")
    return float(value)


def _as_int(data: Dict[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' must be a number, got {type(value).__name__}")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"'{key}' must be an integer, got {value}")
    return int(value)


def _as_list(data: Dict[str, Any], key: str) -> List[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"'{key}' must be a list, got {type(value).__name__}")
    return value


@dataclass
class Room:
    """A heating zone inside a home."""

    id: str
    name: str = ""
    reachable: bool = False
    anticipating: bool = False
    open_window: bool = False
    therm_measured_temperature: float = 0.0
    therm_setpoint_temperature: float = 0.0
    therm_setpoint_start_time: int = 0
    therm_setpoint_end_time: int = 0
    therm_setpoint_mode: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Room":
        """Create from a homesdata/homestatus room object."""
        return cls(
            id=_as_str(data, "id"),
            name=_as_str(data, "name"),
            reachable=_as_bool(data, "reachable"),
            anticipating=_as_bool(data, "anticipating"),
            open_window=_as_bool(data, "open_window"),
            therm_measured_temperature=_as_float(data, "therm_measured_temperature"),
            therm_setpoint_temperature=_as_float(data, "therm_setpoint_temperature"),
            therm_setpoint_start_time=_as_int(data, "therm_setpoint_start_time"),
            therm_setpoint_end_time=_as_int(data, "therm_setpoint_end_time"),
            therm_setpoint_mode=_as_str(data, "therm_setpoint_mode"),
        )


@dataclass
class Module:
    """A physical device: relay (bridge), thermostat or radiator valve."""

    id: str
    reachable: bool = False
    type: str = ""
    bridge: str = ""
    anticipating: bool = False
    firmware_revision: float = 0.0
    rf_strength: float = 0.0
    wifi_strength: float = 0.0
    battery_level: float = 0.0
    battery_state: str = ""
    boiler_status: bool = False
    room_id: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Module":
        """Create from a homesdata/homestatus module object."""
        return cls(
            id=_as_str(data, "id"),
            reachable=_as_bool(data, "reachable"),
            type=_as_str(data, "type"),
            bridge=_as_str(data, "bridge"),
            anticipating=_as_bool(data, "anticipating"),
            firmware_revision=_as_float(data, "firmware_revision"),
            rf_strength=_as_float(data, "rf_strength"),
            wifi_strength=_as_float(data, "wifi_strength"),
            battery_level=_as_float(data, "battery_level"),
            battery_state=_as_str(data, "battery_state"),
            boiler_status=_as_bool(data, "boiler_status"),
            room_id=_as_str(data, "room_id"),
        )


@dataclass
class Home:
    """A Netatmo installation with its rooms and modules."""

    id: str
    name: str = ""
    country: str = ""
    altitude: int = 0
    coordinates: List[float] = field(default_factory=list)
    rooms: List[Room] = field(default_factory=list)
    modules: List[Module] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Home":
        """Create from a homesdata home or the homestatus ``home`` object.

        Raises:
            ValueError: If a field carries a value of the wrong JSON type
        """
        coordinates = []
        for value in _as_list(data, "coordinates"):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"'coordinates' must hold numbers, got {value!r}")
            coordinates.append(float(value))

        return cls(
            id=_as_str(data, "id"),
            name=_as_str(data, "name"),
            country=_as_str(data, "country"),
            altitude=_as_int(data, "altitude"),
            coordinates=coordinates,
            rooms=[Room.from_dict(r) for r in _as_list(data, "rooms")],
            modules=[Module.from_dict(m) for m in _as_list(data, "modules")],
        )

    @property
    def latitude(self) -> Optional[float]:
        return self.coordinates[0] if len(self.coordinates) > 0 else None

    @property
    def longitude(self) -> Optional[float]:
        return self.coordinates[1] if len(self.coordinates) > 1 else None


@dataclass
class MeasurePoint:
    """One timestamped getmeasure sample of a module."""

    time: int
    sum_boiler_on: int = 0
    sum_boiler_off: int = 0
    measured_temperature: float = 0.0
    setpoint_temperature: float = 0.0


@dataclass
class ModuleRecord:
    """A merged module together with its home and the decoded measurements of one poll."""

    home: Home
    module: Module
    measures: List[MeasurePoint] = field(default_factory=list)

    @property
    def latest(self) -> Optional[MeasurePoint]:
        """The last point of the polled window, or None when nothing was measured."""
        return self.measures[-1] if self.measures else None
