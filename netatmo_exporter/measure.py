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

"""Decode the columnar getmeasure payload into measure points.

The getmeasure body is a list of records:

    [{"beg_time": 1000, "step_time": 300,
      "value": [[sum_boiler_on, sum_boiler_off, temperature, sp_temperature], ...]}]

Row ``i`` of a record is the sample at ``beg_time + i * step_time``.
"""

import logging
from typing import Any, Iterable, List, Optional

from .models import MeasurePoint

logger = logging.getLogger(__name__)

# Order of the ``type`` parameter sent to getmeasure
MEASURE_TYPES = ("sum_boiler_on", "sum_boiler_off", "temperature", "sp_temperature")

ROW_ARITY = len(MEASURE_TYPES)

# Boiler counters are seconds within a 16 bit range
_COUNTER_MAX = 0xFFFF

IDX_BOILER_ON = 0
IDX_BOILER_OFF = 1
IDX_TEMPERATURE = 2
# Setpoint mirrors the measured temperature slot
IDX_SETPOINT = IDX_TEMPERATURE


def _decode_uint(value: Any, maximum: Optional[int] = None) -> int:
    """Decode a JSON number that must be a non-negative integer."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"expected an unsigned integer, got {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"expected an unsigned integer, got {value!r}")
        value = int(value)
    if value < 0 or (maximum is not None and value > maximum):
        raise ValueError(f"value {value} out of range")
    return value


def _decode_float(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"expected a number, got {value!r}")
    return float(value)


def _field(row: List[Any], index: int, decode, default, **kwargs):
    """Decode one slot of a row, falling back to the zero value."""
    if index >= len(row) or row[index] is None:
        return default
    try:
        return decode(row[index], **kwargs)
    except ValueError as e:
        logger.debug(f"Zeroing {MEASURE_TYPES[index]} in measure row: {e}")
        return default


def decode_row(row: List[Any], timestamp: int) -> MeasurePoint:
    """Decode one value row; malformed slots are left at zero."""
    if len(row) < ROW_ARITY:
        logger.debug(f"Measure row has {len(row)} values, expected {ROW_ARITY}")

    return MeasurePoint(
        time=timestamp,
        sum_boiler_on=_field(row, IDX_BOILER_ON, _decode_uint, 0, maximum=_COUNTER_MAX),
        sum_boiler_off=_field(row, IDX_BOILER_OFF, _decode_uint, 0, maximum=_COUNTER_MAX),
        measured_temperature=_field(row, IDX_TEMPERATURE, _decode_float, 0.0),
        setpoint_temperature=_field(row, IDX_SETPOINT, _decode_float, 0.0),
    )


def parse_measure_points(records: Iterable[Any]) -> List[MeasurePoint]:
    """Decode a getmeasure body into a flat list of points.

    Records with an undecodable ``beg_time`` or ``step_time`` are dropped.
    Rows are kept even when single values are malformed.

    Args:
        records: The unwrapped getmeasure body

    Returns:
        Points of all records, in input order
    """
    points: List[MeasurePoint] = []

    for record in records:
        if not isinstance(record, dict):
            logger.warning(f"Skipping measure record that is not an object: {record!r}")
            continue

        try:
            beg_time = _decode_uint(record.get("beg_time"))
        except ValueError as e:
            logger.warning(f"Skipping measure record, invalid beg_time: {e}")
            continue
        try:
            step_time = _decode_uint(record.get("step_time"))
        except ValueError as e:
            logger.warning(f"Skipping measure record, invalid step_time: {e}")
            continue

        if "value" not in record:
            continue
        values = record["value"]
        if not isinstance(values, list):
            logger.warning(f"Skipping measure record at {beg_time}, 'value' is not a list")
            continue

        for i, row in enumerate(values):
            if not isinstance(row, list):
                logger.warning(f"Skipping measure row {i} at {beg_time}: {row!r}")
                continue
            points.append(decode_row(row, beg_time + i * step_time))

    return points
