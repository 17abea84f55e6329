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

"""Reconcile the homesdata and homestatus views of the same entities.

Merge rule ("fill gaps"):
=========================

For every field the primary value is kept unless it is the field's zero
value ("", 0, 0.0, False, empty list, None); in that case the secondary
value is taken.

Rooms and modules are matched by id:
- present in both: merged field by field
- only in secondary: appended
- only in primary: kept unchanged

Limitation: a primary value that is legitimately zero (battery at 0%,
window closed) cannot be told apart from "not provided" and will be
overwritten by a non-zero secondary value.

All functions return new objects and leave their inputs untouched.
"""

import copy
import dataclasses
import logging
from typing import Callable, List, TypeVar

from .models import Home, Module, Room

logger = logging.getLogger(__name__)

T = TypeVar("T", Room, Module)

_COLLECTIONS = ("rooms", "modules")


def _fill_gaps(primary, secondary, skip=()):
    """Field-wise merge of two dataclass instances of the same type."""
    merged = {}
    for f in dataclasses.fields(primary):
        if f.name in skip:
            continue
        value = getattr(primary, f.name)
        if not value:
            value = getattr(secondary, f.name)
        merged[f.name] = copy.copy(value)
    return merged


def _merge_by_id(primary: List[T], secondary: List[T], merge: Callable[[T, T], T]) -> List[T]:
    if not primary:
        return [copy.deepcopy(item) for item in secondary]

    remaining = {}
    for item in secondary:
        if item.id in remaining:
            logger.warning(f"Duplicate {type(item).__name__.lower()} id {item.id} in status, keeping the last one")
        remaining[item.id] = item

    merged = []
    for item in primary:
        other = remaining.pop(item.id, None)
        if other is not None:
            merged.append(merge(item, other))
        else:
            merged.append(copy.deepcopy(item))

    # Secondary-only entries keep their original relative order
    for item in secondary:
        if item.id in remaining:
            merged.append(copy.deepcopy(remaining.pop(item.id)))

    return merged


def merge_rooms(primary: Room, secondary: Room) -> Room:
    """Merge two views of the same room."""
    return Room(**_fill_gaps(primary, secondary))


def merge_modules(primary: Module, secondary: Module) -> Module:
    """Merge two views of the same module."""
    return Module(**_fill_gaps(primary, secondary))


def merge_homes(primary: Home, secondary: Home) -> Home:
    """Merge two views of the same home, including its rooms and modules.

    Args:
        primary: Record whose non-zero fields win (the homesdata entry)
        secondary: Record filling the gaps (the homestatus entry)

    Returns:
        A new Home
    """
    if primary.id and secondary.id and primary.id != secondary.id:
        logger.warning(f"Merging home {primary.id} with status of a different home {secondary.id}")

    fields = _fill_gaps(primary, secondary, skip=_COLLECTIONS)
    fields["rooms"] = _merge_by_id(primary.rooms, secondary.rooms, merge_rooms)
    fields["modules"] = _merge_by_id(primary.modules, secondary.modules, merge_modules)
    return Home(**fields)
