"""Gallery index filters and ordering."""

from __future__ import annotations

import enum
from abc import ABC
from dataclasses import dataclass


class FilterKind(enum.Enum):
    NAME = "name"
    CATEGORY = "category"


@dataclass(frozen=True)
class Filter:
    """Restricts an index listing by name or category."""

    kind: FilterKind
    value: str


class OrderBy(enum.Enum):
    TIME_DESC = "time_desc"
    CLICK_DESC = "click_desc"


class Indexer(ABC):
    """A source that lists galleries matching filters."""