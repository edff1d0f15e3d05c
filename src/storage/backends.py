"""
Backing key-value store contract.

The claim store only needs three calls against a table: a point get, a
full-item put and a partition query with an optional sort-key range.
Implementations raise whatever their transport raises; nothing here
retries or wraps errors.
"""

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .keys import INDEX_KEY_ATTRIBUTES


@dataclass(frozen=True)
class SortKeyRange:
    """
    Inclusive sort-key condition.

    Both bounds -> BETWEEN, only lower -> >=, only upper -> <=.
    """
    lower: Optional[str] = None
    upper: Optional[str] = None

    def contains(self, sort_key: str) -> bool:
        if self.lower is not None and sort_key < self.lower:
            return False
        if self.upper is not None and sort_key > self.upper:
            return False
        return True


class KeyValueBackend(ABC):
    """Base class for backing stores."""

    @abstractmethod
    async def get(self, table: str, key: Dict[str, str]) -> Optional[dict]:
        """
        Fetch one item by primary key.

        Args:
            table: Table name
            key: ``{"PK": ..., "SK": ...}``

        Returns:
            The item, or None when absent
        """

    @abstractmethod
    async def put(self, table: str, item: dict) -> None:
        """Write an item, fully replacing any item with the same PK/SK."""

    @abstractmethod
    async def query(
        self,
        table: str,
        partition_value: str,
        index: Optional[str] = None,
        sort_range: Optional[SortKeyRange] = None,
        ascending: bool = True,
    ) -> List[dict]:
        """
        Read one partition of the table or of a secondary index.

        Args:
            table: Table name
            partition_value: Partition key value to match
            index: Secondary index name, or None for the primary key
            sort_range: Optional inclusive sort-key range
            ascending: Sort-key order of the result

        Returns:
            Matching items ordered by sort key
        """


def index_attributes(index: Optional[str]) -> Tuple[str, str]:
    """Partition/sort attribute names for an index."""
    try:
        return INDEX_KEY_ATTRIBUTES[index]
    except KeyError:
        raise ValueError(f"Unknown index: {index}") from None


class InMemoryBackend(KeyValueBackend):
    """
    Dict-based backend.

    Items are copied on the way in and out, so callers never share
    mutable state with the store.
    """

    def __init__(self):
        self._tables: Dict[str, Dict[Tuple[str, str], dict]] = {}

    async def get(self, table: str, key: Dict[str, str]) -> Optional[dict]:
        item = self._tables.get(table, {}).get((key["PK"], key["SK"]))
        return copy.deepcopy(item) if item is not None else None

    async def put(self, table: str, item: dict) -> None:
        self._tables.setdefault(table, {})[(item["PK"], item["SK"])] = copy.deepcopy(item)

    async def query(
        self,
        table: str,
        partition_value: str,
        index: Optional[str] = None,
        sort_range: Optional[SortKeyRange] = None,
        ascending: bool = True,
    ) -> List[dict]:
        pk_attr, sk_attr = index_attributes(index)
        matches = [
            item for item in self._tables.get(table, {}).values()
            if item.get(pk_attr) == partition_value
            and sk_attr in item
            and (sort_range is None or sort_range.contains(item[sk_attr]))
        ]
        matches.sort(key=lambda item: item[sk_attr], reverse=not ascending)
        return [copy.deepcopy(item) for item in matches]

    def count(self, table: str) -> int:
        """Number of items in a table."""
        return len(self._tables.get(table, {}))
