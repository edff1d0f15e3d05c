"""
Claim storage on top of a key-value backend.

Writes each claim as one item carrying its primary key and three
secondary index keys, and serves three read patterns: by claim ID, by
member (optionally within a date range) and by date range through a
concurrent fan-out over month buckets.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Callable, List, Optional

from ..claims.schema import Claim
from ..utils.dates import format_date, generate_month_range, month_bounds, subtract_months
from .backends import InMemoryBackend, KeyValueBackend, SortKeyRange
from .keys import (
    MEMBER_INDEX,
    MONTH_INDEX,
    build_key_set,
    build_member_pk,
    build_month_pk,
    date_range_lower,
    date_range_upper,
    primary_key,
)
from .sqlite_backend import SQLiteBackend

if TYPE_CHECKING:
    from ..utils.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_TABLE_NAME = "Claims"


@dataclass(frozen=True)
class ClaimFilters:
    """Optional read filters; dates are inclusive."""
    member_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ClaimStore:
    """
    Claims persistence over an injected backend.

    The backend is owned by whoever built it; the store never opens or
    closes connections. Backend errors propagate unchanged.

    Usage:
        store = ClaimStore(InMemoryBackend())

        # Save (overwrites any claim with the same ID)
        await store.save(claim)

        # Retrieve
        claim = await store.find_by_id("CLM001")

        # Filtered reads, newest service date first
        claims = await store.find_with_filters(ClaimFilters(member_id="MBR001"))
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        table_name: str = DEFAULT_TABLE_NAME,
        default_lookback_months: int = 12,
        today: Callable[[], date] = date.today,
    ):
        """
        Initialize the claim store.

        Args:
            backend: Backing key-value store
            table_name: Table holding the claim items
            default_lookback_months: Date-range window used when no start date is given
            today: Clock used for default date bounds
        """
        self.backend = backend
        self.table_name = table_name
        self.default_lookback_months = default_lookback_months
        self._today = today

    async def save(self, claim: Claim) -> None:
        """
        Save a claim with all of its index keys.

        Replaces any stored item with the same claim ID (last writer wins).
        """
        record = claim.serialize()
        keys = build_key_set(record["claimId"], record["memberId"], record["serviceDate"])
        item = {**record, **keys.as_attributes()}

        logger.debug(f"Saving claim {claim.claim_id} ({keys.GSI3PK})")
        await self.backend.put(self.table_name, item)

    async def find_by_id(self, claim_id: str) -> Optional[Claim]:
        """
        Retrieve a claim by ID.

        Returns:
            Claim or None if not found
        """
        item = await self.backend.get(self.table_name, primary_key(claim_id))
        if item is None:
            return None
        return Claim.deserialize(item)

    async def find_with_filters(self, filters: Optional[ClaimFilters] = None) -> List[Claim]:
        """
        List claims matching the filters, newest service date first.

        A member filter reads that member's partition. Otherwise the date
        range (defaulting to the lookback window ending today) is split
        into month buckets that are queried concurrently; any failed
        sub-query fails the whole call.

        Args:
            filters: Optional member and date filters

        Returns:
            List of Claim objects sorted by service date, descending
        """
        filters = filters or ClaimFilters()

        if filters.member_id:
            items = await self._query_by_member(filters)
        else:
            items = await self._query_by_month_buckets(filters.start_date, filters.end_date)

        claims = [Claim.deserialize(item) for item in items]
        return sorted(claims, key=lambda c: c.service_date, reverse=True)

    async def _query_by_member(self, filters: ClaimFilters) -> List[dict]:
        sort_range = None
        if filters.start_date or filters.end_date:
            sort_range = SortKeyRange(
                lower=date_range_lower(format_date(filters.start_date)) if filters.start_date else None,
                upper=date_range_upper(format_date(filters.end_date)) if filters.end_date else None,
            )

        logger.debug(f"Querying {MEMBER_INDEX} for member {filters.member_id}: {sort_range}")
        return await self.backend.query(
            self.table_name,
            build_member_pk(filters.member_id),
            index=MEMBER_INDEX,
            sort_range=sort_range,
            ascending=False,
        )

    async def _query_by_month_buckets(
        self,
        start_date: Optional[date],
        end_date: Optional[date],
    ) -> List[dict]:
        today = self._today()
        end = end_date or today
        start = start_date or subtract_months(today, self.default_lookback_months)

        months = generate_month_range(start, end)
        logger.debug(
            f"Fanning out {len(months)} {MONTH_INDEX} queries "
            f"for {format_date(start)}..{format_date(end)}"
        )

        tasks = [
            asyncio.ensure_future(self._query_month(month, start, end))
            for month in months
        ]
        try:
            results = await asyncio.gather(*tasks)
        except Exception:
            # Stop the sibling queries and collect their outcomes before re-raising
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return [item for items in results for item in items]

    async def _query_month(self, month: str, start: date, end: date) -> List[dict]:
        """Query one month bucket, restricted to the part of [start, end] inside it."""
        first_day, last_day = month_bounds(month)
        sort_range = SortKeyRange(
            lower=date_range_lower(format_date(max(start, first_day))),
            upper=date_range_upper(format_date(min(end, last_day))),
        )
        return await self.backend.query(
            self.table_name,
            build_month_pk(month),
            index=MONTH_INDEX,
            sort_range=sort_range,
            ascending=False,
        )


# =============================================================================
# Construction
# =============================================================================


def create_backend(settings: "Settings") -> KeyValueBackend:
    """Build the backend named by configuration."""
    if settings.storage_backend == "memory":
        return InMemoryBackend()
    return SQLiteBackend(settings.sqlite_path)


def create_claim_store(
    settings: "Settings",
    backend: Optional[KeyValueBackend] = None,
) -> ClaimStore:
    """
    Build a claim store from configuration.

    The caller keeps ownership of the backend; pass one in to share it
    between stores or to substitute a test double.
    """
    backend = backend or create_backend(settings)
    logger.info(
        f"Claim store ready: backend={type(backend).__name__}, "
        f"table={settings.claims_table_name}"
    )
    return ClaimStore(
        backend,
        table_name=settings.claims_table_name,
        default_lookback_months=settings.default_lookback_months,
    )
