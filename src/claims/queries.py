"""Read use cases over the claim store."""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from ..storage.claim_store import ClaimFilters, ClaimStore
from .errors import NotFoundError
from .schema import Claim

logger = logging.getLogger(__name__)


@dataclass
class ClaimQueryResult:
    """Claims matching a filtered read and the sum of their amounts."""
    claims: List[Claim] = field(default_factory=list)
    total_amount: int = 0

    def to_dict(self) -> dict:
        """Convert to the API response shape."""
        return {
            "claims": [claim.serialize() for claim in self.claims],
            "totalAmount": self.total_amount,
        }


async def get_claim_by_id(store: ClaimStore, claim_id: str) -> Claim:
    """
    Fetch a single claim.

    Raises:
        NotFoundError: No claim has this ID
    """
    claim = await store.find_by_id(claim_id)
    if claim is None:
        raise NotFoundError(f"Claim with ID '{claim_id}' not found")
    return claim


async def get_claims(
    store: ClaimStore,
    member_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> ClaimQueryResult:
    """
    List claims by member and/or service date range.

    Args:
        store: Claim store to read from
        member_id: Only this member's claims
        start_date: Earliest service date (inclusive)
        end_date: Latest service date (inclusive)

    Returns:
        ClaimQueryResult, newest service date first
    """
    filters = ClaimFilters(
        member_id=member_id or None,
        start_date=start_date,
        end_date=end_date,
    )
    claims = await store.find_with_filters(filters)
    total = sum(claim.total_amount for claim in claims)

    logger.info(f"Claims query {filters}: {len(claims)} claim(s), total={total}")
    return ClaimQueryResult(claims=claims, total_amount=total)
