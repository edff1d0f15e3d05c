"""
Key derivation for the single-table claim layout.

Every claim item carries its primary key plus three secondary index key
pairs. The prefixes (CLAIM#, MEMBER#, DATE#, MONTH#) are a storage
contract: changing them orphans every item already written.

    PK / SK         CLAIM#{claimId}
    GSI1PK / GSI1SK MEMBER#{memberId}   DATE#{serviceDate}#CLAIM#{claimId}
    GSI2PK / GSI2SK DATE#{serviceDate}  DATE#{serviceDate}#CLAIM#{claimId}
    GSI3PK / GSI3SK MONTH#{YYYY-MM}     DATE#{serviceDate}#CLAIM#{claimId}
"""

from dataclasses import asdict, dataclass
from typing import Dict, Optional, Tuple

from ..utils.dates import extract_year_month

# Index names
MEMBER_INDEX = "GSI1"
DATE_INDEX = "GSI2"  # exact-date lookups, not used by the read paths
MONTH_INDEX = "GSI3"

# Partition/sort attribute names per index (None = primary key)
INDEX_KEY_ATTRIBUTES: Dict[Optional[str], Tuple[str, str]] = {
    None: ("PK", "SK"),
    MEMBER_INDEX: ("GSI1PK", "GSI1SK"),
    DATE_INDEX: ("GSI2PK", "GSI2SK"),
    MONTH_INDEX: ("GSI3PK", "GSI3SK"),
}

# Sorts after every claim id that can follow a date prefix
UPPER_SENTINEL = "\uffff"


def build_pk(claim_id: str) -> str:
    return f"CLAIM#{claim_id}"


def build_sk(claim_id: str) -> str:
    return f"CLAIM#{claim_id}"


def build_member_pk(member_id: str) -> str:
    return f"MEMBER#{member_id}"


def build_date_pk(service_date: str) -> str:
    return f"DATE#{service_date}"


def build_month_pk(service_date: str) -> str:
    """Month bucket from a ``YYYY-MM-DD`` (or ``YYYY-MM``) string."""
    return f"MONTH#{extract_year_month(service_date)}"


def build_date_sort_key(service_date: str, claim_id: str) -> str:
    """Composite sort key shared by all three secondary indexes."""
    return f"DATE#{service_date}#CLAIM#{claim_id}"


def date_range_lower(service_date: str) -> str:
    """Smallest sort key on a given day."""
    return f"DATE#{service_date}#"


def date_range_upper(service_date: str) -> str:
    """Largest sort key on a given day."""
    return f"DATE#{service_date}#{UPPER_SENTINEL}"


def primary_key(claim_id: str) -> Dict[str, str]:
    """Key dict for a point lookup."""
    return {"PK": build_pk(claim_id), "SK": build_sk(claim_id)}


@dataclass(frozen=True)
class StorageKeySet:
    """The eight key attributes written alongside every claim item."""
    PK: str
    SK: str
    GSI1PK: str
    GSI1SK: str
    GSI2PK: str
    GSI2SK: str
    GSI3PK: str
    GSI3SK: str

    def as_attributes(self) -> Dict[str, str]:
        return asdict(self)


def build_key_set(claim_id: str, member_id: str, service_date: str) -> StorageKeySet:
    """
    Derive every storage key for a claim.

    Args:
        claim_id: Claim identifier
        member_id: Member identifier
        service_date: Service date formatted ``YYYY-MM-DD``

    Returns:
        StorageKeySet (deterministic for the same inputs)
    """
    sort_key = build_date_sort_key(service_date, claim_id)
    return StorageKeySet(
        PK=build_pk(claim_id),
        SK=build_sk(claim_id),
        GSI1PK=build_member_pk(member_id),
        GSI1SK=sort_key,
        GSI2PK=build_date_pk(service_date),
        GSI2SK=sort_key,
        GSI3PK=build_month_pk(service_date),
        GSI3SK=sort_key,
    )
