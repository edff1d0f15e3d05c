"""
Tests for the claim store.

Verifies that ClaimStore:
- Writes one item per claim with all index keys
- Overwrites on save with an existing claim ID
- Serves member and month-bucket reads sorted by service date
- Propagates backend failures unchanged
"""

import asyncio
from datetime import date

import pytest

from src.claims.errors import NotFoundError
from src.claims.queries import get_claim_by_id, get_claims
from src.claims.schema import Claim, ClaimInput
from src.storage.backends import InMemoryBackend
from src.storage.claim_store import ClaimFilters, ClaimStore
from src.storage.keys import MONTH_INDEX, primary_key

TODAY = date(2024, 6, 15)


# ============================================================================
# Helper Functions
# ============================================================================


def make_claim(claim_id: str, member_id: str = "MBR001", service_date: str = "2024-01-15",
               total_amount: int = 10000, diagnosis_codes: str = "R51",
               provider: str = "HealthCare Inc") -> Claim:
    return Claim.create(ClaimInput(
        claim_id=claim_id,
        member_id=member_id,
        provider=provider,
        service_date=service_date,
        total_amount=total_amount,
        diagnosis_codes=diagnosis_codes,
    ))


class RecordingBackend(InMemoryBackend):
    """In-memory backend that records every query call."""

    def __init__(self):
        super().__init__()
        self.queries = []

    async def query(self, table, partition_value, index=None, sort_range=None, ascending=True):
        self.queries.append((index, partition_value, sort_range))
        return await super().query(table, partition_value, index, sort_range, ascending)


class BackendUnavailable(Exception):
    pass


class FailingBackend(InMemoryBackend):
    """Backend whose reads fail for one partition."""

    def __init__(self, failing_partition: str):
        super().__init__()
        self.failing_partition = failing_partition

    async def query(self, table, partition_value, index=None, sort_range=None, ascending=True):
        if partition_value == self.failing_partition:
            raise BackendUnavailable(f"timeout reading {partition_value}")
        return await super().query(table, partition_value, index, sort_range, ascending)

    async def get(self, table, key):
        raise BackendUnavailable("connection refused")


class GatedBackend(InMemoryBackend):
    """
    Backend whose queries only complete once a given number are in flight.

    Queries issued one after another never reach the gate and time out.
    """

    def __init__(self, expected_queries: int, timeout: float = 2.0):
        super().__init__()
        self.expected_queries = expected_queries
        self.timeout = timeout
        self.in_flight = 0
        self.max_in_flight = 0
        self._gate = None

    async def query(self, table, partition_value, index=None, sort_range=None, ascending=True):
        if self._gate is None:
            self._gate = asyncio.Event()
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        if self.in_flight >= self.expected_queries:
            self._gate.set()
        try:
            await asyncio.wait_for(self._gate.wait(), timeout=self.timeout)
            return await super().query(table, partition_value, index, sort_range, ascending)
        finally:
            self.in_flight -= 1


class StallingBackend(InMemoryBackend):
    """Backend where one partition fails and every other query hangs."""

    def __init__(self, failing_partition: str):
        super().__init__()
        self.failing_partition = failing_partition
        self.cancelled = []

    async def query(self, table, partition_value, index=None, sort_range=None, ascending=True):
        await asyncio.sleep(0)
        if partition_value == self.failing_partition:
            raise BackendUnavailable(f"timeout reading {partition_value}")
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            self.cancelled.append(partition_value)
            raise
        return []


def run(coro):
    return asyncio.run(coro)


async def seed(store: ClaimStore, *claims: Claim):
    for claim in claims:
        await store.save(claim)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def backend():
    return RecordingBackend()


@pytest.fixture
def store(backend):
    return ClaimStore(backend, today=lambda: TODAY)


# ============================================================================
# Test: Save and Find by ID
# ============================================================================


class TestSaveAndFindById:
    """Test point writes and reads."""

    def test_save_writes_fields_and_keys(self, store, backend):
        """One item holds the claim record plus all eight key attributes."""
        run(store.save(make_claim("CLM001")))

        item = run(backend.get("Claims", primary_key("CLM001")))
        assert item == {
            "claimId": "CLM001",
            "memberId": "MBR001",
            "provider": "HealthCare Inc",
            "serviceDate": "2024-01-15",
            "totalAmount": 10000,
            "diagnosisCodes": "R51",
            "PK": "CLAIM#CLM001",
            "SK": "CLAIM#CLM001",
            "GSI1PK": "MEMBER#MBR001",
            "GSI1SK": "DATE#2024-01-15#CLAIM#CLM001",
            "GSI2PK": "DATE#2024-01-15",
            "GSI2SK": "DATE#2024-01-15#CLAIM#CLM001",
            "GSI3PK": "MONTH#2024-01",
            "GSI3SK": "DATE#2024-01-15#CLAIM#CLM001",
        }

    def test_find_by_id_round_trip(self, store):
        claim = make_claim("CLM001", diagnosis_codes="Z00.00;R51;E11.9")
        run(store.save(claim))

        assert run(store.find_by_id("CLM001")) == claim

    def test_round_trip_year_below_1000(self, store, backend):
        claim = make_claim("C1", service_date="0999-01-15")
        run(store.save(claim))

        assert run(store.find_by_id("C1")) == claim
        item = run(backend.get("Claims", primary_key("C1")))
        assert item["serviceDate"] == "0999-01-15"
        assert item["GSI3PK"] == "MONTH#0999-01"

    def test_find_by_id_missing_returns_none(self, store):
        assert run(store.find_by_id("NOPE")) is None

    def test_find_by_id_is_case_sensitive(self, store):
        run(store.save(make_claim("CLM001")))

        assert run(store.find_by_id("clm001")) is None

    def test_save_overwrites_existing_claim(self, store, backend):
        """Last writer wins; no field of the old item survives."""
        run(store.save(make_claim("CLM001", member_id="MBR001", service_date="2024-01-15",
                                  total_amount=100, diagnosis_codes="R51")))
        run(store.save(make_claim("CLM001", member_id="MBR002", service_date="2024-02-20",
                                  total_amount=999, diagnosis_codes="", provider="Other")))

        claim = run(store.find_by_id("CLM001"))
        assert claim.member_id == "MBR002"
        assert claim.provider == "Other"
        assert claim.service_date == date(2024, 2, 20)
        assert claim.total_amount == 999
        assert claim.diagnosis_codes == []
        assert backend.count("Claims") == 1

    def test_backend_failure_propagates(self):
        store = ClaimStore(FailingBackend("MONTH#2024-01"))

        with pytest.raises(BackendUnavailable, match="connection refused"):
            run(store.find_by_id("CLM001"))


# ============================================================================
# Test: Member Queries
# ============================================================================


class TestFindByMember:
    """Test reads through the member index."""

    @pytest.fixture(autouse=True)
    def claims(self, store):
        run(seed(
            store,
            make_claim("C1", "M1", "2024-01-10"),
            make_claim("C2", "M1", "2024-03-05"),
            make_claim("C3", "M1", "2024-02-20"),
            make_claim("C4", "M2", "2024-02-21"),
            make_claim("C5", "M1", "2024-03-31"),
        ))

    def test_all_claims_of_member_newest_first(self, store):
        claims = run(store.find_with_filters(ClaimFilters(member_id="M1")))

        assert [c.claim_id for c in claims] == ["C5", "C2", "C3", "C1"]

    def test_member_with_date_range(self, store):
        """Both bounds are inclusive, including every claim on the end date."""
        claims = run(store.find_with_filters(ClaimFilters(
            member_id="M1",
            start_date=date(2024, 2, 20),
            end_date=date(2024, 3, 31),
        )))

        assert [c.claim_id for c in claims] == ["C5", "C2", "C3"]
        assert all(c.member_id == "M1" for c in claims)

    def test_member_with_start_only(self, store):
        claims = run(store.find_with_filters(ClaimFilters(member_id="M1", start_date=date(2024, 3, 1))))

        assert [c.claim_id for c in claims] == ["C5", "C2"]

    def test_member_with_end_only(self, store):
        claims = run(store.find_with_filters(ClaimFilters(member_id="M1", end_date=date(2024, 2, 20))))

        assert [c.claim_id for c in claims] == ["C3", "C1"]

    def test_member_query_uses_single_index_query(self, store, backend):
        run(store.find_with_filters(ClaimFilters(member_id="M1", start_date=date(2024, 1, 1))))

        assert len(backend.queries) == 1
        index, partition, sort_range = backend.queries[0]
        assert (index, partition) == ("GSI1", "MEMBER#M1")
        assert sort_range.lower == "DATE#2024-01-01#"
        assert sort_range.upper is None

    def test_unknown_member(self, store):
        assert run(store.find_with_filters(ClaimFilters(member_id="M9"))) == []


# ============================================================================
# Test: Month Bucket Fan-out
# ============================================================================


class TestMonthBucketQueries:
    """Test date-range reads through the month index."""

    @pytest.fixture(autouse=True)
    def claims(self, store):
        run(seed(
            store,
            make_claim("C1", "M1", "2024-01-05"),
            make_claim("C2", "M2", "2024-01-20"),
            make_claim("C3", "M3", "2024-02-14"),
            make_claim("C4", "M1", "2024-03-10"),
            make_claim("C5", "M2", "2024-03-25"),
            make_claim("C6", "M3", "2023-12-31"),
            make_claim("C7", "M3", "2023-05-01"),
        ))

    def test_three_month_range_issues_three_queries(self, store, backend):
        claims = run(store.find_with_filters(ClaimFilters(
            start_date=date(2024, 1, 10),
            end_date=date(2024, 3, 20),
        )))

        assert [c.claim_id for c in claims] == ["C4", "C3", "C2"]
        assert sorted(partition for _, partition, _ in backend.queries) == [
            "MONTH#2024-01", "MONTH#2024-02", "MONTH#2024-03",
        ]
        assert all(index == MONTH_INDEX for index, _, _ in backend.queries)

    def test_each_month_restricted_to_its_part_of_range(self, store, backend):
        run(store.find_with_filters(ClaimFilters(
            start_date=date(2024, 1, 10),
            end_date=date(2024, 3, 20),
        )))

        ranges = {partition: (r.lower, r.upper) for _, partition, r in backend.queries}
        assert ranges["MONTH#2024-01"] == ("DATE#2024-01-10#", "DATE#2024-01-31#\uffff")
        assert ranges["MONTH#2024-02"] == ("DATE#2024-02-01#", "DATE#2024-02-29#\uffff")
        assert ranges["MONTH#2024-03"] == ("DATE#2024-03-01#", "DATE#2024-03-20#\uffff")

    def test_range_across_year_boundary(self, store):
        claims = run(store.find_with_filters(ClaimFilters(
            start_date=date(2023, 12, 1),
            end_date=date(2024, 1, 10),
        )))

        assert [c.claim_id for c in claims] == ["C1", "C6"]

    def test_start_date_only_runs_until_today(self, store, backend):
        claims = run(store.find_with_filters(ClaimFilters(start_date=date(2024, 3, 1))))

        assert [c.claim_id for c in claims] == ["C5", "C4"]
        assert len(backend.queries) == 4  # March through June

    def test_end_date_only_uses_lookback_window(self, store):
        """Missing start defaults to twelve months before today."""
        claims = run(store.find_with_filters(ClaimFilters(end_date=date(2024, 1, 31))))

        assert [c.claim_id for c in claims] == ["C2", "C1", "C6"]

    def test_no_filters_returns_last_twelve_months(self, store, backend):
        claims = run(store.find_with_filters())

        assert [c.claim_id for c in claims] == ["C5", "C4", "C3", "C2", "C1", "C6"]
        assert len(backend.queries) == 13  # 2023-06 through 2024-06

    def test_lookback_is_configurable(self):
        store = ClaimStore(InMemoryBackend(), default_lookback_months=3, today=lambda: TODAY)
        run(seed(
            store,
            make_claim("C1", service_date="2024-01-05"),
            make_claim("C8", service_date="2024-04-10"),
        ))

        claims = run(store.find_with_filters())

        assert [c.claim_id for c in claims] == ["C8"]

    def test_empty_range(self, store, backend):
        claims = run(store.find_with_filters(ClaimFilters(
            start_date=date(2024, 4, 1),
            end_date=date(2024, 3, 1),
        )))

        assert claims == []
        assert backend.queries == []

    def test_failed_month_query_fails_whole_read(self):
        store = ClaimStore(FailingBackend("MONTH#2024-02"), today=lambda: TODAY)

        with pytest.raises(BackendUnavailable, match="MONTH#2024-02"):
            run(store.find_with_filters(ClaimFilters(
                start_date=date(2024, 1, 1),
                end_date=date(2024, 3, 31),
            )))

    def test_month_queries_run_concurrently(self):
        """All month queries are in flight at the same time."""
        backend = GatedBackend(expected_queries=3)
        store = ClaimStore(backend, today=lambda: TODAY)
        run(seed(
            store,
            make_claim("C1", service_date="2024-01-05"),
            make_claim("C2", service_date="2024-02-14"),
            make_claim("C3", service_date="2024-03-10"),
        ))

        claims = run(store.find_with_filters(ClaimFilters(
            start_date=date(2024, 1, 1),
            end_date=date(2024, 3, 31),
        )))

        assert [c.claim_id for c in claims] == ["C3", "C2", "C1"]
        assert backend.max_in_flight == 3

    def test_failed_month_query_cancels_the_others(self):
        """A failing month stops the sibling queries before the error surfaces."""
        backend = StallingBackend("MONTH#2024-02")
        store = ClaimStore(backend, today=lambda: TODAY)

        async def read_then_inspect():
            with pytest.raises(BackendUnavailable):
                await store.find_with_filters(ClaimFilters(
                    start_date=date(2024, 1, 1),
                    end_date=date(2024, 3, 31),
                ))
            return sorted(backend.cancelled)

        assert run(read_then_inspect()) == ["MONTH#2024-01", "MONTH#2024-03"]


# ============================================================================
# Test: Read Use Cases
# ============================================================================


class TestQueries:
    """Test get_claim_by_id() and get_claims()."""

    def test_get_claim_by_id(self, store):
        run(store.save(make_claim("CLM001")))

        assert run(get_claim_by_id(store, "CLM001")).claim_id == "CLM001"

    def test_get_claim_by_id_not_found(self, store):
        with pytest.raises(NotFoundError) as exc_info:
            run(get_claim_by_id(store, "CLM404"))

        error = exc_info.value
        assert str(error) == "Claim with ID 'CLM404' not found"
        assert error.code == "NOT_FOUND"
        assert error.status_code == 404
        assert error.to_dict() == {
            "error": "NotFoundError",
            "message": "Claim with ID 'CLM404' not found",
            "code": "NOT_FOUND",
        }

    def test_get_claims_sums_amounts(self, store):
        run(seed(
            store,
            make_claim("C1", "M1", "2024-01-10", total_amount=12500),
            make_claim("C2", "M1", "2024-01-12", total_amount=8999),
            make_claim("C3", "M2", "2024-01-12", total_amount=100),
        ))

        result = run(get_claims(store, member_id="M1"))

        assert [c.claim_id for c in result.claims] == ["C2", "C1"]
        assert result.total_amount == 21499
        assert result.to_dict()["totalAmount"] == 21499
        assert result.to_dict()["claims"][0]["claimId"] == "C2"

    def test_get_claims_empty(self, store):
        result = run(get_claims(store, start_date=date(2020, 1, 1), end_date=date(2020, 1, 31)))

        assert result.claims == []
        assert result.total_amount == 0
