"""
Tests for the SQLite backing store.

Runs the claim store against a temporary database file to check that
the SQL index queries agree with the in-memory behaviour.
"""

import asyncio
from datetime import date

import pytest

from src.claims.schema import Claim, ClaimInput
from src.storage.backends import SortKeyRange
from src.storage.claim_store import ClaimFilters, ClaimStore
from src.storage.keys import MEMBER_INDEX, MONTH_INDEX, primary_key
from src.storage.sqlite_backend import SQLiteBackend


def run(coro):
    return asyncio.run(coro)


def make_claim(claim_id: str, member_id: str, service_date: str, total_amount: int = 100) -> Claim:
    return Claim.create(ClaimInput(
        claim_id=claim_id,
        member_id=member_id,
        provider="City Clinic",
        service_date=service_date,
        total_amount=total_amount,
        diagnosis_codes="R51;E11.9",
    ))


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def backend(tmp_path):
    return SQLiteBackend(tmp_path / "db" / "claims.db")


@pytest.fixture
def store(backend):
    return ClaimStore(backend, today=lambda: date(2024, 6, 15))


# ============================================================================
# Test: Backend Operations
# ============================================================================


class TestSQLiteBackend:
    """Test get/put/query against SQLite."""

    def test_creates_database_file(self, tmp_path, backend):
        assert (tmp_path / "db" / "claims.db").exists()

    def test_put_and_get(self, backend):
        item = {"PK": "CLAIM#C1", "SK": "CLAIM#C1", "claimId": "C1", "totalAmount": 5}
        run(backend.put("Claims", item))

        assert run(backend.get("Claims", primary_key("C1"))) == item
        assert run(backend.get("Claims", primary_key("C2"))) is None

    def test_tables_are_separate(self, backend):
        run(backend.put("Claims", {"PK": "CLAIM#C1", "SK": "CLAIM#C1"}))

        assert run(backend.get("Archive", primary_key("C1"))) is None
        assert backend.count("Claims") == 1
        assert backend.count("Archive") == 0

    def test_put_replaces_whole_item(self, backend):
        run(backend.put("Claims", {"PK": "CLAIM#C1", "SK": "CLAIM#C1", "GSI1PK": "MEMBER#M1", "GSI1SK": "x"}))
        run(backend.put("Claims", {"PK": "CLAIM#C1", "SK": "CLAIM#C1", "note": "new"}))

        assert run(backend.get("Claims", primary_key("C1"))) == {
            "PK": "CLAIM#C1", "SK": "CLAIM#C1", "note": "new",
        }
        assert run(backend.query("Claims", "MEMBER#M1", index=MEMBER_INDEX)) == []
        assert backend.count("Claims") == 1

    def test_query_with_range_and_order(self, store, backend):
        for claim in [
            make_claim("C1", "M1", "2024-01-10"),
            make_claim("C2", "M1", "2024-01-20"),
            make_claim("C3", "M1", "2024-01-31"),
            make_claim("C4", "M2", "2024-01-15"),
        ]:
            run(store.save(claim))

        items = run(backend.query(
            "Claims",
            "MONTH#2024-01",
            index=MONTH_INDEX,
            sort_range=SortKeyRange(lower="DATE#2024-01-15#", upper="DATE#2024-01-31#\uffff"),
            ascending=False,
        ))

        assert [item["claimId"] for item in items] == ["C3", "C2", "C4"]

    def test_unknown_index(self, backend):
        with pytest.raises(ValueError, match="Unknown index"):
            run(backend.query("Claims", "X", index="GSI9"))


# ============================================================================
# Test: Claim Store on SQLite
# ============================================================================


class TestClaimStoreOnSQLite:
    """The claim store behaves the same on SQLite as in memory."""

    @pytest.fixture(autouse=True)
    def claims(self, store):
        for claim in [
            make_claim("C1", "M1", "2024-01-05", 1000),
            make_claim("C2", "M2", "2024-02-14", 2000),
            make_claim("C3", "M1", "2024-03-31", 3000),
            make_claim("C4", "M1", "2023-04-30", 4000),
        ]:
            run(store.save(claim))

    def test_find_by_id(self, store):
        claim = run(store.find_by_id("C2"))

        assert claim == make_claim("C2", "M2", "2024-02-14", 2000)

    def test_member_filter(self, store):
        claims = run(store.find_with_filters(ClaimFilters(member_id="M1", start_date=date(2024, 1, 1))))

        assert [c.claim_id for c in claims] == ["C3", "C1"]

    def test_date_range(self, store):
        claims = run(store.find_with_filters(ClaimFilters(
            start_date=date(2024, 1, 5),
            end_date=date(2024, 3, 31),
        )))

        assert [c.claim_id for c in claims] == ["C3", "C2", "C1"]

    def test_default_window(self, store):
        """The last twelve months exclude the 2023-04-30 claim."""
        claims = run(store.find_with_filters())

        assert [c.claim_id for c in claims] == ["C3", "C2", "C1"]

    def test_data_survives_new_backend_instance(self, backend):
        reopened = ClaimStore(SQLiteBackend(backend.db_path))

        assert run(reopened.find_by_id("C3")).total_amount == 3000
