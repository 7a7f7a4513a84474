"""
SQL store tests: concurrent claims, summary upserts and error mapping.
"""

import asyncio

import pytest

from leasepool.engine.errors import StoreUnavailable
from leasepool.models import ClaimCriteria, Item, StaleCriteria
from leasepool.store.sql import SqlStore

NOW = 1_000_000


@pytest.mark.asyncio
async def test_concurrent_claim_only_one_worker(sql_store):
    """Concurrent claims against a single eligible item lease it exactly once."""
    await sql_store.insert_many([Item(id="x", pool="users")])

    results = await asyncio.gather(
        *(sql_store.claim_next(ClaimCriteria(pool="users", now=NOW)) for _ in range(5))
    )

    claimed = [item for item in results if item is not None]
    assert len(claimed) == 1
    assert claimed[0].id == "x"
    assert claimed[0].reserved_at == NOW


@pytest.mark.asyncio
async def test_concurrent_claims_hand_out_distinct_items(sql_store):
    await sql_store.insert_many([Item(id=f"user-{i}", pool="users") for i in range(3)])

    results = await asyncio.gather(
        *(sql_store.claim_next(ClaimCriteria(pool="users", now=NOW)) for _ in range(6))
    )

    claimed_ids = [item.id for item in results if item is not None]
    assert sorted(claimed_ids) == ["user-0", "user-1", "user-2"]


@pytest.mark.asyncio
async def test_claim_returns_payload(sql_store):
    await sql_store.insert_many([
        Item(id="obs", pool="queue", payload={"location": 30050, "temp": 45.1})
    ])

    item = await sql_store.claim_next(ClaimCriteria(pool="queue", now=NOW))

    assert item.payload == {"location": 30050, "temp": 45.1}


@pytest.mark.asyncio
async def test_bulk_release_stale_returns_rowcount(sql_store):
    await sql_store.insert_many([
        Item(id="a", pool="users", reserved_at=10),
        Item(id="b", pool="users", reserved_at=20),
        Item(id="c", pool="users", reserved_at=0),
    ])

    count = await sql_store.bulk_release_stale(StaleCriteria(pool="users", cutoff=15))

    assert count == 1
    assert (await sql_store.get("a")).reserved_at == 0
    assert (await sql_store.get("b")).reserved_at == 20


@pytest.mark.asyncio
async def test_update_one_rejects_identity_fields(sql_store):
    await sql_store.insert_many([Item(id="x", pool="users")])

    with pytest.raises(ValueError):
        await sql_store.update_one("x", {"pool": "queue"})


@pytest.mark.asyncio
async def test_update_and_remove_report_missing_items(sql_store):
    assert await sql_store.update_one("missing", {"reserved_at": 0}) is False
    assert await sql_store.remove_one("missing") is False


@pytest.mark.asyncio
async def test_clear_pool_leaves_other_pools(sql_store):
    await sql_store.insert_many([
        Item(id="u1", pool="users"),
        Item(id="u2", pool="users"),
        Item(id="q1", pool="queue"),
    ])

    assert await sql_store.clear_pool("users") == 2
    assert await sql_store.get("q1") is not None


@pytest.mark.asyncio
async def test_summary_increment_upserts(sql_store):
    summaries = sql_store.summaries()

    await summaries.increment(30050, 45.0, 38.0)
    await summaries.increment(30050, 55.0, 40.0)
    await summaries.increment(99999, 10.0, 5.0)

    row = await summaries.get(30050)
    assert row.avg_temp_count == 2
    assert row.avg_temp_total == pytest.approx(100.0)
    assert row.avg_dewp_total == pytest.approx(78.0)
    assert row.avg_temp == pytest.approx(50.0)
    assert (await summaries.get(99999)).avg_dewp_count == 1
    assert await summaries.get(12345) is None


@pytest.mark.asyncio
async def test_ping_succeeds_on_reachable_store(sql_store):
    await sql_store.ping()


@pytest.mark.asyncio
async def test_unreachable_store_raises_store_unavailable(tmp_path):
    """Connection failures surface as StoreUnavailable, not raw driver errors."""
    store = SqlStore.from_url(
        f"sqlite+aiosqlite:///{tmp_path / 'missing-dir' / 'nested' / 'db.sqlite'}"
    )
    try:
        with pytest.raises(StoreUnavailable) as exc_info:
            await store.ping()
        assert exc_info.value.operation == "ping"
        assert exc_info.value.code == "STORE_UNAVAILABLE"
    finally:
        await store.close()
