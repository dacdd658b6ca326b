"""
Tests for the in-memory record store.
"""

import pytest

from gl_recon.errors import AlreadyMatched, EntityNotFound
from gl_recon.models import EntityKind, MatchMethod, MatchRecord, MatchStatus, Period


class TestInMemoryReconciliationStore:
    """Test suite for the in-memory store."""

    @pytest.mark.asyncio
    async def test_lists_by_period_in_creation_order(self, store, make_gl):
        store.add_gl_entries([make_gl("b"), make_gl("a"), make_gl("c", period="2024-05")])

        entries = await store.list_gl_entries(Period(2024, 4))

        assert [e.id for e in entries] == ["b", "a"]

    @pytest.mark.asyncio
    async def test_returns_copies(self, store, make_gl):
        store.add_gl_entries([make_gl("gl1")])

        entry = await store.get_gl_entry("gl1")
        entry.status = MatchStatus.MATCHED_MANUAL

        assert (await store.get_gl_entry("gl1")).status is MatchStatus.UNMATCHED

    @pytest.mark.asyncio
    async def test_unique_match_per_side(self, store):
        await store.create_match_record(MatchRecord("gl1", "fc1", MatchMethod.EXACT))

        with pytest.raises(AlreadyMatched):
            await store.create_match_record(MatchRecord("gl1", "fc2", MatchMethod.MANUAL))
        with pytest.raises(AlreadyMatched):
            await store.create_match_record(MatchRecord("gl2", "fc1", MatchMethod.MANUAL))

    @pytest.mark.asyncio
    async def test_delete_requires_exact_pair(self, store):
        await store.create_match_record(MatchRecord("gl1", "fc1", MatchMethod.EXACT))

        await store.delete_match_record("gl1", "fc2")
        assert await store.find_match_for_gl("gl1") is not None

        await store.delete_match_record("gl1", "fc1")
        assert await store.find_match_for_gl("gl1") is None
        assert await store.find_match_for_forecast("fc1") is None

    @pytest.mark.asyncio
    async def test_update_unknown_entity(self, store):
        with pytest.raises(EntityNotFound):
            await store.update_entity_status(
                EntityKind.FORECAST_LINE, "missing", MatchStatus.UNMATCHED, None
            )

    @pytest.mark.asyncio
    async def test_transaction_rolls_back_on_error(self, store, make_gl):
        store.add_gl_entries([make_gl("gl1")])

        with pytest.raises(RuntimeError):
            async with store.transaction():
                await store.create_match_record(MatchRecord("gl1", "fc1", MatchMethod.MANUAL))
                await store.update_entity_status(
                    EntityKind.GL_ENTRY, "gl1", MatchStatus.MATCHED_MANUAL, "fc1"
                )
                raise RuntimeError("boom")

        assert await store.list_match_records() == []
        assert (await store.get_gl_entry("gl1")).status is MatchStatus.UNMATCHED

    @pytest.mark.asyncio
    async def test_nested_transaction_joins_outer(self, store, make_gl):
        store.add_gl_entries([make_gl("gl1")])

        with pytest.raises(RuntimeError):
            async with store.transaction():
                async with store.transaction():
                    await store.set_entity_exclusion(EntityKind.GL_ENTRY, "gl1", True, "dup")
                raise RuntimeError("outer fails")

        assert not (await store.get_gl_entry("gl1")).is_excluded

    @pytest.mark.asyncio
    async def test_match_records_filtered_by_period(self, store):
        await store.create_match_record(
            MatchRecord("gl1", "fc1", MatchMethod.EXACT, period=Period(2024, 4))
        )
        await store.create_match_record(
            MatchRecord("gl2", "fc2", MatchMethod.EXACT, period=Period(2024, 5))
        )

        april = await store.list_match_records(Period(2024, 4))

        assert [r.gl_entry_id for r in april] == ["gl1"]
        assert len(await store.list_match_records()) == 2
