"""Tests for VillageRepository."""

import asyncio

import pytest

from worldgrid.core import GridCell, VillageMetadata
from worldgrid.storage import GridOccupiedError, Storage


def village(slug: str, gx: int, gy: int, w: int = 1, h: int = 1, **kwargs) -> VillageMetadata:
    return VillageMetadata(
        slug=slug,
        name=kwargs.pop("name", slug),
        grid_x=gx,
        grid_y=gy,
        grid_width=w,
        grid_height=h,
        tmj_url=kwargs.pop("tmj_url", f"villages/{slug}/map.tmj"),
        tileset_base_url=f"villages/{slug}/tilesets",
        created_at=100,
        updated_at=100,
        **kwargs,
    )


class TestSaveAndGet:
    """Basic persistence."""

    async def test_get_missing(self, storage: Storage):
        assert await storage.villages.get("nope") is None

    async def test_round_trip(self, storage: Storage):
        original = village("happy-village", 0, 0, name="Happy Village")
        await storage.villages.save(original)
        assert await storage.villages.get("happy-village") == original

    async def test_record_uses_camel_case_fields(self, storage: Storage):
        await storage.villages.save(village("hahoe-village", -1, 0))
        raw = await storage.kv.hgetall("village:hahoe-village")
        assert raw["gridX"] == "-1"
        assert raw["tmjUrl"] == "villages/hahoe-village/map.tmj"
        assert await storage.kv.get("village:grid:-1,0") == "hahoe-village"
        assert "hahoe-village" in await storage.kv.smembers("villages:all")

    async def test_get_by_grid(self, storage: Storage):
        await storage.villages.save(village("happy-village", 0, 0))
        found = await storage.villages.get_by_grid(0, 0)
        assert found is not None and found.slug == "happy-village"
        assert await storage.villages.get_by_grid(5, 5) is None

    async def test_multi_cell_village_indexes_every_cell(self, storage: Storage):
        """A 2x1 village resolves from both of its cells."""
        await storage.villages.save(village("uncommon-village", -1, 1, 2, 1))
        assert (await storage.villages.get_by_grid(-1, 1)).slug == "uncommon-village"
        assert (await storage.villages.get_by_grid(0, 1)).slug == "uncommon-village"
        assert await storage.villages.get_by_grid(1, 1) is None

    async def test_tolerates_malformed_fields(self, storage: Storage):
        await storage.kv.hset("village:odd", {"slug": "odd", "gridX": "abc", "gridWidth": "0"})
        odd = await storage.villages.get("odd")
        assert odd.grid_x == 0
        assert odd.grid_width == 1


class TestOverlap:
    """Overlapping villages are refused."""

    async def test_occupied_cell_rejected(self, storage: Storage):
        await storage.villages.save(village("happy-village", 0, 0))
        with pytest.raises(GridOccupiedError) as exc_info:
            await storage.villages.save(village("intruder", -1, 0, 2, 1))

        assert exc_info.value.cell == GridCell(0, 0)
        assert exc_info.value.occupant == "happy-village"
        # Nothing written for the rejected village
        assert await storage.villages.get("intruder") is None
        assert await storage.kv.get("village:grid:-1,0") is None

    async def test_resave_same_village(self, storage: Storage):
        await storage.villages.save(village("happy-village", 0, 0))
        await storage.villages.save(village("happy-village", 0, 0, name="Renamed"))
        assert (await storage.villages.get("happy-village")).name == "Renamed"


class TestGeometryChange:
    """Cells released when a village moves or shrinks."""

    async def test_move_releases_old_cells(self, storage: Storage):
        await storage.villages.save(village("mover", 0, 0, 2, 1))
        await storage.villages.save(village("mover", 5, 5))

        assert await storage.kv.get("village:grid:0,0") is None
        assert await storage.kv.get("village:grid:1,0") is None
        assert await storage.kv.get("village:grid:5,5") == "mover"

    async def test_shrink_keeps_remaining_cell(self, storage: Storage):
        await storage.villages.save(village("shrinker", 0, 0, 2, 1))
        await storage.villages.save(village("shrinker", 0, 0, 1, 1))
        assert await storage.kv.get("village:grid:0,0") == "shrinker"
        assert await storage.kv.get("village:grid:1,0") is None


class TestUpdate:
    """Tests for update()."""

    async def test_update_name_and_urls(self, storage: Storage):
        await storage.villages.save(village("happy-village", 0, 0))
        updated = await storage.villages.update("happy-village", name="Happy", tmj_url="new.tmj")
        assert updated.name == "Happy"
        assert updated.tmj_url == "new.tmj"
        assert updated.tileset_base_url == "villages/happy-village/tilesets"
        assert updated.updated_at > 100

    async def test_update_missing(self, storage: Storage):
        assert await storage.villages.update("nope", name="x") is None


class TestDelete:
    """Deletion removes every trace."""

    async def test_delete_symmetry(self, storage: Storage):
        await storage.villages.save(village("uncommon-village", -1, 1, 2, 1))
        assert await storage.villages.delete("uncommon-village") is True

        assert await storage.villages.get("uncommon-village") is None
        assert await storage.villages.get_by_grid(-1, 1) is None
        assert await storage.villages.get_by_grid(0, 1) is None
        assert "uncommon-village" not in await storage.kv.smembers("villages:all")

    async def test_delete_missing_is_noop(self, storage: Storage):
        assert await storage.villages.delete("nope") is False

    async def test_delete_leaves_other_owners(self, storage: Storage):
        """A cell pointing at another village is not released."""
        await storage.villages.save(village("a", 0, 0))
        await storage.kv.hset("village:b", {"slug": "b", "gridX": "0", "gridY": "0"})
        await storage.kv.sadd("villages:all", "b")

        await storage.villages.delete("b")
        assert await storage.kv.get("village:grid:0,0") == "a"

    async def test_clear(self, storage: Storage):
        await storage.villages.save(village("a", 0, 0))
        await storage.villages.save(village("b", 1, 0))
        await storage.kv.sadd("villages:all", "ghost")

        assert await storage.villages.clear() == 2
        assert await storage.villages.get_all() == []
        assert await storage.kv.smembers("villages:all") == set()


class TestQueries:
    """get_all and get_nearby."""

    @pytest.fixture
    def seed_villages(self) -> list[VillageMetadata]:
        return [
            village("happy-village", 0, 0),
            village("hahoe-village", -1, 0),
            village("uncommon-village", -1, 1, 2, 1),
            village("walkerhill-village", 1, 1),
            village("daolab-village", 1, 0),
            village("unblock-village", 1, -1),
        ]

    async def test_get_all_sorted(self, storage: Storage, seed_villages):
        for v in seed_villages:
            await storage.villages.save(v)
        slugs = [v.slug for v in await storage.villages.get_all()]
        assert slugs == sorted(v.slug for v in seed_villages)

    async def test_get_all_skips_missing_records(self, storage: Storage):
        await storage.villages.save(village("a", 0, 0))
        await storage.kv.sadd("villages:all", "ghost")
        assert [v.slug for v in await storage.villages.get_all()] == ["a"]

    async def test_get_nearby(self, storage: Storage, seed_villages):
        for v in seed_villages:
            await storage.villages.save(v)

        nearby = await storage.villages.get_nearby(0, 0)
        slugs = [v.slug for v in nearby]

        assert slugs[0] == "happy-village"
        assert set(slugs) == {v.slug for v in seed_villages}
        # uncommon-village covers two neighbourhood cells but appears once
        assert slugs.count("uncommon-village") == 1

    async def test_get_nearby_empty(self, storage: Storage):
        assert await storage.villages.get_nearby(100, 100) == []


class TestConcurrentWrites:
    """Saves and deletes racing on one Storage."""

    async def test_disjoint_saves_both_land(self, storage: Storage):
        results = await asyncio.gather(
            storage.villages.save(village("a", 0, 0)),
            storage.villages.save(village("b", 5, 5)),
            return_exceptions=True,
        )
        assert results == [None, None]
        assert [v.slug for v in await storage.villages.get_all()] == ["a", "b"]

    async def test_overlapping_saves_one_wins(self, storage: Storage):
        results = await asyncio.gather(
            storage.villages.save(village("a", 0, 0, w=2)),
            storage.villages.save(village("b", 1, 0)),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, GridOccupiedError)]
        assert len(failures) == 1

        winners = await storage.villages.get_all()
        assert len(winners) == 1
        owner = winners[0].slug
        assert (await storage.villages.get_by_grid(1, 0)).slug == owner

    async def test_save_and_delete_interleaved(self, storage: Storage):
        await storage.villages.save(village("a", 0, 0))
        await asyncio.gather(
            storage.villages.delete("a"),
            storage.villages.save(village("b", 3, 3)),
        )
        assert await storage.villages.get_by_grid(0, 0) is None
        assert (await storage.villages.get_by_grid(3, 3)).slug == "b"
