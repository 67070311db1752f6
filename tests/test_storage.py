"""Tests for the record stores."""

import json
from unittest.mock import AsyncMock

import fakeredis
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from waste_mcp.config import AppConfig
from waste_mcp.exceptions import ConfigurationError, StorageError
from waste_mcp.models import Contaminant, Facility, Shipment
from waste_mcp.storage import (
    CONTAMINANTS,
    FACILITIES,
    InMemoryRecordStore,
    RedisRecordStore,
    create_store,
)


class TestInMemoryRecordStore:
    """Test the dictionary-backed store."""

    @pytest.mark.asyncio
    async def test_get_facility(self, store):
        facility = await store.get_facility("fac-north")

        assert isinstance(facility, Facility)
        assert facility.name == "North Plant"
        assert facility.short_code == "NP"

    @pytest.mark.asyncio
    async def test_get_facility_by_underscore_id(self, store):
        facility = await store.get_facility("fac-south")
        assert facility.id == "fac-south"

    @pytest.mark.asyncio
    async def test_missing_records(self, store):
        assert await store.get_facility("nope") is None
        assert await store.get_shipment("nope") is None

    @pytest.mark.asyncio
    async def test_find_inspections_newest_first(self, store):
        inspections = await store.find_inspections("fac-east")
        assert [i.id for i in inspections] == ["ins-east-2", "ins-east-1"]

        assert [i.id for i in await store.find_inspections("fac-east", limit=1)] == ["ins-east-2"]

    @pytest.mark.asyncio
    async def test_find_contaminants_by_facility(self, store):
        contaminants = await store.find_contaminants(facility_id="fac-east", limit=3)

        assert [c.id for c in contaminants] == ["con-east-15", "con-east-14", "con-east-13"]
        assert all(isinstance(c, Contaminant) for c in contaminants)

    @pytest.mark.asyncio
    async def test_find_contaminants_by_shipments(self, store):
        contaminants = await store.find_contaminants(shipment_ids=["shp-hist-1", "shp-hist-2"])
        assert len(contaminants) == 4

        assert await store.find_contaminants(shipment_ids=[]) == []

    @pytest.mark.asyncio
    async def test_find_shipments_filters(self, store):
        shipments = await store.find_shipments(source="Acme Hauling", exclude_id="shp-risk")
        assert [s.id for s in shipments] == ["shp-hist-4", "shp-hist-3", "shp-hist-2", "shp-hist-1"]

        by_facility = await store.find_shipments(facility_id="fac-north")
        assert [s.id for s in by_facility] == ["shp-north-1"]

    @pytest.mark.asyncio
    async def test_records_without_timestamp_sort_last(self):
        store = InMemoryRecordStore(
            {
                "shipments": [
                    {"id": "no-time", "source": "x"},
                    {"id": "old", "source": "x", "entry_timestamp": "2024-01-01T00:00:00Z"},
                    {"id": "new", "source": "x", "entry_timestamp": "2024-02-01T00:00:00"},
                ]
            }
        )

        shipments = await store.find_shipments(source="x")

        assert [s.id for s in shipments] == ["new", "old", "no-time"]
        assert shipments[0].entry_timestamp.tzinfo is not None

    @pytest.mark.asyncio
    async def test_malformed_record(self):
        store = InMemoryRecordStore({"contaminants": [{"id": "bad", "explosive_level": "extreme"}]})

        with pytest.raises(StorageError) as exc_info:
            await store.find_contaminants()

        assert exc_info.value.details == {"collection": "contaminants", "record_id": "bad"}

    def test_add_rejects_unknown_collection(self):
        with pytest.raises(ConfigurationError):
            InMemoryRecordStore().add("trucks", {"id": "t-1"})

    def test_add_rejects_document_without_id(self):
        with pytest.raises(ConfigurationError):
            InMemoryRecordStore().add(FACILITIES, {"name": "Nameless"})

    @pytest.mark.asyncio
    async def test_health_check(self, store):
        health = await store.health_check()

        assert health["status"] == "healthy"
        assert health["backend"] == "memory"
        assert health["records"]["facilities"] == 3


class TestSeedFile:
    """Test loading the in-memory store from JSON."""

    @pytest.mark.asyncio
    async def test_from_seed_file(self, seed_file):
        store = InMemoryRecordStore.from_seed_file(str(seed_file))

        assert store.counts()["facilities"] == 3
        assert (await store.get_shipment("shp-risk")).license_plate == "AB-123"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Cannot read seed file"):
            InMemoryRecordStore.from_seed_file(str(tmp_path / "missing.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "seed.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            InMemoryRecordStore.from_seed_file(str(path))

    def test_wrong_shape(self, tmp_path):
        path = tmp_path / "seed.json"
        path.write_text(json.dumps({"facilities": {"id": "f"}}), encoding="utf-8")

        with pytest.raises(ConfigurationError, match="must map collection names to lists"):
            InMemoryRecordStore.from_seed_file(str(path))


@pytest.mark.redis
class TestRedisRecordStore:
    """Test the Redis store against fakeredis."""

    @pytest.fixture
    def redis_store(self):
        return RedisRecordStore(fakeredis.FakeAsyncRedis(decode_responses=True), key_prefix="test")

    async def seed(self, redis_store, records):
        for collection, documents in records.items():
            for document in documents:
                await redis_store.add(collection, document)

    @pytest.mark.asyncio
    async def test_round_trip_queries(self, redis_store, records):
        await self.seed(redis_store, records)

        facility = await redis_store.get_facility("fac-north")
        shipments = await redis_store.find_shipments(source="Acme Hauling", exclude_id="shp-risk", limit=2)
        contaminants = await redis_store.find_contaminants(shipment_ids=["shp-risk"])

        assert facility.name == "North Plant"
        assert [s.id for s in shipments] == ["shp-hist-4", "shp-hist-3"]
        assert sorted(c.id for c in contaminants) == ["con-risk-1", "con-risk-2"]
        assert isinstance(shipments[0], Shipment)

    @pytest.mark.asyncio
    async def test_documents_live_in_prefixed_hashes(self, redis_store):
        await redis_store.add(FACILITIES, {"id": "f-1", "name": "One"})

        raw = await redis_store.client.hget("test:facilities", "f-1")

        assert json.loads(raw) == {"id": "f-1", "name": "One"}

    @pytest.mark.asyncio
    async def test_missing_record(self, redis_store):
        assert await redis_store.get_facility("missing") is None
        assert await redis_store.find_contaminants() == []

    @pytest.mark.asyncio
    async def test_add_rejects_unknown_collection(self, redis_store):
        with pytest.raises(ConfigurationError):
            await redis_store.add("trucks", {"id": "t-1"})

    @pytest.mark.asyncio
    async def test_redis_errors_become_storage_errors(self, redis_store):
        redis_store.client.hvals = AsyncMock(side_effect=RedisConnectionError("connection refused"))

        with pytest.raises(StorageError) as exc_info:
            await redis_store.find_contaminants()

        assert exc_info.value.details["key"] == f"test:{CONTAMINANTS}"

    @pytest.mark.asyncio
    async def test_health_check(self, redis_store):
        assert await redis_store.health_check() == {"status": "healthy", "backend": "redis"}

        redis_store.client.ping = AsyncMock(side_effect=RedisConnectionError("connection refused"))
        health = await redis_store.health_check()

        assert health["status"] == "unhealthy"
        assert "connection refused" in health["error"]

    @pytest.mark.asyncio
    async def test_close(self, redis_store):
        redis_store.client.aclose = AsyncMock()

        await redis_store.close()

        redis_store.client.aclose.assert_awaited_once()


class TestCreateStore:
    """Test backend selection."""

    def test_memory_default(self):
        store = create_store(AppConfig())
        assert isinstance(store, InMemoryRecordStore)
        assert store.counts() == {"facilities": 0, "inspections": 0, "contaminants": 0, "shipments": 0}

    def test_memory_with_seed(self, seed_file):
        config = AppConfig()
        config.storage.data_seed_path = str(seed_file)

        assert create_store(config).counts()["shipments"] == 9

    def test_redis(self):
        config = AppConfig()
        config.storage.storage_backend = "redis"
        config.redis.key_prefix = "plant"

        store = create_store(config)

        assert isinstance(store, RedisRecordStore)
        assert store.key_prefix == "plant"
