"""Read-only record store for the waste-management database.

The sampling-aware tools only read records: look a facility or shipment up by
id, and find the most recent inspections, contaminants and shipments matching
a filter. This module provides that boundary with two backends.

Classes
-------
RecordStore
    Abstract base implementing filtering, ordering and limits on top of a
    per-backend collection scan
InMemoryRecordStore
    Dictionary-backed store, optionally seeded from a JSON file
RedisRecordStore
    Store reading JSON documents from one Redis hash per collection

Functions
---------
create_store
    Build the store selected by ``StorageConfig``

Notes
-----
"Most recent first" means descending ``createdAt`` for inspections,
``detection_time`` for contaminants and ``entry_timestamp`` for shipments.
Records without that timestamp sort last. Limits are applied after ordering.

Seed files are JSON objects with the keys ``facilities``, ``inspections``,
``contaminants`` and ``shipments``, each holding a list of documents.

Examples
--------
    >>> store = InMemoryRecordStore()
    >>> store.add("facilities", {"id": "f-1", "name": "North Plant"})
    >>> facility = await store.get_facility("f-1")
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Type, TypeVar

import redis.asyncio as aioredis
from pydantic import ValidationError
from redis.exceptions import RedisError

from .exceptions import ConfigurationError, StorageError
from .logging_config import get_logger
from .models import Contaminant, DomainRecord, Facility, Inspection, Shipment

FACILITIES = "facilities"
INSPECTIONS = "inspections"
CONTAMINANTS = "contaminants"
SHIPMENTS = "shipments"

COLLECTIONS = {
    FACILITIES: Facility,
    INSPECTIONS: Inspection,
    CONTAMINANTS: Contaminant,
    SHIPMENTS: Shipment,
}

R = TypeVar("R", bound=DomainRecord)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _newest_first(records: Iterable[R], timestamp: Callable[[R], Optional[datetime]]) -> List[R]:
    # Stable: records with equal timestamps keep their stored order.
    return sorted(records, key=lambda r: timestamp(r) or _OLDEST, reverse=True)


def _limited(records: List[R], limit: Optional[int]) -> List[R]:
    return records if limit is None else records[:limit]


class RecordStore(ABC):
    """Read-only access to facilities, inspections, contaminants and shipments.

    Subclasses provide ``_documents`` (all raw documents of a collection) and
    ``_document`` (one raw document by id). Parsing, filtering and ordering
    live here so both backends behave identically.
    """

    backend = "abstract"

    def __init__(self):
        self.logger = get_logger(__name__)

    @abstractmethod
    async def _documents(self, collection: str) -> List[Dict[str, Any]]:
        """Return every raw document of a collection."""

    @abstractmethod
    async def _document(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Return one raw document by id, or None."""

    async def close(self) -> None:
        """Release backend resources."""

    async def health_check(self) -> Dict[str, Any]:
        """Report backend status for the readiness probe."""
        return {"status": "healthy", "backend": self.backend}

    def _parse(self, collection: str, document: Dict[str, Any]) -> DomainRecord:
        model: Type[DomainRecord] = COLLECTIONS[collection]
        try:
            return model.model_validate(document)
        except ValidationError as e:
            raise StorageError(
                f"Malformed {collection} record",
                details={"collection": collection, "record_id": document.get("id", document.get("_id"))},
                cause=e,
            ) from e

    async def _all(self, collection: str) -> List[DomainRecord]:
        return [self._parse(collection, doc) for doc in await self._documents(collection)]

    async def _get(self, collection: str, record_id: str) -> Optional[DomainRecord]:
        document = await self._document(collection, record_id)
        if document is None:
            return None
        return self._parse(collection, document)

    async def get_facility(self, facility_id: str) -> Optional[Facility]:
        """Look a facility up by id."""
        return await self._get(FACILITIES, facility_id)

    async def get_shipment(self, shipment_id: str) -> Optional[Shipment]:
        """Look a shipment up by id."""
        return await self._get(SHIPMENTS, shipment_id)

    async def find_inspections(self, facility_id: str, limit: Optional[int] = None) -> List[Inspection]:
        """Inspections of a facility, most recent first."""
        records = [r for r in await self._all(INSPECTIONS) if r.facility_id == facility_id]
        return _limited(_newest_first(records, lambda r: r.created_at), limit)

    async def find_contaminants(
        self,
        facility_id: Optional[str] = None,
        shipment_ids: Optional[Iterable[str]] = None,
        limit: Optional[int] = None,
    ) -> List[Contaminant]:
        """Contaminants matching every given filter, most recent first.

        Parameters
        ----------
        facility_id : str, optional
            Keep contaminants detected at this facility
        shipment_ids : Iterable[str], optional
            Keep contaminants found in one of these shipments. An empty
            iterable matches nothing.
        limit : int, optional
            Maximum number of records returned
        """
        wanted = set(shipment_ids) if shipment_ids is not None else None
        records = [
            r
            for r in await self._all(CONTAMINANTS)
            if (facility_id is None or r.facility_id == facility_id) and (wanted is None or r.shipment_id in wanted)
        ]
        return _limited(_newest_first(records, lambda r: r.detection_time), limit)

    async def find_shipments(
        self,
        facility_id: Optional[str] = None,
        source: Optional[str] = None,
        exclude_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Shipment]:
        """Shipments matching every given filter, most recent first."""
        records = [
            r
            for r in await self._all(SHIPMENTS)
            if (facility_id is None or r.facility_id == facility_id)
            and (source is None or r.source == source)
            and (exclude_id is None or r.id != exclude_id)
        ]
        return _limited(_newest_first(records, lambda r: r.entry_timestamp), limit)


class InMemoryRecordStore(RecordStore):
    """Dictionary-backed record store.

    Attributes
    ----------
    collections : Dict[str, Dict[str, Dict[str, Any]]]
        Raw documents keyed by collection, then by id
    """

    backend = "memory"

    def __init__(self, records: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        super().__init__()
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {name: {} for name in COLLECTIONS}
        for collection, documents in (records or {}).items():
            for document in documents:
                self.add(collection, document)

    @classmethod
    def from_seed_file(cls, path: str) -> "InMemoryRecordStore":
        """Load a store from a JSON seed file.

        Raises
        ------
        ConfigurationError
            If the file is missing, not JSON, or not an object of lists
        """
        seed_path = Path(path)
        try:
            data = json.loads(seed_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Cannot read seed file: {seed_path}", details={"path": str(seed_path)}, cause=e
            ) from e

        if not isinstance(data, dict) or not all(isinstance(v, list) for v in data.values()):
            raise ConfigurationError("Seed file must map collection names to lists", details={"path": str(seed_path)})

        store = cls(data)
        store.logger.info("Record store seeded", extra={"path": str(seed_path), "counts": store.counts()})
        return store

    def add(self, collection: str, document: Dict[str, Any]) -> None:
        """Insert or replace one raw document.

        Raises
        ------
        ConfigurationError
            For an unknown collection or a document without an id
        """
        if collection not in COLLECTIONS:
            raise ConfigurationError(f"Unknown collection: {collection}", details={"collections": list(COLLECTIONS)})
        record_id = document.get("id", document.get("_id"))
        if not record_id:
            raise ConfigurationError(f"Document in {collection} has no id")
        self.collections[collection][str(record_id)] = dict(document)

    def counts(self) -> Dict[str, int]:
        return {name: len(docs) for name, docs in self.collections.items()}

    async def _documents(self, collection: str) -> List[Dict[str, Any]]:
        return list(self.collections[collection].values())

    async def _document(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        return self.collections[collection].get(record_id)

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy", "backend": self.backend, "records": self.counts()}


class RedisRecordStore(RecordStore):
    """Record store reading JSON documents from Redis hashes.

    Each collection is one hash named ``<key_prefix>:<collection>`` whose
    fields are record ids and whose values are JSON documents.

    Attributes
    ----------
    client : redis.asyncio.Redis
        Async Redis client
    key_prefix : str
        Prefix of the collection hashes
    """

    backend = "redis"

    def __init__(self, client: aioredis.Redis, key_prefix: str = "waste"):
        super().__init__()
        self.client = client
        self.key_prefix = key_prefix

    @classmethod
    def from_config(cls, redis_config) -> "RedisRecordStore":
        """Create a store with a client built from ``RedisConfig``."""
        client = aioredis.Redis(
            host=redis_config.host,
            port=redis_config.port,
            password=redis_config.password,
            db=redis_config.database,
            socket_timeout=redis_config.socket_timeout,
            decode_responses=True,
        )
        return cls(client, key_prefix=redis_config.key_prefix)

    def _key(self, collection: str) -> str:
        return f"{self.key_prefix}:{collection}"

    def _storage_error(self, action: str, collection: str, error: Exception) -> StorageError:
        return StorageError(
            f"Redis {action} failed for {collection}",
            details={"key": self._key(collection), "error": str(error)},
            cause=error,
        )

    @staticmethod
    def _decode(raw: Any) -> Dict[str, Any]:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    async def _documents(self, collection: str) -> List[Dict[str, Any]]:
        try:
            values = await self.client.hvals(self._key(collection))
        except RedisError as e:
            raise self._storage_error("scan", collection, e) from e
        return [self._decode(v) for v in values]

    async def _document(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        try:
            raw = await self.client.hget(self._key(collection), record_id)
        except RedisError as e:
            raise self._storage_error("lookup", collection, e) from e
        return None if raw is None else self._decode(raw)

    async def add(self, collection: str, document: Dict[str, Any]) -> None:
        """Write one raw document, used for seeding."""
        if collection not in COLLECTIONS:
            raise ConfigurationError(f"Unknown collection: {collection}", details={"collections": list(COLLECTIONS)})
        record_id = document.get("id", document.get("_id"))
        if not record_id:
            raise ConfigurationError(f"Document in {collection} has no id")
        try:
            await self.client.hset(self._key(collection), str(record_id), json.dumps(document, default=str))
        except RedisError as e:
            raise self._storage_error("write", collection, e) from e

    async def health_check(self) -> Dict[str, Any]:
        try:
            await self.client.ping()
        except RedisError as e:
            return {"status": "unhealthy", "backend": self.backend, "error": str(e)}
        return {"status": "healthy", "backend": self.backend}

    async def close(self) -> None:
        await self.client.aclose()


def create_store(config) -> RecordStore:
    """Build the record store selected by the configuration.

    Parameters
    ----------
    config : AppConfig
        Application configuration

    Returns
    -------
    RecordStore
        ``InMemoryRecordStore`` (seeded when ``data_seed_path`` is set) or
        ``RedisRecordStore``
    """
    if config.storage.storage_backend == "redis":
        return RedisRecordStore.from_config(config.redis)
    if config.storage.data_seed_path:
        return InMemoryRecordStore.from_seed_file(config.storage.data_seed_path)
    return InMemoryRecordStore()
