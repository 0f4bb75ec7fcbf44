"""
MongoDB persistence handle.

The handle is constructed explicitly (``Database.from_env()`` in the app
lifespan, or directly around any pymongo-compatible client in tests) and
closed on shutdown. Every pymongo failure leaving this module is translated
into an error from ``errors``.
"""
import os
import re
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

import structlog
from bson import ObjectId
from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import StoreError, ValidationError

logger = structlog.get_logger(__name__)

# Collection names are the lowercased record names
BUILDINGS = "building"
APARTMENT_OWNERS = "apartmentowner"
PAYMENTS = "payment"

NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]

# (collection, field, unique)
INDEXES = [
    (BUILDINGS, "name", True),
    (APARTMENT_OWNERS, "email", True),
    (APARTMENT_OWNERS, "apartment_number", True),
    (APARTMENT_OWNERS, "building_id", False),
    (PAYMENTS, "apartment_owner_id", False),
    (PAYMENTS, "month", False),
    (PAYMENTS, "status", False),
]

UNIQUE_FIELDS = {}
for _collection, _field, _unique in INDEXES:
    if _unique:
        UNIQUE_FIELDS.setdefault(_collection, []).append(_field)

# e.g. "E11000 duplicate key error collection: db.apartmentowner index: apartment_number_1 dup key: ..."
_INDEX_NAME = re.compile(r"index: (\w+?)_-?1\b")

SortSpec = List[Tuple[str, int]]


def parse_object_id(value: Any) -> Optional[ObjectId]:
    """Return ``value`` as an ObjectId, or None when it is not a valid one."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def _duplicate_field(err: DuplicateKeyError) -> Optional[str]:
    """API name of the field behind a unique-index violation, when the error says which."""
    details = err.details or {}
    key_pattern = details.get("keyPattern") or details.get("keyValue") or {}
    if key_pattern:
        return to_camel(next(iter(key_pattern)))
    match = _INDEX_NAME.search(str(err))
    if match:
        return to_camel(match.group(1))
    return None


@contextmanager
def _store_errors(operation: str, conflict: Optional[Callable[[], Optional[str]]] = None):
    try:
        yield
    except DuplicateKeyError as e:
        field = _duplicate_field(e) or (conflict() if conflict else None) or "unknown"
        raise ValidationError(field, "value already exists") from e
    except PyMongoError as e:
        logger.error("Store operation failed", operation=operation, error=str(e))
        raise StoreError(f"{operation} failed: {e}") from e


class Database:
    def __init__(self, client: MongoClient, name: str):
        self.client = client
        self.db = client[name]

    @classmethod
    def from_env(cls) -> "Database":
        url = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
        name = os.getenv("DATABASE_NAME", "condominium_manager")
        logger.info("Connecting to MongoDB", database=name)
        with _store_errors("connect"):
            client = MongoClient(url)
        return cls(client, name)

    @property
    def name(self) -> str:
        return self.db.name

    def ensure_indexes(self) -> None:
        with _store_errors("ensure_indexes"):
            for collection_name, field, unique in INDEXES:
                self.db[collection_name].create_index([(field, ASCENDING)], unique=unique)
        logger.info("Indexes ensured", database=self.name)

    def list_collections(self) -> List[str]:
        with _store_errors("list_collections"):
            return self.db.list_collection_names()

    def _conflicting_field(self, collection_name: str, values: Dict[str, Any], exclude_id: Optional[ObjectId]) -> Optional[str]:
        """Find which unique field of ``values`` is already taken by another document."""
        for field in UNIQUE_FIELDS.get(collection_name, []):
            if field not in values:
                continue
            query: Dict[str, Any] = {field: values[field]}
            if exclude_id is not None:
                query["_id"] = {"$ne": exclude_id}
            if self.db[collection_name].find_one(query) is not None:
                return to_camel(field)
        return None

    def close(self) -> None:
        logger.info("Closing MongoDB client", database=self.name)
        self.client.close()

    # -------------------- Documents --------------------
    def create_document(self, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> dict:
        """Insert ``data`` stamped with created_at/updated_at and return the stored document."""
        if isinstance(data, BaseModel):
            data_dict = data.model_dump()
        else:
            data_dict = dict(data)
        now = datetime.now(timezone.utc)
        data_dict["created_at"] = now
        data_dict["updated_at"] = now
        with _store_errors(
            f"insert into {collection_name}",
            lambda: self._conflicting_field(collection_name, data_dict, data_dict.get("_id")),
        ):
            result = self.db[collection_name].insert_one(data_dict)
            return self.db[collection_name].find_one({"_id": result.inserted_id})

    def get_document(self, collection_name: str, filter_dict: Dict[str, Any]) -> Optional[dict]:
        with _store_errors(f"find_one in {collection_name}"):
            return self.db[collection_name].find_one(filter_dict)

    def get_documents(
        self,
        collection_name: str,
        filter_dict: Optional[Dict[str, Any]] = None,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
    ) -> List[dict]:
        with _store_errors(f"find in {collection_name}"):
            cursor = self.db[collection_name].find(filter_dict or {})
            if sort:
                cursor = cursor.sort(sort)
            if limit:
                cursor = cursor.limit(limit)
            return list(cursor)

    def get_documents_by_ids(self, collection_name: str, ids: Iterable[ObjectId]) -> Dict[ObjectId, dict]:
        """Fetch many documents with one ``$in`` query, keyed by ``_id``."""
        unique_ids = list(dict.fromkeys(ids))
        if not unique_ids:
            return {}
        with _store_errors(f"find by ids in {collection_name}"):
            return {doc["_id"]: doc for doc in self.db[collection_name].find({"_id": {"$in": unique_ids}})}

    def count_documents(self, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None) -> int:
        with _store_errors(f"count in {collection_name}"):
            return self.db[collection_name].count_documents(filter_dict or {})

    def update_document(self, collection_name: str, document_id: ObjectId, changes: Dict[str, Any]) -> Optional[dict]:
        """Apply ``changes`` with ``$set`` and return the updated document, or None if absent."""
        update = dict(changes)
        update["updated_at"] = datetime.now(timezone.utc)
        with _store_errors(
            f"update in {collection_name}",
            lambda: self._conflicting_field(collection_name, changes, document_id),
        ):
            return self.db[collection_name].find_one_and_update(
                {"_id": document_id},
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )

    def delete_document(self, collection_name: str, document_id: ObjectId) -> bool:
        with _store_errors(f"delete in {collection_name}"):
            result = self.db[collection_name].delete_one({"_id": document_id})
            return result.deleted_count > 0
