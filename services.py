"""
Condominium data operations.

Plain functions over an explicit ``Database`` handle. Reads return raw
MongoDB documents (or None / empty lists when nothing matches); writes
validate with the request schemas, check uniqueness, then persist.

Foreign keys are weak references: they are never checked for existence and
deletes never cascade, so payments and owners may point at records that no
longer exist. Readers resolve such references to None.
"""
import math
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Type, Union

import structlog
from bson import ObjectId
from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from database import (
    APARTMENT_OWNERS,
    BUILDINGS,
    NEWEST_FIRST,
    PAYMENTS,
    Database,
    parse_object_id,
)
from errors import NotFoundError, ValidationError
from schemas import (
    ApartmentOwnerCreate,
    ApartmentOwnerUpdate,
    BuildingCreate,
    BuildingUpdate,
    PaymentCreate,
    PaymentStatus,
    PaymentUpdate,
    validate,
)

logger = structlog.get_logger(__name__)

# Fields stored as ObjectId but exchanged as strings
REFERENCE_FIELDS = ("building_id", "apartment_owner_id")


def _to_document(values: Dict[str, Any]) -> Dict[str, Any]:
    doc = dict(values)
    for field in REFERENCE_FIELDS:
        if doc.get(field) is not None:
            doc[field] = ObjectId(doc[field])
    return doc


def _editable(doc: dict, model: Type[BaseModel]) -> Dict[str, Any]:
    """Project a stored document onto the fields of ``model``, ids as strings."""
    values = {}
    for field in model.model_fields:
        value = doc.get(field)
        if isinstance(value, ObjectId):
            value = str(value)
        values[field] = value
    return values


def _ensure_unique(store: Database, collection_name: str, values: Dict[str, Any], exclude_id: Optional[ObjectId] = None):
    for field, value in values.items():
        query: Dict[str, Any] = {field: value}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        if store.get_document(collection_name, query) is not None:
            raise ValidationError(to_camel(field), f"'{value}' already exists")


def _get_by_id(store: Database, collection_name: str, record_id: Union[str, ObjectId, None]) -> Optional[dict]:
    oid = parse_object_id(record_id)
    if oid is None:
        return None
    return store.get_document(collection_name, {"_id": oid})


def _documents_in_order(store: Database, collection_name: str, ids: Iterable[Any]) -> List[Optional[dict]]:
    ids = list(ids)
    oids = [parse_object_id(i) for i in ids]
    found = store.get_documents_by_ids(collection_name, [o for o in oids if o is not None])
    return [found.get(o) if o is not None else None for o in oids]


def _update(
    store: Database,
    collection_name: str,
    record: str,
    record_id: str,
    data: Dict[str, Any],
    update_model: Type[BaseModel],
    create_model: Type[BaseModel],
    unique_fields: Iterable[str] = (),
) -> dict:
    existing = _get_by_id(store, collection_name, record_id)
    if existing is None:
        raise NotFoundError(record, record_id)
    supplied = validate(update_model, data).model_dump(exclude_unset=True)
    merged = validate(create_model, {**_editable(existing, create_model), **supplied})
    changes = {field: getattr(merged, field) for field in supplied}
    _ensure_unique(
        store,
        collection_name,
        {field: changes[field] for field in unique_fields if field in changes},
        exclude_id=existing["_id"],
    )
    doc = store.update_document(collection_name, existing["_id"], _to_document(changes))
    if doc is None:
        raise NotFoundError(record, record_id)
    logger.info(f"{record} updated", record_id=str(doc["_id"]), fields=sorted(changes))
    return doc


def _delete(store: Database, collection_name: str, record: str, record_id: str) -> bool:
    oid = parse_object_id(record_id)
    if oid is None:
        return False
    deleted = store.delete_document(collection_name, oid)
    logger.info(f"{record} delete", record_id=record_id, deleted=deleted)
    return deleted


# -------------------- Buildings --------------------
def list_buildings(store: Database) -> List[dict]:
    return store.get_documents(BUILDINGS, sort=NEWEST_FIRST)


def get_building(store: Database, building_id: str) -> Optional[dict]:
    return _get_by_id(store, BUILDINGS, building_id)


def get_building_by_name(store: Database, name: str) -> Optional[dict]:
    return store.get_document(BUILDINGS, {"name": name})


def get_buildings_by_ids(store: Database, building_ids: Iterable[Any]) -> List[Optional[dict]]:
    return _documents_in_order(store, BUILDINGS, building_ids)


def create_building(store: Database, data: Dict[str, Any]) -> dict:
    building = validate(BuildingCreate, data)
    _ensure_unique(store, BUILDINGS, {"name": building.name})
    doc = store.create_document(BUILDINGS, building)
    logger.info("Building created", record_id=str(doc["_id"]), name=doc["name"])
    return doc


def update_building(store: Database, building_id: str, data: Dict[str, Any]) -> dict:
    return _update(store, BUILDINGS, "Building", building_id, data, BuildingUpdate, BuildingCreate, ("name",))


def delete_building(store: Database, building_id: str) -> bool:
    return _delete(store, BUILDINGS, "Building", building_id)


# -------------------- Apartment owners --------------------
def list_apartment_owners(store: Database) -> List[dict]:
    return store.get_documents(APARTMENT_OWNERS, sort=NEWEST_FIRST)


def get_apartment_owner(store: Database, owner_id: str) -> Optional[dict]:
    return _get_by_id(store, APARTMENT_OWNERS, owner_id)


def get_apartment_owner_by_email(store: Database, email: str) -> Optional[dict]:
    return store.get_document(APARTMENT_OWNERS, {"email": email.strip().lower()})


def get_apartment_owner_by_apartment_number(store: Database, apartment_number: str) -> Optional[dict]:
    return store.get_document(APARTMENT_OWNERS, {"apartment_number": apartment_number})


def get_apartment_owners_by_ids(store: Database, owner_ids: Iterable[Any]) -> List[Optional[dict]]:
    return _documents_in_order(store, APARTMENT_OWNERS, owner_ids)


def list_apartment_owners_by_building(store: Database, building_id: str) -> List[dict]:
    oid = parse_object_id(building_id)
    if oid is None:
        return []
    return store.get_documents(APARTMENT_OWNERS, {"building_id": oid}, sort=NEWEST_FIRST)


def create_apartment_owner(store: Database, data: Dict[str, Any]) -> dict:
    owner = validate(ApartmentOwnerCreate, data)
    _ensure_unique(store, APARTMENT_OWNERS, {"email": owner.email, "apartment_number": owner.apartment_number})
    doc = store.create_document(APARTMENT_OWNERS, _to_document(owner.model_dump()))
    logger.info("Apartment owner created", record_id=str(doc["_id"]), apartment_number=doc["apartment_number"])
    return doc


def update_apartment_owner(store: Database, owner_id: str, data: Dict[str, Any]) -> dict:
    return _update(
        store,
        APARTMENT_OWNERS,
        "ApartmentOwner",
        owner_id,
        data,
        ApartmentOwnerUpdate,
        ApartmentOwnerCreate,
        ("email", "apartment_number"),
    )


def delete_apartment_owner(store: Database, owner_id: str) -> bool:
    return _delete(store, APARTMENT_OWNERS, "ApartmentOwner", owner_id)


# -------------------- Payments --------------------
def list_payments(store: Database) -> List[dict]:
    return store.get_documents(PAYMENTS, sort=NEWEST_FIRST)


def get_payment(store: Database, payment_id: str) -> Optional[dict]:
    return _get_by_id(store, PAYMENTS, payment_id)


def list_payments_by_owner(store: Database, owner_id: str) -> List[dict]:
    oid = parse_object_id(owner_id)
    if oid is None:
        return []
    return store.get_documents(
        PAYMENTS,
        {"apartment_owner_id": oid},
        sort=[("month", -1)] + NEWEST_FIRST,
    )


def list_payments_by_month(store: Database, month: str) -> List[dict]:
    return store.get_documents(PAYMENTS, {"month": month}, sort=NEWEST_FIRST)


def list_payments_by_status(store: Database, status: Union[PaymentStatus, str]) -> List[dict]:
    try:
        value = PaymentStatus(status).value
    except ValueError:
        raise ValidationError("status", f"'{status}' is not one of pending, paid, overdue") from None
    return store.get_documents(PAYMENTS, {"status": value}, sort=NEWEST_FIRST)


def create_payment(store: Database, data: Dict[str, Any]) -> dict:
    payment = validate(PaymentCreate, data)
    values = _to_document(payment.model_dump())
    if values["payment_date"] is None:
        values["payment_date"] = datetime.now(timezone.utc)
    doc = store.create_document(PAYMENTS, values)
    logger.info("Payment created", record_id=str(doc["_id"]), month=doc["month"], status=doc["status"])
    return doc


def update_payment(store: Database, payment_id: str, data: Dict[str, Any]) -> dict:
    return _update(store, PAYMENTS, "Payment", payment_id, data, PaymentUpdate, PaymentCreate)


def delete_payment(store: Database, payment_id: str) -> bool:
    return _delete(store, PAYMENTS, "Payment", payment_id)


# -------------------- Dashboard --------------------
def _percentage(part: int, whole: int) -> int:
    if not whole:
        return 0
    return math.floor(part * 100 / whole + 0.5)


def payment_dashboard(store: Database) -> dict:
    """Totals, status split and per-month sums over every payment."""
    payments = store.get_documents(PAYMENTS)
    counts = Counter(p.get("status") for p in payments)
    statuses = [s.value for s in PaymentStatus]

    monthly: Dict[str, dict] = {}
    for p in payments:
        entry = monthly.setdefault(
            p["month"],
            {"month": p["month"], "total": 0.0, "count": 0, **{s: 0.0 for s in statuses}},
        )
        entry["total"] += p["amount"]
        entry["count"] += 1
        if p.get("status") in statuses:
            entry[p["status"]] += p["amount"]

    total = len(payments)
    return {
        "total_owners": store.count_documents(APARTMENT_OWNERS),
        "total_payments": total,
        "total_amount": sum(p["amount"] for p in payments),
        "paid_payments": counts["paid"],
        "pending_payments": counts["pending"],
        "overdue_payments": counts["overdue"],
        "paid_percentage": _percentage(counts["paid"], total),
        "pending_percentage": _percentage(counts["pending"], total),
        "overdue_percentage": _percentage(counts["overdue"], total),
        "monthly": [monthly[m] for m in sorted(monthly)],
    }
