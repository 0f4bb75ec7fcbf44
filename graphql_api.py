"""
GraphQL schema for the Condominium Manager.

Queries and mutations map onto the functions in ``services``; relationship
fields (``ApartmentOwner.building``, ``Payment.apartmentOwner``) go through
the per-request loaders so a list of N records costs one lookup per
collection instead of N.

Resolvers are async and hand every pymongo round-trip to a worker thread,
so one slow query never holds up the other requests on the event loop.
"""
import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional

import strawberry
import structlog
from fastapi import Request
from graphql import GraphQLError
from strawberry.fastapi import GraphQLRouter
from strawberry.types import ExecutionContext, Info

import services
from database import Database
from errors import CondoError
from loaders import create_loaders
from schemas import PaymentStatus

logger = structlog.get_logger(__name__)

strawberry.enum(PaymentStatus, description="pending, paid or overdue")


def _store(info: Info) -> Database:
    return info.context["store"]


async def _run(info: Info, func, *args):
    return await asyncio.to_thread(func, _store(info), *args)


def _provided(input_obj: Any) -> Dict[str, Any]:
    """Fields the client actually sent; UNSET ones are left out."""
    return {k: v for k, v in vars(input_obj).items() if v is not strawberry.UNSET}


def _ref(value: Any) -> Optional[strawberry.ID]:
    return strawberry.ID(str(value)) if value is not None else None


# -------------------- Types --------------------
@strawberry.type
class Building:
    id: strawberry.ID
    name: str
    address: str
    total_floors: int
    description: Optional[str]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, doc: dict) -> "Building":
        return cls(
            id=strawberry.ID(str(doc["_id"])),
            name=doc["name"],
            address=doc["address"],
            total_floors=doc["total_floors"],
            description=doc.get("description"),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )


@strawberry.type
class ApartmentOwner:
    id: strawberry.ID
    name: str
    email: str
    apartment_number: str
    building_id: Optional[strawberry.ID]
    phone_number: Optional[str]
    created_at: datetime
    updated_at: datetime

    @strawberry.field
    async def building(self, info: Info) -> Optional[Building]:
        if self.building_id is None:
            return None
        doc = await info.context["loaders"].building.load(self.building_id)
        return Building.from_document(doc) if doc is not None else None

    @classmethod
    def from_document(cls, doc: dict) -> "ApartmentOwner":
        return cls(
            id=strawberry.ID(str(doc["_id"])),
            name=doc["name"],
            email=doc["email"],
            apartment_number=doc["apartment_number"],
            building_id=_ref(doc.get("building_id")),
            phone_number=doc.get("phone_number"),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )


@strawberry.type
class Payment:
    id: strawberry.ID
    apartment_owner_id: strawberry.ID
    amount: float
    month: str
    description: Optional[str]
    payment_date: datetime
    status: PaymentStatus
    created_at: datetime
    updated_at: datetime

    @strawberry.field
    async def apartment_owner(self, info: Info) -> Optional[ApartmentOwner]:
        doc = await info.context["loaders"].apartment_owner.load(self.apartment_owner_id)
        return ApartmentOwner.from_document(doc) if doc is not None else None

    @classmethod
    def from_document(cls, doc: dict) -> "Payment":
        return cls(
            id=strawberry.ID(str(doc["_id"])),
            apartment_owner_id=strawberry.ID(str(doc["apartment_owner_id"])),
            amount=doc["amount"],
            month=doc["month"],
            description=doc.get("description"),
            payment_date=doc["payment_date"],
            status=PaymentStatus(doc["status"]),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )


@strawberry.type
class MonthlyPaymentSummary:
    month: str
    total: float
    paid: float
    pending: float
    overdue: float
    count: int


@strawberry.type
class PaymentDashboard:
    total_owners: int
    total_payments: int
    total_amount: float
    paid_payments: int
    pending_payments: int
    overdue_payments: int
    paid_percentage: int
    pending_percentage: int
    overdue_percentage: int
    monthly: List[MonthlyPaymentSummary]


def _buildings(docs: List[dict]) -> List[Building]:
    return [Building.from_document(d) for d in docs]


def _owners(docs: List[dict]) -> List[ApartmentOwner]:
    return [ApartmentOwner.from_document(d) for d in docs]


def _payments(docs: List[dict]) -> List[Payment]:
    return [Payment.from_document(d) for d in docs]


def _one(cls, doc: Optional[dict]):
    return cls.from_document(doc) if doc is not None else None


# -------------------- Inputs --------------------
@strawberry.input
class CreateBuildingInput:
    name: str
    address: str
    total_floors: int
    description: Optional[str] = strawberry.UNSET


@strawberry.input
class UpdateBuildingInput:
    name: Optional[str] = strawberry.UNSET
    address: Optional[str] = strawberry.UNSET
    total_floors: Optional[int] = strawberry.UNSET
    description: Optional[str] = strawberry.UNSET


@strawberry.input
class CreateApartmentOwnerInput:
    name: str
    email: str
    apartment_number: str
    building_id: Optional[strawberry.ID] = strawberry.UNSET
    phone_number: Optional[str] = strawberry.UNSET


@strawberry.input
class UpdateApartmentOwnerInput:
    name: Optional[str] = strawberry.UNSET
    email: Optional[str] = strawberry.UNSET
    apartment_number: Optional[str] = strawberry.UNSET
    building_id: Optional[strawberry.ID] = strawberry.UNSET
    phone_number: Optional[str] = strawberry.UNSET


@strawberry.input
class CreatePaymentInput:
    apartment_owner_id: strawberry.ID
    amount: float
    month: str
    description: Optional[str] = strawberry.UNSET
    status: Optional[PaymentStatus] = strawberry.UNSET


@strawberry.input
class UpdatePaymentInput:
    amount: Optional[float] = strawberry.UNSET
    month: Optional[str] = strawberry.UNSET
    description: Optional[str] = strawberry.UNSET
    status: Optional[PaymentStatus] = strawberry.UNSET


# -------------------- Queries --------------------
@strawberry.type
class Query:
    @strawberry.field
    async def buildings(self, info: Info) -> List[Building]:
        return _buildings(await _run(info, services.list_buildings))

    @strawberry.field
    async def building(self, info: Info, id: strawberry.ID) -> Optional[Building]:
        return _one(Building, await _run(info, services.get_building, id))

    @strawberry.field
    async def building_by_name(self, info: Info, name: str) -> Optional[Building]:
        return _one(Building, await _run(info, services.get_building_by_name, name))

    @strawberry.field
    async def apartment_owners(self, info: Info) -> List[ApartmentOwner]:
        return _owners(await _run(info, services.list_apartment_owners))

    @strawberry.field
    async def apartment_owner(self, info: Info, id: strawberry.ID) -> Optional[ApartmentOwner]:
        return _one(ApartmentOwner, await _run(info, services.get_apartment_owner, id))

    @strawberry.field
    async def apartment_owner_by_email(self, info: Info, email: str) -> Optional[ApartmentOwner]:
        return _one(ApartmentOwner, await _run(info, services.get_apartment_owner_by_email, email))

    @strawberry.field
    async def apartment_owner_by_apartment_number(self, info: Info, apartment_number: str) -> Optional[ApartmentOwner]:
        return _one(ApartmentOwner, await _run(info, services.get_apartment_owner_by_apartment_number, apartment_number))

    @strawberry.field
    async def apartment_owners_by_building(self, info: Info, building_id: strawberry.ID) -> List[ApartmentOwner]:
        return _owners(await _run(info, services.list_apartment_owners_by_building, building_id))

    @strawberry.field
    async def payments(self, info: Info) -> List[Payment]:
        return _payments(await _run(info, services.list_payments))

    @strawberry.field
    async def payment(self, info: Info, id: strawberry.ID) -> Optional[Payment]:
        return _one(Payment, await _run(info, services.get_payment, id))

    @strawberry.field
    async def payments_by_apartment_owner(self, info: Info, apartment_owner_id: strawberry.ID) -> List[Payment]:
        return _payments(await _run(info, services.list_payments_by_owner, apartment_owner_id))

    @strawberry.field
    async def payments_by_month(self, info: Info, month: str) -> List[Payment]:
        return _payments(await _run(info, services.list_payments_by_month, month))

    @strawberry.field
    async def payments_by_status(self, info: Info, status: PaymentStatus) -> List[Payment]:
        return _payments(await _run(info, services.list_payments_by_status, status))

    @strawberry.field
    async def payment_dashboard(self, info: Info) -> PaymentDashboard:
        summary = await _run(info, services.payment_dashboard)
        monthly = [MonthlyPaymentSummary(**entry) for entry in summary.pop("monthly")]
        return PaymentDashboard(monthly=monthly, **summary)


# -------------------- Mutations --------------------
@strawberry.type
class Mutation:
    @strawberry.mutation
    async def create_building(self, info: Info, input: CreateBuildingInput) -> Building:
        return Building.from_document(await _run(info, services.create_building, _provided(input)))

    @strawberry.mutation
    async def update_building(self, info: Info, id: strawberry.ID, input: UpdateBuildingInput) -> Building:
        return Building.from_document(await _run(info, services.update_building, id, _provided(input)))

    @strawberry.mutation
    async def delete_building(self, info: Info, id: strawberry.ID) -> bool:
        return await _run(info, services.delete_building, id)

    @strawberry.mutation
    async def create_apartment_owner(self, info: Info, input: CreateApartmentOwnerInput) -> ApartmentOwner:
        return ApartmentOwner.from_document(await _run(info, services.create_apartment_owner, _provided(input)))

    @strawberry.mutation
    async def update_apartment_owner(self, info: Info, id: strawberry.ID, input: UpdateApartmentOwnerInput) -> ApartmentOwner:
        return ApartmentOwner.from_document(await _run(info, services.update_apartment_owner, id, _provided(input)))

    @strawberry.mutation
    async def delete_apartment_owner(self, info: Info, id: strawberry.ID) -> bool:
        return await _run(info, services.delete_apartment_owner, id)

    @strawberry.mutation
    async def create_payment(self, info: Info, input: CreatePaymentInput) -> Payment:
        return Payment.from_document(await _run(info, services.create_payment, _provided(input)))

    @strawberry.mutation
    async def update_payment(self, info: Info, id: strawberry.ID, input: UpdatePaymentInput) -> Payment:
        return Payment.from_document(await _run(info, services.update_payment, id, _provided(input)))

    @strawberry.mutation
    async def delete_payment(self, info: Info, id: strawberry.ID) -> bool:
        return await _run(info, services.delete_payment, id)


class CondoSchema(strawberry.Schema):
    def process_errors(self, errors: List[GraphQLError], execution_context: Optional[ExecutionContext] = None) -> None:
        for error in errors:
            extensions = error.extensions or {}
            original = error.original_error
            if original is None or isinstance(original, CondoError):
                logger.warning(
                    "GraphQL error",
                    message=error.message,
                    path=error.path,
                    code=extensions.get("code"),
                )
            else:
                logger.error(
                    "Unexpected GraphQL error",
                    message=error.message,
                    path=error.path,
                    exc_info=original,
                )


schema = CondoSchema(query=Query, mutation=Mutation)


async def get_context(request: Request) -> dict:
    store = request.app.state.store
    return {"store": store, "loaders": create_loaders(store)}


def create_graphql_router() -> GraphQLRouter:
    return GraphQLRouter(schema, context_getter=get_context)
