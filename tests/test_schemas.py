"""
Unit tests for request schemas
"""

import pytest
from bson import ObjectId

from errors import ValidationError
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


class TestBuildingSchema:
    def test_valid_building(self):
        building = validate(BuildingCreate, {"name": "  Parkview  ", "address": "456 Park Ave", "total_floors": 1})
        assert building.name == "Parkview"
        assert building.total_floors == 1
        assert building.description is None

    @pytest.mark.parametrize("floors", [0, -3])
    def test_rejects_floors_below_one(self, floors):
        with pytest.raises(ValidationError) as exc:
            validate(BuildingCreate, {"name": "X", "address": "Y", "total_floors": floors})
        assert exc.value.field == "totalFloors"

    def test_missing_address(self):
        with pytest.raises(ValidationError) as exc:
            validate(BuildingCreate, {"name": "X", "total_floors": 3})
        assert exc.value.field == "address"

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate(BuildingCreate, {"name": "   ", "address": "Y", "total_floors": 3})
        assert exc.value.field == "name"

    def test_update_keeps_only_supplied_fields(self):
        update = validate(BuildingUpdate, {"total_floors": 7})
        assert update.model_dump(exclude_unset=True) == {"total_floors": 7}


class TestApartmentOwnerSchema:
    def test_email_lowercased(self):
        owner = validate(
            ApartmentOwnerCreate,
            {"name": "John Doe", "email": " John.Doe@Example.com ", "apartment_number": "A101"},
        )
        assert owner.email == "john.doe@example.com"

    @pytest.mark.parametrize("email", ["not-an-email", "john@", "@example.com"])
    def test_invalid_email(self, email):
        with pytest.raises(ValidationError) as exc:
            validate(ApartmentOwnerCreate, {"name": "John", "email": email, "apartment_number": "A1"})
        assert exc.value.field == "email"

    def test_blank_building_id_means_none(self):
        owner = validate(
            ApartmentOwnerCreate,
            {"name": "John", "email": "j@example.com", "apartment_number": "A1", "building_id": ""},
        )
        assert owner.building_id is None

    def test_malformed_building_id(self):
        with pytest.raises(ValidationError) as exc:
            validate(
                ApartmentOwnerCreate,
                {"name": "John", "email": "j@example.com", "apartment_number": "A1", "building_id": "nope"},
            )
        assert exc.value.field == "buildingId"

    def test_update_email_lowercased(self):
        update = validate(ApartmentOwnerUpdate, {"email": "NEW@Example.COM"})
        assert update.email == "new@example.com"


class TestPaymentSchema:
    def payload(self, **overrides):
        data = {"apartment_owner_id": str(ObjectId()), "amount": 500, "month": "2024-01"}
        data.update(overrides)
        return data

    def test_defaults(self):
        payment = validate(PaymentCreate, self.payload())
        assert payment.status == PaymentStatus.pending.value
        assert payment.payment_date is None

    @pytest.mark.parametrize("month", ["2024-1", "Jan-2024", "24-01", "2024/01", "2024-01-15", " 2024-01", "2024-01\n"])
    def test_rejects_bad_month(self, month):
        with pytest.raises(ValidationError) as exc:
            validate(PaymentCreate, self.payload(month=month))
        assert exc.value.field == "month"

    def test_negative_amount(self):
        with pytest.raises(ValidationError) as exc:
            validate(PaymentCreate, self.payload(amount=-1))
        assert exc.value.field == "amount"

    def test_zero_amount_allowed(self):
        assert validate(PaymentCreate, self.payload(amount=0)).amount == 0

    def test_unknown_status(self):
        with pytest.raises(ValidationError) as exc:
            validate(PaymentCreate, self.payload(status="refunded"))
        assert exc.value.field == "status"

    def test_owner_id_required(self):
        data = self.payload()
        del data["apartment_owner_id"]
        with pytest.raises(ValidationError) as exc:
            validate(PaymentCreate, data)
        assert exc.value.field == "apartmentOwnerId"

    def test_update_status_only(self):
        update = validate(PaymentUpdate, {"status": PaymentStatus.paid})
        assert update.model_dump(exclude_unset=True) == {"status": "paid"}
