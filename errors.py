"""
Error types raised by the condominium data layer.

Each error exposes an ``extensions`` dict. graphql-core copies it onto the
GraphQL error when a resolver raises, so clients receive a machine readable
``code`` next to the message.
"""
from typing import Optional


class CondoError(Exception):
    code = "INTERNAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def extensions(self) -> dict:
        return {"code": self.code}


class ValidationError(CondoError):
    """A field failed a required/pattern/range/uniqueness rule."""

    code = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        super().__init__(f"Validation failed for '{field}': {reason}")
        self.field = field
        self.reason = reason

    @property
    def extensions(self) -> dict:
        return {"code": self.code, "field": self.field}


class NotFoundError(CondoError):
    code = "NOT_FOUND"

    def __init__(self, record: str, record_id: Optional[str]):
        super().__init__(f"{record} not found: {record_id}")
        self.record = record
        self.record_id = record_id

    @property
    def extensions(self) -> dict:
        return {"code": self.code, "record": self.record}


class StoreError(CondoError):
    """Connectivity or infrastructure failure reported by MongoDB."""

    code = "STORE_ERROR"
