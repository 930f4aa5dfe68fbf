from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    WAREHOUSE_NOT_FOUND = ErrorDefinition(
        "WAREHOUSE_NOT_FOUND",
        "Warehouse not found",
        status.HTTP_404_NOT_FOUND,
    )
    SESSION_NOT_FOUND = ErrorDefinition(
        "SESSION_NOT_FOUND",
        "Count session not found",
        status.HTTP_404_NOT_FOUND,
    )
    ITEM_NOT_FOUND = ErrorDefinition(
        "ITEM_NOT_FOUND",
        "Count item not found in session",
        status.HTTP_404_NOT_FOUND,
    )
    INVALID_STATE_TRANSITION = ErrorDefinition(
        "INVALID_STATE_TRANSITION",
        "Invalid state transition",
        status.HTTP_409_CONFLICT,
    )
    ITEMS_UNRESOLVED = ErrorDefinition(
        "ITEMS_UNRESOLVED",
        "Items still unresolved",
        status.HTTP_409_CONFLICT,
    )
    ITEM_ALREADY_COUNTED = ErrorDefinition(
        "ITEM_ALREADY_COUNTED",
        "Item has already been counted",
        status.HTTP_409_CONFLICT,
    )
    ITEM_ALREADY_VERIFIED = ErrorDefinition(
        "ITEM_ALREADY_VERIFIED",
        "Item has already been verified",
        status.HTTP_409_CONFLICT,
    )
    SKU_NOT_IN_SESSION = ErrorDefinition(
        "SKU_NOT_IN_SESSION",
        "SKU not found in session",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    ACTOR_REQUIRED = ErrorDefinition(
        "ACTOR_REQUIRED",
        "Actor identifier is required",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    LEDGER_LOCKED = ErrorDefinition(
        "LEDGER_LOCKED",
        "Stock ledger is locked by another writer",
        status.HTTP_409_CONFLICT,
    )
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)

    @property
    def code(self) -> str:
        return self.error.code

    def describe(self) -> str:
        if isinstance(self.details, dict) and self.details.get("message"):
            return f"{self.error.message}: {self.details['message']}"
        return self.error.message
