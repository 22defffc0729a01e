"""
Typed errors raised by the inventory, menu and order services.

Every error carries a stable ``error_code`` and an HTTP status so the API
layer can render it without knowing the individual classes.
"""

from typing import Any


class PosError(Exception):
    """Base class for user-displayable POS errors."""

    status_code = 400
    default_code = "POS_ERROR"

    def __init__(self, message: str, error_code: str | None = None, details: dict[str, Any] | None = None):
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"error_code": self.error_code, "message": self.message, "details": self.details}


class NotFoundError(PosError):
    status_code = 404
    default_code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            f"{entity} {entity_id} not found",
            error_code=f"{entity.upper()}_NOT_FOUND",
            details={"id": str(entity_id)},
        )


class InvalidOrderError(PosError):
    status_code = 422
    default_code = "INVALID_ORDER"


class MenuUnavailableError(InvalidOrderError):
    default_code = "MENU_UNAVAILABLE"

    def __init__(self, menu_name: str):
        super().__init__(f"Menu '{menu_name}' is not available for sale", details={"menu": menu_name})


class InsufficientStockError(PosError):
    """Pre-check or commit-time decrement found too little stock."""

    status_code = 409
    default_code = "INSUFFICIENT_STOCK"

    def __init__(self, missing_materials: list[str], menu_name: str | None = None):
        self.menu_name = menu_name
        self.missing_materials = missing_materials
        if menu_name:
            message = f"Menu '{menu_name}' cannot be served. Insufficient materials: {', '.join(missing_materials)}"
        else:
            message = f"Insufficient materials: {', '.join(missing_materials)}"
        super().__init__(message, details={"menu": menu_name, "missing_materials": missing_materials})


class UnauthorizedError(PosError):
    status_code = 401
    default_code = "UNAUTHORIZED"


class ConflictError(PosError):
    status_code = 409
    default_code = "CONFLICT"


class MaterialInUseError(ConflictError):
    default_code = "MATERIAL_IN_USE"


class InvalidStatusTransitionError(ConflictError):
    default_code = "INVALID_STATUS_TRANSITION"


class OrderNumberConflictError(ConflictError):
    default_code = "ORDER_NUMBER_CONFLICT"


class InvalidCatalogError(PosError):
    status_code = 422
    default_code = "INVALID_CATALOG_ENTRY"
