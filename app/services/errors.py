from collections.abc import Iterable


class InventoryError(Exception):
    code = "inventory_error"
    status_code = 400

    def __init__(self, message: str, *, ids: Iterable[int] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.ids = sorted(set(ids)) if ids is not None else []

    def to_dict(self) -> dict:
        return {"detail": self.message, "error": self.code, "ids": self.ids}


class NotFoundError(InventoryError):
    code = "not_found"
    status_code = 404


class ParentNotFoundError(NotFoundError):
    code = "parent_not_found"


class NotAllocatableError(InventoryError):
    code = "not_allocatable"


class InvalidAmountError(InventoryError):
    code = "invalid_amount"


class InsufficientCapacityError(InventoryError):
    code = "insufficient_capacity"


class ItemInUseError(InventoryError):
    code = "in_use"
    status_code = 409


class HasDerivedChildrenError(InventoryError):
    code = "has_derived_children"
    status_code = 409


class ConcurrentUpdateError(InventoryError):
    code = "concurrent_update"
    status_code = 409


class InvariantViolationError(InventoryError):
    code = "invariant_violation"
    status_code = 500


class VoucherUnavailableError(InventoryError):
    code = "voucher_unavailable"
