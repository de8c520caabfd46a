"""Capacity ledger arithmetic for parent and derived stock items.

A ledger is ``(quantity, unit_value, original_unit_value)``: ``quantity``
bins of ``original_unit_value`` each, the current one holding only
``unit_value``. Available capacity is therefore
``unit_value + (quantity - 1) * original_unit_value`` once there is at
least one bin.

Everything in this module is pure. Functions take a ledger and an amount
and return new ledgers; persisting them is up to the caller.
"""

from dataclasses import dataclass, replace
from decimal import Decimal

from app.services.errors import InsufficientCapacityError, InvalidAmountError, InvariantViolationError

ZERO = Decimal("0")
# ledger columns are Numeric(12, 3)
CAPACITY_PLACES = 3


@dataclass(frozen=True)
class Ledger:
    quantity: int
    unit_value: Decimal
    original_unit_value: Decimal

    @classmethod
    def of(cls, quantity, unit_value, original_unit_value) -> "Ledger":
        return cls(int(quantity), Decimal(unit_value), Decimal(original_unit_value))

    @property
    def available(self) -> Decimal:
        if self.quantity < 1:
            return ZERO
        return self.unit_value + (self.quantity - 1) * self.original_unit_value

    @property
    def is_canonical(self) -> bool:
        if self.quantity == 0:
            return self.unit_value == 0
        return ZERO < self.unit_value <= self.original_unit_value


def validate(ledger: Ledger) -> Ledger:
    if ledger.original_unit_value <= 0:
        raise InvariantViolationError(f"Bin size must be positive, got {ledger.original_unit_value}")
    if ledger.quantity < 0:
        raise InvariantViolationError(f"Bin count went negative ({ledger.quantity})")
    if not ZERO <= ledger.unit_value <= ledger.original_unit_value:
        raise InvariantViolationError(
            f"Current bin holds {ledger.unit_value}, outside [0, {ledger.original_unit_value}]"
        )
    return ledger


def derived_ledger(amount) -> Ledger:
    amount = _positive_amount(amount)
    return Ledger(1, amount, amount)


def canonicalize(ledger: Ledger) -> Ledger:
    """Same available capacity, stored with a non-empty current bin."""
    validate(ledger)
    return _normalize(ledger.available, ledger.original_unit_value)


def allocate(ledger: Ledger, amount) -> tuple[Ledger, Ledger]:
    """Carve ``amount`` out of ``ledger``, spanning as many bins as needed.

    Returns the new parent ledger and the ledger to stamp on the derived
    item.
    """
    amount = _positive_amount(amount)
    validate(ledger)
    if amount > ledger.available:
        raise InsufficientCapacityError(
            f"Requested {amount} but only {ledger.available} is available"
        )

    if amount <= ledger.unit_value:
        parent = _draw_from_current_bin(ledger, amount)
    else:
        parent = _draw_across_bins(ledger, amount)

    _check_conserved(parent, ledger.available - amount)
    return parent, derived_ledger(amount)


def allocate_within_current_bin(ledger: Ledger, amount) -> tuple[Ledger, Ledger]:
    """Strict variant of :func:`allocate` that never leaves the current bin."""
    amount = _positive_amount(amount)
    validate(ledger)
    if ledger.quantity < 1 or amount > ledger.unit_value:
        raise InsufficientCapacityError(f"Requested {amount} does not fit in the current bin")

    parent = _draw_from_current_bin(ledger, amount)
    _check_conserved(parent, ledger.available - amount)
    return parent, derived_ledger(amount)


def restore(ledger: Ledger, amount) -> Ledger:
    """Give ``amount`` back to ``ledger`` and re-normalize bins.

    Undoes exactly one :func:`allocate` of the same amount on a canonical
    ledger.
    """
    amount = _positive_amount(amount)
    validate(ledger)
    parent = _normalize(ledger.available + amount, ledger.original_unit_value)
    _check_conserved(parent, ledger.available + amount)
    return parent


def _draw_from_current_bin(ledger: Ledger, amount: Decimal) -> Ledger:
    left = ledger.unit_value - amount
    if left > 0:
        return replace(ledger, unit_value=left)
    return _roll_over(ledger.quantity - 1, ledger.original_unit_value)


def _draw_across_bins(ledger: Ledger, amount: Decimal) -> Ledger:
    size = ledger.original_unit_value
    outstanding = amount - ledger.unit_value
    quantity = ledger.quantity - 1

    full_bins, outstanding = divmod(outstanding, size)
    quantity -= int(full_bins)
    if outstanding == 0:
        return _roll_over(quantity, size)

    if quantity < 1:
        raise InvariantViolationError(
            f"Allocation of {amount} needs a bin beyond the last one of {ledger}"
        )
    return Ledger(quantity, size - outstanding, size)


def _roll_over(quantity: int, size: Decimal) -> Ledger:
    # current bin is empty: the next full bin becomes current, if there is one
    if quantity < 0:
        raise InvariantViolationError(f"Bin count went negative ({quantity})")
    if quantity == 0:
        return Ledger(0, ZERO, size)
    return Ledger(quantity, size, size)


def _normalize(total: Decimal, size: Decimal) -> Ledger:
    if total <= 0:
        return Ledger(0, ZERO, size)
    full_bins, remainder = divmod(total, size)
    if remainder == 0:
        return _closed_bins(int(full_bins), size)
    return _open_bin(int(full_bins), remainder, size)


def _closed_bins(full_bins: int, size: Decimal) -> Ledger:
    # zero remainder: the last full bin is the current one, same as an exact-drain rollover
    return Ledger(full_bins, size, size)


def _open_bin(full_bins: int, remainder: Decimal, size: Decimal) -> Ledger:
    # the partial bin counts as a bin, so any capacity means at least one
    return Ledger(full_bins + 1, remainder, size)


def _check_conserved(ledger: Ledger, expected: Decimal) -> None:
    validate(ledger)
    if ledger.available != expected:
        raise InvariantViolationError(
            f"Capacity not conserved: expected {expected}, ledger {ledger} holds {ledger.available}"
        )


def _positive_amount(amount) -> Decimal:
    value = Decimal(amount)
    if not value.is_finite() or value <= 0:
        raise InvalidAmountError(f"Capacity amount must be positive, got {amount}")
    if value.normalize().as_tuple().exponent < -CAPACITY_PLACES:
        raise InvalidAmountError(
            f"Capacity amount {amount} has more than {CAPACITY_PLACES} decimal places"
        )
    return value
