"""Derived item allocation and removal.

Every operation here reads the ledgers it needs, plans its writes into a
:class:`UnitOfWork` and submits that plan in one transaction. Ledger
writes are compare-and-swap updates on ``products.version``, so a parent
changed by someone else between read and write makes the whole unit of
work fail with :class:`ConcurrentUpdateError` instead of losing an
update. With ``LockMode.PESSIMISTIC`` the rows are also read
``FOR UPDATE`` and stay locked until commit.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.inventory import OrderLine, Product
from app.services import ledger as capacity
from app.services.errors import (
    ConcurrentUpdateError,
    HasDerivedChildrenError,
    InventoryError,
    ItemInUseError,
    NotAllocatableError,
    NotFoundError,
    ParentNotFoundError,
)
from app.services.ledger import Ledger
from app.services.references import generate_reference

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class LockMode(str, Enum):
    PESSIMISTIC = "pessimistic"
    OPTIMISTIC = "optimistic"


@dataclass(frozen=True)
class LedgerWrite:
    item_id: int
    expected_version: int
    ledger: Ledger


@dataclass
class UnitOfWork:
    ledger_writes: dict[int, LedgerWrite] = field(default_factory=dict)
    deletions: list[int] = field(default_factory=list)
    insertions: list[Product] = field(default_factory=list)

    def ledger_for(self, product: Product) -> Ledger:
        planned = self.ledger_writes.get(product.id)
        return planned.ledger if planned else ledger_of(product)

    def write_ledger(self, product: Product, new_ledger: Ledger) -> None:
        # several writes to one row collapse into one guarded by the version first read
        planned = self.ledger_writes.get(product.id)
        expected = planned.expected_version if planned else product.version
        self.ledger_writes[product.id] = LedgerWrite(product.id, expected, new_ledger)

    def delete(self, product: Product) -> None:
        self.deletions.append(product.id)

    def insert(self, product: Product) -> None:
        self.insertions.append(product)


def ledger_of(product: Product) -> Ledger:
    return Ledger.of(product.quantity, product.unit_value, product.original_unit_value)


def resolve_lock_mode(lock_mode: LockMode | str | None) -> LockMode:
    return LockMode(lock_mode or settings.allocation_lock_mode)


def commit_unit_of_work(db: Session, work: UnitOfWork) -> None:
    try:
        now = datetime.utcnow()
        for write in work.ledger_writes.values():
            result = db.execute(
                update(Product)
                .where(Product.id == write.item_id, Product.version == write.expected_version)
                .values(
                    quantity=write.ledger.quantity,
                    unit_value=write.ledger.unit_value,
                    version=write.expected_version + 1,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConcurrentUpdateError(
                    f"Product {write.item_id} was modified by another request, retry the operation",
                    ids=[write.item_id],
                )
        if work.deletions:
            db.execute(
                delete(Product)
                .where(Product.id.in_(work.deletions))
                .execution_options(synchronize_session=False)
            )
        for product in work.insertions:
            db.add(product)
        db.flush()
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.error(f"Unit of work rolled back: {exc}")
        raise


def _load_product(db: Session, *, lock_mode: LockMode, product_id: int | None = None, reference: str | None = None):
    query = select(Product)
    if product_id is not None:
        query = query.where(Product.id == product_id)
    else:
        query = query.where(Product.reference == reference)
    if lock_mode is LockMode.PESSIMISTIC:
        query = query.with_for_update().execution_options(populate_existing=True)
    return db.scalar(query)


def _load_products(db: Session, product_ids: Iterable[int], lock_mode: LockMode) -> list[Product]:
    # ordered by id so concurrent batches lock rows in the same order
    query = select(Product).where(Product.id.in_(list(product_ids))).order_by(Product.id.asc())
    if lock_mode is LockMode.PESSIMISTIC:
        query = query.with_for_update().execution_options(populate_existing=True)
    return list(db.scalars(query).all())


def _ensure_allocatable(parent: Product) -> None:
    if parent.is_derived:
        raise NotAllocatableError("Derived products cannot be split further", ids=[parent.id])
    if not parent.is_allocatable:
        raise NotAllocatableError(
            "Parent product is not eligible for sub products (unit, unit value and unit price are required)",
            ids=[parent.id],
        )


def build_derived_product(parent: Product, derived: Ledger) -> Product:
    amount = derived.original_unit_value
    return Product(
        reference=generate_reference(),
        name=parent.name,
        category_id=parent.category_id,
        base_price=(Decimal(parent.base_price) * amount / Decimal(parent.original_unit_value)).quantize(CENT),
        final_price=(Decimal(parent.unit_price) * amount).quantize(CENT),
        status=parent.status,
        image=parent.image,
        unit=parent.unit,
        unit_price=parent.unit_price,
        show_online=parent.show_online,
        expiration_date=parent.expiration_date,
        lot=parent.lot,
        quantity=derived.quantity,
        unit_value=derived.unit_value,
        original_unit_value=derived.original_unit_value,
        is_derived=True,
        parent_id=parent.id,
    )


def create_derived_item(
    db: Session,
    *,
    amount,
    parent_id: int | None = None,
    reference: str | None = None,
    lock_mode: LockMode | str | None = None,
) -> Product:
    """Allocate ``amount`` from a parent, spanning bins, and persist the derived item."""
    mode = resolve_lock_mode(lock_mode)
    try:
        if parent_id is None and not reference:
            raise ParentNotFoundError("A parent id or reference is required")
        parent = _load_product(db, lock_mode=mode, product_id=parent_id, reference=reference)
        if not parent:
            raise ParentNotFoundError("Parent product not found")
        _ensure_allocatable(parent)

        parent_ledger, child_ledger = capacity.allocate(ledger_of(parent), amount)
        child = build_derived_product(parent, child_ledger)
        work = UnitOfWork()
        work.write_ledger(parent, parent_ledger)
        work.insert(child)
    except InventoryError as exc:
        db.rollback()
        logger.warning(f"Allocation of {amount} from parent {parent_id or reference} rejected: {exc.message}")
        raise

    commit_unit_of_work(db, work)
    db.refresh(child)
    logger.info(
        f"Allocated {child_ledger.original_unit_value} from product {parent.id} into derived product {child.id}, "
        f"parent now quantity={parent_ledger.quantity} unit_value={parent_ledger.unit_value}"
    )
    return child


def create_item_under_parent(
    db: Session,
    *,
    parent_id: int,
    amount,
    fields: dict,
    lock_mode: LockMode | str | None = None,
) -> Product:
    """Create a derived item from the parent's current bin only.

    ``fields`` carries the catalog attributes supplied by the caller, a
    missing ``reference`` is generated. The ledger and parent link are
    always stamped here.
    """
    mode = resolve_lock_mode(lock_mode)
    try:
        parent = _load_product(db, lock_mode=mode, product_id=parent_id)
        if not parent:
            raise ParentNotFoundError("Parent product not found")
        _ensure_allocatable(parent)

        parent_ledger, child_ledger = capacity.allocate_within_current_bin(ledger_of(parent), amount)
        values = {"reference": generate_reference(), **fields}
        child = Product(
            **values,
            quantity=child_ledger.quantity,
            unit_value=child_ledger.unit_value,
            original_unit_value=child_ledger.original_unit_value,
            is_derived=True,
            parent_id=parent.id,
        )
        work = UnitOfWork()
        work.write_ledger(parent, parent_ledger)
        work.insert(child)
    except InventoryError as exc:
        db.rollback()
        logger.warning(f"Single-bin allocation of {amount} from parent {parent_id} rejected: {exc.message}")
        raise

    commit_unit_of_work(db, work)
    db.refresh(child)
    logger.info(f"Allocated {amount} from the current bin of product {parent.id} into product {child.id}")
    return child


def _in_use_ids(db: Session, product_ids: list[int]) -> list[int]:
    return list(
        db.scalars(
            select(OrderLine.product_id).where(OrderLine.product_id.in_(product_ids)).distinct()
        ).all()
    )


def _ids_with_children(db: Session, product_ids: list[int]) -> list[int]:
    return list(
        db.scalars(
            select(Product.parent_id).where(Product.parent_id.in_(product_ids)).distinct()
        ).all()
    )


def _plan_removals(db: Session, products: list[Product], mode: LockMode) -> UnitOfWork:
    work = UnitOfWork()
    parent_ids = sorted({p.parent_id for p in products if p.parent_id is not None})
    parents = {p.id: p for p in _load_products(db, parent_ids, mode)} if parent_ids else {}

    for product in products:
        if product.parent_id is not None:
            parent = parents.get(product.parent_id)
            if parent is None:
                raise ParentNotFoundError(
                    f"Parent product {product.parent_id} of product {product.id} not found",
                    ids=[product.id],
                )
            restored = capacity.restore(work.ledger_for(parent), product.unit_value)
            work.write_ledger(parent, restored)
        work.delete(product)
    return work


def _commit_removals(db: Session, work: UnitOfWork) -> None:
    # an order line inserted after the usage check trips the RESTRICT foreign key
    try:
        commit_unit_of_work(db, work)
    except IntegrityError as exc:
        in_use = _in_use_ids(db, work.deletions) or work.deletions
        db.rollback()
        logger.warning(f"Deletion of products {work.deletions} lost a race with an order: {exc.orig}")
        raise ItemInUseError("Some products are used in orders", ids=in_use) from exc


def delete_item(db: Session, product_id: int, lock_mode: LockMode | str | None = None) -> None:
    mode = resolve_lock_mode(lock_mode)
    try:
        product = _load_product(db, lock_mode=mode, product_id=product_id)
        if not product:
            raise NotFoundError("Product not found", ids=[product_id])
        if _in_use_ids(db, [product_id]):
            raise ItemInUseError("Product is used in orders", ids=[product_id])
        if _ids_with_children(db, [product_id]):
            raise HasDerivedChildrenError(
                "Cannot delete a main product with existing sub-products",
                ids=[product_id],
            )
        work = _plan_removals(db, [product], mode)
    except InventoryError as exc:
        db.rollback()
        logger.warning(f"Deletion of product {product_id} rejected: {exc.message}")
        raise

    _commit_removals(db, work)
    logger.info(f"Deleted product {product_id}, restored parents {sorted(work.ledger_writes)}")


def delete_items(db: Session, product_ids: Iterable[int], lock_mode: LockMode | str | None = None) -> int:
    """Delete several products at once; ids that do not exist are ignored.

    Usage and sub-product checks run over the whole set before anything is
    touched, and all restorations and deletions commit together.
    """
    mode = resolve_lock_mode(lock_mode)
    ids = sorted(set(product_ids))
    if not ids:
        return 0
    try:
        in_use = _in_use_ids(db, ids)
        if in_use:
            raise ItemInUseError("Some products are used in orders", ids=in_use)
        products = _load_products(db, ids, mode)
        blocked = _ids_with_children(db, [p.id for p in products])
        if blocked:
            raise HasDerivedChildrenError(
                "Cannot delete main products with existing sub-products",
                ids=blocked,
            )
        work = _plan_removals(db, products, mode)
    except InventoryError as exc:
        db.rollback()
        logger.warning(f"Bulk deletion of products {ids} rejected: {exc.message} {exc.ids}")
        raise

    _commit_removals(db, work)
    logger.info(f"Deleted {len(products)} products, restored parents {sorted(work.ledger_writes)}")
    return len(products)
