from decimal import Decimal

import pytest
from sqlalchemy import delete, update

from app.db.database import SessionLocal
from app.models.inventory import Order, OrderLine, Product
from app.services import allocation
from app.services.allocation import LockMode, create_derived_item, delete_item, delete_items, ledger_of
from app.services.errors import (
    ConcurrentUpdateError,
    HasDerivedChildrenError,
    InvariantViolationError,
    ItemInUseError,
    NotFoundError,
    ParentNotFoundError,
)
from app.services.ledger import Ledger


def test_deleting_derived_item_restores_parent(db_session, make_product, fetch_product):
    parent = make_product(quantity=3, unit_value=Decimal("2"))
    child = create_derived_item(db_session, parent_id=parent.id, amount=15)
    child_id = child.id

    delete_item(db_session, child_id)

    assert fetch_product(child_id) is None
    assert ledger_of(fetch_product(parent.id)) == Ledger.of(3, 2, 10)


def test_deleting_standalone_product(db_session, make_product, fetch_product):
    product = make_product()
    product_id = product.id

    delete_item(db_session, product_id)

    assert fetch_product(product_id) is None


def test_missing_product_is_not_found(db_session):
    with pytest.raises(NotFoundError) as exc_info:
        delete_item(db_session, 999)

    assert exc_info.value.ids == [999]


def test_parent_with_children_is_kept(db_session, make_product, fetch_product):
    parent = make_product()
    create_derived_item(db_session, parent_id=parent.id, amount=4)

    with pytest.raises(HasDerivedChildrenError) as exc_info:
        delete_item(db_session, parent.id)

    assert exc_info.value.ids == [parent.id]
    assert ledger_of(fetch_product(parent.id)) == Ledger.of(3, 6, 10)


def test_item_used_in_orders_is_kept(db_session, make_product, make_order_line, fetch_product):
    parent = make_product()
    child = create_derived_item(db_session, parent_id=parent.id, amount=4)
    child_id = child.id
    make_order_line(child_id)

    with pytest.raises(ItemInUseError) as exc_info:
        delete_item(db_session, child_id)

    assert exc_info.value.status_code == 409
    assert fetch_product(child_id) is not None
    assert ledger_of(fetch_product(parent.id)) == Ledger.of(3, 6, 10)


def test_batch_restores_each_child_to_a_shared_parent(db_session, make_product, fetch_product):
    parent = make_product(quantity=3, unit_value=Decimal("2"))
    first = create_derived_item(db_session, parent_id=parent.id, amount=5).id
    second = create_derived_item(db_session, parent_id=parent.id, amount=4).id
    assert ledger_of(fetch_product(parent.id)) == Ledger.of(2, 3, 10)

    deleted = delete_items(db_session, [second, first])

    assert deleted == 2
    assert fetch_product(first) is None
    assert fetch_product(second) is None
    assert ledger_of(fetch_product(parent.id)) == Ledger.of(3, 2, 10)


def test_batch_ignores_unknown_ids(db_session, make_product, fetch_product):
    product = make_product()
    product_id = product.id

    assert delete_items(db_session, [product_id, 12345]) == 1
    assert fetch_product(product_id) is None


def test_batch_lists_every_product_in_use(db_session, make_product, make_order_line, fetch_product):
    products = [make_product().id for _ in range(3)]
    make_order_line(products[0])
    make_order_line(products[2])

    with pytest.raises(ItemInUseError) as exc_info:
        delete_items(db_session, products)

    assert exc_info.value.ids == [products[0], products[2]]
    assert all(fetch_product(product_id) is not None for product_id in products)


def test_batch_refuses_parent_even_with_its_children(db_session, make_product, fetch_product):
    parent = make_product()
    child = create_derived_item(db_session, parent_id=parent.id, amount=4).id

    with pytest.raises(HasDerivedChildrenError) as exc_info:
        delete_items(db_session, [parent.id, child])

    assert exc_info.value.ids == [parent.id]
    assert fetch_product(child) is not None


def _three_children(db_session, make_product):
    parents = [make_product().id for _ in range(3)]
    children = [create_derived_item(db_session, parent_id=parent_id, amount=4).id for parent_id in parents]
    return parents, children


def _assert_untouched(fetch_product, parents, children):
    for parent_id in parents:
        stored = fetch_product(parent_id)
        assert stored.version == 2
    assert ledger_of(fetch_product(parents[0])) == Ledger.of(3, 6, 10)
    assert ledger_of(fetch_product(parents[2])) == Ledger.of(3, 6, 10)
    assert all(fetch_product(child_id) is not None for child_id in children)


def test_batch_is_atomic_when_a_restoration_breaks(db_session, make_product, fetch_product):
    parents, children = _three_children(db_session, make_product)
    db_session.execute(update(Product).where(Product.id == parents[1]).values(unit_value=Decimal("11")))
    db_session.commit()

    with pytest.raises(InvariantViolationError):
        delete_items(db_session, children)

    _assert_untouched(fetch_product, parents, children)


def test_batch_is_atomic_when_a_parent_vanished(db_session, make_product, fetch_product):
    parents, children = _three_children(db_session, make_product)
    db_session.execute(delete(Product).where(Product.id == parents[1]))
    db_session.commit()

    with pytest.raises(ParentNotFoundError) as exc_info:
        delete_items(db_session, children)

    assert exc_info.value.ids == [children[1]]
    assert ledger_of(fetch_product(parents[0])) == Ledger.of(3, 6, 10)
    assert ledger_of(fetch_product(parents[2])) == Ledger.of(3, 6, 10)
    assert all(fetch_product(child_id) is not None for child_id in children)


def test_batch_rolls_back_writes_already_sent_when_a_later_parent_moved(
    db_session, make_product, fetch_product, monkeypatch
):
    parents, children = _three_children(db_session, make_product)
    plan = allocation._plan_removals

    def plan_then_bump_second_parent(db, products, mode):
        work = plan(db, products, mode)
        with SessionLocal() as other:
            other.execute(
                update(Product).where(Product.id == parents[1]).values(version=Product.version + 1)
            )
            other.commit()
        return work

    monkeypatch.setattr(allocation, "_plan_removals", plan_then_bump_second_parent)

    with pytest.raises(ConcurrentUpdateError) as exc_info:
        delete_items(db_session, children, lock_mode=LockMode.OPTIMISTIC)

    assert exc_info.value.ids == [parents[1]]
    first = fetch_product(parents[0])
    assert ledger_of(first) == Ledger.of(3, 6, 10)
    assert first.version == 2
    assert fetch_product(parents[1]).version == 3
    assert all(fetch_product(child_id) is not None for child_id in children)


def _insert_order_line_after_planning(monkeypatch, product_id):
    plan = allocation._plan_removals

    def plan_then_order(db, products, mode):
        work = plan(db, products, mode)
        with SessionLocal() as other:
            order = Order(reference="RACE000001", total_price=Decimal("5.00"))
            other.add(order)
            other.flush()
            other.add(OrderLine(order_id=order.id, product_id=product_id, quantity=1, price=Decimal("5.00")))
            other.commit()
        return work

    monkeypatch.setattr(allocation, "_plan_removals", plan_then_order)


def test_order_placed_during_deletion_keeps_the_item(
    db_session, make_product, fetch_product, monkeypatch, enforce_foreign_keys
):
    parent = make_product()
    child_id = create_derived_item(db_session, parent_id=parent.id, amount=4).id
    _insert_order_line_after_planning(monkeypatch, child_id)

    with pytest.raises(ItemInUseError) as exc_info:
        delete_item(db_session, child_id, lock_mode=LockMode.OPTIMISTIC)

    assert exc_info.value.status_code == 409
    assert exc_info.value.ids == [child_id]
    assert fetch_product(child_id) is not None
    stored = fetch_product(parent.id)
    assert ledger_of(stored) == Ledger.of(3, 6, 10)
    assert stored.version == 2


def test_order_placed_during_batch_deletion_keeps_every_item(
    db_session, make_product, fetch_product, monkeypatch, enforce_foreign_keys
):
    parents, children = _three_children(db_session, make_product)
    _insert_order_line_after_planning(monkeypatch, children[2])

    with pytest.raises(ItemInUseError) as exc_info:
        delete_items(db_session, children, lock_mode=LockMode.OPTIMISTIC)

    assert exc_info.value.ids == [children[2]]
    _assert_untouched(fetch_product, parents, children)
