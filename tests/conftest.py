import os
import tempfile
from decimal import Decimal

_DB_DIR = tempfile.mkdtemp(prefix="backoffice-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["BOOTSTRAP_ADMIN_ENABLED"] = "false"
os.environ["ALLOCATION_LOCK_MODE"] = "pessimistic"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from app.core.security import create_access_token, hash_password  # noqa: E402
from app.db.database import Base, SessionLocal, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.models.inventory import Category, Order, OrderLine, Product, ProductUnit  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402


@pytest.fixture(autouse=True)
def schema():
    """Fresh tables for every test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session() -> Session:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fetch_product():
    """Read a product through a brand new session, ``None`` once deleted."""

    def fetch(product_id: int) -> Product | None:
        with SessionLocal() as session:
            return session.get(Product, product_id)

    return fetch


@pytest.fixture
def category(db_session: Session) -> Category:
    category = Category(name="Drinks")
    db_session.add(category)
    db_session.commit()
    db_session.refresh(category)
    return category


@pytest.fixture
def make_product(db_session: Session, category: Category):
    counter = {"n": 0}

    def make(**overrides) -> Product:
        counter["n"] += 1
        values = dict(
            reference=f"REF{counter['n']:04d}",
            name=f"Product {counter['n']}",
            category_id=category.id,
            base_price=Decimal("100.00"),
            final_price=Decimal("120.00"),
            quantity=3,
            unit=ProductUnit.LITER,
            unit_value=Decimal("10"),
            original_unit_value=Decimal("10"),
            unit_price=Decimal("2.50"),
        )
        values.update(overrides)
        product = Product(**values)
        db_session.add(product)
        db_session.commit()
        db_session.refresh(product)
        return product

    return make


@pytest.fixture
def make_order_line(db_session: Session):
    def make(product_id: int) -> OrderLine:
        order = Order(reference=f"ORD{product_id:06d}", total_price=Decimal("5.00"))
        db_session.add(order)
        db_session.flush()
        line = OrderLine(order_id=order.id, product_id=product_id, quantity=1, price=Decimal("5.00"))
        db_session.add(line)
        db_session.commit()
        return line

    return make


def _headers_for(db_session: Session, email: str, role: UserRole) -> dict[str, str]:
    user = User(
        email=email,
        first_name="Test",
        last_name=role.value.title(),
        password_hash=hash_password("secret123"),
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    token = create_access_token(subject=str(user.id), role=role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(db_session: Session) -> dict[str, str]:
    return _headers_for(db_session, "admin@example.com", UserRole.ADMIN)


@pytest.fixture
def cashier_headers(db_session: Session) -> dict[str, str]:
    return _headers_for(db_session, "cashier@example.com", UserRole.CASHIER)


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def enforce_foreign_keys():
    """SQLite leaves foreign keys off unless asked per connection."""

    def enable(dbapi_connection, connection_record, connection_proxy):
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    engine.dispose()
    event.listen(engine, "checkout", enable)
    yield
    event.remove(engine, "checkout", enable)
    engine.dispose()
