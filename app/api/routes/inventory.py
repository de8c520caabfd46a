from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.api.deps import require_permission
from app.db.database import get_db
from app.models.inventory import Category, Product, StockStatus
from app.models.user import User
from app.schemas.inventory import (
    BulkDeleteOut,
    BulkDeleteRequest,
    CategoryCreate,
    CategoryOut,
    CategoryUpdate,
    MessageOut,
    ProductCreate,
    ProductDetailOut,
    ProductOut,
    ProductUpdate,
    SubProductCreate,
)
from app.services import ledger as capacity
from app.services.allocation import (
    create_derived_item,
    create_item_under_parent,
    delete_item,
    delete_items,
)
from app.services.ledger import Ledger
from app.services.references import generate_reference

router = APIRouter(tags=["Inventory"])

CATALOG_FIELDS = (
    "image",
    "name",
    "category_id",
    "base_price",
    "final_price",
    "status",
    "unit",
    "unit_price",
    "show_online",
    "expiration_date",
    "lot",
)


def _get_category(db: Session, category_id: int) -> Category:
    category = db.get(Category, category_id)
    if not category:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return category


def _get_product(db: Session, product_id: int) -> Product:
    product = db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


@router.post("/categories", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
def create_category(
    payload: CategoryCreate,
    _: User = Depends(require_permission("inventory:manage")),
    db: Session = Depends(get_db),
):
    category = Category(name=payload.name.strip())
    db.add(category)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Category name already exists") from exc
    db.refresh(category)
    return category


@router.get("/categories", response_model=list[CategoryOut])
def list_categories(
    _: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    return list(db.scalars(select(Category).order_by(Category.name.asc())).all())


@router.get("/categories/{category_id}", response_model=CategoryOut)
def get_category(
    category_id: int,
    _: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    return _get_category(db, category_id)


@router.patch("/categories/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    _: User = Depends(require_permission("inventory:manage")),
    db: Session = Depends(get_db),
):
    category = _get_category(db, category_id)
    if payload.name is not None:
        category.name = payload.name.strip()
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Category name already exists") from exc
    db.refresh(category)
    return category


@router.delete("/categories/{category_id}", response_model=MessageOut)
def delete_category(
    category_id: int,
    _: User = Depends(require_permission("inventory:manage")),
    db: Session = Depends(get_db),
):
    category = _get_category(db, category_id)
    used = db.scalar(select(func.count(Product.id)).where(Product.category_id == category_id))
    if used:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Category is used by existing products",
        )
    db.delete(category)
    db.commit()
    return MessageOut(message="Category deleted successfully")


@router.post("/products", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreate,
    _: User = Depends(require_permission("inventory:manage")),
    db: Session = Depends(get_db),
):
    _get_category(db, payload.category_id)
    fields = {name: getattr(payload, name) for name in CATALOG_FIELDS}
    fields["name"] = payload.name.strip()

    if payload.is_derived:
        if payload.reference:
            fields["reference"] = payload.reference
        try:
            return create_item_under_parent(
                db,
                parent_id=payload.parent_id,
                amount=payload.unit_value,
                fields=fields,
            )
        except IntegrityError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Product reference already exists") from exc

    original_unit_value = payload.original_unit_value or payload.unit_value
    stored = capacity.canonicalize(Ledger.of(payload.quantity, payload.unit_value, original_unit_value))
    product = Product(
        **fields,
        reference=payload.reference or generate_reference(),
        quantity=stored.quantity,
        unit_value=stored.unit_value,
        original_unit_value=stored.original_unit_value,
        is_derived=False,
        parent_id=None,
    )
    db.add(product)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Product reference already exists") from exc
    db.refresh(product)
    return product


@router.post("/products/create-sub-product", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_sub_product(
    payload: SubProductCreate,
    _: User = Depends(require_permission("inventory:manage")),
    db: Session = Depends(get_db),
):
    return create_derived_item(
        db,
        amount=payload.unit_value,
        parent_id=payload.parent_id,
        reference=payload.reference,
    )


@router.get("/products", response_model=list[ProductOut])
def list_products(
    category_id: int | None = Query(default=None),
    is_derived: bool | None = Query(default=None),
    parent_id: int | None = Query(default=None),
    stock_status: StockStatus | None = Query(default=None, alias="status"),
    search: str | None = Query(default=None, max_length=50),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    _: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    query = select(Product)
    if category_id is not None:
        query = query.where(Product.category_id == category_id)
    if is_derived is not None:
        query = query.where(Product.is_derived == is_derived)
    if parent_id is not None:
        query = query.where(Product.parent_id == parent_id)
    if stock_status is not None:
        query = query.where(Product.status == stock_status)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.where(
            func.lower(Product.name).like(pattern) | func.lower(Product.reference).like(pattern)
        )
    query = query.order_by(Product.id.asc()).offset(offset).limit(limit)
    return list(db.scalars(query).all())


@router.get("/products/{product_id}", response_model=ProductDetailOut)
def get_product(
    product_id: int,
    _: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    product = _get_product(db, product_id)
    derived = db.scalars(
        select(Product).where(Product.parent_id == product_id).order_by(Product.id.asc())
    ).all()
    return ProductDetailOut(
        **ProductOut.model_validate(product).model_dump(),
        derived_items=[ProductOut.model_validate(item) for item in derived],
    )


@router.patch("/products/{product_id}", response_model=ProductOut)
def update_product(
    product_id: int,
    payload: ProductUpdate,
    _: User = Depends(require_permission("inventory:manage")),
    db: Session = Depends(get_db),
):
    product = _get_product(db, product_id)
    changes = payload.model_dump(exclude_unset=True)

    if "quantity" in changes or "unit_value" in changes:
        if product.is_derived:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="The stock of a sub-product can only change by deleting it",
            )
        quantity = changes.pop("quantity", None)
        unit_value = changes.pop("unit_value", None)
        requested = Ledger.of(
            product.quantity if quantity is None else quantity,
            product.unit_value if unit_value is None else unit_value,
            product.original_unit_value,
        )
        if requested.unit_value > requested.original_unit_value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"unit_value cannot exceed original_unit_value ({product.original_unit_value})",
            )
        stored = capacity.canonicalize(requested)
        product.quantity = stored.quantity
        product.unit_value = stored.unit_value

    if changes.get("category_id") is not None:
        _get_category(db, changes["category_id"])
    for name, value in changes.items():
        if value is None:
            continue
        setattr(product, name, value.strip() if name == "name" else value)

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Product reference already exists") from exc
    except StaleDataError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Product was modified by another request, retry the operation",
        ) from exc
    db.refresh(product)
    return product


@router.delete("/products/{product_id}", response_model=MessageOut)
def delete_product(
    product_id: int,
    _: User = Depends(require_permission("inventory:manage")),
    db: Session = Depends(get_db),
):
    delete_item(db, product_id)
    return MessageOut(message="Product deleted successfully")


@router.delete("/products", response_model=BulkDeleteOut)
def delete_many_products(
    payload: BulkDeleteRequest = Body(...),
    _: User = Depends(require_permission("inventory:manage")),
    db: Session = Depends(get_db),
):
    return BulkDeleteOut(deleted_count=delete_items(db, payload.ids))
