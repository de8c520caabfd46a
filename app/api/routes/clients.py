import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import require_permission
from app.db.database import get_db
from app.models.client import Address, Client, PhoneNumber
from app.models.inventory import Order
from app.models.user import User
from app.schemas.client import (
    AddressIn,
    AddressOut,
    ClientCreate,
    ClientOut,
    ClientUpdate,
    PhoneNumberIn,
    PhoneNumberOut,
)
from app.schemas.inventory import MessageOut

router = APIRouter(prefix="/clients", tags=["Clients"])

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ("street", "city", "state", "postal_code", "country", "is_primary")
PHONE_FIELDS = ("phone_number", "phone_type", "is_primary")


def _get_client(db: Session, client_id: int) -> Client:
    client = db.get(Client, client_id)
    if not client:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return client


def _client_out(db: Session, client: Client) -> ClientOut:
    addresses = db.scalars(
        select(Address).where(Address.client_id == client.id).order_by(Address.id.asc())
    ).all()
    phones = db.scalars(
        select(PhoneNumber).where(PhoneNumber.client_id == client.id).order_by(PhoneNumber.id.asc())
    ).all()
    order_ids = db.scalars(select(Order.id).where(Order.client_id == client.id).order_by(Order.id.asc())).all()
    return ClientOut(
        id=client.id,
        title=client.title,
        first_name=client.first_name,
        last_name=client.last_name,
        email=client.email,
        company=client.company,
        sales=client.sales,
        active=client.active,
        created_at=client.created_at,
        updated_at=client.updated_at,
        addresses=[AddressOut.model_validate(address) for address in addresses],
        phone_numbers=[PhoneNumberOut.model_validate(phone) for phone in phones],
        order_ids=list(order_ids),
    )


def _replace_children(db: Session, model, client_id: int, entries: list[AddressIn] | list[PhoneNumberIn], fields):
    """Entries with an id update that row, entries without one are added, other rows go."""
    existing = {row.id: row for row in db.scalars(select(model).where(model.client_id == client_id)).all()}
    unknown = sorted(entry.id for entry in entries if entry.id is not None and entry.id not in existing)
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{model.__name__} ids not found for this client: {unknown}",
        )

    kept = {entry.id for entry in entries if entry.id is not None}
    stale = [row_id for row_id in existing if row_id not in kept]
    if stale:
        db.execute(delete(model).where(model.id.in_(stale)))
    for entry in entries:
        values = {field: getattr(entry, field) for field in fields}
        if entry.id is None:
            db.add(model(client_id=client_id, **values))
        else:
            for field, value in values.items():
                setattr(existing[entry.id], field, value)


def _commit_client(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Client with this email already exists") from exc


@router.post("", response_model=ClientOut, status_code=status.HTTP_201_CREATED)
def create_client(
    payload: ClientCreate,
    _: User = Depends(require_permission("clients:manage")),
    db: Session = Depends(get_db),
):
    client = Client(
        title=payload.title,
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        email=payload.email.strip().lower(),
        company=payload.company,
        sales=payload.sales,
        active=payload.active,
    )
    db.add(client)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Client with this email already exists") from exc
    for address in payload.addresses:
        db.add(Address(client_id=client.id, **address.model_dump(include=set(ADDRESS_FIELDS))))
    for phone in payload.phone_numbers:
        db.add(PhoneNumber(client_id=client.id, **phone.model_dump(include=set(PHONE_FIELDS))))
    _commit_client(db)
    db.refresh(client)
    logger.info(f"Client {client.id} created")
    return _client_out(db, client)


@router.get("", response_model=list[ClientOut])
def list_clients(
    search: str | None = Query(default=None),
    company: str | None = Query(default=None),
    active: bool | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    _: User = Depends(require_permission("clients:manage")),
    db: Session = Depends(get_db),
):
    query = select(Client)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.where(
            or_(
                Client.first_name.ilike(pattern),
                Client.last_name.ilike(pattern),
                Client.email.ilike(pattern),
                Client.company.ilike(pattern),
            )
        )
    if company:
        query = query.where(Client.company.ilike(f"%{company.strip()}%"))
    if active is not None:
        query = query.where(Client.active == active)
    clients = db.scalars(query.order_by(Client.id.asc()).offset(offset).limit(limit)).all()
    return [_client_out(db, client) for client in clients]


@router.get("/{client_id}", response_model=ClientOut)
def get_client(
    client_id: int,
    _: User = Depends(require_permission("clients:manage")),
    db: Session = Depends(get_db),
):
    return _client_out(db, _get_client(db, client_id))


@router.put("/{client_id}", response_model=ClientOut)
def update_client(
    client_id: int,
    payload: ClientUpdate,
    _: User = Depends(require_permission("clients:manage")),
    db: Session = Depends(get_db),
):
    client = _get_client(db, client_id)
    changes = payload.model_dump(exclude_unset=True, exclude={"addresses", "phone_numbers"})
    if changes.get("email"):
        changes["email"] = changes["email"].strip().lower()
    for field, value in changes.items():
        if value is None and field not in ("title", "company"):
            continue
        setattr(client, field, value)

    if payload.addresses is not None:
        _replace_children(db, Address, client.id, payload.addresses, ADDRESS_FIELDS)
    if payload.phone_numbers is not None:
        _replace_children(db, PhoneNumber, client.id, payload.phone_numbers, PHONE_FIELDS)

    _commit_client(db)
    db.refresh(client)
    logger.info(f"Client {client.id} updated: {sorted(payload.model_fields_set)}")
    return _client_out(db, client)


@router.delete("/{client_id}", response_model=MessageOut)
def delete_client(
    client_id: int,
    _: User = Depends(require_permission("clients:manage")),
    db: Session = Depends(get_db),
):
    client = _get_client(db, client_id)
    in_use = db.scalar(select(Order.id).where(Order.client_id == client.id).limit(1))
    if in_use is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot delete a client referenced by existing orders",
        )
    # children first, ON DELETE CASCADE is not relied on
    db.execute(delete(Address).where(Address.client_id == client.id))
    db.execute(delete(PhoneNumber).where(PhoneNumber.client_id == client.id))
    db.delete(client)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot delete a client referenced by existing orders",
        ) from exc
    logger.info(f"Client {client_id} deleted")
    return MessageOut(message="Client deleted successfully")
