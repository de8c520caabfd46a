"""clients, vouchers, configuration and order links

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 14:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019_0002"
down_revision: Union[str, Sequence[str], None] = "20261019_0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    client_title_enum = sa.Enum("M", "MME", name="clienttitle")
    phone_type_enum = sa.Enum("MOBILE", "HOME", "WORK", "FAX", name="phonetype")

    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", client_title_enum, nullable=True),
        sa.Column("first_name", sa.String(length=30), nullable=False),
        sa.Column("last_name", sa.String(length=30), nullable=False),
        sa.Column("email", sa.String(length=100), nullable=False),
        sa.Column("company", sa.String(length=50), nullable=True),
        sa.Column("sales", sa.Integer(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_clients_company"), "clients", ["company"], unique=False)
    op.create_index(op.f("ix_clients_email"), "clients", ["email"], unique=True)
    op.create_index(op.f("ix_clients_id"), "clients", ["id"], unique=False)

    op.create_table(
        "addresses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("street", sa.String(length=100), nullable=False),
        sa.Column("city", sa.String(length=50), nullable=False),
        sa.Column("state", sa.String(length=50), nullable=True),
        sa.Column("postal_code", sa.String(length=20), nullable=True),
        sa.Column("country", sa.String(length=50), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_addresses_client_id"), "addresses", ["client_id"], unique=False)
    op.create_index(op.f("ix_addresses_id"), "addresses", ["id"], unique=False)

    op.create_table(
        "phone_numbers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("phone_number", sa.String(length=20), nullable=False),
        sa.Column("phone_type", phone_type_enum, nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_phone_numbers_client_id"), "phone_numbers", ["client_id"], unique=False)
    op.create_index(op.f("ix_phone_numbers_id"), "phone_numbers", ["id"], unique=False)

    op.create_table(
        "vouchers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("voucher_reference", sa.String(length=20), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=True),
        sa.Column("percentage", sa.Integer(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("expired_at", sa.DateTime(), nullable=True),
        sa.Column("multiple", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_vouchers_id"), "vouchers", ["id"], unique=False)
    op.create_index(op.f("ix_vouchers_voucher_reference"), "vouchers", ["voucher_reference"], unique=True)

    op.create_table(
        "configuration",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tax", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.add_column("orders", sa.Column("client_id", sa.Integer(), nullable=True))
    op.add_column("orders", sa.Column("voucher_reference", sa.String(length=20), nullable=True))
    op.add_column(
        "orders",
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_foreign_key(
        "fk_orders_client_id_clients",
        "orders",
        "clients",
        ["client_id"],
        ["id"],
        ondelete="RESTRICT",
    )
    op.create_foreign_key(
        "fk_orders_voucher_reference_vouchers",
        "orders",
        "vouchers",
        ["voucher_reference"],
        ["voucher_reference"],
        ondelete="RESTRICT",
    )
    op.create_index(op.f("ix_orders_client_id"), "orders", ["client_id"], unique=False)
    op.create_index(op.f("ix_orders_voucher_reference"), "orders", ["voucher_reference"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_orders_voucher_reference"), table_name="orders")
    op.drop_index(op.f("ix_orders_client_id"), table_name="orders")
    op.drop_constraint("fk_orders_voucher_reference_vouchers", "orders", type_="foreignkey")
    op.drop_constraint("fk_orders_client_id_clients", "orders", type_="foreignkey")
    op.drop_column("orders", "updated_at")
    op.drop_column("orders", "voucher_reference")
    op.drop_column("orders", "client_id")

    op.drop_table("configuration")

    op.drop_index(op.f("ix_vouchers_voucher_reference"), table_name="vouchers")
    op.drop_index(op.f("ix_vouchers_id"), table_name="vouchers")
    op.drop_table("vouchers")

    op.drop_index(op.f("ix_phone_numbers_id"), table_name="phone_numbers")
    op.drop_index(op.f("ix_phone_numbers_client_id"), table_name="phone_numbers")
    op.drop_table("phone_numbers")

    op.drop_index(op.f("ix_addresses_id"), table_name="addresses")
    op.drop_index(op.f("ix_addresses_client_id"), table_name="addresses")
    op.drop_table("addresses")

    op.drop_index(op.f("ix_clients_id"), table_name="clients")
    op.drop_index(op.f("ix_clients_email"), table_name="clients")
    op.drop_index(op.f("ix_clients_company"), table_name="clients")
    op.drop_table("clients")

    bind = op.get_bind()
    sa.Enum(name="phonetype").drop(bind, checkfirst=True)
    sa.Enum(name="clienttitle").drop(bind, checkfirst=True)
