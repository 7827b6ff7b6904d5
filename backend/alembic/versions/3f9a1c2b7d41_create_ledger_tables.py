"""create stock / receive / rrp / issue tables

Revision ID: 3f9a1c2b7d41
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3f9a1c2b7d41"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

STATUS_VALUES = ("PENDING", "APPROVED")

# type créé une seule fois (Postgres), partagé par les deux tables
APPROVAL_STATUS = postgresql.ENUM(*STATUS_VALUES, name="approval_status", create_type=False)


def _qty() -> sa.Numeric:
    return sa.Numeric(18, 4)


def upgrade() -> None:
    sa.Enum(*STATUS_VALUES, name="approval_status").create(op.get_bind(), checkfirst=True)

    op.create_table(
        "stock_details",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("nac_code", sa.String(64), nullable=False, unique=True),
        sa.Column("item_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("open_quantity", _qty(), nullable=False, server_default="0"),
        sa.Column("open_amount", _qty(), nullable=False, server_default="0"),
        sa.Column("open_remaining_quantity", _qty()),
        sa.Column("current_balance", _qty(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("open_quantity >= 0", name="ck_stock_open_qty_nonneg"),
        sa.CheckConstraint("open_amount >= 0", name="ck_stock_open_amount_nonneg"),
        sa.CheckConstraint(
            "open_remaining_quantity IS NULL OR open_remaining_quantity >= 0",
            name="ck_stock_open_remaining_nonneg",
        ),
    )

    op.create_table(
        "rrp_details",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("rrp_number", sa.String(64), nullable=False),
        sa.Column("item_price", _qty()),
        sa.Column("total_amount", _qty()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "receive_details",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("nac_code", sa.String(64), nullable=False),
        sa.Column("receive_date", sa.Date()),
        sa.Column("received_quantity", _qty(), nullable=False),
        sa.Column("rrp_fk", sa.BigInteger(), sa.ForeignKey("rrp_details.id", ondelete="SET NULL")),
        sa.Column("approval_status", APPROVAL_STATUS, nullable=False, server_default="PENDING"),
        sa.Column("remaining_quantity", _qty(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("received_quantity >= 0", name="ck_receive_qty_nonneg"),
        sa.CheckConstraint("remaining_quantity >= 0", name="ck_receive_remaining_nonneg"),
    )
    op.create_index("ix_receive_details_nac_code", "receive_details", ["nac_code"])
    op.create_index("ix_receive_details_nac_date", "receive_details", ["nac_code", "receive_date", "id"])

    op.create_table(
        "issue_details",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("nac_code", sa.String(64), nullable=False),
        sa.Column("issue_date", sa.Date()),
        sa.Column("issue_slip_number", sa.String(64)),
        sa.Column("issue_quantity", _qty(), nullable=False),
        sa.Column("issue_cost", _qty(), nullable=False, server_default="0"),
        sa.Column("remaining_balance", _qty(), nullable=False, server_default="0"),
        sa.Column("approval_status", APPROVAL_STATUS, nullable=False, server_default="PENDING"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("remaining_balance >= 0", name="ck_issue_remaining_balance_nonneg"),
    )
    op.create_index("ix_issue_details_nac_code", "issue_details", ["nac_code"])
    op.create_index("ix_issue_details_nac_date", "issue_details", ["nac_code", "issue_date", "id"])


def downgrade() -> None:
    op.drop_index("ix_issue_details_nac_date", table_name="issue_details")
    op.drop_index("ix_issue_details_nac_code", table_name="issue_details")
    op.drop_table("issue_details")
    op.drop_index("ix_receive_details_nac_date", table_name="receive_details")
    op.drop_index("ix_receive_details_nac_code", table_name="receive_details")
    op.drop_table("receive_details")
    op.drop_table("rrp_details")
    op.drop_table("stock_details")
    # Postgres : le type ENUM survit à la table
    sa.Enum(*STATUS_VALUES, name="approval_status").drop(op.get_bind(), checkfirst=True)
