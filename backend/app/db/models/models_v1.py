from __future__ import annotations

from datetime import datetime, date

from sqlalchemy import (
    String,
    DateTime,
    Date,
    ForeignKey,
    Numeric,
    Enum,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.db.base import Base, BigIntPK
from backend.app.db.models.core_types import ApprovalStatus


# Quantités et montants : NUMERIC en base, float côté Python
Quantity = Numeric(18, 4, asdecimal=False)
Amount = Numeric(18, 4, asdecimal=False)


def _approval_enum() -> Enum:
    # stocke la valeur ("APPROVED"), pas le nom du membre
    return Enum(
        ApprovalStatus,
        name="approval_status",
        values_callable=lambda e: [m.value for m in e],
    )


# ---------- STOCK ----------
class StockDetail(Base):
    __tablename__ = "stock_details"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    nac_code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    item_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)

    open_quantity: Mapped[float] = mapped_column(Quantity, default=0, nullable=False)
    open_amount: Mapped[float] = mapped_column(Amount, default=0, nullable=False)
    # calculé par le rebuild, jamais saisi
    open_remaining_quantity: Mapped[float | None] = mapped_column(Quantity)
    current_balance: Mapped[float] = mapped_column(Quantity, default=0, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("open_quantity >= 0", name="ck_stock_open_qty_nonneg"),
        CheckConstraint("open_amount >= 0", name="ck_stock_open_amount_nonneg"),
        CheckConstraint(
            "open_remaining_quantity IS NULL OR open_remaining_quantity >= 0",
            name="ck_stock_open_remaining_nonneg",
        ),
    )


# ---------- PROCUREMENT / INBOUND ----------
class RrpDetail(Base):
    __tablename__ = "rrp_details"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    rrp_number: Mapped[str] = mapped_column(String(64), nullable=False)
    item_price: Mapped[float | None] = mapped_column(Amount)
    total_amount: Mapped[float | None] = mapped_column(Amount)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class ReceiveDetail(Base):
    __tablename__ = "receive_details"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    nac_code: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    receive_date: Mapped[date | None] = mapped_column(Date)
    received_quantity: Mapped[float] = mapped_column(Quantity, nullable=False)
    rrp_fk: Mapped[int | None] = mapped_column(ForeignKey("rrp_details.id", ondelete="SET NULL"))
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        _approval_enum(),
        default=ApprovalStatus.pending,
        nullable=False,
    )
    # calculé par le rebuild
    remaining_quantity: Mapped[float] = mapped_column(Quantity, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    rrp: Mapped[RrpDetail | None] = relationship()

    __table_args__ = (
        CheckConstraint("received_quantity >= 0", name="ck_receive_qty_nonneg"),
        CheckConstraint("remaining_quantity >= 0", name="ck_receive_remaining_nonneg"),
        Index("ix_receive_details_nac_date", "nac_code", "receive_date", "id"),
    )


# ---------- OUTBOUND ----------
class IssueDetail(Base):
    __tablename__ = "issue_details"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    nac_code: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    issue_date: Mapped[date | None] = mapped_column(Date)
    issue_slip_number: Mapped[str | None] = mapped_column(String(64))
    issue_quantity: Mapped[float] = mapped_column(Quantity, nullable=False)

    # calculés par le rebuild (sauf coût carburant saisi à la main)
    issue_cost: Mapped[float] = mapped_column(Amount, default=0, nullable=False)
    remaining_balance: Mapped[float] = mapped_column(Quantity, default=0, nullable=False)

    approval_status: Mapped[ApprovalStatus] = mapped_column(
        _approval_enum(),
        default=ApprovalStatus.pending,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("remaining_balance >= 0", name="ck_issue_remaining_balance_nonneg"),
        Index("ix_issue_details_nac_date", "nac_code", "issue_date", "id"),
    )
