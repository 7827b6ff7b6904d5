from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import StockDetail, ReceiveDetail, RrpDetail, IssueDetail
from backend.app.db.models.core_types import ApprovalStatus


def make_stock(
    db: Session,
    nac_code: str,
    *,
    open_quantity: float = 0,
    open_amount: float = 0,
    current_balance: float = 0,
) -> StockDetail:
    stock = StockDetail(
        nac_code=nac_code,
        item_name=f"ITEM {nac_code}",
        open_quantity=open_quantity,
        open_amount=open_amount,
        current_balance=current_balance,
    )
    db.add(stock)
    db.flush()
    return stock


def make_receive(
    db: Session,
    nac_code: str,
    receive_date: date,
    quantity: float,
    *,
    total_amount: float | None = None,
    item_price: float | None = None,
    with_rrp: bool = True,
    status: ApprovalStatus = ApprovalStatus.approved,
) -> ReceiveDetail:
    rrp_id = None
    if with_rrp:
        rrp = RrpDetail(rrp_number=f"RRP-{nac_code}-{receive_date}", item_price=item_price, total_amount=total_amount)
        db.add(rrp)
        db.flush()
        rrp_id = rrp.id

    receive = ReceiveDetail(
        nac_code=nac_code,
        receive_date=receive_date,
        received_quantity=quantity,
        rrp_fk=rrp_id,
        approval_status=status,
        remaining_quantity=quantity,
    )
    db.add(receive)
    db.flush()
    return receive


def make_issue(
    db: Session,
    nac_code: str,
    issue_date: date,
    quantity: float,
    *,
    issue_cost: float = 0,
    status: ApprovalStatus = ApprovalStatus.pending,
) -> IssueDetail:
    issue = IssueDetail(
        nac_code=nac_code,
        issue_date=issue_date,
        issue_quantity=quantity,
        issue_cost=issue_cost,
        remaining_balance=0,
        approval_status=status,
    )
    db.add(issue)
    db.flush()
    return issue
