from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db
from backend.app.db.models.models_v1 import StockDetail, ReceiveDetail, IssueDetail
from backend.app.db.models.core_types import ApprovalStatus
from backend.app.schemas.stock import StockPositionRead, StockLedgerRead

router = APIRouter(prefix="/stock")


@router.get(
    "",
    response_model=list[StockPositionRead],
)
def get_stock(
    nac_code: str | None = None,
    db: Session = Depends(get_db),
):
    """
    Stock (READ ONLY)
    - open_remaining_quantity est calculé par le rebuild, jamais modifiable
    """
    stmt = select(StockDetail).order_by(StockDetail.nac_code)
    if nac_code is not None:
        stmt = stmt.where(StockDetail.nac_code == nac_code)
    return db.execute(stmt).scalars().all()


@router.get(
    "/{nac_code}/ledger",
    response_model=StockLedgerRead,
)
def get_stock_ledger(nac_code: str, db: Session = Depends(get_db)):
    """Position + lots approuvés + sorties, dans l'ordre de rejeu."""
    stock = db.execute(select(StockDetail).where(StockDetail.nac_code == nac_code)).scalar_one_or_none()
    if not stock:
        raise HTTPException(status_code=404, detail=f"No stock record found for NAC {nac_code}")

    receives = db.execute(
        select(ReceiveDetail)
        .where(ReceiveDetail.nac_code == nac_code)
        .where(ReceiveDetail.approval_status == ApprovalStatus.approved)
        .order_by(ReceiveDetail.receive_date.asc(), ReceiveDetail.id.asc())
    ).scalars().all()

    issues = db.execute(
        select(IssueDetail)
        .where(IssueDetail.nac_code == nac_code)
        .order_by(IssueDetail.issue_date.asc(), IssueDetail.id.asc())
    ).scalars().all()

    return {"stock": stock, "receives": receives, "issues": issues}
