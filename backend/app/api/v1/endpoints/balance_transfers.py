from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db
from backend.app.api.tx import commit_or_rollback
from backend.services.procurement import transfer_balance, revert_balance_transfer

router = APIRouter(prefix="/balance-transfers")


class BalanceTransferCreate(BaseModel):
    source_receive_id: int
    to_nac_code: str = Field(min_length=1, max_length=64)
    quantity: float = Field(gt=0)
    transfer_date: date


@router.post("", status_code=201)
def post_balance_transfer(payload: BalanceTransferCreate, db: Session = Depends(get_db)):
    with commit_or_rollback(db, action="transfer balance"):
        issue, receive = transfer_balance(
            db,
            source_receive_id=payload.source_receive_id,
            to_nac_code=payload.to_nac_code,
            quantity=payload.quantity,
            transfer_date=payload.transfer_date,
        )
        ids = {"issue_id": int(issue.id), "receive_id": int(receive.id)}
    return ids


@router.post("/{rrp_id}/revert")
def post_revert_balance_transfer(rrp_id: int, db: Session = Depends(get_db)):
    with commit_or_rollback(db, action="revert balance transfer"):
        from_nac_code, to_nac_code, quantity = revert_balance_transfer(db, rrp_id)
    return {"from_nac_code": from_nac_code, "to_nac_code": to_nac_code, "quantity": quantity}
