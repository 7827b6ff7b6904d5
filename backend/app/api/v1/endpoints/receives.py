from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db
from backend.app.api.tx import commit_or_rollback
from backend.services.procurement import approve_receive

router = APIRouter(prefix="/receives")


@router.post("/{receive_id}/approve")
def post_approve_receive(receive_id: int, db: Session = Depends(get_db)):
    with commit_or_rollback(db, action="approve receive"):
        receive = approve_receive(db, receive_id)
        nac_code = receive.nac_code
    return {"id": receive_id, "nac_code": nac_code, "approval_status": "APPROVED"}
