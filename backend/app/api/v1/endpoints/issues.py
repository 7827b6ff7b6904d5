from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db
from backend.app.api.tx import commit_or_rollback
from backend.services.procurement import (
    create_issue,
    update_issue,
    delete_issue,
    approve_issues,
    reject_issues,
)

router = APIRouter(prefix="/issues")


# ---------- Schemas ----------
class IssueCreate(BaseModel):
    nac_code: str = Field(min_length=1, max_length=64)
    issue_date: date
    quantity: float = Field(gt=0)
    issue_slip_number: str | None = None
    # saisi uniquement pour le carburant
    issue_cost: float = Field(default=0, ge=0)


class IssueUpdate(BaseModel):
    quantity: float | None = Field(default=None, gt=0)
    # prix unitaire carburant : issue_cost = fuel_rate × quantité
    fuel_rate: float | None = Field(default=None, ge=0)


class IssueIds(BaseModel):
    issue_ids: list[int] = Field(min_length=1)


# ---------- Endpoints ----------
@router.post("", status_code=201)
def post_issue(payload: IssueCreate, db: Session = Depends(get_db)):
    with commit_or_rollback(db, action="create issue"):
        issue = create_issue(
            db,
            nac_code=payload.nac_code,
            issue_date=payload.issue_date,
            quantity=payload.quantity,
            issue_slip_number=payload.issue_slip_number,
            issue_cost=payload.issue_cost,
        )
        created = {
            "id": int(issue.id),
            "issue_cost": issue.issue_cost,
            "remaining_balance": issue.remaining_balance,
        }
    return created


@router.post("/approve")
def post_approve_issues(payload: IssueIds, db: Session = Depends(get_db)):
    with commit_or_rollback(db, action="approve issues"):
        issues = approve_issues(db, payload.issue_ids)
    return {"approved_count": len(issues)}


@router.post("/reject")
def post_reject_issues(payload: IssueIds, db: Session = Depends(get_db)):
    with commit_or_rollback(db, action="reject issues"):
        count = reject_issues(db, payload.issue_ids)
    return {"rejected_count": count}


@router.patch("/{issue_id}")
def patch_issue(issue_id: int, payload: IssueUpdate, db: Session = Depends(get_db)):
    with commit_or_rollback(db, action="update issue item"):
        issue = update_issue(db, issue_id, quantity=payload.quantity, fuel_rate=payload.fuel_rate)
        updated = {
            "id": int(issue.id),
            "issue_quantity": issue.issue_quantity,
            "issue_cost": issue.issue_cost,
            "remaining_balance": issue.remaining_balance,
        }
    return updated


@router.delete("/{issue_id}")
def remove_issue(issue_id: int, db: Session = Depends(get_db)):
    with commit_or_rollback(db, action="delete issue item"):
        nac_code = delete_issue(db, issue_id)
    return {"deleted": issue_id, "nac_code": nac_code}
