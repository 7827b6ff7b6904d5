from datetime import date

from pydantic import BaseModel

from backend.app.db.models.core_types import ApprovalStatus


class StockPositionRead(BaseModel):
    nac_code: str
    item_name: str

    open_quantity: float
    open_amount: float
    open_remaining_quantity: float | None  # READ ONLY : calculé par le rebuild
    current_balance: float

    class Config:
        from_attributes = True


class ReceiptLotRead(BaseModel):
    id: int
    receive_date: date | None
    received_quantity: float
    remaining_quantity: float  # READ ONLY
    approval_status: ApprovalStatus

    class Config:
        from_attributes = True


class IssueRecordRead(BaseModel):
    id: int
    issue_date: date | None
    issue_slip_number: str | None
    issue_quantity: float
    issue_cost: float  # READ ONLY (sauf carburant)
    remaining_balance: float  # READ ONLY
    approval_status: ApprovalStatus

    class Config:
        from_attributes = True


class StockLedgerRead(BaseModel):
    stock: StockPositionRead
    receives: list[ReceiptLotRead]
    issues: list[IssueRecordRead]
