"""
Procurement service.

Ce module orchestre les flux métier (réception, sortie, transfert de solde)
mais ne contient AUCUN calcul de coût ni de solde dérivé : chaque opération
applique ses propres écritures puis déclenche le rebuild des codes touchés.

Toute la logique FIFO est centralisée dans :
    backend.services.ledger / backend.services.inventory

Aucune fonction ici ne commit : la transaction appartient à l'appelant.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import (
    StockDetail,
    ReceiveDetail,
    RrpDetail,
    IssueDetail,
)
from backend.app.db.models.core_types import ApprovalStatus
from backend.services.inventory import rebuild_nac_inventory_state, rebuild_nac_codes
from backend.services.ledger import to_float, unit_cost


log = logging.getLogger("nacledger.procurement")

TRANSFER_RRP_NUMBER = "Code Transfer"
TRANSFER_SLIP_PREFIX = "code_transfer_to_"


class RecordNotFound(ValueError):
    pass


def _get_stock_for_update(db: Session, nac_code: str) -> StockDetail | None:
    return (
        db.execute(
            select(StockDetail)
            .where(StockDetail.nac_code == nac_code)
            .with_for_update()
        )
        .scalar_one_or_none()
    )


def _get_or_create_stock(db: Session, nac_code: str) -> StockDetail:
    stock = _get_stock_for_update(db, nac_code)
    if stock:
        return stock

    log.info("creating stock_details for NAC %s", nac_code)
    stock = StockDetail(
        nac_code=nac_code,
        item_name="",
        open_quantity=0,
        open_amount=0,
        current_balance=0,
    )
    db.add(stock)
    db.flush()
    return stock


def _get_issue(db: Session, issue_id: int) -> IssueDetail:
    issue = db.get(IssueDetail, issue_id)
    if not issue:
        raise RecordNotFound("Issue item not found")
    return issue


def _load_issues(db: Session, issue_ids: Iterable[int]) -> list[IssueDetail]:
    ids = sorted({int(i) for i in issue_ids if i is not None})
    if not ids:
        raise ValueError("No issue IDs provided")
    rows = (
        db.execute(
            select(IssueDetail)
            .where(IssueDetail.id.in_(ids))
            .order_by(IssueDetail.id.asc())
        )
        .scalars()
        .all()
    )
    if not rows:
        raise RecordNotFound("Issue records not found")
    return list(rows)


def _lot_total_cost(receive: ReceiveDetail) -> float:
    # même priorité que le rebuild : total, sinon prix unitaire × quantité
    if not receive.rrp:
        return 0.0
    if receive.rrp.total_amount is not None:
        return to_float(receive.rrp.total_amount)
    return to_float(receive.rrp.item_price) * to_float(receive.received_quantity)


# ---------- RÉCEPTION ----------
def approve_receive(db: Session, receive_id: int) -> ReceiveDetail:
    """
    Approuve une réception : crée la position de stock au premier passage
    (ouverture 0/0), ajoute la quantité au solde courant, puis rebuild.
    """
    receive = db.get(ReceiveDetail, receive_id)
    if not receive:
        raise RecordNotFound("Receive record not found")
    if receive.approval_status == ApprovalStatus.approved:
        raise ValueError(f"Receive {receive_id} is already approved")
    if not receive.nac_code or not receive.nac_code.strip():
        raise ValueError(f"Cannot create stock record - NAC code is missing for receive {receive_id}")

    stock = _get_or_create_stock(db, receive.nac_code)
    stock.current_balance = to_float(stock.current_balance) + to_float(receive.received_quantity)

    receive.approval_status = ApprovalStatus.approved
    receive.remaining_quantity = to_float(receive.received_quantity)

    rebuild_nac_inventory_state(db, receive.nac_code)
    log.info("approved receive %s for NAC %s", receive_id, receive.nac_code)
    return receive


# ---------- SORTIES ----------
def create_issue(
    db: Session,
    *,
    nac_code: str,
    issue_date: date,
    quantity: float,
    issue_slip_number: str | None = None,
    issue_cost: float = 0,
) -> IssueDetail:
    """
    Crée une sortie PENDING. La quantité réserve le stock dès la création
    (solde courant décrémenté) ; le coût est fixé par le rebuild, sauf coût
    carburant saisi (> 0).
    """
    stock = _get_stock_for_update(db, nac_code)
    if not stock:
        raise RecordNotFound(f"No stock record found for NAC {nac_code}")

    available = to_float(stock.current_balance)
    if quantity > available:
        raise ValueError(f"Insufficient stock. Requested: {quantity}, Available: {available}")

    issue = IssueDetail(
        nac_code=nac_code,
        issue_date=issue_date,
        issue_slip_number=issue_slip_number,
        issue_quantity=quantity,
        issue_cost=issue_cost,
        remaining_balance=0,
        approval_status=ApprovalStatus.pending,
    )
    db.add(issue)
    stock.current_balance = available - quantity
    db.flush()

    rebuild_nac_inventory_state(db, nac_code)
    log.info("issued NAC %s quantity %s (issue %s)", nac_code, quantity, issue.id)
    return issue


def update_issue(
    db: Session,
    issue_id: int,
    *,
    quantity: float | None = None,
    fuel_rate: float | None = None,
) -> IssueDetail:
    """
    Modification d'une sortie.

    - quantity : nouvelle quantité, l'écart est reporté sur le solde courant
    - fuel_rate : prix unitaire carburant, issue_cost = fuel_rate × quantité

    Sur un code carburant ce coût saisi survit au rebuild ; sur les autres
    codes le rebuild le remplace par le coût FIFO.
    """
    if quantity is None and fuel_rate is None:
        raise ValueError("Nothing to update")
    if quantity is not None and quantity <= 0:
        raise ValueError("Issue quantity must be positive")
    if fuel_rate is not None and fuel_rate < 0:
        raise ValueError("Fuel rate cannot be negative")

    issue = _get_issue(db, issue_id)
    stock = _get_stock_for_update(db, issue.nac_code)

    if quantity is not None:
        difference = quantity - to_float(issue.issue_quantity)
        if stock:
            available = to_float(stock.current_balance)
            if difference > available:
                raise ValueError(
                    f"Insufficient stock for quantity increase. Available: {available}, "
                    f"Additional needed: {difference}"
                )
            stock.current_balance = available - difference
        issue.issue_quantity = quantity

    if fuel_rate is not None:
        issue.issue_cost = fuel_rate * to_float(issue.issue_quantity)

    rebuild_nac_inventory_state(db, issue.nac_code)
    log.info(
        "updated issue %s (NAC %s): quantity=%s, fuel_rate=%s",
        issue_id,
        issue.nac_code,
        quantity,
        fuel_rate,
    )
    return issue


def delete_issue(db: Session, issue_id: int) -> str:
    """Supprime une sortie, restitue sa quantité au solde courant. Retourne le code NAC."""
    issue = _get_issue(db, issue_id)
    nac_code = issue.nac_code

    stock = _get_stock_for_update(db, nac_code)
    if stock:
        stock.current_balance = to_float(stock.current_balance) + to_float(issue.issue_quantity)
    db.delete(issue)
    db.flush()

    rebuild_nac_inventory_state(db, nac_code)
    log.info("deleted issue %s (NAC %s)", issue_id, nac_code)
    return nac_code


def approve_issues(db: Session, issue_ids: Iterable[int]) -> list[IssueDetail]:
    issues = _load_issues(db, issue_ids)

    already = [i.id for i in issues if i.approval_status == ApprovalStatus.approved]
    if already:
        raise ValueError(f"Issues {', '.join(str(i) for i in already)} are already approved")

    for issue in issues:
        issue.approval_status = ApprovalStatus.approved

    for code in rebuild_nac_codes(db, [i.nac_code for i in issues]):
        log.info("rebuilt inventory state for NAC %s after approving issues", code)
    return issues


def reject_issues(db: Session, issue_ids: Iterable[int]) -> int:
    """
    Rejet = suppression des sorties + restitution du solde courant.
    Retourne le nombre de sorties rejetées.
    """
    issues = _load_issues(db, issue_ids)
    codes = {i.nac_code for i in issues}
    rejected_ids = [int(i.id) for i in issues]

    for issue in issues:
        stock = _get_stock_for_update(db, issue.nac_code)
        if stock:
            stock.current_balance = to_float(stock.current_balance) + to_float(issue.issue_quantity)
        db.delete(issue)
    db.flush()

    rebuild_nac_codes(db, codes)
    log.info("rejected issues %s", ", ".join(str(i) for i in rejected_ids))
    return len(rejected_ids)


# ---------- TRANSFERT DE SOLDE ----------
def transfer_balance(
    db: Session,
    *,
    source_receive_id: int,
    to_nac_code: str,
    quantity: float,
    transfer_date: date,
) -> tuple[IssueDetail, ReceiveDetail]:
    """
    Transfère une partie d'un lot reçu vers un autre code NAC existant.

    Côté source : sortie APPROVED. Côté destination : réception APPROVED
    valorisée au coût unitaire du lot source (nouvel RRP "Code Transfer").
    Les deux codes sont rebuild dans la même transaction, source d'abord.
    """
    if quantity <= 0:
        raise ValueError("Transfer quantity must be positive")

    source = db.get(ReceiveDetail, source_receive_id)
    if not source:
        raise RecordNotFound("Source receive record not found")
    if source.approval_status != ApprovalStatus.approved:
        raise ValueError(f"Source receive {source_receive_id} is not approved")
    if not to_nac_code or not to_nac_code.strip():
        raise ValueError("Destination NAC code is required")
    if source.nac_code == to_nac_code:
        raise ValueError("Source and destination NAC codes must differ")

    available = to_float(source.remaining_quantity)
    if quantity > available:
        raise ValueError(f"Insufficient remaining quantity on source receive (available={available})")

    from_stock = _get_stock_for_update(db, source.nac_code)
    if not from_stock:
        raise RecordNotFound(f"No stock record found for NAC {source.nac_code}")
    # pas de création implicite : un code mal saisi ne doit pas ouvrir une position
    to_stock = _get_stock_for_update(db, to_nac_code)
    if not to_stock:
        raise ValueError("Destination NAC code does not exist")

    transfer_cost = unit_cost(_lot_total_cost(source), to_float(source.received_quantity)) * quantity

    issue = IssueDetail(
        nac_code=source.nac_code,
        issue_date=transfer_date,
        issue_slip_number=f"{TRANSFER_SLIP_PREFIX}{to_nac_code}",
        issue_quantity=quantity,
        issue_cost=0,
        remaining_balance=0,
        approval_status=ApprovalStatus.approved,
    )
    db.add(issue)
    from_stock.current_balance = to_float(from_stock.current_balance) - quantity

    rrp = RrpDetail(
        rrp_number=TRANSFER_RRP_NUMBER,
        item_price=transfer_cost,
        total_amount=transfer_cost,
    )
    db.add(rrp)
    db.flush()

    receive = ReceiveDetail(
        nac_code=to_nac_code,
        receive_date=transfer_date,
        received_quantity=quantity,
        rrp_fk=rrp.id,
        approval_status=ApprovalStatus.approved,
        remaining_quantity=quantity,
    )
    db.add(receive)
    to_stock.current_balance = to_float(to_stock.current_balance) + quantity
    db.flush()

    rebuild_nac_inventory_state(db, source.nac_code)
    rebuild_nac_inventory_state(db, to_nac_code)

    log.info(
        "transferred %s from NAC %s (receive %s) to NAC %s at cost %s",
        quantity,
        source.nac_code,
        source_receive_id,
        to_nac_code,
        round(transfer_cost, 4),
    )
    return issue, receive


def revert_balance_transfer(db: Session, rrp_id: int) -> tuple[str, str, float]:
    """
    Annule un transfert de solde à partir de son RRP "Code Transfer".

    Supprime le RRP, la réception destination et la sortie source, restitue
    les soldes courants des deux codes puis les rebuild (source d'abord).
    Retourne (code source, code destination, quantité).
    """
    rrp = db.get(RrpDetail, rrp_id)
    if not rrp or rrp.rrp_number != TRANSFER_RRP_NUMBER:
        raise RecordNotFound("Balance transfer record not found")

    receive = db.execute(
        select(ReceiveDetail).where(ReceiveDetail.rrp_fk == rrp.id)
    ).scalar_one_or_none()
    if not receive:
        raise RecordNotFound("Balance transfer record not found")

    to_nac_code = receive.nac_code
    quantity = to_float(receive.received_quantity)

    source_issue = db.execute(
        select(IssueDetail)
        .where(IssueDetail.issue_slip_number == f"{TRANSFER_SLIP_PREFIX}{to_nac_code}")
        .where(IssueDetail.issue_date == receive.receive_date)
        .where(IssueDetail.issue_quantity == quantity)
        .where(IssueDetail.approval_status == ApprovalStatus.approved)
        .order_by(IssueDetail.id.asc())
        .limit(1)
    ).scalar_one_or_none()
    if not source_issue:
        raise ValueError("Source NAC code not found for this transfer")
    from_nac_code = source_issue.nac_code

    to_stock = _get_stock_for_update(db, to_nac_code)
    to_available = to_float(to_stock.current_balance) if to_stock else 0.0
    if quantity > to_available:
        raise ValueError(
            f"Cannot revert transfer - destination NAC {to_nac_code} no longer holds the quantity. "
            f"Available: {to_available}, Required: {quantity}"
        )
    from_stock = _get_stock_for_update(db, from_nac_code)

    db.delete(receive)
    db.delete(rrp)
    db.delete(source_issue)
    to_stock.current_balance = to_available - quantity
    if from_stock:
        from_stock.current_balance = to_float(from_stock.current_balance) + quantity
    db.flush()

    rebuild_nac_inventory_state(db, from_nac_code)
    rebuild_nac_inventory_state(db, to_nac_code)

    log.info(
        "reverted balance transfer %s: %s from NAC %s back to NAC %s",
        rrp_id,
        quantity,
        to_nac_code,
        from_nac_code,
    )
    return from_nac_code, to_nac_code, quantity
