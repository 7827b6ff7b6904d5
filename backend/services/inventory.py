from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from backend.app.core.config import get_settings
from backend.app.db.models.models_v1 import (
    StockDetail,
    ReceiveDetail,
    RrpDetail,
    IssueDetail,
)
from backend.app.db.models.core_types import ApprovalStatus
from backend.services.ledger import (
    StockPosition,
    ReceiptLot,
    IssueRecord,
    LedgerResult,
    normalize_date_string,
    replay_ledger,
    to_float,
)


log = logging.getLogger("nacledger.inventory")


def _fuel_codes(fuel_nac_codes: Iterable[str] | None) -> frozenset[str]:
    if fuel_nac_codes is None:
        return get_settings().fuel_nac_codes
    return frozenset(fuel_nac_codes)


def rebuild_nac_inventory_state(
    db: Session,
    nac_code: str,
    *,
    logger: logging.Logger | None = None,
    fuel_nac_codes: Iterable[str] | None = None,
) -> LedgerResult | None:
    """
    Rebuild des champs dérivés d'un code NAC à partir des sources de vérité.

    Sources (lues dans cet ordre, verrouillées FOR UPDATE) :
        stock_details -> receive_details APPROVED -> issue_details (tous statuts)

    Champs écrits :
        receive_details.remaining_quantity
        issue_details.issue_cost, issue_details.remaining_balance
        stock_details.open_remaining_quantity

    Propriétés :
    - déterministe
    - idempotent
    - ne commit JAMAIS : la transaction appartient à l'appelant
    - seules les erreurs SQL remontent
    """
    logger = logger or log

    # mutations de l'appelant visibles par les SELECT ci-dessous
    db.flush()

    # ---------- STOCK ----------
    stock = (
        db.execute(
            select(StockDetail)
            .where(StockDetail.nac_code == nac_code)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalar_one_or_none()
    )
    if not stock:
        logger.info("rebuild skipped - no stock_details found for NAC %s", nac_code, extra={"nac_code": nac_code})
        return None

    position = StockPosition(
        nac_code=nac_code,
        open_quantity=to_float(stock.open_quantity),
        open_amount=to_float(stock.open_amount),
    )

    # ---------- REÇU (APPROVED uniquement) ----------
    rrp_total = func.coalesce(
        RrpDetail.total_amount,
        RrpDetail.item_price * ReceiveDetail.received_quantity,
        0,
    ).label("rrp_total_amount")

    receive_rows = db.execute(
        select(ReceiveDetail, rrp_total)
        .outerjoin(RrpDetail, RrpDetail.id == ReceiveDetail.rrp_fk)
        .where(ReceiveDetail.nac_code == nac_code)
        .where(ReceiveDetail.approval_status == ApprovalStatus.approved)
        .order_by(ReceiveDetail.receive_date.asc(), ReceiveDetail.id.asc())
        # rrp_details est du côté nullable de l'outer join : on ne verrouille que les réceptions
        .with_for_update(of=ReceiveDetail)
        .execution_options(populate_existing=True)
    ).all()

    receives = {int(rd.id): rd for rd, _ in receive_rows}
    lots = [
        ReceiptLot(
            id=int(rd.id),
            receive_date=normalize_date_string(rd.receive_date),
            total_quantity=to_float(rd.received_quantity),
            total_cost=to_float(total),
        )
        for rd, total in receive_rows
    ]

    # ---------- SORTIES (tous statuts) ----------
    issue_rows = (
        db.execute(
            select(IssueDetail)
            .where(IssueDetail.nac_code == nac_code)
            .order_by(IssueDetail.issue_date.asc(), IssueDetail.id.asc())
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .all()
    )

    issues_by_id = {int(row.id): row for row in issue_rows}
    issues = [
        IssueRecord(
            id=int(row.id),
            issue_date=normalize_date_string(row.issue_date),
            issue_quantity=to_float(row.issue_quantity),
            issue_cost=to_float(row.issue_cost),
        )
        for row in issue_rows
    ]

    # ---------- REJEU ----------
    result = replay_ledger(
        position,
        lots,
        issues,
        is_fuel=nac_code in _fuel_codes(fuel_nac_codes),
        log=logger,
    )

    # ---------- ÉCRITURE ----------
    for lot_id, remaining in result.lot_remaining.items():
        receives[lot_id].remaining_quantity = remaining

    for update in result.issue_updates:
        issue = issues_by_id[update.id]
        issue.issue_cost = update.issue_cost
        issue.remaining_balance = update.remaining_balance

    stock.open_remaining_quantity = result.open_remaining_quantity

    # les erreurs d'écriture (contraintes, verrous) remontent ici, pas au commit
    db.flush()

    logger.debug(
        "rebuilt NAC %s: %d lots, %d issues, opening remaining %s",
        nac_code,
        len(lots),
        len(issues),
        result.open_remaining_quantity,
    )
    return result


def rebuild_nac_codes(
    db: Session,
    nac_codes: Iterable[str],
    *,
    logger: logging.Logger | None = None,
    fuel_nac_codes: Iterable[str] | None = None,
) -> list[str]:
    """Rebuild de chaque code touché par un appelant (dédoublonné, trié)."""
    codes = sorted({str(code) for code in nac_codes if code and str(code).strip()})
    for code in codes:
        rebuild_nac_inventory_state(db, code, logger=logger, fuel_nac_codes=fuel_nac_codes)
    return codes


def rebuild_all_nac_inventory_states(
    db: Session,
    *,
    logger: logging.Logger | None = None,
    fuel_nac_codes: Iterable[str] | None = None,
) -> int:
    """
    Réconciliation complète : rebuild séquentiel de tous les codes connus,
    dans la transaction de l'appelant. Retourne le nombre de codes traités.
    """
    codes = db.execute(
        select(StockDetail.nac_code)
        .where(StockDetail.nac_code.is_not(None))
        .where(StockDetail.nac_code != "")
        .distinct()
        .order_by(StockDetail.nac_code.asc())
    ).scalars().all()

    processed = 0
    for code in codes:
        rebuild_nac_inventory_state(db, str(code), logger=logger, fuel_nac_codes=fuel_nac_codes)
        processed += 1
    return processed
