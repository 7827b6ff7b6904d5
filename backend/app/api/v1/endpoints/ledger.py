from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db
from backend.app.api.tx import commit_or_rollback
from backend.services.inventory import rebuild_nac_inventory_state, rebuild_all_nac_inventory_states

router = APIRouter(prefix="/ledger")

log = logging.getLogger("nacledger.api")


@router.post("/rebuild/{nac_code}")
def rebuild_one(nac_code: str, db: Session = Depends(get_db)):
    """Rebuild d'un code NAC. Code inconnu : rien à faire, rebuilt=false."""
    with commit_or_rollback(db, action=f"rebuild NAC {nac_code}"):
        result = rebuild_nac_inventory_state(db, nac_code)
    return {"nac_code": nac_code, "rebuilt": result is not None}


@router.post("/rebuild")
def rebuild_all(db: Session = Depends(get_db)):
    """Réconciliation complète (coûts de sortie + soldes) de tous les codes."""
    with commit_or_rollback(db, action="rebuild issue costs and balances"):
        processed = rebuild_all_nac_inventory_states(db)
    log.info("Issue cost and balance rebuild completed for %d NAC codes", processed)
    return {"processed": processed}
