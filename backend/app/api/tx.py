from __future__ import annotations

import logging
from contextlib import contextmanager

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.services.procurement import RecordNotFound

log = logging.getLogger("nacledger.api")


@contextmanager
def commit_or_rollback(db: Session, *, action: str):
    """
    Transaction d'un endpoint : commit si tout passe, rollback sinon.

    - RecordNotFound -> 404
    - ValueError (refus métier) -> 400
    - SQLAlchemyError (verrou, contrainte, connexion) -> 500 générique
    """
    try:
        yield
        db.commit()
    except RecordNotFound as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except SQLAlchemyError:
        db.rollback()
        log.exception("Error in %s", action)
        raise HTTPException(status_code=500, detail=f"Failed to {action}")
