from fastapi import APIRouter

from backend.app.api.v1.endpoints.health import router as health_router
from backend.app.api.v1.endpoints.stock import router as stock_router
from backend.app.api.v1.endpoints.issues import router as issues_router
from backend.app.api.v1.endpoints.receives import router as receives_router
from backend.app.api.v1.endpoints.balance_transfers import router as balance_transfers_router
from backend.app.api.v1.endpoints.ledger import router as ledger_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(stock_router, tags=["stock"])
router.include_router(issues_router, tags=["issues"])
router.include_router(receives_router, tags=["receives"])
router.include_router(balance_transfers_router, tags=["balance_transfers"])
router.include_router(ledger_router, tags=["ledger"])
