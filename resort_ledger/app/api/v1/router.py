from fastapi import APIRouter

from resort_ledger.app.api.v1.endpoints.health import router as health_router
from resort_ledger.app.api.v1.endpoints.stock import router as stock_router
from resort_ledger.app.api.v1.endpoints.recipes import router as recipes_router
from resort_ledger.app.api.v1.endpoints.transfer_rules import router as transfer_rules_router
from resort_ledger.app.api.v1.endpoints.consumptions import router as consumptions_router
from resort_ledger.app.api.v1.endpoints.replacements import router as replacements_router
from resort_ledger.app.api.v1.endpoints.requisitions import router as requisitions_router
from resort_ledger.app.api.v1.endpoints.purchase_orders import router as purchase_orders_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(stock_router, tags=["stock"])
router.include_router(recipes_router, tags=["recipes"])
router.include_router(transfer_rules_router, tags=["store_transfer_rules"])
router.include_router(consumptions_router, tags=["consumptions"])
router.include_router(replacements_router, tags=["store_replacements"])
router.include_router(requisitions_router, tags=["requisitions"])
router.include_router(purchase_orders_router, tags=["purchase_orders"])
