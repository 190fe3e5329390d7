"""Cabinet API routes."""

from fastapi import APIRouter

from .admin_gifts import router as admin_gifts_router
from .admin_payment_methods import router as admin_payment_methods_router
from .admin_reconciliation import router as admin_reconciliation_router
from .admin_subscriptions import router as admin_subscriptions_router
from .admin_transactions import router as admin_transactions_router
from .admin_withdrawals import router as admin_withdrawals_router
from .balance import router as balance_router
from .boosts import router as boosts_router
from .gifts import router as gifts_router
from .payment_methods import router as payment_methods_router
from .subscription import router as subscription_router
from .transactions import router as transactions_router
from .websocket import router as websocket_router


# Main cabinet router
router = APIRouter(prefix='/cabinet', tags=['Cabinet'])

router.include_router(balance_router)
router.include_router(payment_methods_router)
router.include_router(transactions_router)
router.include_router(subscription_router)
router.include_router(gifts_router)
router.include_router(boosts_router)

# Admin routes
router.include_router(admin_transactions_router)
router.include_router(admin_withdrawals_router)
router.include_router(admin_subscriptions_router)
router.include_router(admin_gifts_router)
router.include_router(admin_payment_methods_router)
router.include_router(admin_reconciliation_router)

# WebSocket route
router.include_router(websocket_router)

__all__ = ['router']
