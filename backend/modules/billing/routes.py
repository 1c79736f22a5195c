"""
Booth billing API endpoints.

Checkout initiation, the Stripe webhook, balance and history reads, and
the operator review queue. Mounted under ``/api/booth``.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from api.dependencies import get_checkout_service, get_credit_ledger, get_webhook_reconciler
from api.middleware.auth import get_current_user, get_optional_user, require_admin
from shared.models import AuthenticatedUser

from .catalog import QUICK_BUY_PACK, list_packs
from .checkout import CheckoutService
from .exceptions import WebhookVerificationError
from .interfaces import ICreditLedger
from .models import (
    CheckoutRequest,
    CheckoutResponse,
    CreditsResponse,
    PackListResponse,
    Purchase,
    PurchaseListResponse,
    QuickBuyResponse,
    TransactionListResponse,
    WebhookAck,
)
from .reconciler import WebhookReconciler

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    request: CheckoutRequest,
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    service: CheckoutService = Depends(get_checkout_service),
) -> CheckoutResponse:
    """
    Start a Stripe Checkout purchase for a catalog pack.

    The pack is validated before the caller so an unknown pack is a 400
    for everyone.
    """
    handle = await service.create_checkout_session(user, request.pack_id)
    return CheckoutResponse(url=handle.url or "")


@router.post("/quick-buy", response_model=QuickBuyResponse)
async def create_quick_buy(
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    service: CheckoutService = Depends(get_checkout_service),
) -> QuickBuyResponse:
    """Start a one-tap quick-buy PaymentIntent."""
    handle = await service.create_quick_buy(user)
    return QuickBuyResponse(client_secret=handle.client_secret or "")


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
):
    """
    Receive Stripe webhook events.

    Any handled or ignored event is acknowledged with 200. A non-2xx
    response makes Stripe redeliver, which is safe: reconciliation is
    idempotent per payment reference.
    """
    payload = await request.body()
    try:
        await reconciler.handle(payload, stripe_signature)
    except WebhookVerificationError as e:
        return JSONResponse(status_code=400, content={"error": e.message})
    except Exception:
        # Already logged with event context by the reconciler
        return JSONResponse(status_code=500, content={"error": "Webhook processing failed"})
    return WebhookAck()


@router.get("/credits", response_model=CreditsResponse)
async def get_credits(
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    ledger: ICreditLedger = Depends(get_credit_ledger),
) -> CreditsResponse:
    """Caller's balance; anonymous callers get ``authenticated: false``."""
    if user is None:
        return CreditsResponse(credits=None, authenticated=False)
    balance = await run_in_threadpool(ledger.get_balance, user.id)
    return CreditsResponse(credits=balance, authenticated=True)


@router.get("/packs", response_model=PackListResponse)
async def get_packs() -> PackListResponse:
    """Public pack catalog."""
    return PackListResponse(packs=list_packs(), quick_buy=QUICK_BUY_PACK)


@router.get("/transactions", response_model=TransactionListResponse)
async def list_transactions(
    limit: int = Query(default=50, ge=1, le=100, description="Maximum entries"),
    offset: int = Query(default=0, ge=0, description="Entries to skip"),
    user: AuthenticatedUser = Depends(get_current_user),
    ledger: ICreditLedger = Depends(get_credit_ledger),
) -> TransactionListResponse:
    """The caller's ledger entries, most recent first."""
    transactions = await run_in_threadpool(ledger.list_transactions, user.id, limit, offset)
    return TransactionListResponse(
        transactions=transactions,
        limit=limit,
        offset=offset,
        has_more=len(transactions) == limit,
    )


@router.get("/admin/purchases/review", response_model=PurchaseListResponse)
async def list_review_queue(
    limit: int = Query(default=100, ge=1, le=500),
    operator: AuthenticatedUser = Depends(require_admin),
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
) -> PurchaseListResponse:
    """Purchases that were paid but never credited."""
    purchases = await reconciler.list_review_queue(limit)
    return PurchaseListResponse(purchases=purchases)


@router.post("/admin/purchases/{reference}/retry", response_model=Purchase)
async def retry_purchase(
    reference: str,
    operator: AuthenticatedUser = Depends(require_admin),
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
) -> Purchase:
    """Re-attempt the credit grant for a purchase in the review queue."""
    logger.info(f"Operator {operator.id} retrying credit grant for {reference}")
    return await reconciler.retry_credit_grant(reference)
