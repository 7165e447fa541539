"""Wallet endpoints."""

from fastapi import APIRouter, HTTPException, Query, status

from medix.dependencies import CurrentUser, DatabaseSession
from medix.schemas.wallets import (
    WalletResponse,
    WalletTransactionListResponse,
    WalletTransactionResponse,
)
from medix.services.wallet_service import WalletService

router = APIRouter(prefix="/wallets", tags=["Wallets"])


@router.get("/me", response_model=WalletResponse, summary="Get my wallet")
async def get_my_wallet(current_user: CurrentUser, db: DatabaseSession) -> WalletResponse:
    """Get the authenticated user's wallet."""
    wallet = await WalletService(db).get_wallet_by_user_id(current_user["id"])
    if wallet is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Wallet not found")
    return WalletResponse.model_validate(wallet)


@router.post(
    "/me",
    response_model=WalletResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open my wallet",
)
async def create_my_wallet(current_user: CurrentUser, db: DatabaseSession) -> WalletResponse:
    """Open a wallet for the authenticated user; returns the existing one if already open."""
    return WalletResponse.model_validate(await WalletService(db).create_wallet(current_user["id"]))


@router.get(
    "/me/transactions",
    response_model=WalletTransactionListResponse,
    summary="List my wallet transactions",
)
async def list_my_transactions(
    current_user: CurrentUser,
    db: DatabaseSession,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> WalletTransactionListResponse:
    """List the authenticated user's ledger entries, newest first."""
    service = WalletService(db)
    wallet = await service.get_wallet_by_user_id(current_user["id"])
    if wallet is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Wallet not found")

    items, total = await service.list_transactions(wallet["id"], page, page_size)
    return WalletTransactionListResponse(
        total=total,
        page=page,
        page_size=page_size,
        items=[WalletTransactionResponse.model_validate(item) for item in items],
    )
