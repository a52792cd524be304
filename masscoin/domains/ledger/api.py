from fastapi import APIRouter, Depends, Query, status

from masscoin.domains.ledger.dependencies import (
    get_admin_user,
    get_current_user,
    get_ledger_service,
)
from masscoin.domains.ledger.schemas import (
    DirectTransferCreate,
    RewardCreate,
    StakeRequest,
    TipCreate,
    TransactionInfo,
    TransactionPage,
    TransferRequestCreate,
    TransferRequestInfo,
    UserStats,
    WalletAddressUpdate,
    WalletInfo,
    WithdrawalCreate,
    WithdrawalInfo,
)
from masscoin.domains.ledger.service import LedgerService
from masscoin.shared.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


# Wallet
@router.get("/wallet", response_model=WalletInfo)
async def get_wallet(
    user=Depends(get_current_user), service: LedgerService = Depends(get_ledger_service)
):
    """Get (or lazily create) the caller's wallet"""
    return await service.get_or_create_wallet(user["id"])


@router.put("/wallet/address", response_model=WalletInfo)
async def update_wallet_address(
    request: WalletAddressUpdate,
    user=Depends(get_current_user),
    service: LedgerService = Depends(get_ledger_service),
):
    return await service.update_wallet_address(user["id"], request.wallet_address)


@router.post("/stake", response_model=WalletInfo)
async def stake(
    request: StakeRequest,
    user=Depends(get_current_user),
    service: LedgerService = Depends(get_ledger_service),
):
    return await service.stake(user["id"], request.amount)


@router.post("/unstake", response_model=WalletInfo)
async def unstake(
    request: StakeRequest,
    user=Depends(get_current_user),
    service: LedgerService = Depends(get_ledger_service),
):
    return await service.unstake(user["id"], request.amount)


# Transfer requests
@router.post(
    "/transfer-requests",
    response_model=TransferRequestInfo,
    status_code=status.HTTP_201_CREATED,
)
async def create_transfer_request(
    request: TransferRequestCreate,
    user=Depends(get_current_user),
    service: LedgerService = Depends(get_ledger_service),
):
    """Escrow coins for a recipient until they approve or reject"""
    return await service.create_transfer_request(
        user["id"],
        request.recipient_id,
        request.amount,
        request.message,
        request.context_type,
        request.context_id,
    )


@router.get("/transfer-requests", response_model=list[TransferRequestInfo])
async def list_transfer_requests(
    user=Depends(get_current_user), service: LedgerService = Depends(get_ledger_service)
):
    return await service.list_pending_transfer_requests(user["id"])


@router.get("/transfer-requests/count")
async def count_transfer_requests(
    user=Depends(get_current_user), service: LedgerService = Depends(get_ledger_service)
):
    return {"pending": await service.count_pending_transfer_requests(user["id"])}


@router.post("/transfer-requests/{request_id}/approve", response_model=TransactionInfo)
async def approve_transfer_request(
    request_id: str,
    user=Depends(get_current_user),
    service: LedgerService = Depends(get_ledger_service),
):
    return await service.approve_transfer_request(user["id"], request_id)


@router.post("/transfer-requests/{request_id}/reject", response_model=TransferRequestInfo)
async def reject_transfer_request(
    request_id: str,
    user=Depends(get_current_user),
    service: LedgerService = Depends(get_ledger_service),
):
    return await service.reject_transfer_request(user["id"], request_id)


# Direct transfers
@router.post(
    "/transfer", response_model=TransactionInfo, status_code=status.HTTP_201_CREATED
)
async def transfer_direct(
    request: DirectTransferCreate,
    user=Depends(get_current_user),
    service: LedgerService = Depends(get_ledger_service),
):
    return await service.transfer_direct(
        user["id"], request.recipient_id, request.amount, request.message
    )


@router.post("/tip", response_model=TransactionInfo, status_code=status.HTTP_201_CREATED)
async def tip_content(
    request: TipCreate,
    user=Depends(get_current_user),
    service: LedgerService = Depends(get_ledger_service),
):
    """Tip the owner of a post or reel"""
    return await service.tip_content(
        user["id"], request.content_id, request.amount, request.description
    )


# Withdrawals
@router.post(
    "/withdrawals", response_model=WithdrawalInfo, status_code=status.HTTP_201_CREATED
)
async def request_withdrawal(
    request: WithdrawalCreate,
    user=Depends(get_current_user),
    service: LedgerService = Depends(get_ledger_service),
):
    return await service.request_withdrawal(
        user["id"], request.amount, request.method, request.destination, request.metadata
    )


@router.get("/withdrawals", response_model=list[WithdrawalInfo])
async def list_withdrawals(
    user=Depends(get_current_user), service: LedgerService = Depends(get_ledger_service)
):
    return await service.list_withdrawals(user["id"])


# History and statistics
@router.get("/transactions", response_model=TransactionPage)
async def get_transactions(
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=100),
    user=Depends(get_current_user),
    service: LedgerService = Depends(get_ledger_service),
):
    items, total = await service.get_transactions(user["id"], page, size)
    return TransactionPage(
        items=[TransactionInfo.model_validate(tx) for tx in items],
        total=total,
        page=page,
        size=size,
    )


@router.get("/stats", response_model=UserStats)
async def get_stats(
    user=Depends(get_current_user), service: LedgerService = Depends(get_ledger_service)
):
    return await service.get_user_stats(user["id"])


# Admin endpoints
@router.post(
    "/admin/reward",
    response_model=TransactionInfo,
    status_code=status.HTTP_201_CREATED,
    tags=["admin"],
)
async def reward_user(
    request: RewardCreate,
    admin=Depends(get_admin_user),
    service: LedgerService = Depends(get_ledger_service),
):
    """System reward (admin only)"""
    logger.info(f"Admin {admin['id']} rewards {request.user_id} with {request.amount}")
    return await service.reward_user(request.user_id, request.amount, request.reason)
