from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from masscoin.domains.ledger.entities import ContextType


class _ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Request models
class TransferRequestCreate(BaseModel):
    recipient_id: str = Field(min_length=1)
    amount: Decimal = Field(gt=0, max_digits=20, decimal_places=4)
    message: Optional[str] = Field(default=None, max_length=500)
    context_type: ContextType = ContextType.NONE
    context_id: Optional[str] = None


class DirectTransferCreate(BaseModel):
    recipient_id: str = Field(min_length=1)
    amount: Decimal = Field(gt=0, max_digits=20, decimal_places=4)
    message: Optional[str] = Field(default=None, max_length=500)


class TipCreate(BaseModel):
    content_id: str = Field(min_length=1)
    amount: Decimal = Field(gt=0, max_digits=20, decimal_places=4)
    description: Optional[str] = Field(default=None, max_length=500)


class StakeRequest(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=20, decimal_places=4)


class WithdrawalCreate(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=20, decimal_places=4)
    method: str
    destination: str
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("method", "destination")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class RewardCreate(BaseModel):
    user_id: str = Field(min_length=1)
    amount: Decimal = Field(gt=0, max_digits=20, decimal_places=4)
    reason: str = Field(min_length=1, max_length=255)


class WalletAddressUpdate(BaseModel):
    wallet_address: str = Field(min_length=4, max_length=128)


# Response models
class WalletInfo(_ORMModel):
    user_id: str
    wallet_address: str
    balance: Decimal
    staked_amount: Decimal
    created_at: Optional[datetime] = None


class TransferRequestInfo(_ORMModel):
    id: str
    sender_id: str
    recipient_id: str
    amount: Decimal
    message: Optional[str] = None
    context_type: ContextType
    context_id: Optional[str] = None
    status: str
    created_at: datetime
    expires_at: datetime

    @field_validator("context_id", mode="before")
    @classmethod
    def _empty_context(cls, v):
        return v or None


class TransactionInfo(_ORMModel):
    id: str
    sender_id: Optional[str] = None
    recipient_id: str
    amount: Decimal
    type: str
    status: str
    description: Optional[str] = None
    context_type: Optional[str] = None
    context_id: Optional[str] = None
    created_at: datetime


class TransactionPage(BaseModel):
    items: List[TransactionInfo]
    total: int
    page: int
    size: int


class WithdrawalInfo(_ORMModel):
    id: str
    user_id: str
    amount: Decimal
    method: str
    destination: str
    details: Optional[Dict[str, Any]] = None
    status: str
    created_at: datetime


class UserStats(BaseModel):
    total_transactions: int
    total_volume: Decimal
    average_transaction_amount: Decimal
    total_tips_received: int
    total_tips_amount: Decimal
    total_tips_sent: int
    total_tips_sent_amount: Decimal
