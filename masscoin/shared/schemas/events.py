from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel


class Party(BaseModel):
    user_id: str
    full_name: str
    avatar: Optional[str] = None


class TransferRequested(BaseModel):
    event: Literal["ledger:transfer_requested"] = "ledger:transfer_requested"
    request_id: str
    sender: Party
    recipient: Party
    amount: Decimal


class TransferApproved(BaseModel):
    event: Literal["ledger:transfer_approved"] = "ledger:transfer_approved"
    request_id: str
    transaction_id: str
    sender: Party
    recipient: Party
    amount: Decimal


class TransferRejected(BaseModel):
    event: Literal["ledger:transfer_rejected"] = "ledger:transfer_rejected"
    request_id: str
    sender: Party
    recipient: Party
    amount: Decimal


class TransferRequestExpired(BaseModel):
    event: Literal["ledger:transfer_expired"] = "ledger:transfer_expired"
    request_id: str
    sender: Party
    recipient: Party
    amount: Decimal


class TransferCompleted(BaseModel):
    event: Literal["ledger:transfer_completed"] = "ledger:transfer_completed"
    transaction_id: str
    transaction_type: str
    sender: Party
    recipient: Party
    amount: Decimal
    message: Optional[str] = None


class RewardGranted(BaseModel):
    event: Literal["ledger:reward_granted"] = "ledger:reward_granted"
    transaction_id: str
    user: Party
    amount: Decimal
    reason: Optional[str] = None


class WithdrawalRequested(BaseModel):
    event: Literal["ledger:withdrawal_requested"] = "ledger:withdrawal_requested"
    withdrawal_id: str
    user_id: str
    amount: Decimal
    method: str
