from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, Field, ConfigDict


class UserRole(str, Enum):
    USER = "User"
    ADMIN = "Admin"
    SUPER_ADMIN = "Super Admin"


class AccountType(str, Enum):
    NORMAL_ARTIST = "Normal Artist"
    LABEL = "Label"


class SongStatus(str, Enum):
    APPROVED = "Approved"
    DECLINED = "Declined"
    WAITING = "Waiting for Action"


class WithdrawalStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"


class User(BaseModel):
    id: str
    name: str
    email: str
    avatar: str = ""
    role: UserRole = UserRole.USER
    account_type: AccountType = AccountType.NORMAL_ARTIST
    subscription_expiry: Optional[datetime] = None
    payout_rate: Decimal = Field(default=Decimal("0.8"), ge=0, le=1)

    model_config = ConfigDict(from_attributes=True)

    def is_admin(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.SUPER_ADMIN)

    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN


class Song(BaseModel):
    id: str
    user_id: str
    title: str
    author: str = ""
    singer: str = ""
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    status: SongStatus = SongStatus.WAITING
    submitted_at: datetime
    cover_art: str = ""
    audio_url: str = ""
    banner_url: str = ""
    actioned_by: Optional[str] = None
    actioned_at: Optional[datetime] = None
    total_earnings: Optional[Decimal] = Field(default=None, ge=0)

    model_config = ConfigDict(from_attributes=True)


class Credit(BaseModel):
    id: str
    user_id: str
    admin_id: str
    amount: Decimal = Field(..., gt=0)
    note: str = ""
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)


class Withdrawal(BaseModel):
    id: str
    user_id: str
    amount: Decimal = Field(..., gt=0)
    upi_id: str
    upi_name: str
    status: WithdrawalStatus = WithdrawalStatus.PENDING
    requested_at: datetime
    processed_at: Optional[datetime] = None
    processed_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    def can_process(self) -> bool:
        return self.status == WithdrawalStatus.PENDING


class AppSettings(BaseModel):
    prices: dict[AccountType, Decimal] = Field(default_factory=lambda: {
        AccountType.NORMAL_ARTIST: Decimal("999"),
        AccountType.LABEL: Decimal("1999"),
    })


class Database(BaseModel):
    """Everything the record store keeps, serialised as one document."""

    users: list[User] = Field(default_factory=list)
    songs: list[Song] = Field(default_factory=list)
    withdrawals: list[Withdrawal] = Field(default_factory=list)
    credits: list[Credit] = Field(default_factory=list)
    settings: AppSettings = Field(default_factory=AppSettings)


class WithdrawalTransaction(Withdrawal):
    type: Literal["withdrawal"] = "withdrawal"
    admin_name: Optional[str] = None


class CreditTransaction(Credit):
    type: Literal["credit"] = "credit"
    admin_name: Optional[str] = None


UnifiedTransaction = Annotated[
    Union[WithdrawalTransaction, CreditTransaction],
    Field(discriminator="type"),
]


class WalletSummary(BaseModel):
    user_id: str
    song_earnings: Decimal
    total_credits: Decimal
    total_earnings: Decimal
    total_withdrawn: Decimal
    pending_withdrawals: Decimal
    available_balance: Decimal
    transactions: list[UnifiedTransaction] = Field(default_factory=list)


class PlatformFinancials(BaseModel):
    total_song_gross_earnings: Decimal
    total_paid_out: Decimal
    platform_cut: Decimal
    total_user_side_earnings: Decimal
    total_credits: Decimal
    total_remaining_to_pay: Decimal


class WithdrawalRequest(BaseModel):
    user_id: str = Field(..., min_length=1, description="Requesting user")
    amount: Decimal = Field(..., gt=0, description="Amount to withdraw")
    upi_id: str = Field(..., min_length=3, description="UPI payout identifier")
    upi_name: str = Field(..., min_length=2, description="Payee display name")

    model_config = ConfigDict(str_strip_whitespace=True, json_schema_extra={
        "example": {
            "user_id": "user-2",
            "amount": 500.00,
            "upi_id": "melody@upi",
            "upi_name": "Melody Maker",
        }
    })


class WithdrawalForm(BaseModel):
    """Loosely typed request body; strict checks happen in the service."""

    amount: Optional[Union[Decimal, str]] = None
    upi_id: str = ""
    upi_name: str = ""


class ProcessWithdrawalRequest(BaseModel):
    status: str


class AddCreditRequest(BaseModel):
    amount: Optional[Union[Decimal, str]] = None
    note: str = ""


class RegisterUserRequest(BaseModel):
    name: str = ""
    email: str = ""


class SongSubmission(BaseModel):
    title: str = Field(..., min_length=1)
    author: str = Field(..., min_length=1)
    singer: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    tags: list[str] = Field(default_factory=list)
    banner_url: str = Field(..., min_length=1)
    audio_url: str = Field(..., min_length=1)

    model_config = ConfigDict(str_strip_whitespace=True)


class PaidSongSubmission(SongSubmission):
    account_type: AccountType


class ActionResult(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    field: Optional[str] = None
    record_id: Optional[str] = None


class RoleUpdate(BaseModel):
    role: str


class AccountTypeUpdate(BaseModel):
    account_type: str


class PayoutRateUpdate(BaseModel):
    rate: Optional[Union[Decimal, str]] = Field(None, description="Payout share as a percentage, 0-100")


class SubscriptionGrant(BaseModel):
    months: Optional[Union[int, str]] = None


class EarningsUpdate(BaseModel):
    earnings: Optional[Union[Decimal, str]] = None


class PriceUpdate(BaseModel):
    prices: dict[str, Decimal]
